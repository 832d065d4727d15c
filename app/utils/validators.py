"""
Validation rules for property image URLs.
Images are uploaded to object storage first; properties only carry their URLs.
"""

from typing import Any, List, Optional
from urllib.parse import urlparse

from app.config import settings


def validate_image_urls(images: Any, max_images: Optional[int] = None) -> Optional[List[str]]:
    """
    Validate a property image list.

    Args:
        images: Raw image list from the request body (None means "not provided")
        max_images: Maximum number of images allowed (defaults to settings)

    Returns:
        The validated list, or None when no list was provided

    Raises:
        ValueError: If the list or any entry violates the URL rules
    """
    if images is None:
        return None

    if max_images is None:
        max_images = settings.max_images_per_property

    if not isinstance(images, list):
        raise ValueError("Images must be a list of URLs")

    if len(images) > max_images:
        raise ValueError(f"Maximum {max_images} images per property")

    for image in images:
        if not isinstance(image, str):
            raise ValueError("Images must be strings (storage URLs)")
        if image.startswith("data:"):
            raise ValueError("Base64 images are not allowed. Upload to storage first.")
        parsed = urlparse(image)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError("Images must be valid URLs")

    return images
