"""
Tests for image URL validation and the property request schemas that use it.
"""

import pytest
from decimal import Decimal
from pydantic import ValidationError as PydanticValidationError

from app.schemas.property import PropertyCreate, PropertyUpdate
from app.utils.validators import validate_image_urls


class TestValidateImageUrls:
    """Test image URL rules."""

    def test_none_means_not_provided(self):
        assert validate_image_urls(None) is None

    def test_empty_list_is_valid(self):
        assert validate_image_urls([]) == []

    def test_valid_urls_pass_through(self):
        urls = ["https://cdn.example.com/a.jpg", "http://img.example.org/b.png?tr=w-300"]
        assert validate_image_urls(urls) == urls

    def test_twenty_five_images_allowed(self):
        urls = [f"https://cdn.example.com/{i}.jpg" for i in range(25)]
        assert len(validate_image_urls(urls)) == 25

    def test_twenty_six_images_rejected(self):
        urls = [f"https://cdn.example.com/{i}.jpg" for i in range(26)]
        with pytest.raises(ValueError, match="Maximum 25 images per property"):
            validate_image_urls(urls)

    def test_custom_maximum(self):
        with pytest.raises(ValueError, match="Maximum 2 images"):
            validate_image_urls(["https://a.example/1", "https://a.example/2", "https://a.example/3"], max_images=2)

    def test_not_a_list_rejected(self):
        with pytest.raises(ValueError, match="must be a list"):
            validate_image_urls("https://cdn.example.com/a.jpg")

    def test_non_string_entry_rejected(self):
        with pytest.raises(ValueError, match="must be strings"):
            validate_image_urls(["https://cdn.example.com/a.jpg", 42])

    def test_data_url_rejected(self):
        with pytest.raises(ValueError, match="Base64 images are not allowed"):
            validate_image_urls(["data:image/png;base64,iVBORw0KGgo="])

    @pytest.mark.parametrize("url", [
        "not a url",
        "cdn.example.com/a.jpg",
        "ftp://cdn.example.com/a.jpg",
        "https://",
        "",
    ])
    def test_malformed_url_rejected(self, url):
        with pytest.raises(ValueError, match="Images must be valid URLs"):
            validate_image_urls([url])


class TestPropertySchemas:
    """Test property create/update schemas."""

    def test_create_defaults(self):
        data = PropertyCreate(title="Flat", address="1 Main St", price="1200")

        assert data.price == Decimal("1200")
        assert data.images == []
        assert data.status == "active"
        assert data.listing_status == "draft"
        assert data.visibility == "public"

    def test_create_strips_required_text(self):
        data = PropertyCreate(title="  Flat  ", address=" 1 Main St ", price=1)

        assert data.title == "Flat"
        assert data.address == "1 Main St"

    def test_create_requires_positive_price(self):
        with pytest.raises(PydanticValidationError):
            PropertyCreate(title="Flat", address="1 Main St", price=0)

    def test_create_requires_title(self):
        with pytest.raises(PydanticValidationError):
            PropertyCreate(address="1 Main St", price=100)

    def test_create_rejects_invalid_images(self):
        with pytest.raises(PydanticValidationError):
            PropertyCreate(title="Flat", address="1 Main St", price=100, images=["data:image/png;base64,xx"])

    def test_create_requires_both_coordinates(self):
        with pytest.raises(PydanticValidationError):
            PropertyCreate(title="Flat", address="1 Main St", price=100, latitude=40.7)

    def test_update_only_reports_set_fields(self):
        data = PropertyUpdate(title="New title")

        assert data.model_dump(exclude_unset=True) == {"title": "New title"}

    def test_update_rejects_blank_title(self):
        with pytest.raises(PydanticValidationError):
            PropertyUpdate(title="   ")

    def test_update_validates_images(self):
        with pytest.raises(PydanticValidationError):
            PropertyUpdate(images=[f"https://cdn.example.com/{i}.jpg" for i in range(26)])
