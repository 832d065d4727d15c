"""
Ownership cache used by the authorization layer.
Maps (resource type, resource id) to the owning user id; mutations that can change
ownership state invalidate the matching entry.
"""

from typing import Optional
import logging

from app.config import settings
from app.utils.cache import TTLCache, get_cache

logger = logging.getLogger(__name__)


class OwnershipCache:
    """Owner lookups stored in the shared TTL cache under ``ownership:``."""

    KEY_PREFIX = "ownership:"

    def __init__(self, cache: Optional[TTLCache] = None, ttl: Optional[int] = None):
        self.cache = cache if cache is not None else get_cache()
        self.ttl = ttl or settings.cache_ttl_ownership

    @classmethod
    def key(cls, resource_type: str, resource_id: str) -> str:
        return f"{cls.KEY_PREFIX}{resource_type}:{resource_id}"

    def get_owner(self, resource_type: str, resource_id: str) -> Optional[str]:
        return self.cache.get(self.key(resource_type, resource_id))

    def set_owner(self, resource_type: str, resource_id: str, owner_id: str) -> None:
        self.cache.set(self.key(resource_type, resource_id), owner_id, self.ttl)

    def invalidate(self, resource_type: str, resource_id: str) -> None:
        """Drop the cached owner so the next check reads the store."""
        removed = self.cache.invalidate(self.key(resource_type, resource_id))
        logger.debug(f"Invalidated ownership cache for {resource_type}:{resource_id} ({removed} entries)")
