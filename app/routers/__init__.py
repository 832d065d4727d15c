"""
API route handlers for the Property Photo Sync API.
"""

from .properties import router as properties_router

__all__ = ["properties_router"]
