"""
Pydantic schemas for photo responses and orphan reconciliation results.
"""

from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional


class PhotoResponse(BaseModel):
    """Schema for photo responses."""

    id: str
    imagekit_file_id: str
    url: str
    thumbnail_url: Optional[str] = None
    category: str
    uploader_id: Optional[str] = None
    property_id: Optional[str] = None
    metadata: Dict[str, Any] = {}
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class ReconciledPhoto(BaseModel):
    """A photo that was linked to a property by reconciliation."""

    photo_id: str
    property_id: str


class ReconcileResponse(BaseModel):
    """Schema for orphan photo reconciliation results."""

    success: bool = True
    reconciled: List[ReconciledPhoto] = Field(default_factory=list)
    count: int = 0
