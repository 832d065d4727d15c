"""
Photo model for images uploaded to object storage.
A photo with no property reference is an orphan until it gets linked.
"""

from sqlalchemy import DateTime, String, ForeignKey, Index, JSON, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from app.database import Base
import uuid
from datetime import datetime
from typing import Any, Dict, Optional


PHOTO_SOURCE_CREATION = "property_creation"
PHOTO_SOURCE_UPDATE = "property_update"
PHOTO_LINKED_BY_RECONCILIATION = "reconciliation"


class Photo(Base):
    """
    Photo model for storage-hosted images.
    Rows are created by the upload path (as orphans), by property creation,
    or by property update; reconciliation only re-points existing rows.
    """

    __tablename__ = "photos"

    imagekit_file_id: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
        comment="Storage file identifier (the URL when unknown)"
    )

    url: Mapped[str] = mapped_column(
        String(2048),
        nullable=False,
        index=True,
        comment="Public URL of the image"
    )

    thumbnail_url: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)

    category: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default="property"
    )

    uploader_id: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        index=True
    )

    # Nullable: NULL means the photo is an orphan
    property_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("properties.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
        comment="ID of the property this photo belongs to"
    )

    # "metadata" is reserved on declarative classes, so the attribute is renamed
    photo_metadata: Mapped[Dict[str, Any]] = mapped_column(
        "metadata",
        JSON,
        nullable=False,
        default=dict,
        comment="Provenance and free-form attributes"
    )

    # NULL until a reconciliation sweep examines the orphan without linking it
    reconcile_checked_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="Last time a reconciliation sweep found no property for this orphan"
    )

    def __repr__(self) -> str:
        """String representation of the photo."""
        return f"<Photo(id={self.id}, property_id={self.property_id}, url={self.url})>"

    @property
    def is_orphan(self) -> bool:
        return self.property_id is None

    @property
    def source(self) -> Optional[str]:
        """Provenance tag recorded when the row was created."""
        return (self.photo_metadata or {}).get("source")

    def to_dict(self) -> Dict[str, Any]:
        """Convert photo to dictionary."""
        return {
            "id": str(self.id),
            "imagekit_file_id": self.imagekit_file_id,
            "url": self.url,
            "thumbnail_url": self.thumbnail_url,
            "category": self.category,
            "uploader_id": self.uploader_id,
            "property_id": str(self.property_id) if self.property_id else None,
            "metadata": dict(self.photo_metadata or {}),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


# Index for orphan sweeps (unchecked first, then least recently checked)
orphan_photos_index = Index(
    'idx_photos_orphans',
    Photo.reconcile_checked_at,
    Photo.created_at,
    postgresql_where=Photo.property_id.is_(None)
)

# Index for orphan lookups by URL during property updates
url_property_index = Index(
    'idx_photos_url_property',
    Photo.url,
    Photo.property_id
)
