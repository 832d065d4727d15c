"""
Property model for rental listings.
Handles property data with location, pricing, image URLs and counters.
"""

from sqlalchemy import String, Text, Integer, Numeric, Boolean, DateTime, JSON, Index
from sqlalchemy.orm import Mapped, mapped_column
from app.database import Base
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional


class Property(Base):
    """
    Property model for managing rental listings.
    The ``images`` column holds the ordered list of storage URLs; photo rows
    referencing this property are kept in sync with it.
    """

    __tablename__ = "properties"

    # Ownership
    owner_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
        comment="ID of the user who owns this property"
    )

    # Basic property information
    title: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Property listing title"
    )

    description: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="Detailed property description"
    )

    # Location information
    address: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Street address"
    )

    city: Mapped[Optional[str]] = mapped_column(
        String(120),
        nullable=True,
        index=True
    )

    state: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)

    zip_code: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    latitude: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(precision=10, scale=8),
        nullable=True
    )

    longitude: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(precision=11, scale=8),
        nullable=True
    )

    # Pricing and specifications
    price: Mapped[Decimal] = mapped_column(
        Numeric(precision=12, scale=2),
        nullable=False,
        index=True,
        comment="Property price in local currency"
    )

    bedrooms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    bathrooms: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(precision=4, scale=1),
        nullable=True
    )

    square_feet: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    property_type: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True,
        index=True,
        comment="house, apartment, condo, townhouse..."
    )

    amenities: Mapped[Optional[List[str]]] = mapped_column(JSON, nullable=True)

    furnished: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    pets_allowed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    lease_term: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    utilities_included: Mapped[Optional[List[str]]] = mapped_column(JSON, nullable=True)

    # Images (storage URLs, at most 25)
    images: Mapped[List[str]] = mapped_column(
        JSON,
        nullable=False,
        default=list,
        comment="Ordered list of image URLs"
    )

    # Status fields
    status: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        default="active",
        index=True
    )

    listing_status: Mapped[str] = mapped_column(String(30), nullable=False, default="draft")

    visibility: Mapped[str] = mapped_column(String(30), nullable=False, default="public")

    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Counters
    view_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    save_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    application_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        """String representation of the property."""
        return f"<Property(id={self.id}, title={self.title[:30]}..., price={self.price})>"

    @property
    def image_count(self) -> int:
        """Get the number of image URLs on this property."""
        return len(self.images or [])

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert property to a plain dictionary.
        This is the representation stored in the cache and returned to callers.
        """
        return {
            "id": str(self.id),
            "owner_id": self.owner_id,
            "title": self.title,
            "description": self.description,
            "address": self.address,
            "city": self.city,
            "state": self.state,
            "zip_code": self.zip_code,
            "latitude": float(self.latitude) if self.latitude is not None else None,
            "longitude": float(self.longitude) if self.longitude is not None else None,
            "price": str(self.price),
            "bedrooms": self.bedrooms,
            "bathrooms": float(self.bathrooms) if self.bathrooms is not None else None,
            "square_feet": self.square_feet,
            "property_type": self.property_type,
            "amenities": list(self.amenities or []),
            "furnished": self.furnished,
            "pets_allowed": self.pets_allowed,
            "lease_term": self.lease_term,
            "utilities_included": list(self.utilities_included or []),
            "images": list(self.images or []),
            "status": self.status,
            "listing_status": self.listing_status,
            "visibility": self.visibility,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "view_count": self.view_count,
            "save_count": self.save_count,
            "application_count": self.application_count,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


# Composite index for the listing query (status filter, newest first)
status_created_index = Index(
    'idx_properties_status_created',
    Property.status,
    Property.created_at.desc()
)

# Composite index for city searches with price filtering
city_price_index = Index(
    'idx_properties_city_price',
    Property.city,
    Property.price,
    Property.status
)

# Composite index for an owner's properties
owner_status_index = Index(
    'idx_properties_owner_status',
    Property.owner_id,
    Property.status
)
