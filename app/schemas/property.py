"""
Pydantic schemas for property requests and responses.
Handles property creation, partial updates, listing pagination and image URL rules.
"""

from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from app.utils.validators import validate_image_urls


class PropertyBase(BaseModel):
    """Base property schema with common fields."""

    title: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="Property listing title"
    )

    description: Optional[str] = Field(None, max_length=5000)

    address: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="Street address"
    )

    city: Optional[str] = Field(None, max_length=120)
    state: Optional[str] = Field(None, max_length=120)
    zip_code: Optional[str] = Field(None, max_length=20)

    price: Decimal = Field(
        ...,
        gt=0,
        description="Property price in local currency"
    )

    bedrooms: Optional[int] = Field(None, ge=0, le=50)
    bathrooms: Optional[Decimal] = Field(None, ge=0, le=50)
    square_feet: Optional[int] = Field(None, gt=0, le=1000000)
    property_type: Optional[str] = Field(None, max_length=50)
    amenities: List[str] = Field(default_factory=list)

    latitude: Optional[Decimal] = Field(None, ge=-90, le=90)
    longitude: Optional[Decimal] = Field(None, ge=-180, le=180)

    furnished: bool = False
    pets_allowed: bool = False
    lease_term: Optional[str] = Field(None, max_length=50)
    utilities_included: List[str] = Field(default_factory=list)

    status: str = Field("active", max_length=30)
    listing_status: str = Field("draft", max_length=30)
    visibility: str = Field("public", max_length=30)
    expires_at: Optional[datetime] = None

    images: List[str] = Field(
        default_factory=list,
        description="Image URLs already uploaded to storage (max 25)"
    )

    @field_validator('title', 'address')
    @classmethod
    def validate_required_text(cls, v):
        """Validate and clean required text fields."""
        if not v or not v.strip():
            raise ValueError("Field cannot be empty")
        return v.strip()

    @field_validator('price')
    @classmethod
    def validate_price(cls, v):
        """Validate price value."""
        if v > Decimal('999999999.99'):
            raise ValueError("Price exceeds maximum allowed value")
        return v

    @field_validator('images', mode='before')
    @classmethod
    def validate_images(cls, v):
        """Images must be absolute http(s) URLs, never inline data."""
        if v is None:
            return []
        return validate_image_urls(v)

    @model_validator(mode='after')
    def validate_coordinates(self):
        """Validate that both coordinates are provided together or both are None."""
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("Both latitude and longitude must be provided together, or both must be None")
        return self


class PropertyCreate(PropertyBase):
    """Schema for creating a new property."""

    model_config = {
        "json_schema_extra": {
            "example": {
                "title": "Test Property",
                "address": "123 Test Lane",
                "city": "Testville",
                "price": "1000.00",
                "bedrooms": 2,
                "images": [
                    "https://cdn.example.com/prop/1.jpg",
                    "https://cdn.example.com/prop/2.jpg"
                ]
            }
        }
    }


class PropertyUpdate(BaseModel):
    """Schema for a partial property update; only fields that are set are applied."""

    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=5000)
    address: Optional[str] = Field(None, min_length=1, max_length=255)
    city: Optional[str] = Field(None, max_length=120)
    state: Optional[str] = Field(None, max_length=120)
    zip_code: Optional[str] = Field(None, max_length=20)
    price: Optional[Decimal] = Field(None, gt=0)
    bedrooms: Optional[int] = Field(None, ge=0, le=50)
    bathrooms: Optional[Decimal] = Field(None, ge=0, le=50)
    square_feet: Optional[int] = Field(None, gt=0, le=1000000)
    property_type: Optional[str] = Field(None, max_length=50)
    amenities: Optional[List[str]] = None
    latitude: Optional[Decimal] = Field(None, ge=-90, le=90)
    longitude: Optional[Decimal] = Field(None, ge=-180, le=180)
    furnished: Optional[bool] = None
    pets_allowed: Optional[bool] = None
    lease_term: Optional[str] = Field(None, max_length=50)
    utilities_included: Optional[List[str]] = None
    status: Optional[str] = Field(None, max_length=30)
    listing_status: Optional[str] = Field(None, max_length=30)
    visibility: Optional[str] = Field(None, max_length=30)
    expires_at: Optional[datetime] = None
    images: Optional[List[str]] = None

    @field_validator('title', 'address')
    @classmethod
    def validate_required_text(cls, v):
        """Validate and clean text fields that cannot be blank."""
        if v is not None:
            if not v.strip():
                raise ValueError("Field cannot be empty")
            return v.strip()
        return v

    @field_validator('images', mode='before')
    @classmethod
    def validate_images(cls, v):
        """Images must be absolute http(s) URLs, never inline data."""
        return validate_image_urls(v)


class PropertyResponse(BaseModel):
    """Schema for property responses."""

    id: str
    owner_id: str
    title: str
    description: Optional[str] = None
    address: str
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    price: str
    bedrooms: Optional[int] = None
    bathrooms: Optional[float] = None
    square_feet: Optional[int] = None
    property_type: Optional[str] = None
    amenities: List[str] = []
    furnished: bool = False
    pets_allowed: bool = False
    lease_term: Optional[str] = None
    utilities_included: List[str] = []
    images: List[str] = []
    status: str
    listing_status: str
    visibility: str
    expires_at: Optional[str] = None
    view_count: int = 0
    save_count: int = 0
    application_count: int = 0
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class PaginationMeta(BaseModel):
    """Pagination metadata for property listings."""

    page: int
    limit: int
    total: int
    total_pages: int
    has_next_page: bool
    has_prev_page: bool


class PropertyListResponse(BaseModel):
    """Schema for paginated property list responses."""

    properties: List[PropertyResponse]
    pagination: PaginationMeta
