# Pydantic models (request/response DTOs) used by the API layer.
# Business rules live in lifecycle.py / workflow.py; these only describe shapes.
from pydantic import BaseModel, Field, ConfigDict, field_validator, EmailStr
from typing import Any, Dict, List, Literal, Optional, Union
from datetime import date, datetime


PropertyType = Literal["apartment", "house", "condo", "townhouse", "villa", "land", "commercial"]
ListingType = Literal["sale", "rent"]
PropertyStatus = Literal["pending", "approved", "rejected", "sold", "rented", "inactive"]
Amenity = Literal[
    "air_conditioning",
    "heating",
    "balcony",
    "garden",
    "pool",
    "gym",
    "elevator",
    "security",
    "furnished",
    "pet_friendly",
    "utilities_included",
]
ReportReason = Literal["spam", "fraud", "inappropriate", "fake", "other"]
RequestType = Literal["buy", "rent"]
RequestStatus = Literal["pending", "accepted", "rejected", "cancelled"]
UpdateRequestStatus = Literal["pending", "approved", "rejected"]
ReportStatus = Literal["pending", "resolved", "dismissed"]


def _strip(v: Any) -> Any:
    if isinstance(v, str):
        v = v.strip()
    return v


# Listing building blocks
class Address(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: str = "United States"

    @field_validator("street", "city", "state", "zip_code", "country", mode="before")
    @classmethod
    def strip_all(cls, v: Any) -> Any:
        return _strip(v)


class Coordinates(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class Location(BaseModel):
    address: Address
    coordinates: Optional[Coordinates] = None


class Area(BaseModel):
    size: float = Field(0, ge=0)
    unit: Literal["sqft", "sqm", "acres"] = "sqft"


class Details(BaseModel):
    bedrooms: Optional[int] = Field(None, ge=0)
    bathrooms: Optional[float] = Field(None, ge=0)
    area: Optional[Area] = None
    year_built: Optional[int] = Field(None, ge=1600, le=2100)
    parking: Optional[Literal["none", "street", "garage", "covered"]] = None


class Image(BaseModel):
    url: str = Field(..., min_length=1)
    caption: str = ""
    is_primary: bool = False


# Images may be sent as bare URL strings or as objects
ImageInput = Union[str, Image]


class PropertyPatch(BaseModel):
    """
    Whitelist of listing fields an owner may change.

    Used for direct edits of pending listings and for update proposals; anything outside
    this set (status, owner_id, approval stamps, counters) is rejected.
    """
    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, min_length=1, max_length=2000)
    property_type: Optional[PropertyType] = None
    listing_type: Optional[ListingType] = None
    price: Optional[float] = Field(None, gt=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    location: Optional[Location] = None
    details: Optional[Details] = None
    amenities: Optional[List[Amenity]] = None
    images: Optional[List[ImageInput]] = Field(None, min_length=1)

    @field_validator("title", "description", mode="before")
    @classmethod
    def strip_text(cls, v: Any) -> Any:
        return _strip(v)


# Payload for creating a listing. Required fields are checked by ListingLifecycle so that
# every missing field is reported together.
class PropertyCreate(BaseModel):
    title: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = Field(None, max_length=2000)
    property_type: Optional[PropertyType] = None
    listing_type: Optional[ListingType] = None
    price: Optional[float] = None
    currency: str = Field("USD", min_length=3, max_length=3)
    location: Optional[Location] = None
    details: Details = Field(default_factory=Details)
    amenities: List[Amenity] = Field(default_factory=list)
    images: List[ImageInput] = Field(default_factory=list)

    @field_validator("title", "description", mode="before")
    @classmethod
    def strip_text(cls, v: Any) -> Any:
        return _strip(v)


class PropertyRead(BaseModel):
    id: int
    owner_id: int
    title: str
    description: str
    property_type: str
    listing_type: str
    price: float
    currency: str
    location: Dict[str, Any]
    details: Dict[str, Any]
    amenities: List[str]
    images: List[Image]
    status: PropertyStatus
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    admin_notes: Optional[str] = None
    is_active: bool
    views: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# Owner self-service change: content fields, an optional status change, or both
class OwnerPropertyUpdate(PropertyPatch):
    status: Optional[Literal["approved", "sold", "rented", "inactive"]] = None


class UpdateRequestRead(BaseModel):
    id: int
    property_id: int
    owner_id: int
    proposed_updates: Dict[str, Any]
    status: UpdateRequestStatus
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    rejected_by: Optional[int] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    admin_notes: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class OwnerUpdateResult(BaseModel):
    actions: List[Literal["direct_edit", "update_requested", "status_changed"]]
    property: PropertyRead
    update_request: Optional[UpdateRequestRead] = None


# Admin decisions. action is validated by the lifecycle so unknown values map to validation_error.
class ListingDecision(BaseModel):
    action: str
    reason: Optional[str] = Field(None, max_length=500)
    notes: Optional[str] = Field(None, max_length=1000)

    @field_validator("action", "reason", mode="before")
    @classmethod
    def strip_reason(cls, v: Any) -> Any:
        return _strip(v)


class UpdateDecision(BaseModel):
    action: str
    reason: Optional[str] = Field(None, max_length=500)
    notes: Optional[str] = Field(None, max_length=1000)
    updated_data: Optional[Dict[str, Any]] = None

    @field_validator("action", "reason", mode="before")
    @classmethod
    def strip_reason(cls, v: Any) -> Any:
        return _strip(v)


class FavoriteResult(BaseModel):
    property_id: int
    favorited: bool
    favorites_count: int


class ReportCreate(BaseModel):
    reason: ReportReason
    description: Optional[str] = Field(None, max_length=1000)


class ReportRead(BaseModel):
    id: int
    property_id: int
    reported_by: int
    reason: ReportReason
    description: Optional[str] = None
    status: ReportStatus
    resolution: Optional[str] = None
    resolved_by: Optional[int] = None
    resolved_at: Optional[datetime] = None
    admin_notes: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# action is validated by the lifecycle: "dismiss" or "deactivate_listing"
class ReportDecision(BaseModel):
    action: str
    notes: Optional[str] = Field(None, max_length=1000)

    @field_validator("action", mode="before")
    @classmethod
    def strip_action(cls, v: Any) -> Any:
        return _strip(v)


# Transaction requests
class PropertyRequestCreate(BaseModel):
    property_id: int = Field(..., ge=1)
    request_type: RequestType
    message: str = Field(..., min_length=1, max_length=1000)
    offer_amount: Optional[float] = Field(None, gt=0)
    preferred_move_in_date: Optional[date] = None

    @field_validator("message", mode="before")
    @classmethod
    def strip_message(cls, v: Any) -> Any:
        return _strip(v)


class RequestStatusUpdate(BaseModel):
    status: str
    response_message: Optional[str] = Field(None, max_length=1000)

    @field_validator("status", "response_message", mode="before")
    @classmethod
    def strip_fields(cls, v: Any) -> Any:
        return _strip(v)


class PropertyRequestRead(BaseModel):
    id: int
    property_id: int
    requester_id: int
    owner_id: int
    request_type: RequestType
    message: str
    offer_amount: Optional[float] = None
    preferred_move_in_date: Optional[date] = None
    status: RequestStatus
    response_message: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# Notifications
class NotificationRead(BaseModel):
    id: int
    user_id: int
    kind: str
    title: str
    message: str
    data: Dict[str, Any]
    is_read: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# Authentication and user models

# Roles that may self-register; admins are provisioned out of band
SignupRole = Literal["owner", "buyer", "renter"]
Role = Literal["admin", "owner", "buyer", "renter"]


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8)
    name: str = Field("", max_length=100)
    phone: Optional[str] = Field(None, max_length=30)
    role: SignupRole = "buyer"

    # Normalize email input to lowercase without surrounding whitespace
    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        if isinstance(v, str):
            v = v.strip().lower()
        return v


class UserRead(BaseModel):
    id: int
    email: EmailStr
    name: str
    role: Role

    model_config = ConfigDict(from_attributes=True)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        if isinstance(v, str):
            v = v.strip().lower()
        return v


# OAuth2-style token response bundled with the current user profile
class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserRead
