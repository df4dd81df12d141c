# SQLAlchemy ORM models for the marketplace tables (accounts, owner profiles, listings,
# update proposals, transaction requests, notifications).
# Keep business logic out of models; state transitions live in lifecycle.py / workflow.py.
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import declarative_mixin

from .db import Base


@declarative_mixin
class TimestampMixin:
    """Common UTC-aware timestamps automatically managed by the database.

    - created_at: set on insert
    - updated_at: set on insert and updated on each modification
    """
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class User(Base, TimestampMixin):
    """Marketplace account.

    Roles:
    - admin: reviews listings and update proposals (provisioned out of band)
    - owner: lists and manages properties through an OwnerProfile
    - buyer / renter: raise buy or rent requests
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    name = Column(String(100), nullable=False, default="")
    role = Column(String(20), nullable=False, index=True)


class OwnerProfile(Base, TimestampMixin):
    """Owner profile; properties reference this row, never the account directly."""
    __tablename__ = "owners"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, unique=True, index=True)
    name = Column(String(100), nullable=False, default="")
    phone = Column(String(30), nullable=True)


class Property(Base, TimestampMixin):
    """Listing created by an owner and gated by an admin.

    Status graph:
    pending -> approved | rejected
    approved -> sold | rented | inactive   (and back to approved to re-list)

    'version' is bumped on every write; transitions are conditional on it.
    """
    __tablename__ = "properties"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    owner_id = Column(Integer, ForeignKey("owners.id"), nullable=False, index=True)
    title = Column(String(100), nullable=False)
    description = Column(Text, nullable=False)
    property_type = Column(String(20), nullable=False)
    listing_type = Column(String(10), nullable=False)
    price = Column(Float, nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    location = Column(JSON, nullable=False, default=dict)
    details = Column(JSON, nullable=False, default=dict)
    amenities = Column(JSON, nullable=False, default=list)
    images = Column(JSON, nullable=False, default=list)

    status = Column(String(20), nullable=False, default="pending")
    approved_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(String(500), nullable=True)
    admin_notes = Column(String(1000), nullable=True)

    is_active = Column(Boolean, nullable=False, default=True)
    views = Column(Integer, nullable=False, default=0)
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    version = Column(Integer, nullable=False, default=1)

    # "my listings by status" and the admin pending queue
    __table_args__ = (
        Index("ix_properties_owner_status", "owner_id", "status"),
        Index("ix_properties_status_active", "status", "is_active"),
    )


class PropertyFavorite(Base):
    """One row per (property, user): favorites behave as a set."""
    __tablename__ = "property_favorites"

    id = Column(Integer, primary_key=True, autoincrement=True)
    property_id = Column(Integer, ForeignKey("properties.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("property_id", "user_id", name="uq_property_favorites_property_user"),
    )


class PropertyReport(Base):
    """Abuse report against a listing; an admin dismisses it or resolves it by deactivating the listing."""
    __tablename__ = "property_reports"

    id = Column(Integer, primary_key=True, autoincrement=True)
    property_id = Column(Integer, ForeignKey("properties.id"), nullable=False, index=True)
    reported_by = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    reason = Column(String(20), nullable=False)
    description = Column(String(1000), nullable=True)
    status = Column(String(20), nullable=False, default="pending")
    resolution = Column(String(30), nullable=True)
    resolved_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    admin_notes = Column(String(1000), nullable=True)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("ix_property_reports_status", "status"),
    )


class PropertyUpdateRequest(Base, TimestampMixin):
    """Proposed diff against an approved listing, awaiting a single admin decision."""
    __tablename__ = "property_update_requests"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    property_id = Column(Integer, ForeignKey("properties.id"), nullable=False)
    owner_id = Column(Integer, ForeignKey("owners.id"), nullable=False, index=True)
    proposed_updates = Column(JSON, nullable=False)
    status = Column(String(20), nullable=False, default="pending")
    approved_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    rejected_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    rejected_at = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(String(500), nullable=True)
    admin_notes = Column(String(1000), nullable=True)
    version = Column(Integer, nullable=False, default=1)

    __table_args__ = (
        Index("ix_property_update_requests_property_status", "property_id", "status"),
    )


class PropertyRequest(Base, TimestampMixin):
    """Buy or rent intent raised against a listing.

    Status transitions:
    pending -> accepted | rejected | cancelled   (all terminal)

    owner_id is the owner's *account* id, resolved at creation time.
    """
    __tablename__ = "property_requests"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    property_id = Column(Integer, ForeignKey("properties.id"), nullable=False, index=True)
    requester_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    request_type = Column(String(10), nullable=False)
    message = Column(String(1000), nullable=False)
    offer_amount = Column(Float, nullable=True)
    preferred_move_in_date = Column(Date, nullable=True)
    status = Column(String(20), nullable=False, default="pending")
    response_message = Column(String(1000), nullable=True)
    version = Column(Integer, nullable=False, default=1)

    # "my pending items" for both sides of the request
    __table_args__ = (
        Index("ix_property_requests_owner_status", "owner_id", "status"),
        Index("ix_property_requests_requester_status", "requester_id", "status"),
    )


class Notification(Base):
    """Fire-and-forget event record for a recipient account."""
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    kind = Column(String(40), nullable=False)
    title = Column(String(100), nullable=False)
    message = Column(String(500), nullable=False)
    data = Column(JSON, nullable=False, default=dict)
    is_read = Column(Boolean, nullable=False, default=False)
    read_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("ix_notifications_user_read", "user_id", "is_read"),
    )
