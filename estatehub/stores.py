# Entity stores for listings, update proposals and transaction requests.
# Writes that change state are conditional UPDATEs ("... WHERE id = :id AND status IN (...) AND
# version = :v"); a zero rowcount means another writer got there first. Stores never commit:
# the lifecycle/workflow owns the transaction boundary.
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional

from sqlalchemy import delete, func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import models
from .errors import ConflictError, NotFoundError

logger = logging.getLogger("estatehub.stores")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _guarded_update(db: Session, model: Any, obj: Any, allowed_states: Iterable[str], values: dict) -> None:
    """
    Apply ``values`` to ``obj``'s row only if its status and version are still what we read.

    Bumps the version; raises ConflictError when the row moved underneath us.
    """
    expected_version = obj.version or 1
    stmt = (
        update(model)
        .where(
            model.id == obj.id,
            model.status.in_(list(allowed_states)),
            model.version == expected_version,
        )
        .values(**values, version=expected_version + 1)
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    if result.rowcount != 1:
        logger.info(
            "store.conditional_update_lost",
            extra={"table": model.__tablename__, "entity_id": obj.id, "expected_version": expected_version},
        )
        raise ConflictError(f"{model.__name__} {obj.id} was modified concurrently; reload and retry")


class ListingStore:
    """Properties, their favorites/reports, and update proposals."""

    def __init__(self, db: Session) -> None:
        self.db = db

    # Properties
    def get_property(self, property_id: int, include_deleted: bool = False) -> models.Property:
        prop = self.db.get(models.Property, property_id)
        if prop is None or (prop.deleted_at is not None and not include_deleted):
            raise NotFoundError("Property not found")
        return prop

    def add_property(self, prop: models.Property) -> models.Property:
        self.db.add(prop)
        self.db.flush()
        return prop

    def write_property(self, prop: models.Property, allowed_states: Iterable[str], **values: Any) -> None:
        _guarded_update(self.db, models.Property, prop, allowed_states, values)

    def increment_views(self, property_id: int) -> None:
        self.db.execute(
            update(models.Property)
            .where(models.Property.id == property_id)
            .values(views=models.Property.views + 1)
            .execution_options(synchronize_session=False)
        )

    def list_visible(self, listing_type: Optional[str] = None, limit: int = 20, offset: int = 0) -> List[models.Property]:
        q = self.db.query(models.Property).filter(
            models.Property.status == "approved",
            models.Property.is_active.is_(True),
            models.Property.deleted_at.is_(None),
        )
        if listing_type:
            q = q.filter(models.Property.listing_type == listing_type)
        return q.order_by(models.Property.id.desc()).offset(offset).limit(limit).all()

    def list_for_owner(self, owner_profile_id: int, status: Optional[str] = None) -> List[models.Property]:
        q = self.db.query(models.Property).filter(
            models.Property.owner_id == owner_profile_id,
            models.Property.deleted_at.is_(None),
        )
        if status:
            q = q.filter(models.Property.status == status)
        return q.order_by(models.Property.id.desc()).all()

    def list_by_status(self, status: str, limit: int = 20, offset: int = 0) -> List[models.Property]:
        return (
            self.db.query(models.Property)
            .filter(models.Property.status == status, models.Property.deleted_at.is_(None))
            .order_by(models.Property.id.asc())
            .offset(offset)
            .limit(limit)
            .all()
        )

    # Favorites (set semantics enforced by a unique constraint)
    def add_favorite(self, property_id: int, user_id: int) -> bool:
        """Insert the (property, user) pair; False if it was already there. Must be the only write in the transaction."""
        exists = (
            self.db.query(models.PropertyFavorite.id)
            .filter(
                models.PropertyFavorite.property_id == property_id,
                models.PropertyFavorite.user_id == user_id,
            )
            .first()
        )
        if exists is not None:
            return False
        try:
            self.db.add(models.PropertyFavorite(property_id=property_id, user_id=user_id))
            self.db.flush()
            return True
        except IntegrityError:
            # lost an insert race against the same user
            self.db.rollback()
            return False

    def remove_favorite(self, property_id: int, user_id: int) -> bool:
        result = self.db.execute(
            delete(models.PropertyFavorite).where(
                models.PropertyFavorite.property_id == property_id,
                models.PropertyFavorite.user_id == user_id,
            )
        )
        return result.rowcount > 0

    def count_favorites(self, property_id: int) -> int:
        return (
            self.db.query(func.count(models.PropertyFavorite.id))
            .filter(models.PropertyFavorite.property_id == property_id)
            .scalar()
            or 0
        )

    def add_report(self, report: models.PropertyReport) -> models.PropertyReport:
        self.db.add(report)
        self.db.flush()
        return report

    def get_report(self, report_id: int) -> models.PropertyReport:
        obj = self.db.get(models.PropertyReport, report_id)
        if obj is None:
            raise NotFoundError("Report not found")
        return obj

    def write_report(self, obj: models.PropertyReport, allowed_states: Iterable[str], **values: Any) -> None:
        _guarded_update(self.db, models.PropertyReport, obj, allowed_states, values)

    def list_reports(self, status: str, limit: int = 20, offset: int = 0) -> List[models.PropertyReport]:
        return (
            self.db.query(models.PropertyReport)
            .filter(models.PropertyReport.status == status)
            .order_by(models.PropertyReport.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )

    # Update proposals
    def get_update_request(self, request_id: int) -> models.PropertyUpdateRequest:
        obj = self.db.get(models.PropertyUpdateRequest, request_id)
        if obj is None:
            raise NotFoundError("Property update request not found")
        return obj

    def pending_update_for(self, property_id: int) -> Optional[models.PropertyUpdateRequest]:
        return (
            self.db.query(models.PropertyUpdateRequest)
            .filter(
                models.PropertyUpdateRequest.property_id == property_id,
                models.PropertyUpdateRequest.status == "pending",
            )
            .first()
        )

    def add_update_request(self, obj: models.PropertyUpdateRequest) -> models.PropertyUpdateRequest:
        self.db.add(obj)
        self.db.flush()
        return obj

    def write_update_request(self, obj: models.PropertyUpdateRequest, allowed_states: Iterable[str], **values: Any) -> None:
        _guarded_update(self.db, models.PropertyUpdateRequest, obj, allowed_states, values)

    def list_update_requests(self, status: str, limit: int = 20, offset: int = 0) -> List[models.PropertyUpdateRequest]:
        return (
            self.db.query(models.PropertyUpdateRequest)
            .filter(models.PropertyUpdateRequest.status == status)
            .order_by(models.PropertyUpdateRequest.id.asc())
            .offset(offset)
            .limit(limit)
            .all()
        )


class RequestStore:
    """Buy/rent transaction requests."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def get(self, request_id: int) -> models.PropertyRequest:
        obj = self.db.get(models.PropertyRequest, request_id)
        if obj is None:
            raise NotFoundError("Property request not found")
        return obj

    def add(self, obj: models.PropertyRequest) -> models.PropertyRequest:
        self.db.add(obj)
        self.db.flush()
        return obj

    def transition(self, obj: models.PropertyRequest, from_states: Iterable[str], **values: Any) -> None:
        _guarded_update(self.db, models.PropertyRequest, obj, from_states, values)

    def has_pending_for_property(self, property_id: int) -> bool:
        found = (
            self.db.query(models.PropertyRequest.id)
            .filter(
                models.PropertyRequest.property_id == property_id,
                models.PropertyRequest.status == "pending",
            )
            .first()
        )
        return found is not None

    def list_for_owner(self, owner_account_id: int, status: Optional[str] = None) -> List[models.PropertyRequest]:
        q = self.db.query(models.PropertyRequest).filter(models.PropertyRequest.owner_id == owner_account_id)
        if status:
            q = q.filter(models.PropertyRequest.status == status)
        return q.order_by(models.PropertyRequest.id.desc()).all()

    def list_for_requester(self, requester_id: int, status: Optional[str] = None) -> List[models.PropertyRequest]:
        q = self.db.query(models.PropertyRequest).filter(models.PropertyRequest.requester_id == requester_id)
        if status:
            q = q.filter(models.PropertyRequest.status == status)
        return q.order_by(models.PropertyRequest.id.desc()).all()
