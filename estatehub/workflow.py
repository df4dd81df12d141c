# Transaction workflow: buy/rent requests raised against visible listings.
#
#   pending -> accepted | rejected   (the listing owner's account)
#   pending -> cancelled             (the requester)
#
# Every terminal state is final. Transitions are conditional on the stored status/version,
# so two racing writers produce exactly one winner.
from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from . import gate, models, notifications, schemas
from .db import transaction
from .errors import ForbiddenError, NotFoundError, ValidationError
from .identity import AccountId, IdentityResolver
from .lifecycle import is_visible
from .locks import entity_lock
from .notifications import NotificationSink, dispatch
from .stores import ListingStore, RequestStore

logger = logging.getLogger("estatehub.workflow")

REQUESTER_ROLES = ("buyer", "renter")
RESPONSE_DECISIONS = ("accepted", "rejected")

# Listing type each request type applies to
LISTING_TYPE_FOR_REQUEST = {"buy": "sale", "rent": "rent"}


def _verb(request_type: str) -> str:
    return "buy" if request_type == "buy" else "rent"


class TransactionWorkflow:
    """Requester and owner operations on PropertyRequest. One instance per request/session."""

    def __init__(self, db: Session, sink: NotificationSink) -> None:
        self.db = db
        self.sink = sink
        self.requests = RequestStore(db)
        self.listings = ListingStore(db)
        self.identity = IdentityResolver(db)

    def _property_title(self, property_id: int) -> str:
        prop = self.db.get(models.Property, property_id)
        return prop.title if prop is not None else f"#{property_id}"

    def create_request(self, actor: models.User, payload: schemas.PropertyRequestCreate) -> models.PropertyRequest:
        gate.require_role(actor, REQUESTER_ROLES)
        if payload.request_type == "buy" and payload.preferred_move_in_date is not None:
            raise ValidationError("preferred_move_in_date only applies to rent requests", fields=["preferred_move_in_date"])
        if payload.request_type == "rent" and payload.offer_amount is not None:
            raise ValidationError("offer_amount only applies to buy requests", fields=["offer_amount"])

        prop = self.listings.get_property(payload.property_id)
        if not is_visible(prop):
            raise NotFoundError("Property is not available")
        if prop.listing_type != LISTING_TYPE_FOR_REQUEST[payload.request_type]:
            raise ValidationError(
                f"Cannot {_verb(payload.request_type)} a property listed for {prop.listing_type}",
                fields=["request_type"],
            )

        owner_account = self.identity.owner_account_for(prop.id)
        if owner_account == actor.id:
            raise ForbiddenError("You cannot raise a request on your own property")

        obj = models.PropertyRequest(
            property_id=prop.id,
            requester_id=actor.id,
            owner_id=owner_account,
            request_type=payload.request_type,
            message=payload.message,
            offer_amount=payload.offer_amount,
            preferred_move_in_date=payload.preferred_move_in_date,
            status="pending",
            version=1,
        )
        with transaction(self.db):
            # version bump on the listing: a concurrent soft delete or status change and this
            # insert cannot both commit
            self.listings.write_property(prop, {"approved"})
            self.requests.add(obj)
        self.db.refresh(obj)

        logger.info(
            "request.created",
            extra={
                "request_id": obj.id,
                "property_id": prop.id,
                "requester_id": actor.id,
                "owner_account_id": owner_account,
                "request_type": obj.request_type,
            },
        )
        requester_name = actor.name or actor.email
        dispatch(
            self.sink,
            owner_account,
            notifications.PROPERTY_REQUEST,
            "New Property Request",
            f"{requester_name} has sent a request to {_verb(obj.request_type)} your property: {prop.title}",
            {
                "request_id": obj.id,
                "property_id": prop.id,
                "property_title": prop.title,
                "request_type": obj.request_type,
                "requester_id": actor.id,
                "requester_name": requester_name,
            },
        )
        return obj

    def respond_to_request(
        self,
        actor: models.User,
        request_id: int,
        decision: str,
        response_message: Optional[str] = None,
    ) -> models.PropertyRequest:
        if decision not in RESPONSE_DECISIONS:
            raise ValidationError("Valid status (accepted/rejected) is required", fields=["status"])

        with entity_lock("property_request", request_id):
            obj = self.requests.get(request_id)
            gate.require_ownership(AccountId(actor.id), AccountId(obj.owner_id))
            gate.require_source_state(obj, {"pending"})
            with transaction(self.db):
                self.requests.transition(obj, {"pending"}, status=decision, response_message=response_message)

        self.db.refresh(obj)
        logger.info(
            "request.responded",
            extra={"request_id": obj.id, "decision": decision, "owner_account_id": actor.id},
        )
        title = self._property_title(obj.property_id)
        kind = notifications.REQUEST_ACCEPTED if decision == "accepted" else notifications.REQUEST_REJECTED
        dispatch(
            self.sink,
            obj.requester_id,
            kind,
            f"Property Request {decision.capitalize()}",
            f'Your request to {_verb(obj.request_type)} property "{title}" has been {decision}',
            {
                "request_id": obj.id,
                "property_id": obj.property_id,
                "property_title": title,
                "status": decision,
                "response_message": response_message,
            },
        )
        return obj

    def cancel_request(self, actor: models.User, request_id: int) -> models.PropertyRequest:
        with entity_lock("property_request", request_id):
            obj = self.requests.get(request_id)
            gate.require_ownership(AccountId(actor.id), AccountId(obj.requester_id))
            gate.require_source_state(obj, {"pending"})
            with transaction(self.db):
                self.requests.transition(obj, {"pending"}, status="cancelled")

        self.db.refresh(obj)
        logger.info("request.cancelled", extra={"request_id": obj.id, "requester_id": actor.id})
        title = self._property_title(obj.property_id)
        dispatch(
            self.sink,
            obj.owner_id,
            notifications.REQUEST_CANCELLED,
            "Property Request Cancelled",
            f'A request to {_verb(obj.request_type)} your property "{title}" has been cancelled by the requester',
            {"request_id": obj.id, "property_id": obj.property_id, "property_title": title},
        )
        return obj

    def get_request(self, actor: models.User, request_id: int) -> models.PropertyRequest:
        obj = self.requests.get(request_id)
        if actor.role != "admin" and actor.id not in (obj.owner_id, obj.requester_id):
            raise ForbiddenError("You are not authorized to view this request")
        return obj

    def list_owner_requests(self, actor: models.User, status: Optional[str] = None) -> List[models.PropertyRequest]:
        gate.require_role(actor, {"owner"})
        return self.requests.list_for_owner(actor.id, status)

    def list_requester_requests(self, actor: models.User, status: Optional[str] = None) -> List[models.PropertyRequest]:
        gate.require_role(actor, REQUESTER_ROLES)
        return self.requests.list_for_requester(actor.id, status)
