# Listing lifecycle: the Property status machine and reconciliation of owner edits.
#
#   pending  -> approved | rejected            (one admin decision)
#   approved -> sold | rented | inactive       (owner self-service; approved -> approved re-stamps)
#   sold | rented | inactive -> approved       (re-list)
#
# Pending listings are edited in place; approved listings only change through an update
# proposal that an admin approves.
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

import pydantic
from sqlalchemy.orm import Session

from . import gate, models, notifications, schemas
from .db import transaction
from .errors import ConflictError, InvalidTransitionError, NotFoundError, ValidationError
from .identity import AccountId, IdentityResolver, OwnerProfileId
from .locks import entity_lock
from .notifications import NotificationSink, dispatch
from .stores import ListingStore, RequestStore, utcnow

logger = logging.getLogger("estatehub.lifecycle")

PROPERTY_STATUSES = ("pending", "approved", "rejected", "sold", "rented", "inactive")
OWNER_TARGET_STATUSES = ("approved", "sold", "rented", "inactive")

# Legal source states for each owner-driven target status
STATUS_CHANGE_SOURCES: Dict[str, Tuple[str, ...]] = {
    "approved": ("approved", "sold", "rented", "inactive"),
    "sold": ("approved",),
    "rented": ("approved",),
    "inactive": ("approved",),
}

# Listings that went through review at least once; update proposals merge into these
REVIEWED_STATUSES = ("approved", "sold", "rented", "inactive")

DECISION_ACTIONS = ("approve", "reject")

# Report moderation: action -> (report status, resolution)
REPORT_ACTIONS: Dict[str, Tuple[str, str]] = {
    "dismiss": ("dismissed", "no_action"),
    "deactivate_listing": ("resolved", "listing_deactivated"),
}


def is_visible(prop: models.Property) -> bool:
    return prop.status == "approved" and bool(prop.is_active) and prop.deleted_at is None


def normalize_images(images: Iterable[Any]) -> List[dict]:
    """Coerce URLs / dicts / Image models to image dicts with only the first flagged primary."""
    out: List[dict] = []
    for img in images:
        if isinstance(img, str):
            item = {"url": img, "caption": ""}
        elif isinstance(img, schemas.Image):
            item = {"url": img.url, "caption": img.caption}
        else:
            item = {"url": img["url"], "caption": img.get("caption") or ""}
        item["is_primary"] = not out
        out.append(item)
    return out


def patch_values(patch: pydantic.BaseModel, exclude: Iterable[str] = ()) -> Dict[str, Any]:
    """
    Column values for the fields the caller actually supplied.

    Top-level fields overwrite wholesale (nested models keep their defaults); explicit nulls
    are ignored; images are normalized.
    """
    dumped = patch.model_dump(mode="json")
    skip = set(exclude)
    values = {
        name: dumped[name]
        for name in patch.model_fields_set
        if name not in skip and dumped.get(name) is not None
    }
    if "images" in values:
        values["images"] = normalize_images(values["images"])
    if "amenities" in values:
        values["amenities"] = list(dict.fromkeys(values["amenities"]))
    if "currency" in values:
        values["currency"] = values["currency"].upper()
    return values


def parse_patch(data: Dict[str, Any]) -> schemas.PropertyPatch:
    try:
        return schemas.PropertyPatch.model_validate(data)
    except pydantic.ValidationError as exc:
        fields = [".".join(str(p) for p in err["loc"]) for err in exc.errors()]
        raise ValidationError(f"Invalid update fields: {', '.join(fields)}", fields=fields) from exc


def missing_listing_fields(payload: schemas.PropertyCreate) -> List[str]:
    missing: List[str] = []
    for name in ("title", "description", "property_type", "listing_type"):
        if not getattr(payload, name):
            missing.append(name)
    if payload.price is None or payload.price <= 0:
        missing.append("price")
    if not payload.images:
        missing.append("images")
    address = payload.location.address if payload.location else None
    if address is None or not address.street:
        missing.append("location.address.street")
    if address is None or not address.city:
        missing.append("location.address.city")
    return missing


def check_decision(action: str, reason: Optional[str]) -> str:
    if action not in DECISION_ACTIONS:
        raise ValidationError('Invalid action. Use "approve" or "reject"', fields=["action"])
    if action == "approve" and reason:
        raise ValidationError("An approval must not carry a rejection reason", fields=["reason"])
    if action == "reject" and not reason:
        raise ValidationError("Rejection reason is required", fields=["reason"])
    return action


class ListingLifecycle:
    """Owner and admin operations on listings. One instance per request/session."""

    def __init__(self, db: Session, sink: NotificationSink) -> None:
        self.db = db
        self.sink = sink
        self.listings = ListingStore(db)
        self.requests = RequestStore(db)
        self.identity = IdentityResolver(db)

    # ----------------
    # Helpers
    # ----------------
    def _owner_profile(self, actor: models.User) -> OwnerProfileId:
        gate.require_role(actor, {"owner"})
        return self.identity.require_profile_for_account(AccountId(actor.id))

    def _owned_property(self, actor: models.User, property_id: int) -> models.Property:
        profile_id = self._owner_profile(actor)
        prop = self.listings.get_property(property_id)
        gate.require_ownership(profile_id, OwnerProfileId(prop.owner_id))
        return prop

    def _is_owner_of(self, actor: Optional[models.User], prop: models.Property) -> bool:
        if actor is None or actor.role != "owner":
            return False
        return self.identity.profile_for_account(AccountId(actor.id)) == prop.owner_id

    def _apply_direct_edit(self, prop: models.Property, values: Dict[str, Any]) -> None:
        gate.require_source_state(prop, {"pending"})
        with transaction(self.db):
            self.listings.write_property(prop, {"pending"}, **values)
        logger.info("listing.edited", extra={"property_id": prop.id, "fields": sorted(values)})

    def _create_proposal(self, prop: models.Property, values: Dict[str, Any]) -> models.PropertyUpdateRequest:
        gate.require_source_state(prop, {"approved"})
        if self.listings.pending_update_for(prop.id) is not None:
            raise ConflictError("An update request is already pending for this property")
        proposal = models.PropertyUpdateRequest(
            property_id=prop.id,
            owner_id=prop.owner_id,
            proposed_updates=values,
            status="pending",
            version=1,
        )
        with transaction(self.db):
            # version bump on the listing: two racing proposals cannot both commit
            self.listings.write_property(prop, {"approved"})
            self.listings.add_update_request(proposal)
        self.db.refresh(proposal)
        logger.info(
            "listing.update_proposed",
            extra={"property_id": prop.id, "update_request_id": proposal.id, "fields": sorted(values)},
        )
        return proposal

    def _change_status(self, prop: models.Property, new_status: str) -> None:
        sources = STATUS_CHANGE_SOURCES[new_status]
        gate.require_source_state(prop, sources)
        previous = prop.status
        with transaction(self.db):
            self.listings.write_property(prop, sources, status=new_status, is_active=(new_status == "approved"))
        logger.info(
            "listing.status_changed",
            extra={"property_id": prop.id, "from_status": previous, "to_status": new_status},
        )

    # ----------------
    # Owner operations
    # ----------------
    def submit_listing(self, actor: models.User, payload: schemas.PropertyCreate) -> models.Property:
        profile_id = self._owner_profile(actor)
        missing = missing_listing_fields(payload)
        if missing:
            raise ValidationError(f"Missing or invalid fields: {', '.join(missing)}", fields=missing)

        prop = models.Property(
            owner_id=profile_id,
            title=payload.title,
            description=payload.description,
            property_type=payload.property_type,
            listing_type=payload.listing_type,
            price=payload.price,
            currency=payload.currency.upper(),
            location=payload.location.model_dump(mode="json"),
            details=payload.details.model_dump(mode="json"),
            amenities=list(dict.fromkeys(payload.amenities)),
            images=normalize_images(payload.images),
            status="pending",
            is_active=True,
            views=0,
            version=1,
        )
        with transaction(self.db):
            self.listings.add_property(prop)
        self.db.refresh(prop)
        logger.info("listing.submitted", extra={"property_id": prop.id, "owner_profile_id": profile_id})
        return prop

    def change_own_status(self, actor: models.User, property_id: int, new_status: str) -> models.Property:
        gate.require_target_state(new_status, OWNER_TARGET_STATUSES)
        with entity_lock("property", property_id):
            prop = self._owned_property(actor, property_id)
            self._change_status(prop, new_status)
        self.db.refresh(prop)
        return prop

    def edit_pending_listing(self, actor: models.User, property_id: int, patch: schemas.PropertyPatch) -> models.Property:
        values = patch_values(patch)
        if not values:
            raise ValidationError("No changes supplied")
        with entity_lock("property", property_id):
            prop = self._owned_property(actor, property_id)
            self._apply_direct_edit(prop, values)
        self.db.refresh(prop)
        return prop

    def propose_update(
        self, actor: models.User, property_id: int, patch: schemas.PropertyPatch
    ) -> models.PropertyUpdateRequest:
        values = patch_values(patch)
        if not values:
            raise ValidationError("No changes proposed")
        with entity_lock("property", property_id):
            prop = self._owned_property(actor, property_id)
            return self._create_proposal(prop, values)

    def owner_update(
        self, actor: models.User, property_id: int, body: schemas.OwnerPropertyUpdate
    ) -> Tuple[List[str], models.Property, Optional[models.PropertyUpdateRequest]]:
        """
        Self-service change of a listing.

        Content fields become a direct edit while pending and an update proposal once approved.
        A status field is applied afterwards; its legality is checked before anything is written.
        """
        new_status = body.status
        values = patch_values(body, exclude=("status",))
        if not values and new_status is None:
            raise ValidationError("No changes supplied")

        actions: List[str] = []
        proposal: Optional[models.PropertyUpdateRequest] = None
        with entity_lock("property", property_id):
            prop = self._owned_property(actor, property_id)
            if new_status is not None:
                gate.require_source_state(prop, STATUS_CHANGE_SOURCES[new_status])
            if values:
                if prop.status == "pending":
                    self._apply_direct_edit(prop, values)
                    actions.append("direct_edit")
                elif prop.status == "approved":
                    proposal = self._create_proposal(prop, values)
                    actions.append("update_requested")
                else:
                    raise InvalidTransitionError(f"Listing content cannot be edited while '{prop.status}'")
            if new_status is not None:
                self._change_status(prop, new_status)
                actions.append("status_changed")
        self.db.refresh(prop)
        return actions, prop, proposal

    def delete_listing(self, actor: models.User, property_id: int) -> None:
        """Soft delete; refused while buyers/renters still wait on an answer."""
        with entity_lock("property", property_id):
            prop = self._owned_property(actor, property_id)
            if self.requests.has_pending_for_property(prop.id):
                raise ConflictError("Listing has pending requests; respond to them before deleting")
            with transaction(self.db):
                self.listings.write_property(prop, PROPERTY_STATUSES, deleted_at=utcnow(), is_active=False)
        logger.info("listing.deleted", extra={"property_id": property_id})

    def list_owner_properties(self, actor: models.User, status: Optional[str] = None) -> List[models.Property]:
        profile_id = self._owner_profile(actor)
        return self.listings.list_for_owner(profile_id, status)

    # ----------------
    # Admin operations
    # ----------------
    def decide_listing(
        self,
        actor: models.User,
        property_id: int,
        action: str,
        reason: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> models.Property:
        gate.require_role(actor, {"admin"})
        check_decision(action, reason)

        with entity_lock("property", property_id):
            prop = self.listings.get_property(property_id)
            gate.require_source_state(prop, {"pending"})
            owner_account = self.identity.account_for_profile(OwnerProfileId(prop.owner_id))
            now = utcnow()
            if action == "approve":
                values = dict(
                    status="approved",
                    approved_by=actor.id,
                    approved_at=now,
                    rejection_reason=None,
                    admin_notes=notes,
                    is_active=True,
                )
            else:
                values = dict(
                    status="rejected",
                    approved_by=actor.id,
                    approved_at=now,
                    rejection_reason=reason,
                    admin_notes=notes,
                )
            with transaction(self.db):
                self.listings.write_property(prop, {"pending"}, **values)

        self.db.refresh(prop)
        logger.info(
            "listing.decided",
            extra={"property_id": prop.id, "decision": action, "admin_id": actor.id},
        )
        if action == "approve":
            dispatch(
                self.sink,
                owner_account,
                notifications.PROPERTY_APPROVED,
                "Property Approved",
                f'Your property "{prop.title}" has been approved and is now visible',
                {"property_id": prop.id, "property_title": prop.title},
            )
        else:
            dispatch(
                self.sink,
                owner_account,
                notifications.PROPERTY_REJECTED,
                "Property Rejected",
                f'Your property "{prop.title}" has been rejected: {reason}',
                {"property_id": prop.id, "property_title": prop.title, "reason": reason},
            )
        return prop

    def decide_update(
        self,
        actor: models.User,
        request_id: int,
        action: str,
        reason: Optional[str] = None,
        updated_data: Optional[Dict[str, Any]] = None,
        notes: Optional[str] = None,
    ) -> models.PropertyUpdateRequest:
        """
        Approve or reject an update proposal.

        On approval the proposal, optionally amended by ``updated_data``, is re-validated against
        the PropertyPatch whitelist and merged into the listing in the same transaction that
        closes the proposal.
        """
        gate.require_role(actor, {"admin"})
        check_decision(action, reason)

        with entity_lock("property_update_request", request_id):
            proposal = self.listings.get_update_request(request_id)
            gate.require_source_state(proposal, {"pending"})
            owner_account = self.identity.account_for_profile(OwnerProfileId(proposal.owner_id))
            now = utcnow()
            if action == "approve":
                merged = dict(proposal.proposed_updates or {})
                if updated_data:
                    merged.update(updated_data)
                values = patch_values(parse_patch(merged))
                if not values:
                    raise ValidationError("Update request carries no changes")
                prop = self.listings.get_property(proposal.property_id)
                gate.require_source_state(prop, REVIEWED_STATUSES)
                with transaction(self.db):
                    self.listings.write_property(prop, REVIEWED_STATUSES, **values)
                    self.listings.write_update_request(
                        proposal,
                        {"pending"},
                        status="approved",
                        approved_by=actor.id,
                        approved_at=now,
                        admin_notes=notes,
                        proposed_updates=values,
                    )
            else:
                with transaction(self.db):
                    self.listings.write_update_request(
                        proposal,
                        {"pending"},
                        status="rejected",
                        rejected_by=actor.id,
                        rejected_at=now,
                        rejection_reason=reason,
                        admin_notes=notes,
                    )

        self.db.refresh(proposal)
        logger.info(
            "listing.update_decided",
            extra={
                "update_request_id": proposal.id,
                "property_id": proposal.property_id,
                "decision": action,
                "admin_id": actor.id,
            },
        )
        verdict = "approved" if action == "approve" else "rejected"
        message = f"Your update request for property {proposal.property_id} has been {verdict}"
        if reason:
            message = f"{message}: {reason}"
        dispatch(
            self.sink,
            owner_account,
            notifications.PROPERTY_UPDATE_DECIDED,
            f"Property Update {verdict.capitalize()}",
            message,
            {
                "update_request_id": proposal.id,
                "property_id": proposal.property_id,
                "decision": verdict,
                "reason": reason,
            },
        )
        return proposal

    def list_pending_properties(self, actor: models.User, limit: int = 20, offset: int = 0) -> List[models.Property]:
        gate.require_role(actor, {"admin"})
        return self.listings.list_by_status("pending", limit=limit, offset=offset)

    def list_update_requests(
        self, actor: models.User, status: str = "pending", limit: int = 20, offset: int = 0
    ) -> List[models.PropertyUpdateRequest]:
        gate.require_role(actor, {"admin"})
        return self.listings.list_update_requests(status, limit=limit, offset=offset)

    # ----------------
    # Public / buyer-facing operations
    # ----------------
    def list_visible(self, listing_type: Optional[str] = None, limit: int = 20, offset: int = 0) -> List[models.Property]:
        return self.listings.list_visible(listing_type, limit=limit, offset=offset)

    def view_listing(self, viewer: Optional[models.User], property_id: int) -> models.Property:
        """
        Return a listing to a viewer.

        Hidden listings are only shown to their owner and to admins; public views are counted.
        """
        prop = self.listings.get_property(property_id)
        privileged = (viewer is not None and viewer.role == "admin") or self._is_owner_of(viewer, prop)
        if not is_visible(prop):
            if not privileged:
                raise NotFoundError("Property not found")
            return prop
        if not privileged:
            with transaction(self.db):
                self.listings.increment_views(prop.id)
            self.db.refresh(prop)
        return prop

    def set_favorite(self, actor: models.User, property_id: int, favorite: bool) -> Tuple[bool, int]:
        gate.require_role(actor, {"buyer", "renter"})
        prop = self.listings.get_property(property_id)
        if favorite:
            if not is_visible(prop):
                raise NotFoundError("Property not found")
            with transaction(self.db):
                self.listings.add_favorite(prop.id, actor.id)
        else:
            with transaction(self.db):
                self.listings.remove_favorite(prop.id, actor.id)
        return favorite, self.listings.count_favorites(prop.id)

    def report_listing(
        self, actor: models.User, property_id: int, reason: str, description: Optional[str] = None
    ) -> models.PropertyReport:
        prop = self.listings.get_property(property_id)
        if not is_visible(prop):
            raise NotFoundError("Property not found")
        report = models.PropertyReport(
            property_id=prop.id,
            reported_by=actor.id,
            reason=reason,
            description=description,
            status="pending",
            version=1,
        )
        with transaction(self.db):
            self.listings.add_report(report)
        self.db.refresh(report)
        logger.info("listing.reported", extra={"property_id": prop.id, "report_id": report.id, "reason": reason})
        return report

    # ----------------
    # Report moderation
    # ----------------
    def list_reports(
        self, actor: models.User, status: str = "pending", limit: int = 20, offset: int = 0
    ) -> List[models.PropertyReport]:
        gate.require_role(actor, {"admin"})
        return self.listings.list_reports(status, limit=limit, offset=offset)

    def handle_report(
        self, actor: models.User, report_id: int, action: str, notes: Optional[str] = None
    ) -> models.PropertyReport:
        """
        Close a pending report once.

        ``dismiss`` leaves the listing alone; ``deactivate_listing`` hides it (is_active = False)
        in the same transaction that resolves the report. Already deleted listings are not touched.
        """
        gate.require_role(actor, {"admin"})
        if action not in REPORT_ACTIONS:
            raise ValidationError('Invalid action. Use "dismiss" or "deactivate_listing"', fields=["action"])
        new_status, resolution = REPORT_ACTIONS[action]

        with entity_lock("property_report", report_id):
            report = self.listings.get_report(report_id)
            gate.require_source_state(report, {"pending"})
            with transaction(self.db):
                if action == "deactivate_listing":
                    prop = self.listings.get_property(report.property_id, include_deleted=True)
                    if prop.deleted_at is None:
                        self.listings.write_property(prop, PROPERTY_STATUSES, is_active=False)
                self.listings.write_report(
                    report,
                    {"pending"},
                    status=new_status,
                    resolution=resolution,
                    resolved_by=actor.id,
                    resolved_at=utcnow(),
                    admin_notes=notes,
                )

        self.db.refresh(report)
        logger.info(
            "listing.report_handled",
            extra={
                "report_id": report.id,
                "property_id": report.property_id,
                "decision": action,
                "admin_id": actor.id,
            },
        )
        return report
