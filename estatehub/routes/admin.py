# Admin review endpoints: the pending listing queue, update proposals and abuse reports.
from typing import List

from fastapi import APIRouter, Depends, Query

from .. import models, schemas
from ..lifecycle import ListingLifecycle
from ..rate_limit import rate_limit
from .auth import get_current_user
from .deps import get_lifecycle

router = APIRouter()


@router.get("/admin/properties/pending", response_model=List[schemas.PropertyRead])
def list_pending_properties(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    lifecycle: ListingLifecycle = Depends(get_lifecycle),
    user: models.User = Depends(get_current_user),
) -> List[models.Property]:
    return lifecycle.list_pending_properties(user, limit=limit, offset=offset)


@router.put(
    "/admin/properties/{property_id}/approve",
    response_model=schemas.PropertyRead,
    dependencies=[Depends(rate_limit("write"))],
)
def decide_property(
    property_id: int,
    payload: schemas.ListingDecision,
    lifecycle: ListingLifecycle = Depends(get_lifecycle),
    user: models.User = Depends(get_current_user),
) -> models.Property:
    """Approve or reject a pending listing: {"action": "approve"} or {"action": "reject", "reason": "..."}."""
    return lifecycle.decide_listing(user, property_id, payload.action, payload.reason, payload.notes)


@router.get("/admin/requests/property-update/pending", response_model=List[schemas.UpdateRequestRead])
def list_pending_update_requests(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    lifecycle: ListingLifecycle = Depends(get_lifecycle),
    user: models.User = Depends(get_current_user),
) -> List[models.PropertyUpdateRequest]:
    return lifecycle.list_update_requests(user, "pending", limit=limit, offset=offset)


@router.put(
    "/admin/requests/{request_id}/handle-property-update",
    response_model=schemas.UpdateRequestRead,
    dependencies=[Depends(rate_limit("write"))],
)
def handle_property_update(
    request_id: int,
    payload: schemas.UpdateDecision,
    lifecycle: ListingLifecycle = Depends(get_lifecycle),
    user: models.User = Depends(get_current_user),
) -> models.PropertyUpdateRequest:
    return lifecycle.decide_update(
        user,
        request_id,
        payload.action,
        reason=payload.reason,
        updated_data=payload.updated_data,
        notes=payload.notes,
    )


@router.get("/admin/reports", response_model=List[schemas.ReportRead])
def list_reports(
    status_filter: schemas.ReportStatus = Query("pending", alias="status"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    lifecycle: ListingLifecycle = Depends(get_lifecycle),
    user: models.User = Depends(get_current_user),
) -> List[models.PropertyReport]:
    """Abuse reports in one status, newest first."""
    return lifecycle.list_reports(user, status_filter, limit=limit, offset=offset)


@router.put(
    "/admin/reports/{report_id}/handle",
    response_model=schemas.ReportRead,
    dependencies=[Depends(rate_limit("write"))],
)
def handle_report(
    report_id: int,
    payload: schemas.ReportDecision,
    lifecycle: ListingLifecycle = Depends(get_lifecycle),
    user: models.User = Depends(get_current_user),
) -> models.PropertyReport:
    return lifecycle.handle_report(user, report_id, payload.action, payload.notes)
