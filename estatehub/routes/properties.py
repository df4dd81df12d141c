# Listing endpoints.
# Owners submit listings; the public browses approved, active ones; buyers/renters favorite and report.
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from .. import models, schemas
from ..lifecycle import ListingLifecycle
from ..rate_limit import rate_limit
from .auth import get_current_user, get_current_user_optional
from .deps import get_lifecycle

router = APIRouter()


@router.get("/properties", response_model=List[schemas.PropertyRead])
def list_properties(
    listing_type: Optional[schemas.ListingType] = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    lifecycle: ListingLifecycle = Depends(get_lifecycle),
) -> List[models.Property]:
    """Publicly visible listings (approved and active), newest first."""
    return lifecycle.list_visible(listing_type, limit=limit, offset=offset)


@router.post(
    "/properties",
    response_model=schemas.PropertyRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit("write"))],
)
def create_property(
    payload: schemas.PropertyCreate,
    lifecycle: ListingLifecycle = Depends(get_lifecycle),
    user: models.User = Depends(get_current_user),
) -> models.Property:
    """Submit a listing for admin review; it starts out pending."""
    return lifecycle.submit_listing(user, payload)


@router.get("/properties/{property_id}", response_model=schemas.PropertyRead)
def get_property(
    property_id: int,
    lifecycle: ListingLifecycle = Depends(get_lifecycle),
    user: Optional[models.User] = Depends(get_current_user_optional),
) -> models.Property:
    return lifecycle.view_listing(user, property_id)


@router.post(
    "/properties/{property_id}/favorite",
    response_model=schemas.FavoriteResult,
    dependencies=[Depends(rate_limit("write"))],
)
def add_favorite(
    property_id: int,
    lifecycle: ListingLifecycle = Depends(get_lifecycle),
    user: models.User = Depends(get_current_user),
) -> schemas.FavoriteResult:
    favorited, count = lifecycle.set_favorite(user, property_id, True)
    return schemas.FavoriteResult(property_id=property_id, favorited=favorited, favorites_count=count)


@router.delete("/properties/{property_id}/favorite", response_model=schemas.FavoriteResult)
def remove_favorite(
    property_id: int,
    lifecycle: ListingLifecycle = Depends(get_lifecycle),
    user: models.User = Depends(get_current_user),
) -> schemas.FavoriteResult:
    favorited, count = lifecycle.set_favorite(user, property_id, False)
    return schemas.FavoriteResult(property_id=property_id, favorited=favorited, favorites_count=count)


@router.post(
    "/properties/{property_id}/reports",
    response_model=schemas.ReportRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit("write"))],
)
def report_property(
    property_id: int,
    payload: schemas.ReportCreate,
    lifecycle: ListingLifecycle = Depends(get_lifecycle),
    user: models.User = Depends(get_current_user),
) -> models.PropertyReport:
    return lifecycle.report_listing(user, property_id, payload.reason, payload.description)
