# Owner self-service endpoints for their own listings.
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status

from .. import models, schemas
from ..lifecycle import ListingLifecycle
from ..rate_limit import rate_limit
from .auth import get_current_user
from .deps import get_lifecycle

router = APIRouter()


@router.get("/owner/properties", response_model=List[schemas.PropertyRead])
def list_my_properties(
    status_filter: Optional[schemas.PropertyStatus] = Query(None, alias="status"),
    lifecycle: ListingLifecycle = Depends(get_lifecycle),
    user: models.User = Depends(get_current_user),
) -> List[models.Property]:
    return lifecycle.list_owner_properties(user, status_filter)


@router.put(
    "/owner/properties/{property_id}",
    response_model=schemas.OwnerUpdateResult,
    dependencies=[Depends(rate_limit("write"))],
)
def update_my_property(
    property_id: int,
    payload: schemas.OwnerPropertyUpdate,
    lifecycle: ListingLifecycle = Depends(get_lifecycle),
    user: models.User = Depends(get_current_user),
) -> schemas.OwnerUpdateResult:
    """
    Change a listing's content and/or status.

    The server decides how content changes land:
    - pending listing: edited in place
    - approved listing: stored as an update request for admin review
    """
    actions, prop, proposal = lifecycle.owner_update(user, property_id, payload)
    return schemas.OwnerUpdateResult(
        actions=actions,
        property=schemas.PropertyRead.model_validate(prop),
        update_request=schemas.UpdateRequestRead.model_validate(proposal) if proposal is not None else None,
    )


@router.post(
    "/owner/properties/{property_id}/request-update",
    response_model=schemas.UpdateRequestRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit("write"))],
)
def request_property_update(
    property_id: int,
    payload: schemas.PropertyPatch,
    lifecycle: ListingLifecycle = Depends(get_lifecycle),
    user: models.User = Depends(get_current_user),
) -> models.PropertyUpdateRequest:
    return lifecycle.propose_update(user, property_id, payload)


@router.delete(
    "/owner/properties/{property_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(rate_limit("write"))],
)
def delete_my_property(
    property_id: int,
    lifecycle: ListingLifecycle = Depends(get_lifecycle),
    user: models.User = Depends(get_current_user),
) -> Response:
    lifecycle.delete_listing(user, property_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
