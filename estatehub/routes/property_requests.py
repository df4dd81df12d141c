# Buy/rent request endpoints: create, respond (owner), cancel (requester), and listings for both sides.
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from .. import models, schemas
from ..rate_limit import rate_limit
from ..workflow import TransactionWorkflow
from .auth import get_current_user
from .deps import get_workflow

router = APIRouter()


@router.post(
    "/property-requests",
    response_model=schemas.PropertyRequestRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit("write"))],
)
def create_property_request(
    payload: schemas.PropertyRequestCreate,
    workflow: TransactionWorkflow = Depends(get_workflow),
    user: models.User = Depends(get_current_user),
) -> models.PropertyRequest:
    return workflow.create_request(user, payload)


@router.get("/property-requests/owner", response_model=List[schemas.PropertyRequestRead])
def list_owner_requests(
    status_filter: Optional[schemas.RequestStatus] = Query(None, alias="status"),
    workflow: TransactionWorkflow = Depends(get_workflow),
    user: models.User = Depends(get_current_user),
) -> List[models.PropertyRequest]:
    """Requests received on the caller's listings, newest first."""
    return workflow.list_owner_requests(user, status_filter)


@router.get("/property-requests/user", response_model=List[schemas.PropertyRequestRead])
def list_my_requests(
    status_filter: Optional[schemas.RequestStatus] = Query(None, alias="status"),
    workflow: TransactionWorkflow = Depends(get_workflow),
    user: models.User = Depends(get_current_user),
) -> List[models.PropertyRequest]:
    """Requests the caller has raised, newest first."""
    return workflow.list_requester_requests(user, status_filter)


@router.get("/property-requests/{request_id}", response_model=schemas.PropertyRequestRead)
def get_property_request(
    request_id: int,
    workflow: TransactionWorkflow = Depends(get_workflow),
    user: models.User = Depends(get_current_user),
) -> models.PropertyRequest:
    return workflow.get_request(user, request_id)


@router.put(
    "/property-requests/{request_id}/status",
    response_model=schemas.PropertyRequestRead,
    dependencies=[Depends(rate_limit("write"))],
)
def respond_to_property_request(
    request_id: int,
    payload: schemas.RequestStatusUpdate,
    workflow: TransactionWorkflow = Depends(get_workflow),
    user: models.User = Depends(get_current_user),
) -> models.PropertyRequest:
    return workflow.respond_to_request(user, request_id, payload.status, payload.response_message)


@router.put(
    "/property-requests/{request_id}/cancel",
    response_model=schemas.PropertyRequestRead,
    dependencies=[Depends(rate_limit("write"))],
)
def cancel_property_request(
    request_id: int,
    workflow: TransactionWorkflow = Depends(get_workflow),
    user: models.User = Depends(get_current_user),
) -> models.PropertyRequest:
    return workflow.cancel_request(user, request_id)
