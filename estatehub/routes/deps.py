# Per-request service wiring: one lifecycle/workflow bound to the request's session and the notification sink.
from fastapi import Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..lifecycle import ListingLifecycle
from ..notifications import NotificationSink, get_notification_sink
from ..workflow import TransactionWorkflow


def get_lifecycle(
    db: Session = Depends(get_db),
    sink: NotificationSink = Depends(get_notification_sink),
) -> ListingLifecycle:
    return ListingLifecycle(db, sink)


def get_workflow(
    db: Session = Depends(get_db),
    sink: NotificationSink = Depends(get_notification_sink),
) -> TransactionWorkflow:
    return TransactionWorkflow(db, sink)
