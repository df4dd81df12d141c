# Notification sink used by the listing lifecycle and the request workflow.
# The core only creates notifications; dispatch is fire-and-forget and never rolls back a transition.
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional, Protocol

from sqlalchemy.orm import Session

from . import models
from .db import SessionLocal

logger = logging.getLogger("estatehub.notifications")

PROPERTY_APPROVED = "property_approved"
PROPERTY_REJECTED = "property_rejected"
PROPERTY_REQUEST = "property_request"
REQUEST_ACCEPTED = "request_accepted"
REQUEST_REJECTED = "request_rejected"
REQUEST_CANCELLED = "request_cancelled"
PROPERTY_UPDATE_DECIDED = "property_update_decided"

KINDS = frozenset(
    {
        PROPERTY_APPROVED,
        PROPERTY_REJECTED,
        PROPERTY_REQUEST,
        REQUEST_ACCEPTED,
        REQUEST_REJECTED,
        REQUEST_CANCELLED,
        PROPERTY_UPDATE_DECIDED,
    }
)


class NotificationSink(Protocol):
    def notify(self, recipient_id: int, kind: str, title: str, message: str, data: Dict[str, Any]) -> int:
        """Durably record a notification and return its id; raise on failure."""
        ...


class DatabaseNotificationSink:
    """
    Persists notifications to the notifications table.

    Uses its own session so a sink failure can never touch the caller's transaction.
    """

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal) -> None:
        self.session_factory = session_factory

    def notify(self, recipient_id: int, kind: str, title: str, message: str, data: Dict[str, Any]) -> int:
        if kind not in KINDS:
            raise ValueError(f"Unknown notification kind: {kind}")
        db = self.session_factory()
        try:
            obj = models.Notification(
                user_id=recipient_id,
                kind=kind,
                title=title[:100],
                message=message[:500],
                data=data or {},
            )
            db.add(obj)
            db.commit()
            db.refresh(obj)
            return obj.id
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()


def dispatch(
    sink: NotificationSink,
    recipient_id: int,
    kind: str,
    title: str,
    message: str,
    data: Optional[Dict[str, Any]] = None,
) -> Optional[int]:
    """
    Send a notification after the state transition has committed.

    Returns the notification id, or None when the sink failed. Failures are logged and swallowed:
    the committed transition is the source of truth.
    """
    try:
        notification_id = sink.notify(recipient_id, kind, title, message, data or {})
        logger.info(
            "notification.sent",
            extra={"recipient_id": recipient_id, "kind": kind, "notification_id": notification_id},
        )
        return notification_id
    except Exception as exc:
        logger.warning(
            "notification.failed",
            extra={"recipient_id": recipient_id, "kind": kind, "error": str(exc)},
        )
        return None


_default_sink = DatabaseNotificationSink()


def get_notification_sink() -> NotificationSink:
    """FastAPI dependency; tests override it to inject failing or recording sinks."""
    return _default_sink
