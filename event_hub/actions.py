"""Server-side write actions called directly by page handlers."""

from typing import Dict

import structlog

from event_hub.database.dynamodb import ConnectionManager
from event_hub.errors import DomainError
from event_hub.services.booking_service import BookingService

logger = structlog.get_logger(__name__)


def create_booking(
    manager: ConnectionManager, event_id: str, email: str
) -> Dict[str, bool]:
    """Book a spot for ``email`` on an event.

    Domain failures (bad e-mail, unknown event) are logged and reported as
    ``{"success": False}`` for the caller to surface; anything else
    propagates.
    """
    service = BookingService(manager.connect())
    try:
        service.create_booking({"eventId": event_id, "email": email})
    except DomainError as e:
        logger.warning("create_booking_failed", event_id=event_id, error=e.message)
        return {"success": False}
    return {"success": True}
