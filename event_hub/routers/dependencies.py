from fastapi import Depends, Request

from event_hub.database.dynamodb import ConnectionManager
from event_hub.errors import BadRequestError
from event_hub.services.booking_service import BookingService
from event_hub.services.event_service import EventService

MAX_SLUG_LENGTH = 200


def get_connection_manager(request: Request) -> ConnectionManager:
    """The manager created at application startup"""
    return request.app.state.connection_manager


def get_event_service(
    manager: ConnectionManager = Depends(get_connection_manager),
) -> EventService:
    """Dependency to get EventService instance"""
    return EventService(manager.connect())


def get_booking_service(
    manager: ConnectionManager = Depends(get_connection_manager),
) -> BookingService:
    """Dependency to get BookingService instance"""
    return BookingService(manager.connect())


def require_slug(slug: str) -> str:
    """Trimmed slug path parameter, or BadRequestError.

    Routes declare it ahead of the service dependencies so a bad slug is
    rejected before the store is touched.
    """
    slug = slug.strip()
    if not slug or len(slug) > MAX_SLUG_LENGTH:
        raise BadRequestError("A valid slug path parameter is required.")
    return slug
