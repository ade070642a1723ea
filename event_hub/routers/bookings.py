from typing import Any, Dict

import structlog
from fastapi import APIRouter, Depends

from event_hub.errors import DomainError, InternalError
from event_hub.routers.dependencies import get_booking_service
from event_hub.schemas.booking import BookingCreate
from event_hub.services.booking_service import BookingService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/bookings", tags=["bookings"])


@router.post("", response_model=Dict[str, Any], status_code=201)
def create_booking(
    booking_data: BookingCreate,
    booking_service: BookingService = Depends(get_booking_service),
):
    """Book a spot on an event"""
    try:
        booking = booking_service.create_booking(booking_data)
    except DomainError:
        raise
    except Exception:
        logger.exception("create_booking_failed", event_id=booking_data.eventId)
        raise InternalError()
    return {"success": True, "data": booking.model_dump()}
