from .event import EventBase, EventCreate, EventUpdate, EventOut
from .booking import BookingCreate, BookingOut

__all__ = [
    "EventBase",
    "EventCreate",
    "EventUpdate",
    "EventOut",
    "BookingCreate",
    "BookingOut",
]
