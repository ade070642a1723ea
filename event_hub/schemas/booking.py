from pydantic import BaseModel


class BookingCreate(BaseModel):
    eventId: str
    email: str


class BookingOut(BookingCreate):
    id: str
    createdAt: str
    updatedAt: str
