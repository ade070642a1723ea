import re
import uuid
from typing import Any, Callable, Dict, Mapping, Union

import structlog
from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError
from pydantic import BaseModel

from event_hub.database.dynamodb import DynamoConnection, failed_conditions
from event_hub.errors import FieldValidationError, ReferencedEventNotFoundError
from event_hub.schemas.booking import BookingOut
from event_hub.services.event_service import EventService, event_key, utc_now
from event_hub.services.event_normalizer import require_string

logger = structlog.get_logger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def normalize_email(value: Any) -> str:
    if not isinstance(value, str):
        raise FieldValidationError("email", "email is invalid")
    email = value.strip().lower()
    if not EMAIL_PATTERN.match(email):
        raise FieldValidationError("email", "email is invalid")
    return email


def validate_booking(
    raw: Mapping[str, Any], event_exists: Callable[[str], bool]
) -> Dict[str, str]:
    """Validate a booking before it is written.

    The e-mail is checked before the store is consulted, so a malformed
    address never costs a read.

    Raises:
        FieldValidationError: If eventId or email is malformed.
        ReferencedEventNotFoundError: If the referenced event does not exist.
    """
    event_id = require_string(raw.get("eventId"), "eventId")
    email = normalize_email(raw.get("email"))
    if not event_exists(event_id):
        raise ReferencedEventNotFoundError(event_id)
    return {"eventId": event_id, "email": email}


class BookingService:
    def __init__(self, connection: DynamoConnection):
        self.connection = connection
        self.table = connection.table
        self.event_service = EventService(connection)

    def create_booking(
        self, booking_data: Union[BaseModel, Mapping[str, Any]]
    ) -> BookingOut:
        """Validate and persist a booking.

        The write carries a condition check on the event item, so an event
        removed after validation still cancels the booking.
        """
        raw = (
            booking_data.model_dump()
            if isinstance(booking_data, BaseModel)
            else booking_data
        )
        booking = validate_booking(raw, self.event_service.event_exists)
        booking_id = str(uuid.uuid4())
        now = utc_now()

        item = {
            "PK": f"EVENT#{booking['eventId']}",
            "SK": f"BOOKING#{booking_id}",
            "id": booking_id,
            "eventId": booking["eventId"],
            "email": booking["email"],
            "createdAt": now,
            "updatedAt": now,
        }
        transact_items = [
            {
                "ConditionCheck": {
                    "TableName": self.table.table_name,
                    "Key": event_key(booking["eventId"]),
                    # Event must still exist at write time
                    "ConditionExpression": "attribute_exists(PK)",
                }
            },
            {
                "Put": {
                    "TableName": self.table.table_name,
                    "Item": item,
                    "ConditionExpression": "attribute_not_exists(PK)",
                }
            },
        ]

        try:
            self.connection.client.transact_write_items(TransactItems=transact_items)
        except ClientError as e:
            if failed_conditions(e) is not None:
                raise ReferencedEventNotFoundError(booking["eventId"]) from e
            raise

        logger.info(
            "booking_created", booking_id=booking_id, event_id=booking["eventId"]
        )
        return BookingOut(
            **{k: v for k, v in item.items() if k not in ("PK", "SK")}
        )

    def count_bookings(self, event_id: str) -> int:
        """Number of bookings held for an event"""
        count = 0
        query_params = {
            "KeyConditionExpression": Key("PK").eq(f"EVENT#{event_id}")
            & Key("SK").begins_with("BOOKING#"),
            "Select": "COUNT",
        }
        while True:
            response = self.table.query(**query_params)
            count += response["Count"]

            exclusive_start_key = response.get("LastEvaluatedKey")
            if not exclusive_start_key:
                break
            query_params["ExclusiveStartKey"] = exclusive_start_key
        return count
