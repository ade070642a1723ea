import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

import structlog
from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError
from pydantic import BaseModel

from event_hub.database.dynamodb import (
    EVENTS_BY_DATE_INDEX,
    DynamoConnection,
    failed_conditions,
)
from event_hub.errors import EventNotFoundError, SlugConflictError
from event_hub.schemas.event import EventOut
from event_hub.services.event_normalizer import normalize_event

logger = structlog.get_logger(__name__)

EVENT_TIMELINE = "EVENT_TIMELINE"

# Attributes that only exist for the table layout
KEY_FIELDS = ("PK", "SK", "GSI_EventsByDate_PK", "GSI_EventsByDate_SK")

SimilarityStrategy = Callable[[EventOut, Sequence[EventOut]], List[EventOut]]


def shared_tags(event: EventOut, candidates: Sequence[EventOut]) -> List[EventOut]:
    """Events sharing at least one tag, most shared tags first, then by date."""
    tags = set(event.tags)
    scored = []
    for candidate in candidates:
        if candidate.id == event.id:
            continue
        overlap = len(tags.intersection(candidate.tags))
        if overlap:
            scored.append((overlap, candidate))
    scored.sort(key=lambda pair: (-pair[0], pair[1].date, pair[1].time))
    return [candidate for _, candidate in scored]


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def event_key(event_id: str) -> Dict[str, str]:
    return {"PK": f"EVENT#{event_id}", "SK": "DETAIL"}


def slug_key(slug: str) -> Dict[str, str]:
    return {"PK": f"SLUG#{slug}", "SK": "EVENT"}


def _as_dict(data: Union[BaseModel, Mapping[str, Any]], **dump_kwargs) -> Dict:
    if isinstance(data, BaseModel):
        return data.model_dump(**dump_kwargs)
    return dict(data)


class EventService:
    """Gated writes and read queries for events.

    Every write runs ``normalize_event`` first. Slug uniqueness is enforced by
    writing a slug claim item in the same transaction as the event item.
    """

    def __init__(
        self,
        connection: DynamoConnection,
        similarity: SimilarityStrategy = shared_tags,
    ):
        self.connection = connection
        self.table = connection.table
        self.similarity = similarity

    def create_event(
        self, event_data: Union[BaseModel, Mapping[str, Any]]
    ) -> EventOut:
        """Normalize and persist a new event"""
        normalized = normalize_event(_as_dict(event_data))
        event_id = str(uuid.uuid4())
        now = utc_now()

        item = self._event_item(event_id, normalized, created_at=now, updated_at=now)
        transact_items = [
            {
                "Put": {
                    "TableName": self.table.table_name,
                    "Item": {**slug_key(normalized["slug"]), "eventId": event_id},
                    "ConditionExpression": "attribute_not_exists(PK)",
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
                # The event id is freshly generated, so only the slug claim can fail
                logger.warning("event_slug_conflict", slug=normalized["slug"])
                raise SlugConflictError(normalized["slug"]) from e
            raise

        logger.info("event_created", event_id=event_id, slug=normalized["slug"])
        return self._to_event_out(item)

    def update_event(
        self, event_id: str, changes: Union[BaseModel, Mapping[str, Any]]
    ) -> EventOut:
        """Apply a partial update through the same normalization gate.

        The slug is regenerated only when the title changes; in that case the
        old slug claim is released and the new one claimed atomically.
        """
        current = self.table.get_item(Key=event_key(event_id)).get("Item")
        if not current:
            raise EventNotFoundError(event_id)

        updates = _as_dict(changes, exclude_unset=True)
        merged = {**current, **{k: v for k, v in updates.items() if v is not None}}
        normalized = normalize_event(merged, previous=current)

        item = self._event_item(
            event_id,
            normalized,
            created_at=current["createdAt"],
            updated_at=utc_now(),
        )
        transact_items = [
            {
                "Put": {
                    "TableName": self.table.table_name,
                    "Item": item,
                    "ConditionExpression": "attribute_exists(PK)",
                }
            }
        ]
        slug_changed = normalized["slug"] != current["slug"]
        if slug_changed:
            transact_items.append(
                {
                    "Delete": {
                        "TableName": self.table.table_name,
                        "Key": slug_key(current["slug"]),
                    }
                }
            )
            transact_items.append(
                {
                    "Put": {
                        "TableName": self.table.table_name,
                        "Item": {**slug_key(normalized["slug"]), "eventId": event_id},
                        "ConditionExpression": "attribute_not_exists(PK)",
                    }
                }
            )

        try:
            self.connection.client.transact_write_items(TransactItems=transact_items)
        except ClientError as e:
            failed = failed_conditions(e)
            if failed is None:
                raise
            if 0 in failed:
                raise EventNotFoundError(event_id) from e
            logger.warning("event_slug_conflict", slug=normalized["slug"])
            raise SlugConflictError(normalized["slug"]) from e

        logger.info(
            "event_updated",
            event_id=event_id,
            slug=normalized["slug"],
            slug_changed=slug_changed,
        )
        return self._to_event_out(item)

    def get_event(self, event_id: str) -> Optional[EventOut]:
        item = self.table.get_item(Key=event_key(event_id)).get("Item")
        return self._to_event_out(item) if item else None

    def get_event_by_slug(self, slug: str) -> Optional[EventOut]:
        """Return the event owning ``slug``, or None"""
        claim = self.table.get_item(Key=slug_key(slug)).get("Item")
        if not claim:
            return None
        return self.get_event(claim["eventId"])

    def event_exists(self, event_id: str) -> bool:
        response = self.table.get_item(
            Key=event_key(event_id), ProjectionExpression="PK"
        )
        return "Item" in response

    def list_events(self) -> List[EventOut]:
        """All events ordered by date, read from the timeline index"""
        events = []
        query_params = {
            "IndexName": EVENTS_BY_DATE_INDEX,
            "KeyConditionExpression": Key("GSI_EventsByDate_PK").eq(EVENT_TIMELINE),
        }
        while True:
            response = self.table.query(**query_params)
            events.extend(self._to_event_out(item) for item in response["Items"])

            exclusive_start_key = response.get("LastEvaluatedKey")
            if not exclusive_start_key:
                break
            query_params["ExclusiveStartKey"] = exclusive_start_key
        return events

    def find_similar_events(self, slug: str, limit: int = 3) -> List[EventOut]:
        event = self.get_event_by_slug(slug)
        if event is None:
            return []
        return self.similarity(event, self.list_events())[:limit]

    def _event_item(
        self,
        event_id: str,
        normalized: Dict[str, Any],
        created_at: str,
        updated_at: str,
    ) -> Dict[str, Any]:
        item = {
            **event_key(event_id),
            "id": event_id,
            **normalized,
            "createdAt": created_at,
            "updatedAt": updated_at,
        }
        item["GSI_EventsByDate_PK"] = EVENT_TIMELINE
        item["GSI_EventsByDate_SK"] = f"DATE#{normalized['date']}#EVENT#{event_id}"
        return item

    def _to_event_out(self, item: Mapping[str, Any]) -> EventOut:
        return EventOut(**{k: v for k, v in item.items() if k not in KEY_FIELDS})
