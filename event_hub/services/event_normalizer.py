"""Canonicalization of event records before they are written.

Every function here is pure: it either returns the canonical value or raises
FieldValidationError naming the offending field.
"""

import re
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from dateutil import parser as date_parser

from event_hub.errors import FieldValidationError

REQUIRED_STRING_FIELDS = (
    "title",
    "description",
    "overview",
    "image",
    "venue",
    "location",
    "mode",
    "audience",
    "organizer",
)

_QUOTES = re.compile(r"['`]")
_NON_ALNUM_RUN = re.compile(r"[^a-z0-9]+")
_TIME = re.compile(r"^(\d{1,2})(?::(\d{2}))?\s*([ap]m)?$", re.IGNORECASE)
_DEFAULT_A = datetime(2000, 1, 1)
_DEFAULT_B = datetime(2001, 2, 2)


def slugify(value: str) -> str:
    """URL-safe, lowercase, hyphen-separated form of a title."""
    slug = _QUOTES.sub("", value.lower().strip())
    slug = _NON_ALNUM_RUN.sub("-", slug)
    return slug.strip("-")


def normalize_date(value: Any) -> str:
    """Return the calendar date of ``value`` as YYYY-MM-DD (UTC fields)."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        return value.isoformat()
    elif isinstance(value, str) and value.strip():
        # dateutil fills missing parts from the default; parsing against two
        # defaults that differ in year, month and day exposes any gap
        try:
            parsed = date_parser.parse(value.strip(), default=_DEFAULT_A)
            if parsed.date() != date_parser.parse(
                value.strip(), default=_DEFAULT_B
            ).date():
                raise FieldValidationError("date", "date is invalid")
        except (ValueError, OverflowError):
            raise FieldValidationError("date", "date is invalid")
    else:
        raise FieldValidationError("date", "date is invalid")

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
    return parsed.date().isoformat()


def normalize_time(value: Any) -> str:
    """Return a lenient human time ("2pm", "9:05", "14:30") as 24h HH:mm."""
    if not isinstance(value, str):
        raise FieldValidationError("time", "time is invalid")
    match = _TIME.match(value.strip())
    if not match:
        raise FieldValidationError("time", "time is invalid")

    hours = int(match.group(1))
    minutes = int(match.group(2) or "0")
    meridiem = (match.group(3) or "").lower()
    if meridiem:
        if hours == 12:
            hours = 0
        if meridiem == "pm":
            hours += 12

    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        raise FieldValidationError("time", "time is invalid")
    return f"{hours:02d}:{minutes:02d}"


def require_string(value: Any, field: str) -> str:
    if not isinstance(value, str):
        raise FieldValidationError(field, f"{field} must be a string")
    value = value.strip()
    if not value:
        raise FieldValidationError(field, f"{field} is required")
    return value


def _string_list(value: Any, field: str, message: str) -> List[str]:
    if not isinstance(value, (list, tuple)) or not value:
        raise FieldValidationError(field, message)
    return [require_string(item, field) for item in value]


def normalize_event(
    raw: Mapping[str, Any], previous: Optional[Mapping[str, Any]] = None
) -> Dict[str, Any]:
    """Validate and canonicalize an event record.

    ``previous`` is the currently persisted version, if any. The slug is
    derived from the title when there is no previous version, the previous
    version has no slug, or the title changed; otherwise it is kept.
    """
    event = {
        field: require_string(raw.get(field), field)
        for field in REQUIRED_STRING_FIELDS
    }

    event["agenda"] = _string_list(
        raw.get("agenda"), "agenda", "agenda is required"
    )
    # tags behave like a set but keep their order
    tags = _string_list(raw.get("tags"), "tags", "tags are required")
    event["tags"] = list(dict.fromkeys(tags))

    previous_slug = previous.get("slug") if previous else None
    if not previous_slug or previous.get("title") != event["title"]:
        slug = slugify(event["title"])
        if not slug:
            raise FieldValidationError(
                "title", "title must contain at least one letter or digit"
            )
        event["slug"] = slug
    else:
        event["slug"] = previous_slug

    event["date"] = normalize_date(raw.get("date"))
    event["time"] = normalize_time(raw.get("time"))
    return event
