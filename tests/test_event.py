import pytest
from boto3.dynamodb.conditions import Attr

from event_hub.errors import EventNotFoundError, FieldValidationError, SlugConflictError
from event_hub.schemas.event import EventCreate, EventOut, EventUpdate
from event_hub.services.event_service import EventService, shared_tags
from tests.conftest import TEST_TABLE_NAME


def count_items(dynamodb_resource, prefix):
    table = dynamodb_resource.Table(TEST_TABLE_NAME)
    response = table.scan(FilterExpression=Attr("PK").begins_with(prefix))
    return len(response["Items"])


def test_create_event_success(event_service, valid_event_data):
    """Test event creation normalizes the record and generates a slug"""
    result = event_service.create_event(valid_event_data)

    assert isinstance(result, EventOut)
    assert result.id
    assert result.slug == "pycon-meetup-whats-new-in-3-13"
    assert result.title == "PyCon Meetup: What's New in 3.13"
    assert result.date == "2025-03-15"
    assert result.time == "18:30"
    assert result.tags == ["python", "meetup"]
    assert result.createdAt == result.updatedAt


def test_create_event_from_schema(event_service, valid_event_data):
    result = event_service.create_event(EventCreate(**valid_event_data))
    assert result.slug == "pycon-meetup-whats-new-in-3-13"


def test_create_event_empty_agenda_writes_nothing(
    event_service, dynamodb_resource, make_event_data
):
    with pytest.raises(FieldValidationError):
        event_service.create_event(make_event_data(agenda=[]))

    assert count_items(dynamodb_resource, "EVENT#") == 0
    assert count_items(dynamodb_resource, "SLUG#") == 0


def test_create_event_single_tag(event_service, make_event_data):
    result = event_service.create_event(make_event_data(tags=["a"]))
    assert result.tags == ["a"]
    assert result.slug


def test_duplicate_title_conflicts(event_service, dynamodb_resource, valid_event_data):
    """The second event with the same title loses the slug race"""
    event_service.create_event(valid_event_data)

    with pytest.raises(SlugConflictError) as exc_info:
        event_service.create_event(valid_event_data)

    assert exc_info.value.slug == "pycon-meetup-whats-new-in-3-13"
    assert count_items(dynamodb_resource, "EVENT#") == 1


def test_titles_with_same_slug_conflict(event_service, make_event_data):
    event_service.create_event(make_event_data(title="Data Day"))

    with pytest.raises(SlugConflictError):
        event_service.create_event(make_event_data(title="  DATA -- day!"))


def test_get_event_by_slug(event_service, valid_event_data):
    created = event_service.create_event(valid_event_data)

    found = event_service.get_event_by_slug(created.slug)

    assert found == created


def test_get_event_by_unknown_slug_returns_none(event_service):
    assert event_service.get_event_by_slug("no-such-event") is None


def test_event_exists(event_service, valid_event_data):
    created = event_service.create_event(valid_event_data)

    assert event_service.event_exists(created.id) is True
    assert event_service.event_exists("missing-id") is False


def test_list_events_ordered_by_date(event_service, make_event_data):
    event_service.create_event(
        make_event_data(title="Summer Sprint", date="2025-07-01")
    )
    event_service.create_event(
        make_event_data(title="Winter Summit", date="2025-01-20")
    )
    event_service.create_event(
        make_event_data(title="Spring Social", date="2025-04-05")
    )

    events = event_service.list_events()

    assert [event.title for event in events] == [
        "Winter Summit",
        "Spring Social",
        "Summer Sprint",
    ]


def test_list_events_empty(event_service):
    assert event_service.list_events() == []


def test_update_without_title_change_keeps_slug(event_service, valid_event_data):
    created = event_service.create_event(valid_event_data)

    updated = event_service.update_event(
        created.id, EventUpdate(venue="  Main Hall ", time="7pm")
    )

    assert updated.slug == created.slug
    assert updated.venue == "Main Hall"
    assert updated.time == "19:00"
    assert updated.createdAt == created.createdAt
    assert event_service.get_event_by_slug(created.slug).venue == "Main Hall"


def test_update_title_moves_slug(event_service, valid_event_data):
    created = event_service.create_event(valid_event_data)

    updated = event_service.update_event(created.id, {"title": "Python Night"})

    assert updated.slug == "python-night"
    assert event_service.get_event_by_slug(created.slug) is None
    assert event_service.get_event_by_slug("python-night").id == created.id


def test_update_title_to_taken_slug_conflicts(event_service, make_event_data):
    first = event_service.create_event(make_event_data(title="Data Day"))
    second = event_service.create_event(make_event_data(title="ML Day"))

    with pytest.raises(SlugConflictError):
        event_service.update_event(second.id, {"title": "Data Day"})

    assert event_service.get_event_by_slug("ml-day").id == second.id
    assert event_service.get_event_by_slug("data-day").id == first.id


def test_update_runs_normalization(event_service, valid_event_data):
    created = event_service.create_event(valid_event_data)

    with pytest.raises(FieldValidationError) as exc_info:
        event_service.update_event(created.id, {"time": "25:00"})

    assert exc_info.value.field == "time"
    assert event_service.get_event(created.id).time == "18:30"


def test_update_unknown_event(event_service):
    with pytest.raises(EventNotFoundError):
        event_service.update_event("missing-id", {"title": "Anything"})


def test_find_similar_events_by_shared_tags(event_service, make_event_data):
    source = event_service.create_event(
        make_event_data(title="Python Basics", tags=["python", "beginner"])
    )
    event_service.create_event(
        make_event_data(title="Advanced Python", tags=["python", "beginner", "web"])
    )
    event_service.create_event(
        make_event_data(title="Django Deep Dive", tags=["python", "web"])
    )
    event_service.create_event(make_event_data(title="Rust Intro", tags=["rust"]))

    similar = event_service.find_similar_events(source.slug)

    assert [event.title for event in similar] == [
        "Advanced Python",
        "Django Deep Dive",
    ]


def test_find_similar_events_unknown_slug(event_service):
    assert event_service.find_similar_events("no-such-event") == []


def test_find_similar_events_custom_strategy(connection, make_event_data):
    def everything_else(event, candidates):
        return [candidate for candidate in candidates if candidate.id != event.id]

    service = EventService(connection, similarity=everything_else)
    source = service.create_event(make_event_data(title="Alpha", tags=["x"]))
    service.create_event(make_event_data(title="Beta", tags=["y"]))

    assert [event.title for event in service.find_similar_events(source.slug)] == [
        "Beta"
    ]


def test_shared_tags_excludes_source_event(event_service, make_event_data):
    source = event_service.create_event(make_event_data(title="Solo", tags=["x"]))
    assert shared_tags(source, [source]) == []
