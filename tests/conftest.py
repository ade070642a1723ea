import boto3
import pytest
from moto import mock_aws

from event_hub.database.dynamodb import ConnectionManager, create_table_if_not_exists
from event_hub.services.booking_service import BookingService
from event_hub.services.event_service import EventService

TEST_TABLE_NAME = "EventHub_Test"
TEST_DYNAMODB_URL = f"https://dynamodb.us-east-1.amazonaws.com/{TEST_TABLE_NAME}"


@pytest.fixture(autouse=True)
def aws_environment(monkeypatch):
    """Point the app at the mocked table with fake credentials"""
    monkeypatch.setenv("DYNAMODB_URL", TEST_DYNAMODB_URL)
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("LOG_FORMAT", "console")


@pytest.fixture
def dynamodb_resource():
    """Mocked DynamoDB with a fresh test table for each test"""
    with mock_aws():
        resource = boto3.resource("dynamodb", region_name="us-east-1")
        create_table_if_not_exists(resource, TEST_TABLE_NAME)
        yield resource


@pytest.fixture
def connection_manager(dynamodb_resource):
    manager = ConnectionManager.from_env()
    yield manager
    manager.disconnect()


@pytest.fixture
def connection(connection_manager):
    return connection_manager.connect()


@pytest.fixture
def event_service(connection):
    return EventService(connection)


@pytest.fixture
def booking_service(connection):
    return BookingService(connection)


@pytest.fixture
def valid_event_data():
    """Valid raw event input, before normalization"""
    return {
        "title": "  PyCon Meetup: What's New in 3.13  ",
        "description": "An evening of talks about the latest Python release",
        "overview": "Lightning talks, a keynote and pizza",
        "image": "/images/pycon-meetup.png",
        "venue": "Tech Hub",
        "location": "Berlin, Germany",
        "date": "March 15, 2025",
        "time": "6:30pm",
        "mode": "hybrid",
        "audience": "Python developers",
        "agenda": ["Doors open", "Keynote", "Lightning talks"],
        "organizer": "Berlin Python User Group",
        "tags": ["python", "meetup", "python"],
    }


@pytest.fixture
def make_event_data(valid_event_data):
    """Build event input overriding a few fields"""

    def _make(**overrides):
        return {**valid_event_data, **overrides}

    return _make
