import os
import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Optional, Tuple
from urllib.parse import urlsplit

import boto3
import structlog
from botocore.exceptions import BotoCoreError, ClientError

from event_hub.errors import ConfigurationError, DatabaseConnectionError

logger = structlog.get_logger(__name__)

DYNAMODB_URL_ENV = "DYNAMODB_URL"
DEFAULT_REGION = "us-east-1"


class ConnectionState(str, Enum):
    UNINITIALIZED = "UNINITIALIZED"
    CONNECTING = "CONNECTING"
    CONNECTED = "CONNECTED"


@dataclass(frozen=True)
class DynamoConnection:
    """An open handle on the event hub table."""

    resource: Any
    table: Any

    @property
    def client(self):
        return self.resource.meta.client

    @property
    def table_name(self) -> str:
        return self.table.table_name


def parse_connection_url(url: str) -> Tuple[str, str]:
    """Split a DYNAMODB_URL into (endpoint_url, table_name).

    The path of the URL names the table, e.g.
    ``https://dynamodb.us-east-1.amazonaws.com/EventHub``.
    """
    parts = urlsplit(url.strip())
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise ConfigurationError(
            f"{DYNAMODB_URL_ENV} must be an http(s) endpoint URL, got {url!r}"
        )
    table_name = parts.path.strip("/")
    if not table_name or "/" in table_name:
        raise ConfigurationError(
            f"{DYNAMODB_URL_ENV} must name the table in its path, "
            "e.g. http://localhost:8000/EventHub"
        )
    return f"{parts.scheme}://{parts.netloc}", table_name


class ConnectionManager:
    """Owns the single DynamoDB handle shared by all requests.

    The handle is opened lazily on the first ``connect()`` call and cached.
    Callers arriving while a connection attempt is in flight wait on that
    same attempt. A failed attempt is reported to every waiter and the
    manager goes back to UNINITIALIZED so the next call retries.

    ``disconnect()`` must not run concurrently with ``connect()``; it is meant
    for application shutdown.
    """

    def __init__(
        self,
        url: Optional[str],
        region_name: Optional[str] = None,
        resource_factory: Callable[..., Any] = boto3.resource,
    ):
        if not url or not url.strip():
            raise ConfigurationError(
                f"Missing environment variable: {DYNAMODB_URL_ENV}. "
                "Set it to the DynamoDB endpoint URL followed by the table name."
            )
        self.endpoint_url, self.table_name = parse_connection_url(url)
        self.region_name = region_name or DEFAULT_REGION
        self._resource_factory = resource_factory

        self._lock = threading.Lock()
        self._connection: Optional[DynamoConnection] = None
        self._pending: Optional[Future] = None

    @classmethod
    def from_env(cls, **kwargs) -> "ConnectionManager":
        return cls(
            os.getenv(DYNAMODB_URL_ENV),
            region_name=os.getenv("AWS_DEFAULT_REGION", DEFAULT_REGION),
            **kwargs,
        )

    @property
    def state(self) -> ConnectionState:
        with self._lock:
            if self._connection is not None:
                return ConnectionState.CONNECTED
            if self._pending is not None:
                return ConnectionState.CONNECTING
            return ConnectionState.UNINITIALIZED

    def connect(self) -> DynamoConnection:
        with self._lock:
            if self._connection is not None:
                return self._connection
            if self._pending is not None:
                pending = self._pending
                owner = False
            else:
                pending = self._pending = Future()
                owner = True

        if not owner:
            return pending.result()

        try:
            connection = self._open()
        except Exception as e:
            with self._lock:
                self._pending = None
            pending.set_exception(e)
            raise

        with self._lock:
            self._connection = connection
            self._pending = None
        pending.set_result(connection)
        return connection

    def disconnect(self) -> None:
        with self._lock:
            connection = self._connection
            self._connection = None
            self._pending = None
        if connection is None:
            return
        close = getattr(connection.client, "close", None)
        if callable(close):
            close()
        logger.info("dynamodb_disconnected", table=self.table_name)

    def _open(self) -> DynamoConnection:
        logger.info(
            "dynamodb_connecting",
            endpoint=self.endpoint_url,
            table=self.table_name,
        )
        try:
            resource = self._resource_factory(
                "dynamodb",
                endpoint_url=self.endpoint_url,
                region_name=self.region_name,
                aws_access_key_id=os.getenv("AWS_ACCESS_KEY_ID"),
                aws_secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY"),
            )
            table = resource.Table(self.table_name)
            # Fails fast when the endpoint is unreachable or the table is missing
            table.load()
        except (BotoCoreError, ClientError) as e:
            logger.error(
                "dynamodb_connection_failed", table=self.table_name, error=str(e)
            )
            raise DatabaseConnectionError(
                f"Failed to open DynamoDB table {self.table_name}: {e}"
            ) from e

        logger.info("dynamodb_connected", table=self.table_name)
        return DynamoConnection(resource=resource, table=table)


def failed_conditions(error: ClientError) -> Optional[List[int]]:
    """Indexes of the transaction items whose condition check failed.

    Returns None when ``error`` is not a cancelled transaction, and an empty
    list when the store did not report cancellation reasons.
    """
    if error.response["Error"]["Code"] != "TransactionCanceledException":
        return None
    reasons = error.response.get("CancellationReasons", [])
    return [
        index
        for index, reason in enumerate(reasons)
        if reason.get("Code") == "ConditionalCheckFailed"
    ]


EVENTS_BY_DATE_INDEX = "GSI_EventsByDate"


def create_table_if_not_exists(dynamodb, table_name: str):
    """Create the event hub table and its timeline index if it doesn't exist"""
    try:
        table = dynamodb.Table(table_name)
        table.load()
        logger.info("table_exists", table=table_name)
        return table
    except ClientError as e:
        if e.response["Error"]["Code"] != "ResourceNotFoundException":
            raise

    table = dynamodb.create_table(
        TableName=table_name,
        KeySchema=[
            {"AttributeName": "PK", "KeyType": "HASH"},
            {"AttributeName": "SK", "KeyType": "RANGE"},
        ],
        AttributeDefinitions=[
            {"AttributeName": "PK", "AttributeType": "S"},
            {"AttributeName": "SK", "AttributeType": "S"},
            {"AttributeName": "GSI_EventsByDate_PK", "AttributeType": "S"},
            {"AttributeName": "GSI_EventsByDate_SK", "AttributeType": "S"},
        ],
        BillingMode="PAY_PER_REQUEST",
        GlobalSecondaryIndexes=[
            {
                "IndexName": EVENTS_BY_DATE_INDEX,
                "KeySchema": [
                    {"AttributeName": "GSI_EventsByDate_PK", "KeyType": "HASH"},
                    {"AttributeName": "GSI_EventsByDate_SK", "KeyType": "RANGE"},
                ],
                "Projection": {"ProjectionType": "ALL"},
            },
        ],
    )

    logger.info("table_creating", table=table_name)
    table.wait_until_exists()

    # Wait for GSIs to be active
    while True:
        table.reload()
        gsi_statuses = [
            gsi["IndexStatus"] for gsi in (table.global_secondary_indexes or [])
        ]
        if all(status == "ACTIVE" for status in gsi_statuses):
            break
        time.sleep(1)

    logger.info("table_created", table=table_name)
    return table


def delete_table(dynamodb, table_name: str) -> None:
    """Delete the event hub table"""
    try:
        table = dynamodb.Table(table_name)
        table.delete()
        table.wait_until_not_exists()
        logger.info("table_deleted", table=table_name)
    except ClientError as e:
        if e.response["Error"]["Code"] != "ResourceNotFoundException":
            raise
        logger.info("table_missing", table=table_name)
