"""Create (or with --delete, drop) the table named by DYNAMODB_URL."""

import argparse
import os

import boto3

from event_hub.database.dynamodb import (
    ConnectionManager,
    create_table_if_not_exists,
    delete_table,
)
from event_hub.logging_config import configure_logging


def main():
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--delete", action="store_true", help="delete the table instead"
    )
    args = parser.parse_args()

    configure_logging(json_format=False)
    manager = ConnectionManager.from_env()
    dynamodb = boto3.resource(
        "dynamodb",
        endpoint_url=manager.endpoint_url,
        region_name=manager.region_name,
        aws_access_key_id=os.getenv("AWS_ACCESS_KEY_ID"),
        aws_secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY"),
    )

    if args.delete:
        delete_table(dynamodb, manager.table_name)
    else:
        create_table_if_not_exists(dynamodb, manager.table_name)


if __name__ == "__main__":
    main()
