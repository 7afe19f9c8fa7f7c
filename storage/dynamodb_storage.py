"""DynamoDB-backed key-value storage."""
import logging
import time
from typing import Optional

import boto3
from botocore.exceptions import ClientError

from storage.backends import StoragePort

logger = logging.getLogger(__name__)


class DynamoDBStorage(StoragePort):
    """Storage port over a DynamoDB table keyed by `storage_key`."""

    KEY_ATTRIBUTE = 'storage_key'
    VALUE_ATTRIBUTE = 'value'

    def __init__(self, table_name: str):
        """
        Initialize DynamoDB client and table reference.

        Args:
            table_name: Name of the DynamoDB table
        """
        self.table_name = table_name
        self.dynamodb = boto3.resource('dynamodb')
        self.table = self.dynamodb.Table(table_name)
        logger.info(f"Initialized DynamoDBStorage for table: {table_name}")

    def get(self, key: str) -> Optional[str]:
        try:
            response = self.table.get_item(Key={self.KEY_ATTRIBUTE: key})
        except ClientError as e:
            logger.error(f"Error reading key '{key}' from DynamoDB: {e}")
            raise

        item = response.get('Item')
        if item is None:
            return None
        return item.get(self.VALUE_ATTRIBUTE)

    def set(self, key: str, value: str) -> None:
        item = {
            self.KEY_ATTRIBUTE: key,
            self.VALUE_ATTRIBUTE: value,
            'last_updated': int(time.time()),
        }
        try:
            self.table.put_item(Item=item)
        except ClientError as e:
            logger.error(f"Error writing key '{key}' to DynamoDB: {e}")
            raise
        logger.debug(f"Wrote {len(value)} characters to key '{key}'")

    def remove(self, key: str) -> None:
        try:
            self.table.delete_item(Key={self.KEY_ATTRIBUTE: key})
        except ClientError as e:
            logger.error(f"Error deleting key '{key}' from DynamoDB: {e}")
            raise
