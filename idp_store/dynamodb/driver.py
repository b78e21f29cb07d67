"""
Item store driver protocol and the DynamoDB implementation.

The driver is the only code that talks to the store. It speaks tagged
items in both directions and raises botocore ClientError unchanged;
translation into the persistence error taxonomy happens in translate.py,
above the driver.

Invariants:
    - get_item returns None for a missing item, never an empty dict
    - batch_get_items returns every found item exactly once, in no
      particular order, after retrying unprocessed keys
    - scan returns every matching item, following LastEvaluatedKey

How to change safely:
    - Protocol changes require updating InMemoryItemStore as well
    - Test against DynamoDB Local (IDP_DYNAMODB_ENDPOINT) before AWS
"""

from __future__ import annotations

import asyncio
import logging
from abc import abstractmethod
from collections.abc import Mapping, Sequence
from typing import Any, Protocol, runtime_checkable

from aiobotocore.session import get_session

from ..codec.types import AttributeValue, Item
from ..config import DynamoDbConfig
from ..errors import PersistenceError

logger = logging.getLogger(__name__)

# BatchGetItem accepts at most 100 keys per request
BATCH_GET_LIMIT = 100
MAX_UNPROCESSED_RETRIES = 5
UNPROCESSED_BACKOFF_SECONDS = 0.05


@runtime_checkable
class ItemStoreDriver(Protocol):
    """Protocol for item store backends.

    Consistency contract:
        - transact_write_items applies every write or none
        - Conditional writes are evaluated against the current item

    Example:
        >>> driver = DynamoDbDriver(DynamoDbConfig(region="eu-west-1"))
        >>> await driver.connect()
        >>> item = await driver.get_item("idp_stacks", {"id": {"S": stack_id}})
    """

    @abstractmethod
    async def connect(self) -> None:
        """Connect to the store. Must be called before any other operation."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release the client."""
        ...

    @abstractmethod
    async def get_item(
        self,
        table: str,
        key: Item,
        consistent_read: bool | None = None,
    ) -> Item | None:
        """Fetch one item by primary key, or None if it does not exist."""
        ...

    @abstractmethod
    async def put_item(
        self,
        table: str,
        item: Item,
        condition_expression: str | None = None,
        expression_attribute_names: Mapping[str, str] | None = None,
        expression_attribute_values: Mapping[str, AttributeValue] | None = None,
    ) -> None:
        """Create or replace one item, optionally conditionally.

        Raises:
            ClientError: ConditionalCheckFailedException if the condition fails
        """
        ...

    @abstractmethod
    async def delete_item(
        self,
        table: str,
        key: Item,
        condition_expression: str | None = None,
        expression_attribute_names: Mapping[str, str] | None = None,
        expression_attribute_values: Mapping[str, AttributeValue] | None = None,
    ) -> None:
        """Delete one item, optionally conditionally."""
        ...

    @abstractmethod
    async def transact_write_items(self, transact_items: list[dict[str, Any]]) -> None:
        """Submit one atomic multi-item write.

        Args:
            transact_items: TransactItems elements ({"Put": {...}} etc.)

        Raises:
            ClientError: TransactionCanceledException with CancellationReasons,
                or any other service error
        """
        ...

    @abstractmethod
    async def batch_get_items(
        self,
        table: str,
        keys: Sequence[Item],
        consistent_read: bool | None = None,
    ) -> list[Item]:
        """Fetch many items of one table by primary key."""
        ...

    @abstractmethod
    async def scan(
        self,
        table: str,
        filter_expression: str | None = None,
        expression_attribute_names: Mapping[str, str] | None = None,
        expression_attribute_values: Mapping[str, AttributeValue] | None = None,
    ) -> list[Item]:
        """Return every item of a table matching an optional filter."""
        ...

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Whether currently connected to the store."""
        ...


def _condition_kwargs(
    condition_expression: str | None,
    names: Mapping[str, str] | None,
    values: Mapping[str, AttributeValue] | None,
    expression_key: str = "ConditionExpression",
) -> dict[str, Any]:
    kwargs: dict[str, Any] = {}
    if condition_expression:
        kwargs[expression_key] = condition_expression
    if names:
        kwargs["ExpressionAttributeNames"] = dict(names)
    if values:
        kwargs["ExpressionAttributeValues"] = dict(values)
    return kwargs


class DynamoDbDriver:
    """DynamoDB implementation of ItemStoreDriver.

    Uses aiobotocore for async operations with AWS DynamoDB or DynamoDB
    Local.

    Attributes:
        config: DynamoDB configuration

    Example:
        >>> driver = DynamoDbDriver(DynamoDbConfig.from_env())
        >>> await driver.connect()
        >>> await driver.put_item("idp_teams", item)
        >>> await driver.close()
    """

    def __init__(self, config: DynamoDbConfig) -> None:
        self.config = config
        self._session = None
        self._client_ctx: Any = None
        self._client: Any = None
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        """Create the DynamoDB client."""
        if self._connected:
            return

        self._session = get_session()

        client_config: dict[str, Any] = {"region_name": self.config.region}
        if self.config.endpoint_url:
            client_config["endpoint_url"] = self.config.endpoint_url
        if self.config.access_key_id:
            client_config["aws_access_key_id"] = self.config.access_key_id
            client_config["aws_secret_access_key"] = self.config.secret_access_key

        self._client_ctx = self._session.create_client("dynamodb", **client_config)
        self._client = await self._client_ctx.__aenter__()
        self._connected = True

        logger.info(
            "Connected to DynamoDB",
            extra={
                "region": self.config.region,
                "endpoint": self.config.endpoint_url or "AWS",
                "table_prefix": self.config.table_prefix,
            },
        )

    async def close(self) -> None:
        """Close the DynamoDB client."""
        if self._client_ctx is not None:
            try:
                await self._client_ctx.__aexit__(None, None, None)
            except Exception as e:
                logger.warning(f"Error closing DynamoDB client: {e}")

        self._client_ctx = None
        self._client = None
        self._session = None
        self._connected = False
        logger.info("DynamoDB connection closed")

    def _require_client(self) -> Any:
        if self._client is None:
            raise PersistenceError("Not connected to DynamoDB", code="NOT_CONNECTED")
        return self._client

    def _consistent(self, consistent_read: bool | None) -> bool:
        return self.config.consistent_reads if consistent_read is None else consistent_read

    async def get_item(
        self,
        table: str,
        key: Item,
        consistent_read: bool | None = None,
    ) -> Item | None:
        client = self._require_client()
        response = await client.get_item(
            TableName=table,
            Key=key,
            ConsistentRead=self._consistent(consistent_read),
        )
        return response.get("Item") or None

    async def put_item(
        self,
        table: str,
        item: Item,
        condition_expression: str | None = None,
        expression_attribute_names: Mapping[str, str] | None = None,
        expression_attribute_values: Mapping[str, AttributeValue] | None = None,
    ) -> None:
        client = self._require_client()
        await client.put_item(
            TableName=table,
            Item=item,
            **_condition_kwargs(
                condition_expression, expression_attribute_names, expression_attribute_values
            ),
        )

    async def delete_item(
        self,
        table: str,
        key: Item,
        condition_expression: str | None = None,
        expression_attribute_names: Mapping[str, str] | None = None,
        expression_attribute_values: Mapping[str, AttributeValue] | None = None,
    ) -> None:
        client = self._require_client()
        await client.delete_item(
            TableName=table,
            Key=key,
            **_condition_kwargs(
                condition_expression, expression_attribute_names, expression_attribute_values
            ),
        )

    async def transact_write_items(self, transact_items: list[dict[str, Any]]) -> None:
        client = self._require_client()
        await client.transact_write_items(TransactItems=transact_items)

    async def batch_get_items(
        self,
        table: str,
        keys: Sequence[Item],
        consistent_read: bool | None = None,
    ) -> list[Item]:
        """Fetch many items, chunked by 100 keys, retrying unprocessed keys.

        Raises:
            ClientError: For service errors
            PersistenceError: If keys remain unprocessed after all retries
        """
        client = self._require_client()
        consistent = self._consistent(consistent_read)
        found: list[Item] = []

        for start in range(0, len(keys), BATCH_GET_LIMIT):
            pending: list[Item] = list(keys[start : start + BATCH_GET_LIMIT])
            attempt = 0
            while pending:
                response = await client.batch_get_item(
                    RequestItems={table: {"Keys": pending, "ConsistentRead": consistent}}
                )
                found.extend(response.get("Responses", {}).get(table, []))
                pending = response.get("UnprocessedKeys", {}).get(table, {}).get("Keys", [])
                if not pending:
                    break
                attempt += 1
                if attempt > MAX_UNPROCESSED_RETRIES:
                    raise PersistenceError(
                        f"BatchGetItem left {len(pending)} keys unprocessed on {table}",
                        code="BATCH_GET_INCOMPLETE",
                        details={"table": table, "unprocessed": len(pending)},
                    )
                logger.debug(
                    "Retrying unprocessed keys",
                    extra={"table": table, "unprocessed": len(pending), "attempt": attempt},
                )
                await asyncio.sleep(UNPROCESSED_BACKOFF_SECONDS * (2 ** (attempt - 1)))

        return found

    async def scan(
        self,
        table: str,
        filter_expression: str | None = None,
        expression_attribute_names: Mapping[str, str] | None = None,
        expression_attribute_values: Mapping[str, AttributeValue] | None = None,
    ) -> list[Item]:
        client = self._require_client()
        kwargs = _condition_kwargs(
            filter_expression,
            expression_attribute_names,
            expression_attribute_values,
            expression_key="FilterExpression",
        )
        items: list[Item] = []
        while True:
            response = await client.scan(TableName=table, **kwargs)
            items.extend(response.get("Items", []))
            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                return items
            kwargs["ExclusiveStartKey"] = last_key
