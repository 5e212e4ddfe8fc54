"""DynamoDB session store for production deployments."""

from __future__ import annotations

import json
import logging
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import aioboto3
from botocore.exceptions import ClientError

from .backend import SessionStore
from .cookie import parse_expires

logger = logging.getLogger(__name__)


class DynamoDBSessionStore(SessionStore):
    """Session store using AWS DynamoDB.

    Table schema:
        Partition key: session_id (S)
        Attributes: data (S, JSON-encoded content), cookie (S, JSON-encoded
        cookie attributes), created_at (N), ttl (N)

    Enable TTL on the `ttl` attribute for automatic cleanup. Sessions with a
    browser-session cookie (no expiry) get `max_age` seconds.
    """

    def __init__(
        self,
        table_name: str = "sessions",
        max_age: int = 30 * 24 * 3600,
        endpoint_url: str = "",
        region_name: str = "us-west-2",
    ) -> None:
        super().__init__()
        self._table_name = table_name
        self._max_age = max_age
        self._session = aioboto3.Session()
        self._endpoint_url = endpoint_url or None
        self._region_name = region_name

    @asynccontextmanager
    async def _table(self) -> AsyncIterator[Any]:
        async with self._session.resource(
            "dynamodb",
            endpoint_url=self._endpoint_url,
            region_name=self._region_name,
        ) as dynamodb:
            yield await dynamodb.Table(self._table_name)

    def _ttl(self, cookie: dict[str, Any]) -> int:
        expires = parse_expires(cookie.get("expires"))
        if expires is not None:
            return int(expires.timestamp())
        return int(time.time() + self._max_age)

    async def get(self, session_id: str) -> dict[str, Any] | None:
        async with self._table() as table:
            response = await table.get_item(Key={"session_id": session_id})

        item = response.get("Item")
        if item is None:
            return None

        if time.time() >= float(item.get("ttl", 0)):
            logger.debug("session %s expired", session_id)
            await self.destroy(session_id)
            return None

        record = json.loads(item["data"])
        record["cookie"] = json.loads(item["cookie"])
        return record

    async def set(self, session_id: str, record: dict[str, Any]) -> None:
        content = {k: v for k, v in record.items() if k != "cookie"}
        cookie = record["cookie"]
        async with self._table() as table:
            await table.put_item(
                Item={
                    "session_id": session_id,
                    "data": json.dumps(content, default=str),
                    "cookie": json.dumps(cookie),
                    "created_at": int(time.time()),
                    "ttl": self._ttl(cookie),
                }
            )

    async def destroy(self, session_id: str) -> None:
        async with self._table() as table:
            await table.delete_item(Key={"session_id": session_id})

    async def touch(self, session_id: str, record: dict[str, Any]) -> None:
        """Refresh cookie attributes and TTL without rewriting the content."""
        cookie = record["cookie"]
        async with self._table() as table:
            try:
                await table.update_item(
                    Key={"session_id": session_id},
                    UpdateExpression="SET #cookie = :cookie, #ttl = :ttl",
                    ConditionExpression="attribute_exists(session_id)",
                    ExpressionAttributeNames={"#cookie": "cookie", "#ttl": "ttl"},
                    ExpressionAttributeValues={
                        ":cookie": json.dumps(cookie),
                        ":ttl": self._ttl(cookie),
                    },
                )
            except ClientError as e:
                if e.response.get("Error", {}).get("Code") != "ConditionalCheckFailedException":
                    raise
                logger.debug("touch skipped, session %s not stored", session_id)

    async def _session_ids(self) -> list[str]:
        ids: list[str] = []
        kwargs: dict[str, Any] = {"ProjectionExpression": "session_id"}
        async with self._table() as table:
            while True:
                response = await table.scan(**kwargs)
                ids.extend(item["session_id"] for item in response.get("Items", []))
                if "LastEvaluatedKey" not in response:
                    return ids
                kwargs["ExclusiveStartKey"] = response["LastEvaluatedKey"]

    async def length(self) -> int:
        return len(await self._session_ids())

    async def clear(self) -> None:
        session_ids = await self._session_ids()
        async with self._table() as table:
            async with table.batch_writer() as batch:
                for session_id in session_ids:
                    await batch.delete_item(Key={"session_id": session_id})
