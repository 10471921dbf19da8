"""Tests for RedisNotificationDispatcher."""

import json
from unittest.mock import AsyncMock

from src.sm_notification.infrastructure import redis_dispatcher
from src.sm_notification.infrastructure.redis_dispatcher import RedisNotificationDispatcher


async def test_publishes_to_user_channel(monkeypatch) -> None:
    redis = AsyncMock()
    monkeypatch.setattr(redis_dispatcher, "get_redis", AsyncMock(return_value=redis))

    delivered = await RedisNotificationDispatcher().notify(
        "prov-1", "Payment received", "You received 12000 cents", "/money-requests/mr_1"
    )

    assert delivered
    channel, payload = redis.publish.await_args.args
    assert channel == "notifications:prov-1"
    message = json.loads(payload)
    assert message["title"] == "Payment received"
    assert message["link"] == "/money-requests/mr_1"


async def test_broker_failure_reports_not_delivered(monkeypatch) -> None:
    redis = AsyncMock()
    redis.publish.side_effect = ConnectionError("redis down")
    monkeypatch.setattr(redis_dispatcher, "get_redis", AsyncMock(return_value=redis))

    assert not await RedisNotificationDispatcher().notify("cust-1", "Bundle accepted", "body")
