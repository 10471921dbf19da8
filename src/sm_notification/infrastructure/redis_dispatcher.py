"""RedisNotificationDispatcher — publishes JSON to notifications:{user_id}.

Push fan-out (websocket, mobile) subscribes to these channels elsewhere.
"""

import json
import logging

from src.sm_common.datetime_utils import utc_now
from src.sm_common.redis_client import get_redis

logger = logging.getLogger(__name__)


class RedisNotificationDispatcher:
    async def notify(self, user_id: str, title: str, body: str, link: str | None = None) -> bool:
        payload = json.dumps(
            {
                "user_id": user_id,
                "title": title,
                "body": body,
                "link": link,
                "created_at": utc_now().isoformat(),
            }
        )
        try:
            redis = await get_redis()
            await redis.publish(f"notifications:{user_id}", payload)
        except Exception:
            logger.error("Notification to %s failed: %s", user_id, title, exc_info=True)
            return False
        return True
