"""
Amora — Domain event publishing.

A new match is announced on a per-user Redis pub/sub channel
(``amora:user:{id}:events``) for each of the two users.  Delivery to devices
is someone else's job; without Redis the event is only logged.
"""

from __future__ import annotations

import json
import uuid

import structlog
from redis.exceptions import RedisError

from amora.models.match import Match

logger = structlog.get_logger("amora.events")

MATCH_CREATED = "match_created"


def user_channel(user_id: uuid.UUID) -> str:
    return f"amora:user:{user_id}:events"


class MatchEventPublisher:

    def __init__(self, redis_client=None) -> None:
        self._redis = redis_client

    async def match_created(self, match: Match) -> int:
        """Publish the event to both users; returns the number of receivers."""
        payload = {
            "type": MATCH_CREATED,
            "match_id": str(match.id),
            "user_ids": [str(match.user_a_id), str(match.user_b_id)],
            "matched_at": match.matched_at.isoformat() if match.matched_at else None,
        }

        if self._redis is None:
            logger.info("match_event_not_published", reason="redis_not_configured", **payload)
            return 0

        receivers = 0
        message = json.dumps(payload)
        for user_id in (match.user_a_id, match.user_b_id):
            try:
                receivers += await self._redis.publish(user_channel(user_id), message)
            except RedisError as exc:
                logger.error(
                    "match_event_publish_failed",
                    match_id=str(match.id),
                    user_id=str(user_id),
                    error=str(exc),
                )

        logger.info("match_event_published", match_id=str(match.id), receivers=receivers)
        return receivers
