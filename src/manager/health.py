"""Health check for the manager service dependencies."""

import logging
from typing import Any, Dict

from common.event_publisher import event_publisher
from common.redis_client import redis_client
from translator.request_queue import translation_queue

logger = logging.getLogger(__name__)


async def check_health() -> Dict[str, Any]:
    """
    Check Redis, the translation queue and the progress publisher.

    Returns:
        Dictionary with overall status, per-dependency checks and details
    """
    try:
        redis_health = await redis_client.health_check()
        checks = {
            "redis_connected": bool(redis_health.get("connected")),
            "translation_queue_connected": await translation_queue.is_healthy(),
            "event_publisher_connected": await event_publisher.is_healthy(),
        }
        details = {} if checks["redis_connected"] else {"redis": redis_health}

        return {
            "status": "healthy" if all(checks.values()) else "unhealthy",
            "checks": checks,
            "details": details,
        }
    except Exception as e:
        logger.error(f"Health check failed: {e}", exc_info=True)
        return {"status": "error", "checks": {}, "details": {"error": str(e)}}
