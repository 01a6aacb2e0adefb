import httpx
import logging

from fastapi.encoders import jsonable_encoder

from config import settings
from models import utcnow

logger = logging.getLogger(__name__)

DRIVERS_TOPIC = "drivers"


async def publish(topic: str, event: str, data) -> bool:
    """Push a live update to the notification webhook.

    Best effort: nothing is retried and failures are only logged. Returns
    whether the webhook accepted the event.
    """
    if not settings.NOTIFY_WEBHOOK_URL:
        logger.debug(f"No webhook configured, dropping {event} for {topic}")
        return False

    payload = {
        "topic": topic,
        "event": event,
        "data": jsonable_encoder(data),
        "timestamp": utcnow().isoformat(),
    }
    try:
        async with httpx.AsyncClient(timeout=settings.NOTIFY_TIMEOUT_SECONDS) as client:
            response = await client.post(settings.NOTIFY_WEBHOOK_URL, json=payload)
            response.raise_for_status()
            return True
    except httpx.HTTPStatusError as e:
        logger.warning(f"Notification {event} for {topic} rejected: Status {e.response.status_code}")
    except httpx.HTTPError as e:
        logger.warning(f"Notification {event} for {topic} failed: {str(e)}")
    return False


async def publish_ride(event: str, ride, *topics: str) -> None:
    for topic in topics:
        if topic:
            await publish(topic, event, {"ride": ride.model_dump(mode="json")})
