"""
Celery worker polling the IoT telemetry feed (liveness ticks and auto-sync).
"""
from celery import Celery
import logging
from .config import settings
from .database import SessionLocal
from .persistence.repositories import build_backend, build_repositories
from .services.iot_feed import get_iot_feed
from .services.liveness import get_liveness_tracker
from .use_cases.iot import poll_iot_feed_use_case

logger = logging.getLogger(__name__)

celery_app = Celery(
    "veroscale",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND
)

celery_app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,
)


@celery_app.task(name="poll_iot_feed")
def poll_iot_feed():
    """
    Read every configured scale once, update liveness and store auto-synced readings.

    Liveness is only meaningful across processes with IOT_LIVENESS_STORE=redis.
    """
    feed = get_iot_feed()
    if not feed.configured:
        return {"observed": [], "disconnected": [], "synced_record_ids": []}

    db = SessionLocal()
    try:
        repos = build_repositories(build_backend(db))
        result = poll_iot_feed_use_case(feed=feed, tracker=get_liveness_tracker(), repos=repos)
        if result["synced_record_ids"]:
            logger.info("Auto-synced IoT readings into records %s", result["synced_record_ids"])
        return result
    except Exception as e:
        logger.error(f"Error polling IoT feed: {e}", exc_info=True)
        raise
    finally:
        db.close()


# Schedule periodic polling
celery_app.conf.beat_schedule = {
    'poll-iot-feed': {
        'task': 'poll_iot_feed',
        'schedule': float(settings.IOT_LIVENESS_CHECK_INTERVAL_SECONDS),
    },
}
