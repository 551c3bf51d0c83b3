from celery import Celery
import logging
import os

from bundlecache.settings import load_settings

logger = logging.getLogger(__name__)


def make_celery(app_name=__name__):
    redis_url = os.environ.get('REDIS_URL', 'redis://localhost:6379/0')
    celery = Celery(
        app_name,
        broker=redis_url,
        backend=redis_url,
        include=['bundlecache.tasks']
    )

    drain_interval_minutes = load_settings()['worker']['drain_interval_minutes']
    celery.conf.update(
        task_serializer='json',
        accept_content=['json'],
        result_serializer='json',
        timezone='UTC',
        enable_utc=True,
        beat_schedule={
            'drain-update-queue': {
                'task': 'bundlecache.tasks.drain_update_queue',
                'schedule': drain_interval_minutes * 60.0,
            },
        },
    )
    logger.debug(f"Celery configured with broker {redis_url.split('@')[-1]}")
    return celery


celery = make_celery('bundlecache')
