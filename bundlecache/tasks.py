"""
Celery tasks that drain the refresh queue
"""
from contextlib import contextmanager

import structlog
from flask import current_app, has_app_context
from sqlalchemy.exc import SQLAlchemyError

from bundlecache.celery_app import celery
from bundlecache.db import db
from bundlecache.exceptions import UpstreamUnavailableException
from bundlecache.repositories.bundles_repository import BundlesRepository
from bundlecache.services.bundle_service import fetch_bundle

logger = structlog.get_logger("tasks")

_worker_app = None


@contextmanager
def app_context():
    """Reuse the current Flask app when there is one, otherwise build the worker's own"""
    global _worker_app

    if has_app_context():
        yield current_app._get_current_object()
        return

    if _worker_app is None:
        from bundlecache.app import create_app

        _worker_app = create_app()
    with _worker_app.app_context():
        yield _worker_app


@celery.task(bind=True, name="bundlecache.tasks.refresh_bundle_async", max_retries=3)
def refresh_bundle_async(self, bundle_id):
    """Refresh one bundle, retrying later while the store is unavailable"""
    with app_context() as app:
        try:
            scraped = fetch_bundle(db.session, bundle_id, settings=app.config["BUNDLECACHE_SETTINGS"])
        except UpstreamUnavailableException as e:
            logger.warning(f"Store unavailable for bundle {bundle_id}, retrying later")
            raise self.retry(exc=e, countdown=60)
        return {"id": bundle_id, "removed": scraped.removed}


@celery.task(name="bundlecache.tasks.drain_update_queue")
def drain_update_queue(limit=None):
    """Refresh the queued bundles, least recently refreshed first"""
    with app_context() as app:
        settings = app.config["BUNDLECACHE_SETTINGS"]
        limit = limit or settings["worker"]["drain_batch_size"]
        bundle_ids = BundlesRepository(db.session).get_queued_ids(limit)

        refreshed = 0
        failed = 0
        for bundle_id in bundle_ids:
            try:
                fetch_bundle(db.session, bundle_id, settings=settings)
                refreshed += 1
            except UpstreamUnavailableException:
                failed += 1
            except SQLAlchemyError as e:
                logger.error(f"Error refreshing bundle {bundle_id}: {e}")
                failed += 1

        if bundle_ids:
            logger.info(f"Queue drain complete: {len(bundle_ids)} processed, {refreshed} refreshed, {failed} failed")
        return {"processed": len(bundle_ids), "refreshed": refreshed, "failed": failed}
