from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from flask import Response, request
import logging
import time
from functools import wraps

logger = logging.getLogger("main")

# Database Metrics
db_query_duration_seconds = Histogram(
    "bundlecache_db_query_duration_seconds", "Database query duration", ["operation"]
)

db_query_total = Counter("bundlecache_db_queries_total", "Total database queries", ["operation", "status"])

db_bundles_cached = Gauge("bundlecache_bundles_cached", "Total number of cached bundles")
db_bundles_pending = Gauge("bundlecache_bundles_pending", "Bundles waiting for a refresh")
db_bundles_removed = Gauge("bundlecache_bundles_removed", "Bundles removed from the store")

# Pipeline Metrics
bundles_requested_total = Counter("bundlecache_bundles_requested_total", "Bundle ids requested by clients")

bundles_queued_total = Counter("bundlecache_bundles_queued_total", "Bundles queued for refresh", ["reason"])

bundle_fetch_total = Counter("bundlecache_bundle_fetch_total", "Bundle refreshes by outcome", ["outcome"])

scrape_duration_seconds = Histogram("bundlecache_scrape_duration_seconds", "Time spent fetching a store page")

# API Metrics
api_request_duration_seconds = Histogram(
    "bundlecache_api_request_duration_seconds", "API request duration", ["endpoint", "method"]
)

api_requests_total = Counter(
    "bundlecache_api_requests_total", "Total API requests", ["endpoint", "method", "status_code"]
)


def init_metrics(app):
    @app.route("/api/metrics")
    def metrics():
        update_db_metrics()
        return Response(generate_latest(), mimetype=CONTENT_TYPE_LATEST)

    @app.before_request
    def before_request():
        request.start_time = time.time()

    @app.after_request
    def after_request(response):
        duration = time.time() - getattr(request, "start_time", time.time())
        api_request_duration_seconds.labels(endpoint=request.endpoint or "unknown", method=request.method).observe(
            duration
        )
        api_requests_total.labels(
            endpoint=request.endpoint or "unknown", method=request.method, status_code=response.status_code
        ).inc()
        return response

    logger.info("Prometheus metrics initialized at /api/metrics")


def update_db_metrics():
    """Update bundle counts from the store. Best effort, the scrape endpoint must not fail."""
    from sqlalchemy.exc import SQLAlchemyError
    from bundlecache.db import db
    from bundlecache.models import Bundle

    try:
        db_bundles_cached.set(Bundle.query.count())
        db_bundles_pending.set(Bundle.query.filter(Bundle.queued_for_update.is_(True)).count())
        db_bundles_removed.set(Bundle.query.filter(Bundle.removed.is_(True)).count())
    except SQLAlchemyError as e:
        logger.warning(f"Could not update database metrics: {e}")
        db.session.rollback()


def track_db_query(operation):
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            start_time = time.time()
            try:
                result = func(*args, **kwargs)
                db_query_total.labels(operation=operation, status="success").inc()
                return result
            except Exception:
                db_query_total.labels(operation=operation, status="error").inc()
                raise
            finally:
                duration = time.time() - start_time
                db_query_duration_seconds.labels(operation=operation).observe(duration)

        return wrapper

    return decorator
