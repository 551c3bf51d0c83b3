"""
Bundle Routes - batch lookups and refreshes
"""
import structlog
from flask import Blueprint, current_app, request

from bundlecache.api_responses import ErrorCode, error_response, success_response
from bundlecache.db import db
from bundlecache.exceptions import UpstreamUnavailableException, ValidationException
from bundlecache.services.bundle_service import fetch_bundle, get_bundles
from bundlecache.utils import parse_id_list

logger = structlog.get_logger("routes.bundles")
bundles_bp = Blueprint("bundles", __name__, url_prefix="/api")


def _settings():
    return current_app.config["BUNDLECACHE_SETTINGS"]


@bundles_bp.route("/bundles")
def list_bundles():
    """Cached bundles for ?ids=1,2,3, optionally projected with ?filters=name,removed,apps"""
    try:
        ids = parse_id_list(request.args.get("ids"))
    except ValueError as e:
        raise ValidationException(str(e), field="ids")
    if not ids:
        raise ValidationException("At least one bundle id is required", field="ids")

    max_batch_size = _settings()["bundles"]["max_batch_size"]
    if len(ids) > max_batch_size:
        raise ValidationException(f"At most {max_batch_size} ids can be requested at once", field="ids")

    filters = request.args.get("filters") or request.args.get("bundle_filters") or ""
    bundles = get_bundles(db.session, ids, filters, settings=_settings())
    return success_response(bundles)


@bundles_bp.route("/bundles/<int:bundle_id>/refresh", methods=["POST"])
def refresh_bundle(bundle_id):
    """Refresh one bundle from the store, in the worker when ?async=1"""
    if request.args.get("async") in ("1", "true"):
        from bundlecache.tasks import refresh_bundle_async

        task = refresh_bundle_async.delay(bundle_id)
        return success_response({"id": bundle_id, "task_id": task.id}, message="Refresh queued", status_code=202)

    try:
        scraped = fetch_bundle(db.session, bundle_id, settings=_settings())
    except UpstreamUnavailableException as e:
        return error_response(ErrorCode.UPSTREAM_UNAVAILABLE, message=e.message, status_code=503)

    return success_response({"id": bundle_id, "removed": scraped.removed}, message="Bundle refreshed")


@bundles_bp.route("/health")
def health():
    """Simple health check endpoint"""
    return {"status": "healthy", "api_version": "1.0"}
