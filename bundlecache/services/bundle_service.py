"""
Bundle read-through cache: batch reads with staleness queuing, and the
refresh that scrapes the store and merges the result back.

Both operations take the SQLAlchemy session to work on; nothing here reaches
for a global connection.
"""
from typing import Iterable, List, Optional, Union

import structlog

from bundlecache.exceptions import UpstreamUnavailableException
from bundlecache.filters import BundleField, FilterSpec, parse_filters
from bundlecache.metrics import bundle_fetch_total, bundles_queued_total, bundles_requested_total
from bundlecache.repositories.bundles_repository import BundlesRepository
from bundlecache.scraper import BundleScraper, PageFetcher
from bundlecache.settings import load_settings
from bundlecache.staleness import StalenessEvaluator, StalenessPolicy
from bundlecache.utils import format_last_update, now_utc

logger = structlog.get_logger("services.bundles")


def project_row(row, spec: FilterSpec, app_map: dict) -> dict:
    """Shape one row into the client projection; queued_for_update is set by the caller"""
    bundle = {"id": row.bundle_id}
    for field in BundleField:
        if spec.includes(field):
            bundle[field.value] = field.extract(row, app_map)
    bundle["last_update"] = format_last_update(row.last_update)
    bundle["queued_for_update"] = row.queued_for_update
    return bundle


def get_bundles(
    session,
    ids: Iterable[int],
    filters: Union[str, FilterSpec, None] = None,
    clock=now_utc,
    settings: Optional[dict] = None,
) -> List[dict]:
    """
    Return the cached projection of every known bundle in ``ids``, in the order
    the ids were first requested.

    Stale bundles and ids never seen before are flagged for refresh as a side
    effect; unknown ids are not part of the result.
    """
    spec = filters if isinstance(filters, FilterSpec) else parse_filters(filters)
    ids = list(ids)
    if not ids:
        return []
    settings = settings or load_settings()
    bundles_requested_total.inc(len(ids))

    repository = BundlesRepository(session)
    rows = repository.get_rows(ids, spec)
    app_map = repository.get_app_map(ids) if BundleField.APPS in spec.joins else {}

    position = {}
    for index, bundle_id in enumerate(ids):
        position.setdefault(bundle_id, index)
    rows.sort(key=lambda row: position[row.bundle_id])

    evaluator = StalenessEvaluator(StalenessPolicy.from_settings(settings), clock)
    bundles = []
    stale = []
    for row in rows:
        bundle = project_row(row, spec, app_map)
        if evaluator.should_queue(row):
            if not row.queued_for_update:
                stale.append(row.bundle_id)
            bundle["queued_for_update"] = True
        bundles.append(bundle)

    found = {row.bundle_id for row in rows}
    not_found = [bundle_id for bundle_id in position if bundle_id not in found]

    if stale:
        bundles_queued_total.labels(reason="stale").inc(len(stale))
    if not_found:
        bundles_queued_total.labels(reason="unknown").inc(len(not_found))
    repository.queue_for_update(stale + not_found)

    logger.debug(f"Served {len(bundles)} of {len(position)} bundles ({len(stale)} stale, {len(not_found)} unknown)")
    return bundles


def fetch_bundle(
    session,
    bundle_id: int,
    fetcher: Optional[PageFetcher] = None,
    clock=now_utc,
    settings: Optional[dict] = None,
):
    """
    Refresh one bundle from the Steam store and merge it into the store.

    Raises UpstreamUnavailableException when the page could not be fetched;
    nothing is written in that case. A removed or unparseable page is still a
    successful refresh and clears the queue flag.
    """
    settings = settings or load_settings()
    scraper = BundleScraper(fetcher=fetcher, settings=settings, clock=clock)
    try:
        scraped = scraper.scrape(bundle_id)
    except UpstreamUnavailableException:
        bundle_fetch_total.labels(outcome="upstream_error").inc()
        raise

    prune_stale_apps = settings.get("bundles", {}).get("prune_stale_apps", True)
    BundlesRepository(session).save_scraped(scraped, prune_stale_apps=prune_stale_apps)

    if scraped.removed:
        outcome = "removed"
    elif not scraped.authoritative:
        outcome = "unparseable"
    else:
        outcome = "ok"
    bundle_fetch_total.labels(outcome=outcome).inc()
    logger.info(
        f"Refreshed bundle {bundle_id}",
        outcome=outcome,
        name=scraped.name,
        apps=len(scraped.apps),
    )
    return scraped
