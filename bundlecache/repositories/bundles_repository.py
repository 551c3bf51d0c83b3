"""
Repository for Bundle database operations

Reads are plain SELECTs; writes are dialect upserts so concurrent refreshes of
the same bundle resolve in the store (overwrite on conflict for the bundle row,
ignore on conflict for child rows).
"""

from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

import structlog
from sqlalchemy import delete, exists, select
from sqlalchemy.exc import SQLAlchemyError

from bundlecache.db import dialect_insert
from bundlecache.filters import BundleField, FilterSpec
from bundlecache.metrics import track_db_query
from bundlecache.models import Bundle, BundleApp, BundleName

logger = structlog.get_logger("repositories.bundles")


@dataclass
class BundleRow:
    """Raw bundle row as read for a projection"""

    bundle_id: int
    removed: bool
    last_update: int
    queued_for_update: bool
    has_name: bool
    name: Optional[str] = None


def _unique(ids: Iterable[int]) -> List[int]:
    return list(dict.fromkeys(ids))


class BundlesRepository:
    """Repository for Bundle database operations"""

    def __init__(self, session):
        self.session = session

    @track_db_query("bundles_get_rows")
    def get_rows(self, ids: Iterable[int], spec: FilterSpec) -> List[BundleRow]:
        """
        Read the primary rows for the given ids. The name table is joined only
        when names are requested, otherwise name presence comes from an EXISTS.
        Unknown ids are simply missing from the result.
        """
        ids = _unique(ids)
        if not ids:
            return []

        columns = [Bundle.bundle_id, Bundle.removed, Bundle.last_update, Bundle.queued_for_update]
        with_name = BundleField.NAME in spec.joins
        if with_name:
            stmt = select(*columns, BundleName.name).outerjoin(
                BundleName, BundleName.bundle_id == Bundle.bundle_id
            )
        else:
            has_name = exists().where(BundleName.bundle_id == Bundle.bundle_id, BundleName.name != "")
            stmt = select(*columns, has_name.label("has_name"))
        stmt = stmt.where(Bundle.bundle_id.in_(ids))

        rows = []
        for row in self.session.execute(stmt):
            name = row.name if with_name else None
            rows.append(
                BundleRow(
                    bundle_id=row.bundle_id,
                    removed=bool(row.removed),
                    last_update=int(row.last_update or 0),
                    queued_for_update=bool(row.queued_for_update),
                    has_name=bool(name) if with_name else bool(row.has_name),
                    name=name,
                )
            )
        return rows

    @track_db_query("bundles_get_app_map")
    def get_app_map(self, ids: Iterable[int]) -> Dict[int, List[int]]:
        """App ids per bundle id, ascending"""
        ids = _unique(ids)
        if not ids:
            return {}

        stmt = (
            select(BundleApp.bundle_id, BundleApp.app_id)
            .where(BundleApp.bundle_id.in_(ids))
            .order_by(BundleApp.bundle_id, BundleApp.app_id)
        )
        app_map = defaultdict(list)
        for bundle_id, app_id in self.session.execute(stmt):
            app_map[bundle_id].append(app_id)
        return dict(app_map)

    @track_db_query("bundles_queue_for_update")
    def queue_for_update(self, ids: Iterable[int]) -> int:
        """
        Flag the given bundles for refresh in one statement, creating bare rows
        for ids never seen before. Commits its own transaction.
        """
        ids = _unique(ids)
        if not ids:
            return 0

        stmt = dialect_insert(self.session, Bundle).values(
            [
                {"bundle_id": bundle_id, "removed": False, "last_update": 0, "queued_for_update": True}
                for bundle_id in ids
            ]
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["bundle_id"],
            set_={"queued_for_update": stmt.excluded.queued_for_update},
        )
        try:
            self.session.execute(stmt)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Failed to queue {len(ids)} bundles for update: {e}")
            raise
        logger.info(f"Queued {len(ids)} bundles for update")
        return len(ids)

    @track_db_query("bundles_save_scraped")
    def save_scraped(self, scraped, prune_stale_apps: bool = True):
        """
        Merge one scraped bundle and its child rows in a single transaction.

        The bundle row is overwritten, the name is inserted only if absent and
        app pairs are inserted only if absent. With ``prune_stale_apps`` the
        pairs missing from an authoritative scrape are deleted first.
        """
        bundle_id = scraped.bundle_id
        try:
            row = scraped.primary_row()
            stmt = dialect_insert(self.session, Bundle).values(**row)
            stmt = stmt.on_conflict_do_update(
                index_elements=["bundle_id"],
                set_={column: stmt.excluded[column] for column in row if column != "bundle_id"},
            )
            self.session.execute(stmt)

            if scraped.name:
                stmt = dialect_insert(self.session, BundleName).values(bundle_id=bundle_id, name=scraped.name)
                self.session.execute(stmt.on_conflict_do_nothing(index_elements=["bundle_id"]))

            if prune_stale_apps and scraped.authoritative:
                stale = delete(BundleApp).where(BundleApp.bundle_id == bundle_id)
                if scraped.apps:
                    stale = stale.where(BundleApp.app_id.not_in(scraped.apps))
                self.session.execute(stale)

            if scraped.apps:
                stmt = dialect_insert(self.session, BundleApp).values(
                    [{"bundle_id": bundle_id, "app_id": app_id} for app_id in scraped.apps]
                )
                self.session.execute(stmt.on_conflict_do_nothing(index_elements=["bundle_id", "app_id"]))

            self.session.commit()
        except Exception as e:
            self.session.rollback()
            logger.error(f"Rolled back refresh of bundle {bundle_id}: {e}")
            raise

    @track_db_query("bundles_get_queued_ids")
    def get_queued_ids(self, limit: int = None) -> List[int]:
        """Ids waiting for a refresh, least recently refreshed first"""
        stmt = (
            select(Bundle.bundle_id)
            .where(Bundle.queued_for_update.is_(True))
            .order_by(Bundle.last_update, Bundle.bundle_id)
        )
        if limit:
            stmt = stmt.limit(limit)
        return list(self.session.scalars(stmt))

    def get(self, bundle_id: int) -> Optional[Bundle]:
        return self.session.get(Bundle, bundle_id)

    def get_name(self, bundle_id: int) -> Optional[str]:
        return self.session.scalar(select(BundleName.name).where(BundleName.bundle_id == bundle_id))

    def get_app_ids(self, bundle_id: int) -> List[int]:
        return self.get_app_map([bundle_id]).get(bundle_id, [])
