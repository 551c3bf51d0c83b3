"""
Staleness policy for cached bundles.

A record is requeued when it is already queued, when its last refresh is older
than ``max_age``, or when it looks incomplete (no name, not removed) and is
older than ``nameless_max_age``. Removed records therefore age slowly while
records that scraped without a name are retried sooner.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from bundlecache.utils import now_utc, to_epoch

Clock = Callable[[], datetime]


@dataclass(frozen=True)
class StalenessPolicy:
    max_age: timedelta = timedelta(days=6)
    nameless_max_age: timedelta = timedelta(days=1)

    @classmethod
    def from_settings(cls, settings: dict) -> "StalenessPolicy":
        staleness = settings.get("staleness", {})
        return cls(
            max_age=timedelta(days=staleness.get("max_age_days", 6)),
            nameless_max_age=timedelta(days=staleness.get("nameless_max_age_days", 1)),
        )


class StalenessEvaluator:
    """Decides whether a cached row must be refreshed, relative to one instant"""

    def __init__(self, policy: Optional[StalenessPolicy] = None, clock: Clock = now_utc):
        self.policy = policy or StalenessPolicy()
        self.clock = clock
        self.now = to_epoch(clock())

    def age(self, last_update: int) -> int:
        """Age in seconds of a record last refreshed at ``last_update`` (epoch seconds)"""
        return self.now - int(last_update or 0)

    def is_stale(self, last_update: int, has_name: bool, removed: bool) -> bool:
        age = self.age(last_update)
        if age > self.policy.max_age.total_seconds():
            return True
        return not has_name and not removed and age > self.policy.nameless_max_age.total_seconds()

    def should_queue(self, row) -> bool:
        """
        Whether the row should be queued now. Rows that are already queued pass
        through unchanged.
        """
        if row.queued_for_update:
            return True
        return self.is_stale(row.last_update, row.has_name, row.removed)
