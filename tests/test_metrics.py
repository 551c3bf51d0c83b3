"""
Tests for the Prometheus metrics module
"""
from prometheus_client import REGISTRY

from bundlecache import metrics
from conftest import seconds_ago


class TestMetricsRegistry:
    """Tests for metric registration"""

    def test_module_metrics_are_registered(self):
        for name in ('bundlecache_bundles_cached', 'bundlecache_bundles_pending', 'bundlecache_bundles_removed'):
            assert REGISTRY.get_sample_value(name) is not None
        assert REGISTRY.get_sample_value('bundlecache_bundles_requested_total') is not None

    def test_series_names_are_unique(self):
        per_collector = [
            {sample.name for family in collector.collect() for sample in family.samples}
            for collector in (
                metrics.db_bundles_cached,
                metrics.db_bundles_pending,
                metrics.db_bundles_removed,
                metrics.bundles_requested_total,
                metrics.bundles_queued_total,
                metrics.bundle_fetch_total,
            )
        ]

        assert sum(len(names) for names in per_collector) == len(set().union(*per_collector))


class TestMetricsEndpoint:
    """Tests for GET /api/metrics"""

    def test_bundle_gauges(self, client, seed_bundle):
        seed_bundle(1, name='Orange Box', last_update=seconds_ago(hours=1))
        seed_bundle(2, queued=True)
        seed_bundle(3, removed=True, queued=True)

        resp = client.get('/api/metrics')

        assert resp.status_code == 200
        assert b'bundlecache_bundles_cached 3.0' in resp.data
        assert b'bundlecache_bundles_pending 2.0' in resp.data
        assert b'bundlecache_bundles_removed 1.0' in resp.data

    def test_queue_counter_by_reason(self, client, seed_bundle):
        seed_bundle(1, name='Orange Box', last_update=seconds_ago(days=30))
        before = REGISTRY.get_sample_value('bundlecache_bundles_queued_total', {'reason': 'unknown'}) or 0

        client.get('/api/bundles?ids=1,99')

        after = REGISTRY.get_sample_value('bundlecache_bundles_queued_total', {'reason': 'unknown'})
        assert after == before + 1
        assert REGISTRY.get_sample_value('bundlecache_bundles_queued_total', {'reason': 'stale'}) >= 1
