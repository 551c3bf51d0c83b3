"""
Pytest fixtures and configuration for bundlecache tests
"""
import os
import tempfile

# Keep the settings file written by load_settings() out of the source tree
os.environ.setdefault('BUNDLECACHE_CONFIG_DIR', tempfile.mkdtemp(prefix='bundlecache-tests-'))

from datetime import datetime, timedelta, timezone

import pytest
from bs4 import BeautifulSoup

from bundlecache.scraper import PageFetcher, ParsedPage
from bundlecache.settings import merge_settings
from bundlecache.utils import to_epoch

NOW = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


def bundle_page(name='Valve Complete Pack', app_ids=(400, 620)):
    """Minimal store bundle page with a header and one tile per app"""
    tiles = ''.join(f'<div class="tab_item" data-ds-appid="{app_id}"></div>' for app_id in app_ids)
    return f'<html><body><div class="page_title_area"><h2 class="pageheader">{name}</h2></div>{tiles}</body></html>'


def seconds_ago(**delta):
    return to_epoch(NOW - timedelta(**delta))


class FakePageFetcher(PageFetcher):
    """Serves one canned page for every url, optionally redirected or failing"""

    def __init__(self, html=None, final_url=None, fail=False, failing_urls=()):
        self.html = bundle_page() if html is None else html
        self.final_url = final_url
        self.fail = fail
        self.failing_urls = failing_urls
        self.requested = []

    def fetch_page(self, url):
        self.requested.append(url)
        if self.fail or any(fragment in url for fragment in self.failing_urls):
            return ParsedPage(url=url)
        return ParsedPage(url=self.final_url or url, document=BeautifulSoup(self.html, 'html.parser'))


@pytest.fixture(scope='session')
def app_settings():
    """Settings overrides for tests"""
    return {
        'database': {'uri': 'sqlite://'},
    }


@pytest.fixture
def settings(app_settings):
    return merge_settings(app_settings)


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def app(app_settings):
    from bundlecache.app import create_app
    from bundlecache.db import db

    _app = create_app(config={'TESTING': True}, settings=app_settings)
    with _app.app_context():
        yield _app
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture
def session(app):
    from bundlecache.db import db

    return db.session


@pytest.fixture
def client(app):
    with app.test_client() as client:
        yield client


@pytest.fixture
def seed_bundle(session):
    """Insert a bundle with its child rows directly through the ORM"""
    from bundlecache.models import Bundle, BundleApp, BundleName

    def _seed(bundle_id, name=None, apps=(), removed=False, last_update=0, queued=False):
        bundle = Bundle(
            bundle_id=bundle_id, removed=removed, last_update=last_update, queued_for_update=queued
        )
        session.add(bundle)
        if name is not None:
            session.add(BundleName(bundle_id=bundle_id, name=name))
        for app_id in apps:
            session.add(BundleApp(bundle_id=bundle_id, app_id=app_id))
        session.commit()
        return bundle

    return _seed


@pytest.fixture
def fake_fetcher():
    return FakePageFetcher()
