"""
Tests for the store scraper
"""
from unittest.mock import MagicMock

import pytest
import requests

from bundlecache.exceptions import UpstreamUnavailableException
from bundlecache.scraper import (
    BundleScraper,
    ParsedPage,
    RequestsPageFetcher,
    bundle_url,
    bundle_url_pattern,
    parse_app_ids,
)
from conftest import NOW, FakePageFetcher, bundle_page
from bundlecache.utils import to_epoch


def make_response(text='', status_code=200, url='https://store.steampowered.com/bundle/42?cc=us&l=en'):
    response = MagicMock()
    response.text = text
    response.status_code = status_code
    response.url = url
    return response


class TestBundleUrl:
    """Tests for store URL helpers"""

    def test_bundle_url(self, settings):
        assert bundle_url(42, settings) == 'https://store.steampowered.com/bundle/42?cc=us&l=en'

    def test_pattern_matches_own_page(self, settings):
        pattern = bundle_url_pattern(42, settings)

        assert pattern.search('https://store.steampowered.com/bundle/42?cc=us&l=en')
        assert pattern.search('https://store.steampowered.com/bundle/42/Valve_Complete_Pack/')

    def test_pattern_rejects_other_pages(self, settings):
        pattern = bundle_url_pattern(42, settings)

        assert not pattern.search('https://store.steampowered.com/')
        assert not pattern.search('https://store.steampowered.com/bundle/420/')
        assert not pattern.search('https://store.steampowered.com/app/42/')


class TestParseAppIds:
    """Tests for parse_app_ids"""

    def test_first_seen_order_without_duplicates(self):
        page = FakePageFetcher(html=bundle_page(app_ids=(620, 400, 620))).fetch_page('u')

        assert parse_app_ids(page) == [620, 400]

    def test_comma_separated_attribute(self):
        html = '<div data-ds-appid="10,20"></div><div data-ds-appid="20"></div><div data-ds-appid="x"></div>'
        page = FakePageFetcher(html=html).fetch_page('u')

        assert parse_app_ids(page) == [10, 20]

    def test_non_ascii_digits_are_skipped(self):
        html = '<div data-ds-appid="²"></div><div data-ds-appid="٣,30"></div>'
        page = FakePageFetcher(html=html).fetch_page('u')

        assert parse_app_ids(page) == [30]


class TestBundleScraper:
    """Tests for BundleScraper.scrape"""

    def test_parseable_page(self, settings, clock):
        fetcher = FakePageFetcher(html=bundle_page('Orange Box', (220, 300, 380)))

        scraped = BundleScraper(fetcher, settings, clock).scrape(42)

        assert fetcher.requested == ['https://store.steampowered.com/bundle/42?cc=us&l=en']
        assert scraped.bundle_id == 42
        assert scraped.removed is False
        assert scraped.name == 'Orange Box'
        assert scraped.apps == [220, 300, 380]
        assert scraped.last_update == to_epoch(NOW)
        assert scraped.queued_for_update is False
        assert scraped.authoritative is True

    def test_redirect_marks_removed(self, settings, clock):
        fetcher = FakePageFetcher(final_url='https://store.steampowered.com/')

        scraped = BundleScraper(fetcher, settings, clock).scrape(42)

        assert scraped.removed is True
        assert scraped.name is None
        assert scraped.apps == []
        assert scraped.authoritative is True

    def test_page_without_header_is_incomplete(self, settings, clock):
        fetcher = FakePageFetcher(html='<html><body><div data-ds-appid="400"></div></body></html>')

        scraped = BundleScraper(fetcher, settings, clock).scrape(42)

        assert scraped.removed is False
        assert scraped.name is None
        assert scraped.apps == []
        assert scraped.authoritative is False

    def test_blank_header_gives_no_name(self, settings, clock):
        fetcher = FakePageFetcher(html=bundle_page(name='  '))

        scraped = BundleScraper(fetcher, settings, clock).scrape(42)

        assert scraped.name is None
        assert scraped.apps == [400, 620]

    def test_nested_header_keeps_spacing(self, settings, clock):
        fetcher = FakePageFetcher(html=bundle_page(name='Buy <span>Valve</span> Complete Pack'))

        scraped = BundleScraper(fetcher, settings, clock).scrape(42)

        assert scraped.name == 'Buy Valve Complete Pack'

    def test_header_whitespace_is_trimmed(self, settings, clock):
        fetcher = FakePageFetcher(html=bundle_page(name='\n   Orange Box \n'))

        assert BundleScraper(fetcher, settings, clock).scrape(42).name == 'Orange Box'

    def test_no_content_raises(self, settings, clock):
        fetcher = FakePageFetcher(fail=True)

        with pytest.raises(UpstreamUnavailableException) as exc_info:
            BundleScraper(fetcher, settings, clock).scrape(42)

        assert exc_info.value.status_code == 503
        assert exc_info.value.url.endswith('/bundle/42?cc=us&l=en')


class TestRequestsPageFetcher:
    """Tests for RequestsPageFetcher with a mocked HTTP session"""

    def make_fetcher(self, **kwargs):
        session = requests.Session()
        session.get = MagicMock(**kwargs)
        return RequestsPageFetcher(timeout=5, user_agent='tests', session=session), session

    def test_sends_age_gate_cookies(self):
        fetcher, session = self.make_fetcher()

        assert session.cookies.get('birthtime') == '0'
        assert session.cookies.get('mature_content') == '1'
        assert session.headers['User-Agent'] == 'tests'

    def test_parses_page_and_keeps_final_url(self):
        final_url = 'https://store.steampowered.com/bundle/42/Valve_Complete_Pack/'
        fetcher, session = self.make_fetcher(return_value=make_response(bundle_page(), url=final_url))

        page = fetcher.fetch_page('https://store.steampowered.com/bundle/42?cc=us&l=en')

        assert isinstance(page, ParsedPage)
        assert page.has_content
        assert page.url == final_url
        assert page.select_one('.pageheader').get_text() == 'Valve Complete Pack'
        session.get.assert_called_once_with(
            'https://store.steampowered.com/bundle/42?cc=us&l=en', timeout=5, allow_redirects=True
        )

    def test_connection_error_gives_empty_page(self):
        fetcher, _ = self.make_fetcher(side_effect=requests.ConnectionError('refused'))

        page = fetcher.fetch_page('https://store.steampowered.com/bundle/42')

        assert not page.has_content
        assert page.select_one('.pageheader') is None

    @pytest.mark.parametrize('text,status_code', [('<html>oops</html>', 503), ('   ', 200)])
    def test_server_error_or_blank_body_gives_empty_page(self, text, status_code):
        fetcher, _ = self.make_fetcher(return_value=make_response(text, status_code))

        assert not fetcher.fetch_page('https://store.steampowered.com/bundle/42').has_content

    def test_from_settings(self, settings):
        settings['store']['timeout'] = 3

        fetcher = RequestsPageFetcher.from_settings(settings)

        assert fetcher.timeout == 3
        assert fetcher.session.headers['User-Agent'] == settings['store']['user_agent']
