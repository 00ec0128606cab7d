"""Tests for the HTTP fetcher - no network access.

requests.Session.get is patched; sleeping is replaced by a recorder.
"""

import threading
from unittest.mock import MagicMock, patch

import pytest
import requests

from sitesnap.config import SitesnapConfig
from sitesnap.core.errors import TerminalFetchError, TransientFetchError
from sitesnap.core.models import DESCRIPTION_ERROR, TITLE_ERROR
from sitesnap.scrape.fetcher import PageFetcher, classify_status
from sitesnap.scrape.metadata import HttpMetadataFetcher

URL = "https://example.com/sitemap.xml"


def response(status_code=200, body=b"<urlset></urlset>"):
    mock = MagicMock(spec=requests.Response)
    mock.status_code = status_code
    mock.content = body
    mock.text = body.decode("utf-8")
    return mock


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def fetcher(sleeps):
    config = SitesnapConfig(max_retries=3, backoff_base=0.5, timeout=5)
    return PageFetcher(config, sleep=sleeps.append)


class TestClassifyStatus:
    """Test HTTP status mapping."""

    def test_success(self):
        assert classify_status(URL, 200) is None
        assert classify_status(URL, 301) is None

    @pytest.mark.parametrize("status", [429, 500, 502, 503, 504])
    def test_transient(self, status):
        assert isinstance(classify_status(URL, status), TransientFetchError)

    @pytest.mark.parametrize("status", [400, 403, 404, 410])
    def test_terminal(self, status):
        error = classify_status(URL, status)
        assert isinstance(error, TerminalFetchError)
        assert error.status_code == status


class TestFetchRetries:
    """Test retry and backoff behavior."""

    def test_success_first_try(self, fetcher, sleeps):
        with patch("requests.Session.get", return_value=response()) as mock_get:
            result = fetcher.fetch(URL)

        assert result.success
        assert result.content == b"<urlset></urlset>"
        assert result.attempts == 1
        assert sleeps == []
        mock_get.assert_called_once_with(URL, timeout=5, allow_redirects=True)

    def test_503_exhausts_retries(self, fetcher, sleeps):
        with patch("requests.Session.get", return_value=response(503)) as mock_get:
            result = fetcher.fetch(URL)

        assert not result.success
        assert result.attempts == 3
        assert mock_get.call_count == 3
        assert isinstance(result.error, TransientFetchError)
        assert not result.reached
        # Linear backoff between attempts, none after the last
        assert sleeps == [0.5, 1.0]

    def test_recovers_after_transient_failure(self, fetcher, sleeps):
        with patch("requests.Session.get", side_effect=[response(500), response(200)]):
            result = fetcher.fetch(URL)

        assert result.success
        assert result.attempts == 2
        assert sleeps == [0.5]

    def test_404_is_terminal(self, fetcher, sleeps):
        with patch("requests.Session.get", return_value=response(404)) as mock_get:
            result = fetcher.fetch(URL)

        assert not result.success
        assert result.not_found
        assert result.reached
        assert result.status_code == 404
        assert mock_get.call_count == 1
        assert sleeps == []

    def test_transport_errors_are_retried(self, fetcher, sleeps):
        errors = [requests.exceptions.ConnectionError("refused"), requests.exceptions.Timeout("slow")]
        with patch("requests.Session.get", side_effect=errors + [response()]):
            result = fetcher.fetch(URL)

        assert result.success
        assert result.attempts == 3

    def test_get_raises_typed_errors(self, fetcher):
        with patch("requests.Session.get", return_value=response(403)):
            with pytest.raises(TerminalFetchError):
                fetcher.get(URL)
        with patch("requests.Session.get", side_effect=requests.exceptions.Timeout("slow")):
            with pytest.raises(TransientFetchError, match="timeout"):
                fetcher.get(URL)

    def test_user_agent_header(self):
        fetcher = PageFetcher(SitesnapConfig(user_agent="test-agent/1.0"))
        assert fetcher.session.headers["User-Agent"] == "test-agent/1.0"

    def test_session_per_thread(self):
        fetcher = PageFetcher(SitesnapConfig(user_agent="test-agent/1.0"))
        seen = []
        worker = threading.Thread(target=lambda: seen.append(fetcher.session))
        worker.start()
        worker.join()

        assert fetcher.session is fetcher.session
        assert seen[0] is not fetcher.session
        assert seen[0].headers["User-Agent"] == "test-agent/1.0"

        with patch("requests.Session.close") as mock_close:
            fetcher.close()
        assert mock_close.call_count == 2

    def test_injected_session_is_shared(self):
        session = requests.Session()
        fetcher = PageFetcher(SitesnapConfig(user_agent="test-agent/1.0"), session=session)
        seen = []
        worker = threading.Thread(target=lambda: seen.append(fetcher.session))
        worker.start()
        worker.join()

        assert seen == [session]
        assert fetcher.session is session
        assert session.headers["User-Agent"] == "test-agent/1.0"


class TestHttpMetadataFetcher:
    """Test the default metadata collaborator."""

    def test_extracts_metadata(self, fetcher):
        html = b"<html><head><title>Hello</title></head><body><h1>Hi</h1></body></html>"
        with patch("requests.Session.get", return_value=response(body=html)):
            metadata = HttpMetadataFetcher(fetcher)("https://example.com/")

        assert metadata.title == "Hello"
        assert metadata.header_tags["H1"] == ["Hi"]

    def test_failed_fetch_yields_error_sentinels(self, fetcher):
        with patch("requests.Session.get", return_value=response(500)):
            metadata = HttpMetadataFetcher(fetcher)("https://example.com/")

        assert metadata.title == TITLE_ERROR
        assert metadata.description == DESCRIPTION_ERROR
