"""Tests for the Sitesnap error hierarchy."""

from sitesnap.core.errors import (
    ConfigurationError,
    DiscoveryFailed,
    FetchError,
    InvalidConfigError,
    InvalidInputError,
    InvalidRecord,
    MalformedUrl,
    SitesnapError,
    StorageError,
    TerminalFetchError,
    TransientFetchError,
)


class TestErrorHierarchy:
    """Test exception inheritance."""

    def test_all_errors_inherit_from_sitesnap_error(self):
        errors = [
            MalformedUrl("x"),
            TransientFetchError("https://a.com", "timeout"),
            TerminalFetchError("https://a.com", "not found", 404),
            DiscoveryFailed("https://a.com"),
            InvalidRecord("url"),
            StorageError("disk full"),
            InvalidConfigError("timeout", -1, "must be positive"),
            InvalidInputError("name", "empty"),
        ]
        for error in errors:
            assert isinstance(error, SitesnapError)
            assert isinstance(error, Exception)

    def test_fetch_error_subclasses(self):
        assert issubclass(TransientFetchError, FetchError)
        assert issubclass(TerminalFetchError, FetchError)
        assert issubclass(InvalidConfigError, ConfigurationError)


class TestErrorDetails:
    """Test messages, codes and serialization."""

    def test_to_dict(self):
        error = MalformedUrl("nope", "no host found")
        data = error.to_dict()

        assert data["error"] is True
        assert data["error_code"] == "MALFORMED_URL"
        assert "nope" in data["message"]
        assert data["details"] == {"url": "nope", "reason": "no host found"}

    def test_fetch_error_message_includes_status(self):
        error = TerminalFetchError("https://a.com/x", "not found", status_code=404)
        assert error.message == "Fetching https://a.com/x failed: not found (HTTP 404)"
        assert error.status_code == 404
        assert error.error_code == "TERMINAL_FETCH"

    def test_discovery_failed_details(self):
        error = DiscoveryFailed("https://a.com", attempts=7)
        assert error.details == {"base_url": "https://a.com", "attempts": 7}

    def test_custom_error_code(self):
        error = StorageError("locked", error_code="DB_LOCKED")
        assert error.error_code == "DB_LOCKED"
        assert StorageError("x").error_code == "STORAGE_ERROR"
