"""Core exception hierarchy for Sitesnap.

All Sitesnap exceptions inherit from SitesnapError, enabling both specific
and broad exception handling.

Exception Hierarchy:
    SitesnapError (base)
    ├── MalformedUrl - URL fails validation
    ├── FetchError - network issues
    │   ├── TransientFetchError (timeouts, transport, 5xx, 429)
    │   └── TerminalFetchError (404, 403, other 4xx)
    ├── DiscoveryFailed - host unreachable for sitemaps and crawl
    ├── InvalidRecord - record rejected from merge
    ├── StorageError - snapshot store unavailable
    ├── ConfigurationError - config issues
    │   └── InvalidConfigError
    └── InvalidInputError - bad user input
"""

from typing import Any, Dict, Optional


class SitesnapError(Exception):
    """Base exception for all Sitesnap errors.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code (e.g., "MALFORMED_URL")
        details: Optional dict with additional context
    """

    error_code: str = "SITESNAP_ERROR"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        if error_code:
            self.error_code = error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dict for reports and JSON output."""
        return {
            "error": True,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details
        }


class MalformedUrl(SitesnapError):
    """URL is empty, not a string, or has no host."""
    error_code = "MALFORMED_URL"

    def __init__(self, url: Any, reason: str = "not a valid URL"):
        super().__init__(
            f"Malformed URL {url!r}: {reason}",
            details={"url": str(url), "reason": reason}
        )
        self.url = url


# Fetch Errors
class FetchError(SitesnapError):
    """Base class for fetch errors."""
    error_code = "FETCH_ERROR"

    def __init__(self, url: str, reason: str, status_code: Optional[int] = None):
        msg = f"Fetching {url} failed: {reason}"
        if status_code:
            msg += f" (HTTP {status_code})"
        super().__init__(msg, details={"url": url, "reason": reason, "status_code": status_code})
        self.url = url
        self.status_code = status_code


class TransientFetchError(FetchError):
    """Timeout, transport failure or server error. Safe to retry."""
    error_code = "TRANSIENT_FETCH"


class TerminalFetchError(FetchError):
    """Resource missing or forbidden. Retrying will not help."""
    error_code = "TERMINAL_FETCH"


class DiscoveryFailed(SitesnapError):
    """Neither sitemaps nor the crawl fallback could reach the host."""
    error_code = "DISCOVERY_FAILED"

    def __init__(self, base_url: str, attempts: int = 0):
        super().__init__(
            f"Could not discover any pages for {base_url}: host unreachable "
            f"for all sitemap candidates and the crawl fallback.",
            details={"base_url": base_url, "attempts": attempts}
        )
        self.base_url = base_url


class InvalidRecord(SitesnapError):
    """Record is missing a required key field."""
    error_code = "INVALID_RECORD"

    def __init__(self, field: str, record: Any = None):
        super().__init__(
            f"Invalid record: missing required field '{field}'",
            details={"field": field, "record": repr(record)}
        )
        self.field = field


class StorageError(SitesnapError):
    """Snapshot store is unavailable or a write failed."""
    error_code = "STORAGE_ERROR"


# Configuration Errors
class ConfigurationError(SitesnapError):
    """Base class for configuration errors."""
    error_code = "CONFIG_ERROR"


class InvalidConfigError(ConfigurationError):
    """Configuration value is invalid."""
    error_code = "INVALID_CONFIG"

    def __init__(self, config_key: str, value: Any, reason: str):
        super().__init__(
            f"Invalid value for '{config_key}': {reason}",
            details={"config_key": config_key, "value": str(value), "reason": reason}
        )


class InvalidInputError(SitesnapError):
    """User input is invalid."""
    error_code = "INVALID_INPUT"

    def __init__(self, field: str, reason: str):
        super().__init__(
            f"Invalid input for '{field}': {reason}",
            details={"field": field, "reason": reason}
        )
