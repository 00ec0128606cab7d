"""Core types and errors shared across Sitesnap."""

from .errors import (
    SitesnapError,
    MalformedUrl,
    FetchError,
    TransientFetchError,
    TerminalFetchError,
    DiscoveryFailed,
    InvalidRecord,
    StorageError,
    ConfigurationError,
    InvalidConfigError,
    InvalidInputError,
)
from .models import DiscoveredUrl, PageMetadata, UrlRecord

__all__ = [
    "SitesnapError",
    "MalformedUrl",
    "FetchError",
    "TransientFetchError",
    "TerminalFetchError",
    "DiscoveryFailed",
    "InvalidRecord",
    "StorageError",
    "ConfigurationError",
    "InvalidConfigError",
    "InvalidInputError",
    "DiscoveredUrl",
    "PageMetadata",
    "UrlRecord",
]
