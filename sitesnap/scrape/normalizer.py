"""URL validation and canonicalization.

Every URL entering the pipeline passes through ``normalize`` so that
discovery, dedupe and snapshot keys agree on one spelling per page.

Examples:
    >>> normalize("www.example.com/x")
    'https://example.com/x'
    >>> parse("example.com")
    ParsedUrl(host='example.com', path='/')
"""

import re
from typing import Any, NamedTuple
from urllib.parse import urlsplit, urlunsplit

from sitesnap.core.errors import MalformedUrl

DEFAULT_SCHEME = "https"

_URL_PATTERN = re.compile(
    r"^(?:https?://)?"              # optional scheme
    r"(?:[\w-]+\.)+[a-z]{2,}"       # host with at least one dot and a tld
    r"(?::\d{1,5})?"                # optional port
    r"(?:/[\w\-./?%&=,#+~:;@!]*)?$",  # optional path
    re.IGNORECASE,
)


class ParsedUrl(NamedTuple):
    host: str
    path: str


def is_valid(url: Any) -> bool:
    """
    Check whether ``url`` looks like an absolute web URL.

    Args:
        url: Candidate value (any type)

    Returns:
        True for strings of the form ``scheme?://host(.tld)+(/path)?``
    """
    if not isinstance(url, str):
        return False
    url = url.strip()
    if not url:
        return False
    return bool(_URL_PATTERN.match(url))


def normalize(url: Any) -> str:
    """
    Canonicalize a URL.

    Adds ``https://`` when the scheme is missing, lower-cases scheme and host
    and strips leading ``www.`` labels. An empty path becomes ``/`` so the
    site root has one spelling. Path, query and fragment are otherwise kept.

    Args:
        url: Raw URL string

    Returns:
        Canonical URL

    Raises:
        MalformedUrl: If the input is not a valid URL
    """
    if not is_valid(url):
        raise MalformedUrl(url)

    url = url.strip()
    if "://" not in url:
        url = f"{DEFAULT_SCHEME}://{url}"

    parts = urlsplit(url)
    host = parts.netloc.lower()
    while host.startswith("www.") and "." in host[4:]:
        host = host[4:]

    return urlunsplit((parts.scheme.lower(), host, parts.path or "/", parts.query, parts.fragment))


def parse(url: Any) -> ParsedUrl:
    """
    Split a URL into host and path.

    Args:
        url: Raw or normalized URL

    Returns:
        ParsedUrl with ``path`` defaulting to ``/``

    Raises:
        MalformedUrl: If no host-like segment is found
    """
    parts = urlsplit(normalize(url))
    if not parts.netloc or "." not in parts.netloc:
        raise MalformedUrl(url, "no host found")
    return ParsedUrl(host=parts.netloc, path=parts.path or "/")


def same_site(url: str, base_url: str) -> bool:
    """
    Check whether ``url`` lives under ``base_url``.

    Both sides are normalized first, so ``http://www.x.com/a`` is under
    ``https://x.com`` only when the schemes match after normalization.
    Invalid URLs are never under any base.
    """
    try:
        candidate = normalize(url)
        base = normalize(base_url).rstrip("/")
    except MalformedUrl:
        return False

    if not candidate.startswith(base):
        return False
    rest = candidate[len(base):]
    return rest == "" or rest[0] in "/?#"


def strip_fragment(url: str) -> str:
    """Drop the ``#fragment`` part of a URL."""
    return url.split("#", 1)[0]
