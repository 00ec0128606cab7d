"""Sitesnap package exports.

Keep package import lightweight by lazily importing heavy modules.
"""

from typing import TYPE_CHECKING, Any

__version__ = "1.2.0"
__author__ = "sitesnap contributors"

if TYPE_CHECKING:
    from .classify import UrlClassifier
    from .config import SitesnapConfig
    from .pipeline import BatchPipeline
    from .snapshot import SnapshotStore

__all__ = ["BatchPipeline", "SitesnapConfig", "SnapshotStore", "UrlClassifier", "build_pipeline"]


def __getattr__(name: str) -> Any:
    """Lazily resolve top-level exports."""
    if name == "SitesnapConfig":
        from .config import SitesnapConfig

        return SitesnapConfig

    if name == "UrlClassifier":
        from .classify import UrlClassifier

        return UrlClassifier

    if name == "SnapshotStore":
        from .snapshot import SnapshotStore

        return SnapshotStore

    if name in {"BatchPipeline", "build_pipeline"}:
        from .pipeline import BatchPipeline, build_pipeline

        return BatchPipeline if name == "BatchPipeline" else build_pipeline

    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
