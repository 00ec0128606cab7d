"""URL hierarchy classification."""

from .classifier import UrlClassifier, classification_path, document_stem
from .rules import LEVEL_RULES, SOURCE_OVERRIDES, LevelRule

__all__ = [
    "LEVEL_RULES",
    "SOURCE_OVERRIDES",
    "LevelRule",
    "UrlClassifier",
    "classification_path",
    "document_stem",
]
