"""Level rule table and sitemap-document overrides.

Patterns match the lower-cased URL path with any trailing slash removed
(the site root is ``/``). Levels are tested in ascending order and the first
match wins, so a level-1 ``^/portfolio$`` takes the bare section while the
level-8 ``^/portfolio/[^/]+$`` takes its items.
"""

import re
from dataclasses import dataclass
from typing import Dict, Pattern, Tuple


@dataclass(frozen=True)
class LevelRule:
    level: int
    name: str
    patterns: Tuple[Pattern, ...]

    def matches(self, path: str) -> bool:
        return any(pattern.search(path) for pattern in self.patterns)


def _rule(level: int, name: str, *patterns: str) -> LevelRule:
    return LevelRule(level=level, name=name, patterns=tuple(re.compile(p) for p in patterns))


LEVEL_RULES: Tuple[LevelRule, ...] = (
    _rule(
        1, "top sections",
        r"^/$",
        r"^/home$",
        r"^/about(-us)?$",
        r"^/contact(-us)?$",
        r"^/services$",
        r"^/products$",
        r"^/portfolio$",
    ),
    _rule(
        2, "secondary pages",
        r"^/team$",
        r"^/careers$",
        r"^/pricing$",
        r"^/testimonials$",
        r"^/gallery$",
        r"^/shop$",
        r"^/events$",
    ),
    _rule(
        3, "content hubs",
        r"^/blog$",
        r"^/news$",
        r"^/faq$",
        r"^/blog/categor(y|ies)/[^/]+$",
    ),
    _rule(
        4, "articles",
        r"^/blog/[^/]+$",
        r"^/news/[^/]+$",
        r"^/events/[^/]+$",
        r"^/post/[^/]+$",
        r"^/article/[^/]+$",
    ),
    _rule(
        5, "taxonomy and archives",
        r"^/(blog/)?tags?/[^/]+$",
        r"^/(blog/)?archives?(/.*)?$",
        r"^/author/[^/]+$",
    ),
    _rule(
        6, "services and booking",
        r"^/services/[^/]+$",
        r"^/service-page/[^/]+$",
        r"^/book-online(/.*)?$",
        r"^/booking(/.*)?$",
    ),
    _rule(
        7, "legal",
        r"^/(legal|terms|terms-of-service|terms-and-conditions|privacy|privacy-policy"
        r"|cookie-policy|disclaimer|accessibility)$",
        r"^/legal/.+$",
    ),
    _rule(
        8, "portfolio and product items",
        r"^/portfolio/[^/]+$",
        r"^/products?/[^/]+$",
        r"^/product-page/[^/]+$",
        r"^/projects?/[^/]+$",
        r"^/gallery/[^/]+$",
    ),
    _rule(
        9, "utility",
        r"^/(search|cart|checkout|account|login|signup|sitemap)(/.*)?$",
        r"^/members?(/.*)?$",
    ),
)

# Sitemap document stem -> level. A URL listed in one of these documents
# takes this level regardless of its path.
SOURCE_OVERRIDES: Dict[str, int] = {
    "pages": 1,
    "blog-categories": 3,
    "blog-posts": 4,
    "booking-services": 6,
    "portfolio": 8,
}
