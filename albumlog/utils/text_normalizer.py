"""Text normalization for search queries and index lookups.

Two concerns live here:

1. **Query normalization** -- search-cache keys are built from the
   case-folded, trimmed query text.  There is deliberately no stemming or
   tokenisation: "Abbey Road " and "abbey road" share an entry, while
   "Road Abbey" does not.

2. **Search-term escaping and fuzzy scoring** -- the local title index is
   queried with user text, so RediSearch syntax characters must be escaped,
   and the in-memory store scores titles with rapidfuzz.
"""

import re

from rapidfuzz import fuzz

# Characters with special meaning in RediSearch query syntax.
_REDISEARCH_SPECIAL_RE = re.compile(r"""([.<>!"(){}\[\]^*~?:\\@|%$\-=,;'&/+#])""")


def normalize_query(query: str) -> str:
    """Case-fold and trim *query* for use as a cache key.

    Args:
        query: Raw user query text.

    Returns:
        The normalized query.  Inner whitespace is left untouched.
    """
    return query.strip().casefold()


def escape_search_term(term: str) -> str:
    """Escape RediSearch query-syntax characters in *term*.

    Args:
        term: Raw search text.

    Returns:
        The text with every special character backslash-escaped.
    """
    return _REDISEARCH_SPECIAL_RE.sub(r"\\\1", term)


def title_match_score(term: str, title: str) -> float:
    """Fuzzy substring score (0.0--1.0) of *term* against *title*.

    Uses rapidfuzz ``partial_ratio`` so that a query matching any
    contiguous part of the title scores highly ("abbey" in "Abbey Road").
    """
    if not term or not title:
        return 0.0
    return fuzz.partial_ratio(normalize_query(term), normalize_query(title)) / 100.0
