"""Search and ranking over saved items.

Pipeline (pure, synchronous):
1. FILTER: active category, then all-words match with intent fallback
2. RANK: sort by the intent's sort mode (default: newest first)
3. LIMIT: truncate to the intent's limit

Usage:
    results = search_items(items, "all", "last finance reel", intent)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Sequence

from saveit.core.topics import ALL_FILTER_ID, normalize_topic
from saveit.providers.content_types import SavedItem


class SortMode(str, Enum):
    """Ordering requested by a search intent."""

    DATE_DESC = "date-desc"
    DATE_ASC = "date-asc"
    ENGAGEMENT_DESC = "engagement-desc"
    SEQUENCE_DESC = "sequence-desc"


DEFAULT_SORT_MODE = SortMode.DATE_DESC

CHRONOLOGICAL_MODES = {SortMode.DATE_DESC, SortMode.DATE_ASC}

SORT_MODE_ALIASES = {
    "recency-descending": SortMode.DATE_DESC,
    "recency-ascending": SortMode.DATE_ASC,
    "engagement-descending": SortMode.ENGAGEMENT_DESC,
    "save-order-descending": SortMode.SEQUENCE_DESC,
}


def parse_sort_mode(value: Any) -> SortMode | None:
    """Parse a sort mode name, returning None for unknown values."""
    if not isinstance(value, str):
        return None
    value = value.strip().lower()
    if value in SORT_MODE_ALIASES:
        return SORT_MODE_ALIASES[value]
    try:
        return SortMode(value)
    except ValueError:
        return None


def _parse_limit(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    limit = int(value)
    return limit if limit > 0 else None


def _string_list(data: dict[str, Any], key: str) -> tuple[str, ...]:
    value = data.get(key)
    if not isinstance(value, list):
        raise ValueError(f"'{key}' must be a list, got {type(value).__name__}")
    return tuple(v for v in value if isinstance(v, str))


@dataclass(frozen=True)
class SearchIntent:
    """Structured interpretation of a free-text query."""

    keywords: tuple[str, ...] = ()
    topics: tuple[str, ...] = ()
    sort_by: SortMode | None = None
    limit: int | None = None
    intent: str = ""

    @property
    def resolved_sort_mode(self) -> SortMode:
        return self.sort_by or DEFAULT_SORT_MODE

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for JSON serialization."""
        return {
            "keywords": list(self.keywords),
            "topics": list(self.topics),
            "sortBy": self.sort_by.value if self.sort_by else None,
            "limit": self.limit,
            "intent": self.intent,
        }

    @classmethod
    def from_response(cls, data: Any) -> SearchIntent:
        """Validate a raw intent object as returned by the LLM.

        'keywords' and 'topics' are required lists; non-string entries are
        dropped. An unknown 'sortBy' is treated as unset and a
        non-positive or non-numeric 'limit' as unbounded.

        Raises:
            ValueError: If the object does not match the intent schema.
        """
        if not isinstance(data, dict):
            raise ValueError(f"Intent must be an object, got {type(data).__name__}")
        intent = data.get("intent")
        return cls(
            keywords=_string_list(data, "keywords"),
            topics=_string_list(data, "topics"),
            sort_by=parse_sort_mode(data.get("sortBy")),
            limit=_parse_limit(data.get("limit")),
            intent=intent if isinstance(intent, str) else "",
        )


def tokenize(query: str) -> list[str]:
    """Split a query into lowercase whitespace-separated tokens."""
    return query.lower().split()


def _haystack(item: SavedItem) -> str:
    return f"{item.title} {item.topic} {item.summary} {item.creator} {' '.join(item.tags)}".lower()


def _matches_category(item: SavedItem, category: str) -> bool:
    if normalize_topic(item.topic).lower() == category:
        return True
    return any(normalize_topic(t).lower() == category for t in item.tags)


def _matches_intent(item: SavedItem, haystack: str, intent: SearchIntent) -> bool:
    if any(k.lower() in haystack for k in intent.keywords):
        return True
    item_topic = normalize_topic(item.topic).lower()
    return any(
        t.lower() in item_topic or normalize_topic(t).lower() == item_topic
        for t in intent.topics
    )


def filter_items(
    items: Sequence[SavedItem],
    category: str,
    query: str,
    intent: SearchIntent | None,
) -> list[SavedItem]:
    """Filter items by active category and query text.

    An item passes the text filter when every query token occurs in its
    searchable text. Otherwise, if an intent is present, any intent
    keyword in the text or any intent topic matching the item's
    normalized topic lets it through.

    Returns:
        Order-preserving subsequence of items
    """
    result = list(items)

    category = category.lower()
    if category != ALL_FILTER_ID:
        result = [item for item in result if _matches_category(item, category)]

    words = tokenize(query)
    if not words:
        return result

    filtered = []
    for item in result:
        haystack = _haystack(item)
        if all(word in haystack for word in words):
            filtered.append(item)
        elif intent is not None and _matches_intent(item, haystack, intent):
            filtered.append(item)
    return filtered


def _primary_key(item: SavedItem, mode: SortMode) -> int:
    if mode == SortMode.ENGAGEMENT_DESC:
        return -(item.engagement_score or 0)
    if mode == SortMode.SEQUENCE_DESC:
        return -item.sequence_number
    if mode == SortMode.DATE_ASC:
        return item.date_added
    return -item.date_added


def rank_items(items: Sequence[SavedItem], mode: SortMode | None = None) -> list[SavedItem]:
    """Sort items by the given mode (default: newest first).

    Engagement and save-order modes get a second full sort that breaks
    ties on the primary key by date_added, newest first.
    """
    mode = mode or DEFAULT_SORT_MODE
    result = sorted(items, key=lambda item: _primary_key(item, mode))

    if mode not in CHRONOLOGICAL_MODES:
        result.sort(key=lambda item: (_primary_key(item, mode), -item.date_added))

    return result


def limit_items(items: Sequence[SavedItem], limit: int | None) -> list[SavedItem]:
    """Return the first `limit` items, or all of them if limit is unset or <= 0."""
    if limit is not None and limit > 0:
        return list(items[:limit])
    return list(items)


def search_items(
    items: Sequence[SavedItem],
    category: str,
    query: str,
    intent: SearchIntent | None,
) -> list[SavedItem]:
    """Run filter, rank and limit in order."""
    filtered = filter_items(items, category, query, intent)
    mode = intent.resolved_sort_mode if intent else DEFAULT_SORT_MODE
    ranked = rank_items(filtered, mode)
    return limit_items(ranked, intent.limit if intent else None)
