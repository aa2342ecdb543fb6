"""Topic normalization rules for saved items."""

from __future__ import annotations

from typing import Any, Iterable

from saveit.providers.content_types import PLACEHOLDER_TOPICS, SavedItem

# Ordered (label, triggers) table; the first label whose trigger occurs
# anywhere in the topic wins. Plain substring containment, not words.
CANONICAL_TOPICS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Finance", ("finance", "invest", "money", "trading")),
    ("Fitness", ("gym", "workout", "fitness", "exercise")),
    ("Food", ("recipe", "cooking", "food", "baking", "meal")),
    ("Tech", ("tech", "software", "programming", "ai", "coding")),
    ("Travel", ("travel", "vacation", "trip", "place")),
    ("Fashion", ("fashion", "style", "outfit")),
)

ALL_FILTER_ID = "all"

STATIC_FILTERS: tuple[dict[str, str], ...] = (
    {"id": ALL_FILTER_ID, "label": "All", "icon": "💎"},
)

TOPIC_ICONS = {
    "Finance": "💰",
    "Fitness": "💪",
    "Food": "🍳",
    "Tech": "💻",
    "Travel": "📍",
    "Fashion": "👗",
    "Comedy": "😂",
    "Inspiration": "✨",
    "Art": "🎨",
    "Music": "🎵",
}
DEFAULT_TOPIC_ICON = "🔖"


def normalize_topic(topic: str) -> str:
    """Map a free-form topic to a canonical label.

    Rules (in order):
    1. Lowercase and strip whitespace
    2. First CANONICAL_TOPICS entry with a trigger substring -> its label
    3. Default: the original string with only the first letter capitalized

    Args:
        topic: Raw topic from enrichment or a search intent

    Returns:
        Canonical topic label
    """
    t = topic.lower().strip()
    for label, triggers in CANONICAL_TOPICS:
        if any(trigger in t for trigger in triggers):
            return label
    return topic[:1].upper() + topic[1:].lower()


def category_filters(items: Iterable[SavedItem]) -> list[dict[str, Any]]:
    """Build the category filter bar for a set of items.

    The static 'all' filter comes first, followed by one filter per
    distinct normalized topic in first-seen order. Empty and placeholder
    topics are skipped.
    """
    labels: list[str] = []
    for item in items:
        if not item.topic or item.topic in PLACEHOLDER_TOPICS:
            continue
        label = normalize_topic(item.topic)
        if label not in labels:
            labels.append(label)

    filters: list[dict[str, Any]] = [dict(f) for f in STATIC_FILTERS]
    for label in labels:
        filters.append({
            "id": label.lower(),
            "label": label,
            "icon": TOPIC_ICONS.get(label, DEFAULT_TOPIC_ICON),
        })
    return filters
