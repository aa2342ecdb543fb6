"""Prompt Registry for LLM calls.

Central management of the prompt templates used for enrichment and
search intent extraction. Prompts can be customized through the API and
are stored in the database. If no custom prompt exists, the default from
this file is used.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from saveit.core.storage import DB


@dataclass
class PromptTemplate:
    """A prompt template with metadata."""

    key: str
    name: str
    description: str
    template: str
    variables: list[str]
    temperature: float
    max_tokens: int
    is_custom: bool = False

    def render(self, **values: object) -> str:
        return self.template.format(**values)


DEFAULT_PROMPTS: dict[str, dict] = {
    "content_enrichment": {
        "name": "Content enrichment",
        "description": "Classifies a freshly captured link: topic, tags, summary, "
        "suggested title and engagement score. Called once per saved item.",
        "template": """Analyze this social media content for my personal memory app 'SaveIt'.

SOURCE URL: {url}
REAL METADATA CAPTURED:
- Title: {title}
- Description: {description}
- Creator: {creator}
- Platform: {platform}

TASK:
1. Categorize into a high-level CANONICAL topic (Finance, Fitness, Food, Tech, Travel, Fashion, Comedy).
2. Generate 5-8 semantic tags.
3. Provide a 1-sentence summary.
4. Suggest a descriptive title if the original is generic.
5. Extract an engagement score. Look for phrases like "718K likes" or "2M views" in the description and convert to a plain integer (e.g. 718000). If not found, return 0.

STRICT COMPLIANCE: Use the provided REAL METADATA.

Answer with a JSON object:
{{"topic": "...", "tags": ["...", "..."], "summary": "...", "suggestedTitle": "...", "engagementScore": 0}}""",
        "variables": ["url", "title", "description", "creator", "platform"],
        "temperature": 0.3,
        "max_tokens": 400,
    },
    "search_intent": {
        "name": "Search intent",
        "description": "Turns a plain-English library query into keywords, topics, "
        "sort order and result limit. Called after the user stops typing.",
        "template": """The user is searching their memory with: "{query}".
Extract:
- keywords: meaningful terms
- topics: canonical categories
- sortBy: 'date-desc' (recent/newest), 'engagement-desc' (best/most liked/popular), 'sequence-desc' (last saved), 'date-asc' (oldest).
- limit: if the user asks for "top 3" or "the last one", set a limit.

Examples:
- "last finance reel" -> sortBy: 'sequence-desc', limit: 1, topics: ["Finance"]
- "most liked recipes" -> sortBy: 'engagement-desc', topics: ["Food"]
- "tech news from today" -> sortBy: 'date-desc', keywords: ["news"], topics: ["Tech"]

Answer with a JSON object:
{{"keywords": [], "topics": [], "sortBy": "date-desc", "limit": null}}""",
        "variables": ["query"],
        "temperature": 0.0,
        "max_tokens": 200,
    },
}


def get_default_prompt(key: str) -> PromptTemplate | None:
    """Get a default prompt template by key."""
    if key not in DEFAULT_PROMPTS:
        return None

    data = DEFAULT_PROMPTS[key]
    return PromptTemplate(
        key=key,
        name=data["name"],
        description=data["description"],
        template=data["template"],
        variables=data["variables"],
        temperature=data["temperature"],
        max_tokens=data["max_tokens"],
        is_custom=False,
    )


def get_prompt(key: str, db: DB | None = None) -> PromptTemplate | None:
    """Get a prompt template, checking for a custom version first.

    Args:
        key: The prompt key (e.g., 'search_intent')
        db: Optional DB to check for custom prompts

    Returns:
        PromptTemplate with either custom or default values,
        or None if the key doesn't exist.
    """
    default = get_default_prompt(key)
    if default is None or db is None:
        return default

    custom = db.get_custom_prompt(key)
    if custom is None:
        return default

    return PromptTemplate(
        key=key,
        name=default.name,
        description=default.description,
        template=custom.get("template", default.template),
        variables=default.variables,  # Variables are fixed
        temperature=custom.get("temperature", default.temperature),
        max_tokens=custom.get("max_tokens", default.max_tokens),
        is_custom=True,
    )


def list_prompts(db: DB | None = None) -> list[PromptTemplate]:
    """List all prompts with their current values (custom or default)."""
    return [p for p in (get_prompt(key, db) for key in DEFAULT_PROMPTS) if p]


def save_prompt(
    key: str,
    template: str,
    temperature: float,
    max_tokens: int,
    db: DB,
) -> bool:
    """Save a custom prompt to the database.

    Returns:
        True if saved, False if the key doesn't exist
    """
    if key not in DEFAULT_PROMPTS:
        return False

    db.save_custom_prompt(key, template, temperature, max_tokens)
    return True


def reset_prompt(key: str, db: DB) -> bool:
    """Reset a prompt to its default by removing the custom version."""
    if key not in DEFAULT_PROMPTS:
        return False

    db.delete_custom_prompt(key)
    return True
