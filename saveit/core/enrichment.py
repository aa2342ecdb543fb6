"""LLM-backed classification of saved items and search queries.

Both calls validate the model's JSON before anything downstream sees it.
A failed call or a reply that does not match the expected shape raises
EnrichmentError / IntentError; callers fall back to the un-enriched item
or to "no intent".
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from saveit.core.llm_providers import LLMError, LLMProvider, parse_json_content
from saveit.core.prompts import get_prompt
from saveit.core.search import SearchIntent
from saveit.providers.content_types import EnrichmentPatch, EnrichmentResult

if TYPE_CHECKING:
    from saveit.core.storage import DB

logger = logging.getLogger(__name__)


class EnrichmentError(Exception):
    """Content enrichment failed or returned malformed data."""


class IntentError(Exception):
    """Search intent extraction failed or returned malformed data."""


def _as_score(value: Any) -> int:
    """Coerce an engagement score that can arrive as int/float/string."""
    if isinstance(value, bool) or value is None:
        return 0
    if isinstance(value, (int, float)):
        return max(int(value), 0)
    if isinstance(value, str):
        trimmed = value.strip().replace(",", "")
        try:
            return max(int(float(trimmed)), 0)
        except ValueError:
            return 0
    return 0


def parse_enrichment(data: Any) -> EnrichmentPatch:
    """Validate a raw enrichment object.

    Raises:
        ValueError: If required fields are missing or have the wrong type.
    """
    if not isinstance(data, dict):
        raise ValueError(f"Enrichment must be an object, got {type(data).__name__}")

    topic = data.get("topic")
    summary = data.get("summary")
    tags = data.get("tags")
    if not isinstance(topic, str) or not topic.strip():
        raise ValueError("'topic' must be a non-empty string")
    if not isinstance(summary, str):
        raise ValueError("'summary' must be a string")
    if not isinstance(tags, list):
        raise ValueError("'tags' must be a list")

    suggested = data.get("suggestedTitle")
    return EnrichmentPatch(
        tags=tuple(t.strip() for t in tags if isinstance(t, str) and t.strip()),
        topic=topic.strip(),
        summary=summary.strip(),
        suggested_title=suggested.strip() if isinstance(suggested, str) and suggested.strip() else None,
        engagement_score=_as_score(data.get("engagementScore")),
    )


async def enrich_content(
    url: str,
    metadata: EnrichmentResult,
    llm: LLMProvider,
    db: DB | None = None,
) -> EnrichmentPatch:
    """Classify captured content: topic, tags, summary, title, engagement.

    Args:
        url: The saved link
        metadata: Public metadata fetched for the link
        llm: Chat provider
        db: Optional DB for custom prompt overrides

    Raises:
        EnrichmentError: If the LLM call fails or the reply is malformed.
    """
    prompt = get_prompt("content_enrichment", db)
    content = prompt.render(
        url=url,
        title=metadata.title,
        description=metadata.description,
        creator=metadata.creator,
        platform=metadata.platform.value,
    )

    try:
        response = await llm.chat(
            messages=[{"role": "user", "content": content}],
            temperature=prompt.temperature,
            max_tokens=prompt.max_tokens,
            json_mode=True,
        )
    except LLMError as e:
        raise EnrichmentError(f"Enrichment call failed: {e}") from e

    try:
        patch = parse_enrichment(parse_json_content(response.content))
    except (json.JSONDecodeError, ValueError) as e:
        logger.warning(f"Failed to parse enrichment response for {url}: {e}")
        raise EnrichmentError("AI enrichment failed.") from e

    logger.info(
        f"Enriched {url}: topic={patch.topic!r}, {len(patch.tags)} tags, "
        f"engagement={patch.engagement_score}"
    )
    return patch


async def get_search_intent(
    query: str,
    llm: LLMProvider,
    db: DB | None = None,
) -> SearchIntent:
    """Turn a plain-English query into keywords, topics, sort and limit.

    Raises:
        IntentError: If the LLM call fails or the reply is malformed.
    """
    prompt = get_prompt("search_intent", db)

    try:
        response = await llm.chat(
            messages=[{"role": "user", "content": prompt.render(query=query)}],
            temperature=prompt.temperature,
            max_tokens=prompt.max_tokens,
            json_mode=True,
        )
    except LLMError as e:
        raise IntentError(f"Intent call failed: {e}") from e

    try:
        return SearchIntent.from_response(parse_json_content(response.content))
    except (json.JSONDecodeError, ValueError) as e:
        logger.warning(f"Failed to parse search intent for {query!r}: {e}")
        raise IntentError("Search intent could not be parsed.") from e
