"""Provider-agnostic content types for saved items and their enrichment."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

# Sequence number of an item that has not been persisted yet
UNASSIGNED_SEQUENCE = -1

# Titles the metadata step falls back to; enrichment may replace them
PLACEHOLDER_TITLES = frozenset({"Instagram Reel", "Capturing..."})

# Topics that mark an item as not yet enriched
PLACEHOLDER_TOPICS = frozenset({"Uncategorized", "Capturing...", "General"})


class Platform(str, Enum):
    """Source platform of a saved link."""

    INSTAGRAM = "instagram"
    YOUTUBE = "youtube"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class DebugMetadata:
    """Verbatim capture of a metadata extraction, for troubleshooting."""

    og_title: str
    og_description: str
    og_image: str
    author_name: str
    platform_headers: dict[str, str] = field(default_factory=dict)
    raw_response: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "ogTitle": self.og_title,
            "ogDescription": self.og_description,
            "ogImage": self.og_image,
            "authorName": self.author_name,
            "platformHeaders": dict(self.platform_headers),
            "rawResponse": self.raw_response,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DebugMetadata:
        return cls(
            og_title=data.get("ogTitle", ""),
            og_description=data.get("ogDescription", ""),
            og_image=data.get("ogImage", ""),
            author_name=data.get("authorName", ""),
            platform_headers=dict(data.get("platformHeaders") or {}),
            raw_response=data.get("rawResponse", ""),
        )


@dataclass(frozen=True)
class SavedItem:
    """A captured piece of short-form content."""

    id: str
    url: str
    title: str
    description: str
    thumbnail: str
    creator: str
    platform: Platform
    tags: tuple[str, ...]
    topic: str
    summary: str
    date_added: int  # ms since epoch
    sequence_number: int = UNASSIGNED_SEQUENCE
    engagement_score: int = 0
    debug_info: DebugMetadata | None = None
    is_enriching: bool = False

    @property
    def display_topic(self) -> str:
        """Topic shown to the user; placeholder topics read as 'General'."""
        if self.is_enriching or not self.topic:
            return "General"
        return self.topic

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for JSON serialization."""
        return {
            "id": self.id,
            "url": self.url,
            "title": self.title,
            "description": self.description,
            "thumbnail": self.thumbnail,
            "creator": self.creator,
            "platform": self.platform.value,
            "tags": list(self.tags),
            "topic": self.topic,
            "displayTopic": self.display_topic,
            "summary": self.summary,
            "dateAdded": self.date_added,
            "sequenceNumber": self.sequence_number,
            "engagementScore": self.engagement_score,
            "debugInfo": self.debug_info.to_dict() if self.debug_info else None,
            "isEnriching": self.is_enriching,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SavedItem:
        debug = data.get("debugInfo")
        return cls(
            id=data["id"],
            url=data["url"],
            title=data.get("title", ""),
            description=data.get("description", ""),
            thumbnail=data.get("thumbnail", ""),
            creator=data.get("creator", ""),
            platform=Platform(data.get("platform", Platform.UNKNOWN.value)),
            tags=tuple(data.get("tags") or ()),
            topic=data.get("topic", ""),
            summary=data.get("summary", ""),
            date_added=int(data["dateAdded"]),
            sequence_number=int(data.get("sequenceNumber", UNASSIGNED_SEQUENCE)),
            engagement_score=int(data.get("engagementScore") or 0),
            debug_info=DebugMetadata.from_dict(debug) if debug else None,
            is_enriching=bool(data.get("isEnriching", False)),
        )


@dataclass(frozen=True)
class EnrichmentResult:
    """Best-effort public metadata for a URL."""

    title: str
    description: str
    creator: str
    thumbnail: str
    tags: tuple[str, ...]
    topic: str
    summary: str
    platform: Platform
    debug_info: DebugMetadata


@dataclass(frozen=True)
class EnrichmentPatch:
    """Classification returned by the LLM for one item."""

    tags: tuple[str, ...]
    topic: str
    summary: str
    suggested_title: str | None = None
    engagement_score: int = 0
