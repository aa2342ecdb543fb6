"""Public metadata extraction for social content links.

YouTube exposes an oEmbed endpoint that needs no token. Instagram blocks
direct scraping, so its public tags are read through the microlink.io
metadata proxy. Every failure degrades to a platform-specific fallback;
fetch() never raises.
"""

from __future__ import annotations

import logging
import re
import uuid
from typing import Any

import httpx

from saveit.core.settings import Settings
from saveit.providers.content_types import DebugMetadata, EnrichmentResult, Platform

logger = logging.getLogger(__name__)

YOUTUBE_OEMBED_URL = "https://www.youtube.com/oembed"
MICROLINK_URL = "https://api.microlink.io"

# Topic every freshly fetched item carries until enrichment replaces it
UNCATEGORIZED_TOPIC = "Uncategorized"

FETCH_TIMEOUT = 15.0

# "718K likes, 23K comments - iamcardib on June 1, 2024: ..."
_INSTAGRAM_HANDLE_RE = re.compile(r"-\s+([a-zA-Z0-9_.]+)\s+on")
_INSTAGRAM_REEL_RE = re.compile(r"reel/([^/?]+)")


def detect_platform(url: str) -> Platform:
    """Classify a URL by its host."""
    if "youtube.com" in url or "youtu.be" in url:
        return Platform.YOUTUBE
    if "instagram.com" in url:
        return Platform.INSTAGRAM
    return Platform.UNKNOWN


def placeholder_thumbnail(seed: str | None = None) -> str:
    """Portrait placeholder image for items without a thumbnail."""
    return f"https://picsum.photos/seed/{seed or uuid.uuid4().hex}/400/711"


def _handle(name: str) -> str:
    return "@" + re.sub(r"\s+", "", name).lower()


class MetadataFetcher:
    """Fetches best-effort title/description/creator/thumbnail for a URL."""

    def __init__(self, client: httpx.AsyncClient | None = None, timeout: float = FETCH_TIMEOUT) -> None:
        self._client = client
        self._timeout = timeout

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
                follow_redirects=True,
                headers={
                    "User-Agent": "Mozilla/5.0 (compatible; SaveIt/1.0)",
                    "Accept": "application/json",
                },
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _fetch_youtube(self, url: str) -> dict[str, str] | None:
        client = await self._get_client()
        try:
            response = await client.get(YOUTUBE_OEMBED_URL, params={"url": url, "format": "json"})
            if response.status_code != 200:
                logger.warning(f"YouTube oEmbed returned {response.status_code} for {url}")
                return None
            data = response.json()
            if not isinstance(data, dict):
                raise ValueError(f"oEmbed body is {type(data).__name__}, not an object")
            author = str(data.get("author_name") or "")
            title = str(data.get("title") or "")
            return {
                "title": title,
                "creator": _handle(author),
                "thumbnail": str(data.get("thumbnail_url") or placeholder_thumbnail()),
                "description": f"YouTube Content by {author}: {title}",
            }
        except (httpx.HTTPError, ValueError, TypeError) as e:
            logger.warning(f"YouTube metadata fetch failed for {url}: {e}")
            return None

    async def _fetch_instagram(self, url: str) -> dict[str, str]:
        client = await self._get_client()
        try:
            response = await client.get(MICROLINK_URL, params={"url": url})
            if response.status_code == 200:
                data: dict[str, Any] = response.json().get("data") or {}

                description = data.get("description") or ""
                image = data.get("image") or {}
                images = data.get("images") or []
                thumbnail = (
                    image.get("url")
                    or (images[0].get("url") if images else None)
                    or placeholder_thumbnail(url)
                )

                match = _INSTAGRAM_HANDLE_RE.search(description)
                if match:
                    creator = f"@{match.group(1)}"
                elif data.get("author"):
                    creator = _handle(str(data["author"]))
                else:
                    creator = "@instagram_user"

                return {
                    "title": str(data.get("title") or "Instagram Reel"),
                    "description": description,
                    "creator": creator,
                    "thumbnail": str(thumbnail),
                }
            logger.warning(f"Microlink returned {response.status_code} for {url}")
        except (httpx.HTTPError, ValueError, AttributeError, TypeError) as e:
            logger.warning(f"Instagram metadata fetch failed for {url}: {e}")

        reel = _INSTAGRAM_REEL_RE.search(url)
        return {
            "title": "Instagram Reel",
            "description": "Metadata capture pending background analysis...",
            "creator": "@instagram_user",
            "thumbnail": placeholder_thumbnail(reel.group(1) if reel else "Reel"),
        }

    async def fetch(self, url: str) -> EnrichmentResult:
        """Fetch public metadata for a URL.

        Args:
            url: Link to a reel, short or video.

        Returns:
            EnrichmentResult with topic 'Uncategorized' and the platform
            tags; fallback values where nothing could be fetched.
        """
        platform = detect_platform(url)

        meta = {
            "title": "Capturing...",
            "description": "Retrieving public metadata...",
            "creator": "@analyzing",
            "thumbnail": placeholder_thumbnail(),
        }

        if platform == Platform.YOUTUBE:
            meta.update(await self._fetch_youtube(url) or {})
        elif platform == Platform.INSTAGRAM:
            meta.update(await self._fetch_instagram(url))

        debug_info = DebugMetadata(
            og_title=meta["title"],
            og_description=meta["description"],
            og_image=meta["thumbnail"],
            author_name=meta["creator"],
            platform_headers={
                "content-type": "application/json",
                "x-extraction-mode": "public-endpoint",
            },
            raw_response=f"Fetched from {platform.value} public endpoint.",
        )

        return EnrichmentResult(
            title=meta["title"],
            description=meta["description"],
            creator=meta["creator"],
            thumbnail=meta["thumbnail"],
            tags=(platform.value, "fast-save"),
            topic=UNCATEGORIZED_TOPIC,
            summary=meta["description"],
            platform=platform,
            debug_info=debug_info,
        )


# Module-level instance for convenience
_fetcher: MetadataFetcher | None = None


def get_fetcher() -> MetadataFetcher:
    """Get or create the module-level MetadataFetcher instance."""
    global _fetcher
    if _fetcher is None:
        _fetcher = MetadataFetcher(timeout=Settings.from_env().metadata_timeout)
    return _fetcher

