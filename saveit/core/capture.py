"""Two-phase capture of a link into the library.

Phases:
1. SKELETON: save a placeholder item right away (visible as "saving")
2. METADATA: fetch public metadata and merge it over the skeleton
3. ENRICH: classify via the LLM and merge topic/tags/summary

Phases 2 and 3 run as a background task. Any failure there is logged and
the item is kept with what it has, its enriching flag cleared.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import replace
from typing import TYPE_CHECKING, Callable

from saveit.core.enrichment import EnrichmentError, enrich_content
from saveit.core.llm_providers import LLMProvider, get_chat_provider
from saveit.core.settings import Settings
from saveit.providers.content_types import (
    UNASSIGNED_SEQUENCE,
    EnrichmentResult,
    Platform,
    SavedItem,
)
from saveit.providers.metadata import MetadataFetcher, get_fetcher, placeholder_thumbnail

if TYPE_CHECKING:
    from saveit.core.storage import DB

logger = logging.getLogger(__name__)

OnChange = Callable[[], None]

# Background tasks are referenced here until done so they are not collected
_pending: set[asyncio.Task] = set()


def now_ms() -> int:
    return int(time.time() * 1000)


def new_skeleton(url: str, date_added: int | None = None) -> SavedItem:
    """Placeholder item shown while a link is being captured."""
    item_id = str(uuid.uuid4())
    return SavedItem(
        id=item_id,
        url=url,
        title="New Memory",
        description="Saving...",
        thumbnail=placeholder_thumbnail(item_id),
        creator="@capturing",
        platform=Platform.UNKNOWN,
        tags=("saving",),
        topic="Capturing...",
        summary="Capturing details...",
        date_added=date_added if date_added is not None else now_ms(),
        sequence_number=UNASSIGNED_SEQUENCE,
        engagement_score=0,
        is_enriching=True,
    )


def merge_metadata(item: SavedItem, meta: EnrichmentResult) -> SavedItem:
    """Overlay fetched metadata on an item; it stays enriching."""
    return replace(
        item,
        title=meta.title,
        description=meta.description,
        creator=meta.creator,
        thumbnail=meta.thumbnail,
        tags=meta.tags,
        topic=meta.topic,
        summary=meta.summary,
        platform=meta.platform,
        debug_info=meta.debug_info,
        is_enriching=True,
    )


def _notify(on_change: OnChange | None) -> None:
    if on_change:
        on_change()


async def _enrich_in_background(
    item: SavedItem,
    db: DB,
    llm: LLMProvider | None,
    fetcher: MetadataFetcher,
    on_change: OnChange | None,
) -> None:
    try:
        meta = await fetcher.fetch(item.url)
        if db.get_item(item.id) is None:
            logger.info(f"Item {item.id} was deleted during capture, skipping enrichment")
            return
        item = db.save(merge_metadata(item, meta))
        _notify(on_change)

        if llm is None:
            s = Settings.from_env()
            llm = get_chat_provider(s.llm_provider, s.chat_model)

        patch = await enrich_content(item.url, meta, llm, db)
        if db.update_enrichment(item.id, patch) is None:
            logger.info(f"Item {item.id} was deleted before enrichment was applied")
            return
        _notify(on_change)

    except EnrichmentError as e:
        logger.warning(f"Enrichment failed for {item.url}: {e}")
        db.mark_enrichment_done(item.id)
        _notify(on_change)

    except Exception:
        logger.exception(f"Unexpected error while capturing {item.url}")
        db.mark_enrichment_done(item.id)
        _notify(on_change)


async def capture_url(
    url: str,
    db: DB,
    *,
    llm: LLMProvider | None = None,
    fetcher: MetadataFetcher | None = None,
    on_change: OnChange | None = None,
) -> SavedItem:
    """Save a link and start its enrichment in the background.

    Args:
        url: Link to capture
        db: Item store
        llm: Chat provider for enrichment (default: from Settings)
        fetcher: Metadata fetcher (default: module-level instance)
        on_change: Called after every persisted change to the item

    Returns:
        The stored skeleton item, with its sequence number assigned.
    """
    skeleton = db.save(new_skeleton(url))
    logger.info(f"Captured {url} as #{skeleton.sequence_number} ({skeleton.id})")
    _notify(on_change)

    task = asyncio.create_task(
        _enrich_in_background(skeleton, db, llm, fetcher or get_fetcher(), on_change)
    )
    _pending.add(task)
    task.add_done_callback(_pending.discard)
    return skeleton


async def wait_for_pending_captures() -> None:
    """Wait until all background enrichments have finished."""
    loop = asyncio.get_running_loop()
    while True:
        pending = [t for t in _pending if not t.done() and t.get_loop() is loop]
        if not pending:
            return
        await asyncio.gather(*pending, return_exceptions=True)
