"""Interactive library view: items, query, category and search intent.

The visible result list is recomputed synchronously whenever the items,
the query, the active category or the intent change. The intent itself is
derived from the query after a quiet period (debounce); each query change
bumps a generation counter and an extraction only applies its result if
its generation is still the latest.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from saveit.core.capture import capture_url
from saveit.core.search import SearchIntent, search_items
from saveit.core.topics import ALL_FILTER_ID, category_filters
from saveit.providers.content_types import SavedItem

if TYPE_CHECKING:
    from saveit.core.llm_providers import LLMProvider
    from saveit.core.storage import DB
    from saveit.providers.metadata import MetadataFetcher

logger = logging.getLogger(__name__)

IntentExtractor = Callable[[str], Awaitable[SearchIntent]]

DEFAULT_DEBOUNCE_SECONDS = 0.6
DEFAULT_MIN_QUERY_LENGTH = 3


class LibraryView:
    """Owns the state behind the library screen."""

    def __init__(
        self,
        db: DB,
        intent_extractor: IntentExtractor,
        *,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        min_query_length: int = DEFAULT_MIN_QUERY_LENGTH,
        llm: LLMProvider | None = None,
        fetcher: MetadataFetcher | None = None,
    ) -> None:
        self._db = db
        self._extract_intent = intent_extractor
        self._debounce = debounce_seconds
        self._min_query_length = min_query_length
        self._llm = llm
        self._fetcher = fetcher

        self.items: list[SavedItem] = []
        self.query = ""
        self.category = ALL_FILTER_ID
        self.intent: SearchIntent | None = None
        self.results: list[SavedItem] = []

        self._generation = 0
        self._timer: asyncio.TimerHandle | None = None
        self._timer_args: tuple[str, int] | None = None
        self._in_flight: set[asyncio.Task] = set()

    # ==================== Inputs ====================

    def refresh(self) -> None:
        """Reload all items from the store."""
        self.items = self._db.get_all()
        self._recompute()

    def set_category(self, category: str) -> None:
        self.category = (category or ALL_FILTER_ID).strip().lower()
        self._recompute()

    def set_query(self, query: str) -> None:
        """Update the query text and (re)schedule intent extraction.

        Queries of min_query_length characters or fewer clear the intent
        immediately. Longer ones schedule an extraction after the debounce
        period; a further call before it fires cancels it. Extractions
        already running are left to finish but their result is dropped.
        """
        self.query = query
        self._generation += 1
        self._cancel_timer()

        trimmed = query.strip()
        if len(trimmed) <= self._min_query_length:
            self.intent = None
        else:
            loop = asyncio.get_running_loop()
            self._timer_args = (trimmed, self._generation)
            self._timer = loop.call_later(self._debounce, self._fire)

        self._recompute()

    # ==================== Mutations ====================

    async def add(self, url: str) -> SavedItem:
        """Capture a link; the view refreshes as enrichment progresses."""
        return await capture_url(
            url,
            self._db,
            llm=self._llm,
            fetcher=self._fetcher,
            on_change=self.refresh,
        )

    def delete(self, item_id: str) -> bool:
        deleted = self._db.delete(item_id)
        self.refresh()
        return deleted

    # ==================== Outputs ====================

    @property
    def filters(self) -> list[dict[str, Any]]:
        return category_filters(self.items)

    @property
    def pending(self) -> bool:
        """Whether an intent extraction is scheduled or running."""
        return self._timer is not None or any(not t.done() for t in self._in_flight)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for JSON serialization."""
        return {
            "query": self.query,
            "category": self.category,
            "intent": self.intent.to_dict() if self.intent else None,
            "pending": self.pending,
            "filters": self.filters,
            "results": [item.to_dict() for item in self.results],
        }

    # ==================== Intent ====================

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._timer = None
        self._timer_args = None

    def _fire(self) -> None:
        assert self._timer_args is not None
        query, generation = self._timer_args
        self._timer = None
        self._timer_args = None

        task = asyncio.get_running_loop().create_task(self._derive_intent(query, generation))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)

    async def _derive_intent(self, query: str, generation: int) -> None:
        try:
            intent: SearchIntent | None = await self._extract_intent(query)
        except Exception as e:
            logger.warning(f"Intent extraction failed for {query!r}: {e}")
            intent = None

        if generation != self._generation:
            logger.debug(f"Dropping stale intent for {query!r}")
            return

        self.intent = intent
        self._recompute()

    async def flush(self) -> None:
        """Fire a scheduled extraction now and wait for running ones."""
        if self._timer is not None:
            self._timer.cancel()
            self._fire()
        while True:
            running = [t for t in self._in_flight if not t.done()]
            if not running:
                return
            await asyncio.gather(*running, return_exceptions=True)

    def close(self) -> None:
        """Cancel scheduled and running intent extractions."""
        self._cancel_timer()
        for task in self._in_flight:
            task.cancel()

    def _recompute(self) -> None:
        self.results = search_items(self.items, self.category, self.query, self.intent)
