"""Tests for capture.py"""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from saveit.core.capture import capture_url, new_skeleton, wait_for_pending_captures
from saveit.core.llm_providers import LLMError
from saveit.providers.content_types import DebugMetadata, EnrichmentResult, Platform


def mock_llm(content: str | None = None, error: Exception | None = None):
    llm = MagicMock()
    llm.model_id = "gpt-4.1-mini"
    response = MagicMock()
    response.content = content
    llm.chat = AsyncMock(return_value=response, side_effect=error)
    return llm


def mock_fetcher(error: Exception | None = None):
    fetcher = MagicMock()
    fetcher.fetch = AsyncMock(
        return_value=EnrichmentResult(
            title="Instagram Reel",
            description="1K likes - chefmario on May 2: pasta night",
            creator="@chefmario",
            thumbnail="https://cdn.example.com/t.jpg",
            tags=("instagram", "fast-save"),
            topic="Uncategorized",
            summary="1K likes - chefmario on May 2: pasta night",
            platform=Platform.INSTAGRAM,
            debug_info=DebugMetadata(
                og_title="Instagram Reel",
                og_description="",
                og_image="https://cdn.example.com/t.jpg",
                author_name="@chefmario",
            ),
        ),
        side_effect=error,
    )
    return fetcher


ENRICHED = json.dumps({
    "topic": "Food",
    "tags": ["pasta", "dinner"],
    "summary": "Pasta night recipe.",
    "suggestedTitle": "Pasta night",
    "engagementScore": 1000,
})

URL = "https://www.instagram.com/reel/C1x2/"


def test_new_skeleton():
    item = new_skeleton(URL, date_added=5)
    assert item.title == "New Memory"
    assert item.topic == "Capturing..."
    assert item.sequence_number == -1
    assert item.is_enriching is True
    assert item.display_topic == "General"
    assert item.date_added == 5


@pytest.mark.asyncio
class TestCaptureUrl:
    async def test_full_capture(self, db):
        changes = []
        skeleton = await capture_url(
            URL,
            db,
            llm=mock_llm(ENRICHED),
            fetcher=mock_fetcher(),
            on_change=lambda: changes.append(len(db.get_all())),
        )

        assert skeleton.sequence_number == 1
        assert skeleton.is_enriching is True

        await wait_for_pending_captures()

        item = db.get_item(skeleton.id)
        assert item.topic == "Food"
        assert item.title == "Pasta night"
        assert item.tags == ("instagram", "fast-save", "pasta", "dinner")
        assert item.creator == "@chefmario"
        assert item.engagement_score == 1000
        assert item.is_enriching is False
        assert item.sequence_number == 1
        # skeleton, metadata, enrichment
        assert len(changes) == 3

    async def test_metadata_phase_keeps_enriching(self, db):
        snapshots = []
        fetcher = mock_fetcher()
        llm = mock_llm(error=LLMError("down", provider="OpenAI"))

        def on_change():
            snapshots.extend(db.get_all())

        await capture_url(URL, db, llm=llm, fetcher=fetcher, on_change=on_change)
        await wait_for_pending_captures()

        after_metadata = snapshots[1]
        assert after_metadata.creator == "@chefmario"
        assert after_metadata.topic == "Uncategorized"
        assert after_metadata.is_enriching is True

    async def test_enrichment_failure_keeps_metadata(self, db):
        skeleton = await capture_url(
            URL, db, llm=mock_llm("not json"), fetcher=mock_fetcher()
        )
        await wait_for_pending_captures()

        item = db.get_item(skeleton.id)
        assert item.is_enriching is False
        assert item.topic == "Uncategorized"
        assert item.title == "Instagram Reel"

    async def test_unexpected_error_clears_flag(self, db):
        skeleton = await capture_url(
            URL, db, llm=mock_llm(ENRICHED), fetcher=mock_fetcher(error=RuntimeError("boom"))
        )
        await wait_for_pending_captures()

        item = db.get_item(skeleton.id)
        assert item.is_enriching is False
        assert item.title == "New Memory"

    async def test_deleted_during_capture_is_not_reinserted(self, db):
        fetcher = mock_fetcher()
        llm = mock_llm(ENRICHED)
        skeleton = await capture_url(URL, db, llm=llm, fetcher=fetcher)
        db.delete(skeleton.id)
        await wait_for_pending_captures()

        assert db.get_all() == []
        llm.chat.assert_not_called()

    async def test_sequence_numbers_increase(self, db):
        first = await capture_url(URL, db, llm=mock_llm(ENRICHED), fetcher=mock_fetcher())
        second = await capture_url(URL, db, llm=mock_llm(ENRICHED), fetcher=mock_fetcher())
        await wait_for_pending_captures()

        assert (first.sequence_number, second.sequence_number) == (1, 2)
        assert db.get_item(second.id).sequence_number == 2
