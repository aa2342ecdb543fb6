"""Shared fixtures for item store tests."""

import pytest

from saveit.core.storage import DB, connect
from saveit.providers.content_types import Platform, SavedItem


def make_item(id: str = "item-1", **overrides) -> SavedItem:
    """Build a fully enriched item with sensible defaults."""
    fields = dict(
        id=id,
        url=f"https://www.instagram.com/reel/{id}/",
        title="Untitled",
        description="",
        thumbnail="https://picsum.photos/seed/x/400/711",
        creator="@someone",
        platform=Platform.INSTAGRAM,
        tags=(),
        topic="",
        summary="",
        date_added=1000,
        sequence_number=1,
        engagement_score=0,
    )
    fields.update(overrides)
    if isinstance(fields["tags"], list):
        fields["tags"] = tuple(fields["tags"])
    return SavedItem(**fields)


@pytest.fixture
def db():
    """In-memory item store with schema."""
    conn = connect(":memory:")
    store = DB(conn=conn)
    store.init()
    yield store
    conn.close()
