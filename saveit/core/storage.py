from __future__ import annotations

import json
import logging
import os
import sqlite3
import threading
from dataclasses import dataclass, field, replace
from typing import Any

from saveit.core.settings import Settings
from saveit.providers.content_types import (
    PLACEHOLDER_TITLES,
    UNASSIGNED_SEQUENCE,
    DebugMetadata,
    EnrichmentPatch,
    Platform,
    SavedItem,
)

logger = logging.getLogger(__name__)


SCHEMA_SQL = """
PRAGMA journal_mode=WAL;

CREATE TABLE IF NOT EXISTS items (
  id TEXT PRIMARY KEY,
  url TEXT NOT NULL,
  title TEXT NOT NULL DEFAULT '',
  description TEXT NOT NULL DEFAULT '',
  thumbnail TEXT NOT NULL DEFAULT '',
  creator TEXT NOT NULL DEFAULT '',
  platform TEXT NOT NULL DEFAULT 'unknown',
  tags_json TEXT NOT NULL DEFAULT '[]',
  topic TEXT NOT NULL DEFAULT '',
  summary TEXT NOT NULL DEFAULT '',
  date_added INTEGER NOT NULL,
  sequence_number INTEGER NOT NULL,
  engagement_score INTEGER NOT NULL DEFAULT 0,
  debug_json TEXT,
  is_enriching INTEGER NOT NULL DEFAULT 0,
  updated_at TEXT DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_items_date_added ON items(date_added);
CREATE UNIQUE INDEX IF NOT EXISTS idx_items_sequence ON items(sequence_number);

-- User overrides for prompt templates
CREATE TABLE IF NOT EXISTS custom_prompts (
  key TEXT PRIMARY KEY,
  template TEXT NOT NULL,
  temperature REAL NOT NULL,
  max_tokens INTEGER NOT NULL,
  updated_at TEXT DEFAULT (datetime('now'))
);
"""

ITEM_COLUMNS = (
    "id, url, title, description, thumbnail, creator, platform, tags_json, topic, "
    "summary, date_added, sequence_number, engagement_score, debug_json, is_enriching"
)


def connect(path: str) -> sqlite3.Connection:
    """Open a connection configured the way DB expects it."""
    conn = sqlite3.connect(path, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    return conn


def _item_from_row(row: sqlite3.Row) -> SavedItem:
    debug = json.loads(row["debug_json"]) if row["debug_json"] else None
    return SavedItem(
        id=row["id"],
        url=row["url"],
        title=row["title"],
        description=row["description"],
        thumbnail=row["thumbnail"],
        creator=row["creator"],
        platform=Platform(row["platform"]),
        tags=tuple(json.loads(row["tags_json"])),
        topic=row["topic"],
        summary=row["summary"],
        date_added=row["date_added"],
        sequence_number=row["sequence_number"],
        engagement_score=row["engagement_score"],
        debug_info=DebugMetadata.from_dict(debug) if debug else None,
        is_enriching=bool(row["is_enriching"]),
    )


def merge_enrichment(item: SavedItem, patch: EnrichmentPatch) -> SavedItem:
    """Apply an LLM enrichment to an item.

    - Tags: union, existing tags first, insertion order kept
    - Topic and summary: replaced
    - Engagement score: replaced only by a non-zero value
    - Title: replaced only if it is a placeholder and a title is suggested
    - Enriching flag: cleared
    """
    title = item.title
    if item.title in PLACEHOLDER_TITLES and patch.suggested_title:
        title = patch.suggested_title

    return replace(
        item,
        title=title,
        tags=tuple(dict.fromkeys((*item.tags, *patch.tags))),
        topic=patch.topic,
        summary=patch.summary,
        engagement_score=patch.engagement_score or item.engagement_score,
        is_enriching=False,
    )


@dataclass
class DB:
    """SQLite item store.

    Every public method holds the lock for its whole read-modify-write,
    so callers observe each operation as atomic.
    """

    conn: sqlite3.Connection
    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    def init(self) -> None:
        self.conn.executescript(SCHEMA_SQL)
        self.conn.commit()

    def get_stats(self) -> dict[str, Any]:
        with self._lock:
            row = self.conn.execute(
                "SELECT COUNT(*), COALESCE(SUM(is_enriching), 0), COALESCE(MAX(sequence_number), 0) FROM items"
            ).fetchone()
        return {"items": row[0], "enriching": row[1], "last_sequence": row[2]}

    # ==================== Items ====================

    def get_all(self) -> list[SavedItem]:
        """Get all items, newest first."""
        with self._lock:
            cur = self.conn.execute(
                f"SELECT {ITEM_COLUMNS} FROM items ORDER BY date_added DESC, sequence_number DESC"
            )
            return [_item_from_row(r) for r in cur.fetchall()]

    def get_item(self, item_id: str) -> SavedItem | None:
        with self._lock:
            cur = self.conn.execute(
                f"SELECT {ITEM_COLUMNS} FROM items WHERE id = ?",
                (item_id,),
            )
            row = cur.fetchone()
            return _item_from_row(row) if row else None

    def _next_sequence(self) -> int:
        cur = self.conn.execute("SELECT COALESCE(MAX(sequence_number), 0) FROM items")
        return max(cur.fetchone()[0], 0) + 1

    def save(self, item: SavedItem) -> SavedItem:
        """Insert or update an item by id.

        An item carrying the unassigned sequence number gets
        max(existing) + 1 before it is written.

        Returns the item as stored.
        """
        with self._lock:
            if item.sequence_number == UNASSIGNED_SEQUENCE:
                item = replace(item, sequence_number=self._next_sequence())

            self.conn.execute(
                f"""
                INSERT INTO items ({ITEM_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    url = excluded.url,
                    title = excluded.title,
                    description = excluded.description,
                    thumbnail = excluded.thumbnail,
                    creator = excluded.creator,
                    platform = excluded.platform,
                    tags_json = excluded.tags_json,
                    topic = excluded.topic,
                    summary = excluded.summary,
                    date_added = excluded.date_added,
                    sequence_number = excluded.sequence_number,
                    engagement_score = excluded.engagement_score,
                    debug_json = excluded.debug_json,
                    is_enriching = excluded.is_enriching,
                    updated_at = datetime('now')
                """,
                (
                    item.id,
                    item.url,
                    item.title,
                    item.description,
                    item.thumbnail,
                    item.creator,
                    item.platform.value,
                    json.dumps(list(item.tags)),
                    item.topic,
                    item.summary,
                    item.date_added,
                    item.sequence_number,
                    item.engagement_score,
                    json.dumps(item.debug_info.to_dict()) if item.debug_info else None,
                    int(item.is_enriching),
                ),
            )
            self.conn.commit()
            return item

    def delete(self, item_id: str) -> bool:
        with self._lock:
            cur = self.conn.execute("DELETE FROM items WHERE id = ?", (item_id,))
            self.conn.commit()
            return cur.rowcount > 0

    def update_enrichment(self, item_id: str, patch: EnrichmentPatch) -> SavedItem | None:
        """Merge an enrichment into a stored item. Returns None if it is gone."""
        with self._lock:
            item = self.get_item(item_id)
            if item is None:
                return None
            return self.save(merge_enrichment(item, patch))

    def mark_enrichment_done(self, item_id: str) -> SavedItem | None:
        """Clear the enriching flag, keeping all other fields."""
        with self._lock:
            item = self.get_item(item_id)
            if item is None:
                return None
            return self.save(replace(item, is_enriching=False))

    # ==================== Custom Prompts ====================

    def get_custom_prompt(self, key: str) -> dict[str, Any] | None:
        with self._lock:
            row = self.conn.execute(
                "SELECT template, temperature, max_tokens FROM custom_prompts WHERE key = ?",
                (key,),
            ).fetchone()
        if row is None:
            return None
        return {"template": row[0], "temperature": row[1], "max_tokens": row[2]}

    def save_custom_prompt(self, key: str, template: str, temperature: float, max_tokens: int) -> None:
        with self._lock:
            self.conn.execute(
                """
                INSERT INTO custom_prompts (key, template, temperature, max_tokens, updated_at)
                VALUES (?, ?, ?, ?, datetime('now'))
                ON CONFLICT(key) DO UPDATE SET
                    template = excluded.template,
                    temperature = excluded.temperature,
                    max_tokens = excluded.max_tokens,
                    updated_at = datetime('now')
                """,
                (key, template, temperature, max_tokens),
            )
            self.conn.commit()

    def delete_custom_prompt(self, key: str) -> None:
        with self._lock:
            self.conn.execute("DELETE FROM custom_prompts WHERE key = ?", (key,))
            self.conn.commit()


_db: DB | None = None


def init_db() -> None:
    global _db

    s = Settings.from_env()
    db_dir = os.path.dirname(s.db_path)
    if db_dir:
        os.makedirs(db_dir, exist_ok=True)

    _db = DB(conn=connect(s.db_path))
    _db.init()
    logger.info(f"Opened item store at {s.db_path}")


def get_db() -> DB:
    assert _db is not None, "DB not initialized"
    return _db
