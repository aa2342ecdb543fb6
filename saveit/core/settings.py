from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    app_env: str
    db_path: str
    llm_provider: str
    chat_model: str
    intent_debounce_ms: int
    intent_min_query_length: int
    metadata_timeout: float

    @property
    def intent_debounce_seconds(self) -> float:
        return self.intent_debounce_ms / 1000

    @staticmethod
    def from_env() -> "Settings":
        def _i(name: str, default: str) -> int:
            return int(os.getenv(name, default).strip())

        def _f(name: str, default: str) -> float:
            return float(os.getenv(name, default).strip())

        return Settings(
            app_env=os.getenv("APP_ENV", "dev").strip(),
            db_path=os.getenv("DB_PATH", "./_local/data/saveit.db").strip(),
            llm_provider=os.getenv("LLM_PROVIDER", "openai").strip(),
            chat_model=os.getenv("CHAT_MODEL", "gpt-4.1-mini").strip(),
            intent_debounce_ms=_i("INTENT_DEBOUNCE_MS", "600"),
            intent_min_query_length=_i("INTENT_MIN_QUERY_LENGTH", "3"),
            metadata_timeout=_f("METADATA_TIMEOUT", "15"),
        )
