"""SQLite signal store: sink for completed analyses."""

from __future__ import annotations

import hashlib
import json
import logging
import time
from pathlib import Path
from typing import Any, Optional

import aiosqlite

from ..polymarket.utils import parse_datetime

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = "data/signals.db"

CREATE_TABLES_SQL = """
-- Published analysis signals
CREATE TABLE IF NOT EXISTS signals (
    id TEXT PRIMARY KEY,
    event_id TEXT NOT NULL,
    market_title TEXT,
    venue TEXT,
    event_time INTEGER,
    market_snapshot_hash TEXT NOT NULL,
    weather_json TEXT,
    ai_digest TEXT,
    confidence TEXT,
    odds_efficiency TEXT,
    author_address TEXT,
    tx_hash TEXT,
    timestamp INTEGER NOT NULL
);

-- Indexes
CREATE INDEX IF NOT EXISTS idx_signals_timestamp ON signals(timestamp);
CREATE INDEX IF NOT EXISTS idx_signals_event ON signals(event_id);
"""


def snapshot_hash(market: dict) -> str:
    """SHA-256 over the market fields a signal was based on."""
    snapshot = {
        "title": market.get("title") or market.get("question"),
        "odds": market.get("currentOdds"),
        "volume24h": market.get("volume24h") or market.get("volume"),
        "liquidity": market.get("liquidity"),
        "tags": market.get("tags"),
    }
    return hashlib.sha256(json.dumps(snapshot, sort_keys=True).encode()).hexdigest()


class SignalStore:
    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        self.db_path = db_path

    async def init_schema(self) -> None:
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(self.db_path) as db:
            await db.executescript(CREATE_TABLES_SQL)
            await db.commit()

    async def save_signal(
        self,
        market: dict,
        analysis: dict,
        weather: Optional[dict] = None,
        author_address: Optional[str] = None,
        now: Optional[int] = None,
    ) -> str:
        """Persist one signal and return its id (``{event_id}-{unix_ts}``)."""
        now = int(now if now is not None else time.time())
        event_id = str(
            market.get("id") or market.get("marketID") or market.get("event_id") or "unknown"
        )
        signal_id = f"{event_id}-{now}"
        event_dt = parse_datetime(market.get("resolutionDate") or market.get("endDate"))
        assessment = analysis.get("assessment") or {}

        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                """INSERT OR REPLACE INTO signals
                   (id, event_id, market_title, venue, event_time, market_snapshot_hash,
                    weather_json, ai_digest, confidence, odds_efficiency,
                    author_address, tx_hash, timestamp)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, NULL, ?)""",
                (
                    signal_id,
                    event_id,
                    market.get("title") or market.get("question"),
                    market.get("location") or market.get("venue"),
                    int(event_dt.timestamp()) if event_dt else None,
                    snapshot_hash(market),
                    json.dumps(weather) if weather is not None else None,
                    analysis.get("reasoning") or analysis.get("analysis"),
                    assessment.get("confidence"),
                    assessment.get("odds_efficiency"),
                    author_address,
                    now,
                ),
            )
            await db.commit()
        logger.info("Saved signal %s", signal_id)
        return signal_id

    async def latest_signals(self, limit: int = 20) -> list[dict[str, Any]]:
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                "SELECT * FROM signals ORDER BY timestamp DESC, id DESC LIMIT ?", (limit,)
            )
            rows = await cursor.fetchall()
        signals = []
        for row in rows:
            item = dict(row)
            if item.get("weather_json"):
                item["weather_json"] = json.loads(item["weather_json"])
            signals.append(item)
        return signals

    async def update_tx_hash(self, signal_id: str, tx_hash: str) -> bool:
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                "UPDATE signals SET tx_hash = ? WHERE id = ?", (tx_hash, signal_id)
            )
            await db.commit()
            return cursor.rowcount > 0
