"""
Gamma API client: the market fetcher behind the catalog cache.

Domain-agnostic apart from normalisation, no scoring or ranking here.

Endpoints used (all public, no auth):
  GET /events?closed=false&...   -- open events, each with its sub-markets
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any

import httpx

from .models import Market
from .normalize import markets_from_event
from .utils import parse_datetime, utc_now

logger = logging.getLogger(__name__)

GAMMA_BASE = "https://gamma-api.polymarket.com"
TIMEOUT = 30.0


_client: httpx.AsyncClient | None = None

async def _get_client() -> httpx.AsyncClient:
    """Get or create shared HTTP client."""
    global _client
    if _client is None:
        _client = httpx.AsyncClient(timeout=TIMEOUT)
    return _client

async def _get(path: str, params: dict[str, Any] | None = None) -> Any:
    """Issue a GET to the Gamma API and return parsed JSON."""
    client = await _get_client()
    url = f"{GAMMA_BASE}{path}"
    logger.debug("GET %s params=%s", url, params)
    resp = await client.get(url, params=params)
    resp.raise_for_status()
    return resp.json()


async def close_client() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None


# ── Events ───────────────────────────────────────────────────────────

async def list_events(
    *,
    closed: bool = False,
    limit: int = 100,
    offset: int = 0,
    order: str = "volume24hr",
    ascending: bool = False,
) -> list[dict]:
    """List events from Gamma API, highest 24h volume first by default."""
    params: dict[str, Any] = {
        "closed": str(closed).lower(),
        "limit": limit,
        "offset": offset,
        "order": order,
        "ascending": str(ascending).lower(),
    }
    result = await _get("/events", params=params)
    return result if isinstance(result, list) else []


# ── Market universe ──────────────────────────────────────────────────

async def fetch_market_universe(
    min_volume: float,
    *,
    page_size: int = 100,
    max_pages: int = 5,
    max_days_out: int | None = 60,
) -> list[Market]:
    """
    Fetch every open market with ``volume_24h >= min_volume``.

    Pages through ``/events`` (volume-descending) until a short page or
    ``max_pages``; events resolving more than ``max_days_out`` days ahead
    are skipped.  Markets are de-duplicated by id, first occurrence wins.

    HTTP / transport errors propagate; the catalog cache decides whether to
    serve stale data or raise.
    """
    horizon = utc_now() + timedelta(days=max_days_out) if max_days_out else None
    seen: dict[str, Market] = {}
    skipped_far = 0

    for page in range(max_pages):
        events = await list_events(limit=page_size, offset=page * page_size)
        for event in events:
            end = parse_datetime(event.get("endDate"))
            if horizon is not None and end is not None and end > horizon:
                skipped_far += 1
                continue
            for market in markets_from_event(event):
                if market.volume_24h >= min_volume and market.market_id not in seen:
                    seen[market.market_id] = market
        if len(events) < page_size:
            break

    logger.info(
        "Fetched %d markets (floor $%s, %d far-dated events skipped)",
        len(seen), f"{min_volume:,.0f}", skipped_far,
    )
    return list(seen.values())
