"""
Service wiring: builds the caches, orchestrator and HTTP app from config.

Entry point:
    python -m weather_edge.service.main [--config config.yaml] [--host 0.0.0.0] [--port 8000]
"""

from __future__ import annotations

import argparse
import functools
import logging
from dataclasses import dataclass

import uvicorn
from fastapi import FastAPI

from .api import create_app
from .cache import AnalysisCache
from .catalog import CatalogCache
from .config import load_config
from .database import SignalStore
from .discovery import DiscoveryService
from .orchestrator import AnalysisOrchestrator
from .ratelimit import SlidingWindowLimiter
from ..domains.weather.edge import EdgePolicy, TierThresholds
from ..domains.weather.prompts import WeatherPromptBuilder
from ..polymarket import gamma
from ..strategies.llm import LLMClient

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass
class Services:
    catalog: CatalogCache
    discovery: DiscoveryService
    orchestrator: AnalysisOrchestrator
    signals: SignalStore
    limiter: SlidingWindowLimiter


def build_services(config: dict) -> Services:
    """Construct every service from a loaded config dict."""
    catalog_cfg = config["catalog"]
    analysis_cfg = config["analysis"]
    scoring_cfg = config["scoring"]

    fetcher = functools.partial(
        gamma.fetch_market_universe,
        page_size=int(catalog_cfg["page_size"]),
        max_pages=int(catalog_cfg["max_pages"]),
        max_days_out=catalog_cfg.get("max_days_out"),
    )
    catalog = CatalogCache(
        fetcher,
        ttl_seconds=float(catalog_cfg["ttl_seconds"]),
        volume_floor=float(catalog_cfg["volume_floor"]),
        fetch_timeout=float(catalog_cfg["fetch_timeout"]),
    )
    policy = EdgePolicy(
        thresholds=TierThresholds(
            high=float(scoring_cfg["high_threshold"]),
            medium=float(scoring_cfg["medium_threshold"]),
        )
    )
    orchestrator = AnalysisOrchestrator(
        llm=LLMClient(config["model"]),
        cache=AnalysisCache.with_ttl(
            float(analysis_cfg["cache_ttl_seconds"]),
            max_entries=int(analysis_cfg["cache_max_entries"]),
        ),
        prompt_builder=WeatherPromptBuilder(),
    )
    return Services(
        catalog=catalog,
        discovery=DiscoveryService(catalog, policy=policy),
        orchestrator=orchestrator,
        signals=SignalStore(config["database"]["path"]),
        limiter=SlidingWindowLimiter(
            limit=int(analysis_cfg["rate_limit"]),
            window_seconds=float(analysis_cfg["rate_window_seconds"]),
        ),
    )


def build_app(config: dict) -> FastAPI:
    services = build_services(config)
    return create_app(
        discovery=services.discovery,
        orchestrator=services.orchestrator,
        signals=services.signals,
        limiter=services.limiter,
        on_shutdown=gamma.close_client,
    )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Weather Edge discovery + analysis API")
    parser.add_argument("--config", default="config.yaml", help="Config file path")
    parser.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=8000, help="Port (default: 8000)")
    args = parser.parse_args()

    config = load_config(args.config)
    configure_logging(config["logging"]["level"])

    uvicorn.run(build_app(config), host=args.host, port=args.port, log_config=None)


if __name__ == "__main__":
    main()
