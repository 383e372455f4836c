"""Tests for the TTL store and the analysis cache."""

from weather_edge.polymarket.models import WeatherSnapshot
from weather_edge.service.cache import AnalysisCache, TTLStore, fingerprint
from weather_edge.strategies.base import AnalysisRequest, AnalysisResult, Assessment


def result(**overrides):
    base = dict(
        assessment=Assessment("HIGH", "UNDERPRICED", "MEDIUM"),
        reasoning="Gusty",
        key_factors=("30 mph gusts",),
        timestamp="2026-01-15T12:00:00+00:00",
    )
    base.update(overrides)
    return AnalysisResult(**base)


class TestTTLStore:

    def test_fresh_entry_served(self, clock):
        store = TTLStore(60, clock)
        store.set("k", "v")
        clock.advance(59)
        assert store.get("k") == ("v", clock.now - 59)

    def test_expired_entry_evicted(self, clock):
        store = TTLStore(60, clock)
        store.set("k", "v")
        clock.advance(61)
        assert store.get("k") is None
        assert len(store) == 0

    def test_set_replaces_and_restamps(self, clock):
        store = TTLStore(60, clock)
        store.set("k", "old")
        clock.advance(50)
        store.set("k", "new")
        clock.advance(50)
        assert store.get("k")[0] == "new"

    def test_purge_expired(self, clock):
        store = TTLStore(10, clock)
        store.set("a", 1)
        clock.advance(5)
        store.set("b", 2)
        clock.advance(6)
        assert store.purge_expired() == 1
        assert store.get("b") is not None

    def test_writes_drop_expired_keys(self, clock):
        store = TTLStore(60, clock)
        for i in range(200):
            store.set(f"fp-{i}", i)
            clock.advance(120)
        store.set("latest", 0)
        assert len(store) == 1

    def test_bounded_by_max_entries(self, clock):
        store = TTLStore(600, clock, max_entries=3)
        for key in ("a", "b", "c", "d"):
            store.set(key, key)
            clock.advance(1)
        assert len(store) == 3
        assert store.get("a") is None
        assert store.get("d")[0] == "d"


class TestFingerprint:

    def test_same_inputs_same_key(self, make_market):
        m = make_market()
        w = WeatherSnapshot(wind_mph=12)
        assert fingerprint(AnalysisRequest(m, w)) == fingerprint(AnalysisRequest(m, w))

    def test_mode_and_weather_change_key(self, make_market):
        m = make_market()
        base = fingerprint(AnalysisRequest(m))
        assert fingerprint(AnalysisRequest(m, mode="deep")) != base
        assert fingerprint(AnalysisRequest(m, WeatherSnapshot(wind_mph=12))) != base


class TestAnalysisCache:

    def test_round_trip_marks_cached(self, clock):
        cache = AnalysisCache.with_ttl(1200, clock)
        original = result()
        cache.put("key", original)
        hit = cache.get("key")
        assert hit.cached is True
        assert hit.with_provenance(cached=False) == original

    def test_miss_after_ttl(self, clock):
        cache = AnalysisCache.with_ttl(1200, clock)
        cache.put("key", result())
        clock.advance(1201)
        assert cache.get("key") is None

    def test_status(self, clock):
        cache = AnalysisCache.with_ttl(1200, clock)
        cache.put("key", result())
        assert cache.status() == {"entries": 1, "max_entries": 1000, "ttl_seconds": 1200}
