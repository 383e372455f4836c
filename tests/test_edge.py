"""
Tests for the weather edge scorer.

Run: python -m pytest tests/ -v
"""

import pytest

from weather_edge.domains.weather.edge import (
    DEFAULT_POLICY,
    MAX_TOTAL,
    EdgePolicy,
    TierThresholds,
    score,
)
from weather_edge.polymarket.models import Market, WeatherSnapshot


# ═══════════════════════════════════════════════════════════
#  SCENARIOS
# ═══════════════════════════════════════════════════════════

class TestSuperBowlRain:
    """Rain question on a controlled-venue championship with calm weather."""

    @pytest.fixture
    def breakdown(self, make_market, calm_weather):
        market = make_market(
            "sb-rain",
            "Will it rain during the Super Bowl?",
            tags=("NFL", "Weather"),
            volume_24h=300_000,
            liquidity=50_000,
        )
        return score(market, calm_weather)

    def test_weather_direct_from_title(self, breakdown):
        assert breakdown.weather_direct == 3

    def test_controlled_venue_cancels_outdoor_points(self, breakdown):
        assert breakdown.weather_sensitive_event == 0

    def test_calm_conditions_add_nothing(self, breakdown):
        assert breakdown.contextual_weather_impact == 0

    def test_volume_liquidity_ratio(self, breakdown):
        assert breakdown.asymmetry_signal == 1.0

    def test_total_and_tier(self, breakdown):
        assert 4 <= breakdown.total <= 5
        assert breakdown.confidence == "MEDIUM"


class TestOutdoorExposure:
    """Live conditions only count for exposed events."""

    def test_high_wind_outdoor_game(self, make_market, stormy_weather):
        market = make_market(
            "nfl-1",
            "Bills vs Chiefs: over 44.5 points, field goals in the wind?",
            event_type="NFL",
            volume_24h=100_000,
            liquidity=50_000,
        )
        b = score(market, stormy_weather)
        assert b.weather_direct == 3
        assert b.weather_sensitive_event == 2
        assert b.contextual_weather_impact == 5  # capped
        assert "american_football" in b.matched_categories
        assert b.confidence == "HIGH"

    def test_indoor_event_ignores_weather(self, make_market, stormy_weather):
        market = make_market("nba-1", "Lakers vs Celtics: total points", event_type="NBA")
        b = score(market, stormy_weather)
        assert b.weather_sensitive_event == 0
        assert b.contextual_weather_impact == 0

    def test_text_only_without_snapshot(self, make_market):
        market = make_market("golf-1", "Will the PGA final round be delayed by rain?")
        b = score(market)
        assert b.contextual_weather_impact == DEFAULT_POLICY.text_only_points
        assert b.weather_sensitive_event == 2

    def test_tennis_exposure_scales_contextual(self, make_market, stormy_weather):
        tennis = make_market("t-1", "Wimbledon final: will rain delay play?")
        golf = make_market("g-1", "PGA final round: will rain delay play?")
        assert score(tennis, stormy_weather).contextual_weather_impact < (
            score(golf, stormy_weather).contextual_weather_impact
        )


# ═══════════════════════════════════════════════════════════
#  BOUNDS / DETERMINISM
# ═══════════════════════════════════════════════════════════

class TestBounds:

    def test_no_signal_is_zero_low(self, make_market):
        b = score(make_market("x", "Will the Fed cut rates in March?", yes=None))
        assert b.total == 0
        assert b.confidence == "LOW"
        assert b.asymmetry_signal == 0

    def test_missing_odds_does_not_raise(self):
        b = score(Market(market_id="bare", title="Snowfall in Denver above 10 inches?"))
        assert b.weather_direct == 3

    def test_description_only_mention(self, make_market):
        b = score(make_market("d", "Denver total", description="Resolves on snowfall at DIA."))
        assert b.weather_direct == 1

    def test_components_within_ranges(self, make_market, stormy_weather):
        market = make_market(
            "all",
            "Will snow and wind hit the NFL game in Buffalo?",
            volume_24h=1_000_000,
            liquidity=1_000,
        )
        b = score(market, stormy_weather)
        assert 0 <= b.weather_direct <= 3
        assert 0 <= b.weather_sensitive_event <= 2
        assert 0 <= b.contextual_weather_impact <= 5
        assert 0 <= b.asymmetry_signal <= 1
        assert 0 <= b.total <= MAX_TOTAL

    def test_deterministic(self, make_market, stormy_weather):
        market = make_market("det", "Will rain delay the MLB game at Wrigley?")
        assert score(market, stormy_weather) == score(market, stormy_weather)

    def test_factors_wire_keys(self, make_market):
        factors = score(make_market()).factors()
        assert set(factors) == {
            "weatherDirect", "weatherSensitiveEvent",
            "contextualWeatherImpact", "asymmetrySignal",
        }

    def test_empty_snapshot_treated_as_missing(self, make_market):
        market = make_market("e", "Will rain delay the MLB game?")
        assert score(market, WeatherSnapshot()) == score(market, None)


class TestPolicy:

    def test_thresholds_are_configurable(self, make_market):
        market = make_market(
            "sb", "Will it rain during the Super Bowl?",
            tags=("NFL",), volume_24h=300_000, liquidity=50_000,
        )
        strict = EdgePolicy(thresholds=TierThresholds(high=10, medium=6))
        assert score(market, policy=strict).confidence == "LOW"

    @pytest.mark.parametrize("total,tier", [(0, "LOW"), (3.99, "LOW"), (4, "MEDIUM"), (8, "HIGH")])
    def test_tier_boundaries(self, total, tier):
        assert TierThresholds().tier(total) == tier
