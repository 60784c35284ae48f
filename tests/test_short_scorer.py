"""
Tests for the composite short scorer.

Tests cover:
- Category sub-scores for a typical mid-cap setup
- Perpetual data buckets (funding, open interest)
- Order book and liquidation bonuses/penalties
- Crowd sentiment scoring
- Missing perpetual data scoring zero
- Score bounds and risk levels
- Tier-dependent thresholds
- Confidence multipliers and clamping
"""

from dataclasses import replace

import pytest

from src.indicators.adx import ADXResult
from src.indicators.bollinger import BollingerResult
from src.indicators.divergence import DivergenceResult
from src.indicators.fake_pump import FakePumpResult
from src.indicators.indicator_set import Indicators
from src.indicators.macd import MACDResult
from src.indicators.obv import OBVResult
from src.indicators.perpetual import (
    FundingRateResult,
    LiquidationHeatmap,
    LongShortRatio,
    OpenInterestResult,
    OrderBookSnapshot,
)
from src.indicators.rsi import RSIResult
from src.indicators.stoch_rsi import StochRSIResult
from src.indicators.vwap import VWAPResult
from src.strategy.alt_config import TIER_1_CONFIG, TIER_2_CONFIG, TIER_3_CONFIG
from src.strategy.multi_timeframe import EntryTiming, MultiTFAlignment
from src.strategy.setups import SetupType
from src.strategy.short_scorer import (
    MAX_CONFIDENCE,
    MIN_CONFIDENCE,
    SETUP_RELIABILITY,
    ShortScoreBreakdown,
    calculate_confidence,
    calculate_short_score,
)


def mock_indicators(**overrides) -> Indicators:
    """Overbought mid-cap with bearish perpetual data."""
    indicators = Indicators(
        rsi=RSIResult(value=70, trend="overbought", signal="bearish"),
        macd=MACDResult(macd=-0.1, signal=0.05, histogram=-0.15, trend="bearish", strength="moderate"),
        bollinger_bands=BollingerResult(upper=110, middle=100, lower=90, position=75),
        obv=OBVResult(trend="bearish"),
        adx=ADXResult(value=25, trend="strong", plus_di=15, minus_di=30, signal="bearish"),
        vwap=VWAPResult(value=100, deviation=3),
        stoch_rsi=StochRSIResult(k=85, d=90, signal="bearish", overbought=True),
        multi_tf=MultiTFAlignment(score=70, direction="bearish"),
        funding_rate=FundingRateResult(rate=-0.0001, annualized=-10.95, trend="stable"),
        open_interest=OpenInterestResult(value=1e9, change_24h=-8, signal="decreasing", interpretation="bearish"),
        long_short_ratio=LongShortRatio(long_ratio=60, short_ratio=40),
        top_traders=LongShortRatio(long_ratio=40, short_ratio=60),
        order_book=OrderBookSnapshot(bid_volume=1_000_000, ask_volume=1_500_000),
        liquidation_heatmap=LiquidationHeatmap(total_long_liquidations=200_000, total_short_liquidations=50_000),
    )
    return replace(indicators, **overrides)


def extreme_bearish_indicators() -> Indicators:
    """Every input pinned to its most short-friendly value."""
    return mock_indicators(
        rsi=RSIResult(value=95),
        macd=MACDResult(histogram=-1, trend="bearish", strength="strong", crossover="bearish"),
        bollinger_bands=BollingerResult(position=120, signal="overbought"),
        vwap=VWAPResult(deviation=40),
        rsi_divergence=DivergenceResult(type="bearish", strength="strong", confirmation=True),
        macd_divergence=DivergenceResult(type="bearish", strength="strong", confirmation=True),
        obv=OBVResult(trend="bearish", divergence="bearish", divergence_strength="strong"),
        fake_pump=FakePumpResult(is_fake=True, confidence=100),
        multi_tf=MultiTFAlignment(score=100, direction="bearish"),
        funding_rate=FundingRateResult(rate=-0.01, annualized=-1095, trend="decreasing"),
        long_short_ratio=LongShortRatio(long_ratio=90, short_ratio=10),
        top_traders=LongShortRatio(long_ratio=10, short_ratio=90),
        order_book=OrderBookSnapshot(bid_volume=1, ask_volume=100),
        liquidation_heatmap=LiquidationHeatmap(total_long_liquidations=100, total_short_liquidations=0),
    )


def extreme_bullish_indicators() -> Indicators:
    """Every input pinned against a short."""
    return mock_indicators(
        rsi=RSIResult(value=5),
        macd=MACDResult(trend="bullish", crossover="bullish"),
        bollinger_bands=BollingerResult(position=-20, signal="oversold"),
        vwap=VWAPResult(deviation=-40),
        rsi_divergence=DivergenceResult(type="bullish", strength="strong", confirmation=True),
        obv=OBVResult(trend="bullish"),
        adx=ADXResult(value=40, trend="strong", signal="bullish"),
        stoch_rsi=StochRSIResult(k=2, d=5, signal="bullish", oversold=True),
        multi_tf=MultiTFAlignment(score=0, direction="bullish"),
        funding_rate=FundingRateResult(rate=0.01, annualized=1095, trend="increasing"),
        open_interest=OpenInterestResult(interpretation="bullish"),
        long_short_ratio=LongShortRatio(long_ratio=10, short_ratio=90),
        top_traders=LongShortRatio(long_ratio=90, short_ratio=10),
        order_book=OrderBookSnapshot(bid_volume=100, ask_volume=1),
        liquidation_heatmap=LiquidationHeatmap(total_long_liquidations=0, total_short_liquidations=100),
    )


# ============================================================================
# Category scores
# ============================================================================

def test_mid_cap_setup_breakdown():
    """Typical overbought mid-cap produces the expected sub-scores."""
    score = calculate_short_score(mock_indicators(), 20, TIER_2_CONFIG)

    assert score.momentum == 20
    assert score.volatility == 6
    assert score.trend == 17
    assert score.volume == 8
    assert score.divergence == 7
    assert score.bonuses == 15
    assert score.penalties == 0
    assert score.total == 73
    assert score.risk_level == "low"


def test_components_record_fired_rules():
    """Every rule that fires is listed with its points."""
    score = calculate_short_score(mock_indicators(), 20, TIER_2_CONFIG)

    assert score.components["rsi_overbought"] == 8
    assert score.components["stoch_rsi_turning_down"] == 5
    assert score.components["bonus_perfect_sentiment"] == 8
    assert score.components["bonus_ask_heavy_book"] == 4
    assert "rsi_oversold" not in score.components


def test_bearish_divergence_capped():
    """RSI plus MACD divergence never contributes more than 10."""
    indicators = mock_indicators(
        rsi_divergence=DivergenceResult(type="bearish", strength="strong", confirmation=True),
        macd_divergence=DivergenceResult(type="bearish", strength="strong"),
    )

    score = calculate_short_score(indicators, 20, TIER_2_CONFIG)

    assert score.components["bearish_divergence"] == 10
    assert score.components["bonus_confirmed_divergence"] == 5
    assert score.divergence == 17


def test_fake_pump_contribution():
    """A confident fake pump adds confidence/20 plus a critical bonus."""
    indicators = mock_indicators(fake_pump=FakePumpResult(is_fake=True, confidence=80))

    score = calculate_short_score(indicators, 20, TIER_2_CONFIG)

    assert score.components["fake_pump"] == 4
    assert score.components["bonus_fake_pump"] == 5
    assert score.divergence == 11


def test_fake_pump_below_tier_minimum_ignored():
    """Low-confidence fake pumps score nothing."""
    indicators = mock_indicators(fake_pump=FakePumpResult(is_fake=True, confidence=40))

    score = calculate_short_score(indicators, 20, TIER_2_CONFIG)

    assert "fake_pump" not in score.components


# ============================================================================
# Perpetual data
# ============================================================================

def test_negative_decreasing_funding_scores_high():
    """Shorts getting paid with funding falling further is the best case."""
    indicators = mock_indicators(
        funding_rate=FundingRateResult(rate=-0.0005, annualized=-54.75, trend="decreasing"),
    )

    score = calculate_short_score(indicators, 20, TIER_2_CONFIG)

    assert score.volume == 14


def test_positive_increasing_funding_goes_negative():
    """Expensive, rising funding drags the perpetual score below zero."""
    indicators = mock_indicators(
        funding_rate=FundingRateResult(rate=0.001, annualized=109.5, trend="increasing"),
    )

    score = calculate_short_score(indicators, 20, TIER_2_CONFIG)

    assert score.volume == -1
    assert score.components["penalty_extreme_funding"] == 8


def test_missing_perpetual_data_scores_zero():
    """Absent funding and OI contribute nothing, not a neutral bucket."""
    indicators = mock_indicators(funding_rate=None, open_interest=None)

    score = calculate_short_score(indicators, 20, TIER_2_CONFIG)

    assert score.volume == 0
    assert not any(name.startswith("funding") for name in score.components)


def test_missing_sentiment_data_scores_zero():
    """No account ratios means no sentiment points and no sentiment bonus."""
    indicators = mock_indicators(long_short_ratio=None, top_traders=None)

    score = calculate_short_score(indicators, 20, TIER_2_CONFIG)

    assert score.trend == 0
    assert "bonus_perfect_sentiment" not in score.components


def test_ask_heavy_order_book_bonus():
    """Selling pressure in the book adds a bonus."""
    score = calculate_short_score(mock_indicators(), 20, TIER_2_CONFIG)

    assert score.components["bonus_ask_heavy_book"] == 4


def test_bid_heavy_order_book_penalty():
    """Buying pressure in the book is penalized."""
    indicators = mock_indicators(order_book=OrderBookSnapshot(bid_volume=1_500_000, ask_volume=1_000_000))

    score = calculate_short_score(indicators, 20, TIER_2_CONFIG)

    assert score.components["penalty_bid_heavy_book"] == 4
    assert "bonus_ask_heavy_book" not in score.components


def test_long_liquidation_cluster_bonus():
    """Long liquidations below price are fuel for a short."""
    indicators = mock_indicators(
        liquidation_heatmap=LiquidationHeatmap(total_long_liquidations=500_000, total_short_liquidations=50_000),
    )

    score = calculate_short_score(indicators, 20, TIER_2_CONFIG)

    assert score.components["bonus_long_liquidations"] == 3


def test_short_liquidation_cluster_penalty():
    """Short liquidations above price risk a squeeze."""
    indicators = mock_indicators(
        liquidation_heatmap=LiquidationHeatmap(total_long_liquidations=50_000, total_short_liquidations=500_000),
    )

    score = calculate_short_score(indicators, 20, TIER_2_CONFIG)

    assert score.components["penalty_short_liquidations"] == 3
    assert "bonus_long_liquidations" not in score.components


# ============================================================================
# Sentiment
# ============================================================================

def test_crowded_longs_score_high():
    """Retail long and smart money short is the ideal sentiment."""
    indicators = mock_indicators(
        long_short_ratio=LongShortRatio(long_ratio=70, short_ratio=30),
        top_traders=LongShortRatio(long_ratio=40, short_ratio=60),
    )

    score = calculate_short_score(indicators, 20, TIER_2_CONFIG)

    assert score.trend == 20


def test_crowded_shorts_score_negative():
    """Retail short and smart money long works against the trade."""
    indicators = mock_indicators(
        long_short_ratio=LongShortRatio(long_ratio=30, short_ratio=70),
        top_traders=LongShortRatio(long_ratio=60, short_ratio=40),
    )

    score = calculate_short_score(indicators, 20, TIER_2_CONFIG)

    assert score.trend == -11
    assert score.components["penalty_top_traders_long"] == 6


# ============================================================================
# Bounds and risk
# ============================================================================

@pytest.mark.parametrize("config", [TIER_1_CONFIG, TIER_2_CONFIG, TIER_3_CONFIG])
def test_total_stays_in_range_for_extremes(config):
    """Totals are clamped to 0-100 for every tier."""
    bearish = calculate_short_score(extreme_bearish_indicators(), 200, config)
    bullish = calculate_short_score(extreme_bullish_indicators(), -50, config)

    assert 0 <= bearish.total <= 100
    assert 0 <= bullish.total <= 100
    assert bearish.total > bullish.total
    assert bullish.total == 0
    assert bullish.risk_level == "high"


def test_empty_indicator_set_scores_zero():
    """Neutral defaults with no move score nothing and carry high risk."""
    score = calculate_short_score(Indicators(), 0, TIER_2_CONFIG)

    assert isinstance(score, ShortScoreBreakdown)
    assert score.total == 0
    assert score.components["penalty_small_move"] == 5
    assert score.risk_level == "high"


def test_small_move_is_medium_risk():
    """A penalty blocks low risk even with a decent total."""
    score = calculate_short_score(mock_indicators(), 5, TIER_2_CONFIG)

    assert score.penalties == 5
    assert score.total == 64
    assert score.risk_level == "medium"


def test_higher_rsi_never_lowers_score():
    """Total is non-decreasing in RSI with everything else fixed."""
    totals = [
        calculate_short_score(mock_indicators(rsi=RSIResult(value=value)), 20, TIER_2_CONFIG).total
        for value in range(0, 101, 5)
    ]

    assert totals == sorted(totals)


def test_oversold_rsi_scores_below_neutral_rsi():
    """RSI 25 is a worse short than RSI 55."""
    oversold = calculate_short_score(mock_indicators(rsi=RSIResult(value=25)), 20, TIER_2_CONFIG)
    neutral = calculate_short_score(mock_indicators(rsi=RSIResult(value=55)), 20, TIER_2_CONFIG)

    assert oversold.total < neutral.total


def test_confirmed_divergence_raises_score():
    """A confirmed strong bearish RSI divergence strictly adds to the total."""
    plain = calculate_short_score(mock_indicators(), 20, TIER_2_CONFIG)
    diverging = calculate_short_score(
        mock_indicators(rsi_divergence=DivergenceResult(type="bearish", strength="strong", confirmation=True)),
        20,
        TIER_2_CONFIG,
    )

    assert diverging.total > plain.total
    assert diverging.divergence > plain.divergence


PRICE_CHANGE_STEPS = [0, 9.9, 10, 11, 14.9, 15, 20, 24.9, 25, 30, 34.9, 35, 49.9, 50, 80]


@pytest.mark.parametrize("config", [TIER_1_CONFIG, TIER_2_CONFIG, TIER_3_CONFIG])
def test_bigger_move_never_lowers_price_action(config):
    """Price action sub-score is non-decreasing across the 24h change buckets."""
    scores = [
        calculate_short_score(mock_indicators(), change, config).volatility
        for change in PRICE_CHANGE_STEPS
    ]

    assert scores == sorted(scores)
    assert scores[-1] > scores[0]


@pytest.mark.parametrize(
    "below,above",
    [(9.9, 10), (14.9, 15), (24.9, 25), (34.9, 35), (49.9, 50)],
)
def test_price_change_bucket_edges(below, above):
    """Crossing a tier-3 price change threshold raises price action."""
    low = calculate_short_score(mock_indicators(), below, TIER_3_CONFIG)
    high = calculate_short_score(mock_indicators(), above, TIER_3_CONFIG)

    assert high.volatility > low.volatility


def test_oversold_rsi_counts_twice():
    """Oversold RSI hits both the momentum bucket and the critical penalty."""
    score = calculate_short_score(mock_indicators(rsi=RSIResult(value=20)), 20, TIER_2_CONFIG)

    assert score.components["rsi_oversold"] == -8
    assert score.components["penalty_rsi_oversold"] == 10


def test_tier_changes_thresholds():
    """The same RSI is stronger for a large cap than for a memecoin."""
    large_cap = calculate_short_score(mock_indicators(), 20, TIER_1_CONFIG)
    memecoin = calculate_short_score(mock_indicators(), 20, TIER_3_CONFIG)

    assert large_cap.momentum == 20
    assert memecoin.momentum == 17


# ============================================================================
# Confidence
# ============================================================================

def test_confidence_applies_multipliers():
    """Setup reliability, sentiment and alignment multiply the score."""
    score = calculate_short_score(mock_indicators(), 20, TIER_2_CONFIG)

    confidence = calculate_confidence(score, SetupType.DIVERGENCE, mock_indicators())

    # 73 * 1.05 * 1.05 * 1.03
    assert confidence == 83


def test_confidence_accepts_plain_number():
    """A bare total works like a breakdown."""
    assert calculate_confidence(50, SetupType.MEAN_REVERSION, Indicators()) == 43


def test_confidence_unknown_setup_uses_default_factor():
    """Unknown or missing setups use a 0.90 factor."""
    assert calculate_confidence(50, None, Indicators()) == 45
    assert calculate_confidence(50, "something_new", Indicators()) == 45


def test_every_setup_has_a_reliability_factor():
    """Reliability covers exactly the setups the classifier can produce."""
    assert set(SETUP_RELIABILITY) == set(SetupType)


def test_confidence_entry_timing_boost():
    """An enter-now 5m signal raises confidence."""
    timing = EntryTiming(quality="optimal", score=80, signal="enter_now", reason="test")
    indicators = Indicators(entry_timing=timing)

    assert calculate_confidence(60, SetupType.DIVERGENCE, indicators) == 66
    assert calculate_confidence(60, SetupType.DIVERGENCE, Indicators()) == 63


def test_confidence_is_clamped():
    """Confidence never leaves 20-95."""
    assert calculate_confidence(0, SetupType.BREAKOUT, Indicators()) == MIN_CONFIDENCE
    assert calculate_confidence(100, SetupType.OI_DIVERGENCE, mock_indicators()) == MAX_CONFIDENCE
