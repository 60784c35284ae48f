"""
Tests for setup classification, recommendations and warnings.

Tests cover:
- Mean reversion fallback
- Each setup detector and its priority
- Tie-breaking between equal priorities
- Recommendation thresholds per tier
- Warning generation
"""

import pytest

from src.indicators.adx import ADXResult
from src.indicators.bollinger import BollingerResult
from src.indicators.candle_patterns import PatternAnalysis
from src.indicators.divergence import DivergenceResult
from src.indicators.ema import EMAResult
from src.indicators.fake_pump import FakePumpResult
from src.indicators.indicator_set import Indicators
from src.indicators.macd import MACDResult
from src.indicators.perpetual import FundingRateResult, OpenInterestResult
from src.indicators.rsi import RSIResult
from src.indicators.vwap import VWAPResult
from src.strategy.alt_config import TIER_2_CONFIG, TIER_3_CONFIG
from src.strategy.multi_timeframe import MultiTFAlignment
from src.strategy.setups import (
    SetupType,
    detect_setup_candidates,
    determine_recommendation,
    determine_setup_type,
    generate_warnings,
)


# ============================================================================
# Setup detection
# ============================================================================

def test_no_signal_falls_back_to_mean_reversion():
    """Nothing firing means a plain mean reversion short."""
    match = determine_setup_type(Indicators(), 0)

    assert match.setup_type == SetupType.MEAN_REVERSION
    assert match.priority == 0
    assert detect_setup_candidates(Indicators(), 0) == []


def test_oi_divergence_on_pump_with_falling_interest():
    """Price up with bearish OI is the top setup."""
    indicators = Indicators(
        rsi=RSIResult(value=70),
        open_interest=OpenInterestResult(change_24h=-8, signal="decreasing", interpretation="bearish"),
    )

    match = determine_setup_type(indicators, 20)

    assert match.setup_type == SetupType.OI_DIVERGENCE
    assert match.priority == 10
    assert match.strength == "strong"


def test_oi_divergence_requires_move():
    """Bearish OI on a quiet day is not a divergence."""
    indicators = Indicators(open_interest=OpenInterestResult(interpretation="bearish"))

    assert determine_setup_type(indicators, 5).setup_type == SetupType.MEAN_REVERSION


@pytest.mark.parametrize("strength,confirmation,priority", [
    ("strong", True, 10),
    ("strong", False, 8),
    ("moderate", True, 7),
    ("weak", False, 5),
])
def test_divergence_priority(strength, confirmation, priority):
    """Divergence priority grows with strength and confirmation."""
    indicators = Indicators(
        rsi_divergence=DivergenceResult(type="bearish", strength=strength, confirmation=confirmation),
    )

    match = determine_setup_type(indicators, 0)

    assert match.setup_type == SetupType.DIVERGENCE
    assert match.priority == priority


def test_equal_priority_prefers_earlier_detector():
    """OI divergence beats an equally strong divergence."""
    indicators = Indicators(
        rsi=RSIResult(value=70),
        open_interest=OpenInterestResult(interpretation="bearish"),
        rsi_divergence=DivergenceResult(type="bearish", strength="strong", confirmation=True),
    )

    assert determine_setup_type(indicators, 20).setup_type == SetupType.OI_DIVERGENCE


@pytest.mark.parametrize("confidence,priority", [(85, 9), (75, 7), (65, 5)])
def test_fake_pump_priority(confidence, priority):
    """Fake pump priority follows detector confidence."""
    indicators = Indicators(fake_pump=FakePumpResult(is_fake=True, confidence=confidence))

    match = determine_setup_type(indicators, 0)

    assert match.setup_type == SetupType.FAKE_PUMP
    assert match.priority == priority


def test_low_confidence_fake_pump_ignored():
    """Fake pumps under 60% confidence are not a setup."""
    indicators = Indicators(fake_pump=FakePumpResult(is_fake=True, confidence=55))

    assert determine_setup_type(indicators, 0).setup_type == SetupType.MEAN_REVERSION


def test_structure_break():
    """Big move with EMAs turning down and RSI cooling off."""
    indicators = Indicators(ema=EMAResult(trend="bearish"), rsi=RSIResult(value=60))

    strong = determine_setup_type(indicators, 35)
    moderate = determine_setup_type(indicators, 25)

    assert strong.setup_type == SetupType.STRUCTURE_BREAK
    assert strong.priority == 8
    assert moderate.priority == 6


def test_structure_break_blocked_by_bullish_alignment():
    """Higher timeframes pointing up cancel a structure break."""
    indicators = Indicators(
        ema=EMAResult(trend="bearish"),
        rsi=RSIResult(value=60),
        multi_tf=MultiTFAlignment(score=20, direction="bullish"),
    )

    assert determine_setup_type(indicators, 35).setup_type != SetupType.STRUCTURE_BREAK


def test_double_top_strong_with_divergence():
    """A double top with bearish RSI divergence outranks the divergence itself."""
    indicators = Indicators(
        rsi=RSIResult(value=75),
        macd=MACDResult(histogram=-0.1),
        rsi_divergence=DivergenceResult(type="bearish", strength="weak"),
    )

    match = determine_setup_type(indicators, 20)

    assert match.setup_type == SetupType.DOUBLE_TOP
    assert match.priority == 8


def test_rejection_at_upper_band():
    """Overbought Bollinger with hot RSI is a rejection."""
    indicators = Indicators(
        rsi=RSIResult(value=82),
        bollinger_bands=BollingerResult(position=90, signal="overbought"),
    )

    candidates = {m.setup_type: m.priority for m in detect_setup_candidates(indicators, 0)}

    assert candidates[SetupType.REJECTION] == 8
    assert candidates[SetupType.RESISTANCE_REJECTION] == 5
    assert determine_setup_type(indicators, 0).setup_type == SetupType.REJECTION


def test_resistance_rejection_above_vwap():
    """RSI above 65 and well above VWAP is a resistance rejection."""
    indicators = Indicators(rsi=RSIResult(value=68), vwap=VWAPResult(deviation=5))

    assert determine_setup_type(indicators, 0).setup_type == SetupType.RESISTANCE_REJECTION


def test_breakout_from_multi_tf_alignment():
    """Strong bearish alignment produces a breakout setup."""
    indicators = Indicators(multi_tf=MultiTFAlignment(score=80, direction="bearish"))

    match = determine_setup_type(indicators, 0)

    assert match.setup_type == SetupType.BREAKOUT
    assert match.priority == 8


def test_setup_type_serializes_as_string():
    """Setup types compare and serialize as their string value."""
    assert SetupType.OI_DIVERGENCE.value == "oi_divergence"
    assert SetupType.MEAN_REVERSION == "mean_reversion"


# ============================================================================
# Recommendation
# ============================================================================

def test_recommendation_thresholds():
    """Enter needs the tier score and a warm RSI."""
    assert determine_recommendation(50, 65, TIER_2_CONFIG) == "enter"
    assert determine_recommendation(50, 55, TIER_2_CONFIG) == "wait"
    assert determine_recommendation(30, 50, TIER_2_CONFIG) == "wait"
    assert determine_recommendation(29, 70, TIER_2_CONFIG) == "skip"


def test_memecoin_recommendation_is_more_permissive():
    """Tier 3 enters at a lower score."""
    assert determine_recommendation(40, 65, TIER_3_CONFIG) == "enter"
    assert determine_recommendation(40, 65, TIER_2_CONFIG) == "wait"


# ============================================================================
# Warnings
# ============================================================================

def test_neutral_defaults_warn_about_weak_trend():
    """Without ADX data the trend is flagged as unclear."""
    assert generate_warnings(Indicators(), 0) == ["Weak trend, no clear direction"]


def test_oversold_rsi_warning():
    """Oversold RSI warns against shorting."""
    warnings = generate_warnings(Indicators(rsi=RSIResult(value=20)), 0)

    assert "RSI oversold, poor moment to short" in warnings


def test_extreme_move_warnings():
    """A huge pump without exhaustion signs gets two warnings."""
    warnings = generate_warnings(Indicators(adx=ADXResult(value=30, trend="strong")), 60)

    assert warnings == [
        "Extreme move (+60% in 24h), momentum may continue",
        "Large pump without exhaustion signs",
    ]


def test_high_funding_warning():
    """Expensive funding warns about a squeeze."""
    indicators = Indicators(funding_rate=FundingRateResult(rate=0.0005, annualized=54.75))

    warnings = generate_warnings(indicators, 0)

    assert "High funding (55% annualized), short squeeze risk" in warnings


def test_bullish_pattern_warning():
    """Reliable bullish candle patterns are named in the warning."""
    indicators = Indicators(
        bullish_patterns=PatternAnalysis(total_score=10, has_high_reliability=True, summary="Bullish Engulfing"),
    )

    assert "Bullish candle pattern: Bullish Engulfing" in generate_warnings(indicators, 0)


def test_bullish_alignment_warning():
    """Shorting against bullish higher timeframes is flagged."""
    indicators = Indicators(multi_tf=MultiTFAlignment(score=20, direction="bullish"))

    assert "Higher timeframes bullish, shorting against the trend" in generate_warnings(indicators, 0)
