"""
Tests for divergence and fake pump detection.

Tests cover:
- Strict local extreme search
- MACD-histogram divergence (bearish, bullish, window trimming)
- RSI divergence defaults on short and flat data
- Fake pump scoring on a pump with fading volume
"""

import pandas as pd
import pytest

from src.indicators.candles import candles_to_frame
from src.indicators.divergence import (
    detect_macd_divergence,
    detect_rsi_divergence,
    find_extremes,
)
from src.indicators.fake_pump import detect_fake_pump
from tests.conftest import make_candles


def spikes(length, base, points):
    """Series of ``base`` with the given {index: value} spikes."""
    values = [base] * length
    for index, value in points.items():
        values[index] = value
    return values


# ============================================================================
# Extremes
# ============================================================================

def test_find_extremes_basic():
    """Peaks and troughs must strictly dominate their neighbours."""
    peaks, troughs = find_extremes([1, 3, 2, 5, 1, 0, 2], lookback=1)

    assert peaks == [1, 3]
    assert troughs == [2, 5]


def test_find_extremes_plateau_is_not_extreme():
    """Ties never count as extremes."""
    assert find_extremes([1, 2, 2, 1], lookback=1) == ([], [])


def test_find_extremes_ignores_edges():
    """Bars closer than lookback to either edge are never extremes."""
    peaks, _ = find_extremes([9, 1, 1, 1, 1, 1, 9], lookback=2)

    assert peaks == []


def test_find_extremes_short_input():
    """Input shorter than a full comparison window finds nothing."""
    assert find_extremes([1, 2, 1], lookback=5) == ([], [])
    assert find_extremes([1, 2, 1], lookback=0) == ([], [])


# ============================================================================
# MACD divergence
# ============================================================================

def test_macd_bearish_divergence():
    """Higher price high with a lower histogram high."""
    df = make_candles(spikes(40, 100.0, {10: 110.0, 30: 115.0}))
    histogram = pd.Series(spikes(40, 0.0, {10: 2.0, 30: 1.0, 39: -0.5}))

    result = detect_macd_divergence(df, histogram)

    assert result.type == "bearish"
    assert result.strength == "strong"
    assert result.confirmation is True


def test_macd_bullish_divergence():
    """Lower price low with a higher histogram low."""
    df = make_candles(spikes(40, 100.0, {10: 90.0, 30: 85.0}))
    histogram = pd.Series(spikes(40, 0.0, {10: -2.0, 30: -1.0, 39: 0.5}))

    result = detect_macd_divergence(df, histogram)

    assert result.type == "bullish"
    assert result.strength == "strong"
    assert result.confirmation is True


def test_macd_divergence_unconfirmed():
    """Histogram still positive means the bearish divergence is unconfirmed."""
    df = make_candles(spikes(40, 100.0, {10: 110.0, 30: 115.0}))
    histogram = pd.Series(spikes(40, 0.0, {10: 2.0, 30: 1.8, 39: 0.1}))

    result = detect_macd_divergence(df, histogram)

    assert result.type == "bearish"
    assert result.strength == "moderate"
    assert result.confirmation is False


def test_macd_divergence_outside_window():
    """Extremes older than the window are ignored."""
    df = make_candles(spikes(40, 100.0, {10: 110.0, 30: 115.0}))
    histogram = pd.Series(spikes(40, 0.0, {10: 2.0, 30: 1.0, 39: -0.5}))

    assert detect_macd_divergence(df, histogram, window=20).type == "none"


def test_macd_divergence_needs_thirty_values():
    """Short histograms return no divergence."""
    df = make_candles(spikes(20, 100.0, {5: 110.0, 14: 115.0}))
    histogram = pd.Series(spikes(20, 0.0, {5: 2.0, 14: 1.0}))

    assert detect_macd_divergence(df, histogram).type == "none"


def test_macd_divergence_from_closes(sample_ohlcv_data):
    """Without a histogram the detector computes its own."""
    result = detect_macd_divergence(sample_ohlcv_data(length=150))

    assert result.type in ("bullish", "bearish", "none")
    assert result.strength in ("strong", "moderate", "weak")


# ============================================================================
# RSI divergence
# ============================================================================

def test_rsi_divergence_short_data(trend_candles):
    """Fewer than 30 RSI values gives no divergence."""
    result = detect_rsi_divergence(trend_candles(length=30))

    assert result.type == "none"
    assert result.confirmation is False


def test_rsi_divergence_flat_prices(flat_candles):
    """Flat prices have no extremes."""
    assert detect_rsi_divergence(flat_candles(length=120)).type == "none"


def test_rsi_divergence_empty_frame():
    """Empty input returns the default."""
    assert detect_rsi_divergence(candles_to_frame([])).type == "none"


@pytest.mark.parametrize("lookback,window", [(3, 30), (5, 50), (8, 100)])
def test_rsi_divergence_valid_output(sample_ohlcv_data, lookback, window):
    """Output stays within the documented values for any parameters."""
    result = detect_rsi_divergence(sample_ohlcv_data(length=200), lookback=lookback, window=window)

    assert result.type in ("bullish", "bearish", "none")
    assert result.strength in ("strong", "moderate", "weak")


# ============================================================================
# Fake pump
# ============================================================================

def test_fake_pump_detected(pump_candles):
    """A vertical move on fading volume is flagged."""
    result = detect_fake_pump(pump_candles())

    assert result.is_fake is True
    assert result.confidence >= 50
    assert "Declining volume during price increase" in result.signals
    assert any("above EMA200" in s for s in result.signals)


def test_fake_pump_flat_market(flat_candles):
    """A flat market is not a fake pump."""
    result = detect_fake_pump(flat_candles())

    assert result.is_fake is False
    assert result.reason == "No significant fake pump signals detected"


def test_fake_pump_insufficient_data(trend_candles):
    """Fewer than 50 candles returns the default."""
    result = detect_fake_pump(trend_candles(length=30))

    assert result.is_fake is False
    assert result.confidence == 0
    assert result.reason == "Insufficient data"


def test_fake_pump_confidence_capped(pump_candles):
    """Confidence never exceeds 100."""
    assert detect_fake_pump(pump_candles(pump_length=40, pump_step=0.08)).confidence <= 100
