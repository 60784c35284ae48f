"""
Moving Average Convergence Divergence (MACD) indicator.

MACD shows the relationship between two exponential moving averages and is used
to identify momentum, trend direction, and potential reversal points.

Algorithm:
    MACD Line = EMA12 - EMA26
    Signal Line = EMA9 of MACD Line
    Histogram = MACD Line - Signal Line

    All EMAs are SMA-seeded (see ``src.indicators.ema``), so the MACD line is
    defined from the 26th close and the histogram from the 34th.

Classification:
    - Trend: bullish when MACD > signal and MACD > 0, bearish when
      MACD < signal and MACD < 0, otherwise neutral
    - Strength: |histogram| compared with the average |histogram| over the
      window: > 1.5x strong, > 0.5x moderate, otherwise weak
    - Crossover: histogram sign flip on the last bar

Parameters:
    - fast_period: 12 (standard)
    - slow_period: 26 (standard)
    - signal_period: 9 (standard)

Integration:
    Momentum category of the short scorer. The full histogram series feeds
    MACD divergence detection.
"""

from dataclasses import dataclass

import numpy as np
import pandas as pd

from src.indicators.ema import calculate_ema

_STRONG_MULTIPLIER = 1.5
_MODERATE_MULTIPLIER = 0.5


@dataclass
class MACDLines:
    """MACD series aligned with the input closes (NaN during warm-up)."""

    macd_line: pd.Series
    signal_line: pd.Series
    histogram: pd.Series


@dataclass
class MACDResult:
    """MACD snapshot for the latest candle."""

    macd: float = 0.0
    signal: float = 0.0
    histogram: float = 0.0
    trend: str = "neutral"  # "bullish", "bearish", "neutral"
    strength: str = "weak"  # "strong", "moderate", "weak"
    crossover: str = "none"  # "bullish", "bearish", "none"


def calculate_macd(
    prices: pd.Series,
    fast_period: int = 12,
    slow_period: int = 26,
    signal_period: int = 9,
) -> MACDLines:
    """
    Calculate MACD line, signal line and histogram.

    Args:
        prices: Series of closing prices
        fast_period: Fast EMA period (default: 12)
        slow_period: Slow EMA period (default: 26)
        signal_period: Signal line EMA period (default: 9)

    Returns:
        MACDLines with series aligned to ``prices``
    """
    prices = prices.astype(float)
    ema_fast = calculate_ema(prices, fast_period)
    ema_slow = calculate_ema(prices, slow_period)

    macd_line = ema_fast - ema_slow
    signal_line = calculate_ema(macd_line.dropna(), signal_period).reindex(prices.index)
    histogram = macd_line - signal_line

    return MACDLines(
        macd_line=macd_line,
        signal_line=signal_line,
        histogram=histogram,
    )


def get_macd_indicator(df: pd.DataFrame) -> MACDResult:
    """
    Build the MACD indicator for the latest candle.

    Args:
        df: Candle frame

    Returns:
        MACDResult, or the zeroed neutral default with insufficient data
    """
    if len(df) < 26:
        return MACDResult()

    lines = calculate_macd(df["close"])
    histogram = lines.histogram.dropna()
    if len(histogram) < 2:
        return MACDResult()

    macd = float(lines.macd_line.iloc[-1])
    signal = float(lines.signal_line.iloc[-1])
    current_hist = float(histogram.iloc[-1])
    prev_hist = float(histogram.iloc[-2])

    trend = "neutral"
    if macd > signal and macd > 0:
        trend = "bullish"
    elif macd < signal and macd < 0:
        trend = "bearish"

    avg_hist = float(histogram.abs().mean())
    strength = "weak"
    if abs(current_hist) > avg_hist * _STRONG_MULTIPLIER:
        strength = "strong"
    elif abs(current_hist) > avg_hist * _MODERATE_MULTIPLIER:
        strength = "moderate"

    crossover = "none"
    if prev_hist <= 0 and current_hist > 0:
        crossover = "bullish"
    elif prev_hist >= 0 and current_hist < 0:
        crossover = "bearish"

    if not all(np.isfinite(v) for v in (macd, signal, current_hist)):
        return MACDResult()

    return MACDResult(
        macd=round(macd, 4),
        signal=round(signal, 4),
        histogram=round(current_hist, 4),
        trend=trend,
        strength=strength,
        crossover=crossover,
    )
