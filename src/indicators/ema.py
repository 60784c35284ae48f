"""
Exponential Moving Average (EMA) stack indicator.

EMA gives more weight to recent prices, making it more responsive than SMA.
The scanner tracks five EMAs (9/21/50/100/200) and reads trend from their
stacking order rather than from a single crossover.

Algorithm:
    EMA = price * alpha + EMA_prev * (1 - alpha)
    where alpha = 2 / (period + 1)

    The series is seeded with the simple average of the first ``period``
    prices, so the first defined value sits at index ``period - 1``. This is
    the seeding used by most charting platforms and keeps values identical to
    the exchange dashboards the scanner is compared against.

Trend Classification:
    Requires the full stack to agree:
    - Bullish: EMA9 > EMA21 > EMA50 and price > EMA200
    - Bearish: EMA9 < EMA21 < EMA50 and price < EMA200
    - Otherwise: Neutral

Crossover:
    Detected on the last bar when EMA9 flips across EMA21.

Parameters:
    - periods: 9, 21, 50, 100, 200
    - minimum data: 200 closes for a non-neutral trend

Integration:
    Feeds the multi-timeframe aggregator (trend per timeframe), the fake-pump
    detector (EMA200 distance, EMA9/EMA50 spread) and the short scorer.
"""

from dataclasses import dataclass

import numpy as np
import pandas as pd

_FAST_PERIOD = 9
_SLOW_PERIOD = 21
_MEDIUM_PERIOD = 50
_LONG_PERIOD = 100
_TREND_PERIOD = 200


@dataclass
class EMAResult:
    """EMA stack snapshot for the latest candle."""

    ema9: float = 0.0
    ema21: float = 0.0
    ema50: float = 0.0
    ema100: float = 0.0
    ema200: float = 0.0
    trend: str = "neutral"  # "bullish", "bearish", "neutral"
    crossover: str = "none"  # "bullish", "bearish", "none"
    ema200_distance: float = 0.0  # % distance of price from EMA200


def calculate_ema(
    prices: pd.Series,
    period: int,
) -> pd.Series:
    """
    Calculate a single SMA-seeded EMA.

    Args:
        prices: Series of closing prices
        period: EMA period

    Returns:
        EMA series aligned with ``prices``; NaN before index ``period - 1``
        and all NaN when fewer than ``period`` prices are supplied.
    """
    prices = prices.astype(float)
    if period <= 0 or len(prices) < period:
        return pd.Series(np.nan, index=prices.index, dtype=float)

    seeded = prices.iloc[period - 1:].copy()
    seeded.iloc[0] = prices.iloc[:period].mean()
    ema = seeded.ewm(span=period, adjust=False).mean()

    return ema.reindex(prices.index)


def wilder_smooth(
    values: pd.Series,
    period: int,
) -> pd.Series:
    """
    Wilder's smoothed moving average seeded with a simple mean.

    SMMA(i) = ((SMMA(i-1) * (period - 1)) + value) / period, with the first
    value being the mean of the first ``period`` inputs.

    Args:
        values: Series to smooth
        period: Smoothing period

    Returns:
        Smoothed series aligned with ``values``; NaN before index
        ``period - 1`` and all NaN when fewer than ``period`` values exist.
    """
    values = values.astype(float)
    if period <= 0 or len(values) < period:
        return pd.Series(np.nan, index=values.index, dtype=float)

    seeded = values.iloc[period - 1:].copy()
    seeded.iloc[0] = values.iloc[:period].mean()
    smoothed = seeded.ewm(alpha=1.0 / period, adjust=False).mean()

    return smoothed.reindex(values.index)


def _last_or(series: pd.Series, default: float) -> float:
    """Last defined value of a series, or a default."""
    valid = series.dropna()
    if valid.empty:
        return default
    return float(valid.iloc[-1])


def get_ema_trend_from_values(ema9: float, ema21: float, ema50: float, ema200: float, price: float) -> str:
    """
    Classify trend from the EMA stack.

    Args:
        ema9: Fast EMA
        ema21: Slow EMA
        ema50: Medium EMA
        ema200: Long-term EMA
        price: Latest close

    Returns:
        "bullish", "bearish" or "neutral"
    """
    if ema9 > ema21 > ema50 and price > ema200:
        return "bullish"
    if ema9 < ema21 < ema50 and price < ema200:
        return "bearish"
    return "neutral"


def get_ema_indicator(df: pd.DataFrame) -> EMAResult:
    """
    Build the EMA stack indicator.

    With fewer than 200 closes only EMA9/EMA21 are calculated (when possible);
    the slower EMAs fall back to the last close and trend stays neutral.

    Args:
        df: Candle frame

    Returns:
        EMAResult for the latest candle
    """
    closes = df["close"] if "close" in df else pd.Series(dtype=float)
    last_close = float(closes.iloc[-1]) if len(closes) else 0.0

    if len(closes) < _TREND_PERIOD:
        return EMAResult(
            ema9=_last_or(calculate_ema(closes, _FAST_PERIOD), last_close),
            ema21=_last_or(calculate_ema(closes, _SLOW_PERIOD), last_close),
            ema50=last_close,
            ema100=last_close,
            ema200=last_close,
        )

    ema9 = calculate_ema(closes, _FAST_PERIOD)
    ema21 = calculate_ema(closes, _SLOW_PERIOD)
    ema50 = float(calculate_ema(closes, _MEDIUM_PERIOD).iloc[-1])
    ema100 = float(calculate_ema(closes, _LONG_PERIOD).iloc[-1])
    ema200 = float(calculate_ema(closes, _TREND_PERIOD).iloc[-1])

    current_fast, prev_fast = float(ema9.iloc[-1]), float(ema9.iloc[-2])
    current_slow, prev_slow = float(ema21.iloc[-1]), float(ema21.iloc[-2])

    crossover = "none"
    if prev_fast <= prev_slow and current_fast > current_slow:
        crossover = "bullish"
    elif prev_fast >= prev_slow and current_fast < current_slow:
        crossover = "bearish"

    distance = 0.0
    if ema200 != 0:
        distance = round((last_close - ema200) / ema200 * 100, 2)

    return EMAResult(
        ema9=current_fast,
        ema21=current_slow,
        ema50=ema50,
        ema100=ema100,
        ema200=ema200,
        trend=get_ema_trend_from_values(current_fast, current_slow, ema50, ema200, last_close),
        crossover=crossover,
        ema200_distance=distance,
    )
