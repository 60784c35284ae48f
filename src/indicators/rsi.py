"""
Relative Strength Index (RSI) indicator.

RSI measures momentum by comparing the magnitude of recent gains to recent losses.
Values range from 0 to 100:
- <= 30: Oversold
- >= 70: Overbought

Algorithm:
    This implementation uses Wilder's Smoothed Moving Average (SMMA), which is
    the standard RSI calculation method. Wilder's smoothing uses alpha = 1/period
    rather than the standard EMA formula of alpha = 2/(period+1).

    Wilder's SMMA formula:
        SMMA(i) = ((SMMA(i-1) * (period - 1)) + current_value) / period

    The first average is the simple mean of the first ``period`` gains
    (losses), exactly as in Wilder's 1978 book. When the average loss is zero
    RSI is pinned to 100 instead of dividing by zero.

Signal Generation:
    Direction of the last RSI move, filtered by the extreme zones:
    - RSI rising and below 70: bullish
    - RSI falling and above 30: bearish
    - Otherwise: neutral

Parameters:
    - period: 14 (Wilder's original recommendation)
    - oversold: 30
    - overbought: 70

Integration:
    Momentum category of the short scorer, StochRSI input, divergence
    detection and the fake-pump detector.
"""

from dataclasses import dataclass

import numpy as np
import pandas as pd

from src.indicators.ema import wilder_smooth

_OVERBOUGHT = 70.0
_OVERSOLD = 30.0


@dataclass
class RSIResult:
    """RSI snapshot for the latest candle."""

    value: float = 50.0
    trend: str = "neutral"  # "overbought", "oversold", "neutral"
    signal: str = "neutral"  # "bullish", "bearish", "neutral"


def calculate_rsi(
    prices: pd.Series,
    period: int = 14,
) -> pd.Series:
    """
    Calculate RSI using Wilder's Smoothed Moving Average.

    Args:
        prices: Series of closing prices
        period: RSI calculation period (default: 14, Wilder's recommendation)

    Returns:
        Series of RSI values (0-100) aligned with ``prices``. The first
        ``period`` entries are NaN; all NaN when fewer than ``period + 1``
        prices are supplied.
    """
    prices = prices.astype(float)
    if period <= 0 or len(prices) < period + 1:
        return pd.Series(np.nan, index=prices.index, dtype=float)

    # Calculate price changes
    delta = prices.diff().iloc[1:]

    # Separate gains and losses
    gains = delta.clip(lower=0.0)
    losses = (-delta).clip(lower=0.0)

    # Seeded with the simple average of the first period
    avg_gains = wilder_smooth(gains, period)
    avg_losses = wilder_smooth(losses, period)

    # Zero average loss means no down moves: RSI = 100
    rs = avg_gains / avg_losses.replace(0, np.inf)
    rsi = 100 - (100 / (1 + rs))
    rsi = rsi.where(avg_losses != 0, 100.0).where(avg_losses.notna())

    return rsi.reindex(prices.index)


def get_rsi_trend(value: float) -> str:
    """Bucket an RSI value into overbought / oversold / neutral."""
    if pd.isna(value):
        return "neutral"
    if value >= _OVERBOUGHT:
        return "overbought"
    if value <= _OVERSOLD:
        return "oversold"
    return "neutral"


def get_rsi_indicator(df: pd.DataFrame, period: int = 14) -> RSIResult:
    """
    Build the RSI indicator for the latest candle.

    Args:
        df: Candle frame
        period: RSI period

    Returns:
        RSIResult, or the neutral default (50) with insufficient data
    """
    if len(df) < period + 1:
        return RSIResult()

    values = calculate_rsi(df["close"], period).dropna()
    if values.empty:
        return RSIResult()

    current = float(values.iloc[-1])
    previous = float(values.iloc[-2]) if len(values) > 1 else current

    signal = "neutral"
    if current > previous and current < _OVERBOUGHT:
        signal = "bullish"
    elif current < previous and current > _OVERSOLD:
        signal = "bearish"

    return RSIResult(
        value=round(current, 2),
        trend=get_rsi_trend(current),
        signal=signal,
    )
