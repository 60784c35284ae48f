"""
On-Balance Volume (OBV) indicator.

OBV is a running total of signed volume:
- close above previous close: + volume
- close below previous close: - volume
- unchanged close: OBV unchanged

Divergence:
    Within the last 14 bars, a fresh price extreme printed on the latest bar
    is compared against the earlier part of the window. Price breaking the
    prior low while OBV over the last 3 bars holds above its prior low is a
    bullish divergence (buyers absorbing the sell-off); the mirror image on
    highs is bearish.
"""

from dataclasses import dataclass

import numpy as np
import pandas as pd

_MIN_VALUES = 20
_DIVERGENCE_LOOKBACK = 14
_RECENT_BARS = 3


@dataclass
class OBVResult:
    """OBV snapshot for the latest candle."""

    value: float = 0.0
    trend: str = "neutral"  # "bullish", "bearish", "neutral"
    divergence: str = "none"  # "bullish", "bearish", "none"
    divergence_strength: str = "weak"  # "strong", "moderate", "weak"


def calculate_obv(df: pd.DataFrame) -> pd.Series:
    """
    Calculate the On-Balance Volume series (starting at 0).

    Args:
        df: Candle frame

    Returns:
        OBV series aligned with the candles
    """
    if len(df) == 0:
        return pd.Series([0.0])

    direction = np.sign(df["close"].astype(float).diff().fillna(0.0))
    signed_volume = direction * df["volume"].astype(float)
    signed_volume.iloc[0] = 0.0

    return signed_volume.cumsum()


def detect_obv_divergence(df: pd.DataFrame, obv: pd.Series, lookback: int = _DIVERGENCE_LOOKBACK) -> tuple[str, str]:
    """
    Detect OBV divergence over the trailing window.

    Args:
        df: Candle frame
        obv: OBV series aligned with ``df``
        lookback: Window size in bars

    Returns:
        (divergence type, strength)
    """
    if len(df) < lookback or len(obv) < lookback:
        return "none", "weak"

    lows = df["low"].tail(lookback).to_numpy(dtype=float)
    highs = df["high"].tail(lookback).to_numpy(dtype=float)
    window_obv = obv.tail(lookback).to_numpy(dtype=float)

    prior = slice(0, -_RECENT_BARS)
    recent = slice(-_RECENT_BARS, None)

    # Bullish: latest bar is the lowest low, OBV does not confirm
    if int(np.argmin(lows)) == lookback - 1:
        if lows[-1] < lows[prior].min() and window_obv[recent].min() > window_obv[prior].min():
            return "bullish", "moderate"

    # Bearish: latest bar is the highest high, OBV does not confirm
    if int(np.argmax(highs)) == lookback - 1:
        if highs[-1] > highs[prior].max() and window_obv[recent].max() < window_obv[prior].max():
            return "bearish", "moderate"

    return "none", "weak"


def get_obv_indicator(df: pd.DataFrame) -> OBVResult:
    """
    Build the OBV indicator for the latest candle.

    Args:
        df: Candle frame

    Returns:
        OBVResult, or the neutral default with fewer than 20 values
    """
    obv = calculate_obv(df)
    if len(obv) < _MIN_VALUES:
        return OBVResult()

    change = float(obv.iloc[-1] - obv.iloc[-2])
    trend = "neutral"
    if change > 0:
        trend = "bullish"
    elif change < 0:
        trend = "bearish"

    divergence, strength = detect_obv_divergence(df, obv)

    return OBVResult(
        value=float(obv.iloc[-1]),
        trend=trend,
        divergence=divergence,
        divergence_strength=strength,
    )
