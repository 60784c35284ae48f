"""
Volume-Weighted Average Price (VWAP) indicator.

    typical price = (high + low + close) / 3
    VWAP = sum(typical price * volume) / sum(volume)

VWAP is computed over the full supplied window (the scanner fetches a fixed
number of candles per timeframe, so the window is effectively a rolling VWAP).

Deviation is the percent distance of the last close from VWAP:
    - > +3%: overbought (extended above fair value)
    - < -3%: oversold
"""

from dataclasses import dataclass

import pandas as pd

_MIN_CANDLES = 20
_EXTENDED_PERCENT = 3.0


@dataclass
class VWAPResult:
    """VWAP snapshot for the latest candle."""

    value: float = 0.0
    deviation: float = 0.0  # % distance of close from VWAP
    signal: str = "neutral"  # "overbought", "oversold", "neutral"


def calculate_vwap(df: pd.DataFrame) -> float:
    """
    Calculate VWAP over the whole frame.

    Args:
        df: Candle frame

    Returns:
        VWAP, or 0.0 when there is no volume
    """
    typical_price = (df["high"] + df["low"] + df["close"]) / 3
    volume = df["volume"].astype(float)

    total_volume = float(volume.sum())
    if total_volume <= 0:
        return 0.0
    return float((typical_price * volume).sum() / total_volume)


def get_vwap_indicator(df: pd.DataFrame) -> VWAPResult:
    """
    Build the VWAP indicator for the latest candle.

    Args:
        df: Candle frame

    Returns:
        VWAPResult, or zeros with fewer than 20 candles or no volume
    """
    if len(df) < _MIN_CANDLES:
        return VWAPResult()

    vwap = calculate_vwap(df)
    price = float(df["close"].iloc[-1])
    deviation = (price - vwap) / vwap * 100 if vwap > 0 else 0.0

    signal = "neutral"
    if deviation > _EXTENDED_PERCENT:
        signal = "overbought"
    elif deviation < -_EXTENDED_PERCENT:
        signal = "oversold"

    return VWAPResult(
        value=vwap,
        deviation=round(deviation, 2),
        signal=signal,
    )
