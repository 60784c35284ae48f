"""
Average True Range (ATR) indicator.

ATR measures market volatility by averaging true ranges.
Higher ATR indicates higher volatility, lower ATR indicates lower volatility.

Algorithm:
    True Range (TR) = max(high-low, |high-prev_close|, |low-prev_close|)
    ATR = simple mean of the last ``period`` true ranges
    ATR% = ATR / last close * 100

    The scanner compares coins priced from $0.00001 to $100k, so ATR is
    almost always consumed as a percentage of price.

Volatility Classification:
    - ATR% > 5: high
    - ATR% < 2: low
    - Otherwise: normal

Parameters:
    - period: 14 (Wilder's original recommendation)

Integration:
    Volatility bucket for warnings, and the multi-window ATR% metrics of the
    volatility tier classifier.
"""

from dataclasses import dataclass

import numpy as np
import pandas as pd

from src.indicators.candles import true_range

# ATR% reported when there is not enough data to measure volatility
DEFAULT_ATR_PERCENT = 5.0

_HIGH_VOLATILITY = 5.0
_LOW_VOLATILITY = 2.0


@dataclass
class ATRResult:
    """ATR snapshot for the latest candle."""

    value: float = 0.0
    percentage: float = 0.0
    volatility: str = "normal"  # "high", "normal", "low"


def calculate_atr(
    df: pd.DataFrame,
    period: int = 14,
) -> float:
    """
    Calculate ATR as the simple mean of the last ``period`` true ranges.

    Args:
        df: Candle frame
        period: ATR period (default: 14)

    Returns:
        ATR value, or 0.0 with fewer than ``period + 1`` candles
    """
    if len(df) < period + 1:
        return 0.0
    return float(true_range(df).tail(period).mean())


def calculate_atr_percent(
    df: pd.DataFrame,
    period: int = 14,
) -> float:
    """
    Calculate ATR as percentage of the last close.

    Args:
        df: Candle frame
        period: ATR period (default: 14)

    Returns:
        ATR% (e.g. 2.5 means ATR is 2.5% of price). Falls back to 5.0 when
        there are too few candles or the last close is not positive.
    """
    if len(df) < period + 1:
        return DEFAULT_ATR_PERCENT

    price = float(df["close"].iloc[-1])
    if price <= 0:
        return DEFAULT_ATR_PERCENT

    percent = calculate_atr(df, period) / price * 100
    return float(percent) if np.isfinite(percent) else DEFAULT_ATR_PERCENT


def get_volatility_level(atr_percent: float) -> str:
    """Bucket ATR% into high / normal / low."""
    if atr_percent > _HIGH_VOLATILITY:
        return "high"
    if atr_percent < _LOW_VOLATILITY:
        return "low"
    return "normal"


def get_atr_indicator(df: pd.DataFrame, period: int = 14) -> ATRResult:
    """
    Build the ATR indicator for the latest candle.

    Args:
        df: Candle frame
        period: ATR period

    Returns:
        ATRResult, or zeros with "normal" volatility with insufficient data
    """
    if len(df) < period + 1:
        return ATRResult()

    atr = calculate_atr(df, period)
    price = float(df["close"].iloc[-1])
    percentage = atr / price * 100 if price > 0 else 0.0

    return ATRResult(
        value=atr,
        percentage=round(percentage, 2),
        volatility=get_volatility_level(percentage),
    )
