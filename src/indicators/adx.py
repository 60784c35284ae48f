"""
Average Directional Index (ADX) indicator.

ADX measures trend strength regardless of direction; +DI and -DI tell which
side is in control.

Algorithm:
    +DM = high - prev_high when it exceeds prev_low - low (and is positive)
    -DM = prev_low - low when it exceeds high - prev_high (and is positive)
    TR  = true range (first bar: high - low)

    TR, +DM and -DM are Wilder-smoothed over ``period`` bars, then
    +DI = smoothed +DM / smoothed TR * 100 (same for -DI)
    DX  = |+DI - -DI| / (+DI + -DI) * 100 (0 when both DI are zero)
    ADX = Wilder smoothing of DX, seeded with the mean of the first
          ``period`` DX values

Trend Strength:
    - ADX >= 25: strong
    - ADX >= 20: moderate
    - ADX >= 15: weak
    - Otherwise: none

Signal:
    +DI above -DI is bullish, below is bearish.

Parameters:
    - period: 14 (Wilder's original recommendation)
    - minimum data: 2 * period candles
"""

from dataclasses import dataclass

import numpy as np
import pandas as pd

from src.indicators.candles import true_range
from src.indicators.ema import wilder_smooth


@dataclass
class ADXResult:
    """ADX snapshot for the latest candle."""

    value: float = 0.0
    trend: str = "none"  # "strong", "moderate", "weak", "none"
    plus_di: float = 0.0
    minus_di: float = 0.0
    signal: str = "neutral"  # "bullish", "bearish", "neutral"


@dataclass
class ADXLines:
    """ADX and directional indicator series aligned with the candles."""

    adx: pd.Series
    plus_di: pd.Series
    minus_di: pd.Series


def calculate_adx(df: pd.DataFrame, period: int = 14) -> ADXLines:
    """
    Calculate ADX with +DI and -DI.

    Args:
        df: Candle frame
        period: Smoothing period (default: 14)

    Returns:
        ADXLines with NaN during warm-up
    """
    high = df["high"].astype(float)
    low = df["low"].astype(float)

    up_move = high.diff().fillna(0.0)
    down_move = (-low.diff()).fillna(0.0)

    plus_dm = up_move.where((up_move > down_move) & (up_move > 0), 0.0)
    minus_dm = down_move.where((down_move > up_move) & (down_move > 0), 0.0)

    smoothed_tr = wilder_smooth(true_range(df), period)
    smoothed_plus = wilder_smooth(plus_dm, period)
    smoothed_minus = wilder_smooth(minus_dm, period)

    # Zero true range means no movement at all: both DI are 0
    safe_tr = smoothed_tr.replace(0, np.nan)
    plus_di = (smoothed_plus / safe_tr * 100).where(smoothed_tr != 0, 0.0).where(smoothed_tr.notna())
    minus_di = (smoothed_minus / safe_tr * 100).where(smoothed_tr != 0, 0.0).where(smoothed_tr.notna())

    di_sum = plus_di + minus_di
    dx = ((plus_di - minus_di).abs() / di_sum.replace(0, np.nan) * 100).where(di_sum != 0, 0.0)
    dx = dx.where(di_sum.notna())

    adx = wilder_smooth(dx.dropna(), period).reindex(df.index)

    return ADXLines(adx=adx, plus_di=plus_di, minus_di=minus_di)


def get_adx_trend(value: float) -> str:
    """Bucket an ADX value into trend strength."""
    if value >= 25:
        return "strong"
    if value >= 20:
        return "moderate"
    if value >= 15:
        return "weak"
    return "none"


def get_adx_indicator(df: pd.DataFrame, period: int = 14) -> ADXResult:
    """
    Build the ADX indicator for the latest candle.

    Args:
        df: Candle frame
        period: Smoothing period

    Returns:
        ADXResult, or the "none" default with insufficient data
    """
    if len(df) < period * 2:
        return ADXResult()

    lines = calculate_adx(df, period)
    adx = lines.adx.dropna()
    if adx.empty:
        return ADXResult()

    value = float(adx.iloc[-1])
    plus_di = float(lines.plus_di.iloc[-1])
    minus_di = float(lines.minus_di.iloc[-1])

    signal = "neutral"
    if plus_di > minus_di:
        signal = "bullish"
    elif minus_di > plus_di:
        signal = "bearish"

    return ADXResult(
        value=round(value, 2),
        trend=get_adx_trend(value),
        plus_di=round(plus_di, 2),
        minus_di=round(minus_di, 2),
        signal=signal,
    )
