"""
Stochastic RSI indicator.

StochRSI applies the stochastic oscillator to RSI values instead of price:

    K = (RSI - lowest RSI) / (highest RSI - lowest RSI) * 100
    D = 3-period SMA of K

A flat RSI window (highest == lowest) reports K = 100.

Zones:
    - K >= 80: overbought
    - K <= 20: oversold

Signal (first matching rule wins):
    1. Oversold and K rising: bullish
    2. Overbought and K falling: bearish
    3. K above D and below 80: bullish
    4. K below D and above 20: bearish
    5. Otherwise: neutral
"""

from dataclasses import dataclass

import pandas as pd

from src.indicators.rsi import calculate_rsi

_OVERBOUGHT = 80.0
_OVERSOLD = 20.0


@dataclass
class StochRSIResult:
    """StochRSI snapshot for the latest candle."""

    k: float = 50.0
    d: float = 50.0
    signal: str = "neutral"  # "bullish", "bearish", "neutral"
    overbought: bool = False
    oversold: bool = False


def calculate_stoch_rsi(
    prices: pd.Series,
    rsi_period: int = 14,
    stoch_period: int = 14,
    smooth_period: int = 3,
) -> tuple[pd.Series, pd.Series]:
    """
    Calculate StochRSI K and D lines.

    Args:
        prices: Series of closing prices
        rsi_period: RSI period (default: 14)
        stoch_period: Stochastic window over RSI values (default: 14)
        smooth_period: SMA period for the D line (default: 3)

    Returns:
        (k, d) series restricted to bars where both are defined
    """
    rsi = calculate_rsi(prices, rsi_period).dropna()
    if len(rsi) < stoch_period:
        empty = pd.Series(dtype=float)
        return empty, empty

    highest = rsi.rolling(window=stoch_period).max()
    lowest = rsi.rolling(window=stoch_period).min()
    spread = highest - lowest

    k = ((rsi - lowest) / spread.where(spread != 0) * 100).where(spread != 0, 100.0)
    k = k.where(highest.notna()).dropna()

    d = k.rolling(window=smooth_period).mean().dropna()
    return k.loc[d.index], d


def get_stoch_rsi_indicator(df: pd.DataFrame) -> StochRSIResult:
    """
    Build the StochRSI indicator for the latest candle.

    Args:
        df: Candle frame

    Returns:
        StochRSIResult, or the neutral default (K = D = 50) with insufficient data
    """
    if len(df) == 0:
        return StochRSIResult()

    k, d = calculate_stoch_rsi(df["close"])
    if k.empty:
        return StochRSIResult()

    current_k = float(k.iloc[-1])
    current_d = float(d.iloc[-1])
    previous_k = float(k.iloc[-2]) if len(k) > 1 else current_k

    overbought = current_k >= _OVERBOUGHT
    oversold = current_k <= _OVERSOLD

    if oversold and current_k > previous_k:
        signal = "bullish"
    elif overbought and current_k < previous_k:
        signal = "bearish"
    elif current_k > current_d and current_k < _OVERBOUGHT:
        signal = "bullish"
    elif current_k < current_d and current_k > _OVERSOLD:
        signal = "bearish"
    else:
        signal = "neutral"

    return StochRSIResult(
        k=round(current_k, 2),
        d=round(current_d, 2),
        signal=signal,
        overbought=overbought,
        oversold=oversold,
    )
