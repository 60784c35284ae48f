"""
Bollinger Bands indicator.

Bollinger Bands are a volatility indicator that consists of three bands:
- Middle Band: Simple Moving Average (SMA) of price
- Upper Band: Middle Band + (standard deviation * multiplier)
- Lower Band: Middle Band - (standard deviation * multiplier)

Algorithm:
    Middle Band = SMA(price, period)
    Standard Deviation = population STD(price, period)
    Upper Band = Middle + (StdDev * multiplier)
    Lower Band = Middle - (StdDev * multiplier)

    Derived metrics:
    - Position = (Price - Lower) / (Upper - Lower) * 100
      Percent location of the close inside the bands (0 = lower band,
      100 = upper band, outside the bands goes below 0 / above 100).
      Converged bands (width <= 0) report 50.

    - Squeeze: current band width below 0.7x the average width of the last
      20 bars, a classic precursor of a volatility expansion.

Signal Generation:
    - Position > 90: overbought
    - Position < 10: oversold
    - Otherwise: neutral

Parameters:
    - period: 20 (standard)
    - std_dev: 2.0 (standard, captures ~95% of price action)

Integration:
    Price-action category of the short scorer, the "perfect setup" bonus,
    entry timing and the fake-pump detector (upper band tests).
"""

from dataclasses import dataclass

import numpy as np
import pandas as pd

_OVERBOUGHT_POSITION = 90
_OVERSOLD_POSITION = 10
_SQUEEZE_RATIO = 0.7
_SQUEEZE_LOOKBACK = 20
_MIN_BAND_VALUES = 5


@dataclass
class BollingerBands:
    """Bollinger Bands series aligned with the input closes."""

    upper_band: pd.Series
    middle_band: pd.Series
    lower_band: pd.Series
    width: pd.Series  # upper - lower


@dataclass
class BollingerResult:
    """Bollinger Bands snapshot for the latest candle."""

    upper: float = 0.0
    middle: float = 0.0
    lower: float = 0.0
    position: float = 50.0  # 0 = lower band, 100 = upper band
    squeeze: bool = False
    signal: str = "neutral"  # "overbought", "oversold", "neutral"


def calculate_bollinger_bands(
    prices: pd.Series,
    period: int = 20,
    std_dev: float = 2.0,
) -> BollingerBands:
    """
    Calculate Bollinger Bands.

    Uses population standard deviation (ddof=0), matching the common
    charting-platform definition.

    Args:
        prices: Series of closing prices
        period: SMA period (default: 20)
        std_dev: Standard deviation multiplier (default: 2.0)

    Returns:
        BollingerBands with band series
    """
    prices = prices.astype(float)
    middle_band = prices.rolling(window=period).mean()
    rolling_std = prices.rolling(window=period).std(ddof=0)

    upper_band = middle_band + (rolling_std * std_dev)
    lower_band = middle_band - (rolling_std * std_dev)

    return BollingerBands(
        upper_band=upper_band,
        middle_band=middle_band,
        lower_band=lower_band,
        width=upper_band - lower_band,
    )


def get_band_position(price: float, upper: float, lower: float) -> float:
    """
    Percent location of a price inside the bands.

    Returns 50 when the bands have converged.
    """
    width = upper - lower
    if width <= 0 or not np.isfinite(width):
        return 50.0
    return (price - lower) / width * 100


def get_bollinger_indicator(df: pd.DataFrame, period: int = 20, std_dev: float = 2.0) -> BollingerResult:
    """
    Build the Bollinger Bands indicator for the latest candle.

    Args:
        df: Candle frame
        period: SMA period
        std_dev: Standard deviation multiplier

    Returns:
        BollingerResult, or the neutral default (position 50) when fewer than
        five band values are available
    """
    if len(df) < period + _MIN_BAND_VALUES - 1:
        return BollingerResult()

    bands = calculate_bollinger_bands(df["close"], period, std_dev)
    widths = bands.width.dropna()
    if len(widths) < _MIN_BAND_VALUES:
        return BollingerResult()

    price = float(df["close"].iloc[-1])
    upper = float(bands.upper_band.iloc[-1])
    middle = float(bands.middle_band.iloc[-1])
    lower = float(bands.lower_band.iloc[-1])

    position = get_band_position(price, upper, lower)

    avg_width = float(widths.tail(_SQUEEZE_LOOKBACK).mean())
    squeeze = bool(widths.iloc[-1] < avg_width * _SQUEEZE_RATIO)

    signal = "neutral"
    if position > _OVERBOUGHT_POSITION:
        signal = "overbought"
    elif position < _OVERSOLD_POSITION:
        signal = "oversold"

    return BollingerResult(
        upper=upper,
        middle=middle,
        lower=lower,
        position=round(position, 2),
        squeeze=squeeze,
        signal=signal,
    )
