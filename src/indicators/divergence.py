"""
RSI and MACD-histogram divergence detection.

A divergence is a price extreme that the oscillator refuses to confirm:
- Bearish: price prints a higher high while the oscillator prints a lower high
- Bullish: price prints a lower low while the oscillator prints a higher low

Algorithm:
    1. Align price and oscillator by candle index and keep the trailing
       ``window`` bars (default 50).
    2. Find local peaks/troughs with a strict symmetric comparator: a bar is a
       peak when it is greater than every bar within ``lookback`` (default 5)
       on both sides. Bars closer than ``lookback`` to either edge are never
       extremes.
    3. Compare the last two price extremes with the last two oscillator
       extremes.

RSI grading:
    Bearish strength by the second RSI peak: > 70 strong, > 60 moderate,
    else weak. Confirmed when the first peak was above 70 and the second is
    back below it (mirror image around 30/40 for bullish).

MACD grading:
    Bearish requires a positive second histogram peak; strong when it is
    below 70% of the first. Confirmed once the latest histogram value has
    crossed below zero (mirror image for bullish).

Both detectors need at least 30 aligned oscillator values.
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np
import pandas as pd
from numpy.lib.stride_tricks import sliding_window_view

from src.indicators.macd import calculate_macd
from src.indicators.rsi import calculate_rsi

DEFAULT_LOOKBACK = 5
DEFAULT_WINDOW = 50
_MIN_VALUES = 30


@dataclass
class DivergenceResult:
    """Divergence state for the latest window."""

    type: str = "none"  # "bullish", "bearish", "none"
    strength: str = "weak"  # "strong", "moderate", "weak"
    confirmation: bool = False


def find_extremes(values, lookback: int = DEFAULT_LOOKBACK) -> tuple[list[int], list[int]]:
    """
    Find strict local peaks and troughs.

    Args:
        values: Sequence of numbers
        lookback: Bars compared on each side

    Returns:
        (peak positions, trough positions), ascending
    """
    data = np.asarray(values, dtype=float)
    size = 2 * lookback + 1
    if lookback <= 0 or len(data) < size:
        return [], []

    windows = sliding_window_view(data, size)
    centers = windows[:, lookback]
    neighbours = np.delete(windows, lookback, axis=1)

    peaks = np.flatnonzero(centers > neighbours.max(axis=1)) + lookback
    troughs = np.flatnonzero(centers < neighbours.min(axis=1)) + lookback

    return peaks.tolist(), troughs.tolist()


def _aligned_window(prices: pd.Series, oscillator: pd.Series, window: int) -> Optional[tuple[np.ndarray, np.ndarray]]:
    osc = oscillator.dropna()
    if len(osc) < _MIN_VALUES:
        return None
    osc = osc.tail(window)
    return prices.loc[osc.index].to_numpy(dtype=float), osc.to_numpy(dtype=float)


def _last_two(price: np.ndarray, osc: np.ndarray, price_idx: list[int], osc_idx: list[int]):
    if len(price_idx) < 2 or len(osc_idx) < 2:
        return None
    p1, p2 = price_idx[-2:]
    o1, o2 = osc_idx[-2:]
    return price[p1], price[p2], osc[o1], osc[o2]


def detect_rsi_divergence(
    df: pd.DataFrame,
    lookback: int = DEFAULT_LOOKBACK,
    window: int = DEFAULT_WINDOW,
    period: int = 14,
) -> DivergenceResult:
    """
    Detect RSI divergence over the trailing window.

    Args:
        df: Candle frame
        lookback: Extreme comparator half-width
        window: Trailing bars inspected
        period: RSI period

    Returns:
        DivergenceResult
    """
    if len(df) == 0:
        return DivergenceResult()

    closes = df["close"].astype(float)
    aligned = _aligned_window(closes, calculate_rsi(closes, period), window)
    if aligned is None:
        return DivergenceResult()
    price, rsi = aligned

    price_peaks, price_troughs = find_extremes(price, lookback)
    rsi_peaks, rsi_troughs = find_extremes(rsi, lookback)

    peaks = _last_two(price, rsi, price_peaks, rsi_peaks)
    if peaks is not None:
        price_peak1, price_peak2, rsi_peak1, rsi_peak2 = peaks
        if price_peak2 > price_peak1 and rsi_peak2 < rsi_peak1:
            if rsi_peak2 > 70:
                strength = "strong"
            elif rsi_peak2 > 60:
                strength = "moderate"
            else:
                strength = "weak"
            return DivergenceResult(
                type="bearish",
                strength=strength,
                confirmation=bool(rsi_peak2 < 70 and rsi_peak1 > 70),
            )

    troughs = _last_two(price, rsi, price_troughs, rsi_troughs)
    if troughs is not None:
        price_trough1, price_trough2, rsi_trough1, rsi_trough2 = troughs
        if price_trough2 < price_trough1 and rsi_trough2 > rsi_trough1:
            if rsi_trough2 < 30:
                strength = "strong"
            elif rsi_trough2 < 40:
                strength = "moderate"
            else:
                strength = "weak"
            return DivergenceResult(
                type="bullish",
                strength=strength,
                confirmation=bool(rsi_trough2 > 30 and rsi_trough1 < 30),
            )

    return DivergenceResult()


def detect_macd_divergence(
    df: pd.DataFrame,
    histogram: Optional[pd.Series] = None,
    lookback: int = DEFAULT_LOOKBACK,
    window: int = DEFAULT_WINDOW,
) -> DivergenceResult:
    """
    Detect MACD-histogram divergence over the trailing window.

    Args:
        df: Candle frame
        histogram: Full MACD histogram series aligned with ``df``
            (calculated from the closes when omitted)
        lookback: Extreme comparator half-width
        window: Trailing bars inspected

    Returns:
        DivergenceResult
    """
    if len(df) == 0:
        return DivergenceResult()

    closes = df["close"].astype(float)
    if histogram is None:
        histogram = calculate_macd(closes).histogram

    aligned = _aligned_window(closes, histogram, window)
    if aligned is None:
        return DivergenceResult()
    price, hist = aligned
    latest = hist[-1]

    price_peaks, price_troughs = find_extremes(price, lookback)
    hist_peaks, hist_troughs = find_extremes(hist, lookback)

    peaks = _last_two(price, hist, price_peaks, hist_peaks)
    if peaks is not None:
        price_peak1, price_peak2, hist_peak1, hist_peak2 = peaks
        if price_peak2 > price_peak1 and hist_peak2 < hist_peak1 and hist_peak2 > 0:
            return DivergenceResult(
                type="bearish",
                strength="strong" if hist_peak2 < hist_peak1 * 0.7 else "moderate",
                confirmation=bool(latest < 0),
            )

    troughs = _last_two(price, hist, price_troughs, hist_troughs)
    if troughs is not None:
        price_trough1, price_trough2, hist_trough1, hist_trough2 = troughs
        if price_trough2 < price_trough1 and hist_trough2 > hist_trough1 and hist_trough2 < 0:
            return DivergenceResult(
                type="bullish",
                strength="strong" if hist_trough2 > hist_trough1 * 0.7 else "moderate",
                confirmation=bool(latest > 0),
            )

    return DivergenceResult()
