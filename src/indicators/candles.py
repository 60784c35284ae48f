"""
Candle input normalisation.

Every indicator in this package works on a pandas DataFrame with the columns
``timestamp, open, high, low, close, volume`` in chronological order. Exchange
clients hand candles over in several shapes (dataclasses, raw dicts, frames),
so this module converts them into one canonical frame before any math runs.

Conversion never raises: unusable input becomes an empty frame, which every
indicator treats as "insufficient data" and answers with its neutral default.
"""

import math
from dataclasses import dataclass, asdict
from typing import Iterable, Mapping, Union

import numpy as np
import pandas as pd
import structlog

logger = structlog.get_logger(__name__)

CANDLE_COLUMNS = ["timestamp", "open", "high", "low", "close", "volume"]
_PRICE_COLUMNS = ["open", "high", "low", "close"]


@dataclass(frozen=True)
class Candle:
    """Single OHLCV bar."""

    timestamp: int  # Open time, milliseconds since epoch
    open: float
    high: float
    low: float
    close: float
    volume: float


CandleInput = Union[pd.DataFrame, Iterable[Candle], Iterable[Mapping]]


def empty_frame() -> pd.DataFrame:
    """Return an empty candle frame with the canonical columns."""
    return pd.DataFrame({column: pd.Series(dtype=float) for column in CANDLE_COLUMNS})


def candles_to_frame(candles: CandleInput) -> pd.DataFrame:
    """
    Convert candles into a canonical OHLCV DataFrame.

    Args:
        candles: DataFrame, list of Candle, or list of mappings with OHLCV keys

    Returns:
        New DataFrame sorted by timestamp with a fresh RangeIndex. Rows with
        non-finite prices are dropped; a missing volume column becomes zero.
    """
    if candles is None:
        return empty_frame()

    if isinstance(candles, pd.DataFrame):
        df = candles.copy()
    else:
        rows = [asdict(c) if isinstance(c, Candle) else dict(c) for c in candles]
        if not rows:
            return empty_frame()
        df = pd.DataFrame(rows)

    missing = [column for column in _PRICE_COLUMNS if column not in df.columns]
    if missing:
        logger.warning("candles_missing_columns", missing=missing, rows=len(df))
        return empty_frame()

    if "volume" not in df.columns:
        df["volume"] = 0.0
    if "timestamp" not in df.columns:
        df["timestamp"] = np.arange(len(df), dtype=float)

    df = df[CANDLE_COLUMNS].apply(pd.to_numeric, errors="coerce")
    df = df.replace([np.inf, -np.inf], np.nan)

    before = len(df)
    df = df.dropna(subset=_PRICE_COLUMNS)
    if len(df) < before:
        logger.debug("candles_dropped_invalid_rows", dropped=before - len(df))

    df["volume"] = df["volume"].fillna(0.0).clip(lower=0.0)
    df = df.sort_values("timestamp", kind="stable").reset_index(drop=True)
    return df


def closed_candles(df: pd.DataFrame) -> pd.DataFrame:
    """Drop the last (still forming) candle."""
    if len(df) <= 1:
        return df.iloc[0:0]
    return df.iloc[:-1]


def true_range(df: pd.DataFrame) -> pd.Series:
    """
    Calculate True Range for each candle.

    The first bar has no previous close, so its true range is high - low.

    Args:
        df: Candle frame

    Returns:
        Series of true range values
    """
    high = df["high"]
    low = df["low"]
    prev_close = df["close"].shift(1)

    tr1 = high - low
    tr2 = (high - prev_close).abs()
    tr3 = (low - prev_close).abs()

    return pd.concat([tr1, tr2, tr3], axis=1).max(axis=1)


def safe_pct(numerator: float, denominator: float, default: float = 0.0) -> float:
    """Percentage ratio that resolves zero or non-finite inputs to a default."""
    if denominator == 0 or not np.isfinite(denominator) or not np.isfinite(numerator):
        return default
    result = numerator / denominator * 100
    return float(result) if np.isfinite(result) else default


def round_half_up(value: float) -> int:
    """Nearest integer, halves rounded up (42.5 -> 43, -0.5 -> 0)."""
    return math.floor(value + 0.5)
