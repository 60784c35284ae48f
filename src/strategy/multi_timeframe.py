"""
Multi-timeframe trend alignment and 5m entry timing.

Alignment:
    Each timeframe's EMA-stack trend nudges a neutral score of 50:

        Timeframe  Weight  Shift
        4h         0.40    +/-10
        2h         0.30    +/-7.5
        1h         0.20    +/-5
        15m        0.10    +/-2.5

    Bearish adds, bullish subtracts. Direction is bearish at >= 65, bullish
    at <= 35, mixed otherwise. The 5m trend is recorded for display only; it
    is too noisy to move the signal.

Entry timing:
    A separate 0-100 score computed from 5m closed candles only. It tells
    the trader whether to act on a short now or wait for a better fill and
    never feeds the main short score.

        Sub-score   Range  Inputs
        Pattern     0-20   Bearish candle patterns, -15 on a strong bullish one
        Indicator   0-35   5m RSI level, StochRSI, MACD, RSI divergence
        Volume      0-25   Volume spike and last-5 sell/buy volume ratio
        Position    0-20   Bollinger position, EMA200 distance, upper wick

    Signal: >= 70 enter_now (optimal), >= 55 ready (good), >= 40 wait
    (early), else wait (late).
"""

from dataclasses import dataclass, field
from typing import Mapping

import pandas as pd
import structlog

from src.indicators.adx import get_adx_indicator
from src.indicators.bollinger import get_bollinger_indicator
from src.indicators.candle_patterns import detect_bearish_patterns, detect_bullish_patterns
from src.indicators.candles import closed_candles
from src.indicators.divergence import DEFAULT_LOOKBACK, DEFAULT_WINDOW, detect_rsi_divergence
from src.indicators.ema import get_ema_indicator
from src.indicators.macd import calculate_macd, get_macd_indicator
from src.indicators.rsi import get_rsi_indicator
from src.indicators.stoch_rsi import get_stoch_rsi_indicator

logger = structlog.get_logger(__name__)

TIMEFRAME_WEIGHTS: dict[str, float] = {
    "4h": 0.40,
    "2h": 0.30,
    "1h": 0.20,
    "15m": 0.10,
}
DISPLAY_TIMEFRAMES = ("5m", "15m", "1h", "2h", "4h")

_NEUTRAL_SCORE = 50.0
_TREND_SHIFT = 25.0
_BEARISH_DIRECTION = 65.0
_BULLISH_DIRECTION = 35.0
_MIN_TREND_CANDLES = 50
_MIN_ENTRY_CANDLES = 30


@dataclass
class MultiTFAlignment:
    """Weighted trend agreement across timeframes."""

    score: float = _NEUTRAL_SCORE  # 0-100, higher = more bearish
    direction: str = "mixed"  # "bullish", "bearish", "mixed"
    trends: dict[str, str] = field(default_factory=dict)
    four_h_trend: str = "neutral"
    four_h_strength: str = "weak"  # "strong", "moderate", "weak"
    weights: dict[str, float] = field(default_factory=lambda: dict(TIMEFRAME_WEIGHTS))


@dataclass
class EntryTiming:
    """5m entry timing for a short."""

    quality: str = "late"  # "optimal", "good", "early", "late"
    score: float = 0.0  # 0-100
    rsi_5m: float = 50.0
    divergence_5m: str = "none"  # "bullish", "bearish", "none"
    pullback_depth: float = 0.0  # 0-100
    signal: str = "wait"  # "wait", "ready", "enter_now"
    reason: str = "Insufficient 5m data"


def get_trend_from_ema(df: pd.DataFrame) -> str:
    """
    Trend of one timeframe from its EMA stack.

    Args:
        df: Candle frame

    Returns:
        "bullish", "bearish" or "neutral" (neutral below 50 candles)
    """
    if len(df) < _MIN_TREND_CANDLES:
        return "neutral"
    return get_ema_indicator(df).trend


def get_trend_strength(df: pd.DataFrame) -> str:
    """Collapse the ADX trend bucket into strong / moderate / weak."""
    adx_trend = get_adx_indicator(df).trend
    return adx_trend if adx_trend in ("strong", "moderate") else "weak"


def calculate_multi_tf_alignment(
    trends: Mapping[str, str],
    four_h_strength: str = "weak",
) -> MultiTFAlignment:
    """
    Combine per-timeframe trends into one alignment score.

    Args:
        trends: Trend per timeframe ("5m", "15m", "1h", "2h", "4h");
            missing timeframes count as neutral
        four_h_strength: 4h trend strength from ADX

    Returns:
        MultiTFAlignment
    """
    score = _NEUTRAL_SCORE
    for timeframe, weight in TIMEFRAME_WEIGHTS.items():
        trend = trends.get(timeframe, "neutral")
        if trend == "bearish":
            score += _TREND_SHIFT * weight
        elif trend == "bullish":
            score -= _TREND_SHIFT * weight

    if score >= _BEARISH_DIRECTION:
        direction = "bearish"
    elif score <= _BULLISH_DIRECTION:
        direction = "bullish"
    else:
        direction = "mixed"

    return MultiTFAlignment(
        score=round(score, 1),
        direction=direction,
        trends={tf: trends.get(tf, "neutral") for tf in DISPLAY_TIMEFRAMES},
        four_h_trend=trends.get("4h", "neutral"),
        four_h_strength=four_h_strength,
    )


def analyze_timeframes(candles_by_timeframe: Mapping[str, pd.DataFrame]) -> MultiTFAlignment:
    """
    Build the alignment from candle frames keyed by timeframe.

    Args:
        candles_by_timeframe: Candle frame per timeframe

    Returns:
        MultiTFAlignment (4h strength from the 4h ADX)
    """
    trends = {tf: get_trend_from_ema(df) for tf, df in candles_by_timeframe.items() if tf in DISPLAY_TIMEFRAMES}
    four_h = candles_by_timeframe.get("4h")
    strength = get_trend_strength(four_h) if four_h is not None and len(four_h) else "weak"

    alignment = calculate_multi_tf_alignment(trends, strength)
    logger.debug(
        "multi_tf_alignment",
        score=alignment.score,
        direction=alignment.direction,
        trends=alignment.trends,
    )
    return alignment


def _pattern_score(df: pd.DataFrame) -> float:
    bearish = detect_bearish_patterns(df)
    bullish = detect_bullish_patterns(df)
    score = float(bearish.total_score)
    if bullish.has_high_reliability:
        score -= 15
    return max(0.0, min(20.0, score))


def _indicator_score(df: pd.DataFrame, rsi: float, divergence: str) -> float:
    score = 0.0

    if rsi >= 80:
        score += 15
    elif rsi >= 70:
        score += 12
    elif rsi >= 60:
        score += 8
    elif rsi >= 50:
        score += 4

    stoch = get_stoch_rsi_indicator(df)
    if stoch.overbought and stoch.signal == "bearish":
        score += 8
    elif stoch.overbought:
        score += 5
    elif stoch.k < stoch.d:
        score += 3

    macd = get_macd_indicator(df)
    if macd.trend == "bearish":
        score += 7
    else:
        histogram = calculate_macd(df["close"]).histogram.dropna()
        # Positive but shrinking histogram: momentum fading
        if len(histogram) >= 2 and 0 < histogram.iloc[-1] < histogram.iloc[-2]:
            score += 4

    if divergence == "bearish":
        score += 5

    return min(35.0, score)


def _volume_score(df: pd.DataFrame) -> float:
    score = 0.0
    volumes = df["volume"]

    average = float(volumes.iloc[-21:-1].mean()) if len(volumes) > 1 else 0.0
    ratio = float(volumes.iloc[-1]) / average if average > 0 else 0.0
    if ratio >= 3:
        score += 12
    elif ratio >= 2:
        score += 8
    elif ratio >= 1.5:
        score += 5

    last5 = df.tail(5)
    sell_volume = float(last5.loc[last5["close"] < last5["open"], "volume"].sum())
    buy_volume = float(last5.loc[last5["close"] > last5["open"], "volume"].sum())
    if buy_volume > 0:
        pressure = sell_volume / buy_volume
    else:
        pressure = 2.0 if sell_volume > 0 else 0.0
    if pressure >= 2:
        score += 13
    elif pressure >= 1.5:
        score += 9
    elif pressure >= 1:
        score += 5

    return min(25.0, score)


def _position_score(df: pd.DataFrame, bb_position: float) -> float:
    score = 0.0

    if bb_position >= 95:
        score += 8
    elif bb_position >= 85:
        score += 6
    elif bb_position >= 75:
        score += 3

    distance = get_ema_indicator(df).ema200_distance
    if distance >= 10:
        score += 4
    elif distance >= 5:
        score += 2

    last = df.iloc[-1]
    candle_range = last["high"] - last["low"]
    if candle_range > 0:
        wick_share = (last["high"] - max(last["open"], last["close"])) / candle_range * 100
        if wick_share >= 60:
            score += 8
        elif wick_share >= 40:
            score += 5
        elif wick_share >= 25:
            score += 2

    return min(20.0, score)


def calculate_entry_timing(
    candles_5m: pd.DataFrame,
    divergence_lookback: int = DEFAULT_LOOKBACK,
    divergence_window: int = DEFAULT_WINDOW,
) -> EntryTiming:
    """
    Score the 5m entry for a short.

    The still-forming 5m candle is dropped before anything is measured.

    Args:
        candles_5m: 5m candle frame (may include the forming candle)
        divergence_lookback: Extreme comparator half-width
        divergence_window: Trailing bars inspected for divergence

    Returns:
        EntryTiming; wait/late with score 0 below 30 closed candles
    """
    df = closed_candles(candles_5m)
    if len(df) < _MIN_ENTRY_CANDLES:
        return EntryTiming()

    rsi = get_rsi_indicator(df).value
    divergence = detect_rsi_divergence(df, divergence_lookback, divergence_window).type
    bb_position = max(0.0, min(100.0, get_bollinger_indicator(df).position))

    pattern = _pattern_score(df)
    indicator = _indicator_score(df, rsi, divergence)
    volume = _volume_score(df)
    position = _position_score(df, bb_position)
    score = max(0.0, min(100.0, pattern + indicator + volume + position))

    if score >= 70:
        signal, quality = "enter_now", "optimal"
        reason = "Strong 5m rejection, enter now"
    elif score >= 55:
        signal, quality = "ready", "good"
        reason = "Entry forming, wait for the next 5m close"
    elif score >= 40:
        signal, quality = "wait", "early"
        reason = "Too early, wait 5-15 minutes"
    else:
        signal, quality = "wait", "late"
        reason = "No 5m confirmation, wait 15-30 minutes"

    logger.debug(
        "entry_timing_calculated",
        score=score,
        signal=signal,
        pattern=pattern,
        indicator=indicator,
        volume=volume,
        position=position,
    )

    return EntryTiming(
        quality=quality,
        score=round(score, 1),
        rsi_5m=rsi,
        divergence_5m=divergence,
        pullback_depth=round(bb_position, 1),
        signal=signal,
        reason=reason,
    )
