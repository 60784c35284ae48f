"""
Candlestick pattern detector for short entry timing.

Only the last three candles of the supplied frame are inspected (c1 is the
most recent). Callers pass closed candles only: a still-forming bar can print
a shooting star at minute one and a marubozu at minute four.

Bearish patterns and their fixed points:

    Pattern                 Reliability  Points
    Bearish Engulfing       high         15
    Shooting Star           high         12
    Evening Star            high         14
    Dark Cloud Cover        medium       10
    Upper Wick Rejection    medium       wick% / 5 rounded half up, max 8
    Bearish Harami          low          6
    Gravestone Doji         medium       8
    Three Black Crows       high         12
    Bearish Belt Hold       medium       9
    Tweezer Top             low          6

Multiple patterns earn a confluence bonus (+3 for three or more, +2 for two
with at least one high-reliability pattern). The total is capped at 20.

A separate bullish detector (engulfing, hammer, morning star) exists only to
warn when the tape contradicts a short.
"""

from dataclasses import dataclass, field

import pandas as pd

from src.indicators.candles import round_half_up

MAX_PATTERN_SCORE = 20


@dataclass
class CandlePattern:
    """A recognised candlestick pattern."""

    name: str
    type: str  # "bearish", "bullish"
    reliability: str  # "high", "medium", "low"
    score: int
    description: str


@dataclass
class PatternAnalysis:
    """Patterns found on the last three candles."""

    patterns: list[CandlePattern] = field(default_factory=list)
    total_score: int = 0  # 0-20
    has_high_reliability: bool = False
    summary: str = "No patterns"


def _is_bullish(c) -> bool:
    return c.close > c.open


def _is_bearish(c) -> bool:
    return c.close < c.open


def _body(c) -> float:
    return abs(c.close - c.open)


def _upper_wick(c) -> float:
    return c.high - max(c.open, c.close)


def _lower_wick(c) -> float:
    return min(c.open, c.close) - c.low


def _range(c) -> float:
    return c.high - c.low


def _body_percent(c) -> float:
    candle_range = _range(c)
    return _body(c) / candle_range * 100 if candle_range > 0 else 0.0


def _midpoint(c) -> float:
    return c.open + (c.close - c.open) / 2


def _last_three(df: pd.DataFrame):
    """Return (c1, c2, c3): latest, previous, and the one before."""
    c3, c2, c1 = df[["open", "high", "low", "close"]].tail(3).itertuples(index=False)
    return c1, c2, c3


def _summarize(patterns: list[CandlePattern]) -> str:
    if not patterns:
        return "No patterns"
    summary = ", ".join(p.name for p in patterns)
    high_count = sum(1 for p in patterns if p.reliability == "high")
    if high_count:
        summary += f" ({high_count} high reliability)"
    return summary


def detect_bearish_patterns(df: pd.DataFrame) -> PatternAnalysis:
    """
    Detect bearish reversal patterns on the last three candles.

    Args:
        df: Candle frame of closed candles

    Returns:
        PatternAnalysis with total score 0-20
    """
    if len(df) < 3:
        return PatternAnalysis(summary="Insufficient data")

    c1, c2, c3 = _last_three(df)
    patterns: list[CandlePattern] = []

    # Bearish engulfing: red body swallows the previous green body
    if _is_bearish(c1) and _is_bullish(c2):
        if c1.open >= c2.close and c1.close <= c2.open and _body(c1) > _body(c2):
            patterns.append(CandlePattern(
                name="Bearish Engulfing",
                type="bearish",
                reliability="high",
                score=15,
                description="Red candle fully engulfs the prior green candle",
            ))

    # Shooting star: small body at the bottom, long upper wick
    body = _body(c1)
    if (
        body > 0
        and _upper_wick(c1) >= body * 2
        and _lower_wick(c1) < body * 0.5
        and body < _range(c1) * 0.3
    ):
        patterns.append(CandlePattern(
            name="Shooting Star",
            type="bearish",
            reliability="high",
            score=12,
            description="Long upper wick with a small body, rally rejected",
        ))

    # Evening star: green, small indecision candle, red closing below the green midpoint
    if _is_bearish(c1) and _is_bullish(c3):
        c2_is_small = _body(c2) < _body(c3) * 0.4 and _body_percent(c2) < 40
        if c2_is_small and c1.close < _midpoint(c3) and _body(c1) > _body(c2) * 2:
            patterns.append(CandlePattern(
                name="Evening Star",
                type="bearish",
                reliability="high",
                score=14,
                description="Three-candle reversal at the top",
            ))

    # Dark cloud cover: gap up, close below the green midpoint
    if _is_bearish(c1) and _is_bullish(c2):
        if c1.open > c2.close and c1.close < _midpoint(c2) and c1.close > c2.open:
            patterns.append(CandlePattern(
                name="Dark Cloud Cover",
                type="bearish",
                reliability="medium",
                score=10,
                description="Red candle covers more than half of the green body",
            ))

    # Upper wick rejection
    if body > 0 and _upper_wick(c1) >= body * 1.5:
        wick_percent = _upper_wick(c1) / _range(c1) * 100 if _range(c1) > 0 else 0.0
        patterns.append(CandlePattern(
            name="Upper Wick Rejection",
            type="bearish",
            reliability="medium",
            score=min(8, round_half_up(wick_percent / 5)),
            description=f"Long upper wick ({wick_percent:.1f}% of range), level rejected",
        ))

    # Bearish harami: small red body inside the previous green body
    if _is_bearish(c1) and _is_bullish(c2):
        if c1.open < c2.close and c1.close > c2.open and _body(c1) < _body(c2) * 0.5:
            patterns.append(CandlePattern(
                name="Bearish Harami",
                type="bearish",
                reliability="low",
                score=6,
                description="Small red candle inside the prior green candle",
            ))

    # Gravestone doji
    c1_range = _range(c1)
    if c1_range > 0 and body < c1_range * 0.1:
        if _upper_wick(c1) >= c1_range * 0.6 and _lower_wick(c1) < c1_range * 0.1:
            patterns.append(CandlePattern(
                name="Gravestone Doji",
                type="bearish",
                reliability="medium",
                score=8,
                description="Doji with a long upper wick, strong rejection",
            ))

    # Three black crows
    if _is_bearish(c1) and _is_bearish(c2) and _is_bearish(c3):
        full_bodies = all(_body(c) > _range(c) * 0.4 for c in (c1, c2, c3))
        lower_closes = c1.close < c2.close < c3.close
        if full_bodies and lower_closes:
            patterns.append(CandlePattern(
                name="Three Black Crows",
                type="bearish",
                reliability="high",
                score=12,
                description="Three consecutive red candles closing lower",
            ))

    # Bearish belt hold: opens at the high and sells off
    if _is_bearish(c1):
        if _upper_wick(c1) < c1_range * 0.05 and body > c1_range * 0.6:
            patterns.append(CandlePattern(
                name="Bearish Belt Hold",
                type="bearish",
                reliability="medium",
                score=9,
                description="Opened at the high and sold off",
            ))

    # Tweezer top: matching highs, both candles fail to close near the high
    if abs(c1.high - c2.high) < c1_range * 0.1:
        if c1.close < c1.high * 0.98 and c2.close < c2.high * 0.98 and _is_bearish(c1):
            patterns.append(CandlePattern(
                name="Tweezer Top",
                type="bearish",
                reliability="low",
                score=6,
                description="Double failure at the same high",
            ))

    high_reliability = [p for p in patterns if p.reliability == "high"]
    total_score = sum(p.score for p in patterns)

    if len(patterns) >= 3:
        total_score += 3
    elif len(patterns) == 2 and high_reliability:
        total_score += 2

    return PatternAnalysis(
        patterns=patterns,
        total_score=min(MAX_PATTERN_SCORE, total_score),
        has_high_reliability=bool(high_reliability),
        summary=_summarize(patterns),
    )


def detect_bullish_patterns(df: pd.DataFrame) -> PatternAnalysis:
    """
    Detect bullish reversal patterns that contradict a short.

    Args:
        df: Candle frame of closed candles

    Returns:
        PatternAnalysis with total score 0-20
    """
    if len(df) < 3:
        return PatternAnalysis(summary="Insufficient data")

    c1, c2, c3 = _last_three(df)
    patterns: list[CandlePattern] = []

    if _is_bullish(c1) and _is_bearish(c2):
        if c1.open <= c2.close and c1.close >= c2.open and _body(c1) > _body(c2):
            patterns.append(CandlePattern(
                name="Bullish Engulfing",
                type="bullish",
                reliability="high",
                score=15,
                description="Green candle engulfs the prior red candle, possible reversal up",
            ))

    body = _body(c1)
    if (
        body > 0
        and _lower_wick(c1) >= body * 2
        and _upper_wick(c1) < body * 0.3
        and body < _range(c1) * 0.35
    ):
        patterns.append(CandlePattern(
            name="Hammer",
            type="bullish",
            reliability="high",
            score=12,
            description="Hammer, possible bounce from support",
        ))

    if _is_bullish(c1) and _is_bearish(c3):
        if _body(c2) < _body(c3) * 0.4 and c1.close > _midpoint(c3):
            patterns.append(CandlePattern(
                name="Morning Star",
                type="bullish",
                reliability="high",
                score=14,
                description="Morning star, bullish reversal",
            ))

    high_reliability = [p for p in patterns if p.reliability == "high"]

    return PatternAnalysis(
        patterns=patterns,
        total_score=min(MAX_PATTERN_SCORE, sum(p.score for p in patterns)),
        has_high_reliability=bool(high_reliability),
        summary=", ".join(p.name for p in patterns) if patterns else "No patterns",
    )
