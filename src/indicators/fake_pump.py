"""
Fake pump detector.

A fake pump is a sharp advance that is unlikely to hold: price runs far from
its long-term mean on fading participation and starts printing exhaustion.
Seven independent checks add to a confidence score:

    Check                                         Points
    Price > 30% above EMA200 (> 20%)              25 (15)
    RSI > 75 and falling (RSI > 70)               30 (15)
    Close at/above 99% of the upper band          20
      + previous high pierced the band, close below it   +15
    Last 10 bars volume < 70% of the 10 before    20
    Three green candles, last body < half avg     15
    Upper wick > 2x body on a red candle          20
    EMA9 more than 10% above EMA50                10

Confidence is capped at 100; ``is_fake`` when confidence >= 50.

Minimum data: 50 candles. With fewer than 200 candles EMA200 falls back to
the current price (distance 0).
"""

from dataclasses import dataclass, field

import pandas as pd

from src.indicators.bollinger import calculate_bollinger_bands
from src.indicators.ema import calculate_ema
from src.indicators.rsi import calculate_rsi

_MIN_CANDLES = 50
_FAKE_THRESHOLD = 50


@dataclass
class FakePumpResult:
    """Fake pump assessment for the latest candle."""

    is_fake: bool = False
    confidence: int = 0  # 0-100
    reason: str = "Insufficient data"
    signals: list[str] = field(default_factory=list)


def _last(series: pd.Series, default: float) -> float:
    valid = series.dropna()
    return float(valid.iloc[-1]) if not valid.empty else default


def detect_fake_pump(df: pd.DataFrame) -> FakePumpResult:
    """
    Score how likely the current advance is a fake pump.

    Args:
        df: Candle frame

    Returns:
        FakePumpResult with confidence 0-100 and the triggered signals
    """
    if len(df) < _MIN_CANDLES:
        return FakePumpResult()

    closes = df["close"].astype(float)
    volumes = df["volume"].astype(float)
    price = float(closes.iloc[-1])

    signals: list[str] = []
    confidence = 0

    rsi = calculate_rsi(closes).dropna()
    current_rsi = float(rsi.iloc[-1]) if len(rsi) else 50.0
    previous_rsi = float(rsi.iloc[-2]) if len(rsi) > 1 else current_rsi

    upper_band = _last(calculate_bollinger_bands(closes).upper_band, price)

    ema9 = _last(calculate_ema(closes, 9), price)
    ema50 = _last(calculate_ema(closes, 50), price)
    ema200 = _last(calculate_ema(closes, 200), price)

    # 1. Overextension from EMA200
    ema200_distance = (price - ema200) / ema200 * 100 if ema200 > 0 else 0.0
    if ema200_distance > 30:
        signals.append(f"Price {ema200_distance:.1f}% above EMA200")
        confidence += 25
    elif ema200_distance > 20:
        signals.append(f"Price {ema200_distance:.1f}% above EMA200")
        confidence += 15

    # 2. Overbought RSI losing momentum
    if current_rsi > 75 and current_rsi < previous_rsi:
        signals.append(f"RSI overbought ({current_rsi:.1f}) with declining momentum")
        confidence += 30
    elif current_rsi > 70:
        signals.append(f"RSI overbought ({current_rsi:.1f})")
        confidence += 15

    # 3. Upper Bollinger Band test and rejection
    if price >= upper_band * 0.99:
        signals.append("Price at upper Bollinger Band")
        confidence += 20

        prev_high = float(df["high"].iloc[-2])
        if prev_high > upper_band and price < prev_high:
            signals.append("Rejection from upper Bollinger Band")
            confidence += 15

    # 4. Volume fading while price advances
    recent_volume = float(volumes.iloc[-10:].mean())
    older_volume = float(volumes.iloc[-20:-10].mean())
    if recent_volume < older_volume * 0.7:
        signals.append("Declining volume during price increase")
        confidence += 20

    # 5. Hesitation after three green candles
    last3 = df.tail(3)
    bodies = (last3["close"] - last3["open"]).abs()
    all_green = bool((last3["close"] > last3["open"]).all())
    if all_green and bodies.iloc[-1] < bodies.mean() * 0.5:
        signals.append("Hesitation after strong move")
        confidence += 15

    # 6. Long upper wick closing red
    last = df.iloc[-1]
    upper_wick = last["high"] - max(last["open"], last["close"])
    body = abs(last["close"] - last["open"])
    if upper_wick > body * 2 and last["close"] < last["open"]:
        signals.append("Long upper wick with rejection")
        confidence += 20

    # 7. Fast EMA stretched away from EMA50
    ema_spread = (ema9 - ema50) / ema50 * 100 if ema50 > 0 else 0.0
    if ema_spread > 10:
        signals.append(f"EMA spread too wide ({ema_spread:.1f}%)")
        confidence += 10

    is_fake = confidence >= _FAKE_THRESHOLD

    if not is_fake:
        reason = "No significant fake pump signals detected"
    elif ema200_distance > 30 and current_rsi > 70:
        reason = "Overextended from EMA200 with overbought RSI - likely mean reversion"
    elif any("Rejection" in s for s in signals):
        reason = "Price rejected from key level with exhaustion signals"
    elif any("Declining volume" in s for s in signals):
        reason = "Price increase lacks volume support - weak hands"
    else:
        reason = "Multiple indicators suggest unsustainable price action"

    return FakePumpResult(
        is_fake=is_fake,
        confidence=min(confidence, 100),
        reason=reason,
        signals=signals,
    )
