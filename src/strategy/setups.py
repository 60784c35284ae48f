"""
Short setup classification, recommendation and warnings.

Every detector that fires adds a candidate with a priority; the highest
priority wins (earlier detectors win ties). With no candidate the setup is a
plain mean reversion short, the least reliable kind.

    Setup                 Trigger                                   Priority
    OI divergence         OI bearish, price up > 10%                10 / 8
    Divergence            Bearish RSI or MACD divergence            10/8/7/5
    Fake pump             Fake with confidence >= 60                9 / 7 / 5
    Structure break       > 20% move, EMA turning down, RSI 50-70   8 / 6
    Double top            > 15% move, RSI > 70, MACD rolling over   8 / 6
    Resistance rejection  RSI > 65 at upper band or above VWAP      7 / 5
    Rejection             Bollinger overbought, RSI > 70            8/7/6
    Breakout              Bearish EMA crossover in a downtrend      6
    Breakout              Multi-TF bearish score >= 75              8
"""

from dataclasses import dataclass
from enum import Enum

from src.indicators.indicator_set import Indicators
from src.strategy.alt_config import AltConfig


class SetupType(str, Enum):
    """Kinds of short setups."""

    OI_DIVERGENCE = "oi_divergence"
    DIVERGENCE = "divergence"
    FAKE_PUMP = "fake_pump"
    STRUCTURE_BREAK = "structure_break"
    DOUBLE_TOP = "double_top"
    RESISTANCE_REJECTION = "resistance_rejection"
    REJECTION = "rejection"
    BREAKOUT = "breakout"
    MEAN_REVERSION = "mean_reversion"


@dataclass
class SetupMatch:
    """A detected setup candidate."""

    setup_type: SetupType
    priority: int
    strength: str = "moderate"  # "strong", "moderate", "weak"


def _oi_divergence(ind: Indicators, price_change_24h: float):
    oi = ind.open_interest
    if oi is None or oi.interpretation != "bearish" or price_change_24h <= 10:
        return None
    strong = ind.rsi.value > 65
    return SetupMatch(SetupType.OI_DIVERGENCE, 10 if strong else 8, "strong" if strong else "moderate")


def _divergence(ind: Indicators):
    rsi_div, macd_div = ind.rsi_divergence, ind.macd_divergence
    if rsi_div.type != "bearish" and macd_div.type != "bearish":
        return None
    confirmed = rsi_div.confirmation or macd_div.confirmation
    strong = rsi_div.strength == "strong" or macd_div.strength == "strong"
    if strong and confirmed:
        priority = 10
    elif strong:
        priority = 8
    elif confirmed:
        priority = 7
    else:
        priority = 5
    return SetupMatch(SetupType.DIVERGENCE, priority, "strong" if strong else "moderate")


def _fake_pump(ind: Indicators):
    pump = ind.fake_pump
    if not pump.is_fake or pump.confidence < 60:
        return None
    if pump.confidence > 80:
        return SetupMatch(SetupType.FAKE_PUMP, 9, "strong")
    if pump.confidence > 70:
        return SetupMatch(SetupType.FAKE_PUMP, 7, "moderate")
    return SetupMatch(SetupType.FAKE_PUMP, 5, "weak")


def _structure_break(ind: Indicators, price_change_24h: float):
    if price_change_24h <= 20:
        return None
    ema_turning = ind.ema.crossover == "bearish" or ind.ema.trend == "bearish"
    rsi_declining = 50 < ind.rsi.value < 70
    alignment_ok = ind.multi_tf is None or ind.multi_tf.direction != "bullish"
    if not (ema_turning and rsi_declining and alignment_ok):
        return None
    strong = price_change_24h > 30
    return SetupMatch(SetupType.STRUCTURE_BREAK, 8 if strong else 6, "strong" if strong else "moderate")


def _double_top(ind: Indicators, price_change_24h: float):
    macd_rolling_over = ind.macd.histogram < 0 or ind.macd.crossover == "bearish"
    if price_change_24h <= 15 or ind.rsi.value <= 70 or not macd_rolling_over:
        return None
    strong = ind.rsi_divergence.type == "bearish"
    return SetupMatch(SetupType.DOUBLE_TOP, 8 if strong else 6, "strong" if strong else "moderate")


def _resistance_rejection(ind: Indicators):
    if ind.rsi.value <= 65:
        return None
    position = ind.bollinger_bands.position
    if position > 85:
        strong = position > 95
        return SetupMatch(SetupType.RESISTANCE_REJECTION, 7 if strong else 5, "strong" if strong else "moderate")
    if ind.vwap.deviation > 3:
        return SetupMatch(SetupType.RESISTANCE_REJECTION, 5, "moderate")
    return None


def _rejection(ind: Indicators):
    rsi = ind.rsi.value
    if ind.bollinger_bands.signal != "overbought" or rsi <= 70:
        return None
    if rsi > 80:
        return SetupMatch(SetupType.REJECTION, 8, "strong")
    if rsi > 75:
        return SetupMatch(SetupType.REJECTION, 7, "moderate")
    return SetupMatch(SetupType.REJECTION, 6, "weak")


def _breakouts(ind: Indicators) -> list[SetupMatch]:
    matches = []
    if ind.ema.crossover == "bearish" and ind.ema.trend == "bearish":
        matches.append(SetupMatch(SetupType.BREAKOUT, 6, "moderate"))
    multi_tf = ind.multi_tf
    if multi_tf is not None and multi_tf.direction == "bearish" and multi_tf.score >= 75:
        matches.append(SetupMatch(SetupType.BREAKOUT, 8, "strong"))
    return matches


def detect_setup_candidates(indicators: Indicators, price_change_24h: float) -> list[SetupMatch]:
    """
    Run every setup detector.

    Args:
        indicators: Indicator set
        price_change_24h: 24h price change, percent

    Returns:
        Detected candidates in detection order
    """
    candidates = [
        _oi_divergence(indicators, price_change_24h),
        _divergence(indicators),
        _fake_pump(indicators),
        _structure_break(indicators, price_change_24h),
        _double_top(indicators, price_change_24h),
        _resistance_rejection(indicators),
        _rejection(indicators),
    ]
    matches = [c for c in candidates if c is not None]
    matches.extend(_breakouts(indicators))
    return matches


def determine_setup_type(indicators: Indicators, price_change_24h: float) -> SetupMatch:
    """
    Pick the highest-priority setup.

    Args:
        indicators: Indicator set
        price_change_24h: 24h price change, percent

    Returns:
        Best SetupMatch; mean reversion (priority 0) when nothing fires
    """
    candidates = detect_setup_candidates(indicators, price_change_24h)
    if not candidates:
        return SetupMatch(SetupType.MEAN_REVERSION, 0, "weak")
    return max(candidates, key=lambda match: match.priority)


def determine_recommendation(score: float, rsi: float, config: AltConfig) -> str:
    """
    Map a short score to an action.

    Args:
        score: Short score total
        rsi: Main timeframe RSI
        config: Tier thresholds

    Returns:
        "enter", "wait" or "skip"
    """
    if score >= config.scoring.enter and rsi > 60:
        return "enter"
    if score >= config.scoring.wait:
        return "wait"
    return "skip"


def generate_warnings(indicators: Indicators, price_change_24h: float) -> list[str]:
    """List conditions that argue against shorting right now."""
    warnings: list[str] = []
    rsi = indicators.rsi.value

    if price_change_24h > 50:
        warnings.append(f"Extreme move (+{price_change_24h:.0f}% in 24h), momentum may continue")

    if rsi < 30:
        warnings.append("RSI oversold, poor moment to short")
    elif rsi < 40:
        warnings.append("RSI not overbought yet")

    funding = indicators.funding_rate
    if funding is not None and funding.annualized > 30:
        warnings.append(f"High funding ({funding.annualized:.0f}% annualized), short squeeze risk")

    if indicators.adx.trend == "none" or indicators.adx.value < 15:
        warnings.append("Weak trend, no clear direction")

    if indicators.multi_tf is not None and indicators.multi_tf.direction == "bullish":
        warnings.append("Higher timeframes bullish, shorting against the trend")

    if indicators.atr.volatility == "high":
        warnings.append("High volatility, widen stops")

    if indicators.ema.ema200_distance < -10:
        warnings.append("Price far below EMA200, late entry")

    if indicators.rsi_divergence.type == "bullish":
        warnings.append("Bullish RSI divergence against the short")

    if not indicators.fake_pump.is_fake and price_change_24h > 30:
        warnings.append("Large pump without exhaustion signs")

    oi = indicators.open_interest
    if oi is not None and oi.interpretation == "bullish":
        warnings.append("Open interest rising with price, new longs entering")

    if indicators.bullish_patterns.has_high_reliability:
        warnings.append(f"Bullish candle pattern: {indicators.bullish_patterns.summary}")

    return warnings
