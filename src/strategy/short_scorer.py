"""
Composite short-setup scorer.

Fuses the full indicator set into one 0-100 score for how attractive a short
is right now. Every bucket boundary comes from the tier's AltConfig, so the
same RSI of 75 is "strong" for a large cap and merely "elevated" for a
memecoin.

Categories (reported under the breakdown field in brackets):
    Momentum [momentum] (~0-25)
        RSI bucket +12..+2, -8 when oversold; StochRSI +5/+3, -5 oversold;
        MACD bearish trend +5 and crossover +2; bearish ADX +2/+1
    Price action [volatility] (~0-20)
        24h change +8..+1; Bollinger position +6..+1; VWAP deviation
        +6..+1, -3 when well below VWAP
    Sentiment [trend] (~0-20)
        Global long share +10..+4, -5/-3 when the crowd is short;
        top traders short +10/+6, long -6/-3
    Perpetual [volume] (~0-15)
        Funding bucket +7..-5 plus trend +/-3; OI interpretation +5/+2/0.
        Missing funding or OI data scores 0, never the neutral bucket.
    Divergence and alignment [divergence]
        RSI/MACD bearish divergence (capped at 10); OBV trend and
        divergence; fake pump min(5, confidence/20) once confidence reaches
        the tier minimum; multi-TF alignment +8..+2, -5 when bullish

Critical adjustments:
    Bonuses and penalties are applied after the categories. Several of them
    look at the same fact as a category bucket (RSI, Bollinger, multi-TF);
    the overlap is intentional and kept stable.

    total = clamp(categories + bonuses - penalties, 0, 100)

Risk:
    low when total >= scoring.risk_low with no penalties; medium when total
    >= scoring.risk_medium, or total >= 42 with penalties below 8; else high.

Confidence:
    total x setup reliability x sentiment/alignment/entry factors, clamped
    to 20-95.
"""

from dataclasses import dataclass, field
from typing import Optional, Union

import structlog

from src.indicators.candles import round_half_up
from src.indicators.indicator_set import Indicators
from src.strategy.alt_config import AltConfig
from src.strategy.setups import SetupType

logger = structlog.get_logger(__name__)

MIN_CONFIDENCE = 20
MAX_CONFIDENCE = 95

_DIVERGENCE_CAP = 10.0
_FAKE_PUMP_CAP = 5.0
_MEDIUM_RISK_FLOOR = 42
_MEDIUM_RISK_MAX_PENALTY = 8

SETUP_RELIABILITY: dict[str, float] = {
    SetupType.DIVERGENCE: 1.05,
    SetupType.OI_DIVERGENCE: 1.08,
    SetupType.FAKE_PUMP: 1.00,
    SetupType.STRUCTURE_BREAK: 1.02,
    SetupType.DOUBLE_TOP: 0.98,
    SetupType.RESISTANCE_REJECTION: 0.95,
    SetupType.REJECTION: 0.95,
    SetupType.BREAKOUT: 0.90,
    SetupType.MEAN_REVERSION: 0.85,
}
_DEFAULT_RELIABILITY = 0.90


@dataclass
class ShortScoreBreakdown:
    """Short score with its category sub-scores."""

    total: int = 0  # 0-100
    trend: float = 0.0  # Sentiment
    momentum: float = 0.0
    volatility: float = 0.0  # Price action
    volume: float = 0.0  # Perpetual data
    divergence: float = 0.0  # Divergence + multi-TF alignment
    risk_level: str = "high"  # "low", "medium", "high"
    bonuses: float = 0.0
    penalties: float = 0.0
    components: dict[str, float] = field(default_factory=dict)


class _Tally:
    """Running sum that remembers which rules fired."""

    def __init__(self, components: dict[str, float]):
        self.total = 0.0
        self._components = components

    def add(self, name: str, points: float) -> None:
        if points:
            self.total += points
            self._components[name] = points


def _momentum_score(ind: Indicators, config: AltConfig, tally: _Tally) -> None:
    rsi = ind.rsi.value
    levels = config.rsi
    if rsi >= levels.extreme:
        tally.add("rsi_extreme", 12)
    elif rsi >= levels.strong:
        tally.add("rsi_strong", 10)
    elif rsi >= levels.overbought:
        tally.add("rsi_overbought", 8)
    elif rsi >= levels.elevated:
        tally.add("rsi_elevated", 5)
    elif rsi >= levels.slight:
        tally.add("rsi_slight", 2)
    elif rsi <= levels.oversold:
        tally.add("rsi_oversold", -8)

    stoch = ind.stoch_rsi
    if stoch.overbought and stoch.signal == "bearish":
        tally.add("stoch_rsi_turning_down", 5)
    elif stoch.overbought:
        tally.add("stoch_rsi_overbought", 3)
    elif stoch.oversold:
        tally.add("stoch_rsi_oversold", -5)

    if ind.macd.trend == "bearish":
        tally.add("macd_bearish", 5)
    if ind.macd.crossover == "bearish":
        tally.add("macd_bearish_crossover", 2)

    if ind.adx.signal == "bearish":
        if ind.adx.trend == "strong":
            tally.add("adx_strong_bearish", 2)
        elif ind.adx.trend == "moderate":
            tally.add("adx_moderate_bearish", 1)


def _price_action_score(ind: Indicators, price_change_24h: float, config: AltConfig, tally: _Tally) -> None:
    change = config.price_change
    if price_change_24h >= change.extreme:
        tally.add("price_change_extreme", 8)
    elif price_change_24h >= change.strong:
        tally.add("price_change_strong", 6)
    elif price_change_24h >= change.moderate:
        tally.add("price_change_moderate", 4)
    elif price_change_24h >= change.normal:
        tally.add("price_change_normal", 2)
    elif price_change_24h >= change.minimum:
        tally.add("price_change_minimum", 1)

    position = ind.bollinger_bands.position
    bands = config.bollinger
    if position >= bands.extreme:
        tally.add("bollinger_extreme", 6)
    elif position >= bands.very_high:
        tally.add("bollinger_very_high", 5)
    elif position >= bands.high:
        tally.add("bollinger_high", 3)
    elif position >= bands.moderate:
        tally.add("bollinger_moderate", 1)

    deviation = ind.vwap.deviation
    vwap = config.vwap
    if deviation >= vwap.very_extended:
        tally.add("vwap_very_extended", 6)
    elif deviation >= vwap.extended:
        tally.add("vwap_extended", 5)
    elif deviation >= vwap.moderate:
        tally.add("vwap_moderate", 3)
    elif deviation >= vwap.slight:
        tally.add("vwap_slight", 1)
    elif deviation <= vwap.negative:
        tally.add("vwap_below", -3)


def _sentiment_score(ind: Indicators, config: AltConfig, tally: _Tally) -> None:
    if ind.long_short_ratio is not None:
        long_ratio = ind.long_short_ratio.long_ratio
        levels = config.long_short_ratio
        if long_ratio >= levels.extreme_long:
            tally.add("crowd_extreme_long", 10)
        elif long_ratio >= levels.strong_long:
            tally.add("crowd_strong_long", 7)
        elif long_ratio >= levels.moderate_long:
            tally.add("crowd_moderate_long", 4)
        elif long_ratio <= levels.extreme_short:
            tally.add("crowd_extreme_short", -5)
        elif long_ratio <= levels.strong_short:
            tally.add("crowd_strong_short", -3)

    if ind.top_traders is not None:
        top = ind.top_traders
        levels = config.top_traders
        if top.short_ratio >= levels.strong_short:
            tally.add("top_traders_strong_short", 10)
        elif top.short_ratio >= levels.moderate_short:
            tally.add("top_traders_moderate_short", 6)
        elif top.long_ratio >= levels.strong_long:
            tally.add("top_traders_strong_long", -6)
        elif top.long_ratio >= levels.moderate_long:
            tally.add("top_traders_moderate_long", -3)


def _perpetual_score(ind: Indicators, config: AltConfig, tally: _Tally) -> None:
    funding = ind.funding_rate
    if funding is not None:
        rate = funding.rate
        levels = config.funding_rate
        if rate >= levels.extreme_positive:
            tally.add("funding_extreme_positive", -5)
        elif rate >= levels.positive:
            tally.add("funding_positive", -3)
        elif rate >= levels.slight_positive:
            tally.add("funding_slight_positive", 2)
        elif rate >= levels.neutral:
            tally.add("funding_neutral_positive", 4)
        elif rate > levels.slight_negative:
            tally.add("funding_neutral", 3)
        elif rate > levels.negative:
            tally.add("funding_slight_negative", 5)
        elif rate > levels.very_negative:
            tally.add("funding_negative", 6)
        else:
            tally.add("funding_very_negative", 7)

        if funding.trend == "decreasing":
            tally.add("funding_decreasing", 3)
        elif funding.trend == "increasing":
            tally.add("funding_increasing", -3)

    oi = ind.open_interest
    if oi is not None:
        if oi.interpretation == "bearish":
            tally.add("open_interest_bearish", 5)
        elif oi.interpretation == "neutral":
            tally.add("open_interest_neutral", 2)


def _divergence_score(ind: Indicators, config: AltConfig, tally: _Tally) -> None:
    divergence = 0.0
    rsi_div = ind.rsi_divergence
    if rsi_div.type == "bearish":
        divergence += {"strong": 6, "moderate": 4}.get(rsi_div.strength, 2)
        if rsi_div.confirmation:
            divergence += 2
    macd_div = ind.macd_divergence
    if macd_div.type == "bearish":
        divergence += {"strong": 3, "moderate": 2}.get(macd_div.strength, 1)
    tally.add("bearish_divergence", min(_DIVERGENCE_CAP, divergence))

    if ind.obv.trend == "bearish":
        tally.add("obv_bearish", 2)
    if ind.obv.divergence == "bearish":
        tally.add("obv_bearish_divergence", {"strong": 3, "moderate": 2}.get(ind.obv.divergence_strength, 1))

    pump = ind.fake_pump
    if pump.is_fake and pump.confidence >= config.volume.fake_pump_min_confidence:
        tally.add("fake_pump", min(_FAKE_PUMP_CAP, pump.confidence / 20))

    if ind.multi_tf is not None:
        score = ind.multi_tf.score
        levels = config.multi_tf
        if score >= levels.strong_bearish:
            tally.add("multi_tf_strong_bearish", 8)
        elif score >= levels.moderate_bearish:
            tally.add("multi_tf_moderate_bearish", 5)
        elif score >= levels.weak_bearish:
            tally.add("multi_tf_weak_bearish", 2)
        elif score <= levels.strong_bullish:
            tally.add("multi_tf_bullish", -5)


def _critical_bonuses(ind: Indicators, price_change_24h: float, config: AltConfig, tally: _Tally) -> None:
    ls, top = ind.long_short_ratio, ind.top_traders
    if ls is not None and top is not None and ls.long_ratio >= 60 and top.short_ratio >= 55:
        tally.add("bonus_perfect_sentiment", 8)

    if (
        ind.rsi.value >= config.rsi.strong
        and ind.bollinger_bands.position >= config.bollinger.very_high
        and price_change_24h >= config.price_change.moderate
    ):
        tally.add("bonus_perfect_setup", 6)

    confirmed = (
        (ind.rsi_divergence.type == "bearish" and ind.rsi_divergence.confirmation)
        or (ind.macd_divergence.type == "bearish" and ind.macd_divergence.confirmation)
    )
    if confirmed:
        tally.add("bonus_confirmed_divergence", 5)

    if ind.fake_pump.is_fake and ind.fake_pump.confidence >= config.volume.fake_pump_high_confidence:
        tally.add("bonus_fake_pump", 5)

    if ind.multi_tf is not None and ind.multi_tf.score >= config.multi_tf.strong_bearish:
        tally.add("bonus_multi_tf", 4)

    if ind.order_book is not None:
        imbalance = ind.order_book.imbalance
        if imbalance <= -20:
            tally.add("bonus_ask_heavy_book", 4)
        elif imbalance <= -10:
            tally.add("bonus_ask_leaning_book", 2)
        elif ind.order_book.signal == "neutral":
            tally.add("bonus_balanced_book", 1)

    if ind.liquidation_heatmap is not None:
        heatmap = ind.liquidation_heatmap
        if heatmap.long_short_ratio >= 2:
            tally.add("bonus_long_liquidations", 3)
        elif heatmap.dominant_side == "balanced":
            tally.add("bonus_balanced_liquidations", 1)


def _critical_penalties(ind: Indicators, price_change_24h: float, config: AltConfig, tally: _Tally) -> None:
    if ind.rsi.value <= config.rsi.oversold:
        tally.add("penalty_rsi_oversold", 10)

    if ind.top_traders is not None and ind.top_traders.long_ratio >= config.top_traders.strong_long:
        tally.add("penalty_top_traders_long", 6)

    if ind.funding_rate is not None:
        if ind.funding_rate.annualized > 100:
            tally.add("penalty_extreme_funding", 8)
        elif ind.funding_rate.annualized > 50:
            tally.add("penalty_high_funding", 4)

    if price_change_24h < config.price_change.minimum:
        tally.add("penalty_small_move", 5)

    if ind.rsi_divergence.type == "bullish" and ind.rsi_divergence.strength == "strong":
        tally.add("penalty_bullish_divergence", 6)

    if ind.bollinger_bands.position <= config.bollinger.low:
        tally.add("penalty_low_bollinger", 4)

    multi_tf = ind.multi_tf
    if multi_tf is not None and multi_tf.direction == "bullish" and multi_tf.score <= config.multi_tf.strong_bullish:
        tally.add("penalty_bullish_multi_tf", 6)

    if ind.order_book is not None:
        imbalance = ind.order_book.imbalance
        if imbalance >= 20:
            tally.add("penalty_bid_heavy_book", 4)
        elif imbalance >= 10:
            tally.add("penalty_bid_leaning_book", 2)

    if ind.liquidation_heatmap is not None and ind.liquidation_heatmap.long_short_ratio <= 0.5:
        tally.add("penalty_short_liquidations", 3)


def _risk_level(total: int, penalties: float, config: AltConfig) -> str:
    if total >= config.scoring.risk_low and penalties == 0:
        return "low"
    if total >= config.scoring.risk_medium or (
        total >= _MEDIUM_RISK_FLOOR and penalties < _MEDIUM_RISK_MAX_PENALTY
    ):
        return "medium"
    return "high"


def calculate_short_score(
    indicators: Indicators,
    price_change_24h: float,
    config: AltConfig,
) -> ShortScoreBreakdown:
    """
    Score a short setup.

    Args:
        indicators: Full indicator set
        price_change_24h: 24h price change, percent
        config: Thresholds for the coin's volatility tier

    Returns:
        ShortScoreBreakdown with total clamped to 0-100
    """
    components: dict[str, float] = {}

    momentum = _Tally(components)
    _momentum_score(indicators, config, momentum)
    price_action = _Tally(components)
    _price_action_score(indicators, price_change_24h, config, price_action)
    sentiment = _Tally(components)
    _sentiment_score(indicators, config, sentiment)
    perpetual = _Tally(components)
    _perpetual_score(indicators, config, perpetual)
    divergence = _Tally(components)
    _divergence_score(indicators, config, divergence)
    bonuses = _Tally(components)
    _critical_bonuses(indicators, price_change_24h, config, bonuses)
    penalties = _Tally(components)
    _critical_penalties(indicators, price_change_24h, config, penalties)

    raw = (
        momentum.total
        + price_action.total
        + sentiment.total
        + perpetual.total
        + divergence.total
        + bonuses.total
        - penalties.total
    )
    total = round_half_up(max(0.0, min(100.0, raw)))
    risk_level = _risk_level(total, penalties.total, config)

    logger.debug(
        "short_score_calculated",
        tier=config.tier,
        total=total,
        raw=raw,
        bonuses=bonuses.total,
        penalties=penalties.total,
        risk_level=risk_level,
    )

    return ShortScoreBreakdown(
        total=total,
        trend=round(sentiment.total, 1),
        momentum=round(momentum.total, 1),
        volatility=round(price_action.total, 1),
        volume=round(perpetual.total, 1),
        divergence=round(divergence.total, 1),
        risk_level=risk_level,
        bonuses=bonuses.total,
        penalties=penalties.total,
        components=components,
    )


def calculate_confidence(
    score: Union[ShortScoreBreakdown, float],
    setup_type: Optional[Union[SetupType, str]],
    indicators: Indicators,
) -> int:
    """
    Turn a short score into a confidence percentage.

    Args:
        score: Score breakdown (or its total)
        setup_type: Detected setup; unknown setups use a 0.90 factor
        indicators: Indicator set (sentiment, multi-TF and entry timing)

    Returns:
        Confidence clamped to 20-95
    """
    total = score.total if isinstance(score, ShortScoreBreakdown) else float(score)
    confidence = total * SETUP_RELIABILITY.get(setup_type, _DEFAULT_RELIABILITY)

    ls, top = indicators.long_short_ratio, indicators.top_traders
    if ls is not None and top is not None and ls.long_ratio >= 55 and top.short_ratio >= 55:
        confidence *= 1.05

    multi_tf = indicators.multi_tf
    if multi_tf is not None and multi_tf.direction == "bearish" and multi_tf.score >= 70:
        confidence *= 1.03

    timing = indicators.entry_timing
    if timing is not None:
        if timing.signal == "enter_now":
            confidence *= 1.05
        elif timing.signal == "ready":
            confidence *= 1.02

    return int(max(MIN_CONFIDENCE, min(MAX_CONFIDENCE, round_half_up(confidence))))
