"""
Volatility tier classifier.

Buckets a coin into one of three volatility regimes so the short scorer can
pick thresholds that fit it. A 15% daily move means something very different
for a large cap than for a memecoin.

Algorithm:
    1. Derive VolatilityMetrics from hourly candles: ATR% over 24h / 7d / 14d
       windows, average vs current volume, and candle count. Coins with fewer
       than 50 candles have a single ATR estimate used for every window.
    2. Add up independent score factors:

        Factor             Bucket -> points
        Price              <$0.0001 3, <$0.001 2.5, <$0.01 1.5, <$0.5 1, <$1 0.5
        ATR (24h+14d)/2    >20% 3, >12% 2.5, >8% 1.5, >5% 1
        |24h change|       >80% 2, >50% 1.5, >25% 1, >10% 0.5
        Age (candles)      <24 2, <100 1.5, <336 0.5
        Volume ratio       >10x 1, >5x 0.5

    3. Map the total to a tier: < 1.5 -> 1, < 3.5 -> 2, else 3.

Confidence (10-100) rises with data depth, stable volatility across windows,
distance from a tier boundary, and a normal volume ratio.

Caching:
    The classifier stores the score-based result per symbol in a TierCache.
    A cache hit keeps the tier but refreshes the live fields (volume and 24h
    change), and an override tier is applied on every call rather than being
    written into the cache.
"""

from dataclasses import dataclass, field, replace
from typing import Optional

import numpy as np
import pandas as pd
import structlog

from src.indicators.atr import DEFAULT_ATR_PERCENT, calculate_atr_percent
from src.indicators.candles import CandleInput, candles_to_frame
from src.strategy.tier_cache import DEFAULT_TIER_CACHE_TTL_SECONDS, TierCache

logger = structlog.get_logger(__name__)

NEW_COIN_CANDLES = 100
_SHORT_HISTORY_CANDLES = 50
_WINDOW_24H = 24
_WINDOW_7D = 168
_WINDOW_14D = 336

_TIER_1_MAX_SCORE = 1.5
_TIER_2_MAX_SCORE = 3.5

_OVERRIDE_CONFIDENCE = 85
_OVERRIDE_NEW_COIN_CONFIDENCE = 75


@dataclass
class VolatilityMetrics:
    """Volatility and volume measurements feeding the tier score."""

    atr_24h: float = DEFAULT_ATR_PERCENT  # percent
    atr_7d: float = DEFAULT_ATR_PERCENT
    atr_14d: float = DEFAULT_ATR_PERCENT
    price_change_24h: float = 0.0  # percent
    avg_volume: float = 1.0
    current_volume: float = 1.0
    volume_ratio: float = 1.0
    is_volatile: bool = False
    current_price: float = 0.0
    candle_count: int = 0


@dataclass
class TierScoreFactors:
    """Additive tier score with a human-readable line per factor."""

    total_score: float = 0.0
    breakdown: list[str] = field(default_factory=list)
    price_score: float = 0.0
    atr_score: float = 0.0
    change_score: float = 0.0
    age_score: float = 0.0
    volume_score: float = 0.0


@dataclass
class TierResult:
    """Volatility tier classification."""

    tier: int  # 1, 2, 3
    base_tier: int  # Tier from the score alone
    current_tier: int  # Tier after any override
    source: str  # "score", "override"
    confidence: int  # 10-100
    is_new_coin: bool
    volume_adjusted: bool  # Volume spike contributed to the score
    score_factors: TierScoreFactors
    volatility: VolatilityMetrics


def calculate_volatility_metrics(
    df: pd.DataFrame,
    price_change_24h: float = 0.0,
    current_volume: Optional[float] = None,
) -> VolatilityMetrics:
    """
    Measure ATR% over several windows plus the live volume ratio.

    Args:
        df: Hourly candle frame
        price_change_24h: 24h price change, percent
        current_volume: Live 24h volume; falls back to the candles when missing

    Returns:
        VolatilityMetrics
    """
    count = len(df)
    current_price = float(df["close"].iloc[-1]) if count else 0.0
    live_volume = current_volume if current_volume else None

    if count < _SHORT_HISTORY_CANDLES:
        if count >= 14:
            estimate = calculate_atr_percent(df, min(count - 1, 14))
        elif count >= 5:
            closes = df["close"]
            mean_close = float(closes.mean())
            estimate = (
                float(closes.max() - closes.min()) / mean_close * 100
                if mean_close > 0 else DEFAULT_ATR_PERCENT
            )
        else:
            estimate = DEFAULT_ATR_PERCENT
        estimate = max(estimate, abs(price_change_24h) / 3)

        if count >= 5:
            volumes = df["volume"].tail(_WINDOW_24H)
        else:
            volumes = pd.Series([live_volume or 1.0])
        avg_volume = float(volumes.mean())
        volume = live_volume or avg_volume
        volume_ratio = volume / avg_volume if avg_volume > 0 else 1.0

        return VolatilityMetrics(
            atr_24h=estimate,
            atr_7d=estimate,
            atr_14d=estimate,
            price_change_24h=price_change_24h,
            avg_volume=avg_volume,
            current_volume=volume,
            volume_ratio=volume_ratio if np.isfinite(volume_ratio) else 1.0,
            is_volatile=estimate > 8 or abs(price_change_24h) > 25,
            current_price=current_price,
            candle_count=count,
        )

    atr_24h = calculate_atr_percent(df.tail(_WINDOW_24H), 14)
    atr_7d = calculate_atr_percent(df.tail(_WINDOW_7D), 14)
    atr_14d = calculate_atr_percent(df.tail(_WINDOW_14D), 14)

    avg_volume = float(df["volume"].tail(_WINDOW_7D).mean())
    volume = live_volume or float(df["volume"].iloc[-1]) or avg_volume
    volume_ratio = volume / avg_volume if avg_volume > 0 else 1.0

    return VolatilityMetrics(
        atr_24h=atr_24h,
        atr_7d=atr_7d,
        atr_14d=atr_14d,
        price_change_24h=price_change_24h,
        avg_volume=avg_volume,
        current_volume=volume,
        volume_ratio=volume_ratio if np.isfinite(volume_ratio) else 1.0,
        is_volatile=atr_24h > 8 or atr_14d > 12,
        current_price=current_price,
        candle_count=count,
    )


def _price_factor(price: float) -> tuple[float, str]:
    if price <= 0:
        return 0.0, "Price: n/a → +0"
    if price < 0.0001:
        return 3.0, f"Price: ${price:.1e} (<$0.0001) → +3"
    if price < 0.001:
        return 2.5, f"Price: ${price:.6f} (<$0.001) → +2.5"
    if price < 0.01:
        return 1.5, f"Price: ${price:.5f} (<$0.01) → +1.5"
    if price < 0.5:
        return 1.0, f"Price: ${price:.4f} (<$0.5) → +1"
    if price < 1:
        return 0.5, f"Price: ${price:.4f} (<$1) → +0.5"
    return 0.0, f"Price: ${price:.2f} (≥$1) → +0"


def _atr_factor(atr: float) -> tuple[float, str]:
    if atr > 20:
        return 3.0, f"ATR avg: {atr:.1f}% (>20%) → +3"
    if atr > 12:
        return 2.5, f"ATR avg: {atr:.1f}% (>12%) → +2.5"
    if atr > 8:
        return 1.5, f"ATR avg: {atr:.1f}% (>8%) → +1.5"
    if atr > 5:
        return 1.0, f"ATR avg: {atr:.1f}% (>5%) → +1"
    return 0.0, f"ATR avg: {atr:.1f}% (≤5%) → +0"


def _change_factor(change: float) -> tuple[float, str]:
    change = abs(change)
    if change > 80:
        return 2.0, f"24h Change: {change:.0f}% (>80%) → +2"
    if change > 50:
        return 1.5, f"24h Change: {change:.0f}% (>50%) → +1.5"
    if change > 25:
        return 1.0, f"24h Change: {change:.0f}% (>25%) → +1"
    if change > 10:
        return 0.5, f"24h Change: {change:.0f}% (>10%) → +0.5"
    return 0.0, f"24h Change: {change:.0f}% (≤10%) → +0"


def _age_factor(candles: int) -> tuple[float, str]:
    if candles < _WINDOW_24H:
        return 2.0, f"Age: {candles} candles (<1 day) → +2 [NEW]"
    if candles < NEW_COIN_CANDLES:
        return 1.5, f"Age: {candles} candles (<4 days) → +1.5"
    if candles < _WINDOW_14D:
        return 0.5, f"Age: {candles} candles (<2 weeks) → +0.5"
    return 0.0, f"Age: {candles} candles (≥2 weeks) → +0"


def _volume_factor(ratio: float) -> tuple[float, str]:
    if ratio > 10:
        return 1.0, f"Volume: {ratio:.1f}x (>10x) → +1"
    if ratio > 5:
        return 0.5, f"Volume: {ratio:.1f}x (>5x) → +0.5"
    return 0.0, f"Volume: {ratio:.1f}x (normal) → +0"


def calculate_tier_score(metrics: VolatilityMetrics) -> TierScoreFactors:
    """
    Add up the tier score factors.

    Args:
        metrics: Volatility metrics

    Returns:
        TierScoreFactors with one breakdown line per factor
    """
    price_score, price_line = _price_factor(metrics.current_price)
    atr_score, atr_line = _atr_factor((metrics.atr_24h + metrics.atr_14d) / 2)
    change_score, change_line = _change_factor(metrics.price_change_24h)
    age_score, age_line = _age_factor(metrics.candle_count)
    volume_score, volume_line = _volume_factor(metrics.volume_ratio)

    return TierScoreFactors(
        total_score=price_score + atr_score + change_score + age_score + volume_score,
        breakdown=[price_line, atr_line, change_line, age_line, volume_line],
        price_score=price_score,
        atr_score=atr_score,
        change_score=change_score,
        age_score=age_score,
        volume_score=volume_score,
    )


def score_to_tier(score: float) -> int:
    """Map a tier score to tier 1, 2 or 3."""
    if score < _TIER_1_MAX_SCORE:
        return 1
    if score < _TIER_2_MAX_SCORE:
        return 2
    return 3


def calculate_tier_confidence(metrics: VolatilityMetrics, total_score: float) -> int:
    """
    Estimate how much to trust a score-based tier.

    Args:
        metrics: Volatility metrics
        total_score: Tier score

    Returns:
        Confidence 10-100
    """
    confidence = 50

    count = metrics.candle_count
    if count >= _WINDOW_14D:
        confidence += 25
    elif count >= _WINDOW_7D:
        confidence += 15
    elif count >= NEW_COIN_CANDLES:
        confidence += 10
    elif count >= _SHORT_HISTORY_CANDLES:
        confidence += 5
    else:
        confidence -= 15

    volatility_diff = abs(metrics.atr_24h - metrics.atr_14d)
    if volatility_diff < 2:
        confidence += 10
    elif volatility_diff < 5:
        confidence += 5
    elif volatility_diff > 10:
        confidence -= 10

    from_boundary = min(abs(total_score - _TIER_1_MAX_SCORE), abs(total_score - _TIER_2_MAX_SCORE))
    if from_boundary > 1.0:
        confidence += 10
    elif from_boundary < 0.3:
        confidence -= 15

    if 0.5 <= metrics.volume_ratio <= 3:
        confidence += 5

    return max(10, min(100, confidence))


def detect_tier_by_volatility(
    candles: CandleInput,
    price_change_24h: float = 0.0,
    current_volume: Optional[float] = None,
) -> TierResult:
    """
    Classify a coin from its candles without caching or overrides.

    Args:
        candles: Hourly candles (any shape accepted by candles_to_frame)
        price_change_24h: 24h price change, percent
        current_volume: Live 24h volume

    Returns:
        Score-based TierResult
    """
    df = candles_to_frame(candles)
    metrics = calculate_volatility_metrics(df, price_change_24h, current_volume)
    factors = calculate_tier_score(metrics)
    tier = score_to_tier(factors.total_score)

    return TierResult(
        tier=tier,
        base_tier=tier,
        current_tier=tier,
        source="score",
        confidence=calculate_tier_confidence(metrics, factors.total_score),
        is_new_coin=metrics.candle_count < NEW_COIN_CANDLES,
        volume_adjusted=factors.volume_score > 0,
        score_factors=factors,
        volatility=metrics,
    )


def apply_tier_override(result: TierResult, override_tier: Optional[int]) -> TierResult:
    """
    Force a tier on a score-based result.

    Args:
        result: Score-based TierResult
        override_tier: Tier to force, or None to keep the score tier

    Returns:
        New TierResult (the input is never mutated)
    """
    if override_tier is None:
        return result
    if override_tier not in (1, 2, 3):
        logger.warning("invalid_tier_override", override_tier=override_tier, using=result.base_tier)
        return result

    return replace(
        result,
        tier=override_tier,
        current_tier=override_tier,
        source="override",
        confidence=_OVERRIDE_NEW_COIN_CONFIDENCE if result.is_new_coin else _OVERRIDE_CONFIDENCE,
    )


class VolatilityTierClassifier:
    """
    Tier classifier with a per-symbol TTL cache.

    The cache is injected so callers control sharing and tests control time.
    """

    def __init__(self, cache: Optional[TierCache] = None, ttl_seconds: Optional[float] = None):
        """
        Initialize the classifier.

        Args:
            cache: Tier cache (a private one is created when omitted)
            ttl_seconds: Entry lifetime (default: the cache default, 4 hours)
        """
        self.cache = cache if cache is not None else TierCache(
            ttl_seconds if ttl_seconds is not None else DEFAULT_TIER_CACHE_TTL_SECONDS
        )
        self.ttl_seconds = ttl_seconds

    def classify(
        self,
        symbol: str,
        candles: CandleInput,
        price_change_24h: float = 0.0,
        current_volume: Optional[float] = None,
        override_tier: Optional[int] = None,
    ) -> TierResult:
        """
        Classify a symbol, reusing a fresh cached tier when available.

        Args:
            symbol: Cache key
            candles: Hourly candles
            price_change_24h: 24h price change, percent
            current_volume: Live 24h volume
            override_tier: Force this tier (1-3)

        Returns:
            TierResult; volume fields and 24h change always reflect this call
        """
        with self.cache.lock(symbol):
            cached: Optional[TierResult] = self.cache.get(symbol)

            if cached is None:
                result = detect_tier_by_volatility(candles, price_change_24h, current_volume)
                self.cache.set(symbol, result, self.ttl_seconds)
                logger.debug(
                    "volatility_tier_calculated",
                    symbol=symbol,
                    tier=result.tier,
                    score=result.score_factors.total_score,
                    confidence=result.confidence,
                )
            else:
                result = self._refresh_live_fields(cached, candles, price_change_24h, current_volume)
                logger.debug("volatility_tier_cache_hit", symbol=symbol, tier=result.tier)

        return apply_tier_override(result, override_tier)

    def clear_cache(self) -> None:
        """Forget every cached tier."""
        self.cache.clear()

    @staticmethod
    def _refresh_live_fields(
        cached: TierResult,
        candles: CandleInput,
        price_change_24h: float,
        current_volume: Optional[float],
    ) -> TierResult:
        live = calculate_volatility_metrics(candles_to_frame(candles), price_change_24h, current_volume)
        volatility = replace(
            cached.volatility,
            price_change_24h=live.price_change_24h,
            avg_volume=live.avg_volume,
            current_volume=live.current_volume,
            volume_ratio=live.volume_ratio,
        )
        return replace(cached, volatility=volatility)


def format_tier_debug_info(result: TierResult, metrics: Optional[VolatilityMetrics] = None) -> str:
    """
    Render a multi-line tier dump for operational logs.

    Log parsers rely on the "TIER:", "confidence:", "Source:", "Volume:",
    "SCORE BREAKDOWN" and "[NEW COIN]" markers.

    Args:
        result: Tier result
        metrics: Metrics to print (default: the ones stored on the result)

    Returns:
        Debug text
    """
    volatility = metrics or result.volatility
    price = volatility.current_price
    price_text = f"{price:.2e}" if price < 0.001 else f"{price:.6f}"

    lines = [
        f"TIER: {result.tier} (confidence: {result.confidence}%)" + (" [NEW COIN]" if result.is_new_coin else ""),
        f"  Source: {result.source}",
        f"  Price: ${price_text}",
        f"  ATR 24h: {volatility.atr_24h:.1f}% | 14d: {volatility.atr_14d:.1f}%",
        f"  24h Change: {volatility.price_change_24h:.1f}%",
        f"  Volume: {volatility.volume_ratio:.1f}x avg",
        f"  Candles: {volatility.candle_count}",
        "  --- SCORE BREAKDOWN ---",
    ]
    lines.extend(f"  {line}" for line in result.score_factors.breakdown)
    lines.append(f"  Total Score: {result.score_factors.total_score:.1f} → TIER {result.base_tier}")
    return "\n".join(lines)
