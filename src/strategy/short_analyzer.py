"""
End-to-end short setup analysis for one symbol.

Pipeline:
    candles by timeframe + perpetual context
        -> volatility tier (hourly candles, cached per symbol)
        -> tier thresholds (AltConfig)
        -> multi-timeframe indicator set
        -> short score, setup type, confidence
        -> recommendation and warnings

The analyzer holds no state besides the tier cache, so one instance can be
shared by a scanner that walks hundreds of symbols.
"""

from dataclasses import asdict, dataclass, field
from typing import Mapping, Optional

import pandas as pd
import structlog

from config.logging_config import symbol_context
from config.settings import Settings, get_settings
from src.indicators.candles import CandleInput, candles_to_frame
from src.indicators.indicator_set import Indicators, build_multi_tf_indicators
from src.indicators.perpetual import PerpetualContext
from src.strategy.alt_config import AltConfig, get_config_by_tier
from src.strategy.setups import (
    SetupType,
    determine_recommendation,
    determine_setup_type,
    generate_warnings,
)
from src.strategy.short_scorer import ShortScoreBreakdown, calculate_confidence, calculate_short_score
from src.strategy.tier_cache import TierCache
from src.strategy.volatility_tier import TierResult, VolatilityTierClassifier

logger = structlog.get_logger(__name__)

_TIER_TIMEFRAME = "1h"
_HOURS_PER_DAY = 24


@dataclass
class ShortAnalysis:
    """Everything the scanner knows about one short candidate."""

    symbol: str
    tier: TierResult
    config: AltConfig
    indicators: Indicators
    score: ShortScoreBreakdown
    setup_type: SetupType
    confidence: int  # 20-95
    recommendation: str  # "enter", "wait", "skip"
    price_change_24h: float = 0.0
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Serialize to plain dicts for JSON output."""
        data = asdict(self)
        data["setup_type"] = self.setup_type.value
        return data


def price_change_from_candles(df: pd.DataFrame, bars: int = _HOURS_PER_DAY) -> float:
    """
    Percent change of the last close versus ``bars`` candles earlier.

    Args:
        df: Hourly candle frame
        bars: Candles per 24 hours

    Returns:
        Percent change, or 0.0 without enough positive closes
    """
    if len(df) <= bars:
        return 0.0
    previous = float(df["close"].iloc[-bars - 1])
    if previous <= 0:
        return 0.0
    return (float(df["close"].iloc[-1]) - previous) / previous * 100


class ShortSetupAnalyzer:
    """Runs the full short analysis pipeline for a symbol."""

    def __init__(self, tier_cache: Optional[TierCache] = None, settings: Optional[Settings] = None):
        """
        Initialize the analyzer.

        Args:
            tier_cache: Shared tier cache (a private one is created when omitted)
            settings: Scanner settings (default: global settings)
        """
        self.settings = settings or get_settings()
        self.tier_classifier = VolatilityTierClassifier(
            cache=tier_cache,
            ttl_seconds=self.settings.tier_cache_ttl_seconds,
        )

    def analyze(
        self,
        symbol: str,
        candles_by_timeframe: Mapping[str, CandleInput],
        context: Optional[PerpetualContext] = None,
        override_tier: Optional[int] = None,
    ) -> ShortAnalysis:
        """
        Analyze a symbol for a short entry.

        Args:
            symbol: Exchange symbol (tier cache key)
            candles_by_timeframe: Candles keyed by "5m", "15m", "1h", "2h", "4h"
            context: Optional perpetual-market data; its 24h price change is
                preferred over the one derived from hourly candles
            override_tier: Force this volatility tier

        Returns:
            ShortAnalysis
        """
        with symbol_context(symbol):
            return self._analyze(symbol, candles_by_timeframe, context, override_tier)

    def _analyze(
        self,
        symbol: str,
        candles_by_timeframe: Mapping[str, CandleInput],
        context: Optional[PerpetualContext],
        override_tier: Optional[int],
    ) -> ShortAnalysis:
        frames = {tf: candles_to_frame(candles) for tf, candles in candles_by_timeframe.items()}
        hourly = frames.get(_TIER_TIMEFRAME)
        if hourly is None:
            hourly = candles_to_frame(None)

        if context is not None and context.price_change_24h is not None:
            price_change_24h = float(context.price_change_24h)
        else:
            price_change_24h = price_change_from_candles(hourly)

        tier = self.tier_classifier.classify(
            symbol,
            hourly,
            price_change_24h=price_change_24h,
            override_tier=override_tier,
        )
        config = get_config_by_tier(tier.tier)

        indicators = build_multi_tf_indicators(
            frames,
            context,
            main_timeframe_min_candles=self.settings.main_timeframe_min_candles,
            divergence_lookback=self.settings.divergence_lookback,
            divergence_window=self.settings.divergence_window,
            rsi_period=self.settings.rsi_period,
        )

        score = calculate_short_score(indicators, price_change_24h, config)
        setup = determine_setup_type(indicators, price_change_24h)
        confidence = calculate_confidence(score, setup.setup_type, indicators)
        recommendation = determine_recommendation(score.total, indicators.rsi.value, config)
        warnings = generate_warnings(indicators, price_change_24h)

        logger.info(
            "short_analysis_complete",
            tier=tier.tier,
            tier_source=tier.source,
            score=score.total,
            risk_level=score.risk_level,
            setup=setup.setup_type.value,
            confidence=confidence,
            recommendation=recommendation,
            warnings=len(warnings),
        )

        return ShortAnalysis(
            symbol=symbol,
            tier=tier,
            config=config,
            indicators=indicators,
            score=score,
            setup_type=setup.setup_type,
            confidence=confidence,
            recommendation=recommendation,
            price_change_24h=round(price_change_24h, 2),
            warnings=warnings,
        )

    def clear_tier_cache(self) -> None:
        """Forget every cached volatility tier."""
        self.tier_classifier.clear_cache()
