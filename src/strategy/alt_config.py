"""
Tier-specific scoring thresholds.

Altcoins do not share a volatility profile: a 15% daily move is an extreme
pump for a large cap and an ordinary Tuesday for a memecoin. The short scorer
therefore reads every bucket boundary from an AltConfig selected by the
volatility tier classifier:

    Tier  Config          Profile
    1     TIER_1_CONFIG   Large caps (conservative, tight thresholds)
    2     TIER_2_CONFIG   Mid caps (medium)
    3     TIER_3_CONFIG   Memecoins (aggressive, wide thresholds)

Configs are frozen dataclasses: they are shared module-level constants and
must never be mutated at runtime. ``AltConfig.to_dict()`` serializes a config
for logging or the CLI output.
"""

from dataclasses import asdict, dataclass

import structlog

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PriceChangeThresholds:
    """24h price change buckets, percent."""

    extreme: float
    strong: float
    moderate: float
    normal: float
    minimum: float  # Below this the move is too small to short


@dataclass(frozen=True)
class RSIThresholds:
    """RSI buckets."""

    extreme: float
    strong: float
    overbought: float
    elevated: float
    slight: float
    oversold: float  # Penalty threshold


@dataclass(frozen=True)
class BollingerThresholds:
    """Bollinger position buckets (0 = lower band, 100 = upper band)."""

    extreme: float
    very_high: float
    high: float
    moderate: float
    low: float  # Penalty threshold


@dataclass(frozen=True)
class VWAPThresholds:
    """VWAP deviation buckets, percent."""

    very_extended: float
    extended: float
    moderate: float
    slight: float
    negative: float  # Penalty threshold


@dataclass(frozen=True)
class FundingRateThresholds:
    """Funding rate buckets, per 8h period."""

    very_negative: float
    negative: float
    slight_negative: float
    neutral: float
    slight_positive: float
    positive: float
    extreme_positive: float  # Squeeze risk


@dataclass(frozen=True)
class LongShortThresholds:
    """Global account long share buckets, percent."""

    extreme_long: float
    strong_long: float
    moderate_long: float
    extreme_short: float
    strong_short: float


@dataclass(frozen=True)
class TopTraderThresholds:
    """Top-trader position share buckets, percent."""

    strong_short: float
    moderate_short: float
    strong_long: float
    moderate_long: float


@dataclass(frozen=True)
class ScoringThresholds:
    """Score levels for recommendations and risk."""

    enter: float
    wait: float
    min_score: float
    risk_low: float
    risk_medium: float


@dataclass(frozen=True)
class MultiTFThresholds:
    """Multi-timeframe alignment score buckets."""

    strong_bearish: float
    moderate_bearish: float
    weak_bearish: float
    strong_bullish: float


@dataclass(frozen=True)
class VolumeThresholds:
    """Fake pump confidence levels."""

    fake_pump_min_confidence: float
    fake_pump_high_confidence: float


@dataclass(frozen=True)
class AltConfig:
    """Complete threshold set for one volatility tier."""

    tier: int
    description: str
    price_change: PriceChangeThresholds
    rsi: RSIThresholds
    bollinger: BollingerThresholds
    vwap: VWAPThresholds
    funding_rate: FundingRateThresholds
    long_short_ratio: LongShortThresholds
    top_traders: TopTraderThresholds
    scoring: ScoringThresholds
    multi_tf: MultiTFThresholds
    volume: VolumeThresholds

    def to_dict(self) -> dict:
        """Serialize to nested plain dicts."""
        return asdict(self)


TIER_1_CONFIG = AltConfig(
    tier=1,
    description="Large Caps",
    price_change=PriceChangeThresholds(extreme=20, strong=15, moderate=10, normal=5, minimum=5),
    rsi=RSIThresholds(extreme=78, strong=72, overbought=68, elevated=60, slight=55, oversold=30),
    bollinger=BollingerThresholds(extreme=95, very_high=90, high=82, moderate=70, low=30),
    vwap=VWAPThresholds(very_extended=8, extended=5, moderate=3, slight=1.5, negative=-3),
    funding_rate=FundingRateThresholds(
        very_negative=-0.0008,
        negative=-0.0005,
        slight_negative=-0.0002,
        neutral=0.0002,
        slight_positive=0.0005,
        positive=0.0008,
        extreme_positive=0.0015,
    ),
    long_short_ratio=LongShortThresholds(
        extreme_long=68, strong_long=62, moderate_long=57, extreme_short=35, strong_short=40,
    ),
    top_traders=TopTraderThresholds(strong_short=58, moderate_short=54, strong_long=58, moderate_long=54),
    scoring=ScoringThresholds(enter=50, wait=35, min_score=25, risk_low=60, risk_medium=45),
    multi_tf=MultiTFThresholds(strong_bearish=75, moderate_bearish=65, weak_bearish=55, strong_bullish=30),
    volume=VolumeThresholds(fake_pump_min_confidence=65, fake_pump_high_confidence=80),
)

TIER_2_CONFIG = AltConfig(
    tier=2,
    description="Mid Caps",
    price_change=PriceChangeThresholds(extreme=35, strong=25, moderate=18, normal=10, minimum=8),
    rsi=RSIThresholds(extreme=82, strong=75, overbought=70, elevated=62, slight=55, oversold=28),
    bollinger=BollingerThresholds(extreme=96, very_high=90, high=82, moderate=72, low=28),
    vwap=VWAPThresholds(very_extended=12, extended=8, moderate=5, slight=2, negative=-5),
    funding_rate=FundingRateThresholds(
        very_negative=-0.001,
        negative=-0.0005,
        slight_negative=-0.0002,
        neutral=0.0002,
        slight_positive=0.0005,
        positive=0.001,
        extreme_positive=0.002,
    ),
    long_short_ratio=LongShortThresholds(
        extreme_long=65, strong_long=60, moderate_long=55, extreme_short=38, strong_short=42,
    ),
    top_traders=TopTraderThresholds(strong_short=56, moderate_short=52, strong_long=56, moderate_long=52),
    scoring=ScoringThresholds(enter=45, wait=30, min_score=20, risk_low=55, risk_medium=40),
    multi_tf=MultiTFThresholds(strong_bearish=72, moderate_bearish=62, weak_bearish=52, strong_bullish=32),
    volume=VolumeThresholds(fake_pump_min_confidence=55, fake_pump_high_confidence=70),
)

TIER_3_CONFIG = AltConfig(
    tier=3,
    description="Memecoins",
    price_change=PriceChangeThresholds(extreme=50, strong=35, moderate=25, normal=15, minimum=10),
    rsi=RSIThresholds(extreme=88, strong=82, overbought=75, elevated=65, slight=58, oversold=25),
    bollinger=BollingerThresholds(extreme=98, very_high=94, high=88, moderate=78, low=22),
    vwap=VWAPThresholds(very_extended=18, extended=12, moderate=7, slight=3, negative=-8),
    funding_rate=FundingRateThresholds(
        very_negative=-0.0015,
        negative=-0.0008,
        slight_negative=-0.0003,
        neutral=0.0003,
        slight_positive=0.0008,
        positive=0.0015,
        extreme_positive=0.003,
    ),
    long_short_ratio=LongShortThresholds(
        extreme_long=62, strong_long=57, moderate_long=53, extreme_short=40, strong_short=45,
    ),
    top_traders=TopTraderThresholds(strong_short=55, moderate_short=52, strong_long=55, moderate_long=52),
    scoring=ScoringThresholds(enter=38, wait=25, min_score=18, risk_low=50, risk_medium=35),
    multi_tf=MultiTFThresholds(strong_bearish=70, moderate_bearish=60, weak_bearish=50, strong_bullish=35),
    volume=VolumeThresholds(fake_pump_min_confidence=50, fake_pump_high_confidence=65),
)

TIER_CONFIGS: dict[int, AltConfig] = {
    1: TIER_1_CONFIG,
    2: TIER_2_CONFIG,
    3: TIER_3_CONFIG,
}


def get_config_by_tier(tier: int) -> AltConfig:
    """
    Select the threshold config for a volatility tier.

    Args:
        tier: 1, 2 or 3

    Returns:
        Matching AltConfig; unknown tiers fall back to the mid-cap config
    """
    config = TIER_CONFIGS.get(tier)
    if config is None:
        logger.warning("unknown_volatility_tier", tier=tier, using=TIER_2_CONFIG.tier)
        return TIER_2_CONFIG
    return config
