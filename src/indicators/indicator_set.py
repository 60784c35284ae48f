"""
Full indicator set for one symbol.

Collects every candle indicator plus the optional perpetual-market data into
the ``Indicators`` aggregate the short scorer consumes. Candle-based kinds
always hold a result (the neutral default when data is short); market-derived
kinds are ``None`` when the data was not supplied.

Main timeframe selection:
    1h candles when at least ``main_timeframe_min_candles`` (100) are
    available, otherwise 4h. The other timeframes only feed trend alignment
    and entry timing.
"""

from dataclasses import dataclass, field
from typing import Mapping, Optional

import pandas as pd
import structlog

from src.indicators.adx import ADXResult, get_adx_indicator
from src.indicators.atr import ATRResult, get_atr_indicator
from src.indicators.bollinger import BollingerResult, get_bollinger_indicator
from src.indicators.candle_patterns import PatternAnalysis, detect_bearish_patterns, detect_bullish_patterns
from src.indicators.candles import CandleInput, candles_to_frame, closed_candles
from src.indicators.divergence import (
    DEFAULT_LOOKBACK,
    DEFAULT_WINDOW,
    DivergenceResult,
    detect_macd_divergence,
    detect_rsi_divergence,
)
from src.indicators.ema import EMAResult, get_ema_indicator
from src.indicators.fake_pump import FakePumpResult, detect_fake_pump
from src.indicators.macd import MACDResult, calculate_macd, get_macd_indicator
from src.indicators.obv import OBVResult, get_obv_indicator
from src.indicators.perpetual import (
    FundingRateResult,
    LiquidationHeatmap,
    LongShortRatio,
    OpenInterestResult,
    OrderBookSnapshot,
    PerpetualContext,
    get_funding_rate_indicator,
    get_open_interest_indicator,
)
from src.indicators.rsi import RSIResult, get_rsi_indicator
from src.indicators.stoch_rsi import StochRSIResult, get_stoch_rsi_indicator
from src.indicators.vwap import VWAPResult, get_vwap_indicator
from src.strategy.multi_timeframe import (
    EntryTiming,
    MultiTFAlignment,
    analyze_timeframes,
    calculate_entry_timing,
    get_trend_strength,
)

logger = structlog.get_logger(__name__)

MAIN_TIMEFRAME = "1h"
FALLBACK_TIMEFRAME = "4h"
ENTRY_TIMEFRAME = "5m"


@dataclass
class FourHourTrend:
    """Higher-timeframe trend with ADX-derived strength."""

    trend: str = "neutral"  # "bullish", "bearish", "neutral"
    strength: str = "weak"  # "strong", "moderate", "weak"


@dataclass
class Indicators:
    """Every indicator the short scorer reads."""

    rsi: RSIResult = field(default_factory=RSIResult)
    macd: MACDResult = field(default_factory=MACDResult)
    bollinger_bands: BollingerResult = field(default_factory=BollingerResult)
    ema: EMAResult = field(default_factory=EMAResult)
    four_h_trend: FourHourTrend = field(default_factory=FourHourTrend)
    obv: OBVResult = field(default_factory=OBVResult)
    adx: ADXResult = field(default_factory=ADXResult)
    rsi_divergence: DivergenceResult = field(default_factory=DivergenceResult)
    macd_divergence: DivergenceResult = field(default_factory=DivergenceResult)
    fake_pump: FakePumpResult = field(default_factory=FakePumpResult)
    vwap: VWAPResult = field(default_factory=VWAPResult)
    stoch_rsi: StochRSIResult = field(default_factory=StochRSIResult)
    atr: ATRResult = field(default_factory=ATRResult)
    candle_patterns: PatternAnalysis = field(default_factory=PatternAnalysis)
    bullish_patterns: PatternAnalysis = field(default_factory=PatternAnalysis)

    # None = not supplied
    multi_tf: Optional[MultiTFAlignment] = None
    entry_timing: Optional[EntryTiming] = None
    funding_rate: Optional[FundingRateResult] = None
    open_interest: Optional[OpenInterestResult] = None
    long_short_ratio: Optional[LongShortRatio] = None
    top_traders: Optional[LongShortRatio] = None
    order_book: Optional[OrderBookSnapshot] = None
    liquidation_heatmap: Optional[LiquidationHeatmap] = None


def _attach_context(indicators: Indicators, context: Optional[PerpetualContext]) -> None:
    if context is None:
        return
    indicators.funding_rate = get_funding_rate_indicator(context.funding_rate, context.funding_rate_history)
    indicators.open_interest = get_open_interest_indicator(
        context.open_interest,
        context.oi_change_24h,
        context.price_change_24h,
    )
    indicators.long_short_ratio = context.long_short_ratio
    indicators.top_traders = context.top_traders_ratio
    indicators.order_book = context.order_book
    indicators.liquidation_heatmap = context.liquidation_heatmap


def build_indicators(
    candles: CandleInput,
    context: Optional[PerpetualContext] = None,
    divergence_lookback: int = DEFAULT_LOOKBACK,
    divergence_window: int = DEFAULT_WINDOW,
    rsi_period: int = 14,
) -> Indicators:
    """
    Calculate every candle indicator on one timeframe.

    The four-hour trend falls back to this timeframe's EMA trend and ADX
    strength; no multi-timeframe alignment or entry timing is attached.

    Args:
        candles: Candles of the main timeframe
        context: Optional perpetual-market data
        divergence_lookback: Extreme comparator half-width
        divergence_window: Trailing bars inspected for divergence
        rsi_period: RSI period

    Returns:
        Indicators
    """
    df = candles_to_frame(candles)
    closes = df["close"]
    histogram = calculate_macd(closes).histogram if len(df) else None
    ema = get_ema_indicator(df)
    adx = get_adx_indicator(df)
    closed = closed_candles(df)

    indicators = Indicators(
        rsi=get_rsi_indicator(df, rsi_period),
        macd=get_macd_indicator(df),
        bollinger_bands=get_bollinger_indicator(df),
        ema=ema,
        four_h_trend=FourHourTrend(
            trend=ema.trend,
            strength=adx.trend if adx.trend in ("strong", "moderate") else "weak",
        ),
        obv=get_obv_indicator(df),
        adx=adx,
        rsi_divergence=detect_rsi_divergence(df, divergence_lookback, divergence_window, rsi_period),
        macd_divergence=detect_macd_divergence(df, histogram, divergence_lookback, divergence_window),
        fake_pump=detect_fake_pump(df),
        vwap=get_vwap_indicator(df),
        stoch_rsi=get_stoch_rsi_indicator(df),
        atr=get_atr_indicator(df),
        candle_patterns=detect_bearish_patterns(closed),
        bullish_patterns=detect_bullish_patterns(closed),
    )
    _attach_context(indicators, context)

    logger.debug(
        "indicators_calculated",
        candles=len(df),
        rsi=indicators.rsi.value,
        ema_trend=indicators.ema.trend,
        fake_pump=indicators.fake_pump.confidence,
    )
    return indicators


def select_main_timeframe(
    frames: Mapping[str, pd.DataFrame],
    min_candles: int = 100,
) -> str:
    """
    Pick the timeframe the main indicators are calculated on.

    Args:
        frames: Candle frame per timeframe
        min_candles: 1h candles needed to use the 1h timeframe

    Returns:
        "1h" or "4h" (1h when 4h is not available either)
    """
    hourly = frames.get(MAIN_TIMEFRAME)
    if hourly is not None and len(hourly) >= min_candles:
        return MAIN_TIMEFRAME
    four_hour = frames.get(FALLBACK_TIMEFRAME)
    if four_hour is not None and len(four_hour):
        return FALLBACK_TIMEFRAME
    return MAIN_TIMEFRAME


def build_multi_tf_indicators(
    candles_by_timeframe: Mapping[str, CandleInput],
    context: Optional[PerpetualContext] = None,
    main_timeframe_min_candles: int = 100,
    divergence_lookback: int = DEFAULT_LOOKBACK,
    divergence_window: int = DEFAULT_WINDOW,
    rsi_period: int = 14,
) -> Indicators:
    """
    Calculate indicators across timeframes.

    Args:
        candles_by_timeframe: Candles keyed by "5m", "15m", "1h", "2h", "4h"
        context: Optional perpetual-market data
        main_timeframe_min_candles: 1h candles needed to use 1h as main
        divergence_lookback: Extreme comparator half-width
        divergence_window: Trailing bars inspected for divergence
        rsi_period: RSI period

    Returns:
        Indicators with multi-TF alignment and (with 5m candles) entry timing
    """
    frames = {tf: candles_to_frame(candles) for tf, candles in candles_by_timeframe.items()}
    main_tf = select_main_timeframe(frames, main_timeframe_min_candles)
    main = frames.get(main_tf)

    indicators = build_indicators(
        main if main is not None else candles_to_frame(None),
        context,
        divergence_lookback=divergence_lookback,
        divergence_window=divergence_window,
        rsi_period=rsi_period,
    )

    indicators.multi_tf = analyze_timeframes(frames)

    four_hour = frames.get(FALLBACK_TIMEFRAME)
    if four_hour is not None and len(four_hour):
        indicators.four_h_trend = FourHourTrend(
            trend=get_ema_indicator(four_hour).trend,
            strength=get_trend_strength(four_hour),
        )

    entry = frames.get(ENTRY_TIMEFRAME)
    if entry is not None and len(entry):
        indicators.entry_timing = calculate_entry_timing(entry, divergence_lookback, divergence_window)

    logger.debug(
        "multi_tf_indicators_calculated",
        main_timeframe=main_tf,
        timeframes=sorted(frames),
        alignment=indicators.multi_tf.score,
    )
    return indicators
