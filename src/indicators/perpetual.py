"""
Perpetual-futures market context and derived indicators.

Exchange clients (outside this package) collect funding, open interest,
account ratios, order book depth and liquidation clusters for a symbol. This
module holds the typed containers for that data and turns the raw numbers
into bucketed indicators.

Every field of PerpetualContext is optional. ``None`` means the exchange did
not provide the data and the scorer gives it zero weight; a present value,
even a perfectly neutral one, is scored through its own bucket. Never
substitute 0 for a missing value.
"""

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict

# Funding is paid every 8 hours: 3 payments a day
_FUNDING_PAYMENTS_PER_YEAR = 3 * 365
_FUNDING_SIGNAL_THRESHOLD = 0.0005
_FUNDING_STABLE_CHANGE = 0.0001

_OI_CHANGE_THRESHOLD = 5.0

_ORDER_BOOK_SKEW = 10.0
_LIQUIDATION_SKEW = 2.0
# Ratio reported when one side of the heatmap is empty
_MAX_LIQUIDATION_RATIO = 10.0


@dataclass
class LongShortRatio:
    """Share of accounts (or top-trader positions) long vs short, in percent."""

    long_ratio: float
    short_ratio: float


@dataclass
class OrderBookSnapshot:
    """Aggregated bid/ask depth near the current price."""

    bid_volume: float
    ask_volume: float

    @property
    def imbalance(self) -> float:
        """(bid - ask) / (bid + ask) * 100; negative means ask-heavy."""
        total = self.bid_volume + self.ask_volume
        if total <= 0:
            return 0.0
        return (self.bid_volume - self.ask_volume) / total * 100

    @property
    def signal(self) -> str:
        """Pressure side: selling, buying or neutral."""
        if self.imbalance <= -_ORDER_BOOK_SKEW:
            return "selling"
        if self.imbalance >= _ORDER_BOOK_SKEW:
            return "buying"
        return "neutral"


@dataclass
class LiquidationHeatmap:
    """Estimated liquidation volume resting below (longs) and above (shorts) price."""

    total_long_liquidations: float
    total_short_liquidations: float

    @property
    def long_short_ratio(self) -> float:
        """Long / short liquidation volume, capped to a finite sentinel."""
        longs = max(self.total_long_liquidations, 0.0)
        shorts = max(self.total_short_liquidations, 0.0)
        if shorts == 0:
            return _MAX_LIQUIDATION_RATIO if longs > 0 else 1.0
        return min(longs / shorts, _MAX_LIQUIDATION_RATIO)

    @property
    def dominant_side(self) -> str:
        """Dominant liquidation side: long, short or balanced."""
        ratio = self.long_short_ratio
        if ratio >= _LIQUIDATION_SKEW:
            return "long"
        if ratio <= 1 / _LIQUIDATION_SKEW:
            return "short"
        return "balanced"


class _ContextModel(BaseModel):
    """Base for the input models: unknown keys dropped, NaN/inf rejected."""

    model_config = ConfigDict(extra="ignore", allow_inf_nan=False)


class _RatioModel(_ContextModel):
    long_ratio: float
    short_ratio: float


class _OrderBookModel(_ContextModel):
    bid_volume: float
    ask_volume: float


class _HeatmapModel(_ContextModel):
    total_long_liquidations: float
    total_short_liquidations: float


class _PerpetualContextModel(_ContextModel):
    """Shape of a perpetual context document (e.g. parsed JSON)."""

    funding_rate: Optional[float] = None
    open_interest: Optional[float] = None
    oi_change_24h: Optional[float] = None
    price_change_24h: Optional[float] = None
    funding_rate_history: Optional[list[float]] = None
    long_short_ratio: Optional[_RatioModel] = None
    top_traders_ratio: Optional[_RatioModel] = None
    order_book: Optional[_OrderBookModel] = None
    liquidation_heatmap: Optional[_HeatmapModel] = None


@dataclass
class PerpetualContext:
    """Optional perpetual-market data for one symbol."""

    funding_rate: Optional[float] = None
    open_interest: Optional[float] = None
    oi_change_24h: Optional[float] = None  # percent
    price_change_24h: Optional[float] = None  # percent
    funding_rate_history: list[float] = field(default_factory=list)  # previous rates, oldest first
    long_short_ratio: Optional[LongShortRatio] = None
    top_traders_ratio: Optional[LongShortRatio] = None
    order_book: Optional[OrderBookSnapshot] = None
    liquidation_heatmap: Optional[LiquidationHeatmap] = None

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "PerpetualContext":
        """
        Build a context from a plain mapping (e.g. parsed JSON).

        Nested ratio/order-book/heatmap entries are mappings with the
        dataclass field names. Unknown keys are ignored at every level;
        numeric strings are coerced to floats.

        Raises:
            ValueError: A value has the wrong type, is not finite, or a
                nested entry misses a required field (pydantic.ValidationError)
        """
        if not data:
            return cls()

        parsed = _PerpetualContextModel.model_validate(data)

        def _nested(model: Optional[BaseModel], factory):
            return factory(**model.model_dump()) if model is not None else None

        return cls(
            funding_rate=parsed.funding_rate,
            open_interest=parsed.open_interest,
            oi_change_24h=parsed.oi_change_24h,
            price_change_24h=parsed.price_change_24h,
            funding_rate_history=list(parsed.funding_rate_history or []),
            long_short_ratio=_nested(parsed.long_short_ratio, LongShortRatio),
            top_traders_ratio=_nested(parsed.top_traders_ratio, LongShortRatio),
            order_book=_nested(parsed.order_book, OrderBookSnapshot),
            liquidation_heatmap=_nested(parsed.liquidation_heatmap, LiquidationHeatmap),
        )


@dataclass
class FundingRateResult:
    """Funding rate snapshot."""

    rate: float = 0.0
    annualized: float = 0.0  # percent per year
    signal: str = "neutral"  # "long", "short", "neutral"
    trend: str = "stable"  # "increasing", "decreasing", "stable"


@dataclass
class OpenInterestResult:
    """Open interest snapshot."""

    value: float = 0.0
    change_24h: float = 0.0  # percent
    signal: str = "stable"  # "increasing", "decreasing", "stable"
    interpretation: str = "neutral"  # "bullish", "bearish", "neutral"


def get_funding_rate_indicator(
    rate: Optional[float],
    history: Optional[list[float]] = None,
) -> Optional[FundingRateResult]:
    """
    Build the funding rate indicator.

    Args:
        rate: Current funding rate per 8h period (0.0001 = 0.01%)
        history: Previous funding rates, oldest first

    Returns:
        FundingRateResult, or None when the rate is unavailable
    """
    if rate is None:
        return None

    previous = history[-1] if history else rate
    annualized = rate * _FUNDING_PAYMENTS_PER_YEAR * 100

    signal = "neutral"
    if rate > _FUNDING_SIGNAL_THRESHOLD:
        signal = "short"
    elif rate < -_FUNDING_SIGNAL_THRESHOLD:
        signal = "long"

    change = rate - previous
    if abs(change) < _FUNDING_STABLE_CHANGE:
        trend = "stable"
    elif change > 0:
        trend = "increasing"
    else:
        trend = "decreasing"

    return FundingRateResult(
        rate=rate,
        annualized=round(annualized, 2),
        signal=signal,
        trend=trend,
    )


def get_open_interest_indicator(
    open_interest: Optional[float],
    change_24h: Optional[float],
    price_change_24h: Optional[float],
) -> Optional[OpenInterestResult]:
    """
    Build the open interest indicator.

    Interpretation reads OI change together with price:
    - OI up, price up: new longs (bullish)
    - OI up, price down: new shorts (bearish)
    - OI down, price down: shorts covering (bullish)
    - OI down, price up: longs closing (bearish)

    Args:
        open_interest: Current open interest
        change_24h: OI change over 24h in percent
        price_change_24h: Price change over 24h in percent

    Returns:
        OpenInterestResult, or None when neither OI nor its change is available
    """
    if open_interest is None and change_24h is None:
        return None

    change = change_24h if change_24h is not None else 0.0
    price_change = price_change_24h if price_change_24h is not None else 0.0

    if abs(change) < _OI_CHANGE_THRESHOLD:
        signal = "stable"
    elif change > 0:
        signal = "increasing"
    else:
        signal = "decreasing"

    interpretation = "neutral"
    if change > _OI_CHANGE_THRESHOLD and price_change > 0:
        interpretation = "bullish"
    elif change > _OI_CHANGE_THRESHOLD and price_change < 0:
        interpretation = "bearish"
    elif change < -_OI_CHANGE_THRESHOLD and price_change < 0:
        interpretation = "bullish"
    elif change < -_OI_CHANGE_THRESHOLD and price_change > 0:
        interpretation = "bearish"

    return OpenInterestResult(
        value=open_interest if open_interest is not None else 0.0,
        change_24h=round(change, 2),
        signal=signal,
        interpretation=interpretation,
    )
