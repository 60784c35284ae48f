"""
Pytest configuration and shared fixtures for short-scanner tests.
"""

import sys
from pathlib import Path

# Add project root to path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import pytest
from unittest.mock import MagicMock
import pandas as pd
import numpy as np

# Silence structlog during tests
import structlog


def _mock_logger_factory(*args):
    """Factory that creates mock loggers for testing."""
    mock = MagicMock()
    # Configure mock methods to return the mock itself (for chaining)
    mock.bind.return_value = mock
    return mock


structlog.configure(
    processors=[],
    logger_factory=_mock_logger_factory,
)


def make_candles(closes, volumes=None, spread=0.005, start_ts=1_700_000_000_000, step_ms=3_600_000):
    """
    Build a candle frame from a close path.

    Each candle opens at the previous close; high/low sit ``spread`` around
    the body.
    """
    closes = [float(c) for c in closes]
    if volumes is None:
        volumes = [1000.0] * len(closes)
    opens = [closes[0]] + closes[:-1]
    rows = []
    for i, (o, c, v) in enumerate(zip(opens, closes, volumes)):
        rows.append({
            "timestamp": start_ts + i * step_ms,
            "open": o,
            "high": max(o, c) * (1 + spread),
            "low": min(o, c) * (1 - spread),
            "close": c,
            "volume": float(v),
        })
    return pd.DataFrame(rows)


# ============================================================================
# Shared Fixtures
# ============================================================================

@pytest.fixture
def sample_ohlcv_data():
    """Generate sample OHLCV market data for testing indicators."""
    def _generate(length=100, base_price=100.0, volatility=0.02):
        """
        Generate realistic OHLCV data.

        Args:
            length: Number of candles
            base_price: Starting price
            volatility: Price volatility (0.01 = 1%)
        """
        np.random.seed(42)  # Deterministic for tests

        prices = []
        current = base_price

        for _ in range(length):
            # Random walk with drift
            change = np.random.randn() * volatility * current
            current = current + change
            prices.append(current)

        data = {
            'timestamp': [],
            'open': [],
            'high': [],
            'low': [],
            'close': [],
            'volume': []
        }

        for i, price in enumerate(prices):
            o = price * (1 + np.random.uniform(-0.005, 0.005))
            c = price * (1 + np.random.uniform(-0.005, 0.005))
            h = max(o, c) * (1 + abs(np.random.uniform(0, 0.01)))
            l = min(o, c) * (1 - abs(np.random.uniform(0, 0.01)))
            v = np.random.uniform(1000, 10000)

            data['timestamp'].append(1_700_000_000_000 + i * 3_600_000)
            data['open'].append(o)
            data['high'].append(h)
            data['low'].append(l)
            data['close'].append(c)
            data['volume'].append(v)

        return pd.DataFrame(data)

    return _generate


@pytest.fixture
def candle_builder():
    """Build candles from an explicit close path."""
    return make_candles


@pytest.fixture
def trend_candles():
    """Candles following a steady percentage trend."""
    def _generate(length=250, base_price=100.0, step=0.01, volume=1000.0):
        closes = [base_price * (1 + step) ** i for i in range(length)]
        return make_candles(closes, [volume] * length)
    return _generate


@pytest.fixture
def flat_candles():
    """Candles with a constant price (degenerate arithmetic)."""
    def _generate(length=100, price=100.0, volume=1000.0):
        rows = [{
            "timestamp": 1_700_000_000_000 + i * 3_600_000,
            "open": price,
            "high": price,
            "low": price,
            "close": price,
            "volume": volume,
        } for i in range(length)]
        return pd.DataFrame(rows)
    return _generate


@pytest.fixture
def pump_candles():
    """Long flat base followed by a sharp pump on fading volume."""
    def _generate(base_length=200, pump_length=20, base_price=1.0, pump_step=0.03):
        closes = [base_price] * base_length
        closes += [base_price * (1 + pump_step) ** (i + 1) for i in range(pump_length)]
        volumes = [5000.0] * base_length
        volumes += [5000.0 * (0.9 ** i) for i in range(pump_length)]
        return make_candles(closes, volumes, spread=0.002)
    return _generate
