"""
Short Scanner - Command Line Entry Point

Runs the short setup analysis for one symbol from a candle dump:

    {
        "candles": {"5m": [...], "15m": [...], "1h": [...], "4h": [...]},
        "context": {"funding_rate": 0.0001, "long_short_ratio": {...}, ...}
    }

Each candle is an object with timestamp, open, high, low, close, volume.

Usage:
    python -m src.main candles.json --symbol PEPEUSDT [--tier 3] [--debug]

Configuration:
    Logging and indicator parameters come from environment variables or .env.
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Optional

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from config.logging_config import get_logger, setup_logging
from config.settings import get_settings
from src.indicators.perpetual import PerpetualContext
from src.strategy.short_analyzer import ShortSetupAnalyzer
from src.strategy.volatility_tier import format_tier_debug_info


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="short-scanner",
        description="Score a short setup from OHLCV candles",
    )
    parser.add_argument("candles_file", type=Path, help="JSON file with candles by timeframe")
    parser.add_argument("--symbol", required=True, help="Symbol being analyzed (tier cache key)")
    parser.add_argument("--tier", type=int, choices=(1, 2, 3), help="Force a volatility tier")
    parser.add_argument("--debug", action="store_true", help="Print the volatility tier breakdown")
    return parser.parse_args(argv)


def load_candle_file(path: Path) -> tuple[dict, PerpetualContext]:
    """
    Load candles and perpetual context from a JSON document.

    Args:
        path: JSON file path

    Returns:
        (candles by timeframe, perpetual context)

    Raises:
        OSError: File cannot be read
        ValueError: Invalid JSON or unexpected document shape
    """
    with open(path, encoding="utf-8") as f:
        document = json.load(f)

    if not isinstance(document, dict) or not isinstance(document.get("candles"), dict):
        raise ValueError("document must be an object with a 'candles' mapping")

    for timeframe, rows in document["candles"].items():
        if not isinstance(rows, list) or not all(isinstance(row, dict) for row in rows):
            raise ValueError(f"candles for {timeframe} must be a list of objects")

    context_data = document.get("context")
    if context_data is not None and not isinstance(context_data, dict):
        raise ValueError("'context' must be an object")

    # pydantic.ValidationError is a ValueError
    return document["candles"], PerpetualContext.from_dict(context_data)


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point for the short scanner.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    args = parse_args(argv)
    settings = get_settings()

    setup_logging(
        log_level=settings.log_level,
        log_file=settings.log_file,
        json_format=settings.log_json,
    )
    logger = get_logger(__name__)

    try:
        candles, context = load_candle_file(args.candles_file)
    except (OSError, ValueError) as e:
        logger.error("candle_file_invalid", path=str(args.candles_file), error=str(e))
        return 1

    analyzer = ShortSetupAnalyzer(settings=settings)
    analysis = analyzer.analyze(args.symbol, candles, context, override_tier=args.tier)

    if args.debug:
        print(format_tier_debug_info(analysis.tier), file=sys.stderr)

    print(json.dumps(analysis.to_dict(), indent=2, default=str))
    return 0


if __name__ == "__main__":
    sys.exit(main())
