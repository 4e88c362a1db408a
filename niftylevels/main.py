"""NiftyLevels: command-line entry point.

Loads a CSV of intraday candles, runs the analysis engine over every
session in it and prints the ``AnalyzerResponse`` as JSON.

Usage:
    python -m niftylevels.main candles.csv --indent 2
"""

import argparse
import logging
import sys

from niftylevels.config import load_config
from niftylevels.errors import NoAnalyzableDataError
from niftylevels.orchestrator import AnalysisOrchestrator
from niftylevels.sources import CsvCandleSource

logger = logging.getLogger("niftylevels")


def run_cli(argv: list[str] | None = None) -> int:
    """Parse CLI arguments, run the analysis and write JSON to stdout.

    Returns the process exit code: 0 on success, 1 when no session could
    be analysed.
    """
    parser = argparse.ArgumentParser(description="Intraday support/resistance analyzer")
    parser.add_argument("csv", help="CSV file with time, open, high, low, close columns")
    parser.add_argument("--env", help="Path to a .env file with NIFTY_* settings")
    parser.add_argument("--indent", type=int, default=None, help="JSON indent (default: compact)")
    args = parser.parse_args(argv)

    config = load_config(args.env)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    source = CsvCandleSource(args.csv, tz=config.timezone)
    try:
        response = AnalysisOrchestrator(config).analyze(source)
    except NoAnalyzableDataError as exc:
        logger.error("Analysis failed: %s", exc)
        return 1

    sys.stdout.write(response.to_json(indent=args.indent) + "\n")
    return 0


if __name__ == "__main__":
    sys.exit(run_cli())
