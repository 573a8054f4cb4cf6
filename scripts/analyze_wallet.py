"""Run the full portfolio analysis for one wallet and print the report.

Usage:
    python scripts/analyze_wallet.py <wallet_address>
    python scripts/analyze_wallet.py <wallet_address> --steps --verbose
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Ensure project root is in path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from config.settings import settings  # noqa: E402
from src.parsers.errors import InvalidAddressError  # noqa: E402
from src.services import AnalysisServices  # noqa: E402
from src.utils.logger import setup_logger  # noqa: E402
from src.workflows.portfolio_analysis import run_portfolio_analysis  # noqa: E402


async def main() -> int:
    parser = argparse.ArgumentParser(description="Analyze a Solana wallet portfolio")
    parser.add_argument("wallet", help="Wallet address (32-44 chars)")
    parser.add_argument("--steps", action="store_true", help="Print per-step status and timing")
    parser.add_argument("--verbose", action="store_true", help="Log at DEBUG level")
    args = parser.parse_args()

    setup_logger(level="DEBUG" if args.verbose else "WARNING", log_file=None)

    services = AnalysisServices.from_settings(settings)
    try:
        run = await run_portfolio_analysis(services, args.wallet)
    except InvalidAddressError as e:
        print(f"Invalid wallet address: {e}", file=sys.stderr)
        return 2
    finally:
        await services.close()

    print(run.output.report)

    if args.steps:
        print()
        print(f"Run {run.run_id}")
        for record in run.steps:
            line = f"  {record.step_id:<18} {record.status:<9} {record.duration_sec:6.2f}s"
            if record.error:
                line += f"  {record.error}"
            print(line)

    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
