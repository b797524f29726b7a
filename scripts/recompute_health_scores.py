"""
Recompute Health Scores Script
Recalculates deal health scores from the command line.

Usage:
    python scripts/recompute_health_scores.py                 # all deals
    python scripts/recompute_health_scores.py --deal-id <id>  # one deal
    python scripts/recompute_health_scores.py --backfill-stages
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from uuid import UUID

# Add parent directory to path to import dealhealth modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from dealhealth.database.connection import async_session_factory, close_db
from dealhealth.scoring.exceptions import DealNotFoundError
from dealhealth.scoring.repository import DealRepository
from dealhealth.scoring.service import DealHealthService

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Recompute deal health scores")
    parser.add_argument("--deal-id", type=UUID, help="Only recompute this deal")
    parser.add_argument(
        "--backfill-stages",
        action="store_true",
        help="Fill missing stage win probabilities before scoring",
    )
    return parser.parse_args(argv)


async def run(args: argparse.Namespace) -> int:
    """Run the recompute inside one transaction. Returns the exit code."""
    async with async_session_factory() as session:
        service = DealHealthService(DealRepository(session))

        if args.backfill_stages:
            updated = await service.backfill_stage_probabilities()
            print(f"Backfilled win probability on {updated} stage(s).")

        if args.deal_id:
            try:
                result = await service.recompute(args.deal_id)
            except DealNotFoundError as e:
                print(f"Error: {e.message}")
                await session.rollback()
                return 1
            print(f"Deal {args.deal_id}: {result.score} ({result.band.value})")
            for name, value in result.breakdown.to_dict().items():
                print(f"  {name:<22} {value:>3}")
        else:
            summary = await service.recompute_all()
            print(f"Processed {summary['processed']} deal(s), {summary['failed']} failed.")

        await session.commit()
    return 0


async def main() -> int:
    """Main script entry point."""
    args = parse_args()
    try:
        return await run(args)
    finally:
        await close_db()


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
