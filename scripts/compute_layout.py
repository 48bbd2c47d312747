#!/usr/bin/env python3
"""Settle one owner's memory graph offline and export node positions.

Usage:
    python scripts/compute_layout.py
    python scripts/compute_layout.py --owner alice --distance 150 -o layout.json

Loads notes and relations from Neo4j, runs the force simulation until it
comes to rest (or --max-ticks), and writes {id: {x, y}} as JSON.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv
from tqdm import tqdm

# Load .env file from project root
project_root = Path(__file__).parent.parent
load_dotenv(project_root / ".env")

from memograph.config import settings  # noqa: E402
from memograph.engine import MemoryGraphEngine  # noqa: E402
from memograph.errors import MemographError  # noqa: E402
from memograph.storage.neo4j_client import close_client, get_client  # noqa: E402

logging.basicConfig(
    level=logging.WARNING,  # Reduce noise during progress bar
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


async def compute_layout(
    owner_id: str,
    distance: float,
    category_id: str | None,
    max_ticks: int,
) -> dict[str, dict[str, float]]:
    """Load the graph, settle it and return positions by note id."""
    db = await get_client()
    try:
        engine = MemoryGraphEngine(db, owner_id=owner_id)
        rejected = await engine.reload()
        for error in rejected:
            logger.warning(f"Skipped: {error}")
        if category_id:
            engine.set_category_filter(category_id)
        engine.simulation.set_link_distance(distance)
    finally:
        await close_client()

    simulation = engine.simulation
    print(f"Laying out {simulation.size} notes and {len(simulation.edges)} relations")

    pbar = tqdm(total=max_ticks, desc="Settling layout", unit="tick")
    while simulation.active and pbar.n < max_ticks:
        alpha = simulation.tick()
        pbar.update(1)
        if pbar.n % 50 == 0:
            pbar.set_postfix(alpha=f"{alpha:.4f}")
    pbar.close()

    print(f"Mean relation length: {simulation.mean_edge_length():.1f}")
    return {node.id: {"x": node.x, "y": node.y} for node in simulation.nodes()}


async def main() -> bool:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Compute memory graph layout positions",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python scripts/compute_layout.py                        # Print positions for the default owner
    python scripts/compute_layout.py --category work        # Only notes in one category
    python scripts/compute_layout.py -o layout.json         # Write to a file
        """,
    )
    parser.add_argument(
        "--owner",
        default=settings.owner_id,
        help=f"Owner whose notes to lay out (default: {settings.owner_id})",
    )
    parser.add_argument(
        "--distance",
        type=float,
        default=settings.link_distance,
        help="Link distance between related notes",
    )
    parser.add_argument(
        "--category",
        help="Restrict the layout to one category id",
    )
    parser.add_argument(
        "--max-ticks",
        type=int,
        default=2000,
        help="Upper bound on simulation steps",
    )
    parser.add_argument(
        "-o",
        "--output",
        type=Path,
        help="Write JSON here instead of stdout",
    )

    args = parser.parse_args()

    try:
        positions = await compute_layout(args.owner, args.distance, args.category, args.max_ticks)
    except MemographError as e:
        logger.error(f"Layout failed: {e}")
        return False

    payload = json.dumps(positions, indent=2)
    if args.output:
        args.output.write_text(payload)
        print(f"Wrote {len(positions)} positions to {args.output}")
    else:
        print(payload)
    return True


if __name__ == "__main__":
    success = asyncio.run(main())
    sys.exit(0 if success else 1)
