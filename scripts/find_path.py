#!/usr/bin/env python3
"""Find a link path between two Wikipedia articles.

Usage:
    python scripts/find_path.py "Start article" "Target article"
    python scripts/find_path.py --all "Start article" "Target article"

Runs the same breadth-first search the explorer uses and prints every
path found. Ctrl+C aborts the search.

Options:
    --all       Keep searching after the first path
    --depth N   Maximum path length in hops
"""

import argparse
import asyncio
import logging
import sys

from wikiweb.config import settings
from wikiweb.fetch import WikipediaClient
from wikiweb.search import SearchOutcome
from wikiweb.session import ExplorerSession

logging.basicConfig(
    level=logging.WARNING,
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


async def find_path(start: str, end: str, keep_searching: bool, max_depth: int) -> bool:
    client = WikipediaClient()
    session = ExplorerSession(client)
    session.search_engine.max_depth = max_depth

    def on_path_found(path: list[str]) -> None:
        print("  " + " -> ".join(path))

    print("\n" + "=" * 60)
    print(f"PATH SEARCH: {start} -> {end}")
    print("=" * 60)

    try:
        result = await session.search_engine.search(
            start, end,
            keep_searching=keep_searching,
            on_path_found=on_path_found,
            on_log=lambda line: print(f"  {line}"),
        )
    finally:
        await session.close()
        await client.close()

    print("=" * 60)
    print(f"Outcome:        {result.outcome.value}")
    print(f"Nodes explored: {result.explored_count}")
    print(f"Paths found:    {len(result.paths)}")
    if result.error:
        print(f"Error:          {result.error}")
    print("=" * 60)

    return result.outcome == SearchOutcome.FOUND


async def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Find a link path between two Wikipedia articles",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python scripts/find_path.py "Coffee" "Ethiopia"
    python scripts/find_path.py --all --depth 3 "Jazz" "New Orleans"
        """,
    )
    parser.add_argument("start", help="Article to start from")
    parser.add_argument("end", help="Article to reach")
    parser.add_argument(
        "--all",
        action="store_true",
        help="Keep searching after the first path is found",
    )
    parser.add_argument(
        "--depth",
        type=int,
        default=settings.search_max_depth,
        help=f"Maximum path length in hops (default: {settings.search_max_depth})",
    )

    args = parser.parse_args()
    try:
        return await find_path(args.start, args.end, keep_searching=args.all, max_depth=args.depth)
    except Exception as e:
        logger.exception(f"Path search failed: {e}")
        return False


if __name__ == "__main__":
    success = asyncio.run(main())
    sys.exit(0 if success else 1)
