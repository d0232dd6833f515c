#!/usr/bin/env python3
"""Build a topic graph from Wikipedia headlessly and print a summary.

Usage:
    python scripts/explore.py "Topic" ["Another topic" ...]
    python scripts/explore.py --expand 3 --backlinks "Topic"

Adds each topic, expands the best-connected nodes, settles the force
layout on an in-memory surface and prints the most connected topics with
their screen positions.
"""

import argparse
import asyncio
import logging
import sys

from wikiweb.fetch import WikipediaClient
from wikiweb.render.surface import MemorySurface
from wikiweb.session import ExplorerSession
from wikiweb.view import GraphView

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


async def explore(topics: list[str], expand: int, backlinks: bool, ticks: int) -> bool:
    client = WikipediaClient()
    session = ExplorerSession(client)
    surface = MemorySurface()
    view = GraphView(surface, model=session.model, seed=0)

    try:
        for topic in topics:
            resolved = await session.add_topic(topic, include_backlinks=backlinks)
            if resolved is None:
                logger.error(f"Could not add {topic}: {session.error}")
                return False
        session.batcher.force_flush()

        degrees = session.model.get_degrees()
        hubs = sorted(
            (t for t in degrees if t not in session.user_typed),
            key=lambda t: degrees[t],
            reverse=True,
        )[:expand]
        for hub in hubs:
            await session.expand_node(hub, include_backlinks=backlinks)
        session.batcher.force_flush()

        view.layout.tick(ticks)
        view.reconciler.tick()

        stats = session.model.get_stats()
        degrees = session.model.get_degrees()
        print("\n" + "=" * 60)
        print(f"GRAPH: {stats.node_count} topics, {stats.link_count} links")
        print("=" * 60)
        for lens in sorted(view.get_lensing_nodes(), key=lambda n: n.mass, reverse=True)[:10]:
            print(f"  ({lens.x:7.1f}, {lens.y:7.1f})  mass {lens.mass:.2f}")
        print("\nMost connected:")
        for title in sorted(degrees, key=degrees.get, reverse=True)[:10]:
            print(f"  {degrees[title]:3d}  {title}")
        print("=" * 60)
        return True
    finally:
        await view.close()
        await session.close()
        await client.close()


async def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Build a Wikipedia topic graph and print a summary",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python scripts/explore.py "Coffee"
    python scripts/explore.py --expand 5 --backlinks "Jazz" "Blues"
        """,
    )
    parser.add_argument("topics", nargs="+", help="Topics to add")
    parser.add_argument("--expand", type=int, default=2, help="Number of hub nodes to expand (default: 2)")
    parser.add_argument("--backlinks", action="store_true", help="Include articles linking to each topic")
    parser.add_argument("--ticks", type=int, default=300, help="Layout ticks to run (default: 300)")

    args = parser.parse_args()

    try:
        return await explore(args.topics, args.expand, args.backlinks, args.ticks)
    except Exception as e:
        logger.exception(f"Exploration failed: {e}")
        return False


if __name__ == "__main__":
    success = asyncio.run(main())
    sys.exit(0 if success else 1)
