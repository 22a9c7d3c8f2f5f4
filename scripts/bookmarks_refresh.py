#!/usr/bin/env python3
"""Cron-triggered bookmark refresh script.

Run this script via cron to keep the persisted bookmark pages fresh even
when no reader has triggered a refresh.

Example crontab entry (every 30 minutes):
    */30 * * * * cd /srv/bookmarks && .venv/bin/python scripts/bookmarks_refresh.py >> /var/log/bookmarks_refresh.log 2>&1

Usage:
    python scripts/bookmarks_refresh.py [--force] [--status] [--release-lock]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

logger = logging.getLogger("bookmarks_refresh")


async def show_status() -> int:
    """Print the persisted index and last refresh heartbeat."""
    from app.config import load_config
    from app.services.engine import BookmarkEngine

    cfg = load_config()
    engine = BookmarkEngine(cfg)
    index = await engine.get_index()
    heartbeat = await engine.get_heartbeat()
    tags = await engine.list_cached_tags()

    print("\n=== Bookmark Cache Status ===")
    if index is None:
        print("Index: (none persisted)")
    else:
        print(f"Bookmarks: {index.count} in {index.total_pages} page(s) of {index.page_size}")
        print(f"Checksum: {index.checksum}")
        print(f"Last modified: {index.last_modified}")
    if heartbeat is None:
        print("Heartbeat: (none recorded)")
    else:
        outcome = "ok" if heartbeat.success else f"failed ({heartbeat.error})"
        print(f"Last refresh: {heartbeat.run_at} {outcome}")
        print(f"  change detected: {heartbeat.change_detected}")
        print(f"  served fallback: {heartbeat.used_fallback}")
    print(f"Cached tags: {len(tags)}")
    for slug in tags[:20]:
        print(f"  - {slug}")
    return 0


async def run_refresh(force: bool = False) -> int:
    """Run a single refresh cycle.

    Args:
        force: Bypass the unchanged-checksum short circuit

    Returns:
        Exit code (0 for success or lock contention, 1 for error)
    """
    from app.config import load_config
    from app.services.engine import BookmarkEngine

    try:
        cfg = load_config()
        engine = BookmarkEngine(cfg)
        await engine.start(sweep_locks=False)
        try:
            result = await engine.refresh(force=force)
            heartbeat = await engine.get_heartbeat()
        finally:
            await engine.stop()

        if result is None:
            print("Another process holds the refresh lock; nothing to do.")
            return 0

        print("\n=== Bookmark Refresh Summary ===")
        print(f"Bookmarks: {len(result)}")
        if heartbeat is not None:
            print(f"Change detected: {heartbeat.change_detected}")
            if heartbeat.used_fallback:
                print(f"Served fallback after error: {heartbeat.error}")
                return 1
        return 0

    except Exception as e:
        logger.exception("bookmarks_refresh_failed")
        print(f"\nERROR: {e}")
        return 1


async def release_lock() -> int:
    """Remove the refresh lock regardless of owner."""
    from app.config import load_config
    from app.services.engine import BookmarkEngine

    engine = BookmarkEngine(load_config())
    await engine.lock.force_release(engine.keys.refresh_lock)
    print(f"Released {engine.keys.refresh_lock}")
    return 0


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Refresh the persisted bookmark collection")
    parser.add_argument(
        "--force",
        action="store_true",
        help="Re-process and re-persist even if the upstream data is unchanged",
    )
    parser.add_argument(
        "--status",
        action="store_true",
        help="Print the persisted index and last heartbeat, then exit",
    )
    parser.add_argument(
        "--release-lock",
        action="store_true",
        help="Force-release a stuck refresh lock, then exit",
    )
    args = parser.parse_args()

    from app.config import load_config
    from app.core.logging_utils import setup_json_logging

    runtime = load_config().runtime
    setup_json_logging(runtime.log_level, use_loguru=runtime.use_loguru, log_file=runtime.log_file)

    if args.status:
        exit_code = asyncio.run(show_status())
    elif args.release_lock:
        exit_code = asyncio.run(release_lock())
    else:
        exit_code = asyncio.run(run_refresh(force=args.force))
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
