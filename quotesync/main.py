#!/usr/bin/env python3
"""
Quote Sync - Main Entry Point

Keeps a local quote collection reconciled with a remote endpoint.
The remote wins every conflict; overwritten local versions can be
restored with --resolve.

Usage:
    python -m quotesync.main                       # One sync cycle
    python -m quotesync.main --watch               # Sync every poll interval
    python -m quotesync.main --add "Text" --category Wisdom
    python -m quotesync.main --resolve 3=local     # Keep local version of item 3
    python -m quotesync.main --status              # Show stored items only

Environment Variables (all optional):
    QUOTESYNC_REMOTE_URL      - Remote endpoint (default: jsonplaceholder posts)
    QUOTESYNC_POLL_INTERVAL   - Seconds between cycles in --watch mode
    QUOTESYNC_DATABASE_PATH   - SQLite file holding the item set
"""

import argparse
import logging
import sys
import threading
from pathlib import Path

from config.settings import load_settings, ConfigurationError, Settings
from quotesync.remote.client import HttpRemote
from quotesync.storage.blob_store import SQLiteBlobStore, StorageError
from quotesync.storage.item_store import ItemStore
from quotesync.sync.engine import CycleResult, SyncEngine, banner_for
from quotesync.sync.ledger import ConflictLedger, Resolution
from quotesync.sync.scheduler import SchedulerState, SyncScheduler


def setup_logging(verbose: bool = False, level_name: str = "INFO") -> None:
    """
    Configure logging for the application.

    Args:
        verbose: If True, enable DEBUG level logging
        level_name: Level used when not verbose
    """
    level = logging.DEBUG if verbose else getattr(logging, level_name, logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
        force=True,
    )

    # Reduce noise from external libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)


def parse_resolution(value: str) -> tuple[str, str]:
    """Parse an ``ID=local|remote`` argument."""
    item_id, sep, choice = value.partition("=")
    choices = [r.value for r in Resolution]
    if not sep or not item_id or choice not in choices:
        raise argparse.ArgumentTypeError(
            f"expected ID=local or ID=remote, got {value!r}"
        )
    return item_id, choice


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Reconcile a local quote collection with a remote endpoint",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python -m quotesync.main                         # One sync cycle
    python -m quotesync.main --watch                 # Keep syncing
    python -m quotesync.main --resolve 1=local       # Restore local version
    python -m quotesync.main --env .env.local        # Use custom env file
        """,
    )

    parser.add_argument(
        "--watch",
        action="store_true",
        help="Keep running and sync every poll interval until interrupted",
    )

    parser.add_argument(
        "--add",
        metavar="TEXT",
        help="Add a local item before syncing (requires --category)",
    )

    parser.add_argument(
        "--category",
        help="Category of the item given with --add",
    )

    parser.add_argument(
        "--resolve",
        metavar="ID=CHOICE",
        type=parse_resolution,
        action="append",
        default=[],
        help="Override the resolution of a conflict found by this run (repeatable)",
    )

    parser.add_argument(
        "--status",
        action="store_true",
        help="Show stored items without syncing",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose/debug logging",
    )

    parser.add_argument(
        "--env",
        type=Path,
        help="Path to .env file (default: .env in current directory)",
    )

    args = parser.parse_args(argv)
    if args.add is not None and not args.category:
        parser.error("--add requires --category")
    return args


def show_status(store: ItemStore) -> None:
    """
    Display the stored item set.

    Args:
        store: Loaded item store
    """
    logger = logging.getLogger(__name__)

    logger.info("=" * 50)
    logger.info("Stored Items")
    logger.info("=" * 50)
    logger.info(f"Total items:        {len(store)}")
    logger.info(f"Categories:         {', '.join(store.categories_of(store.items))}")
    logger.info(f"Selected category:  {store.selected_category}")
    for item in store.items:
        logger.info(f"  [{item.id}] {item.text} ({item.category})")
    logger.info("=" * 50)


def report_cycle(result: CycleResult, ledger: ConflictLedger) -> None:
    """Log the outcome of a cycle and any pending conflicts."""
    logger = logging.getLogger(__name__)

    banner = banner_for(result)
    if banner is not None:
        logger.info(banner.message)
    elif result.reason:
        logger.error(f"Sync failed: {result.reason}")

    for conflict in ledger.list_pending():
        logger.info(
            f"  Conflict {conflict.id}: "
            f"local={conflict.local.text!r} ({conflict.local.category}) "
            f"remote={conflict.remote.text!r} ({conflict.remote.category})"
        )


def watch(scheduler: SyncScheduler, ledger: ConflictLedger, settings: Settings) -> int:
    """Run scheduled cycles until interrupted."""
    logger = logging.getLogger(__name__)

    def on_state(state: SchedulerState, result) -> None:
        if result is not None:
            report_cycle(result, ledger)

    scheduler.add_listener(on_state)
    scheduler.start(settings.sync.poll_interval_seconds, run_immediately=True)

    try:
        threading.Event().wait()
    finally:
        scheduler.stop()
        logger.info("Watch stopped")
    return 0


def main(argv=None) -> int:
    """
    Main entry point.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    args = parse_args(argv)

    try:
        settings = load_settings(env_file=args.env)
    except ConfigurationError as e:
        setup_logging(verbose=args.verbose)
        logging.getLogger(__name__).error(f"Configuration error: {e}")
        return 1

    setup_logging(verbose=args.verbose, level_name=settings.log_level)
    logger = logging.getLogger(__name__)

    remote = None
    try:
        store = ItemStore(SQLiteBlobStore(settings.storage.database_path))
        store.load()

        if args.status:
            show_status(store)
            return 0

        remote = HttpRemote(
            url=settings.remote.url,
            timeout=settings.remote.timeout_seconds,
            max_retries=settings.remote.max_retries,
            snapshot_limit=settings.remote.snapshot_limit,
            default_category=settings.remote.default_category,
        )
        ledger = ConflictLedger(store)
        engine = SyncEngine(remote=remote, store=store, ledger=ledger)
        scheduler = SyncScheduler(engine)

        if args.add is not None:
            added = engine.add_item(args.add, args.category)
            if not added.pushed:
                logger.warning(f"Item {added.item.id} saved locally only: {added.error}")

        if args.watch:
            return watch(scheduler, ledger, settings)

        result = scheduler.run_cycle_now()
        report_cycle(result, ledger)

        if args.resolve:
            changed = ledger.apply_resolutions(dict(args.resolve))
            logger.info(f"Resolutions applied, {changed} items restored")

        return 0 if result.ok else 1

    except StorageError as e:
        logger.error(f"Storage error: {e}")
        return 1
    except ValueError as e:
        logger.error(f"Invalid input: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Sync interrupted by user")
        return 130
    finally:
        if remote is not None:
            remote.close()


if __name__ == "__main__":
    sys.exit(main())
