from __future__ import annotations

import argparse
import logging
import sys
from typing import Sequence

from lyrebird_storage.config import ConfigError, load_config
from lyrebird_storage.logging_setup import setup_logging
from lyrebird_storage.status import collect_status, render_status
from lyrebird_storage.storage import StorageManager


__version__ = "1.0.0"

EXIT_OK = 0
EXIT_CONFIG = 2

log = logging.getLogger(__name__)

COMMANDS = ("status", "cleanup", "monitor", "emergency")

EPILOG = """\
Cron integration:
  # Daily cleanup at 3 AM
  0 3 * * * lyrebird-storage cleanup
  # Hourly monitoring
  0 * * * * lyrebird-storage monitor
"""


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="lyrebird-storage",
        description="Storage management for LyreBirdAudio recording hosts",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    p.add_argument(
        "command",
        choices=COMMANDS,
        help="status: show usage | cleanup: apply retention policy | "
        "monitor: act on current disk pressure | emergency: force emergency cleanup",
    )
    p.add_argument("-c", "--config", default=None, help="Optional config.toml or config.yaml")
    p.add_argument(
        "-n", "--dry-run", action="store_true", help="Show what would be deleted without deleting"
    )
    p.add_argument("-d", "--debug", action="store_true", help="Log per-file decisions")
    p.add_argument("--log-level", default=None, help="DEBUG|INFO|WARNING|ERROR")
    p.add_argument("-V", "--version", action="version", version=f"%(prog)s {__version__}")
    return p.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    overrides = {}
    if args.dry_run:
        overrides["dry_run"] = True
    if args.debug:
        overrides["debug"] = True

    try:
        config = load_config(args.config, **overrides)
    except ConfigError as e:
        setup_logging(args.log_level or "INFO")
        log.error("Invalid configuration: %s", e)
        return EXIT_CONFIG

    setup_logging(args.log_level or ("DEBUG" if config.debug else "INFO"))
    log.debug("Loaded config: %s", config)

    if args.command == "status":
        sys.stdout.write(render_status(collect_status(config)))
        return EXIT_OK

    manager = StorageManager(config=config)
    if config.dry_run:
        log.info("Dry run: no files will be modified")
    if args.command == "cleanup":
        manager.cleanup()
    elif args.command == "monitor":
        manager.monitor()
    elif args.command == "emergency":
        manager.emergency()
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
