# ingestarr/cli.py
# Command-line entry point: load config, set up logging, wire Ctrl-C to the
# cancellation token, run one batch, map failures to exit codes.
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__
from .core.cancellation import CancellationToken, install_sigint_handler
from .core.config import CONFIG_ENV, Settings, load_settings
from .core.errors import ConfigurationError, LedgerCorrupt
from .core.logsetup import get_error_logger, get_logger, setup_logging
from .services.batch import BatchDriver

EXIT_OK = 0
EXIT_CONFIG = 2
EXIT_LEDGER_CORRUPT = 3


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ingestarr",
        description="Ingestarr: import photos and videos from source folders into a dated library.",
    )
    parser.add_argument("--config", default=None,
                        help=f"Path to ingestarr.toml (default: ${CONFIG_ENV}, then ./ingestarr.toml)")
    parser.add_argument("--logs-dir", default=None,
                        help="Where to write log files (default: console only)")
    parser.add_argument("--log-level", default=None, choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
                        help="Force console log level (overrides -v/-q)")
    parser.add_argument("-v", "--verbose", action="count", default=0,
                        help="Increase console verbosity (repeatable)")
    parser.add_argument("-q", "--quiet", action="store_true",
                        help="Minimal console output")
    parser.add_argument("--json-logs", action="store_true",
                        help="Write JSON-formatted logs to file handler")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def run(settings: Settings, token: Optional[CancellationToken] = None) -> int:
    """Run one batch and return the process exit code."""
    log = get_logger()
    driver = BatchDriver(settings, token)
    try:
        driver.check_destination()
    except ConfigurationError as e:
        # nothing to import into (e.g. library drive not mounted): not a failure
        log.info("%s. Nothing to do.", e)
        return EXIT_OK

    try:
        driver.run()
    except LedgerCorrupt as e:
        get_error_logger().error("%s", e, exc_info=True)
        return EXIT_LEDGER_CORRUPT
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    setup_logging(
        logs_dir=Path(args.logs_dir).expanduser().resolve() if args.logs_dir else None,
        verbose=args.verbose,
        quiet=args.quiet,
        log_level_arg=args.log_level,
        json_logs=args.json_logs,
    )
    log = get_logger()

    try:
        settings = load_settings(args.config)
    except ConfigurationError as e:
        get_error_logger().error("%s", e)
        return EXIT_CONFIG

    log.debug("Destination = %s", settings.destination_path)
    log.debug("Sources = %s", [str(s.path) for s in settings.sources])
    log.debug("Transcoding=%s, archiving=%s", settings.transcoding, settings.archiving)

    token = CancellationToken()
    install_sigint_handler(token)
    return run(settings, token)


if __name__ == "__main__":
    sys.exit(main())
