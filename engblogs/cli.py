"""Command-line interface for the engblogs application."""

from __future__ import annotations

import argparse
import dataclasses
import logging
import pprint
from pathlib import Path
from typing import List, Optional

from .config import parse_app_config
from .runner import RunConfig, execute

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Create the CLI argument parser."""
    parser = argparse.ArgumentParser(
        description="Build a page of recent posts from the subscribed engineering blogs."
    )
    parser.add_argument(
        "--config",
        default="configs/config.xml",
        help="Path to the main configuration XML file.",
    )
    parser.add_argument(
        "--skip-fetch",
        action="store_true",
        help="Skip fetching feeds and rebuild the page from the cache only.",
    )

    # Overrides for logging/debugging
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (e.g. DEBUG, INFO, WARNING). Overrides config.",
    )
    parser.add_argument(
        "--log-file",
        default=None,
        help="Optional path to a log file. Overrides config.",
    )

    return parser


LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level_name: str, log_file: Optional[str] = None) -> None:
    """Send log records to stderr and, when given, to ``log_file`` as well."""
    level = logging.getLevelName(level_name.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unsupported log level: {level_name}")

    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))

    # force=True closes whatever handlers an earlier call installed.
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)
    logger.debug(
        "Logging at %s to %s",
        level_name.upper(),
        log_file or "stderr",
    )


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        app_config = parse_app_config(args.config)

        # CLI overrides config
        log_level = args.log_level or app_config.logging.level
        log_file = args.log_file or app_config.logging.file
        configure_logging(log_level, log_file)

        config = RunConfig(
            feeds_file=app_config.feeds_file,
            cache_file=app_config.cache_file,
            output_dir=app_config.output_dir,
            max_days=app_config.max_days,
            cname=app_config.cname,
            skip_fetch=args.skip_fetch,
            concurrency=app_config.http.concurrency,
            timeout=(app_config.http.connect_timeout, app_config.http.read_timeout),
            user_agent=app_config.http.user_agent,
            database_enabled=app_config.database.enabled,
            database_connection_string=app_config.database.connection_string,
        )

        config_dict = dataclasses.asdict(config)
        if config_dict.get("database_connection_string"):
            config_dict["database_connection_string"] = "***MASKED***"
        logger.debug("Active Configuration:\n%s", pprint.pformat(config_dict))

        result = execute(config)
    except ValueError as exc:
        parser.error(str(exc))
    except (RuntimeError, OSError) as exc:
        logger.error("%s", exc)
        return 1
    except Exception:  # noqa: BLE001
        logger.exception("Unexpected error during execution.")
        return 1

    logger.info("Built %s successfully", result.output_path)
    return 0
