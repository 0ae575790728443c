"""Command-line interface for the world_news reader."""

from __future__ import annotations

import argparse
import dataclasses
import logging
import os
import pprint
import sys
from pathlib import Path
from typing import List, Optional

from .categories import NewsCategory
from .config import AppConfig, parse_app_config, parse_env_config
from .engine import RetryPolicy
from .errors import WorldNewsError
from .runner import RunConfig, execute, list_pins

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Create the CLI argument parser."""
    parser = argparse.ArgumentParser(
        description="Browse and pin news articles from the search API."
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to the main configuration XML file.",
    )
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

    subparsers = parser.add_subparsers(dest="command")

    feed = subparsers.add_parser("feed", help="Load articles for a category or query.")
    target = feed.add_mutually_exclusive_group()
    target.add_argument(
        "--category",
        help="Category label, e.g. 경제 or IT/과학.",
    )
    target.add_argument("--query", help="Free-form search query.")
    feed.add_argument(
        "--pages",
        type=int,
        default=1,
        help="Number of pages to load (default: 1).",
    )
    feed.add_argument(
        "--pin",
        type=int,
        action="append",
        default=[],
        metavar="N",
        help="Pin the article at 1-based position N. May be repeated.",
    )
    feed.add_argument("--format", choices=("json", "text"), default="json")

    pins = subparsers.add_parser("pins", help="List pinned articles.")
    pins.add_argument("--unpin", metavar="LINK", help="Unpin the article with LINK.")
    pins.add_argument("--format", choices=("json", "text"), default="json")

    return parser


def configure_logging(level_name: str, log_file: Optional[str] = None) -> None:
    """Initialise logging according to options."""
    log_level = getattr(logging, level_name.upper(), None)
    if not isinstance(log_level, int):
        raise ValueError(f"Unsupported log level: {level_name}")

    formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    root_logger.setLevel(log_level)

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    root_logger.addHandler(stream_handler)

    if log_file:
        log_path = Path(log_file)
        if log_path.parent and not log_path.parent.exists():
            log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)
        logger.debug(
            "Logger initialised with level %s and file output to %s",
            level_name.upper(),
            log_path,
        )
    else:
        logger.debug(
            "Logger initialised with console output at level %s", level_name.upper()
        )


def _resolve_query(args: argparse.Namespace, app_config: AppConfig) -> str:
    if args.query:
        return args.query
    if args.category:
        return NewsCategory.from_label(args.category).query
    return app_config.default_query


def build_run_config(args: argparse.Namespace, app_config: AppConfig) -> RunConfig:
    retry = app_config.credential_retry
    return RunConfig(
        query=_resolve_query(args, app_config),
        pages=args.pages,
        page_size=app_config.page_size,
        pin_positions=list(args.pin),
        output_format=args.format,
        endpoint=app_config.api.endpoint,
        client_id_header=app_config.api.client_id_header,
        client_secret_header=app_config.api.client_secret_header,
        request_timeout=app_config.api.timeout,
        display_timezone=app_config.display_timezone,
        retry_policy=RetryPolicy(
            initial_delay=retry.initial_delay,
            backoff=retry.backoff,
            max_delay=retry.max_delay,
            max_attempts=retry.max_attempts,
        ),
        database_connection_string=app_config.database.connection_string,
    )


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    argv = list(sys.argv[1:] if argv is None else argv)
    args = parser.parse_args(argv)
    if args.command is None:
        args = parser.parse_args(argv + ["feed"])
    command = args.command

    try:
        app_config = parse_app_config(args.config) if args.config else AppConfig()

        if app_config.env_file:
            env_vars = parse_env_config(app_config.env_file)
            os.environ.update(env_vars)

        # CLI overrides config
        log_level = args.log_level or app_config.logging.level
        log_file = args.log_file or app_config.logging.file

        configure_logging(log_level, log_file)

        if command == "pins":
            result = list_pins(
                app_config.database.connection_string,
                output_format=args.format,
                unpin_link=args.unpin,
            )
        else:
            config = build_run_config(args, app_config)
            config_dict = dataclasses.asdict(config)
            if "@" in config_dict.get("database_connection_string", ""):
                config_dict["database_connection_string"] = "***MASKED***"
            logger.info("Active Configuration:\n%s", pprint.pformat(config_dict))
            result = execute(config)
    except ValueError as exc:
        parser.error(str(exc))
    except (WorldNewsError, RuntimeError, FileNotFoundError) as exc:
        logger.error("%s", exc)
        return 1
    except Exception:  # noqa: BLE001
        logger.exception("Unexpected error during execution.")
        return 1

    print(result.output_text)
    return 1 if result.error else 0
