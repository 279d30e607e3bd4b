"""Command line: `reply-renderer run` sends the proactive schedules due now."""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from reply_renderer.runner import run

DEFAULT_CONFIG = "config/config.yaml"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def _setup_logging(level: str, log_dir: Path) -> None:
    """Log to stderr and <log_dir>/reply-renderer.log; existing root handlers are kept."""
    root = logging.getLogger()
    root.setLevel(level)
    if root.handlers:
        return
    log_dir.mkdir(parents=True, exist_ok=True)
    formatter = logging.Formatter(LOG_FORMAT)
    for handler in (
        logging.StreamHandler(sys.stderr),
        logging.FileHandler(log_dir / "reply-renderer.log", encoding="utf-8"),
    ):
        handler.setFormatter(formatter)
        root.addHandler(handler)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="reply-renderer",
        description="Render content for configured users and deliver it to their channels",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Root log level (default: INFO)",
    )
    parser.add_argument("--log-dir", type=Path, default=Path("logs"), help="Directory for the log file")
    sub = parser.add_subparsers(dest="command", required=True)
    run_parser = sub.add_parser("run", help="Send every schedule whose cron fires this minute")
    run_parser.add_argument("--config", default=DEFAULT_CONFIG, help=f"YAML config (default: {DEFAULT_CONFIG})")
    run_parser.add_argument("--schedule", metavar="ID", help="Send this schedule now, ignoring its cron")
    run_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Render and log each message; no channel is contacted",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    load_dotenv()
    args = build_parser().parse_args(argv)
    _setup_logging(args.log_level, args.log_dir)

    if args.command == "run":
        try:
            failed = run(args.config, args.schedule, args.dry_run)
        except (FileNotFoundError, ValueError) as e:
            logging.error("%s", e)
            sys.exit(1)
        if failed:
            logging.error("%d job(s) failed", failed)
            sys.exit(2)


if __name__ == "__main__":
    main()
