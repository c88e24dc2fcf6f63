import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from hostreport import __version__
from hostreport.config import Settings, load_settings
from hostreport.errors import ConfigError
from hostreport.logging_setup import close_logging, configure_logging
from hostreport.reports import WRITERS, write_reports
from hostreport.services.collector import collect

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_CONFIG_ERROR = 2


def _parse_formats(raw: str) -> List[str]:
    formats = [item.strip().lower() for item in raw.split(",") if item.strip()]
    unknown = [fmt for fmt in formats if fmt not in WRITERS]
    if unknown or not formats:
        raise argparse.ArgumentTypeError(
            f"unknown format(s): {', '.join(unknown) or raw!r}; "
            f"choose from {', '.join(WRITERS)}"
        )
    return formats


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="hostreport",
        description=(
            "Probe the configured hosts for reachability, OS/uptime, disk space and "
            "service state, and write CSV/JSON/HTML reports."
        ),
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        help=(
            "YAML configuration file. Defaults to $HOSTREPORT_CONFIG, then to the "
            "HOSTREPORT_* environment variables."
        ),
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        help="Override the output directory from the configuration.",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        help="Override the run log file from the configuration.",
    )
    parser.add_argument(
        "--format",
        dest="formats",
        type=_parse_formats,
        default=list(WRITERS),
        help="Comma-separated report formats (default: csv,json,html).",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log debug output, including individual service lookup failures.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def settings_from_args(args: argparse.Namespace) -> Settings:
    settings = load_settings(args.config)

    overrides = {}
    if args.output_dir is not None:
        overrides["output_dir"] = args.output_dir
    if args.log_file is not None:
        overrides["log_file"] = args.log_file
    if overrides:
        settings = settings.model_copy(update=overrides)
    return settings


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    # Configuration and output location must be usable before any host is probed
    try:
        settings = settings_from_args(args)
    except ConfigError as exc:
        print(f"[ERROR] {exc}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    try:
        settings.output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        print(
            f"[ERROR] Cannot create output directory {settings.output_dir}: {exc}",
            file=sys.stderr,
        )
        return EXIT_CONFIG_ERROR

    try:
        handlers = configure_logging(
            settings.log_file,
            level=logging.DEBUG if args.verbose else logging.INFO,
        )
    except OSError as exc:
        print(f"[ERROR] Cannot open log file {settings.log_file}: {exc}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    try:
        logger.info("Run started: %s", settings.report_title)
        report = collect(settings)
        paths = write_reports(report, settings.output_dir, args.formats)
        logger.info(
            "Run completed: %d host(s), %d failed; reports: %s",
            len(report.hosts),
            report.failed_hosts,
            ", ".join(str(path) for path in paths.values()),
        )
    finally:
        close_logging(handlers)

    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
