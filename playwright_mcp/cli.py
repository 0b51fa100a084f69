from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .config import REPORT_FORMATS, ErrorConfigStore
from .errors import ConfigError


def open_store(args: argparse.Namespace) -> ErrorConfigStore:
    return ErrorConfigStore(project_root=Path(args.project_root))


def command_enable(args: argparse.Namespace) -> int:
    open_store(args).enable()
    print("Error capture enabled")
    return 0


def command_disable(args: argparse.Namespace) -> int:
    open_store(args).disable()
    print("Error capture disabled")
    return 0


def command_status(args: argparse.Namespace) -> int:
    store = open_store(args)
    settings = store.get_config()
    print("Error Capture Status:")
    print(f"   Enabled: {'Yes' if settings.enabled else 'No'}")
    print(f"   Output Directory: {store.get_output_dir()}")
    print(f"   Formats: {', '.join(settings.formats) or 'None'}")
    return 0


def command_formats(args: argparse.Namespace) -> int:
    """Set report formats from names, or the keywords ``all`` / ``none``."""
    store = open_store(args)
    choice: List[str] = [item.lower() for item in args.formats]
    if choice[0] in ("all", "none"):
        settings = store.set_formats(choice[0])
        if settings.formats:
            print(f"All report formats enabled ({', '.join(settings.formats)})")
        else:
            print("All report formats disabled")
        return 0

    settings = store.set_formats(choice)
    print(f"Report formats set to: {', '.join(settings.formats)}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="playwright-mcp-error-capture",
        description="Manage error capture settings in playwright-mcp.config.json.",
    )
    parser.add_argument(
        "--project-root",
        default=".",
        help="Directory holding playwright-mcp.config.json (default: current directory).",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    enable_parser = subparsers.add_parser("enable", help="Enable error capture.")
    enable_parser.set_defaults(func=command_enable)

    disable_parser = subparsers.add_parser("disable", help="Disable error capture.")
    disable_parser.set_defaults(func=command_disable)

    status_parser = subparsers.add_parser("status", help="Show current error capture status.")
    status_parser.set_defaults(func=command_status)

    formats_parser = subparsers.add_parser(
        "formats",
        help=f"Set report formats ({', '.join(REPORT_FORMATS)}, all, none).",
    )
    formats_parser.add_argument("formats", nargs="+", help="Format names, or 'all' / 'none'.")
    formats_parser.set_defaults(func=command_formats)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        return args.func(args)
    except ConfigError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
