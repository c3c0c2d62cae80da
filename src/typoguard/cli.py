"""CLI entry point for TypoGuard."""

from __future__ import annotations

import argparse
import logging
import sys

from typoguard import __version__
from typoguard.config import load_config
from typoguard.errors import TypoguardError
from typoguard.models import ImposterStatus
from typoguard.output import console, render_imposters, render_scan_summary
from typoguard.service import ImposterService


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="typoguard",
        description="TypoGuard - brand impersonation detection",
    )
    parser.add_argument(
        "-c", "--config",
        default=None,
        help="Path to config YAML file (default: config/default.yaml)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Show debug logging",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable colored output",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    scan = sub.add_parser("scan", help="Search for a brand and record likely impostors")
    scan.add_argument("brand_id", metavar="BRAND_ID")
    scan.add_argument("-k", "--keyword", default=None, help="Search query (default: brand name)")
    scan.add_argument("-g", "--geo", default=None, help="Search region code, e.g. GB")
    scan.add_argument("-p", "--pages", type=int, default=None, help="Result pages to fetch")

    listing = sub.add_parser("imposters", help="List tracked impostors for a brand")
    listing.add_argument("brand_id", metavar="BRAND_ID")
    listing.add_argument(
        "-s", "--status",
        choices=[s.value for s in ImposterStatus],
        default=None,
        help="Only show impostors in this status",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """Parse CLI arguments and run the requested command."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_config(args.config)
    except Exception as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)

    if args.no_color:
        console.no_color = True

    service = ImposterService.from_config(config)

    try:
        if args.command == "scan":
            summary = service.trigger_scan(
                args.brand_id,
                keyword=args.keyword,
                geolocation=args.geo,
                page_count=args.pages,
                on_event=_print_page_event,
            )
            render_scan_summary(summary)
        elif args.command == "imposters":
            render_imposters(service.list_imposters(args.brand_id, args.status))
    except (TypoguardError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


def _print_page_event(event_type: str, data: dict) -> None:
    if event_type != "page":
        return
    if data.get("ok"):
        console.print(f"[dim]page {data['page']}: {data.get('results', 0)} results[/dim]")
    else:
        console.print(f"[yellow]page {data['page']}: {data.get('error')}[/yellow]")


if __name__ == "__main__":
    main()
