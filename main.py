#!/usr/bin/env python3
"""
MangaDex Client - command line entry point
==========================================

Usage:
    python main.py details <manga>                      # Manga details
    python main.py chapters <manga> --count 10          # Latest chapters
    python main.py chapters <manga> --start ID --end ID # Chapter id range
    python main.py pages <chapter-id> [--data-saver]    # Page image URLs
    python main.py download <chapter-id> --out DIR      # Download pages

Credentials: client id/grant/username from --config YAML or MANGADEX_* env;
client secret and password from MANGADEX_CLIENT_SECRET / MANGADEX_PASSWORD.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from api import MangaDexClient
from core.errors import ClientError, ErrorHandler
from infra.config import ConfigManager
from infra.logging import configure_logging, get_logger

console = Console()
logger = get_logger("cli")
errors = ErrorHandler()


def report_error(error: ClientError, context: str) -> int:
    errors.handle(error, context)
    console.print(f"[bold red]Error:[/bold red] {error.message}")
    return 1


def cmd_details(client: MangaDexClient, args: argparse.Namespace) -> int:
    result = client.fetch_manga_details(args.manga)
    if not result.ok:
        return report_error(result.error, "details")

    manga = result.value
    body = [
        f"[bold cyan]{manga.title}[/bold cyan]",
        f"[dim]{manga.source_url}[/dim]",
        f"Authors: {', '.join(manga.authors) or '-'}",
        f"Artists: {', '.join(manga.artists) or '-'}",
        f"Genres: {', '.join(manga.genres) or '-'}",
        f"Status: {manga.status or '-'}   Year: {manga.year or '-'}",
    ]
    if manga.cover_image_url:
        body.append(f"Cover: {manga.cover_image_url}")
    if manga.description:
        body.append("")
        body.append(manga.description)
    console.print(Panel("\n".join(body), title=manga.source_id, border_style="blue"))
    return 0


def cmd_chapters(client: MangaDexClient, args: argparse.Namespace) -> int:
    if args.start or args.end:
        collection = client.fetch_chapters_by_range(
            args.manga, languages=args.lang, start_chapter_id=args.start, end_chapter_id=args.end
        )
    else:
        collection = client.fetch_chapters_by_recency(args.manga, languages=args.lang, count=args.count)

    table = Table(title=f"Chapters ({len(collection)})")
    table.add_column("Vol", justify="right")
    table.add_column("Ch", justify="right")
    table.add_column("Lang")
    table.add_column("Title")
    table.add_column("Id", style="dim")
    for chapter in collection:
        table.add_row(
            chapter.volume or "-", chapter.chapter_number, chapter.language or "-",
            chapter.title or "", chapter.source_id,
        )
    console.print(table)

    if collection.error is not None:
        console.print("[yellow]Result is partial: collection stopped early[/yellow]")
        return report_error(collection.error, "chapters")
    return 0


def cmd_pages(client: MangaDexClient, args: argparse.Namespace) -> int:
    result = client.fetch_chapter_page_urls(args.chapter, data_saver=args.data_saver, force_port_443=args.port_443)
    if not result.ok:
        return report_error(result.error, "pages")
    for url in result.value:
        console.print(url)
    return 0


def cmd_download(client: MangaDexClient, args: argparse.Namespace) -> int:
    urls = client.fetch_chapter_page_urls(args.chapter, data_saver=args.data_saver, force_port_443=args.port_443)
    if not urls.ok:
        return report_error(urls.error, "download")

    out_dir = Path(args.out)
    out_dir.mkdir(parents=True, exist_ok=True)
    failures = 0
    for index, url in enumerate(urls.value, start=1):
        image = client.download_page_image(url)
        if not image.ok:
            failures += 1
            errors.handle(image.error, f"page {index}")
            continue
        suffix = Path(url).suffix or ".img"
        target = out_dir / f"{index:03d}{suffix}"
        target.write_bytes(image.value)
        console.print(f"[green]Saved[/green] {target}")

    if failures:
        console.print(f"[yellow]{failures} of {len(urls.value)} pages failed[/yellow]")
        return 1
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Authenticated, rate-limited MangaDex client",
    )
    parser.add_argument("--config", help="Path to YAML config file")
    parser.add_argument("--log-level", default="INFO", help="Logging level (default: INFO)")
    parser.add_argument("--log-dir", help="Also write JSON logs to this directory")

    sub = parser.add_subparsers(dest="command", required=True)

    details = sub.add_parser("details", help="Show manga details")
    details.add_argument("manga", help="Manga UUID or mangadex.org URL")
    details.set_defaults(handler=cmd_details)

    chapters = sub.add_parser("chapters", help="List chapters")
    chapters.add_argument("manga", help="Manga UUID or mangadex.org URL")
    chapters.add_argument("--lang", action="append", help="Translated language code (repeatable)")
    chapters.add_argument("--count", type=int, help="Most recent N chapters")
    chapters.add_argument("--start", help="First chapter id of the range (inclusive)")
    chapters.add_argument("--end", help="Last chapter id of the range (inclusive)")
    chapters.set_defaults(handler=cmd_chapters)

    for name, handler, help_text in (
        ("pages", cmd_pages, "Print page image URLs"),
        ("download", cmd_download, "Download page images"),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("chapter", help="Chapter UUID")
        cmd.add_argument("--data-saver", action="store_true", help="Use compressed images")
        cmd.add_argument("--port-443", action="store_true", help="Only use servers on port 443")
        if name == "download":
            cmd.add_argument("--out", default=".", help="Output directory")
        cmd.set_defaults(handler=handler)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    configure_logging(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        log_dir=args.log_dir,
        file=args.log_dir is not None,
        rich_console=Console(stderr=True),
    )

    try:
        config = ConfigManager(args.config).client_config()
        with MangaDexClient(config) as client:
            return args.handler(client, args)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        return 130


if __name__ == "__main__":
    sys.exit(main())
