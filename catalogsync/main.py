"""Main entry point for catalogsync."""

import argparse
import logging
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

from . import __version__
from .settings import ConfigError, Settings, build_settings, load_config
from .status.classifier import format_date, format_version
from .status.service import StatusService
from .store.cache import FreshnessCache
from .store.catalog import CatalogError, CatalogStore
from .store.output import ReportGenerator
from .store.versions import VersionIndex
from .sync.models import EXIT_FATAL, EXIT_OK, Outcome
from .sync.runner import BatchSyncRunner
from .sync.versions import VersionSyncRunner

console = Console()
logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
    )


def parse_sync_target(target: str | None) -> tuple[int | None, str | None]:
    """Split the positional sync argument into (limit, entry).

    A number is a limit; anything else names one entry by file name or slug.
    """
    if not target:
        return None, None
    try:
        return int(target), None
    except ValueError:
        return None, target


def print_token_banner(settings: Settings) -> None:
    if settings.authenticated:
        console.print("[green]✓[/green] GitHub token detected - using authenticated requests (5000/hour)")
    else:
        console.print("[yellow]![/yellow] No GitHub token - using unauthenticated requests (60/hour)")
        console.print("  Set GITHUB_TOKEN for higher rate limits")
    console.print(f"  Parallelism: {settings.effective_parallelism}\n")


def _runner_options(settings: Settings, args: argparse.Namespace) -> dict:
    return {
        "client": settings.build_client(),
        "parallelism": settings.effective_parallelism,
        "rate_limit_threshold": settings.rate_limit_threshold,
        "output": console,
        "show_progress": not args.no_progress,
    }


def run_sync(settings: Settings, args: argparse.Namespace) -> int:
    """Refresh entry metadata and write the summary report."""
    limit, only = parse_sync_target(args.target)
    if limit is None:
        limit = settings.limit

    print_token_banner(settings)
    runner = BatchSyncRunner(**_runner_options(settings, args))
    report = runner.run(settings.catalog_path, limit=limit, only=only)

    generator = ReportGenerator(console)
    generator.print_report(report)
    generator.write_summary(report, settings.report_path)

    if only and any(item.outcome == Outcome.FAILED for item in report.items):
        console.print(f"[red]Error:[/red] Failed to update {only}")
        return EXIT_FATAL
    return report.exit_code


def run_versions(settings: Settings, args: argparse.Namespace) -> int:
    """Refresh the versions registry."""
    limit = args.limit if args.limit is not None else settings.limit

    print_token_banner(settings)
    runner = VersionSyncRunner(**_runner_options(settings, args))
    report = runner.run(settings.catalog_path, settings.versions_path, limit=limit)

    ReportGenerator(console).print_versions_report(report)
    if report.written:
        console.print(f"[green]✓[/green] Wrote {settings.versions_path}")
    return report.exit_code


def run_status(settings: Settings, args: argparse.Namespace) -> int:
    """Print the maintenance status of one entry."""
    store = CatalogStore(settings.catalog_path)
    entry = store.find(args.slug)
    if entry is None:
        raise CatalogError(f"Entry not found: {args.slug}")

    service = StatusService(settings.build_client(), cache=FreshnessCache(ttl=settings.cache_ttl))
    view = service.get_status(entry)
    index = VersionIndex(settings.versions_path, cache=FreshnessCache(ttl=settings.list_cache_ttl))

    console.print(f"[bold]{entry.name}[/bold] ({entry.slug})")
    console.print(f"  Status:       {view.status.value}")
    console.print(f"  {view.message}")
    if view.version:
        console.print(f"  Version:      {format_version(view.version)}")
    console.print(f"  Last commit:  {format_date(view.last_commit_at)}")
    release = view.last_release_at or index.last_release_date(entry)
    console.print(f"  Last release: {format_date(release)}")
    if view.error:
        console.print(f"  [red]{view.error}[/red]")
    return EXIT_OK


def run_serve(settings: Settings, args: argparse.Namespace) -> int:
    import uvicorn

    from .api.server import create_app

    uvicorn.run(create_app(settings), host=args.host, port=args.port)
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="catalogsync - keep catalog entries in sync with their GitHub/GitLab repositories"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--config", "-c",
        default=None,
        help="Path to configuration file (default: $CATALOGSYNC_CONFIG or config/config.yaml)",
    )
    parser.add_argument("--catalog", help="Catalog directory with JSON entries")
    parser.add_argument("--parallelism", "-j", type=int, help="Concurrent upstream requests")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    parser.add_argument("--no-progress", action="store_true", help="Disable progress output")

    commands = parser.add_subparsers(dest="command", required=True)

    sync = commands.add_parser("sync", help="Refresh repository metadata in catalog entries")
    sync.add_argument("target", nargs="?", help="Limit (number), entry file name or slug")
    sync.add_argument("--report", type=Path, help="Markdown summary path")
    sync.set_defaults(handler=run_sync)

    versions = commands.add_parser("versions", help="Refresh versions.json")
    versions.add_argument("limit", nargs="?", type=int, help="Only the first N repositories")
    versions.set_defaults(handler=run_versions)

    status = commands.add_parser("status", help="Show the maintenance status of one entry")
    status.add_argument("slug", help="Entry slug or file name")
    status.set_defaults(handler=run_status)

    serve = commands.add_parser("serve", help="Run the REST API")
    serve.add_argument("--host", default="0.0.0.0", help="Host to bind")
    serve.add_argument("--port", "-p", type=int, default=8000, help="Port to bind")
    serve.set_defaults(handler=run_serve)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    try:
        settings = build_settings(load_config(args.config))
        if args.catalog:
            settings.catalog_path = Path(args.catalog)
        if args.parallelism is not None:
            if args.parallelism < 1:
                raise ConfigError("--parallelism must be at least 1")
            settings.parallelism = args.parallelism
        if getattr(args, "report", None):
            settings.report_path = args.report
        return args.handler(settings, args)
    except (ConfigError, CatalogError) as e:
        console.print(f"[red]Error:[/red] {e}")
        return EXIT_FATAL


if __name__ == "__main__":
    raise SystemExit(main())
