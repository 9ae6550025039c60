"""Command-line interface for the AniList/MAL list reconciler."""

import asyncio
import json
import logging
import signal
import sys
from typing import Optional

import click

from .config import Settings, load_settings
from .constants import DEFAULT_WEB_UI_PORT, MediaKind, Platform
from .errors import InvalidFormat, SyncAlreadyRunning
from .models import SyncReport
from .sync_service import SyncSession

logger = logging.getLogger(__name__)

SOURCES = [p.value for p in Platform]
TARGETS = [Platform.MAL.value, Platform.ANILIST.value]
KINDS = [k.value for k in MediaKind]
LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def setup_logging(level: str):
    """Configure logging for the application."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
        force=True,
    )


def _show_config_error(missing: list[str], config_path: str, exit_code: Optional[int] = 1):
    """Display configuration error message and optionally exit."""
    logger.error("=" * 60)
    logger.error("CONFIGURATION ERROR: Missing or invalid settings")
    logger.error("=" * 60)
    logger.error("Missing/invalid values:")
    for name in missing:
        logger.error(f"  - {name}")
    logger.error("")
    logger.error("Required steps:")
    logger.error(f"  1. Set your usernames in {config_path}")
    logger.error("  2. Put access tokens in the config or in ANILIST_ACCESS_TOKEN / MAL_ACCESS_TOKEN")
    logger.error("=" * 60)
    click.echo(f"Error: missing settings: {', '.join(missing)}", err=True)
    if exit_code is not None:
        sys.exit(exit_code)


def _prepare(obj: dict, source: Optional[str], target: Optional[str], write: bool) -> tuple[Settings, Platform, Platform]:
    """Load settings, apply logging and check credentials for a source/target pair."""
    try:
        settings = load_settings(obj.get("config_path"))
    except Exception as e:
        click.echo(f"Error: could not load configuration: {e}", err=True)
        sys.exit(1)

    setup_logging(obj.get("log_level") or settings.log_level)

    source_platform = Platform(source) if source else settings.source
    target_platform = Platform(target) if target else settings.target
    if source_platform == target_platform:
        click.echo("Error: source and target must differ", err=True)
        sys.exit(2)

    missing = settings.missing_credentials(source_platform, target_platform, write=write)
    if missing:
        _show_config_error(missing, str(settings.config_path))
    return settings, source_platform, target_platform


def _build_session(obj: dict, settings: Settings) -> SyncSession:
    factory = obj.get("session_factory") or SyncSession.from_settings
    return factory(settings)


async def _run_interruptible(session: SyncSession, **kwargs) -> SyncReport:
    """Run the pipeline; Ctrl+C asks the sync driver to stop after the current entry."""
    loop = asyncio.get_running_loop()

    def on_interrupt():
        if session.cancel():
            click.echo("\nCancelling after the current entry...", err=True)
        else:
            click.echo("\nNothing to cancel yet; waiting for the current step", err=True)

    try:
        loop.add_signal_handler(signal.SIGINT, on_interrupt)
        installed = True
    except (NotImplementedError, RuntimeError, ValueError):
        # Windows event loops, or not running in the main thread
        installed = False

    try:
        return await session.run(**kwargs)
    finally:
        if installed:
            loop.remove_signal_handler(signal.SIGINT)


def _execute(session: SyncSession, **kwargs) -> SyncReport:
    try:
        return asyncio.run(_run_interruptible(session, **kwargs))
    except (InvalidFormat, SyncAlreadyRunning, ValueError) as e:
        logger.error(f"{e}")
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except Exception as e:
        logger.exception("Sync failed with error")
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    finally:
        session.close()


def print_report(report: SyncReport):
    """Print comparison and sync results to console."""
    if report.dry_run:
        click.echo("\n=== DRY RUN - No changes were made ===")

    click.echo(f"\n=== Results: {report.source.value} -> {report.target.value} ===")

    for error in report.fetch_errors:
        click.echo(f"Fetch failed for {error.platform.value}: {error.error}")
    if report.skipped_reason:
        click.echo(f"Skipped: {report.skipped_reason}")

    if report.result is not None:
        stats = report.result.stats
        click.echo(f"Source entries: {stats['source_total']}")
        click.echo(f"Target entries: {stats['target_total']}")
        click.echo(f"Matched: {stats['matches']}")
        click.echo(f"Missing on target: {stats['source_only']}")
        click.echo(f"Only on target: {stats['target_only']}")

    if report.outcome is not None:
        click.echo(f"Entries synced: {report.outcome.succeeded}")
        click.echo(f"Entries failed: {report.outcome.failed}")
        if report.outcome.errors:
            click.echo(f"\nErrors ({len(report.outcome.errors)}):")
            for error in report.outcome.errors[:10]:  # Show first 10
                click.echo(f"  - {error.title}: {error.reason}")

    click.echo(f"Success: {report.success}")


def write_differences(report: SyncReport, path: str):
    """Write the comparison result as JSON."""
    result = report.result
    payload = {
        "source": report.source.value,
        "target": report.target.value,
        "stats": result.stats if result else None,
        "source_only": [e.model_dump(mode="json") for e in result.source_only] if result else [],
        "target_only": [e.model_dump(mode="json") for e in result.target_only] if result else [],
        "matches": [
            {"source": p.left.title, "target": p.right.title, "similarity": round(p.similarity, 4)}
            for p in result.intersection
        ] if result else [],
    }
    with open(path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, ensure_ascii=False)
    click.echo(f"\nWrote comparison to {path}")


def pipeline_options(func):
    """Options shared by compare and sync."""
    func = click.option("--threshold", type=click.FloatRange(0.0, 1.0), default=None, help="Title match threshold")(func)
    func = click.option("--kind", type=click.Choice(KINDS), default=None, help="List type")(func)
    func = click.option(
        "--import-file",
        type=click.Path(dir_okay=False),
        default=None,
        help="JSON import file (with --source json)",
    )(func)
    func = click.option("--target", type=click.Choice(TARGETS), default=None, help="Platform to compare against")(func)
    func = click.option("--source", type=click.Choice(SOURCES), default=None, help="Where the entries come from")(func)
    return func


@click.group()
@click.version_option(version="0.1.0")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Path to config.yaml (default: data/config.yaml)",
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS),
    default=None,
    help="Logging level",
)
@click.pass_context
def main(ctx: click.Context, config_path: Optional[str], log_level: Optional[str]):
    """Reconcile anime and manga lists between AniList, MyAnimeList and JSON imports."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["log_level"] = log_level


@main.command()
@pipeline_options
@click.option("--output", type=click.Path(dir_okay=False), default=None, help="Write the differences as JSON")
@click.pass_obj
def compare(obj, source, target, import_file, kind, threshold, output):
    """Compare two lists and report what each side is missing."""
    settings, source_platform, target_platform = _prepare(obj, source, target, write=False)
    if threshold is not None:
        settings.match_threshold = threshold

    session = _build_session(obj, settings)
    report = _execute(
        session,
        source=source_platform,
        target=target_platform,
        kind=MediaKind(kind) if kind else settings.kind,
        usernames=settings.usernames(),
        import_path=import_file,
        dry_run=True,
    )

    print_report(report)
    if output:
        write_differences(report, output)
    sys.exit(0 if not report.fetch_errors and not report.skipped_reason else 1)


@main.command()
@pipeline_options
@click.option(
    "--dry-run",
    is_flag=True,
    help="Compare only; do not push anything",
)
@click.pass_obj
def sync(obj, source, target, import_file, kind, threshold, dry_run):
    """Push the entries the target platform is missing."""
    settings, source_platform, target_platform = _prepare(obj, source, target, write=True)
    if threshold is not None:
        settings.match_threshold = threshold

    session = _build_session(obj, settings)
    report = _execute(
        session,
        source=source_platform,
        target=target_platform,
        kind=MediaKind(kind) if kind else settings.kind,
        usernames=settings.usernames(),
        import_path=import_file,
        dry_run=dry_run or settings.dry_run,
    )

    print_report(report)
    sys.exit(0 if report.success else 1)


@main.command()
@click.option("--host", default="0.0.0.0", help="Web server host")
@click.option("--port", type=int, default=DEFAULT_WEB_UI_PORT, help="Web server port")
@click.pass_obj
def serve(obj, host: str, port: int):
    """Run the status API."""
    import uvicorn

    from .web import create_app

    try:
        settings = load_settings(obj.get("config_path"))
    except Exception as e:
        click.echo(f"Error: could not load configuration: {e}", err=True)
        sys.exit(1)
    setup_logging(obj.get("log_level") or settings.log_level)

    session = _build_session(obj, settings)
    app = create_app(session)
    logger.info(f"Status API listening on http://{host}:{port}")
    try:
        uvicorn.run(app, host=host, port=port, log_level="warning")
    finally:
        session.close()


if __name__ == "__main__":
    main()
