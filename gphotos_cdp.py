"""Command-line entry point for gphotos-cdp."""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
import uuid
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from gphotos_browser.errors import GalleryError, RunCancelledError
from gphotos_browser.models import DEFAULT_START_URL, UNBOUNDED, Direction, HarvestResult, RunConfig
from gphotos_workflow.harvest import GalleryHarvest

__version__ = "0.1.0"

console = Console(stderr=True)
log = logging.getLogger("gphotos_cdp")

app = typer.Typer(
    name="gphotos-cdp",
    help="Download every item of a Google Photos library through a remote-controlled Chromium.",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)


def setup_logging(verbose: int) -> None:
    logging.basicConfig(
        level="DEBUG" if verbose >= 1 else "INFO",
        format="%(message)s",
        datefmt="[%X]",
        handlers=[
            RichHandler(
                console=console,
                rich_tracebacks=True,
                show_path=False,
            )
        ],
        force=True,
    )


async def run_harvest(run_config: RunConfig) -> HarvestResult:
    cancel_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, cancel_event.set)
        except (NotImplementedError, RuntimeError):
            # Windows event loops have no signal handler support.
            pass
    try:
        return await GalleryHarvest(cancel_event=cancel_event).run(run_config)
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.remove_signal_handler(sig)
            except (NotImplementedError, RuntimeError):
                pass


@app.command()
def main(
    count: int = typer.Option(
        UNBOUNDED,
        "--count",
        "-n",
        envvar="GPHOTOS_CDP_COUNT",
        help="Items to download after the first one. 0 does nothing, -1 downloads until the gallery ends.",
    ),
    direction: Direction = typer.Option(
        Direction.LEFT, "--direction", envvar="GPHOTOS_CDP_DIRECTION", help="Gallery navigation direction."
    ),
    dev: bool = typer.Option(
        False,
        "--dev",
        envvar="GPHOTOS_CDP_DEV",
        help="Reuse the same session dir (<tmp>/gphotos-cdp) so login survives between runs.",
    ),
    dldir: Optional[str] = typer.Option(
        None,
        "--dldir",
        envvar="GPHOTOS_CDP_DLDIR",
        help="Where to write the downloads. Defaults to $HOME/Downloads/gphotos-cdp.",
    ),
    profile_dir: Optional[str] = typer.Option(
        None, "--profile-dir", envvar="GPHOTOS_CDP_PROFILE_DIR", help="Explicit browser profile directory."
    ),
    holding_dir: Optional[str] = typer.Option(
        None, "--holding-dir", envvar="GPHOTOS_CDP_HOLDING_DIR", help="Where completed items are moved. Defaults to the download dir."
    ),
    start_url: str = typer.Option(DEFAULT_START_URL, "--start-url", envvar="GPHOTOS_CDP_START_URL"),
    headless: bool = typer.Option(False, "--headless", help="Run Chromium without a window."),
    tick: float = typer.Option(0.5, "--tick", help="Seconds between download directory polls."),
    start_timeout: float = typer.Option(5.0, "--start-timeout", help="Seconds to wait for a download to start."),
    end_timeout: float = typer.Option(30.0, "--end-timeout", help="Seconds to wait for a download to finish."),
    retries: int = typer.Option(1, "--retries", help="Retries for an item whose download did not start or finish."),
    events_db: Optional[str] = typer.Option(None, "--events-db", envvar="GPHOTOS_CDP_EVENTS_DB"),
    verbose: int = typer.Option(0, "--verbose", "-v", count=True, help="Enable debug logging."),
    version: bool = typer.Option(False, "--version", help="Show version and exit.", is_eager=True),
) -> None:
    """Download gallery items one at a time."""
    if version:
        console.print(f"gphotos-cdp {__version__}")
        raise typer.Exit()

    setup_logging(verbose)
    run_config = RunConfig(
        run_id=uuid.uuid4().hex,
        start_url=start_url,
        count=count,
        direction=direction,
        reuse_session=dev,
        download_dir=dldir,
        profile_dir=profile_dir,
        holding_dir=holding_dir,
        events_db=events_db,
        headless=headless,
        tick_interval=tick,
        start_timeout=start_timeout,
        end_timeout=end_timeout,
        download_retries=retries,
    )

    try:
        result = asyncio.run(run_harvest(run_config.validate()))
    except (RunCancelledError, KeyboardInterrupt):
        log.warning("Cancelled by operator")
        raise typer.Exit(code=130)
    except GalleryError as e:
        log.error("%s: %s", type(e).__name__, e)
        log.debug("Full traceback:", exc_info=True)
        raise typer.Exit(code=1)

    log.info("Downloaded %d item(s), stopped on %s", result.count, result.stop_reason)
    typer.echo("OK")


def run() -> None:
    try:
        app()
    except Exception as e:
        log.error("Unexpected error: %s", e, exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    run()
