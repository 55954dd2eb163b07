"""Top-level run: session setup, gallery load, item loop and teardown."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from gphotos_browser.downloads import DownloadWatcher
from gphotos_browser.errors import RunCancelledError
from gphotos_browser.event_logger import BrowserEventLogger
from gphotos_browser.keys import KeyDispatcher
from gphotos_browser.models import HarvestResult, RunConfig
from gphotos_browser.page_actions import BrowserCapability
from gphotos_browser.session import BrowserSessionManager
from gphotos_browser.storage import FileRelocator
from gphotos_browser.timing import pause

from .iteration import IterationDriver


class GalleryHarvest:
    """Run one gallery download session from start to shutdown."""

    def __init__(
        self,
        *,
        session_manager: Optional[BrowserSessionManager] = None,
        event_logger: Optional[BrowserEventLogger] = None,
        cancel_event: Optional[asyncio.Event] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.logger = logger or logging.getLogger(__name__)
        self.session_manager = session_manager or BrowserSessionManager()
        self.event_logger = event_logger
        self.cancel_event = cancel_event

    async def run(self, run_config: RunConfig) -> HarvestResult:
        run_config.validate()
        if run_config.count == 0:
            self.logger.info("Item count is 0, not starting the browser")
            return HarvestResult()

        event_logger = self.event_logger or BrowserEventLogger(run_config.resolved_events_db())
        run_state = None
        run_status = "error"
        run_error: Optional[str] = None
        driver: Optional[IterationDriver] = None
        try:
            run_state = await self.session_manager.start(run_config)
            self.session_manager.clean_download_dir(run_state)
            event_logger.start()
            event_logger.init_run(
                run_id=run_state.run_id,
                start_url=run_config.start_url,
                download_dir=run_state.download_dir,
            )

            capability = BrowserCapability(self.session_manager, run_state, event_logger)
            await self._load_gallery(capability, run_config, run_state.download_dir)

            driver = IterationDriver(
                capability=capability,
                keys=KeyDispatcher(capability),
                watcher=DownloadWatcher(
                    partial_suffix=run_config.partial_suffix,
                    cancel_event=self.cancel_event,
                ),
                relocator=FileRelocator(run_config.holding_dir),
                download_dir=run_state.download_dir,
                run_config=run_config,
                event_logger=event_logger,
                cancel_event=self.cancel_event,
            )
            result = await driver.run(run_config.direction, run_config.count)
            run_status = "success"
            return result
        except RunCancelledError as e:
            run_status = "cancelled"
            run_error = str(e)
            raise
        except Exception as e:
            run_error = f"{type(e).__name__}: {e}"
            self.logger.debug("Harvest failed for url=%s", run_config.start_url, exc_info=True)
            raise
        finally:
            if run_state is not None:
                event_logger.complete_run(
                    run_id=run_state.run_id,
                    status=run_status,
                    items=driver.result.count if driver is not None else 0,
                    error=run_error,
                )
            event_logger.close()
            await self.session_manager.shutdown(run_state)

    async def _load_gallery(self, capability: Any, run_config: RunConfig, download_dir: str) -> None:
        """Open the gallery once for login, then again with downloads enabled."""
        self.logger.info("pre-navigate")
        await capability.navigate(run_config.start_url)
        await pause(run_config.login_wait, self.cancel_event)
        self.logger.info("post-navigate")
        body = await capability.outer_html("html>body")
        self.logger.info("Source is %d bytes", len(body))

        await capability.set_download_behavior("allow", download_dir)
        await capability.navigate(run_config.start_url)
        await pause(run_config.load_wait, self.cancel_event)
        await capability.wait_ready("body")
        self.logger.info("body is ready")
