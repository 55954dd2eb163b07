"""The item-by-item download state machine."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from gphotos_browser.downloads import DownloadWatcher
from gphotos_browser.errors import DownloadTimingError, InvalidCountError
from gphotos_browser.event_logger import BrowserEventLogger
from gphotos_browser.keys import KeyDispatcher
from gphotos_browser.models import UNBOUNDED, Direction, HarvestResult, ItemResult, RunConfig
from gphotos_browser.storage import FileRelocator
from gphotos_browser.timing import SleepFunc, check_cancelled, pause


@dataclass
class NavigationCursor:
    """Remaining navigation budget. ``remaining < 0`` means no bound."""

    direction: Direction
    remaining: int

    def step(self) -> bool:
        """Consume one step; return False once the budget is spent."""
        if self.remaining == 0:
            return False
        if self.remaining > 0:
            self.remaining -= 1
        return True


class IterationDriver:
    """Sequence advance, download, wait and relocate for each gallery item.

    Only one download is ever in flight: the relocator empties the download
    directory before the next trigger, which is what lets the watcher treat a
    second entry as a fatal error.
    """

    def __init__(
        self,
        *,
        capability: Any,
        keys: KeyDispatcher,
        watcher: DownloadWatcher,
        relocator: FileRelocator,
        download_dir: str,
        run_config: RunConfig,
        event_logger: Optional[BrowserEventLogger] = None,
        cancel_event: Optional[asyncio.Event] = None,
        sleep: Optional[SleepFunc] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.capability = capability
        self.keys = keys
        self.watcher = watcher
        self.relocator = relocator
        self.download_dir = str(download_dir)
        self.config = run_config
        self.event_logger = event_logger
        self.cancel_event = cancel_event
        self.sleep = sleep
        self.logger = logger or logging.getLogger(__name__)
        self.result = HarvestResult()

    async def run(self, direction: Any, count: int) -> HarvestResult:
        """Download the first item and then ``count`` more in ``direction``.

        ``count == 0`` does nothing at all and ``count == -1`` keeps going
        until the gallery stops advancing.
        """
        heading = Direction.parse(direction)
        if count < UNBOUNDED:
            raise InvalidCountError(f"invalid item count {count}, use {UNBOUNDED} for all items")
        result = HarvestResult()
        self.result = result
        if count == 0:
            self.logger.info("Item count is 0, nothing to do")
            return result

        await self._init_navigation()
        position = await self._position()
        result.items.append(await self._download_item(0, position))

        cursor = NavigationCursor(heading, count)
        result.stop_reason = "count_reached"
        while cursor.step():
            moved, position = await self._advance(cursor.direction, position)
            if not moved:
                result.stop_reason = "end_of_gallery"
                if count > 0:
                    self.logger.warning(
                        "Gallery stopped advancing after %d item(s), %d requested", result.count, count + 1
                    )
                else:
                    self.logger.info("Reached the end of the gallery after %d item(s)", result.count)
                break
            result.items.append(await self._download_item(result.count, position))
        return result

    async def _init_navigation(self) -> None:
        # The End key is ignored until the grid has been scrolled once.
        await self._key(self.keys.page_down)
        await self._pause(self.config.key_settle)
        await self._key(self.keys.jump_to_end)
        await self._pause(self.config.end_settle)
        await self._key(self.keys.advance, Direction.RIGHT)
        await self._pause(self.config.key_settle)
        await self._key(self.keys.open_item)
        await self._pause(self.config.key_settle)

    async def _advance(self, direction: Direction, previous: Optional[str]):
        """Move one item; report whether the position indicator changed."""
        position = previous
        for attempt in range(1, self.config.end_stall_limit + 1):
            await self._key(self.keys.advance, direction)
            await self._pause(self.config.nav_settle)
            position = await self._position()
            if position is None or previous is None or position != previous:
                return True, position
            self.logger.debug("Position unchanged after advance attempt %d: %s", attempt, position)
        return False, position

    async def _download_item(self, index: int, position: Optional[str]) -> ItemResult:
        attempts = 0
        while True:
            attempts += 1
            await self._key(self.keys.trigger_download)
            try:
                filename = await self.watcher.await_completion(
                    self.download_dir,
                    start_timeout=self.config.start_timeout,
                    end_timeout=self.config.end_timeout,
                    tick_interval=self.config.tick_interval,
                )
            except DownloadTimingError as e:
                if attempts > self.config.download_retries or self.watcher.snapshot(self.download_dir):
                    raise
                self.logger.warning("Item %d: %s, retrying (%d/%d)", index, e, attempts, self.config.download_retries)
                continue
            break

        destination = self.relocator.relocate(self.download_dir, filename)
        item = ItemResult(
            index=index,
            filename=filename,
            path=str(destination),
            position=position,
            attempts=attempts,
        )
        self.logger.info("Item %d processed: %s", index, Path(destination).name)
        self._log_download(item)
        return item

    async def _key(self, action, *args: Any) -> None:
        check_cancelled(self.cancel_event)
        await action(*args)

    async def _pause(self, seconds: float) -> None:
        await pause(seconds, self.cancel_event, self.sleep)

    async def _position(self) -> Optional[str]:
        getter = getattr(self.capability, "current_url", None)
        if getter is None:
            return None
        return await getter()

    def _log_download(self, item: ItemResult) -> None:
        if self.event_logger is None:
            return
        try:
            self.event_logger.log_download_event(
                {
                    "run_id": self.config.run_id,
                    "event_type": "relocated",
                    "ts": time.time(),
                    "index": item.index,
                    "filename": item.filename,
                    "path": item.path,
                    "position": item.position,
                    "attempts": item.attempts,
                }
            )
        except Exception:
            pass
