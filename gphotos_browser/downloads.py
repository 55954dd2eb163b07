"""Download completion detection by polling the shared download directory."""

from __future__ import annotations

import asyncio
import enum
import logging
import os
import time
from pathlib import Path
from typing import Callable, Optional, Tuple

from .errors import (
    DownloadDirectoryError,
    DownloadNeverStartedError,
    DownloadTimeoutError,
    MultipleFilesError,
)
from .models import PARTIAL_SUFFIX
from .timing import SleepFunc, pause


class WatchState(str, enum.Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"


class DownloadWatcher:
    """Wait for exactly one completed file to appear in a directory.

    The browser gives no completion callback for downloads started from the
    page UI, so the only signal is the directory content: nothing, one partial
    file carrying the in-progress suffix, then one complete file. The watcher
    only reads the directory; moving the result away is the relocator's job.
    """

    def __init__(
        self,
        *,
        partial_suffix: str = PARTIAL_SUFFIX,
        cancel_event: Optional[asyncio.Event] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Optional[SleepFunc] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.partial_suffix = str(partial_suffix or PARTIAL_SUFFIX)
        self.cancel_event = cancel_event
        self.clock = clock
        self.sleep = sleep
        self.logger = logger or logging.getLogger(__name__)

    def snapshot(self, directory: str) -> Tuple[str, ...]:
        """Return the sorted names of the non-directory entries in ``directory``."""
        try:
            with os.scandir(directory) as entries:
                names = [entry.name for entry in entries if not entry.is_dir()]
        except OSError as e:
            raise DownloadDirectoryError(f"cannot list download dir {str(directory)!r}: {e}", str(directory)) from e
        return tuple(sorted(names))

    def is_partial(self, name: str) -> bool:
        return str(name).endswith(self.partial_suffix)

    async def await_completion(
        self,
        directory: str,
        start_timeout: float = 5.0,
        end_timeout: float = 30.0,
        tick_interval: float = 0.5,
    ) -> str:
        """Poll ``directory`` until one complete file is present and return its name.

        Raises DownloadNeverStartedError when no entry shows up within
        ``start_timeout``, DownloadTimeoutError when a started download is
        still partial after ``end_timeout``, and MultipleFilesError as soon as
        more than one entry is seen.
        """
        dir_name = str(Path(directory))
        started_at = self.clock()
        state = WatchState.NOT_STARTED
        ticks = 0
        while True:
            await pause(tick_interval, self.cancel_event, self.sleep)
            ticks += 1
            elapsed = self.clock() - started_at

            if state is WatchState.NOT_STARTED and elapsed > start_timeout:
                raise DownloadNeverStartedError(
                    f"downloading in {dir_name!r} took too long to start ({ticks} ticks)", dir_name
                )
            if state is WatchState.IN_PROGRESS and elapsed > end_timeout:
                raise DownloadTimeoutError(f"timeout while downloading in {dir_name!r}", dir_name)

            entries = self.snapshot(dir_name)
            if not entries:
                continue
            if state is WatchState.NOT_STARTED:
                state = WatchState.IN_PROGRESS
                self.logger.debug("Download started in %s after %d ticks: %s", dir_name, ticks, entries[0])

            if len(entries) > 1:
                raise MultipleFilesError(
                    f"more than one file ({len(entries)}) in download dir {dir_name!r}",
                    dir_name,
                    entries,
                )
            if not self.is_partial(entries[0]):
                self.logger.debug("Download complete after %d ticks: %s", ticks, entries[0])
                return entries[0]
