"""Browser-side building blocks for gphotos-cdp."""

from .downloads import DownloadWatcher, WatchState
from .event_logger import BrowserEventLogger
from .keys import KeyDispatcher, normalize_key_event
from .models import Direction, HarvestResult, ItemResult, RunConfig, RunState
from .page_actions import BrowserCapability
from .session import BrowserSessionManager
from .storage import FileRelocator

__all__ = [
    "BrowserCapability",
    "BrowserEventLogger",
    "BrowserSessionManager",
    "Direction",
    "DownloadWatcher",
    "FileRelocator",
    "HarvestResult",
    "ItemResult",
    "KeyDispatcher",
    "RunConfig",
    "RunState",
    "WatchState",
    "normalize_key_event",
]
