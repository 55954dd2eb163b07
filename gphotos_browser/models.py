"""Shared models for the gphotos-cdp runtime."""

from __future__ import annotations

import enum
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import ConfigurationError, InvalidCountError, InvalidDirectionError

DEFAULT_START_URL = "https://photos.google.com/"
PARTIAL_SUFFIX = ".crdownload"
REUSE_PROFILE_NAME = "gphotos-cdp"
STATE_DIR_NAME = ".gphotos-cdp"
UNBOUNDED = -1


class Direction(str, enum.Enum):
    """Gallery navigation direction."""

    LEFT = "left"
    RIGHT = "right"

    @classmethod
    def parse(cls, value: Any) -> "Direction":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or "").strip().lower())
        except ValueError:
            raise InvalidDirectionError(f"wrong direction {value!r}, expected 'left' or 'right'") from None


def default_download_dir() -> Path:
    home = os.environ.get("HOME") or str(Path.home())
    return Path(home) / "Downloads" / "gphotos-cdp"


def reuse_profile_dir() -> Path:
    return Path(tempfile.gettempdir()) / REUSE_PROFILE_NAME


@dataclass(frozen=True)
class RunConfig:
    """Immutable run-level configuration, built once at startup."""

    run_id: str
    start_url: str = DEFAULT_START_URL
    count: int = UNBOUNDED
    direction: Direction = Direction.LEFT
    reuse_session: bool = False
    download_dir: Optional[str] = None
    profile_dir: Optional[str] = None
    holding_dir: Optional[str] = None
    events_db: Optional[str] = None
    headless: bool = False
    channel: Optional[str] = None
    timeout_ms: int = 30000

    # Download watching, in seconds.
    tick_interval: float = 0.5
    start_timeout: float = 5.0
    end_timeout: float = 30.0
    partial_suffix: str = PARTIAL_SUFFIX
    download_retries: int = 1

    # Navigation settle delays, in seconds.
    login_wait: float = 5.0
    load_wait: float = 5.0
    key_settle: float = 0.5
    end_settle: float = 5.0
    nav_settle: float = 5.0
    end_stall_limit: int = 2

    def validate(self) -> "RunConfig":
        if self.count < UNBOUNDED:
            raise InvalidCountError(f"invalid item count {self.count}, use {UNBOUNDED} for all items")
        Direction.parse(self.direction)
        if min(self.tick_interval, self.start_timeout, self.end_timeout) <= 0:
            raise ConfigurationError("tick interval and download timeouts must be positive")
        if self.start_timeout > self.end_timeout:
            raise ConfigurationError(
                f"start timeout ({self.start_timeout}s) exceeds end timeout ({self.end_timeout}s)"
            )
        if self.download_retries < 0:
            raise ConfigurationError("download retries must be >= 0")
        if self.end_stall_limit < 1:
            raise ConfigurationError("end stall limit must be >= 1")
        if not self.partial_suffix:
            raise ConfigurationError("partial suffix must not be empty")
        if self.resolved_events_db().parent.resolve() == self.resolved_download_dir().resolve():
            raise ConfigurationError("events database must not live directly in the download directory")
        return self

    def resolved_download_dir(self) -> Path:
        if self.download_dir:
            return Path(self.download_dir).expanduser()
        return default_download_dir()

    def resolved_events_db(self) -> Path:
        if self.events_db:
            return Path(self.events_db).expanduser()
        return self.resolved_download_dir() / STATE_DIR_NAME / "events.sqlite3"


@dataclass
class RunState:
    """Mutable runtime state for the one session of a run."""

    run_id: str
    profile_dir: str
    download_dir: str
    active: bool = False
    started_at: Optional[float] = None
    ended_at: Optional[float] = None
    current_url: Optional[str] = None
    playwright: Any = None
    browser_context: Any = None
    page: Any = None
    cdp_session: Any = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ItemResult:
    """One completed and relocated gallery item."""

    index: int
    filename: str
    path: str
    position: Optional[str] = None
    attempts: int = 1


@dataclass
class HarvestResult:
    """Outcome of one iteration run."""

    items: List[ItemResult] = field(default_factory=list)
    stop_reason: str = "noop"

    @property
    def count(self) -> int:
        return len(self.items)
