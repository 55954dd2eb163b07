"""Fixtures for the gphotos-cdp test suite."""

from __future__ import annotations

from pathlib import Path

import pytest

from gphotos_browser.models import RunConfig

from .fakes import FakeClock


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def download_dir(tmp_path: Path) -> Path:
    path = tmp_path / "downloads"
    path.mkdir()
    return path


@pytest.fixture
def run_config(download_dir: Path) -> RunConfig:
    return RunConfig(
        run_id="run-1",
        download_dir=str(download_dir),
        tick_interval=0.5,
        start_timeout=5.0,
        end_timeout=30.0,
        key_settle=0.5,
        end_settle=5.0,
        nav_settle=5.0,
    )
