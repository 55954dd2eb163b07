"""Tests for the iteration driver state machine."""

from __future__ import annotations

import asyncio
from dataclasses import replace
from pathlib import Path

import pytest

from gphotos_browser.downloads import DownloadWatcher
from gphotos_browser.errors import (
    DownloadNeverStartedError,
    DownloadTimeoutError,
    InvalidCountError,
    InvalidDirectionError,
    MultipleFilesError,
    RunCancelledError,
)
from gphotos_browser.event_logger import BrowserEventLogger
from gphotos_browser.keys import KeyDispatcher
from gphotos_browser.models import Direction
from gphotos_browser.storage import FileRelocator
from gphotos_workflow.iteration import IterationDriver, NavigationCursor

from .fakes import FakeGallery, files_in


def make_driver(gallery, run_config, clock, **kwargs):
    return IterationDriver(
        capability=gallery,
        keys=KeyDispatcher(gallery, platform="linux"),
        watcher=DownloadWatcher(clock=clock, sleep=clock.sleep, cancel_event=kwargs.get("cancel_event")),
        relocator=FileRelocator(),
        download_dir=run_config.download_dir,
        run_config=run_config,
        sleep=clock.sleep,
        **kwargs,
    )


def target_dirs(download_dir: Path):
    return sorted(p for p in download_dir.iterdir() if p.is_dir())


class TestNavigationCursor:
    def test_bounded(self):
        cursor = NavigationCursor(Direction.LEFT, 2)

        assert [cursor.step() for _ in range(3)] == [True, True, False]
        assert cursor.remaining == 0

    def test_unbounded_never_exhausts(self):
        cursor = NavigationCursor(Direction.RIGHT, -1)

        assert all(cursor.step() for _ in range(100))
        assert cursor.remaining == -1

    def test_zero(self):
        assert NavigationCursor(Direction.LEFT, 0).step() is False


class TestRun:
    @pytest.mark.asyncio
    async def test_two_items_land_in_two_targets(self, download_dir, run_config, clock):
        # The first item downloaded is the last one in the gallery.
        gallery = FakeGallery(download_dir, ["c.jpg", "b.jpg", "a.jpg"])

        result = await make_driver(gallery, run_config, clock).run("left", 1)

        assert [item.filename for item in result.items] == ["a.jpg", "b.jpg"]
        dirs = target_dirs(download_dir)
        assert len(dirs) == 2
        assert sorted(p.name for d in dirs for p in d.iterdir()) == ["a.jpg", "b.jpg"]
        assert files_in(download_dir) == []
        assert result.stop_reason == "count_reached"

    @pytest.mark.asyncio
    async def test_count_items_plus_first(self, download_dir, run_config, clock):
        gallery = FakeGallery(download_dir, [f"{i}.jpg" for i in range(6)])

        result = await make_driver(gallery, run_config, clock).run(Direction.LEFT, 3)

        assert result.count == 4
        dirs = target_dirs(download_dir)
        assert len(dirs) == 4
        assert all(len(list(d.iterdir())) == 1 for d in dirs)
        assert len({item.path for item in result.items}) == 4
        assert files_in(download_dir) == []

    @pytest.mark.asyncio
    async def test_init_sequence(self, download_dir, run_config, clock):
        gallery = FakeGallery(download_dir, ["a.jpg", "b.jpg"])

        await make_driver(gallery, run_config, clock).run("left", 1)

        assert gallery.pressed() == ["PageDown", "End", "ArrowRight", "Enter", "D", "ArrowLeft", "D"]

    @pytest.mark.asyncio
    async def test_count_zero_is_noop(self, download_dir, run_config, clock):
        gallery = FakeGallery(download_dir, ["a.jpg"])

        result = await make_driver(gallery, run_config, clock).run("left", 0)

        assert gallery.events == []
        assert result.count == 0
        assert result.stop_reason == "noop"
        assert list(download_dir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_negative_count_other_than_unbounded(self, download_dir, run_config, clock):
        gallery = FakeGallery(download_dir, ["a.jpg"])

        with pytest.raises(InvalidCountError):
            await make_driver(gallery, run_config, clock).run("left", -2)

        assert gallery.events == []

    @pytest.mark.asyncio
    async def test_invalid_direction(self, download_dir, run_config, clock):
        gallery = FakeGallery(download_dir, ["a.jpg"])

        with pytest.raises(InvalidDirectionError):
            await make_driver(gallery, run_config, clock).run("up", 1)

        assert gallery.events == []

    @pytest.mark.asyncio
    async def test_unbounded_stops_at_end_of_gallery(self, download_dir, run_config, clock):
        gallery = FakeGallery(download_dir, ["a.jpg", "b.jpg", "c.jpg"])

        result = await make_driver(gallery, run_config, clock).run("left", -1)

        assert [item.filename for item in result.items] == ["c.jpg", "b.jpg", "a.jpg"]
        assert result.stop_reason == "end_of_gallery"
        # Two fruitless attempts at the left edge, no download after them.
        assert gallery.pressed()[-3:] == ["D", "ArrowLeft", "ArrowLeft"]
        assert gallery.triggers == 3

    @pytest.mark.asyncio
    async def test_bounded_run_ends_early_at_gallery_edge(self, download_dir, run_config, clock):
        gallery = FakeGallery(download_dir, ["a.jpg", "b.jpg"])

        result = await make_driver(gallery, run_config, clock).run("left", 5)

        assert result.count == 2
        assert result.stop_reason == "end_of_gallery"

    @pytest.mark.asyncio
    async def test_stall_limit_is_configurable(self, download_dir, run_config, clock):
        gallery = FakeGallery(download_dir, ["a.jpg"])
        config = replace(run_config, end_stall_limit=3)

        await make_driver(gallery, config, clock).run("right", -1)

        assert gallery.pressed()[-3:] == ["ArrowRight"] * 3

    @pytest.mark.asyncio
    async def test_never_started_item_is_retried(self, download_dir, run_config, clock):
        gallery = FakeGallery(download_dir, ["a.jpg"], silent_triggers=1)

        result = await make_driver(gallery, run_config, clock).run("left", 1)

        assert result.items[0].attempts == 2
        assert gallery.triggers == 2

    @pytest.mark.asyncio
    async def test_retries_exhausted(self, download_dir, run_config, clock):
        gallery = FakeGallery(download_dir, ["a.jpg"], silent_triggers=5)
        config = replace(run_config, download_retries=2)

        with pytest.raises(DownloadNeverStartedError):
            await make_driver(gallery, config, clock).run("left", 1)

        assert gallery.triggers == 3

    @pytest.mark.asyncio
    async def test_no_retry_configured(self, download_dir, run_config, clock):
        gallery = FakeGallery(download_dir, ["a.jpg"], silent_triggers=1)
        config = replace(run_config, download_retries=0)

        with pytest.raises(DownloadNeverStartedError):
            await make_driver(gallery, config, clock).run("left", 1)

        assert gallery.triggers == 1

    @pytest.mark.asyncio
    async def test_stalled_partial_is_not_retried(self, download_dir, run_config, clock):
        gallery = FakeGallery(download_dir, ["x.jpg"], partial_triggers=1)

        with pytest.raises(DownloadTimeoutError):
            await make_driver(gallery, run_config, clock).run("left", 1)

        assert gallery.triggers == 1
        assert files_in(download_dir) == ["x.jpg.crdownload"]
        assert target_dirs(download_dir) == []

    @pytest.mark.asyncio
    async def test_abandoned_partial_is_retried(self, download_dir, run_config, clock):
        gallery = FakeGallery(download_dir, ["x.jpg"], partial_triggers=1)
        partial = download_dir / "x.jpg.crdownload"
        seen = {}

        def drop_abandoned_partial(tick):
            if not partial.exists():
                return
            seen.setdefault("at", clock.now)
            if clock.now - seen["at"] >= run_config.end_timeout:
                partial.unlink()

        clock.hooks.append(drop_abandoned_partial)

        result = await make_driver(gallery, run_config, clock).run("left", 1)

        assert gallery.triggers == 2
        assert result.items[0].filename == "x.jpg"
        assert result.items[0].attempts == 2
        assert files_in(download_dir) == []

    @pytest.mark.asyncio
    async def test_multiple_files_never_retried(self, download_dir, run_config, clock):
        gallery = FakeGallery(download_dir, ["a.jpg"], extra_file="stray.jpg")

        with pytest.raises(MultipleFilesError):
            await make_driver(gallery, run_config, clock).run("left", 3)

        assert gallery.triggers == 1
        assert target_dirs(download_dir) == []

    @pytest.mark.asyncio
    async def test_cancel_before_start(self, download_dir, run_config, clock):
        gallery = FakeGallery(download_dir, ["a.jpg"])
        cancel_event = asyncio.Event()
        cancel_event.set()

        with pytest.raises(RunCancelledError):
            await make_driver(gallery, run_config, clock, cancel_event=cancel_event).run("left", 1)

        assert gallery.events == []

    @pytest.mark.asyncio
    async def test_progress_recorded_in_ledger(self, download_dir, run_config, clock, tmp_path):
        gallery = FakeGallery(download_dir, ["a.jpg", "b.jpg"])
        ledger = BrowserEventLogger(tmp_path / "events.sqlite3")

        driver = make_driver(gallery, run_config, clock, event_logger=ledger)
        await driver.run("left", 1)

        events = ledger.fetch_events("download_events", run_id="run-1")
        ledger.close()
        assert [e["filename"] for e in events] == ["b.jpg", "a.jpg"]
        assert [e["index"] for e in events] == [0, 1]
        assert driver.result.count == 2
