"""Tests for run configuration."""

from __future__ import annotations

from dataclasses import FrozenInstanceError, replace

import pytest

from gphotos_browser.errors import ConfigurationError, InvalidCountError, InvalidDirectionError
from gphotos_browser.models import Direction, RunConfig, default_download_dir


class TestRunConfig:
    def test_defaults_validate(self):
        config = RunConfig(run_id="r").validate()

        assert config.count == -1
        assert config.direction is Direction.LEFT
        assert config.tick_interval == 0.5

    def test_frozen(self):
        config = RunConfig(run_id="r")

        with pytest.raises(FrozenInstanceError):
            config.count = 3  # type: ignore[misc]

    @pytest.mark.parametrize(
        "changes, error",
        [
            ({"count": -2}, InvalidCountError),
            ({"direction": "up"}, InvalidDirectionError),
            ({"tick_interval": 0}, ConfigurationError),
            ({"start_timeout": 40.0}, ConfigurationError),
            ({"download_retries": -1}, ConfigurationError),
            ({"end_stall_limit": 0}, ConfigurationError),
            ({"partial_suffix": ""}, ConfigurationError),
        ],
    )
    def test_invalid(self, changes, error):
        with pytest.raises(error):
            replace(RunConfig(run_id="r"), **changes).validate()

    def test_default_download_dir_from_home(self, monkeypatch, tmp_path):
        monkeypatch.setenv("HOME", str(tmp_path))

        assert default_download_dir() == tmp_path / "Downloads" / "gphotos-cdp"
        assert RunConfig(run_id="r").resolved_download_dir() == tmp_path / "Downloads" / "gphotos-cdp"

    def test_events_db_defaults_under_download_dir(self, tmp_path):
        config = RunConfig(run_id="r", download_dir=str(tmp_path))

        assert config.resolved_events_db() == tmp_path / ".gphotos-cdp" / "events.sqlite3"

    def test_events_db_directly_in_download_dir_rejected(self, tmp_path):
        config = RunConfig(
            run_id="r",
            download_dir=str(tmp_path / "dl"),
            events_db=str(tmp_path / "dl" / "events.sqlite3"),
        )

        with pytest.raises(ConfigurationError):
            config.validate()

    def test_events_db_beside_download_dir_accepted(self, tmp_path):
        config = RunConfig(
            run_id="r",
            download_dir=str(tmp_path / "dl"),
            events_db=str(tmp_path / "events.sqlite3"),
        )

        assert config.validate() is config


class TestDirection:
    def test_parse(self):
        assert Direction.parse("LEFT") is Direction.LEFT
        assert Direction.parse(Direction.RIGHT) is Direction.RIGHT

    def test_parse_invalid(self):
        with pytest.raises(InvalidDirectionError):
            Direction.parse(None)
