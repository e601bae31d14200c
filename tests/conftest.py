"""Shared fixtures for fswatcher tests."""

import logging
from pathlib import Path

import pytest

from fswatcher.watch import WatcherConfiguration
from tests.helpers import DEBOUNCE


@pytest.fixture(autouse=True)
def _debug_logging(caplog):
    caplog.set_level(logging.DEBUG, logger="fswatcher")


@pytest.fixture
def watch_dir(tmp_path: Path) -> Path:
    """Empty, resolved directory to watch."""
    directory = tmp_path / "watched"
    directory.mkdir()
    return directory.resolve()


@pytest.fixture
def fast_config() -> WatcherConfiguration:
    """Configuration with a short debounce interval."""
    return WatcherConfiguration(debounce_interval=DEBOUNCE)
