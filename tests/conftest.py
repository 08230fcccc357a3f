"""Shared fixtures for all test modules."""

import pytest

from pbusage.config import Config
from pbusage.logging.logger import RunLogger
from pbusage.runner.emitter import EntryEmitter, MemorySink


@pytest.fixture
def tmp_config(tmp_path):
    """Config pointing to a temp directory, single worker for stable ordering."""
    config = Config(base_dir=tmp_path / ".pbusage", workers=1)
    config.ensure_dirs()
    return config


@pytest.fixture
def sink():
    return MemorySink()


@pytest.fixture
def emitter(sink):
    return EntryEmitter(sink)


@pytest.fixture
def run_logger(tmp_config):
    """RunLogger writing to the temp log dir."""
    return RunLogger(tmp_config.log_dir)
