"""Shared fixtures."""

import logging

import pytest

from nexus.config.settings import settings


@pytest.fixture(autouse=True)
def restore_root_logger():
    """setup_logging replaces the root handlers; put them back after each test."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    """Point key storage at a temporary directory."""
    monkeypatch.setattr(settings.storage, "data_dir", str(tmp_path))
    return tmp_path
