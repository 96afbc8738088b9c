"""Pytest configuration and shared fixtures for natfwd tests."""

from __future__ import annotations

import logging

import pytest

from natfwd.config.config import ENV_MAPPINGS


def pytest_configure(config):
    """Register all project markers to avoid warnings when ini isn't loaded."""
    markers = [
        ("asyncio", "marks tests as async (deselect with '-m \"not asyncio\"')"),
        ("unit", "marks tests as unit tests"),
        ("integration", "marks tests as integration tests"),
        ("cli", "marks tests as CLI tests"),
        ("nat", "marks tests as NAT traversal tests"),
        ("config", "marks tests as configuration tests"),
    ]
    for name, desc in markers:
        config.addinivalue_line("markers", f"{name}: {desc}")


@pytest.fixture(autouse=True)
def _clear_natfwd_env(monkeypatch):
    """Keep developer NATFWD_* variables from leaking into configuration tests."""
    for env_name in ENV_MAPPINGS:
        monkeypatch.delenv(env_name, raising=False)


@pytest.fixture(autouse=True)
def cleanup_logging():
    """Clean up logging handlers after each test to prevent closed file errors."""
    yield
    for logger_name in list(logging.Logger.manager.loggerDict.keys()):
        logger = logging.getLogger(logger_name)
        if not isinstance(logger, logging.Logger):
            continue
        for handler in logger.handlers[:]:
            handler.close()
            logger.removeHandler(handler)
        if logger_name == "natfwd" or logger_name.startswith("natfwd."):
            logger.propagate = True
            logger.setLevel(logging.NOTSET)

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        if "pytest" in type(handler).__module__ or "_pytest" in type(handler).__module__:
            continue
        handler.close()
        root_logger.removeHandler(handler)
