"""Configuration for unit tests."""

import logging

import pytest


@pytest.fixture(autouse=True)
def debug_logging(caplog):
    """Capture photos_mcp debug logging in every unit test."""
    caplog.set_level(logging.DEBUG, logger="photos_mcp")
    yield
