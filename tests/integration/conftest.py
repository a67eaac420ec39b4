"""Shared fixtures for live integration tests.

These tests call the real aviationweather.gov data API. They are skipped
unless METARBOARD_LIVE=1 is set.
"""

import os

import pytest

LIVE = os.getenv("METARBOARD_LIVE") == "1"


def pytest_collection_modifyitems(config, items):
    if LIVE:
        return
    skip_live = pytest.mark.skip(reason="set METARBOARD_LIVE=1 to call aviationweather.gov")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_live)
