"""Pytest hooks and fixtures."""

import os

import pytest


def pytest_configure(config):
    """Register custom markers (also in pyproject.toml)."""
    config.addinivalue_line(
        "markers",
        "stdio_process: spawns the fake MCP server as a real child process",
    )


def pytest_collection_modifyitems(config, items):
    """Skip stdio_process tests when ZKPUTER_SKIP_STDIO_TESTS=1 (sandboxes without fork/exec)."""
    if os.environ.get("ZKPUTER_SKIP_STDIO_TESTS") != "1":
        return
    skip = pytest.mark.skip(reason="Child process tests disabled by ZKPUTER_SKIP_STDIO_TESTS")
    for item in items:
        if "stdio_process" in item.keywords:
            item.add_marker(skip)
