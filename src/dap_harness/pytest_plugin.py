"""Pytest plugin providing adapter sessions to tests.

Enable it from a conftest.py::

    pytest_plugins = ["dap_harness.pytest_plugin"]
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
import pytest_asyncio

from dap_harness.checks import ONLY_MARKER
from dap_harness.config import HarnessSettings
from dap_harness.config import get_settings
from dap_harness.session import setup
from dap_harness.session import teardown

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from dap_harness.session import HarnessContext


def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("dap-harness")
    group.addoption(
        "--dap-port",
        type=int,
        default=None,
        help="Port of an already running debug adapter (default: spawn one per test).",
    )


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        f"{ONLY_MARKER}: run only the tests carrying this marker (see adapter_test.only)",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Deselect everything else when some tests are registered with ``adapter_test.only``."""
    only = [item for item in items if item.get_closest_marker(ONLY_MARKER) is not None]
    if not only:
        return

    deselected = [item for item in items if item.get_closest_marker(ONLY_MARKER) is None]
    config.hook.pytest_deselected(items=deselected)
    items[:] = only


@pytest.fixture
def dap_settings(request: pytest.FixtureRequest) -> HarnessSettings:
    """Harness settings, with ``--dap-port`` applied."""
    settings = get_settings()
    port = request.config.getoption("--dap-port")
    if port is not None:
        settings = settings.model_copy(update={"port": port})
    return settings


@pytest_asyncio.fixture
async def dap_context(dap_settings: HarnessSettings) -> AsyncIterator[HarnessContext]:
    """A started adapter session for the current test."""
    context = await setup(settings=dap_settings)
    try:
        yield context
    finally:
        await teardown(context)
