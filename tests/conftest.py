"""Pytest configuration and fixtures."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
import pytest_asyncio
from fakes import FakeAdapterTransport

from dap_harness.config import HarnessSettings
from dap_harness.config import reset_settings
from dap_harness.session import setup
from dap_harness.session import teardown

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from collections.abc import Generator

    from dap_harness.session import HarnessContext

pytest_plugins = ["pytester", "dap_harness.pytest_plugin"]


@pytest.fixture(autouse=True)
def reset_settings_fixture() -> Generator[None, None, None]:
    """Reset settings before and after each test."""
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def fake_transport() -> FakeAdapterTransport:
    """A fresh scripted adapter connection."""
    return FakeAdapterTransport()


@pytest.fixture
def harness_settings() -> HarnessSettings:
    """Settings pinned to a release runtime so no version probe runs."""
    return HarnessSettings(runtime_version="v8.9.4", timeout=1.0)


@pytest_asyncio.fixture
async def dap_context(
    harness_settings: HarnessSettings, fake_transport: FakeAdapterTransport
) -> AsyncIterator[HarnessContext]:
    """Harness context talking to the fake adapter instead of a real one."""
    context = await setup(
        settings=harness_settings, transport_factory=lambda port: fake_transport
    )
    yield context
    await teardown(context)
