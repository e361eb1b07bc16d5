"""Integration-test harness for debug adapters, built on a DAP test client."""

from __future__ import annotations

from dap_harness.checks import adapter_test
from dap_harness.config import HarnessSettings
from dap_harness.config import get_settings
from dap_harness.dap.client import DebugClient
from dap_harness.exceptions import DAPConnectionError
from dap_harness.exceptions import DAPError
from dap_harness.exceptions import DAPProtocolError
from dap_harness.exceptions import DAPTimeoutError
from dap_harness.exceptions import HarnessError
from dap_harness.exceptions import SessionError
from dap_harness.exceptions import UnhandledAdapterError
from dap_harness.launch import HarnessDebugClient
from dap_harness.paths import data_root
from dap_harness.paths import project_root
from dap_harness.session import HarnessContext
from dap_harness.session import setup
from dap_harness.session import teardown
from dap_harness.types import Location

__version__ = "0.1.0"

__all__ = [
    "DATA_ROOT",
    "PROJECT_ROOT",
    "DAPConnectionError",
    "DAPError",
    "DAPProtocolError",
    "DAPTimeoutError",
    "DebugClient",
    "HarnessContext",
    "HarnessDebugClient",
    "HarnessError",
    "HarnessSettings",
    "Location",
    "SessionError",
    "UnhandledAdapterError",
    "adapter_test",
    "data_root",
    "get_settings",
    "project_root",
    "setup",
    "teardown",
]


def __getattr__(name: str) -> str:
    # Resolved on access so they follow the current settings.
    if name in ("PROJECT_ROOT", "DATA_ROOT"):
        from dap_harness import paths

        return getattr(paths, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
