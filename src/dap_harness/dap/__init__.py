"""DAP (Debug Adapter Protocol) test client."""

from __future__ import annotations

from dap_harness.dap.client import DebugClient
from dap_harness.dap.transport import SocketTransport
from dap_harness.dap.transport import StdioTransport

__all__ = ["DebugClient", "SocketTransport", "StdioTransport"]
