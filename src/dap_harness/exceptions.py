"""Custom exceptions for dap-testharness."""

from __future__ import annotations


class HarnessError(Exception):
    """Base exception for all dap-testharness errors."""


class DAPError(HarnessError):
    """Error from DAP protocol communication."""


class DAPConnectionError(DAPError):
    """Failed to connect to debug adapter."""


class DAPTimeoutError(DAPError):
    """Timeout waiting for a DAP response or event."""


class DAPProtocolError(DAPError):
    """Invalid DAP message or protocol violation."""


class SessionError(HarnessError):
    """Error related to the lifecycle of a client session."""


class UnhandledAdapterError(HarnessError, AssertionError):
    """The adapter logged an error marker while a test was running."""
