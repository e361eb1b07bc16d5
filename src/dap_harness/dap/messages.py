"""DAP message types.

- Request: client -> adapter (seq, command, arguments)
- Response: adapter -> client (request_seq, success, body)
- Event: adapter -> client (event, body)
"""

from __future__ import annotations

from typing import Any
from typing import Literal

from pydantic import BaseModel
from pydantic import Field


class DAPMessage(BaseModel):
    """Base class for all DAP messages."""

    seq: int


class DAPRequest(DAPMessage):
    """A request sent to the adapter."""

    type: Literal["request"] = "request"
    command: str
    arguments: dict[str, Any] | None = None


class DAPResponse(DAPMessage):
    """The adapter's answer to a request."""

    type: Literal["response"] = "response"
    request_seq: int
    success: bool
    command: str
    message: str | None = None
    body: dict[str, Any] | None = None


class DAPEvent(DAPMessage):
    """An unsolicited notification from the adapter."""

    type: Literal["event"] = "event"
    event: str
    body: dict[str, Any] | None = None


# === Request argument types ===


class InitializeArguments(BaseModel):
    """Arguments for the initialize request."""

    client_id: str | None = Field(default=None, alias="clientID")
    client_name: str | None = Field(default=None, alias="clientName")
    adapter_id: str = Field(alias="adapterID")
    lines_start_at1: bool = Field(default=True, alias="linesStartAt1")
    columns_start_at1: bool = Field(default=True, alias="columnsStartAt1")
    path_format: str | None = Field(default=None, alias="pathFormat")
    supports_variable_type: bool = Field(default=False, alias="supportsVariableType")
    supports_variable_paging: bool = Field(default=False, alias="supportsVariablePaging")
    supports_run_in_terminal_request: bool = Field(
        default=False, alias="supportsRunInTerminalRequest"
    )

    model_config = {"populate_by_name": True}


class SetBreakpointsArguments(BaseModel):
    """Arguments for the setBreakpoints request."""

    source: dict[str, Any]
    breakpoints: list[dict[str, Any]] | None = None
    lines: list[int] | None = None

    model_config = {"populate_by_name": True}


class StackTraceArguments(BaseModel):
    """Arguments for the stackTrace request."""

    thread_id: int = Field(alias="threadId")
    start_frame: int | None = Field(None, alias="startFrame")
    levels: int | None = None

    model_config = {"populate_by_name": True}


class DisconnectArguments(BaseModel):
    """Arguments for the disconnect request."""

    restart: bool = False
    terminate_debuggee: bool = Field(True, alias="terminateDebuggee")

    model_config = {"populate_by_name": True}
