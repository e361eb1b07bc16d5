"""Pydantic models for dap-testharness."""

from __future__ import annotations

from pydantic import BaseModel
from pydantic import Field

# === Events ===


class OutputEvent(BaseModel):
    """Body of an ``output`` event."""

    category: str = "console"  # console, stdout, stderr, telemetry
    output: str | None = None
    variables_reference: int | None = Field(default=None, alias="variablesReference")

    model_config = {"populate_by_name": True, "extra": "ignore"}


class StoppedEvent(BaseModel):
    """Body of a ``stopped`` event."""

    reason: str
    thread_id: int | None = Field(default=None, alias="threadId")
    description: str | None = None
    text: str | None = None

    model_config = {"populate_by_name": True, "extra": "ignore"}


# === Locations ===


class Location(BaseModel):
    """A source position, as used for breakpoints and stop assertions."""

    path: str
    line: int
    column: int | None = None
    verified: bool | None = None
