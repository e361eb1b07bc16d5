"""Adapter output capture.

Every non-telemetry ``output`` event is written to the ``dap_harness.adapter``
logger. Lines containing the adapter's error marker are also kept so the
running test can be failed after its own assertions pass.
"""

from __future__ import annotations

import logging
from datetime import datetime
from datetime import timezone
from typing import TYPE_CHECKING

from dap_harness.types import OutputEvent

if TYPE_CHECKING:
    from collections.abc import Callable

    from dap_harness.dap.messages import DAPEvent

ADAPTER_LOGGER_NAME = "dap_harness.adapter"
ERROR_MARKER = "********"
TELEMETRY = "telemetry"

adapter_logger = logging.getLogger(ADAPTER_LOGGER_NAME)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(moment: datetime) -> str:
    """Time of day as ``HH:MM:SS.mmm``."""
    return moment.strftime("%H:%M:%S.") + f"{moment.microsecond // 1000:03d}"


def format_output(body: OutputEvent, moment: datetime) -> str:
    """Render an output event body as one log line."""
    if body.output:
        text = body.output.strip()
    else:
        text = f"variablesReference: {body.variables_reference}"
    return f" {format_timestamp(moment)} {text}"


class AdapterLogInterceptor:
    """Listener for ``output`` events that logs them and collects error lines."""

    def __init__(self, clock: Callable[[], datetime] = _utc_now) -> None:
        self.errors: list[str] = []
        self._clock = clock

    def __call__(self, event: DAPEvent) -> None:
        body = OutputEvent.model_validate(event.body or {})
        if body.category == TELEMETRY:
            return

        msg = format_output(body, self._clock())
        adapter_logger.info(msg)

        if ERROR_MARKER in msg:
            self.errors.append(msg)
