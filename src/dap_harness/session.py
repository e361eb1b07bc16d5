"""Per-test adapter sessions."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from dap_harness.adapter_log import AdapterLogInterceptor
from dap_harness.adapter_log import adapter_logger
from dap_harness.config import get_settings
from dap_harness.exceptions import UnhandledAdapterError
from dap_harness.launch import HarnessDebugClient
from dap_harness.launch import resolve_runtime
from dap_harness.paths import project_root

if TYPE_CHECKING:
    from dap_harness.config import HarnessSettings
    from dap_harness.dap.client import DebugClient
    from dap_harness.dap.client import TransportFactory

logger = logging.getLogger(__name__)


def format_adapter_errors(errors: list[str]) -> str:
    """One error verbatim; several as a JSON array."""
    if len(errors) == 1:
        return errors[0]
    return json.dumps(errors)


class HarnessContext:
    """Everything one test owns: its client and the errors its adapter logged."""

    def __init__(self, client: DebugClient, interceptor: AdapterLogInterceptor) -> None:
        self.client = client
        self.interceptor = interceptor

    @property
    def errors(self) -> list[str]:
        """Error-marker lines the adapter has logged so far."""
        return self.interceptor.errors

    def check_adapter_errors(self) -> None:
        """Raise if the adapter logged any error marker.

        Raises:
            UnhandledAdapterError: With the logged line, or all of them as JSON.
        """
        if self.errors:
            raise UnhandledAdapterError(format_adapter_errors(self.errors))


async def setup(
    port: int | None = None,
    *,
    settings: HarnessSettings | None = None,
    transport_factory: TransportFactory | None = None,
) -> HarnessContext:
    """Start a fresh client session and capture its output.

    Args:
        port: Port of a running adapter; spawn one when omitted
        settings: Harness settings (default: the global settings)
        transport_factory: Override for how the client reaches the adapter

    Returns:
        The context for the test, with an empty error log.
    """
    settings = settings or get_settings()
    client = HarnessDebugClient(
        settings.runtime,
        settings.adapter_path,
        settings.adapter_id,
        runtime_descriptor=resolve_runtime(settings),
        timeout=settings.timeout,
        cwd=project_root(settings),
        transport_factory=transport_factory,
    )
    adapter_logger.setLevel(settings.log_level.upper())
    interceptor = AdapterLogInterceptor()
    client.add_listener("output", interceptor)

    port = settings.port if port is None else port
    logger.debug("Starting %s session (port=%s)", settings.adapter_id, port)
    await client.start(port)
    return HarnessContext(client, interceptor)


async def teardown(context: HarnessContext) -> None:
    """Stop capturing output and close the session."""
    context.client.remove_listener("output", context.interceptor)
    await context.client.stop()
