"""DAP test client.

Drives a debug adapter the way an editor would, with helpers for the
assertions integration tests make about it.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
import os
from typing import TYPE_CHECKING
from typing import Any

import anyio
from pydantic import ValidationError

from dap_harness.dap.messages import DAPEvent
from dap_harness.dap.messages import DAPRequest
from dap_harness.dap.messages import DAPResponse
from dap_harness.dap.messages import DisconnectArguments
from dap_harness.dap.messages import InitializeArguments
from dap_harness.dap.messages import SetBreakpointsArguments
from dap_harness.dap.messages import StackTraceArguments
from dap_harness.dap.transport import SocketTransport
from dap_harness.dap.transport import StdioTransport
from dap_harness.exceptions import DAPConnectionError
from dap_harness.exceptions import DAPError
from dap_harness.exceptions import DAPTimeoutError
from dap_harness.exceptions import SessionError
from dap_harness.types import Location
from dap_harness.types import OutputEvent
from dap_harness.types import StoppedEvent

if TYPE_CHECKING:
    from collections.abc import Awaitable
    from collections.abc import Callable

    from dap_harness.dap.transport import DAPTransport

    Listener = Callable[[DAPEvent], Any]
    TransportFactory = Callable[[int | None], DAPTransport]

logger = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_TIMEOUT = 5.0


class DebugClient:
    """Async DAP client bound to one adapter for the length of a test."""

    def __init__(
        self,
        runtime: str,
        adapter_path: str,
        adapter_id: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        cwd: str | None = None,
        transport_factory: TransportFactory | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            runtime: Executable that runs the adapter (e.g. "node")
            adapter_path: Adapter entry point passed to the runtime
            adapter_id: Adapter ID sent with the initialize request
            timeout: Seconds to wait for responses and events
            cwd: Working directory of a spawned adapter
            transport_factory: Builds the transport for ``start(port)``;
                defaults to a socket when a port is given, stdio otherwise
        """
        self.runtime = runtime
        self.adapter_path = adapter_path
        self.adapter_id = adapter_id
        self.timeout = timeout
        self.cwd = cwd
        self._transport_factory = transport_factory or self._default_transport
        self._transport: DAPTransport | None = None
        self._seq = 0
        self._pending_requests: dict[int, asyncio.Future[DAPResponse]] = {}
        self._event_waiters: dict[str, list[asyncio.Future[DAPEvent]]] = {}
        self._listeners: dict[str, list[Listener]] = {}
        self._receive_task: asyncio.Task[None] | None = None
        self._capabilities: dict[str, Any] = {}

    # === Lifecycle ===

    def _default_transport(self, port: int | None) -> DAPTransport:
        if port is not None:
            return SocketTransport(DEFAULT_HOST, port)
        return StdioTransport([self.runtime, self.adapter_path], cwd=self.cwd)

    async def start(self, port: int | None = None) -> None:
        """Connect to the adapter and start dispatching its messages.

        Args:
            port: Port of an adapter that is already running. Without one,
                  the adapter is spawned and spoken to over stdio.
        """
        if self._transport is not None:
            raise SessionError("Client is already started")

        transport = self._transport_factory(port)
        await transport.connect()
        self._transport = transport
        self._receive_task = asyncio.create_task(self._receive_loop(transport))

    async def stop(self) -> None:
        """Disconnect from the adapter and release the transport."""
        if self._transport is None:
            return

        try:
            if self._transport.is_connected:
                await self.disconnect_request()
        finally:
            await self._shutdown()

    async def _shutdown(self) -> None:
        if self._receive_task is not None:
            self._receive_task.cancel()
            with anyio.move_on_after(1):
                await asyncio.gather(self._receive_task, return_exceptions=True)
            self._receive_task = None

        transport, self._transport = self._transport, None
        if transport is not None:
            await transport.disconnect()

        for future in self._pending_futures():
            future.cancel()
        self._pending_requests.clear()
        self._event_waiters.clear()

    def _pending_futures(self) -> list[asyncio.Future[Any]]:
        futures: list[asyncio.Future[Any]] = list(self._pending_requests.values())
        for waiters in self._event_waiters.values():
            futures.extend(waiters)
        return [f for f in futures if not f.done()]

    # === Listeners ===

    def add_listener(self, event: str, listener: Listener) -> None:
        """Call ``listener`` with every ``event`` the adapter sends."""
        self._listeners.setdefault(event, []).append(listener)

    def remove_listener(self, event: str, listener: Listener) -> None:
        """Stop calling ``listener`` for ``event``; unknown listeners are ignored."""
        with contextlib.suppress(ValueError):
            self._listeners.get(event, []).remove(listener)

    # === Requests ===

    async def send_request(
        self,
        command: str,
        arguments: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> DAPResponse:
        """Send a DAP request and wait for its response.

        Raises:
            DAPTimeoutError: If no response arrives in time
            DAPError: If the adapter reports failure
        """
        if self._transport is None:
            raise DAPConnectionError("Client is not started")

        self._seq += 1
        seq = self._seq
        request = DAPRequest(seq=seq, command=command, arguments=arguments)

        future: asyncio.Future[DAPResponse] = asyncio.get_running_loop().create_future()
        self._pending_requests[seq] = future

        logger.debug("-> %s (seq=%d)", command, seq)
        try:
            await self._transport.send(request.model_dump(exclude_none=True))
            try:
                async with asyncio.timeout(self.timeout if timeout is None else timeout):
                    response = await future
            except TimeoutError as e:
                raise DAPTimeoutError(f"Timeout waiting for response to '{command}'") from e
        finally:
            self._pending_requests.pop(seq, None)

        if not response.success:
            raise DAPError(f"DAP request '{command}' failed: {response.message or 'Unknown error'}")
        return response

    async def initialize_request(
        self, arguments: InitializeArguments | None = None
    ) -> DAPResponse:
        """Send initialize and record the adapter capabilities."""
        if arguments is None:
            arguments = InitializeArguments.model_validate(
                {
                    "adapterID": self.adapter_id,
                    "clientID": "dap-testharness",
                    "linesStartAt1": True,
                    "columnsStartAt1": True,
                    "pathFormat": "path",
                }
            )
        response = await self.send_request(
            "initialize", arguments.model_dump(by_alias=True, exclude_none=True)
        )
        self._capabilities = dict(response.body or {})
        return response

    async def launch_request(self, arguments: dict[str, Any]) -> DAPResponse:
        return await self.send_request("launch", arguments)

    async def configuration_done_request(self) -> DAPResponse:
        return await self.send_request("configurationDone")

    async def set_breakpoints_request(self, arguments: SetBreakpointsArguments) -> DAPResponse:
        return await self.send_request(
            "setBreakpoints", arguments.model_dump(by_alias=True, exclude_none=True)
        )

    async def stack_trace_request(self, thread_id: int, levels: int | None = None) -> DAPResponse:
        arguments = StackTraceArguments(thread_id=thread_id, levels=levels)
        return await self.send_request(
            "stackTrace", arguments.model_dump(by_alias=True, exclude_none=True)
        )

    async def threads_request(self) -> DAPResponse:
        return await self.send_request("threads")

    async def continue_request(self, thread_id: int) -> DAPResponse:
        return await self.send_request("continue", {"threadId": thread_id})

    async def disconnect_request(
        self, arguments: DisconnectArguments | None = None
    ) -> DAPResponse:
        arguments = arguments or DisconnectArguments()
        return await self.send_request("disconnect", arguments.model_dump(by_alias=True))

    # === Composite operations ===

    async def launch(self, launch_args: dict[str, Any]) -> DAPResponse:
        """Initialize the adapter, then send ``launch`` with ``launch_args``."""
        await self.initialize_request()
        return await self.launch_request(launch_args)

    async def configuration_sequence(self) -> None:
        """Wait for ``initialized`` and finish configuration if the adapter wants it."""
        await self.wait_for_event("initialized")
        if self._capabilities.get("supportsConfigurationDoneRequest"):
            await self.configuration_done_request()

    async def hit_breakpoint(
        self,
        launch_args: dict[str, Any],
        location: Location,
        expected_location: Location | None = None,
    ) -> DAPResponse:
        """Launch with a breakpoint at ``location`` and wait until it is hit.

        The breakpoint is set once the adapter sends ``initialized``; the stop
        must land on ``expected_location`` (default: ``location``).

        Returns:
            The stack trace response of the stopped thread.
        """
        initialized = self._watch("initialized")
        stopped = self._watch("stopped")

        async def configure() -> None:
            await self._await_event(initialized, "initialized")
            breakpoint_spec: dict[str, Any] = {"line": location.line}
            if location.column is not None:
                breakpoint_spec["column"] = location.column
            response = await self.set_breakpoints_request(
                SetBreakpointsArguments(
                    source={"path": location.path},
                    lines=[location.line],
                    breakpoints=[breakpoint_spec],
                )
            )
            self._verify_breakpoint(response, location)
            await self.configuration_done_request()

        _, _, stack = await _all(
            configure(),
            self.launch(launch_args),
            self._assert_stopped(stopped, "breakpoint", expected_location or location),
        )
        return stack

    # === Assertions ===

    async def wait_for_event(self, event: str, timeout: float | None = None) -> DAPEvent:
        """Wait for the next ``event`` from the adapter."""
        return await self._await_event(self._watch(event), event, timeout)

    async def assert_stopped_location(
        self,
        reason: str,
        expected: Location,
        timeout: float | None = None,
    ) -> DAPResponse:
        """Wait for a stop with ``reason`` and check the top frame is at ``expected``."""
        return await self._assert_stopped(self._watch("stopped"), reason, expected, timeout)

    async def assert_output(
        self,
        category: str,
        expected: str,
        timeout: float | None = None,
    ) -> DAPEvent:
        """Wait until the ``category`` output received so far starts with ``expected``."""
        queue: asyncio.Queue[DAPEvent] = asyncio.Queue()
        listener = queue.put_nowait
        self.add_listener("output", listener)
        output = ""
        try:
            async with asyncio.timeout(self.timeout if timeout is None else timeout):
                while True:
                    event = await queue.get()
                    body = OutputEvent.model_validate(event.body or {})
                    if body.category != category:
                        continue
                    output += body.output or ""
                    if output.startswith(expected):
                        return event
                    if not expected.startswith(output):
                        raise AssertionError(
                            f"received output {output!r} is not a prefix of {expected!r}"
                        )
        except TimeoutError as e:
            raise DAPTimeoutError(
                f"No {category} output {expected!r} received (got {output!r})"
            ) from e
        finally:
            self.remove_listener("output", listener)

    async def _assert_stopped(
        self,
        waiter: asyncio.Future[DAPEvent],
        reason: str,
        expected: Location,
        timeout: float | None = None,
    ) -> DAPResponse:
        event = await self._await_event(waiter, "stopped", timeout)
        stopped = StoppedEvent.model_validate(event.body or {})
        if stopped.reason != reason:
            raise AssertionError(
                f"stopped event reason: expected {reason!r}, got {stopped.reason!r}"
            )
        if stopped.thread_id is None:
            raise AssertionError("stopped event has no threadId")

        response = await self.stack_trace_request(stopped.thread_id)
        frames = (response.body or {}).get("stackFrames") or []
        if not frames:
            raise AssertionError("stopped thread has an empty stack trace")

        frame = frames[0]
        _assert_location(
            {
                "path": (frame.get("source") or {}).get("path"),
                "line": frame.get("line"),
                "column": frame.get("column"),
            },
            expected,
            "stopped location",
        )
        return response

    @staticmethod
    def _verify_breakpoint(response: DAPResponse, location: Location) -> None:
        breakpoints = (response.body or {}).get("breakpoints") or []
        if len(breakpoints) != 1:
            raise AssertionError(f"expected one breakpoint, adapter returned {len(breakpoints)}")

        bp = breakpoints[0]
        verified = True if location.verified is None else location.verified
        if bool(bp.get("verified")) != verified:
            raise AssertionError(
                f"breakpoint verified: expected {verified}, got {bp.get('verified')}"
            )
        _assert_location(
            {
                "path": (bp.get("source") or {}).get("path"),
                "line": bp.get("line"),
                "column": bp.get("column"),
            },
            location,
            "breakpoint location",
        )

    # === Dispatch ===

    def _watch(self, event: str) -> asyncio.Future[DAPEvent]:
        future: asyncio.Future[DAPEvent] = asyncio.get_running_loop().create_future()
        self._event_waiters.setdefault(event, []).append(future)
        return future

    async def _await_event(
        self,
        future: asyncio.Future[DAPEvent],
        event: str,
        timeout: float | None = None,
    ) -> DAPEvent:
        timeout = self.timeout if timeout is None else timeout
        try:
            async with asyncio.timeout(timeout):
                return await future
        except TimeoutError as e:
            raise DAPTimeoutError(f"No '{event}' event received within {timeout}s") from e
        finally:
            waiters = self._event_waiters.get(event, [])
            if future in waiters:
                waiters.remove(future)

    async def _receive_loop(self, transport: DAPTransport) -> None:
        try:
            while transport.is_connected:
                message = await transport.receive()
                msg_type = message.get("type")
                if msg_type == "response":
                    self._handle_response(message)
                elif msg_type == "event":
                    await self._handle_event(message)
                else:
                    logger.debug("Ignoring %s message from adapter", msg_type)
        except DAPError as e:
            logger.debug("Adapter connection ended: %s", e)
            for future in self._pending_futures():
                future.set_exception(DAPConnectionError(f"Adapter connection lost: {e}"))

    def _handle_response(self, message: dict[str, Any]) -> None:
        try:
            response = DAPResponse.model_validate(message)
        except ValidationError:
            logger.warning("Dropping malformed response: %r", message)
            return

        logger.debug(
            "<- %s (request_seq=%d, success=%s)",
            response.command,
            response.request_seq,
            response.success,
        )
        future = self._pending_requests.get(response.request_seq)
        if future is not None and not future.done():
            future.set_result(response)

    async def _handle_event(self, message: dict[str, Any]) -> None:
        try:
            event = DAPEvent.model_validate(message)
        except ValidationError:
            logger.warning("Dropping malformed event: %r", message)
            return

        for waiter in self._event_waiters.pop(event.event, []):
            if not waiter.done():
                waiter.set_result(event)

        for listener in list(self._listeners.get(event.event, [])):
            try:
                result = listener(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Listener %r failed on '%s' event", listener, event.event)

    @property
    def capabilities(self) -> dict[str, Any]:
        """Adapter capabilities (available after initialize)."""
        return self._capabilities.copy()

    @property
    def is_connected(self) -> bool:
        return self._transport is not None and self._transport.is_connected


async def _all(*aws: Awaitable[Any]) -> list[Any]:
    """Run awaitables concurrently; on the first failure cancel the rest and re-raise it."""
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


def _same_path(actual: str, expected: str) -> bool:
    normalize = os.path.normcase
    return normalize(os.path.normpath(actual)) == normalize(os.path.normpath(expected))


def _assert_location(actual: dict[str, Any], expected: Location, what: str) -> None:
    """Compare the parts of ``actual`` that both sides specify."""
    if actual.get("path") is not None and not _same_path(actual["path"], expected.path):
        raise AssertionError(f"{what}: path {actual['path']!r} != {expected.path!r}")
    if actual.get("line") != expected.line:
        raise AssertionError(f"{what}: line {actual.get('line')} != {expected.line}")
    if expected.column is not None and actual.get("column") != expected.column:
        raise AssertionError(f"{what}: column {actual.get('column')} != {expected.column}")
