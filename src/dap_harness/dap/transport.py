"""DAP transport implementations.

- StdioTransport: spawn the adapter and talk over its stdin/stdout
- SocketTransport: connect to an adapter already listening on a TCP port
"""

from __future__ import annotations

import contextlib
import logging
import subprocess
from abc import ABC
from abc import abstractmethod
from typing import TYPE_CHECKING
from typing import Any

import anyio
from anyio.streams.buffered import BufferedByteReceiveStream

from dap_harness.dap.protocol import HEADER_SEPARATOR
from dap_harness.dap.protocol import decode_message
from dap_harness.dap.protocol import encode_message
from dap_harness.dap.protocol import parse_content_length
from dap_harness.exceptions import DAPConnectionError
from dap_harness.exceptions import DAPProtocolError

if TYPE_CHECKING:
    from pathlib import Path

    from anyio.abc import ByteSendStream
    from anyio.abc import Process

logger = logging.getLogger(__name__)


class DAPTransport(ABC):
    """Abstract base class for DAP transports."""

    @abstractmethod
    async def connect(self) -> None:
        """Establish connection to the debug adapter."""

    @abstractmethod
    async def disconnect(self) -> None:
        """Close connection to the debug adapter."""

    @abstractmethod
    async def send(self, message: dict[str, Any]) -> None:
        """Send a message to the debug adapter."""

    @abstractmethod
    async def receive(self) -> dict[str, Any]:
        """Receive a message from the debug adapter."""

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Check if the transport is connected."""


class FramedStreamTransport(DAPTransport):
    """Content-Length framing over a pair of byte streams.

    Subclasses open the streams in ``connect`` and hand them to ``_attach``.
    """

    def __init__(self) -> None:
        self._reader: BufferedByteReceiveStream | None = None
        self._writer: ByteSendStream | None = None
        self._read_buffer = b""

    def _attach(self, reader: Any, writer: ByteSendStream) -> None:
        self._reader = BufferedByteReceiveStream(reader)
        self._writer = writer
        self._read_buffer = b""

    def _detach(self) -> None:
        self._reader = None
        self._writer = None
        self._read_buffer = b""

    async def send(self, message: dict[str, Any]) -> None:
        """Frame and write a message."""
        if self._writer is None:
            raise DAPConnectionError("Transport not connected")
        await self._writer.send(encode_message(message))

    async def receive(self) -> dict[str, Any]:
        """Read the next complete message."""
        header = await self._read_until_separator()
        content = await self._read_exactly(parse_content_length(header))
        return decode_message(content)

    async def _fill(self, what: str) -> None:
        if self._reader is None:
            raise DAPConnectionError("Transport not connected")
        try:
            chunk = await self._reader.receive(4096)
        except (anyio.EndOfStream, anyio.ClosedResourceError) as e:
            raise DAPProtocolError(f"Connection closed while reading {what}") from e
        self._read_buffer += chunk

    async def _read_until_separator(self) -> bytes:
        while HEADER_SEPARATOR not in self._read_buffer:
            await self._fill("header")

        header, _, self._read_buffer = self._read_buffer.partition(HEADER_SEPARATOR)
        return header

    async def _read_exactly(self, n: int) -> bytes:
        while len(self._read_buffer) < n:
            await self._fill("content")

        result = self._read_buffer[:n]
        self._read_buffer = self._read_buffer[n:]
        return result


class StdioTransport(FramedStreamTransport):
    """Spawn the adapter as a subprocess and use its stdio."""

    def __init__(
        self,
        command: list[str],
        cwd: Path | str | None = None,
    ) -> None:
        """Initialize stdio transport.

        Args:
            command: Command that starts the adapter (e.g. ["node", "./out/src/nodeDebug.js"])
            cwd: Working directory for the subprocess
        """
        super().__init__()
        self._command = command
        self._cwd = cwd
        self._process: Process | None = None

    async def connect(self) -> None:
        """Spawn the debug adapter subprocess."""
        if self.is_connected:
            return

        logger.debug("Spawning adapter: %s", " ".join(self._command))
        try:
            self._process = await anyio.open_process(
                self._command,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
                cwd=self._cwd,
            )
        except OSError as e:
            raise DAPConnectionError(f"Failed to spawn adapter: {e}") from e

        assert self._process.stdin is not None
        assert self._process.stdout is not None
        self._attach(self._process.stdout, self._process.stdin)

    async def disconnect(self) -> None:
        """Terminate the adapter subprocess."""
        if self._process is not None:
            with contextlib.suppress(ProcessLookupError):
                self._process.terminate()
            with anyio.move_on_after(2) as scope:
                await self._process.wait()
            if scope.cancelled_caught:
                with contextlib.suppress(ProcessLookupError):
                    self._process.kill()
            await self._process.aclose()
            self._process = None

        self._detach()

    @property
    def is_connected(self) -> bool:
        """Check if the subprocess is running."""
        return self._process is not None and self._writer is not None


class SocketTransport(FramedStreamTransport):
    """Connect to an adapter server over TCP."""

    def __init__(self, host: str, port: int) -> None:
        super().__init__()
        self._host = host
        self._port = port

    async def connect(self) -> None:
        """Connect to the debug adapter socket."""
        if self.is_connected:
            return

        logger.debug("Connecting to adapter at %s:%d", self._host, self._port)
        try:
            stream = await anyio.connect_tcp(self._host, self._port)
        except OSError as e:
            raise DAPConnectionError(f"Failed to connect to {self._host}:{self._port}: {e}") from e
        self._attach(stream, stream)

    async def disconnect(self) -> None:
        """Close the socket connection."""
        if self._writer is not None:
            await self._writer.aclose()
        self._detach()

    @property
    def is_connected(self) -> bool:
        """Check if the socket is connected."""
        return self._writer is not None
