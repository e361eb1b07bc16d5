"""Tests for the socket and stdio transports."""

from __future__ import annotations

import asyncio
import sys
from typing import TYPE_CHECKING

import pytest
import pytest_asyncio

from dap_harness.dap.protocol import encode_message
from dap_harness.dap.transport import SocketTransport
from dap_harness.dap.transport import StdioTransport
from dap_harness.exceptions import DAPConnectionError
from dap_harness.exceptions import DAPProtocolError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from collections.abc import Awaitable
    from collections.abc import Callable
    from pathlib import Path

    Handler = Callable[[asyncio.StreamReader, asyncio.StreamWriter], Awaitable[None]]

# Writes one framed empty object, then waits for stdin to close.
ECHO_ADAPTER = (
    "import sys\n"
    "sys.stdout.buffer.write(b'Content-Length: 2\\r\\n\\r\\n{}')\n"
    "sys.stdout.flush()\n"
    "sys.stdin.read()\n"
)


class AdapterServer:
    """Local TCP server standing in for an adapter started with --server."""

    def __init__(self) -> None:
        self.handler: Handler | None = None
        self.received = asyncio.Queue[bytes]()
        self.port = 0
        self._server: asyncio.Server | None = None

    async def start(self) -> None:
        self._server = await asyncio.start_server(self._serve, "127.0.0.1", 0)
        self.port = self._server.sockets[0].getsockname()[1]

    async def stop(self) -> None:
        assert self._server is not None
        self._server.close()
        await self._server.wait_closed()

    async def _serve(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        try:
            if self.handler is not None:
                await self.handler(reader, writer)
            else:
                self.received.put_nowait(await reader.read())
        finally:
            writer.close()


@pytest_asyncio.fixture
async def server() -> AsyncIterator[AdapterServer]:
    adapter_server = AdapterServer()
    await adapter_server.start()
    yield adapter_server
    await adapter_server.stop()


class TestSocketTransport:
    """Tests for SocketTransport."""

    @pytest.mark.asyncio
    async def test_send_frames_message(self, server: AdapterServer) -> None:
        """Test a sent message arrives with its Content-Length header."""
        transport = SocketTransport("127.0.0.1", server.port)
        await transport.connect()
        assert transport.is_connected

        message = {"seq": 1, "type": "request", "command": "threads"}
        await transport.send(message)
        await transport.disconnect()

        assert await asyncio.wait_for(server.received.get(), 1) == encode_message(message)
        assert not transport.is_connected

    @pytest.mark.asyncio
    async def test_receive_reassembles_split_messages(self, server: AdapterServer) -> None:
        """Test messages split and coalesced across reads come out whole."""
        first = encode_message({"seq": 1, "type": "event", "event": "initialized"})
        second = encode_message({"seq": 2, "type": "event", "event": "output", "body": {}})
        wire = first + second

        async def dribble(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
            for chunk in (wire[:5], wire[5:30], wire[30:]):
                writer.write(chunk)
                await writer.drain()
                await asyncio.sleep(0.01)

        server.handler = dribble
        transport = SocketTransport("127.0.0.1", server.port)
        await transport.connect()
        try:
            assert (await transport.receive())["event"] == "initialized"
            assert (await transport.receive())["event"] == "output"
        finally:
            await transport.disconnect()

    @pytest.mark.asyncio
    async def test_closed_connection_is_protocol_error(self, server: AdapterServer) -> None:
        """Test the adapter going away mid-message is reported."""

        async def hang_up(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
            writer.write(b"Content-Length: 50\r\n\r\n{")
            await writer.drain()
            writer.close()

        server.handler = hang_up
        transport = SocketTransport("127.0.0.1", server.port)
        await transport.connect()
        try:
            with pytest.raises(DAPProtocolError, match="Connection closed while reading content"):
                await transport.receive()
        finally:
            await transport.disconnect()

    @pytest.mark.asyncio
    async def test_connect_refused(self) -> None:
        """Test an unreachable adapter raises a connection error."""
        probe = await asyncio.start_server(lambda r, w: None, "127.0.0.1", 0)
        port = probe.sockets[0].getsockname()[1]
        probe.close()
        await probe.wait_closed()

        transport = SocketTransport("127.0.0.1", port)
        with pytest.raises(DAPConnectionError, match=f"127.0.0.1:{port}"):
            await transport.connect()

    @pytest.mark.asyncio
    async def test_send_requires_connection(self) -> None:
        """Test sending before connect fails."""
        with pytest.raises(DAPConnectionError, match="not connected"):
            await SocketTransport("127.0.0.1", 1).send({"seq": 1})


class TestStdioTransport:
    """Tests for StdioTransport."""

    @pytest.mark.asyncio
    async def test_spawn_and_receive(self) -> None:
        """Test messages are read from the adapter's stdout."""
        transport = StdioTransport([sys.executable, "-c", ECHO_ADAPTER])
        await transport.connect()
        try:
            assert transport.is_connected
            assert await transport.receive() == {}
        finally:
            await transport.disconnect()
        assert not transport.is_connected

    @pytest.mark.asyncio
    async def test_spawn_failure(self, tmp_path: Path) -> None:
        """Test a missing adapter executable raises a connection error."""
        transport = StdioTransport([f"{tmp_path}/no-such-adapter"])
        with pytest.raises(DAPConnectionError, match="Failed to spawn adapter"):
            await transport.connect()
        assert not transport.is_connected
