"""DAP message framing.

Every message is a JSON object preceded by HTTP-style headers:
    Content-Length: <length>\r\n
    \r\n
    <JSON payload>
"""

from __future__ import annotations

import json
from typing import Any

from dap_harness.exceptions import DAPProtocolError

HEADER_SEPARATOR = b"\r\n\r\n"


def encode_message(data: dict[str, Any]) -> bytes:
    """Frame a message for the wire.

    Args:
        data: The message to encode.

    Returns:
        Header and JSON body as bytes.
    """
    content = json.dumps(data, separators=(",", ":")).encode("utf-8")
    return f"Content-Length: {len(content)}\r\n\r\n".encode() + content


def parse_content_length(header_data: bytes) -> int:
    """Extract the body length from a header block.

    Args:
        header_data: Header bytes, without the trailing separator.

    Returns:
        The Content-Length value.

    Raises:
        DAPProtocolError: If the header is missing, malformed or negative.
    """
    try:
        header_str = header_data.decode("ascii")
    except UnicodeDecodeError as e:
        raise DAPProtocolError("Invalid header encoding") from e

    for line in header_str.split("\r\n"):
        name, _, value = line.partition(":")
        if name.strip().lower() != "content-length":
            continue
        try:
            length = int(value.strip())
        except ValueError as e:
            raise DAPProtocolError(f"Invalid Content-Length value: {line}") from e
        if length < 0:
            raise DAPProtocolError(f"Negative Content-Length: {length}")
        return length

    raise DAPProtocolError("Missing Content-Length header")


def decode_message(content: bytes) -> dict[str, Any]:
    """Parse a message body.

    Raises:
        DAPProtocolError: If the body is not a JSON object.
    """
    try:
        data = json.loads(content.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise DAPProtocolError(f"Invalid JSON in DAP message: {e}") from e

    if not isinstance(data, dict):
        raise DAPProtocolError(f"DAP message must be an object, got {type(data).__name__}")

    return data
