"""
=============================================================================
CLIENT CONNECTION
=============================================================================

Wraps one accepted socket. The bridge serves EXACTLY ONE request per
connection, so the lifecycle is a straight line with no keep-alive loop:

    ┌─────┐   ┌─────────┐   ┌────────────┐   ┌─────────┐   ┌─────────┐   ┌────────┐
    │ NEW │──►│ READING │──►│ PROCESSING │──►│ WRITING │──►│ CLOSING │──►│ CLOSED │
    └─────┘   └────┬────┘   └────────────┘   └─────────┘   └─────────┘   └────────┘
                   │                                             ▲
                   └──── EOF / timeout / too large ──────────────┘

=============================================================================
FRAMING
=============================================================================

TCP delivers bytes in arbitrary chunks, so reading happens in two phases:

    1. recv() until the buffer contains "\\r\\n\\r\\n" (end of headers)
    2. recv() until Content-Length body bytes have arrived

Only Content-Length framing is supported; chunked request bodies are
not used by the plugin.

=============================================================================
"""

import socket
import time
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional
import uuid


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    NEW = "new"
    READING = "reading"
    PROCESSING = "processing"
    WRITING = "writing"
    CLOSING = "closing"
    CLOSED = "closed"


class RequestTooLarge(ValueError):
    """The client sent more than max_request_size bytes."""


@dataclass
class Connection:
    """
    A single client connection.

    Attributes:
        socket: The accepted client socket.
        address: Client's (ip, port) tuple.
        id: Short connection identifier for log lines.
        state: Current lifecycle state.
        created_at: When the connection was accepted.
    """

    socket: socket.socket
    address: tuple[str, int]

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)

    buffer_size: int = 8192
    timeout: float = 30.0
    max_request_size: int = 10 * 1024 * 1024

    _buffer: bytes = field(default=b"", repr=False)

    def __post_init__(self):
        self.socket.setblocking(True)
        if self.timeout:
            self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def age(self) -> float:
        """Seconds since the connection was accepted."""
        return time.time() - self.created_at

    def read_request(self) -> Optional[bytes]:
        """
        Read one complete HTTP request.

        Returns:
            The request bytes (headers plus Content-Length body), or
            None if the client closed before sending a full header block.

        Raises:
            TimeoutError: The client stalled for longer than `timeout`.
            RequestTooLarge: The request exceeds max_request_size.
        """
        self.state = ConnectionState.READING

        try:
            while b"\r\n\r\n" not in self._buffer:
                chunk = self._recv()
                if not chunk:
                    return None
                self._append(chunk)

            header_end = self._buffer.find(b"\r\n\r\n")
            body_start = header_end + 4
            content_length = self._parse_content_length(self._buffer[:header_end])

            if body_start + content_length > self.max_request_size:
                raise RequestTooLarge(
                    f"Request too large: {body_start + content_length} bytes"
                )

            while len(self._buffer) - body_start < content_length:
                chunk = self._recv()
                if not chunk:
                    # Short body; the parser reports it as incomplete.
                    break
                self._append(chunk)

            request_data = self._buffer[:body_start + content_length]
            self._buffer = b""
            self.state = ConnectionState.PROCESSING
            return request_data

        except socket.timeout:
            raise TimeoutError("Request read timeout")

    def _append(self, chunk: bytes) -> None:
        self._buffer += chunk
        if len(self._buffer) > self.max_request_size:
            raise RequestTooLarge(f"Request too large: {len(self._buffer)} bytes")

    def _recv(self) -> bytes:
        try:
            return self.socket.recv(self.buffer_size)
        except (ConnectionResetError, BrokenPipeError):
            return b""

    @staticmethod
    def _parse_content_length(headers: bytes) -> int:
        """
        Pull Content-Length out of the raw header block.

        Needed before the request is parsed, to know how much body to
        read. A missing or malformed value reads as 0; the parser then
        rejects the malformed header properly.
        """
        header_str = headers.decode("utf-8", errors="replace").lower()
        for line in header_str.split("\r\n"):
            if line.startswith("content-length:"):
                try:
                    return max(0, int(line.split(":", 1)[1].strip()))
                except ValueError:
                    return 0
        return 0

    def send_response(self, data: bytes) -> bool:
        """
        Send the full response with sendall().

        Returns:
            True if sent, False if the client went away.
        """
        self.state = ConnectionState.WRITING
        try:
            self.socket.sendall(data)
            return True
        except OSError as e:
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False

    def close(self):
        """
        Half-close, drain briefly, then release the socket.

        shutdown(SHUT_WR) sends FIN so the client sees the end of the
        response; draining avoids a RST that could discard it.
        """
        if self.state == ConnectionState.CLOSED:
            return

        self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass

        try:
            self.socket.settimeout(0.5)
            while self.socket.recv(1024):
                pass
        except OSError:
            pass

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.age:.3f}s")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
