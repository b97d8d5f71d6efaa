"""
Bidirectional stdio <-> WebSocket bridge.

Runs as ssh's ProxyCommand: bytes read from stdin are sent as binary
messages to the EC2 Instance Connect Endpoint and the payload of every
message received is written to stdout.
"""

import sys
import logging
import threading

from typing import IO, Callable, List, Optional

from websockets.exceptions import ConnectionClosedOK, InvalidHandshake, InvalidStatus, InvalidURI
from websockets.sync.client import ClientConnection, connect

from .common import EC2SSHError

logger = logging.getLogger("ec2ssh.websocket-tunnel")

BUFFER_SIZE = 32 * 1024


class WebSocketError(EC2SSHError):
    """WebSocket handshake failed"""


class WebSocketReader:
    """
    File-like reader over the incoming message stream.

    Message boundaries are dropped, a normal close reads as EOF.
    """

    def __init__(self, conn: ClientConnection) -> None:
        self.conn = conn
        self._buffer = b""
        self._lock = threading.Lock()

    def read(self, size: int = -1) -> bytes:
        with self._lock:
            while not self._buffer:
                try:
                    message = self.conn.recv()
                except ConnectionClosedOK:
                    return b""
                if isinstance(message, str):
                    message = message.encode("utf-8")
                self._buffer = message

            if size < 0 or size >= len(self._buffer):
                data, self._buffer = self._buffer, b""
            else:
                data, self._buffer = self._buffer[:size], self._buffer[size:]
            return data


class WebSocketWriter:
    def __init__(self, conn: ClientConnection) -> None:
        self.conn = conn

    def write(self, data: bytes) -> int:
        # One binary message per chunk
        self.conn.send(bytes(data))
        return len(data)

    def flush(self) -> None:
        pass


class WebSocketTunnel:
    def __init__(self, conn: ClientConnection) -> None:
        self.conn = conn

    def reader(self) -> WebSocketReader:
        return WebSocketReader(self.conn)

    def writer(self) -> WebSocketWriter:
        return WebSocketWriter(self.conn)

    def close(self) -> None:
        self.conn.close()


def dial(uri: str) -> WebSocketTunnel:
    try:
        conn = connect(uri, compression=None, max_size=None)
    except InvalidStatus as e:
        response = e.response
        raise WebSocketError(f"bad handshake: {response.status_code} {response.reason_phrase}") from e
    except (InvalidHandshake, InvalidURI) as e:
        raise WebSocketError(f"bad handshake: {e}") from e
    logger.debug("WebSocket connected")
    return WebSocketTunnel(conn)


def copy_stream(src: IO[bytes], dst: IO[bytes], errors: List[BaseException]) -> None:
    try:
        while True:
            chunk = src.read(BUFFER_SIZE)
            if not chunk:
                break
            dst.write(chunk)
            dst.flush()
    except Exception as e:  # reported by run_with_io()
        errors.append(e)


def run_with_io(
    uri: str,
    dial: Callable[[str], WebSocketTunnel],
    stdin: IO[bytes],
    stdout: IO[bytes],
    stderr: IO[str],
) -> None:
    """
    Dial uri and copy stdin -> socket and socket -> stdout until both end.

    Errors of either direction are reported to stderr and don't fail
    the tunnel, only a failed dial raises.
    """
    tunnel = dial(uri)
    errors: List[BaseException] = []

    try:
        tr_inbound = threading.Thread(target=copy_stream, args=[tunnel.reader(), stdout, errors])
        tr_inbound.daemon = True
        tr_inbound.start()

        tr_outbound = threading.Thread(target=copy_stream, args=[stdin, tunnel.writer(), errors])
        tr_outbound.daemon = True
        tr_outbound.start()

        tr_inbound.join()
        tr_outbound.join()
    finally:
        tunnel.close()

    for error in errors:
        stderr.write(f"ec2ssh: error: {error}\n")
        stderr.flush()


def run(uri: str, stdin: Optional[IO[bytes]] = None, stdout: Optional[IO[bytes]] = None) -> None:
    """
    Run the tunnel on the process stdio.
    """
    # Unbuffered stdin, read() returns whatever is available
    if stdin is None:
        stdin = sys.stdin.buffer.raw
    if stdout is None:
        stdout = sys.stdout.buffer
    run_with_io(uri, dial, stdin, stdout, sys.stderr)
