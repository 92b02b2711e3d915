"""Relay - copies bytes between a connected socket and a pair of binary streams"""

import logging
import socket
import ssl
import threading
from dataclasses import dataclass
from typing import BinaryIO

from urllib3.util.ssltransport import SSLTransport

from ..proxy_core.constants import RELAY_CHUNK_SIZE

logger = logging.getLogger(__name__)


@dataclass
class RelayStats:
    """Byte counters for one relay session"""
    bytes_sent: int = 0
    bytes_received: int = 0


def half_close(conn: socket.socket) -> None:
    """Signal EOF to the peer while still reading its reply.

    TLS connections are skipped: shutting down the write side of an SSLSocket
    also tears down the TLS session, and an SSLTransport has no write side of
    its own to shut down.
    """
    if isinstance(conn, (ssl.SSLSocket, SSLTransport)):
        return
    try:
        conn.shutdown(socket.SHUT_WR)
    except OSError as e:
        logger.debug(f"Half-close failed: {e}")


def _copy_input(conn: socket.socket, stdin: BinaryIO, stats: RelayStats) -> None:
    # read1 returns whatever is available instead of waiting for a full chunk
    read = getattr(stdin, 'read1', stdin.read)
    try:
        while True:
            data = read(RELAY_CHUNK_SIZE)
            if not data:
                break
            conn.sendall(data)
            stats.bytes_sent += len(data)
    except (OSError, ValueError) as e:
        logger.debug(f"Input copy stopped: {e}")
        return

    logger.debug(f"Input reached EOF after {stats.bytes_sent} bytes")
    half_close(conn)


def relay(conn: socket.socket, stdin: BinaryIO, stdout: BinaryIO) -> RelayStats:
    """Copy stdin -> conn and conn -> stdout until both directions are done.

    The input side runs on its own thread; once the socket side reaches EOF
    this waits for it to reach EOF on stdin (or fail on the socket) too.
    ``conn`` stays open, the caller owns it.
    """
    stats = RelayStats()
    upstream = threading.Thread(target=_copy_input, args=(conn, stdin, stats),
                                name="proxdial-relay-input", daemon=True)
    upstream.start()

    try:
        while True:
            data = conn.recv(RELAY_CHUNK_SIZE)
            if not data:
                break
            stdout.write(data)
            stdout.flush()
            stats.bytes_received += len(data)
    except OSError as e:
        logger.debug(f"Output copy stopped: {e}")

    upstream.join()
    logger.debug(f"Relay finished: sent={stats.bytes_sent} received={stats.bytes_received}")
    return stats
