"""Listener - accepts a single inbound connection and relays it to stdin/stdout"""

import logging
import socket
from typing import BinaryIO, Optional, Tuple

from ..proxy_core.exceptions import ConnectError
from ..proxy_core.utils import join_host_port, parse_port
from ..proxy_engine.base import close_quietly
from .cli_base import print_info, print_success
from .relay import RelayStats, relay


class Listener:
    """Listens on ``port`` (all interfaces by default) for one client"""

    def __init__(self, port: int, host: str = "", verbose: bool = False,
                 logger: Optional[logging.Logger] = None):
        self.port = parse_port(port) if port else 0
        self.host = host
        self.verbose = verbose
        self.logger = logger or logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self._server: Optional[socket.socket] = None

    @property
    def address(self) -> str:
        return join_host_port(self.host, self.port)

    def bind(self) -> int:
        """Open the listening socket; returns the bound port"""
        if self._server is not None:
            return self.port

        server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            server.bind((self.host, self.port))
            server.listen(1)
        except OSError as e:
            close_quietly(server)
            raise ConnectError(f"failed to listen on {self.address}: {e}",
                               self.address, e, "LISTEN_FAILED") from e

        self._server = server
        self.port = server.getsockname()[1]
        self.logger.debug(f"Listening on {self.address}")
        return self.port

    def accept(self) -> Tuple[socket.socket, Tuple]:
        """Block until one client connects"""
        self.bind()
        try:
            return self._server.accept()
        except OSError as e:
            raise ConnectError(f"failed to accept connection on {self.address}: {e}",
                               self.address, e, "ACCEPT_FAILED") from e

    def serve(self, stdin: BinaryIO, stdout: BinaryIO) -> RelayStats:
        """Accept one connection, relay it, then stop listening"""
        try:
            self.bind()
            print_info(f"Listening on port {self.port}...")

            conn, peer = self.accept()
            try:
                if self.verbose:
                    print_info(f"Connection from {join_host_port(peer[0], peer[1])}")
                print_success("Connection established. Press Ctrl+C to close.")
                stats = relay(conn, stdin, stdout)
            finally:
                close_quietly(conn)

            if self.verbose:
                print_info("Connection closed")
            return stats
        finally:
            self.close()

    def close(self) -> None:
        close_quietly(self._server)
        self._server = None

    def __enter__(self) -> 'Listener':
        self.bind()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
