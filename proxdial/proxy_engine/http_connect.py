"""
HTTP CONNECT Dialer - tunnels through a plaintext HTTP proxy

The proxy reply is accepted when its status line contains the substring
"200". This is looser than a status-code parse ("HTTP/1.1 1200 X" passes)
and is kept for compatibility with existing proxy deployments.
"""

import logging
import socket
from abc import abstractmethod
from typing import Optional, Tuple

from ..proxy_core.constants import DEFAULT_HTTP_TARGET_PORT, MAX_RESPONSE_LINE
from ..proxy_core.exceptions import ProtocolError
from ..proxy_core.models import DialConfig, ProxySpec
from ..proxy_core.utils import basic_auth_token, join_host_port, split_host_port
from .base import Dialer, deadline, guarded, open_tcp_connection


def is_connect_success(response: str) -> bool:
    """Substring check on "200", not a strict status-code parse"""
    return "200" in response


class BaseConnectDialer(Dialer):
    """Shared CONNECT request handling for the HTTP and HTTPS proxy dialers"""

    default_target_port = DEFAULT_HTTP_TARGET_PORT
    proxy_kind = "HTTP"

    def __init__(self, proxy: ProxySpec, config: Optional[DialConfig] = None,
                 logger: Optional[logging.Logger] = None):
        super().__init__(config, logger)
        self.proxy = proxy

    def build_connect_request(self, address: str) -> Tuple[bytes, str]:
        """Build the CONNECT request; returns (request bytes, target authority)"""
        try:
            host, port = split_host_port(address)
        except ValueError:
            host, port = address, self.default_target_port

        authority = join_host_port(host, port)
        lines = [
            f"CONNECT {authority} HTTP/1.1",
            f"Host: {authority}",
            f"User-Agent: {self.config.user_agent}",
        ]
        if self.proxy.has_credentials:
            token = basic_auth_token(self.proxy.username, self.proxy.password or "")
            lines.append(f"Proxy-Authorization: Basic {token}")

        request = "\r\n".join(lines) + "\r\n\r\n"
        return request.encode('utf-8'), authority

    def _dial(self, address: str) -> socket.socket:
        proxy_address = self.proxy.address
        self._trace(f"Connecting to {self.proxy_kind} proxy at {proxy_address}")

        request, authority = self.build_connect_request(address)
        sock = self._open_proxy_connection()

        with guarded(sock, proxy_address, self.timeout, "CONNECT handshake"):
            with deadline(sock, self.timeout):
                self._trace(f"Sending CONNECT request for {authority}")
                sock.sendall(request)
                self._read_response(sock)

        self._trace(f"Tunnel established to {address}")
        return sock

    def _open_proxy_connection(self) -> socket.socket:
        return open_tcp_connection(self.proxy.host, self.proxy.effective_port, self.timeout)

    @abstractmethod
    def _read_response(self, sock: socket.socket) -> None:
        """Read and check the proxy reply, raising ProtocolError on rejection"""


class HTTPConnectDialer(BaseConnectDialer):
    """HTTP CONNECT through a plaintext proxy, reading the reply line by line"""

    def _read_response(self, sock: socket.socket) -> None:
        # Unbuffered so bytes relayed right after the header block stay in the socket
        reader = sock.makefile('rb', buffering=0)
        try:
            raw_status = reader.readline(MAX_RESPONSE_LINE)
            if not raw_status:
                raise ProtocolError("failed to read proxy response: connection closed",
                                    "HTTP_CONNECT_TRUNCATED")

            status_line = raw_status.decode('latin-1').strip()
            self._trace(f"Proxy response: {status_line}")

            if not is_connect_success(status_line):
                rest = self._drain_headers(reader, best_effort=True)
                raise ProtocolError(
                    f"proxy connection failed: {status_line} {rest}".strip(),
                    "HTTP_CONNECT_REJECTED",
                    {'status_line': status_line, 'headers': rest}
                )

            self._drain_headers(reader, best_effort=False)
        finally:
            reader.close()

    def _drain_headers(self, reader, best_effort: bool) -> str:
        """Consume header lines up to the blank line terminating the reply"""
        lines = []
        while True:
            try:
                line = reader.readline(MAX_RESPONSE_LINE)
            except OSError:
                if best_effort:
                    break
                raise
            if not line:
                if best_effort:
                    break
                raise ProtocolError("error reading response headers: connection closed",
                                    "HTTP_CONNECT_TRUNCATED")
            if line in (b"\r\n", b"\n"):
                break
            lines.append(line.decode('latin-1'))
        return "".join(lines).strip()
