"""
HTTPS CONNECT Dialer - HTTP CONNECT over a TLS connection to the proxy

Unlike the plaintext dialer, the proxy reply is taken from a single bounded
read. Replies larger than the buffer, or split across several TLS records,
are not reassembled.
"""

import socket

from ..proxy_core.constants import DEFAULT_HTTPS_TARGET_PORT, HTTPS_RESPONSE_BUFFER
from ..proxy_core.exceptions import ProtocolError
from ..proxy_core.models import TLSSessionConfig
from .base import open_tcp_connection
from .http_connect import BaseConnectDialer, is_connect_success
from .tls import TLSWrapper


class HTTPSConnectDialer(BaseConnectDialer):
    """HTTP CONNECT through a TLS-secured proxy"""

    default_target_port = DEFAULT_HTTPS_TARGET_PORT
    proxy_kind = "HTTPS"

    def _open_proxy_connection(self) -> socket.socket:
        plain = open_tcp_connection(self.proxy.host, self.proxy.effective_port, self.timeout)

        session = TLSSessionConfig.for_host(self.proxy.host, self.config)
        wrapper = TLSWrapper(session, verbose=self.config.verbose, logger=self.logger)
        tls_sock = wrapper.wrap(plain, self.timeout)

        self._trace("TLS connection established to proxy")
        return tls_sock

    def _read_response(self, sock: socket.socket) -> None:
        data = sock.recv(HTTPS_RESPONSE_BUFFER)
        if not data:
            raise ProtocolError("failed to read proxy response: connection closed",
                                "HTTP_CONNECT_TRUNCATED")

        response = data.decode('latin-1')
        first_line = response.split("\n")[0].strip()
        self._trace(f"Proxy response: {first_line}")

        if not is_connect_success(response):
            raise ProtocolError(f"proxy connection failed: {first_line}",
                                "HTTP_CONNECT_REJECTED",
                                {'status_line': first_line})
