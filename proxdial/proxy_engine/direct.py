"""Direct Dialer - plain TCP connection without any proxy"""

import socket

from ..proxy_core.utils import parse_address
from .base import Dialer, open_tcp_connection


class DirectDialer(Dialer):
    """Connects straight to the target, bounded by the connect timeout"""

    def _dial(self, address: str) -> socket.socket:
        host, port = parse_address(address)
        self._trace(f"Connecting to {address} (direct)")
        return open_tcp_connection(host, port, self.timeout)
