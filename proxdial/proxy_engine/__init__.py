from .base import Dialer, deadline, open_tcp_connection, SUPPORTED_NETWORKS
from .direct import DirectDialer
from .http_connect import HTTPConnectDialer, is_connect_success
from .https_connect import HTTPSConnectDialer
from .socks5 import SOCKS5Dialer
from .tls import TLSWrapper
from .factory import create_dialer
from .connector import open_connection

__all__ = [
    "Dialer", "deadline", "open_tcp_connection", "SUPPORTED_NETWORKS",
    "DirectDialer", "HTTPConnectDialer", "is_connect_success",
    "HTTPSConnectDialer", "SOCKS5Dialer", "TLSWrapper",
    "create_dialer", "open_connection"
]
