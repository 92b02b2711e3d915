"""
Dialer Base - Common contract and socket plumbing for all dialers

Every dialer opens (or receives) a socket, performs its handshake under a
scoped deadline and either hands the socket to the caller or closes it
before raising. Low-level socket/ssl errors are mapped onto the ProxDial
exception hierarchy here so each dialer only deals with its own protocol.
"""

import logging
import socket
import ssl
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Iterator, Optional

from ..proxy_core.exceptions import (
    ConnectError, DialTimeoutError, ProxDialError, TLSError,
    UnsupportedNetworkError
)
from ..proxy_core.models import DialConfig
from ..proxy_core.utils import join_host_port

logger = logging.getLogger(__name__)

SUPPORTED_NETWORKS = ("tcp",)


# ===============================================================================
# SOCKET HELPERS
# ===============================================================================

def close_quietly(sock: Optional[socket.socket]) -> None:
    """Close a socket on an error path without masking the original error"""
    if sock is None:
        return
    try:
        sock.close()
    except OSError as e:
        logger.debug(f"Ignoring error while closing socket: {e}")


@contextmanager
def deadline(sock: socket.socket, seconds: float) -> Iterator[socket.socket]:
    """Bound every blocking call on ``sock`` by ``seconds``.

    The timeout is cleared again on exit, whether the block succeeded or
    raised, so steady-state connections are never time-bounded.
    """
    sock.settimeout(seconds)
    try:
        yield sock
    finally:
        if sock.fileno() != -1:
            sock.settimeout(None)


@contextmanager
def guarded(sock: socket.socket, address: str, timeout: float, step: str,
            tls: bool = False) -> Iterator[socket.socket]:
    """Close ``sock`` on any failure inside the block and translate the error.

    ``tls`` marks the block as a TLS handshake: transport failures inside it
    surface as TLSError instead of ConnectError.
    """
    try:
        yield sock
    except ProxDialError:
        close_quietly(sock)
        raise
    except socket.timeout as e:
        close_quietly(sock)
        raise DialTimeoutError(f"{step} timed out after {timeout}s",
                               address, timeout, e) from e
    except ssl.SSLError as e:
        close_quietly(sock)
        raise TLSError(f"TLS handshake failed: {e}", address, e) from e
    except OSError as e:
        close_quietly(sock)
        if tls:
            raise TLSError(f"TLS handshake failed: {e}", address, e) from e
        raise ConnectError(f"{step} failed: {e}", address, e) from e
    except BaseException:
        close_quietly(sock)
        raise


def open_tcp_connection(host: str, port: int, timeout: float) -> socket.socket:
    """Open a TCP connection bounded by ``timeout``; the returned socket is blocking"""
    address = join_host_port(host, port)
    try:
        sock = socket.create_connection((host, port), timeout=timeout)
    except socket.timeout as e:
        raise DialTimeoutError(f"connection to {address} timed out after {timeout}s",
                               address, timeout, e) from e
    except (OSError, ValueError) as e:
        # UnicodeError (a ValueError) means the host name cannot be IDNA-encoded
        raise ConnectError(f"failed to connect to {address}: {e}", address, e) from e

    sock.settimeout(None)
    return sock


# ===============================================================================
# DIALER CONTRACT
# ===============================================================================

class Dialer(ABC):
    """Common interface for direct and proxied connection establishment"""

    def __init__(self, config: Optional[DialConfig] = None,
                 logger: Optional[logging.Logger] = None):
        self.config = config or DialConfig()
        self.logger = logger or logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @property
    def timeout(self) -> float:
        return self.config.timeout

    def dial(self, network: str, address: str) -> socket.socket:
        """Connect to ``address``; the caller owns (and must close) the result"""
        if network not in SUPPORTED_NETWORKS:
            raise UnsupportedNetworkError(network)
        return self._dial(address)

    @abstractmethod
    def _dial(self, address: str) -> socket.socket:
        """Establish the connection - implemented by each dialer"""

    def _trace(self, message: str) -> None:
        """Verbose diagnostics: INFO when verbose is enabled, DEBUG otherwise"""
        level = logging.INFO if self.config.verbose else logging.DEBUG
        self.logger.log(level, message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(timeout={self.timeout})"
