"""TLS Wrapper - upgrades an established connection to a TLS client session"""

import logging
import socket
import ssl
from typing import Optional, Union

from urllib3.util.ssltransport import SSLTransport

from ..proxy_core.exceptions import TLSError
from ..proxy_core.models import TLSSessionConfig, TLSSessionInfo
from .base import close_quietly, deadline, guarded

TLSConnection = Union[ssl.SSLSocket, SSLTransport]


class TLSWrapper:
    """Runs a client handshake over a direct or tunneled socket"""

    def __init__(self, session: TLSSessionConfig, verbose: bool = False,
                 logger: Optional[logging.Logger] = None):
        self.session = session
        self.verbose = verbose
        self.logger = logger or logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def create_context(self) -> ssl.SSLContext:
        """Client context; verification is disabled only when skip_verify is set"""
        ssl_context = ssl.create_default_context(cafile=self.session.ca_file)
        if self.session.skip_verify:
            ssl_context.check_hostname = False
            ssl_context.verify_mode = ssl.CERT_NONE
        return ssl_context

    def wrap(self, sock: socket.socket, timeout: float) -> TLSConnection:
        """Handshake within ``timeout``; closes ``sock`` and raises TLSError on failure.

        A socket that already carries TLS (a tunnel through an HTTPS proxy)
        gets the inner session layered on top with SSLTransport, since
        SSLContext.wrap_socket cannot wrap an SSLSocket.
        """
        server_name = self.session.server_name
        self._trace(f"Starting TLS handshake with {server_name}")

        try:
            ssl_context = self.create_context()
        except (OSError, ValueError) as e:
            close_quietly(sock)
            raise TLSError(f"TLS setup failed: {e}", server_name, e) from e

        if isinstance(sock, ssl.SSLSocket):
            tls_conn = self._wrap_tunneled(ssl_context, sock, timeout)
        else:
            tls_conn = self._wrap_plain(ssl_context, sock, timeout)

        info = self.describe(tls_conn)
        self._trace(f"TLS established: version={info.version}, cipher={info.cipher}")
        return tls_conn

    def _wrap_plain(self, ssl_context: ssl.SSLContext, sock: socket.socket,
                    timeout: float) -> ssl.SSLSocket:
        server_name = self.session.server_name
        try:
            tls_sock = ssl_context.wrap_socket(
                sock,
                server_hostname=server_name or None,
                do_handshake_on_connect=False,
            )
        except (OSError, ValueError) as e:
            close_quietly(sock)
            raise TLSError(f"TLS setup failed: {e}", server_name, e) from e

        with guarded(tls_sock, server_name, timeout, "TLS handshake", tls=True):
            with deadline(tls_sock, timeout):
                tls_sock.do_handshake()
        return tls_sock

    def _wrap_tunneled(self, ssl_context: ssl.SSLContext, sock: ssl.SSLSocket,
                       timeout: float) -> SSLTransport:
        server_name = self.session.server_name
        # SSLTransport runs the handshake in its constructor
        with guarded(sock, server_name, timeout, "TLS handshake", tls=True):
            with deadline(sock, timeout):
                try:
                    return SSLTransport(sock, ssl_context, server_hostname=server_name or None)
                except ValueError as e:
                    raise TLSError(f"TLS setup failed: {e}", server_name, e) from e

    def describe(self, tls_conn: TLSConnection) -> TLSSessionInfo:
        """Negotiated protocol version and cipher suite, for reporting only"""
        cipher = tls_conn.cipher()
        return TLSSessionInfo(
            server_name=self.session.server_name,
            version=tls_conn.version(),
            cipher=cipher[0] if cipher else None,
        )

    def _trace(self, message: str) -> None:
        self.logger.log(logging.INFO if self.verbose else logging.DEBUG, message)
