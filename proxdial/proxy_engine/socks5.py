"""
SOCKS5 Dialer - RFC 1928 CONNECT with optional RFC 1929 username/password

The handshake itself is run by PySocks; this module maps its errors onto
the ProxDial hierarchy. Target host names are always sent as domain names
(rdns), so socks5 and socks5h behave the same way and resolution happens
on the proxy. IP literals are sent as IPv4/IPv6 addresses.
"""

import logging
import socket
from typing import Optional, Tuple

import socks

from ..proxy_core.exceptions import (
    AuthError, ConfigurationError, ConnectError, DialTimeoutError, ProtocolError,
    ProxDialError
)
from ..proxy_core.models import DialConfig, ProxySpec
from ..proxy_core.utils import ip_version, join_host_port, parse_address
from .base import Dialer, deadline, guarded

# Reply code -> stable error code
REPLY_ERRORS = {
    0x01: "SOCKS5_GENERAL_FAILURE",
    0x02: "SOCKS5_CONNECTION_NOT_ALLOWED",
    0x03: "SOCKS5_NETWORK_UNREACHABLE",
    0x04: "SOCKS5_HOST_UNREACHABLE",
    0x05: "SOCKS5_CONNECTION_REFUSED",
    0x06: "SOCKS5_TTL_EXPIRED",
    0x07: "SOCKS5_COMMAND_NOT_SUPPORTED",
    0x08: "SOCKS5_ADDRESS_TYPE_NOT_SUPPORTED",
}

# PySocks auth error message fragment -> stable error code
AUTH_ERRORS = (
    ("were rejected", "SOCKS5_NO_ACCEPTABLE_METHODS"),
    ("No username/password supplied", "SOCKS5_AUTH_REQUIRED"),
)

CLOSED_MESSAGE = "Connection closed unexpectedly"


def reply_error(code: Optional[int]) -> ProtocolError:
    """Map a non-zero SOCKS5 reply code onto its ProtocolError"""
    error_code = REPLY_ERRORS.get(code, "SOCKS5_UNKNOWN_REPLY")
    if code in REPLY_ERRORS:
        description = socks.SOCKS5_ERRORS[code].lower()
    elif code is None:
        description = "unparsable reply code"
    else:
        description = f"unknown reply code {code:#04x}"
    return ProtocolError(f"SOCKS5 connect failed: {description}", error_code,
                         {'reply_code': code})


def reply_code(message: str) -> Optional[int]:
    """PySocks reports replies as '0x05: Connection refused'"""
    try:
        return int(message.split(":", 1)[0], 16)
    except ValueError:
        return None


def check_target_host(host: str) -> None:
    """Reject host names that cannot travel in a SOCKS5 domain address"""
    if ip_version(host):
        return
    try:
        name = host.encode('idna')
    except UnicodeError as e:
        raise ConfigurationError(f"invalid host name for SOCKS5: {host}",
                                 "INVALID_ADDRESS", host) from e
    if len(name) > 255:
        raise ConfigurationError(f"host name too long for SOCKS5: {host}",
                                 "INVALID_ADDRESS", host)


def translate_error(error: socks.ProxyError, address: str, timeout: float) -> ProxDialError:
    """PySocks exception -> ProxDialError with a stable error code"""
    # handshake errors arrive wrapped as GeneralProxyError("Socket error", inner)
    while isinstance(error.socket_err, socks.ProxyError):
        error = error.socket_err
    message = error.msg
    cause = error.socket_err

    if isinstance(error, socks.SOCKS5AuthError):
        for fragment, error_code in AUTH_ERRORS:
            if fragment in message:
                return AuthError(f"SOCKS5 authentication failed: {message}", error_code)
        return AuthError("SOCKS5 authentication failed", "SOCKS5_AUTH_FAILED")

    if isinstance(error, socks.SOCKS5Error):
        return reply_error(reply_code(message))

    if isinstance(cause, socket.timeout):
        return DialTimeoutError(f"SOCKS5 handshake timed out after {timeout}s",
                                address, timeout, cause)

    if isinstance(error, socks.ProxyConnectionError):
        return ConnectError(f"failed to connect to SOCKS5 proxy {address}: {cause}",
                            address, cause)

    if CLOSED_MESSAGE in message:
        return ProtocolError("SOCKS5 proxy closed the connection during the handshake",
                             "SOCKS5_TRUNCATED")

    if cause is not None:
        return ConnectError(f"SOCKS5 handshake failed: {cause}", address, cause)

    return ProtocolError(f"SOCKS5 handshake failed: {message}", "SOCKS5_INVALID_RESPONSE")


class SOCKS5Dialer(Dialer):
    """Tunnels through a SOCKS5 proxy; the proxy socket becomes the tunnel"""

    def __init__(self, proxy: ProxySpec, config: Optional[DialConfig] = None,
                 logger: Optional[logging.Logger] = None):
        super().__init__(config, logger)
        if proxy.port is None:
            raise ConfigurationError("SOCKS5 proxy URL must include a port",
                                     "MISSING_PROXY_PORT", proxy.host)
        if proxy.has_credentials:
            for field_name, value in (('username', proxy.username), ('password', proxy.password or "")):
                if len(value.encode('utf-8')) > 255:
                    raise ConfigurationError(f"SOCKS5 {field_name} longer than 255 bytes",
                                             "INVALID_CREDENTIALS")
        self.proxy = proxy

    def create_socket(self) -> socks.socksocket:
        """Unconnected PySocks socket pointed at the proxy"""
        family = socket.AF_INET6 if ip_version(self.proxy.host) == 6 else socket.AF_INET
        sock = socks.socksocket(family, socket.SOCK_STREAM)
        sock.set_proxy(socks.SOCKS5, self.proxy.host, self.proxy.port, rdns=True,
                       username=self.proxy.username, password=self.proxy.password)
        return sock

    def _dial(self, address: str) -> socket.socket:
        host, port = parse_address(address)
        check_target_host(host)
        proxy_address = self.proxy.address
        self._trace(f"Connecting to SOCKS5 proxy at {proxy_address}")

        sock = self.create_socket()
        with guarded(sock, proxy_address, self.timeout, "SOCKS5 handshake"):
            with deadline(sock, self.timeout):
                try:
                    sock.connect((host, port))
                except socks.ProxyError as e:
                    raise translate_error(e, proxy_address, self.timeout) from e

        bound_host, bound_port = self._bound_address(sock)
        self._trace(f"SOCKS5 tunnel established to {address} "
                    f"(bound {join_host_port(bound_host, bound_port)})")
        return sock

    @staticmethod
    def _bound_address(sock: socks.socksocket) -> Tuple[str, int]:
        host, port = sock.get_proxy_sockname()
        if isinstance(host, bytes):
            host = host.decode('latin-1')
        return host, port
