"""
Connector - dial a target through the configured route and optionally
upgrade the result to TLS with the target host as server name
"""

import logging
import socket
from typing import Optional

from ..proxy_core.models import DialConfig, TLSSessionConfig
from ..proxy_core.utils import split_host_port
from .factory import create_dialer
from .tls import TLSWrapper


def target_host(address: str) -> str:
    """Host part of a dial address, or the whole address when it has no port"""
    try:
        host, _ = split_host_port(address)
    except ValueError:
        return address
    return host


def open_connection(address: str, proxy_url: Optional[str] = None,
                    config: Optional[DialConfig] = None, tls: bool = False,
                    ca_file: Optional[str] = None,
                    logger: Optional[logging.Logger] = None) -> socket.socket:
    """Factory -> dial("tcp") -> optional TLS upgrade. The caller owns the result."""
    config = config or DialConfig()
    dialer = create_dialer(proxy_url, config, logger)

    sock = dialer.dial("tcp", address)
    if not tls:
        return sock

    session = TLSSessionConfig.for_host(target_host(address), config, ca_file)
    return TLSWrapper(session, verbose=config.verbose, logger=logger).wrap(sock, config.timeout)
