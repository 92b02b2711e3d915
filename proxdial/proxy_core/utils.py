"""Proxy Core Utils - Address handling, port validation and auth helpers"""

import base64
import ipaddress
import logging
from typing import Optional, Tuple, Union

from .constants import MAX_PORT, MIN_PORT
from .exceptions import ConfigurationError
from .models import ScanTarget

# Configure logging
logger = logging.getLogger(__name__)


def validate_port(port: Union[int, str]) -> bool:
    """Validate if port number is valid"""
    try:
        port_int = int(port)
        return MIN_PORT <= port_int <= MAX_PORT
    except (ValueError, TypeError):
        return False


def split_host_port(address: str) -> Tuple[str, str]:
    """Split "host:port" or "[v6]:port" into host and port strings.

    Raises ValueError when the address carries no port or is malformed.
    """
    if address.startswith('['):
        end = address.find(']')
        if end < 0:
            raise ValueError(f"missing ']' in address: {address}")
        host = address[1:end]
        rest = address[end + 1:]
        if not rest.startswith(':'):
            raise ValueError(f"missing port in address: {address}")
        port = rest[1:]
        if ':' in port or '[' in host or ']' in port:
            raise ValueError(f"malformed address: {address}")
        return host, port

    if ':' not in address:
        raise ValueError(f"missing port in address: {address}")
    host, _, port = address.rpartition(':')
    if ':' in host:
        raise ValueError(f"too many colons in address: {address}")
    if '[' in address or ']' in address:
        raise ValueError(f"unexpected bracket in address: {address}")
    return host, port


def join_host_port(host: str, port: Union[int, str]) -> str:
    """Combine host and port, bracketing IPv6 literals"""
    if ':' in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def parse_port(port: Union[int, str]) -> int:
    """Parse a port number, raising ConfigurationError when out of range"""
    if not validate_port(port):
        raise ConfigurationError(f"invalid port: {port}", "INVALID_PORT", port)
    return int(port)


def parse_address(address: str) -> Tuple[str, int]:
    """Parse a dial address into (host, port) with a numeric port"""
    try:
        host, port = split_host_port(address)
    except ValueError as e:
        raise ConfigurationError(f"invalid address {address!r}: {e}",
                                 "INVALID_ADDRESS", address) from e
    return host, parse_port(port)


def ip_version(host: str) -> Optional[int]:
    """Return 4 or 6 for IP literals, None for host names"""
    try:
        return ipaddress.ip_address(host).version
    except ValueError:
        return None


def basic_auth_token(username: str, password: str) -> str:
    """Base64 token for an HTTP Basic Proxy-Authorization header"""
    raw = f"{username}:{password}".encode('utf-8')
    return base64.b64encode(raw).decode('ascii')


def parse_port_range(host: str, spec: str) -> ScanTarget:
    """Parse a scan port spec ("80" or "20-25") into a ScanTarget"""
    spec = spec.strip()
    if not spec:
        raise ConfigurationError("empty port range", "INVALID_PORT_RANGE", spec)

    start_s, sep, end_s = spec.partition('-')
    try:
        start = int(start_s)
    except ValueError:
        raise ConfigurationError(f"invalid start port: {start_s}",
                                 "INVALID_PORT_RANGE", spec)

    end = start
    if sep:
        try:
            end = int(end_s)
        except ValueError:
            raise ConfigurationError(f"invalid end port: {end_s}",
                                     "INVALID_PORT_RANGE", spec)

    return ScanTarget(host=host, start_port=start, end_port=end)
