"""Proxy Core Models - Proxy specifications, dial settings and scan results"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional
from urllib.parse import unquote, urlparse

from .constants import (
    DEFAULT_CONNECT_TIMEOUT, DEFAULT_PROXY_PORTS, DEFAULT_USER_AGENT,
    MAX_PORT, MIN_PORT
)
from .exceptions import ConfigurationError


# ===============================================================================
# ENUMS
# ===============================================================================

class ProxyProtocol(Enum):
    """Supported proxy protocols"""
    DIRECT = "direct"
    HTTP = "http"
    HTTPS = "https"
    SOCKS5 = "socks5"
    SOCKS5H = "socks5h"


# ===============================================================================
# PROXY SPECIFICATION
# ===============================================================================

@dataclass(frozen=True)
class ProxySpec:
    """Parsed proxy URL: scheme://[user[:password]@]host[:port]"""
    protocol: ProxyProtocol
    host: str
    port: Optional[int] = None
    username: Optional[str] = None
    password: Optional[str] = None

    @classmethod
    def from_url(cls, proxy_url: str) -> 'ProxySpec':
        """Parse a proxy URL, raising ConfigurationError when unusable"""
        try:
            parsed = urlparse(proxy_url.strip())
            port = parsed.port
        except ValueError as e:
            raise ConfigurationError(f"invalid proxy URL: {e}",
                                     "INVALID_PROXY_URL", proxy_url) from e

        scheme = parsed.scheme.lower()
        try:
            protocol = ProxyProtocol(scheme)
        except ValueError:
            protocol = None
        if protocol is None or protocol == ProxyProtocol.DIRECT:
            raise ConfigurationError(f"unsupported proxy scheme: {scheme!r}",
                                     "UNSUPPORTED_SCHEME", proxy_url)

        if not parsed.hostname:
            raise ConfigurationError("invalid proxy URL: missing host",
                                     "INVALID_PROXY_URL", proxy_url)

        if port is not None and not MIN_PORT <= port <= MAX_PORT:
            raise ConfigurationError(f"invalid proxy URL: port {port} out of range",
                                     "INVALID_PROXY_URL", proxy_url)

        username = password = None
        if parsed.username is not None:
            username = unquote(parsed.username)
            password = unquote(parsed.password) if parsed.password is not None else ""

        return cls(protocol=protocol, host=parsed.hostname, port=port,
                   username=username, password=password)

    @property
    def has_credentials(self) -> bool:
        return self.username is not None

    @property
    def effective_port(self) -> Optional[int]:
        """Explicit port, or the scheme default when one exists"""
        if self.port is not None:
            return self.port
        return DEFAULT_PROXY_PORTS.get(self.protocol.value)

    @property
    def address(self) -> str:
        port = self.effective_port
        host = f"[{self.host}]" if ':' in self.host else self.host
        return f"{host}:{port}" if port is not None else host

    def redacted_url(self) -> str:
        """URL form safe for logs (password masked)"""
        auth = ""
        if self.has_credentials:
            auth = f"{self.username}:***@" if self.password else f"{self.username}@"
        return f"{self.protocol.value}://{auth}{self.address}"


# ===============================================================================
# DIAL / TLS SETTINGS
# ===============================================================================

@dataclass(frozen=True)
class DialConfig:
    """Settings shared read-only by all dialers during one dial"""
    connect_timeout: Optional[float] = DEFAULT_CONNECT_TIMEOUT
    tls_verify: bool = True
    verbose: bool = False
    user_agent: str = DEFAULT_USER_AGENT
    ca_file: Optional[str] = None

    @property
    def timeout(self) -> float:
        """Connect timeout, with zero/None meaning the default"""
        return self.connect_timeout or DEFAULT_CONNECT_TIMEOUT


@dataclass(frozen=True)
class TLSSessionConfig:
    """Per-dial TLS client settings"""
    server_name: str
    skip_verify: bool = False
    ca_file: Optional[str] = None

    @classmethod
    def for_host(cls, host: str, config: DialConfig,
                 ca_file: Optional[str] = None) -> 'TLSSessionConfig':
        """TLS settings for ``host``; an explicit ca_file wins over the dial config"""
        return cls(server_name=host, skip_verify=not config.tls_verify,
                   ca_file=ca_file or config.ca_file)


@dataclass(frozen=True)
class TLSSessionInfo:
    """Negotiated TLS parameters, for diagnostics only"""
    server_name: str
    version: Optional[str] = None
    cipher: Optional[str] = None


# ===============================================================================
# PORT SCANNING
# ===============================================================================

@dataclass(frozen=True)
class ScanTarget:
    """Host plus inclusive port range to probe"""
    host: str
    start_port: int
    end_port: int

    def __post_init__(self):
        if not self.host:
            raise ConfigurationError("scan target host is empty", "INVALID_TARGET")
        if not (MIN_PORT <= self.start_port <= self.end_port <= MAX_PORT):
            raise ConfigurationError(
                f"invalid port range: {self.start_port}-{self.end_port}",
                "INVALID_PORT_RANGE", f"{self.start_port}-{self.end_port}"
            )

    @property
    def ports(self) -> List[int]:
        return list(range(self.start_port, self.end_port + 1))

    @property
    def port_count(self) -> int:
        return self.end_port - self.start_port + 1

    @property
    def is_single_port(self) -> bool:
        return self.start_port == self.end_port


@dataclass(frozen=True)
class ScanResult:
    """Outcome of probing one port"""
    port: int
    open: bool
    latency: float
    error: Optional[BaseException] = field(default=None, compare=False)

    @property
    def latency_ms(self) -> float:
        return self.latency * 1000.0

    @property
    def error_message(self) -> Optional[str]:
        return str(self.error) if self.error is not None else None
