from .models import (
    ProxyProtocol, ProxySpec, DialConfig, TLSSessionConfig, TLSSessionInfo,
    ScanTarget, ScanResult
)
from .exceptions import (
    ProxDialError, ConfigurationError, UnsupportedNetworkError, ConnectError,
    DialTimeoutError, ProtocolError, AuthError, TLSError
)
from .config import ConfigManager, ProxDialConfig
from .utils import (
    validate_port, split_host_port, join_host_port, parse_address,
    parse_port_range, basic_auth_token
)

__all__ = [
    "ProxyProtocol", "ProxySpec", "DialConfig", "TLSSessionConfig",
    "TLSSessionInfo", "ScanTarget", "ScanResult",
    "ProxDialError", "ConfigurationError", "UnsupportedNetworkError",
    "ConnectError", "DialTimeoutError", "ProtocolError", "AuthError", "TLSError",
    "ConfigManager", "ProxDialConfig",
    "validate_port", "split_host_port", "join_host_port", "parse_address",
    "parse_port_range", "basic_auth_token"
]
