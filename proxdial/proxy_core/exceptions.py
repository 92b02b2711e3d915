"""
ProxDial Custom Exceptions
Standardized exception hierarchy for dialing, tunneling and scanning
"""

from datetime import datetime
from typing import Any, Dict, Optional


class ProxDialError(Exception):
    """Base exception for all ProxDial errors"""

    def __init__(self, message: str, error_code: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.context = context or {}
        self.timestamp = datetime.utcnow()

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/reporting"""
        return {
            'error_type': self.__class__.__name__,
            'error_code': self.error_code,
            'message': self.message,
            'context': self.context,
            'timestamp': self.timestamp.isoformat()
        }


class ConfigurationError(ProxDialError):
    """Invalid proxy URL, unsupported scheme, bad port or port range"""

    def __init__(self, message: str, error_code: Optional[str] = None,
                 value: Optional[Any] = None):
        context = {}
        if value is not None:
            context['value'] = str(value)
        super().__init__(message, error_code or "CONFIG_ERROR", context)


class UnsupportedNetworkError(ConfigurationError):
    """Dial requested on a network other than stream TCP"""

    def __init__(self, network: str):
        super().__init__(f"unsupported network type: {network}",
                         "UNSUPPORTED_NETWORK", network)


class ConnectError(ProxDialError):
    """TCP connection could not be established"""

    def __init__(self, message: str, address: Optional[str] = None,
                 cause: Optional[BaseException] = None,
                 error_code: Optional[str] = None):
        context = {}
        if address:
            context['address'] = address
        if cause is not None:
            context['cause'] = str(cause)
        super().__init__(message, error_code or "CONNECT_ERROR", context)


class DialTimeoutError(ConnectError):
    """A deadline-bounded step exceeded its budget"""

    def __init__(self, message: str, address: Optional[str] = None,
                 timeout: Optional[float] = None,
                 cause: Optional[BaseException] = None):
        super().__init__(message, address, cause, "TIMEOUT")
        if timeout is not None:
            self.context['timeout'] = timeout


class ProtocolError(ProxDialError):
    """Proxy handshake rejected, truncated or malformed"""

    def __init__(self, message: str, error_code: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code or "PROTOCOL_ERROR", context)


class AuthError(ProtocolError):
    """Proxy refused the supplied credentials or offered no usable method"""

    def __init__(self, message: str, error_code: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code or "AUTH_ERROR", context)


class TLSError(ProxDialError):
    """TLS handshake or certificate verification failure"""

    def __init__(self, message: str, server_name: Optional[str] = None,
                 cause: Optional[BaseException] = None):
        context = {}
        if server_name:
            context['server_name'] = server_name
        if cause is not None:
            context['cause'] = str(cause)
        super().__init__(message, "TLS_ERROR", context)
