"""Dialer Factory - selects the dialer implementation for a proxy URL"""

import logging
from typing import Dict, Optional, Type

from ..proxy_core.models import DialConfig, ProxyProtocol, ProxySpec
from .base import Dialer
from .direct import DirectDialer
from .http_connect import HTTPConnectDialer
from .https_connect import HTTPSConnectDialer
from .socks5 import SOCKS5Dialer

logger = logging.getLogger(__name__)

# socks5h maps onto the same dialer; host names are always resolved by the proxy
DIALER_CLASSES: Dict[ProxyProtocol, Type[Dialer]] = {
    ProxyProtocol.HTTP: HTTPConnectDialer,
    ProxyProtocol.HTTPS: HTTPSConnectDialer,
    ProxyProtocol.SOCKS5: SOCKS5Dialer,
    ProxyProtocol.SOCKS5H: SOCKS5Dialer,
}


def create_dialer(proxy_url: Optional[str] = None, config: Optional[DialConfig] = None,
                  logger: Optional[logging.Logger] = None) -> Dialer:
    """Build the dialer for ``proxy_url``; no proxy means a direct dialer.

    Raises ConfigurationError for unparsable URLs and unsupported schemes.
    No network I/O happens here.
    """
    config = config or DialConfig()
    if not proxy_url or not proxy_url.strip():
        return DirectDialer(config, logger)

    proxy = ProxySpec.from_url(proxy_url)
    dialer_class = DIALER_CLASSES[proxy.protocol]
    _log_selection(proxy, dialer_class)
    return dialer_class(proxy, config, logger)


def _log_selection(proxy: ProxySpec, dialer_class: Type[Dialer]) -> None:
    logger.debug(f"Using {dialer_class.__name__} for {proxy.redacted_url()}")
