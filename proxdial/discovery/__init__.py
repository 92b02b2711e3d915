"""
ProxDial Discovery
==================

Concurrent TCP port scanning over a contiguous range.
"""

from .port_scanner import PortScanner, check_port

__all__ = [
    'PortScanner',
    'check_port'
]
