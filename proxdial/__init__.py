"""
proxdial - outbound connections through HTTP, HTTPS and SOCKS5 proxies,
optional TLS on top, and a concurrent TCP port scanner.
"""

__version__ = "1.0.0"
