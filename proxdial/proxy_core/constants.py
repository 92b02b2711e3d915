"""
ProxDial Configuration Constants
Centralized constants to replace hardcoded values throughout the codebase
"""

# Default timeouts (in seconds)
DEFAULT_CONNECT_TIMEOUT = 30.0
DEFAULT_SCAN_TIMEOUT = 2.0

# Port scanner worker pool sizes
DEFAULT_SCAN_WORKERS = 100
SINGLE_PORT_WORKERS = 1

# Port bounds
MIN_PORT = 1
MAX_PORT = 65535

# Default proxy ports by scheme (SOCKS5 has none, a port is required)
DEFAULT_PROXY_PORTS = {
    'http': 8080,
    'https': 443,
}

# Target port used when the target address carries no port
DEFAULT_HTTP_TARGET_PORT = "80"
DEFAULT_HTTPS_TARGET_PORT = "443"

# HTTP CONNECT settings
DEFAULT_USER_AGENT = "proxdial/1.0"
MAX_RESPONSE_LINE = 8192
HTTPS_RESPONSE_BUFFER = 4096

# Logging configuration
DEFAULT_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DEFAULT_LOG_LEVEL = 'WARNING'
LOG_FILE_MAX_BYTES = 5 * 1024 * 1024
LOG_FILE_BACKUPS = 3

# Relay settings
RELAY_CHUNK_SIZE = 32 * 1024
