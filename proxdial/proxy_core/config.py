"""Proxy Core Configuration - Simple Configuration Management"""

import json
import logging
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .constants import (
    DEFAULT_CONNECT_TIMEOUT, DEFAULT_LOG_LEVEL, DEFAULT_SCAN_TIMEOUT,
    DEFAULT_SCAN_WORKERS, DEFAULT_USER_AGENT
)
from .exceptions import ConfigurationError
from .models import DialConfig

logger = logging.getLogger(__name__)


# ===============================================================================
# CONFIGURATION DATA CLASS
# ===============================================================================

@dataclass
class ProxDialConfig:
    """Main configuration settings"""

    # Dial settings
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT
    tls_verify: bool = True
    proxy_url: str = ""
    user_agent: str = DEFAULT_USER_AGENT
    ca_file: Optional[str] = None

    # Scan settings
    scan_timeout: float = DEFAULT_SCAN_TIMEOUT
    scan_workers: int = DEFAULT_SCAN_WORKERS

    # Logging settings
    log_level: str = DEFAULT_LOG_LEVEL
    log_file: Optional[str] = None
    verbose: bool = False


# ===============================================================================
# CONFIGURATION MANAGER
# ===============================================================================

class ConfigManager:
    """Loads defaults from YAML/JSON and applies CLI overrides on top"""

    def __init__(self, config_path: Optional[str] = None, cli_overrides: Optional[Dict[str, Any]] = None):
        self.config_path = config_path or self._get_default_config_path()
        self.config = ProxDialConfig()
        self.cli_overrides = cli_overrides or {}
        self._load_config()

    def _get_default_config_path(self) -> str:
        """Get default configuration file path"""
        return str(Path.home() / ".proxdial" / "config.yaml")

    def _load_config(self):
        """Load configuration from file and apply CLI overrides"""
        if os.path.exists(self.config_path):
            try:
                with open(self.config_path, 'r', encoding='utf-8') as f:
                    if self.config_path.endswith('.json'):
                        data = json.load(f)
                    else:
                        data = yaml.safe_load(f) or {}
            except (OSError, ValueError, yaml.YAMLError) as e:
                raise ConfigurationError(
                    f"failed to load config from {self.config_path}: {e}",
                    "CONFIG_LOAD_FAILED", self.config_path
                ) from e

            if not isinstance(data, dict):
                raise ConfigurationError(
                    f"config file {self.config_path} must contain a mapping",
                    "CONFIG_LOAD_FAILED", self.config_path
                )

            for key, value in data.items():
                if hasattr(self.config, key):
                    setattr(self.config, key, value)
                else:
                    logger.warning(f"Ignoring unknown configuration key: {key}")
        else:
            logger.debug(f"No configuration file at {self.config_path}, using defaults")

        # Apply CLI overrides (highest priority)
        self._apply_cli_overrides()

    def _apply_cli_overrides(self):
        """Apply CLI parameter overrides to configuration"""
        for key, value in self.cli_overrides.items():
            if hasattr(self.config, key) and value is not None:
                setattr(self.config, key, value)

    def _generate_yaml_with_comments(self, data: Dict) -> str:
        """Generate YAML with helpful comments"""
        def optional(value: Optional[str]) -> str:
            return f'"{value}"' if value else "null"

        return f"""# ProxDial Configuration File
# Generated automatically with default values

# Dial Settings
connect_timeout: {data['connect_timeout']}          # Connect/handshake timeout (seconds)
tls_verify: {str(data['tls_verify']).lower()}              # Verify TLS certificates
proxy_url: "{data['proxy_url']}"                # Default proxy, e.g. socks5://127.0.0.1:1080
user_agent: "{data['user_agent']}"    # User-Agent sent with CONNECT
ca_file: {optional(data['ca_file'])}                 # Extra CA bundle (PEM) for proxy and target TLS

# Scan Settings
scan_timeout: {data['scan_timeout']}              # Per-port connect timeout (seconds)
scan_workers: {data['scan_workers']}              # Worker pool size for port ranges

# Logging Settings
log_level: "{data['log_level']}"           # DEBUG, INFO, WARNING, ERROR
log_file: {optional(data['log_file'])}                # Rotating debug log, e.g. ~/.proxdial/proxdial.log
verbose: {str(data['verbose']).lower()}                # Verbose dial diagnostics
"""

    def create_default_config(self) -> str:
        """Write a commented default configuration file; an existing file is kept"""
        path = Path(self.config_path).expanduser()
        if path.exists():
            raise ConfigurationError(f"configuration file already exists: {path}",
                                     "CONFIG_EXISTS", str(path))

        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            f.write(self._generate_yaml_with_comments(asdict(ProxDialConfig())))
        logger.info(f"Created default configuration at: {path}")
        return str(path)

    def validate(self) -> List[str]:
        """Validate configuration settings"""
        errors = []

        if self.config.connect_timeout is not None and self.config.connect_timeout < 0:
            errors.append("connect_timeout cannot be negative")
        if self.config.scan_timeout is not None and self.config.scan_timeout < 0:
            errors.append("scan_timeout cannot be negative")
        if self.config.scan_workers <= 0:
            errors.append("scan_workers must be positive")

        valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if str(self.config.log_level).upper() not in valid_log_levels:
            errors.append(f"log_level must be one of: {valid_log_levels}")

        return errors

    def to_dial_config(self) -> DialConfig:
        """Build the immutable DialConfig used by dialers"""
        return DialConfig(
            connect_timeout=self.config.connect_timeout,
            tls_verify=self.config.tls_verify,
            verbose=self.config.verbose,
            user_agent=self.config.user_agent,
            ca_file=self.config.ca_file,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary"""
        return asdict(self.config)

    def __repr__(self) -> str:
        return f"ConfigManager(config_path='{self.config_path}')"


# ===============================================================================
# CONFIGURATION UTILITIES
# ===============================================================================

def create_cli_overrides(verbose=None, timeout=None, insecure=None, proxy=None,
                         scan_timeout=None) -> Dict[str, Any]:
    """Create CLI overrides dictionary from common parameters"""
    overrides = {}

    if verbose:
        overrides['verbose'] = True
        overrides['log_level'] = 'DEBUG'

    if timeout:
        overrides['connect_timeout'] = timeout

    if scan_timeout:
        overrides['scan_timeout'] = scan_timeout

    if insecure:
        overrides['tls_verify'] = False

    if proxy:
        overrides['proxy_url'] = proxy

    return overrides
