"""
ProxDial CLI - netcat-style client with proxy support
=====================================================

    proxdial [OPTIONS] HOST PORT        connect and relay stdin/stdout
    proxdial -z [OPTIONS] HOST START[-END]  scan a port range
    proxdial -l -p PORT                 accept one connection and relay it
    proxdial --init-config [-c PATH]    write a default configuration file
"""

import sys
from typing import Optional

import click

from .. import __version__
from ..discovery.port_scanner import PortScanner
from ..proxy_core.config import ConfigManager, create_cli_overrides
from ..proxy_core.exceptions import ConfigurationError, ProxDialError
from ..proxy_core.utils import join_host_port, parse_port, parse_port_range
from ..proxy_engine.base import close_quietly
from ..proxy_engine.connector import open_connection
from .cli_base import (
    get_cli_logger, print_info, print_success, setup_cli_logging, show_scan_results
)
from .cli_exceptions import CLIErrorHandler, CommandError
from .listener import Listener
from .relay import relay

logger = get_cli_logger("main")


def effective_timeout(timeout: Optional[float], wait: Optional[float]) -> Optional[float]:
    """-w overrides -t when given and non-zero (nc compatible)"""
    if wait:
        return wait
    return timeout


def load_config(config_path: Optional[str], **overrides) -> ConfigManager:
    """Config file plus CLI overrides; invalid settings raise ConfigurationError"""
    config_manager = ConfigManager(config_path, create_cli_overrides(**overrides))
    errors = config_manager.validate()
    if errors:
        raise ConfigurationError(f"invalid configuration: {'; '.join(errors)}",
                                 "CONFIG_INVALID", config_manager.config_path)
    return config_manager


# ===============================================================================
# MODES
# ===============================================================================

def run_client(config_manager: ConfigManager, host: str, port: str, tls: bool) -> int:
    """Dial the target (optionally via proxy and TLS) and relay stdin/stdout"""
    config = config_manager.config
    dial_config = config_manager.to_dial_config()
    address = join_host_port(host, parse_port(port))
    proxy_url = config.proxy_url or None

    if config.verbose:
        route = f"via {config.proxy_url}" if proxy_url else "(direct)"
        print_info(f"Connecting to {address} {route}" + (", then upgrading to TLS" if tls else ""))

    conn = open_connection(address, proxy_url, dial_config, tls=tls,
                           ca_file=config.ca_file, logger=logger)
    try:
        if config.verbose:
            print_success(f"Connected to {address}")
        relay(conn, click.get_binary_stream('stdin'), click.get_binary_stream('stdout'))
    finally:
        close_quietly(conn)
    return 0


def run_scan(config_manager: ConfigManager, host: str, port_spec: str,
             timeout: Optional[float]) -> int:
    """Connect-scan ``port_spec`` on ``host`` and print the open ports"""
    config = config_manager.config
    target = parse_port_range(host, port_spec)
    scan_timeout = timeout or config.scan_timeout
    workers = None if target.is_single_port else config.scan_workers

    if config.verbose:
        print_info(f"Scanning {host} ports {target.start_port}-{target.end_port} "
                   f"(timeout: {scan_timeout}s)...")

    scanner = PortScanner(target, timeout=scan_timeout, workers=workers, logger=logger)
    scanner.scan()
    show_scan_results(host, scanner.sorted_results(), verbose=config.verbose)
    return 0


def run_init_config(config_path: Optional[str]) -> int:
    """Write a commented default configuration file; never overwrites"""
    path = ConfigManager(config_path).create_default_config()
    print_success(f"Configuration written to {path}")
    return 0


def run_listener(config_manager: ConfigManager, listen_port: Optional[int]) -> int:
    if not listen_port:
        raise CommandError("listen mode requires -p port", "listen")

    listener = Listener(listen_port, verbose=config_manager.config.verbose, logger=logger)
    listener.serve(click.get_binary_stream('stdin'), click.get_binary_stream('stdout'))
    return 0


# ===============================================================================
# COMMAND
# ===============================================================================

@click.command(context_settings={'help_option_names': ['-h', '--help']})
@click.version_option(version=__version__, prog_name="proxdial")
@click.argument('host', required=False)
@click.argument('port', required=False)
@click.option('-x', '--proxy', 'proxy_url', metavar='URL',
              help='Proxy URL (http://, https://, socks5://, socks5h://)')
@click.option('-T', '--tls', is_flag=True, help='Upgrade the connection to TLS')
@click.option('-k', '--insecure', is_flag=True, help='Skip TLS certificate verification')
@click.option('-t', '--timeout', type=click.FloatRange(min=0), default=None,
              help='Connect timeout in seconds (default: 30, scan: 2)')
@click.option('-w', '--wait', type=click.FloatRange(min=0), default=None,
              help='Timeout alias, overrides -t when non-zero')
@click.option('-v', '--verbose', is_flag=True, help='Verbose output (DEBUG level)')
@click.option('-z', '--zero', is_flag=True, help='Zero I/O mode: scan PORT as START[-END]')
@click.option('-l', '--listen', is_flag=True, help='Listen mode')
@click.option('-p', '--listen-port', type=int, help='Port to listen on')
@click.option('-c', '--config', 'config_path', type=click.Path(dir_okay=False),
              help='Configuration file (default: ~/.proxdial/config.yaml)')
@click.option('--init-config', is_flag=True,
              help='Write a default configuration file to the -c path and exit')
def main_cli(host, port, proxy_url, tls, insecure, timeout, wait, verbose, zero,
             listen, listen_port, config_path, init_config):
    """Connect to HOST PORT, optionally through a proxy and/or TLS."""
    error_handler = CLIErrorHandler(logger, verbose=verbose)
    timeout = effective_timeout(timeout, wait)

    try:
        if init_config:
            sys.exit(run_init_config(config_path))

        config_manager = load_config(config_path, verbose=verbose, timeout=None if zero else timeout,
                                     insecure=insecure, proxy=proxy_url)
        config = config_manager.config
        setup_cli_logging(verbose=config.verbose, log_level=config.log_level,
                          log_file=config.log_file)
        error_handler.verbose = config.verbose

        if listen:
            sys.exit(run_listener(config_manager, listen_port))

        if not host or not port:
            raise click.UsageError("requires target host and port")

        if zero:
            sys.exit(run_scan(config_manager, host, port, timeout))

        sys.exit(run_client(config_manager, host, port, tls))

    except click.ClickException:
        raise
    except ProxDialError as e:
        sys.exit(error_handler.handle_error(e))
    except KeyboardInterrupt:
        print_info("\nInterrupted")
        sys.exit(130)
    except Exception as e:
        sys.exit(error_handler.handle_error(e))
