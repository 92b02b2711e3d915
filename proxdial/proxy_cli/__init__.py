from .cli import main_cli
from .listener import Listener
from .relay import RelayStats, relay

__all__ = [
    "main_cli",
    "Listener",
    "RelayStats",
    "relay"
]
