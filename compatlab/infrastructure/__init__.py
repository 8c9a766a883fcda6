"""Infrastructure layer exports."""

from .runner import CommandRunner, CompatibilityRunner, UnconfiguredRunner, configure_runner, get_runner
from .store import InMemoryStore, RedisStore, Store, create_store

__all__ = [
    "CommandRunner",
    "CompatibilityRunner",
    "InMemoryStore",
    "RedisStore",
    "Store",
    "UnconfiguredRunner",
    "configure_runner",
    "create_store",
    "get_runner",
]
