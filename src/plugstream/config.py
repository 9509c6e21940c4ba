"""Runtime configuration

Bounds and grants that the plugin interface leaves to the embedding host.
None of them has a built-in limit: queue depth and list/tree sizes are
unbounded until the host configures a bound.

Configuration sources, highest priority first:
1. Constructor arguments and builder methods
2. Environment variables
3. Defaults

| Variable | Default |
|----------|---------|
| PLUGSTREAM_MAX_QUEUE_DEPTH | unbounded |
| PLUGSTREAM_OVERFLOW_POLICY | raise |
| PLUGSTREAM_MAX_LIST_ITEMS | unbounded |
| PLUGSTREAM_MAX_TREE_NODES | unbounded |
| PLUGSTREAM_VALIDATE_ARGUMENTS | off |
| PLUGSTREAM_FS_ROOT | not granted |
| PLUGSTREAM_FS_WRITABLE | off |
| PLUGSTREAM_ALLOW_NETWORK | off |
| PLUGSTREAM_NETWORK_TIMEOUT | 10 seconds |
"""

import os
from pathlib import Path
from typing import Optional

from plugstream.channel import OVERFLOW_POLICIES, OVERFLOW_RAISE, EventQueue


DEFAULT_NETWORK_TIMEOUT = 10.0

_TRUE_VALUES = ("1", "true", "yes", "on")


class ConfigError(Exception):
    """Invalid configuration value"""
    pass


def _env_int(name: str) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got '{raw}'")
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {value}")
    return value


def _env_bool(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in _TRUE_VALUES


class RuntimeConfig:
    """Configuration for resources, argument checks and capability grants"""

    def __init__(
        self,
        max_queue_depth: Optional[int] = None,
        overflow_policy: Optional[str] = None,
        max_list_items: Optional[int] = None,
        max_tree_nodes: Optional[int] = None,
        validate_arguments: Optional[bool] = None,
        fs_root: Optional[Path] = None,
        fs_writable: Optional[bool] = None,
        allow_network: Optional[bool] = None,
        network_timeout: Optional[float] = None,
    ):
        if max_queue_depth is None:
            max_queue_depth = _env_int("PLUGSTREAM_MAX_QUEUE_DEPTH")
        if overflow_policy is None:
            overflow_policy = os.getenv("PLUGSTREAM_OVERFLOW_POLICY", OVERFLOW_RAISE).strip().lower()
        if max_list_items is None:
            max_list_items = _env_int("PLUGSTREAM_MAX_LIST_ITEMS")
        if max_tree_nodes is None:
            max_tree_nodes = _env_int("PLUGSTREAM_MAX_TREE_NODES")
        if validate_arguments is None:
            validate_arguments = _env_bool("PLUGSTREAM_VALIDATE_ARGUMENTS")
        if fs_root is None and os.getenv("PLUGSTREAM_FS_ROOT"):
            fs_root = Path(os.environ["PLUGSTREAM_FS_ROOT"])
        if fs_writable is None:
            fs_writable = _env_bool("PLUGSTREAM_FS_WRITABLE")
        if allow_network is None:
            allow_network = _env_bool("PLUGSTREAM_ALLOW_NETWORK")
        if network_timeout is None:
            raw_timeout = os.getenv("PLUGSTREAM_NETWORK_TIMEOUT")
            try:
                network_timeout = float(raw_timeout) if raw_timeout else DEFAULT_NETWORK_TIMEOUT
            except ValueError:
                raise ConfigError(f"PLUGSTREAM_NETWORK_TIMEOUT must be a number, got '{raw_timeout}'")

        if overflow_policy not in OVERFLOW_POLICIES:
            raise ConfigError(
                f"Overflow policy must be one of {', '.join(OVERFLOW_POLICIES)}, got '{overflow_policy}'"
            )

        self.max_queue_depth = max_queue_depth
        self.overflow_policy = overflow_policy
        self.max_list_items = max_list_items
        self.max_tree_nodes = max_tree_nodes
        self.validate_arguments = validate_arguments
        self.fs_root = Path(fs_root) if fs_root is not None else None
        self.fs_writable = fs_writable
        self.allow_network = allow_network
        self.network_timeout = network_timeout

    def with_queue_bound(self, max_depth: int, overflow_policy: str = OVERFLOW_RAISE) -> "RuntimeConfig":
        """Bound every resource queue and pick what a full queue does"""
        if overflow_policy not in OVERFLOW_POLICIES:
            raise ConfigError(f"Unknown overflow policy: {overflow_policy}")
        self.max_queue_depth = max_depth
        self.overflow_policy = overflow_policy
        return self

    def with_size_limits(
        self, max_list_items: Optional[int] = None, max_tree_nodes: Optional[int] = None
    ) -> "RuntimeConfig":
        self.max_list_items = max_list_items
        self.max_tree_nodes = max_tree_nodes
        return self

    def with_argument_validation(self, enabled: bool = True) -> "RuntimeConfig":
        self.validate_arguments = enabled
        return self

    def with_filesystem(self, root: Path, writable: bool = False) -> "RuntimeConfig":
        """Grant plugins a view of the filesystem below root"""
        self.fs_root = Path(root)
        self.fs_writable = writable
        return self

    def with_network(self, allowed: bool = True, timeout: Optional[float] = None) -> "RuntimeConfig":
        self.allow_network = allowed
        if timeout is not None:
            self.network_timeout = timeout
        return self

    def new_queue(self) -> EventQueue:
        """Create a resource queue with the configured bound and policy."""
        return EventQueue(maxsize=self.max_queue_depth, overflow=self.overflow_policy)
