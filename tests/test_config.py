"""Tests for config module"""

from pathlib import Path

import pytest

from plugstream.channel import OVERFLOW_BLOCK, OVERFLOW_RAISE, QueueFullError
from plugstream.config import DEFAULT_NETWORK_TIMEOUT, ConfigError, RuntimeConfig


_ENV_VARS = [
    "PLUGSTREAM_MAX_QUEUE_DEPTH",
    "PLUGSTREAM_OVERFLOW_POLICY",
    "PLUGSTREAM_MAX_LIST_ITEMS",
    "PLUGSTREAM_MAX_TREE_NODES",
    "PLUGSTREAM_VALIDATE_ARGUMENTS",
    "PLUGSTREAM_FS_ROOT",
    "PLUGSTREAM_FS_WRITABLE",
    "PLUGSTREAM_ALLOW_NETWORK",
    "PLUGSTREAM_NETWORK_TIMEOUT",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


# TEST040: Test defaults leave every bound unset and every grant off
def test_defaults(clean_env):
    config = RuntimeConfig()
    assert config.max_queue_depth is None
    assert config.overflow_policy == OVERFLOW_RAISE
    assert config.max_list_items is None
    assert config.max_tree_nodes is None
    assert config.validate_arguments is False
    assert config.fs_root is None
    assert config.allow_network is False
    assert config.network_timeout == DEFAULT_NETWORK_TIMEOUT


# TEST041: Test environment variables are read when no argument is given
def test_environment(clean_env, tmp_path):
    clean_env.setenv("PLUGSTREAM_MAX_QUEUE_DEPTH", "16")
    clean_env.setenv("PLUGSTREAM_OVERFLOW_POLICY", "Block")
    clean_env.setenv("PLUGSTREAM_MAX_LIST_ITEMS", "100")
    clean_env.setenv("PLUGSTREAM_VALIDATE_ARGUMENTS", "yes")
    clean_env.setenv("PLUGSTREAM_FS_ROOT", str(tmp_path))
    clean_env.setenv("PLUGSTREAM_ALLOW_NETWORK", "1")
    clean_env.setenv("PLUGSTREAM_NETWORK_TIMEOUT", "2.5")
    config = RuntimeConfig()
    assert config.max_queue_depth == 16
    assert config.overflow_policy == OVERFLOW_BLOCK
    assert config.max_list_items == 100
    assert config.validate_arguments is True
    assert config.fs_root == tmp_path
    assert config.allow_network is True
    assert config.network_timeout == 2.5


# TEST042: Test constructor arguments take priority over the environment
def test_arguments_override_environment(clean_env):
    clean_env.setenv("PLUGSTREAM_MAX_QUEUE_DEPTH", "16")
    clean_env.setenv("PLUGSTREAM_VALIDATE_ARGUMENTS", "1")
    config = RuntimeConfig(max_queue_depth=4, validate_arguments=False)
    assert config.max_queue_depth == 4
    assert config.validate_arguments is False


# TEST043: Test invalid environment values raise ConfigError
@pytest.mark.parametrize("name, value", [
    ("PLUGSTREAM_MAX_QUEUE_DEPTH", "many"),
    ("PLUGSTREAM_MAX_LIST_ITEMS", "0"),
    ("PLUGSTREAM_OVERFLOW_POLICY", "drop"),
    ("PLUGSTREAM_NETWORK_TIMEOUT", "soon"),
])
def test_invalid_environment(clean_env, name, value):
    clean_env.setenv(name, value)
    with pytest.raises(ConfigError):
        RuntimeConfig()


# TEST044: Test builder methods chain and update the config
def test_builders(clean_env, tmp_path):
    config = (
        RuntimeConfig()
        .with_queue_bound(8, OVERFLOW_BLOCK)
        .with_size_limits(max_list_items=10, max_tree_nodes=20)
        .with_argument_validation()
        .with_filesystem(tmp_path, writable=True)
        .with_network(timeout=1.0)
    )
    assert config.max_queue_depth == 8
    assert config.overflow_policy == OVERFLOW_BLOCK
    assert config.max_list_items == 10
    assert config.max_tree_nodes == 20
    assert config.validate_arguments is True
    assert config.fs_root == Path(tmp_path)
    assert config.fs_writable is True
    assert config.allow_network is True
    assert config.network_timeout == 1.0
    with pytest.raises(ConfigError):
        config.with_queue_bound(8, "drop")


# TEST045: Test new_queue applies the configured bound and policy
def test_new_queue(clean_env):
    queue = RuntimeConfig().with_queue_bound(1).new_queue()
    queue.push("a")
    with pytest.raises(QueueFullError):
        queue.push("b")
    assert RuntimeConfig().new_queue().maxsize is None
