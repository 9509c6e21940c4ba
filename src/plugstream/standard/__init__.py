"""Standard plugins shipped with the runtime"""

from typing import List

from plugstream.plugin import Plugin
from plugstream.standard.directory_tree import DirectoryTree
from plugstream.standard.join_strings import JoinStrings
from plugstream.standard.list_directory import ListDirectory


def standard_plugins() -> List[Plugin]:
    return [ListDirectory(), DirectoryTree(), JoinStrings()]


def register_standard_plugins(dispatcher) -> None:
    for plugin in standard_plugins():
        dispatcher.register(plugin)


__all__ = [
    "DirectoryTree",
    "JoinStrings",
    "ListDirectory",
    "standard_plugins",
    "register_standard_plugins",
]
