"""Directory Tree - a directory as a lazily loaded tree

The entries of the root directory are added as roots right away; the
children of a directory node are added when the host asks for them with
`request_children`. Node values are paths relative to the granted root.

Node ids are `<generation>:<relative path>`. The generation changes every
time the root argument changes, since ids of the previous tree stay retired.
"""

import logging
import queue
import threading
from typing import List, Optional, Set

from plugstream.capabilities import CapabilityError, FilesystemView
from plugstream.codec import ValueCoder
from plugstream.datastream import DataStreamType, StreamClosedError, StreamError
from plugstream.events import TreeNode
from plugstream.plugin import PluginError, StreamingPlugin
from plugstream.schema import SchemaRegistry
from plugstream.standard.list_directory import decode_path
from plugstream.streaming import TreeOutput, ValueInput


logger = logging.getLogger(__name__)

ROOT_ARGUMENT = "root"
TREE_OUTPUT = "Tree"

_path_coder = ValueCoder("path")


def _join(parent: str, name: str) -> str:
    return f"{parent}/{name}" if parent else name


class _TreeExplorer:
    """Owns the Tree output; all its mutations happen on one thread"""

    def __init__(self, fs: FilesystemView, output: TreeOutput):
        self.fs = fs
        self.output = output
        self.root: Optional[str] = None
        self.generation = 0
        self.loaded: Set[str] = set()
        self.commands: "queue.Queue" = queue.Queue()

    def node_id(self, relative: str) -> str:
        return f"{self.generation}:{relative}"

    def children_of(self, relative: str) -> List[TreeNode]:
        base = _join(self.root.rstrip("/"), relative) if relative else self.root
        nodes = []
        for entry in self.fs.list_dir(base):
            nodes.append(TreeNode(
                id=self.node_id(_join(relative, entry.name)),
                value=_path_coder.encode(entry.path),
                has_children=entry.is_dir,
            ))
        return nodes

    def reset(self, root: Optional[str]) -> None:
        self.generation += 1
        self.root = root
        self.loaded = set()
        self.output.clear()
        if root is not None:
            self.output.add(None, self.children_of(""))

    def load_children(self, parent_id: str) -> None:
        generation, _, relative = parent_id.partition(":")
        if generation != str(self.generation) or parent_id in self.loaded:
            return
        self.loaded.add(parent_id)
        try:
            children = self.children_of(relative)
        except CapabilityError as e:
            logger.warning("Cannot load children of %r: %s", relative, e)
            return
        self.output.add(parent_id, children)

    def serve(self) -> None:
        while True:
            command, argument = self.commands.get()
            if command is None:
                break
            try:
                command(argument)
            except CapabilityError as e:
                logger.warning("Cannot explore directory: %s", e)
                self.root = None
                self.output.clear()
            except StreamError:
                break

    def watch_root(self, root: ValueInput) -> None:
        while True:
            try:
                change = root.poll_change_blocking()
            except StreamClosedError:
                return
            try:
                self.commands.put((self.reset, decode_path(change.value)))
            except PluginError as e:
                logger.warning("%s", e)

    def watch_requests(self) -> None:
        for request in self.output.get_request_stream():
            self.commands.put((self.load_children, request.parent))
        self.commands.put((None, None))


class DirectoryTree(StreamingPlugin):
    name = "Directory Tree"
    description = "Outputs a tree of files and directories"

    def declare(self, registry: SchemaRegistry) -> None:
        registry.argument(ROOT_ARGUMENT, "The root directory for the file tree", "path", supports_updates=True)
        registry.output(TREE_OUTPUT, "A tree of files and directories starting at the root", "path",
                        DataStreamType.TREE)

    def run(self, context, inputs) -> str:
        try:
            fs = context.capabilities.filesystem
        except CapabilityError as e:
            raise PluginError(str(e))
        root = inputs[0]
        output = context.add_tree_output(TREE_OUTPUT, "A tree of files and directories starting at the root", "path")

        explorer = _TreeExplorer(fs, output)
        path = decode_path(root.resync())
        try:
            explorer.reset(path)
        except CapabilityError as e:
            raise PluginError(str(e))

        for target, args in ((explorer.serve, ()), (explorer.watch_root, (root,)), (explorer.watch_requests, ())):
            threading.Thread(target=target, args=args, daemon=True).start()
        return f"Exploring {path if path is not None else 'nothing'}"
