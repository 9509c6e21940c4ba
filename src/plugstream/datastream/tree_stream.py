import dataclasses
from typing import Dict, List, Optional, Set

from plugstream.config import RuntimeConfig
from plugstream.datastream.base import (
    CapacityError,
    DataStream,
    DataStreamType,
    DuplicateNodeError,
    UnknownNodeError,
)
from plugstream.events import TreeChange, TreeNode, TreeRequest


class TreeStream(DataStream):
    """A forest of nodes keyed by id

    Ids are never recycled: once a node leaves the tree (remove, clear, or
    being dropped by replace) its id is retired for the lifetime of the
    stream.
    """

    kind = DataStreamType.TREE

    def __init__(self, config: Optional[RuntimeConfig] = None):
        super().__init__(config)
        self._nodes: Dict[str, TreeNode] = {}
        self._children: Dict[Optional[str], List[str]] = {}
        self._retired: Set[str] = set()

    def snapshot(self) -> List[TreeNode]:
        """All loaded nodes, depth first, every parent before its children"""
        with self._lock:
            return [self._nodes[node_id] for node_id in self._walk(None)]

    def _walk(self, parent: Optional[str]) -> List[str]:
        """Ids below parent in depth-first order, without recursion"""
        order: List[str] = []
        stack = list(reversed(self._children.get(parent, [])))
        while stack:
            node_id = stack.pop()
            order.append(node_id)
            stack.extend(reversed(self._children.get(node_id, [])))
        return order

    def get_node(self, node_id: str) -> Optional[TreeNode]:
        with self._lock:
            return self._nodes.get(node_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._nodes)

    def add(self, parent: Optional[str], children: List[TreeNode]) -> List[TreeNode]:
        """Attach children under parent (None for roots).

        Raises:
            UnknownNodeError: If parent is not in the tree
            DuplicateNodeError: If a child id is live, retired, or repeated
            CapacityError: If the configured node bound would be exceeded
        """
        with self._changing():
            if parent is not None and parent not in self._nodes:
                raise UnknownNodeError(parent)
            seen: Set[str] = set()
            for child in children:
                self._validate_new(child, seen)
                seen.add(child.id)
            self._check_capacity(len(self._nodes) + len(children))

            attached = [dataclasses.replace(child, parent=parent) for child in children]
            for node in attached:
                self._nodes[node.id] = node
                self._children.setdefault(node.id, [])
            self._children.setdefault(parent, []).extend(node.id for node in attached)
            self._emit(TreeChange.append(attached))
            return attached

    def append(self, nodes: List[TreeNode]) -> None:
        """Add nodes that carry their own parent ids, in order."""
        with self._changing():
            # validate the whole batch so a bad node leaves the tree untouched
            staged: Set[str] = set()
            for node in nodes:
                self._validate_new(node, staged)
                if node.parent is not None and node.parent not in self._nodes and node.parent not in staged:
                    raise UnknownNodeError(node.parent)
                staged.add(node.id)
            self._check_capacity(len(self._nodes) + len(nodes))
            for node in nodes:
                self._insert(node)
            self._emit(TreeChange.append(list(nodes)))

    def remove(self, node_id: str) -> List[str]:
        """Remove a node and its whole subtree. Returns the removed ids."""
        with self._changing():
            if node_id not in self._nodes:
                raise UnknownNodeError(node_id)
            removed = [node_id] + self._walk(node_id)
            siblings = self._children.get(self._nodes[node_id].parent)
            if siblings is not None and node_id in siblings:
                siblings.remove(node_id)
            for removed_id in removed:
                del self._nodes[removed_id]
                self._children.pop(removed_id, None)
            self._retired.update(removed)
            self._emit(TreeChange.remove(removed))
            return removed

    def clear(self) -> None:
        self.replace([])

    def replace(self, nodes: List[TreeNode]) -> None:
        """Swap the whole tree for `nodes`, given parents first.

        Live ids may carry over; ids dropped by the replacement are retired.
        """
        with self._changing():
            staged: Set[str] = set()
            for node in nodes:
                if node.id in self._retired or node.id in staged:
                    raise DuplicateNodeError(node.id)
                if node.parent is not None and node.parent not in staged:
                    raise UnknownNodeError(node.parent)
                staged.add(node.id)
            self._check_capacity(len(nodes))

            self._retired.update(set(self._nodes) - staged)
            self._nodes = {}
            self._children = {}
            for node in nodes:
                self._insert(node)
            self._emit(TreeChange.replace(list(nodes)))

    def request_children(self, parent: str) -> bool:
        """Ask the producer to load the children of parent.

        Returns False for unknown parents and for a stream that is gone.
        """
        with self._lock:
            if self._destroyed or parent not in self._nodes:
                return False
        return self._send_request(TreeRequest.load_children(parent))

    def _validate_new(self, node: TreeNode, staged: Set[str]) -> None:
        if node.id in self._nodes or node.id in self._retired or node.id in staged:
            raise DuplicateNodeError(node.id)

    def _insert(self, node: TreeNode) -> None:
        self._nodes[node.id] = node
        self._children.setdefault(node.id, [])
        self._children.setdefault(node.parent, []).append(node.id)

    def _check_capacity(self, size: int) -> None:
        limit = self.config.max_tree_nodes
        if limit is not None and size > limit:
            raise CapacityError("tree", limit)

    def _clear_state(self) -> None:
        self._nodes = {}
        self._children = {}
