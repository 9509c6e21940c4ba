"""Events carried by resource queues

Change events flow from the side that owns a resource to the side that reads
it. Request events flow back: load-more and load-children signals, or close
when the other side stopped listening.

Each event family is a closed set of variants with a kind discriminator and
factory constructors, e.g. `ListChange.append(item)`, `TreeRequest.close()`.
Consumers dispatch on `kind`.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class TreeNode:
    """A node of a tree resource.

    `id` is unique within its tree and stable across updates. `has_children`
    is advisory: children may exist that are not loaded yet. `parent` is None
    for roots.
    """
    id: str
    value: bytes
    has_children: bool = False
    parent: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "value": self.value,
            "has_children": self.has_children,
            "parent": self.parent,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TreeNode":
        return cls(
            id=data["id"],
            value=data["value"],
            has_children=data.get("has_children", False),
            parent=data.get("parent"),
        )


@dataclass(frozen=True)
class ValueChange:
    """New value of a value resource; None means the value was cleared"""
    value: Optional[bytes]


class ListChangeKind(Enum):
    REPLACE = "replace"
    APPEND = "append"
    POP = "pop"
    HAS_MORE_PAGES = "has_more_pages"


@dataclass(frozen=True)
class ListChange:
    kind: ListChangeKind
    items: Tuple[bytes, ...] = ()
    item: Optional[bytes] = None
    has_more: Optional[bool] = None

    @classmethod
    def replace(cls, items: List[bytes]) -> "ListChange":
        return cls(ListChangeKind.REPLACE, items=tuple(items))

    @classmethod
    def append(cls, item: bytes) -> "ListChange":
        return cls(ListChangeKind.APPEND, item=item)

    @classmethod
    def pop(cls) -> "ListChange":
        return cls(ListChangeKind.POP)

    @classmethod
    def has_more_pages(cls, has_more: bool) -> "ListChange":
        return cls(ListChangeKind.HAS_MORE_PAGES, has_more=has_more)


class TreeChangeKind(Enum):
    REPLACE = "replace"
    APPEND = "append"
    REMOVE = "remove"


@dataclass(frozen=True)
class TreeChange:
    kind: TreeChangeKind
    nodes: Tuple[TreeNode, ...] = ()
    ids: Tuple[str, ...] = ()

    @classmethod
    def replace(cls, nodes: List[TreeNode]) -> "TreeChange":
        return cls(TreeChangeKind.REPLACE, nodes=tuple(nodes))

    @classmethod
    def append(cls, nodes: List[TreeNode]) -> "TreeChange":
        return cls(TreeChangeKind.APPEND, nodes=tuple(nodes))

    @classmethod
    def remove(cls, ids: List[str]) -> "TreeChange":
        return cls(TreeChangeKind.REMOVE, ids=tuple(ids))


class ListRequestKind(Enum):
    LOAD_MORE = "load_more"
    CLOSE = "close"


@dataclass(frozen=True)
class ListRequest:
    """Backpressure signal for a list: send up to `limit` more items, or stop"""
    kind: ListRequestKind
    limit: int = 0

    @classmethod
    def load_more(cls, limit: int) -> "ListRequest":
        return cls(ListRequestKind.LOAD_MORE, limit=limit)

    @classmethod
    def close(cls) -> "ListRequest":
        return cls(ListRequestKind.CLOSE)

    def is_close(self) -> bool:
        return self.kind is ListRequestKind.CLOSE


class TreeRequestKind(Enum):
    LOAD_CHILDREN = "load_children"
    CLOSE = "close"


@dataclass(frozen=True)
class TreeRequest:
    """Backpressure signal for a tree: load the children of `parent`, or stop"""
    kind: TreeRequestKind
    parent: str = ""

    @classmethod
    def load_children(cls, parent: str) -> "TreeRequest":
        return cls(TreeRequestKind.LOAD_CHILDREN, parent=parent)

    @classmethod
    def close(cls) -> "TreeRequest":
        return cls(TreeRequestKind.CLOSE)

    def is_close(self) -> bool:
        return self.kind is TreeRequestKind.CLOSE


# Names used on the plugin side of outputs
ListOutputRequest = ListRequest
TreeOutputRequest = TreeRequest

# Names used on the host side of inputs
ListInputRequest = ListRequest
TreeInputRequest = TreeRequest
