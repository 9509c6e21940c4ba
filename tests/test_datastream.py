"""Tests for datastream module"""

import threading
import time

import pytest

from plugstream.channel import CLOSED, OVERFLOW_BLOCK, QueueFullError
from plugstream.config import RuntimeConfig
from plugstream.datastream import (
    CapacityError,
    DataStreamType,
    DuplicateNodeError,
    ImmutableInputError,
    ListStream,
    ResourceDestroyedError,
    TreeStream,
    UnknownNodeError,
    ValueStream,
)
from plugstream.events import (
    ListChange,
    ListChangeKind,
    ListRequest,
    TreeChange,
    TreeChangeKind,
    TreeNode,
    TreeRequest,
    ValueChange,
)


def node(node_id, value=b"", parent=None, has_children=False):
    return TreeNode(id=node_id, value=value, has_children=has_children, parent=parent)


def config():
    return RuntimeConfig(max_queue_depth=None, max_list_items=None, max_tree_nodes=None)


# ============================================================================
# ValueStream
# ============================================================================

# TEST050: Test a value stream starts with its initial buffer and no pending change
def test_value_initial():
    stream = ValueStream(b"\x01", config())
    assert stream.kind is DataStreamType.VALUE
    assert stream.snapshot() == b"\x01"
    assert stream.changes.poll() is None


# TEST051: Test set and clear emit one change each, in order
def test_value_set_clear():
    stream = ValueStream(config=config())
    stream.set(b"a")
    stream.set(bytearray(b"b"))
    stream.clear()
    assert stream.changes.drain() == [ValueChange(b"a"), ValueChange(b"b"), ValueChange(None)]
    assert stream.snapshot() is None


# TEST052: Test resync returns the snapshot and drops changes it already reflects
def test_value_resync():
    stream = ValueStream(config=config())
    stream.set(b"x")
    stream.set(b"y")
    assert stream.resync() == b"y"
    assert stream.changes.poll() is None
    stream.set(b"z")
    assert stream.changes.poll() == ValueChange(b"z")


# TEST053: Test a frozen stream rejects mutation and keeps its value
def test_value_frozen():
    stream = ValueStream(b"keep", config())
    stream.freeze()
    with pytest.raises(ImmutableInputError):
        stream.set(b"other")
    assert stream.snapshot() == b"keep"


# ============================================================================
# ListStream
# ============================================================================

# TEST060: Test list mutations keep items and emit matching changes
def test_list_mutations():
    stream = ListStream(config())
    stream.append(b"a")
    stream.append(b"b")
    assert stream.pop() is True
    stream.replace([b"x", b"y"])
    stream.set_has_more(True)
    assert stream.snapshot() == [b"x", b"y"]
    assert stream.has_more is True
    assert len(stream) == 2
    assert stream.changes.drain() == [
        ListChange.append(b"a"),
        ListChange.append(b"b"),
        ListChange.pop(),
        ListChange.replace([b"x", b"y"]),
        ListChange.has_more_pages(True),
    ]


# TEST061: Test pop on an empty list is a no-op without a change event
def test_list_pop_empty():
    stream = ListStream(config())
    assert stream.pop() is False
    assert stream.changes.poll() is None
    assert stream.snapshot() == []


# TEST062: Test append then pop returns the list to its previous state
def test_list_append_pop_restores():
    stream = ListStream(config(), items=[b"1", b"2"])
    stream.append(b"3")
    stream.pop()
    assert stream.snapshot() == [b"1", b"2"]


# TEST063: Test has_more starts unknown and initial items emit no change
def test_list_initial_state():
    stream = ListStream(config(), items=[b"a"])
    assert stream.has_more is None
    assert stream.snapshot() == [b"a"]
    assert stream.changes.poll() is None
    assert ListStream(config(), has_more=False).has_more is False


# TEST064: Test clear replaces with an empty list
def test_list_clear():
    stream = ListStream(config(), items=[b"a"])
    stream.clear()
    assert stream.snapshot() == []
    change = stream.changes.poll()
    assert change.kind is ListChangeKind.REPLACE
    assert change.items == ()


# TEST065: Test request_page queues a load-more request
def test_list_request_page():
    stream = ListStream(config())
    assert stream.request_page(5) is True
    assert stream.requests.poll() == ListRequest.load_more(5)


# TEST066: Test request_page is refused once the producer said there is nothing more
def test_list_request_page_exhausted():
    stream = ListStream(config())
    stream.set_has_more(False)
    assert stream.request_page(5) is False
    assert stream.requests.poll() is None


# TEST067: Test request_page rejects a non-positive limit
@pytest.mark.parametrize("limit", [0, -1, True, 1.5])
def test_list_request_page_invalid(limit):
    with pytest.raises(ValueError):
        ListStream(config()).request_page(limit)


# TEST068: Test the list size bound rejects growth and leaves the state alone
def test_list_capacity():
    stream = ListStream(RuntimeConfig().with_size_limits(max_list_items=2))
    stream.append(b"1")
    stream.append(b"2")
    with pytest.raises(CapacityError):
        stream.append(b"3")
    with pytest.raises(CapacityError):
        stream.replace([b"1", b"2", b"3"])
    assert stream.snapshot() == [b"1", b"2"]
    assert len(stream.changes.drain()) == 2
    with pytest.raises(CapacityError):
        ListStream(RuntimeConfig().with_size_limits(max_list_items=1), items=[b"a", b"b"])


# ============================================================================
# TreeStream
# ============================================================================

# TEST070: Test add attaches children under a parent and emits one append
def test_tree_add():
    stream = TreeStream(config())
    roots = stream.add(None, [node("a"), node("b")])
    children = stream.add("a", [node("a1")])
    assert [n.parent for n in roots] == [None, None]
    assert children[0].parent == "a"
    assert [n.id for n in stream.snapshot()] == ["a", "a1", "b"]
    changes = stream.changes.drain()
    assert [c.kind for c in changes] == [TreeChangeKind.APPEND, TreeChangeKind.APPEND]
    assert changes[1].nodes == (node("a1", parent="a"),)


# TEST071: Test add under an unknown parent fails without changing the tree
def test_tree_add_unknown_parent():
    stream = TreeStream(config())
    with pytest.raises(UnknownNodeError):
        stream.add("missing", [node("x")])
    assert len(stream) == 0
    assert stream.changes.poll() is None


# TEST072: Test duplicate ids in the tree or in one batch are rejected
def test_tree_duplicate_ids():
    stream = TreeStream(config())
    stream.add(None, [node("a")])
    with pytest.raises(DuplicateNodeError):
        stream.add(None, [node("a")])
    with pytest.raises(DuplicateNodeError):
        stream.add(None, [node("b"), node("b")])
    assert [n.id for n in stream.snapshot()] == ["a"]


# TEST073: Test remove drops the whole subtree in one event
def test_tree_remove_subtree():
    stream = TreeStream(config())
    stream.add(None, [node("a"), node("b")])
    stream.add("a", [node("a1"), node("a2")])
    stream.add("a1", [node("a1x")])
    stream.changes.drain()
    removed = stream.remove("a")
    assert removed == ["a", "a1", "a1x", "a2"]
    assert stream.changes.drain() == [TreeChange.remove(removed)]
    assert [n.id for n in stream.snapshot()] == ["b"]
    with pytest.raises(UnknownNodeError):
        stream.remove("a")


# TEST074: Test ids of removed nodes are never reused
def test_tree_retired_ids():
    stream = TreeStream(config())
    stream.add(None, [node("a"), node("b")])
    stream.remove("a")
    with pytest.raises(DuplicateNodeError):
        stream.add(None, [node("a")])
    stream.clear()
    with pytest.raises(DuplicateNodeError):
        stream.add(None, [node("b")])


# TEST075: Test replace keeps carried over ids and retires dropped ones
def test_tree_replace():
    stream = TreeStream(config())
    stream.add(None, [node("a"), node("b")])
    stream.replace([node("a"), node("c", parent="a")])
    assert [n.id for n in stream.snapshot()] == ["a", "c"]
    assert stream.get_node("c").parent == "a"
    with pytest.raises(DuplicateNodeError):
        stream.replace([node("b")])
    with pytest.raises(UnknownNodeError):
        stream.replace([node("d", parent="e"), node("e")])


# TEST076: Test append uses the parent carried by each node
def test_tree_append():
    stream = TreeStream(config())
    stream.append([node("r"), node("r1", parent="r"), node("r1a", parent="r1")])
    assert [n.id for n in stream.snapshot()] == ["r", "r1", "r1a"]
    with pytest.raises(UnknownNodeError):
        stream.append([node("x", parent="nowhere")])
    assert len(stream) == 3


# TEST077: Test request_children only asks for known parents
def test_tree_request_children():
    stream = TreeStream(config())
    stream.add(None, [node("a", has_children=True)])
    assert stream.request_children("a") is True
    assert stream.request_children("zzz") is False
    assert stream.requests.drain() == [TreeRequest.load_children("a")]


# TEST078: Test the tree size bound counts every loaded node
def test_tree_capacity():
    stream = TreeStream(RuntimeConfig().with_size_limits(max_tree_nodes=2))
    stream.add(None, [node("a")])
    with pytest.raises(CapacityError):
        stream.add("a", [node("b"), node("c")])
    stream.add("a", [node("b")])
    assert len(stream) == 2


# TEST079: Test a chain deeper than the recursion limit snapshots and removes in one event
def test_tree_deep_chain():
    depth = 5000
    stream = TreeStream(config())
    stream.add(None, [node("0")])
    for i in range(1, depth):
        stream.add(str(i - 1), [node(str(i))])
    stream.changes.drain()

    chain = stream.snapshot()
    assert len(chain) == depth
    assert chain[-1].id == str(depth - 1)
    assert chain[-1].parent == str(depth - 2)

    removed = stream.remove("1")
    assert removed == [str(i) for i in range(1, depth)]
    assert stream.changes.drain() == [TreeChange.remove(removed)]
    assert [n.id for n in stream.snapshot()] == ["0"]
    with pytest.raises(DuplicateNodeError):
        stream.add("0", [node(str(depth - 1))])


# ============================================================================
# Lifecycle and queue bounds
# ============================================================================

# TEST080: Test destroy closes both queues, clears state and rejects mutation
def test_destroy():
    stream = ListStream(config(), items=[b"a"])
    stream.append(b"b")
    stream.request_page(1)
    assert stream.destroy() is True
    assert stream.destroy() is False
    assert stream.destroyed
    assert stream.changes.poll() is CLOSED
    assert stream.requests.poll() is CLOSED
    assert stream.snapshot() == []
    with pytest.raises(ResourceDestroyedError):
        stream.append(b"c")
    with pytest.raises(ResourceDestroyedError):
        stream.resync()
    assert stream.request_page(1) is False


# TEST081: Test a detached reader leaves the owner able to mutate
def test_detach_reader():
    stream = ValueStream(config=config())
    stream.detach_reader()
    stream.set(b"still works")
    assert stream.snapshot() == b"still works"
    assert stream.changes.poll() is CLOSED


# TEST082: Test a full change queue with the raise policy rejects the mutation before the state changes
def test_bounded_raise_keeps_state():
    stream = ValueStream(config=RuntimeConfig().with_queue_bound(1))
    stream.set(b"1")
    with pytest.raises(QueueFullError):
        stream.set(b"2")
    assert stream.snapshot() == b"1"
    assert stream.changes.drain() == [ValueChange(b"1")]


# TEST083: Test a full change queue with the block policy waits for the reader
def test_bounded_block_waits_for_reader():
    stream = ValueStream(config=RuntimeConfig().with_queue_bound(1, OVERFLOW_BLOCK))
    stream.set(b"1")
    done = threading.Event()

    def producer():
        stream.set(b"2")
        done.set()

    thread = threading.Thread(target=producer)
    thread.start()
    assert not done.wait(0.05)
    assert stream.changes.poll() == ValueChange(b"1")
    assert done.wait(2)
    thread.join(timeout=2)
    assert stream.changes.poll() == ValueChange(b"2")


# TEST084: Test destroy releases an owner blocked on a full change queue
def test_destroy_releases_blocked_owner():
    stream = ValueStream(config=RuntimeConfig().with_queue_bound(1, OVERFLOW_BLOCK))
    stream.set(b"1")
    errors = []

    def producer():
        try:
            stream.set(b"2")
        except ResourceDestroyedError as e:
            errors.append(e)

    thread = threading.Thread(target=producer)
    thread.start()
    time.sleep(0.05)
    stream.destroy()
    thread.join(timeout=2)
    assert not thread.is_alive()
    assert len(errors) == 1
