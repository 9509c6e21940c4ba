"""Tests for capability grants"""

import os

import httpx
import pytest

from plugstream.capabilities import (
    Capabilities,
    CapabilityError,
    EntryInfo,
    FilesystemView,
    NetworkAccess,
)
from plugstream.config import RuntimeConfig


@pytest.fixture
def tree(tmp_path):
    (tmp_path / "docs").mkdir()
    (tmp_path / "docs" / "readme.txt").write_bytes(b"hello")
    (tmp_path / "b.bin").write_bytes(b"\x00\x01\x02")
    (tmp_path / "a.txt").write_bytes(b"")
    return tmp_path


# TEST150: Test list_dir reports entries sorted by name with paths relative to the root
def test_list_dir(tree):
    fs = FilesystemView(tree)
    entries = fs.list_dir("")
    assert [e.name for e in entries] == ["a.txt", "b.bin", "docs"]
    assert entries[1] == EntryInfo(name="b.bin", path="b.bin", is_dir=False, size=3)
    assert entries[2].is_dir
    assert [e.path for e in fs.list_dir("/docs")] == ["docs/readme.txt"]


# TEST151: Test stat and read_bytes inside the root
def test_stat_and_read(tree):
    fs = FilesystemView(tree)
    info = fs.stat("docs/readme.txt")
    assert info.size == 5
    assert info.to_dict()["path"] == "docs/readme.txt"
    assert fs.stat("").path == ""
    assert fs.read_bytes("docs/readme.txt") == b"hello"


# TEST152: Test paths that escape the root are refused
def test_escape_refused(tree):
    fs = FilesystemView(tree / "docs")
    with pytest.raises(CapabilityError):
        fs.read_bytes("../b.bin")
    with pytest.raises(CapabilityError):
        fs.list_dir("..")


# TEST153: Test symlinks pointing outside the root are skipped when listing
@pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks not supported")
def test_symlink_outside_root_skipped(tree, tmp_path_factory):
    outside = tmp_path_factory.mktemp("outside")
    (outside / "secret").write_bytes(b"x")
    root = tree / "docs"
    os.symlink(outside / "secret", root / "link")
    fs = FilesystemView(root)
    assert [e.name for e in fs.list_dir()] == ["readme.txt"]
    with pytest.raises(CapabilityError):
        fs.read_bytes("link")


# TEST154: Test missing paths and a missing root raise CapabilityError
def test_missing_paths(tree):
    fs = FilesystemView(tree)
    with pytest.raises(CapabilityError):
        fs.list_dir("nope")
    with pytest.raises(CapabilityError):
        fs.stat("nope")
    with pytest.raises(CapabilityError):
        FilesystemView(tree / "nope")


# TEST155: Test writes need a writable grant
def test_write_bytes(tree):
    with pytest.raises(CapabilityError):
        FilesystemView(tree).write_bytes("new.txt", b"x")
    fs = FilesystemView(tree, writable=True)
    fs.write_bytes("new.txt", b"x")
    assert (tree / "new.txt").read_bytes() == b"x"


# TEST156: Test network requests go through the granted httpx client
def test_network_request():
    seen = []

    def handler(request):
        seen.append(str(request.url))
        return httpx.Response(200, text="pong")

    network = NetworkAccess(client=httpx.Client(transport=httpx.MockTransport(handler)))
    response = network.get("https://example.test/ping")
    assert response.status_code == 200
    assert response.text == "pong"
    assert seen == ["https://example.test/ping"]
    network.close()


# TEST157: Test transport failures surface as CapabilityError
def test_network_failure():
    def handler(request):
        raise httpx.ConnectError("unreachable", request=request)

    network = NetworkAccess(client=httpx.Client(transport=httpx.MockTransport(handler)))
    with pytest.raises(CapabilityError):
        network.get("https://example.test/")


# TEST158: Test grants follow the runtime config
def test_from_config(tree):
    granted = Capabilities.from_config(RuntimeConfig(fs_root=tree, allow_network=True))
    assert granted.has_filesystem
    assert granted.has_network
    assert granted.filesystem.root == tree.resolve()
    granted.close()

    denied = Capabilities.from_config(RuntimeConfig(allow_network=False, fs_writable=False))
    assert not denied.has_filesystem
    assert not denied.has_network
    with pytest.raises(CapabilityError):
        denied.filesystem
    with pytest.raises(CapabilityError):
        denied.network
