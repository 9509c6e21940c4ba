"""Capability grants handed to streaming plugins

A plugin gets no ambient filesystem or network access. The host grants a
`FilesystemView` confined to one directory and/or a `NetworkAccess` for
outbound HTTP; calling something that was not granted fails with
CapabilityError.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import httpx

from plugstream.config import DEFAULT_NETWORK_TIMEOUT, RuntimeConfig


logger = logging.getLogger(__name__)


class CapabilityError(Exception):
    """Capability not granted, or used beyond its grant"""
    pass


@dataclass(frozen=True)
class EntryInfo:
    """What `FilesystemView.stat` and `list_dir` report about an entry"""
    name: str
    path: str
    is_dir: bool
    size: int

    def to_dict(self) -> dict:
        return {"name": self.name, "path": self.path, "is_dir": self.is_dir, "size": self.size}


class FilesystemView:
    """Read (and optionally write) access below one root directory

    Paths are relative to the root; "" and "/" name the root itself. A path
    that resolves outside the root, symlinks included, is refused.
    """

    def __init__(self, root: Path, writable: bool = False):
        self.root = Path(root).resolve()
        self.writable = writable
        if not self.root.is_dir():
            raise CapabilityError(f"Filesystem root is not a directory: {self.root}")

    def resolve(self, path: str) -> Path:
        relative = str(path).lstrip("/")
        target = (self.root / relative).resolve()
        if target != self.root and self.root not in target.parents:
            raise CapabilityError(f"Path escapes the granted root: {path}")
        return target

    def _relative(self, target: Path) -> str:
        return target.relative_to(self.root).as_posix() if target != self.root else ""

    def stat(self, path: str) -> EntryInfo:
        target = self.resolve(path)
        try:
            st = target.stat()
        except OSError as e:
            raise CapabilityError(f"Cannot stat '{path}': {e}")
        return EntryInfo(
            name=target.name,
            path=self._relative(target),
            is_dir=target.is_dir(),
            size=st.st_size,
        )

    def list_dir(self, path: str = "") -> List[EntryInfo]:
        """Entries of a directory, sorted by name"""
        target = self.resolve(path)
        try:
            names = sorted(os.listdir(target))
        except OSError as e:
            raise CapabilityError(f"Cannot list '{path}': {e}")
        entries = []
        for name in names:
            child = target / name
            # skip entries that point outside the root
            try:
                self.resolve(self._relative(child))
                size = child.stat().st_size
            except (CapabilityError, OSError):
                continue
            entries.append(EntryInfo(
                name=name,
                path=self._relative(child),
                is_dir=child.is_dir(),
                size=size,
            ))
        return entries

    def read_bytes(self, path: str) -> bytes:
        target = self.resolve(path)
        try:
            return target.read_bytes()
        except OSError as e:
            raise CapabilityError(f"Cannot read '{path}': {e}")

    def write_bytes(self, path: str, data: bytes) -> None:
        if not self.writable:
            raise CapabilityError("Filesystem view is read-only")
        target = self.resolve(path)
        try:
            target.write_bytes(data)
        except OSError as e:
            raise CapabilityError(f"Cannot write '{path}': {e}")


class NetworkAccess:
    """Outbound HTTP through an httpx client"""

    def __init__(self, client: Optional[httpx.Client] = None, timeout: float = DEFAULT_NETWORK_TIMEOUT):
        self.client = client if client is not None else httpx.Client(timeout=timeout)
        self.timeout = timeout

    def request(self, method: str, url: str, **kwargs) -> httpx.Response:
        logger.debug("Plugin network request: %s %s", method, url)
        try:
            return self.client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise CapabilityError(f"Network request failed: {e}")

    def get(self, url: str, **kwargs) -> httpx.Response:
        return self.request("GET", url, **kwargs)

    def close(self) -> None:
        self.client.close()


class Capabilities:
    """The grants of one plugin instance; None means not granted"""

    def __init__(self, filesystem: Optional[FilesystemView] = None, network: Optional[NetworkAccess] = None):
        self._filesystem = filesystem
        self._network = network

    @classmethod
    def from_config(cls, config: RuntimeConfig) -> "Capabilities":
        filesystem = None
        if config.fs_root is not None:
            filesystem = FilesystemView(config.fs_root, writable=config.fs_writable)
        network = None
        if config.allow_network:
            network = NetworkAccess(timeout=config.network_timeout)
        return cls(filesystem=filesystem, network=network)

    @property
    def has_filesystem(self) -> bool:
        return self._filesystem is not None

    @property
    def has_network(self) -> bool:
        return self._network is not None

    @property
    def filesystem(self) -> FilesystemView:
        if self._filesystem is None:
            raise CapabilityError("Filesystem access was not granted")
        return self._filesystem

    @property
    def network(self) -> NetworkAccess:
        if self._network is None:
            raise CapabilityError("Network access was not granted")
        return self._network

    def close(self) -> None:
        if self._network is not None:
            self._network.close()
