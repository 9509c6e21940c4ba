"""List Directory - a paged list of the files in a directory

The listing is demand driven: the output starts empty with `has_more` set,
and every `load_more(limit)` from the host adds the next `limit` entries.
Changing the directory argument starts a new listing.
"""

import logging
import queue
import threading
from typing import List, Optional

from plugstream.capabilities import CapabilityError, EntryInfo, FilesystemView
from plugstream.codec import CodecError, ValueCoder
from plugstream.datastream import DataStreamType, StreamClosedError, StreamError
from plugstream.plugin import PluginError, StreamingPlugin
from plugstream.schema import SchemaRegistry
from plugstream.streaming import ListOutput, ValueInput


logger = logging.getLogger(__name__)

FILE_ENTITY_TYPE = "enum FileEntityType<FILE, DIRECTORY>"
FILE_STRUCT = f"struct File<name: string, size: number, type: {FILE_ENTITY_TYPE}>"
FILE_LIST_TYPE = f"list<{FILE_STRUCT}>"

DIRECTORY_ARGUMENT = "directory"
FILES_OUTPUT = "Files"

_PATH = "path"
_PAGE = "page"
_STOP = "stop"

_path_coder = ValueCoder("path")
_file_coder = ValueCoder(FILE_STRUCT)


def encode_entry(entry: EntryInfo) -> bytes:
    return _file_coder.encode({
        "name": entry.name,
        "size": entry.size,
        "type": "DIRECTORY" if entry.is_dir else "FILE",
    })


def decode_path(buffer: Optional[bytes]) -> Optional[str]:
    if buffer is None:
        return None
    try:
        return _path_coder.decode(buffer)
    except CodecError as e:
        raise PluginError(f"Invalid path argument: {e}")


class _DirectoryLister:
    """Owns the Files output; all its mutations happen on one thread"""

    def __init__(self, fs: FilesystemView, output: ListOutput):
        self.fs = fs
        self.output = output
        self.entries: List[EntryInfo] = []
        self.cursor = 0
        self.commands: "queue.Queue" = queue.Queue()

    def reset(self, path: Optional[str]) -> None:
        self.entries = self.fs.list_dir(path) if path is not None else []
        self.cursor = 0
        self.output.clear()
        self.output.set_has_more_rows(bool(self.entries))

    def load_page(self, limit: int) -> None:
        page = self.entries[self.cursor:self.cursor + limit]
        for entry in page:
            self.output.add(encode_entry(entry))
        self.cursor += len(page)
        self.output.set_has_more_rows(self.cursor < len(self.entries))

    def relist(self, path: Optional[str]) -> None:
        try:
            self.reset(path)
        except CapabilityError as e:
            logger.warning("Cannot list directory: %s", e)
            self.entries = []
            self.output.clear()
            self.output.set_has_more_rows(False)

    def serve(self) -> None:
        while True:
            command, argument = self.commands.get()
            if command == _STOP:
                break
            try:
                if command == _PATH:
                    self.relist(argument)
                else:
                    self.load_page(argument)
            except StreamError:
                break

    def watch_directory(self, directory: ValueInput) -> None:
        while True:
            try:
                change = directory.poll_change_blocking()
            except StreamClosedError:
                return
            try:
                self.commands.put((_PATH, decode_path(change.value)))
            except PluginError as e:
                logger.warning("%s", e)

    def watch_requests(self) -> None:
        for request in self.output.get_request_stream():
            self.commands.put((_PAGE, request.limit))
        self.commands.put((_STOP, None))


class ListDirectory(StreamingPlugin):
    name = "List Directory"
    description = "Lists the files in a directory, one page per request"

    def declare(self, registry: SchemaRegistry) -> None:
        registry.argument(DIRECTORY_ARGUMENT, "The directory to list, relative to the granted root", "path",
                          supports_updates=True)
        registry.output(FILES_OUTPUT, "The files in the directory", FILE_LIST_TYPE, DataStreamType.LIST)

    def run(self, context, inputs) -> str:
        try:
            fs = context.capabilities.filesystem
        except CapabilityError as e:
            raise PluginError(str(e))
        directory = inputs[0]
        output = context.add_list_output(FILES_OUTPUT, "The files in the directory", FILE_LIST_TYPE)

        lister = _DirectoryLister(fs, output)
        path = decode_path(directory.resync())
        try:
            lister.reset(path)
        except CapabilityError as e:
            raise PluginError(str(e))

        for target, args in ((lister.serve, ()), (lister.watch_directory, (directory,)), (lister.watch_requests, ())):
            threading.Thread(target=target, args=args, daemon=True).start()
        return f"Listing {path if path is not None else 'nothing'}"
