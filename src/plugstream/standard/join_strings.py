from typing import List

from plugstream.codec import CodecError, ValueCoder
from plugstream.plugin import DiscretePlugin, Output, PluginError
from plugstream.schema import SchemaRegistry


PARTS_ARGUMENT = "parts"
SEPARATOR_ARGUMENT = "separator"
JOINED_OUTPUT = "joined"

_parts_coder = ValueCoder("list<string>")
_string_coder = ValueCoder("string")


class JoinStrings(DiscretePlugin):
    """Joins a list of strings with a separator. An empty list is an error."""

    name = "Join Strings"
    description = "Joins strings with a separator"

    def declare(self, registry: SchemaRegistry) -> None:
        registry.argument(PARTS_ARGUMENT, "The strings to join", "list<string>")
        registry.argument(SEPARATOR_ARGUMENT, "Placed between two strings", "string")
        registry.output(JOINED_OUTPUT, "The joined string", "string")

    def run(self, raw_inputs: List[bytes]) -> List[Output]:
        try:
            parts = _parts_coder.decode(raw_inputs[0])
            separator = _string_coder.decode(raw_inputs[1])
        except CodecError as e:
            raise PluginError(f"Invalid argument: {e}")
        if not parts:
            raise PluginError("Nothing to join")
        joined = separator.join(parts)
        return [Output(JOINED_OUTPUT, "The joined string", "string", _string_coder.encode(joined))]
