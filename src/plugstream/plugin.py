"""Plugin base classes

A plugin is either discrete (raw buffers in, Output records out) or
streaming (resources in, a status message out, resources live on after
`run` returns). The mode is decided by which base class it derives from.

# Example

```python
class Upper(DiscretePlugin):
    name = "Upper"
    description = "Upper-cases a string"

    def declare(self, registry):
        registry.argument("text", "Text to convert", "string")
        registry.output("result", "Converted text", "string")

    def run(self, raw_inputs):
        coder = ValueCoder("string")
        text = coder.decode(raw_inputs[0])
        return [Output("result", "Converted text", "string", coder.encode(text.upper()))]
```
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Union

from plugstream.data_type import DataType, parse_data_type
from plugstream.schema import SchemaRegistry

if TYPE_CHECKING:
    from plugstream.streaming import Input, PluginContext


class PluginError(Exception):
    """Raised by plugin code to fail a run with a message"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


@dataclass(frozen=True)
class Output:
    """One result of a discrete run"""

    name: str
    description: str
    data_type: DataType
    value: bytes

    def __post_init__(self):
        if isinstance(self.data_type, str):
            object.__setattr__(self, "data_type", parse_data_type(self.data_type))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "data_type": self.data_type.type_string(),
            "value": self.value,
        }


class Plugin(ABC):
    """Common part of both plugin modes"""

    name: str = ""
    description: str = ""
    performs_state_change: bool = False

    def declare(self, registry: SchemaRegistry) -> None:
        """Declare arguments and outputs. Called once, at registration."""
        pass


class DiscretePlugin(Plugin):
    @abstractmethod
    def run(self, raw_inputs: List[bytes]) -> List[Output]:
        """One-shot transform. Raise PluginError to fail with a message."""
        ...


class StreamingPlugin(Plugin):
    @abstractmethod
    def run(self, context: "PluginContext", inputs: List["Input"]) -> str:
        """Set up resources and return a status message.

        Resources keep exchanging changes after this returns, until the host
        tears the run down. Raise PluginError to fail with a message.
        """
        ...


AnyPlugin = Union[DiscretePlugin, StreamingPlugin]
