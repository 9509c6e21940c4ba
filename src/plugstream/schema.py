"""Plugin schema and the registry that builds it

A plugin declares its arguments and outputs into a SchemaRegistry when it is
registered. The registry is sealed afterwards, and the resulting Schema can
be queried by the host without ever invoking `run`.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

from plugstream.data_type import DataType, parse_data_type
from plugstream.datastream import DataStreamType


class SchemaError(Exception):
    """Base error for schema declaration"""
    pass


class DuplicateNameError(SchemaError):
    """An argument or output with this name was already declared"""

    def __init__(self, kind: str, name: str):
        super().__init__(f"Duplicate {kind} name: '{name}'")
        self.kind = kind
        self.name = name


class RegistrySealedError(SchemaError):
    """Declaration after the registry was sealed"""

    def __init__(self):
        super().__init__("Schema registry is sealed")


def _as_data_type(data_type: Union[str, DataType]) -> DataType:
    if isinstance(data_type, DataType):
        return data_type
    return parse_data_type(data_type)


@dataclass(frozen=True)
class ArgumentSpec:
    """One declared argument.

    `supports_updates` says whether the host may change the argument after
    the run started. Data type strings are parsed on construction and raise
    DataTypeError when malformed.
    """

    name: str
    description: str
    data_type: DataType
    supports_updates: bool = False

    def __post_init__(self):
        object.__setattr__(self, "data_type", _as_data_type(self.data_type))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "data_type": self.data_type.type_string(),
            "supports_updates": self.supports_updates,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ArgumentSpec":
        return cls(
            name=data["name"],
            description=data.get("description", ""),
            data_type=data["data_type"],
            supports_updates=data.get("supports_updates", False),
        )


@dataclass(frozen=True)
class OutputDescriptor:
    """One declared output: its name, payload type and resource shape"""

    name: str
    description: str
    data_type: DataType
    kind: DataStreamType = DataStreamType.VALUE

    def __post_init__(self):
        object.__setattr__(self, "data_type", _as_data_type(self.data_type))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "data_type": self.data_type.type_string(),
            "kind": self.kind.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OutputDescriptor":
        return cls(
            name=data["name"],
            description=data.get("description", ""),
            data_type=data["data_type"],
            kind=DataStreamType(data.get("kind", DataStreamType.VALUE.value)),
        )


@dataclass(frozen=True)
class Schema:
    """Everything the host needs to know about a plugin before running it"""

    name: str
    description: str
    arguments: Tuple[ArgumentSpec, ...] = field(default_factory=tuple)
    performs_state_change: bool = False
    outputs: Tuple[OutputDescriptor, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "arguments", tuple(self.arguments))
        object.__setattr__(self, "outputs", tuple(self.outputs))

    def argument(self, name: str) -> Optional[ArgumentSpec]:
        for arg in self.arguments:
            if arg.name == name:
                return arg
        return None

    def argument_index(self, name: str) -> int:
        for index, arg in enumerate(self.arguments):
            if arg.name == name:
                return index
        raise KeyError(name)

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "name": self.name,
            "description": self.description,
            "arguments": [a.to_dict() for a in self.arguments],
            "performs_state_change": self.performs_state_change,
        }
        if self.outputs:
            result["outputs"] = [o.to_dict() for o in self.outputs]
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Schema":
        return cls(
            name=data["name"],
            description=data.get("description", ""),
            arguments=[ArgumentSpec.from_dict(a) for a in data.get("arguments", [])],
            performs_state_change=data.get("performs_state_change", False),
            outputs=[OutputDescriptor.from_dict(o) for o in data.get("outputs", [])],
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, text: str) -> "Schema":
        return cls.from_dict(json.loads(text))


class SchemaRegistry:
    """Collects a plugin's declarations until sealed"""

    def __init__(self, name: str, description: str = "", performs_state_change: bool = False):
        self.name = name
        self.description = description
        self.performs_state_change = performs_state_change
        self._arguments: List[ArgumentSpec] = []
        self._outputs: List[OutputDescriptor] = []
        self._sealed = False

    @property
    def sealed(self) -> bool:
        return self._sealed

    def _check_open(self) -> None:
        if self._sealed:
            raise RegistrySealedError()

    def set_description(self, description: str) -> None:
        self._check_open()
        self.description = description

    def set_performs_state_change(self, value: bool = True) -> None:
        self._check_open()
        self.performs_state_change = value

    def add_argument(self, spec: ArgumentSpec) -> ArgumentSpec:
        self._check_open()
        if any(a.name == spec.name for a in self._arguments):
            raise DuplicateNameError("argument", spec.name)
        self._arguments.append(spec)
        return spec

    def argument(
        self,
        name: str,
        description: str,
        data_type: Union[str, DataType],
        supports_updates: bool = False,
    ) -> ArgumentSpec:
        """Shorthand for add_argument(ArgumentSpec(...))"""
        return self.add_argument(ArgumentSpec(name, description, data_type, supports_updates))

    def add_output(self, descriptor: OutputDescriptor) -> OutputDescriptor:
        self._check_open()
        if any(o.name == descriptor.name for o in self._outputs):
            raise DuplicateNameError("output", descriptor.name)
        self._outputs.append(descriptor)
        return descriptor

    def output(
        self,
        name: str,
        description: str,
        data_type: Union[str, DataType],
        kind: DataStreamType = DataStreamType.VALUE,
    ) -> OutputDescriptor:
        return self.add_output(OutputDescriptor(name, description, data_type, kind))

    def seal(self) -> Schema:
        """Stop accepting declarations. Idempotent."""
        self._sealed = True
        return self.schema()

    def schema(self) -> Schema:
        return Schema(
            name=self.name,
            description=self.description,
            arguments=tuple(self._arguments),
            performs_state_change=self.performs_state_change,
            outputs=tuple(self._outputs),
        )
