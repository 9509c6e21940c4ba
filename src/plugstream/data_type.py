"""Data type strings

Every argument, input and output declares the shape of its opaque payloads
with a data type string. The runtime only checks that the string parses (and,
for list resources, that it describes a list); interpreting payloads is left
to schema-aware consumers such as `plugstream.codec.ValueCoder`.

## Grammar

```
type      := primitive | list | enum | struct
primitive := trigger | boolean | number | string | bytes | color
           | path | url | json | svg
list      := "list" "<" type ">"
enum      := "enum" NAME "<" NAME ("," NAME)* ">"
struct    := "struct" NAME "<" NAME ":" type ("," NAME ":" type)* ">"
```

Examples: `number`, `list<string>`, `enum Kind<FILE, DIRECTORY>`,
`struct Entry<name: string, size: number>`.
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Tuple


PRIMITIVE_TYPES = (
    "trigger",
    "boolean",
    "number",
    "string",
    "bytes",
    "color",
    "path",
    "url",
    "json",
    "svg",
)

_TOKEN_RE = re.compile(r"\s*(?:([A-Za-z_][A-Za-z0-9_\-]*)|([<>,:]))")


class DataTypeError(Exception):
    """Data type string could not be parsed"""

    def __init__(self, type_string: str, reason: str):
        super().__init__(f"Invalid data type '{type_string}': {reason}")
        self.type_string = type_string
        self.reason = reason


class DataType:
    """Base of the parsed data type tree"""

    def type_string(self) -> str:
        raise NotImplementedError("Subclasses must implement type_string")

    def is_list(self) -> bool:
        return False

    def __str__(self) -> str:
        return self.type_string()


@dataclass(frozen=True)
class PrimitiveType(DataType):
    name: str

    def type_string(self) -> str:
        return self.name


@dataclass(frozen=True)
class ListType(DataType):
    element: DataType

    def type_string(self) -> str:
        return f"list<{self.element.type_string()}>"

    def is_list(self) -> bool:
        return True


@dataclass(frozen=True)
class EnumType(DataType):
    name: str
    variants: Tuple[str, ...]

    def type_string(self) -> str:
        return f"enum {self.name}<{', '.join(self.variants)}>"


@dataclass(frozen=True)
class StructType(DataType):
    name: str
    fields: Tuple[Tuple[str, DataType], ...]

    def type_string(self) -> str:
        inner = ", ".join(f"{name}: {dt.type_string()}" for name, dt in self.fields)
        return f"struct {self.name}<{inner}>"

    def field_names(self) -> List[str]:
        return [name for name, _ in self.fields]


def _tokenize(source: str) -> List[str]:
    tokens = []
    pos = 0
    stripped_end = len(source.rstrip())
    while pos < stripped_end:
        match = _TOKEN_RE.match(source, pos)
        if match is None:
            raise DataTypeError(source, f"unexpected character at offset {pos}")
        tokens.append(match.group(1) or match.group(2))
        pos = match.end()
    return tokens


class _Parser:
    def __init__(self, source: str):
        self.source = source
        self.tokens = _tokenize(source)
        self.pos = 0

    def peek(self) -> Optional[str]:
        if self.pos < len(self.tokens):
            return self.tokens[self.pos]
        return None

    def next(self) -> str:
        token = self.peek()
        if token is None:
            raise DataTypeError(self.source, "unexpected end of input")
        self.pos += 1
        return token

    def expect(self, expected: str) -> None:
        token = self.next()
        if token != expected:
            raise DataTypeError(self.source, f"expected '{expected}', found '{token}'")

    def name(self) -> str:
        token = self.next()
        if token in "<>,:":
            raise DataTypeError(self.source, f"expected a name, found '{token}'")
        return token

    def parse_type(self) -> DataType:
        keyword = self.name()
        if keyword in PRIMITIVE_TYPES:
            return PrimitiveType(keyword)
        if keyword == "list":
            self.expect("<")
            element = self.parse_type()
            self.expect(">")
            return ListType(element)
        if keyword == "enum":
            return self.parse_enum()
        if keyword == "struct":
            return self.parse_struct()
        raise DataTypeError(self.source, f"unknown type '{keyword}'")

    def parse_enum(self) -> EnumType:
        type_name = self.name()
        self.expect("<")
        variants = [self.name()]
        while self.peek() == ",":
            self.next()
            variants.append(self.name())
        self.expect(">")
        if len(set(variants)) != len(variants):
            raise DataTypeError(self.source, "duplicate enum variant")
        return EnumType(type_name, tuple(variants))

    def parse_struct(self) -> StructType:
        type_name = self.name()
        self.expect("<")
        fields = [self.parse_field()]
        while self.peek() == ",":
            self.next()
            fields.append(self.parse_field())
        self.expect(">")
        names = [name for name, _ in fields]
        if len(set(names)) != len(names):
            raise DataTypeError(self.source, "duplicate struct field")
        return StructType(type_name, tuple(fields))

    def parse_field(self) -> Tuple[str, DataType]:
        field_name = self.name()
        self.expect(":")
        return field_name, self.parse_type()


def parse_data_type(source: str) -> DataType:
    """Parse a data type string.

    Raises:
        DataTypeError: If the string is empty or does not follow the grammar
    """
    if not source or not source.strip():
        raise DataTypeError(source, "empty type")
    parser = _Parser(source)
    data_type = parser.parse_type()
    if parser.peek() is not None:
        raise DataTypeError(source, f"unexpected trailing '{parser.peek()}'")
    return data_type
