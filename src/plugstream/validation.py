"""JSON Schema validation for argument values

Each data type maps to a JSON Schema (Draft-07). Argument buffers are
decoded with the reference ValueCoder and the decoded value is checked
against the schema of the argument's data type.

The validator extends Draft7Validator with a `binary` type for `bytes`
values and lets tuples count as arrays, since colors decode to tuples.
"""

from typing import Any, Dict, List

from jsonschema import Draft7Validator, validators

from plugstream.codec import CodecError, ValueCoder
from plugstream.data_type import DataType, EnumType, ListType, PrimitiveType, StructType


class ValidationError(Exception):
    """Validation error"""
    pass


class ArgumentValidationError(ValidationError):
    """Argument value does not match its data type"""

    def __init__(self, argument: str, details: str):
        super().__init__(f"Validation failed for argument '{argument}': {details}")
        self.argument = argument
        self.details = details


def _is_array(checker, instance) -> bool:
    return isinstance(instance, (list, tuple))


def _is_binary(checker, instance) -> bool:
    return isinstance(instance, (bytes, bytearray))


_TYPE_CHECKER = Draft7Validator.TYPE_CHECKER.redefine_many({
    "array": _is_array,
    "binary": _is_binary,
})

DataTypeValidator = validators.extend(Draft7Validator, type_checker=_TYPE_CHECKER)


_PRIMITIVE_SCHEMAS: Dict[str, Dict[str, Any]] = {
    "trigger": {"type": "null"},
    "boolean": {"type": "boolean"},
    "number": {"type": "number"},
    "string": {"type": "string"},
    "path": {"type": "string"},
    "url": {"type": "string", "minLength": 1},
    "svg": {"type": "string"},
    "json": {"type": "string"},
    "bytes": {"type": "binary"},
    "color": {
        "type": "array",
        "items": {"type": "integer", "minimum": 0, "maximum": 65535},
        "minItems": 4,
        "maxItems": 4,
    },
}


def json_schema_for(data_type: DataType) -> Dict[str, Any]:
    """JSON Schema describing the decoded values of a data type"""
    if isinstance(data_type, PrimitiveType):
        return dict(_PRIMITIVE_SCHEMAS[data_type.name])
    if isinstance(data_type, ListType):
        return {"type": "array", "items": json_schema_for(data_type.element)}
    if isinstance(data_type, EnumType):
        return {"enum": list(data_type.variants)}
    if isinstance(data_type, StructType):
        return {
            "type": "object",
            "properties": {name: json_schema_for(dt) for name, dt in data_type.fields},
            "required": data_type.field_names(),
            "additionalProperties": False,
        }
    raise ValueError(f"Unsupported data type: {data_type!r}")


class SchemaValidator:
    """Validates decoded values and raw argument buffers, caching validators per type"""

    def __init__(self):
        self.schema_cache: Dict[str, Any] = {}

    def _validator(self, data_type: DataType):
        key = data_type.type_string()
        if key not in self.schema_cache:
            self.schema_cache[key] = DataTypeValidator(json_schema_for(data_type))
        return self.schema_cache[key]

    def validate_value(self, name: str, data_type: DataType, value: Any) -> None:
        errors = list(self._validator(data_type).iter_errors(value))
        if errors:
            error_details = "\n".join([f"  - {e.message}" for e in errors])
            raise ArgumentValidationError(name, error_details)

    def validate_buffer(self, name: str, data_type: DataType, buffer: bytes) -> Any:
        """Decode and validate one argument buffer. Returns the decoded value."""
        try:
            value = ValueCoder(data_type).decode(buffer)
        except CodecError as e:
            raise ArgumentValidationError(name, str(e))
        self.validate_value(name, data_type, value)
        return value

    def validate_items(self, name: str, data_type: DataType, items: List[bytes]) -> None:
        """Validate the item buffers of a list argument against its element type"""
        if not isinstance(data_type, ListType):
            raise ArgumentValidationError(name, f"{data_type} is not a list type")
        for item in items:
            self.validate_buffer(name, data_type.element, item)

    def validate_arguments(self, arguments, raw_inputs: List[bytes]) -> None:
        """Validate positional buffers against a list of ArgumentSpec"""
        for spec, buffer in zip(arguments, raw_inputs):
            self.validate_buffer(spec.name, spec.data_type, buffer)
