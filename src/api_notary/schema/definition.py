"""Schema nodes describing the shape of a type.

A SchemaNode is a small tree that serializes to a JSON-schema fragment as
used by OpenAPI 3.1 documents.
"""

from collections.abc import Iterator, Mapping
from enum import Enum
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

COMPONENTS_PREFIX = "#/components/schemas/"


def freeze(value: Any) -> Any:
    """Read-only copy of JSON-like data: mappings become proxies, lists become tuples."""
    if isinstance(value, Mapping):
        return MappingProxyType({key: freeze(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze(item) for item in value)
    return value


def thaw(value: Any) -> Any:
    """Plain dict/list copy of data produced by ``freeze``."""
    if isinstance(value, Mapping):
        return {key: thaw(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [thaw(item) for item in value]
    return value


class SchemaKind(str, Enum):
    PRIMITIVE = "primitive"
    OBJECT = "object"
    ARRAY = "array"
    MAP = "map"
    ENUM = "enum"
    REFERENCE = "reference"
    NULLABLE = "nullable"


class SchemaNode(BaseModel):
    """A node in a schema tree.

    ``default`` and ``description`` are omitted from the serialized form when
    they are None. ``properties`` keeps member declaration order.
    """

    model_config = ConfigDict(frozen=True)

    kind: SchemaKind
    type: str | None = None
    format: str | None = None
    description: str | None = None
    default: Any = None
    properties: Mapping[str, "SchemaNode"] = Field(default_factory=dict, validate_default=True)
    required: tuple[str, ...] = ()
    items: "SchemaNode | None" = None
    unique_items: bool = False
    additional_properties: "SchemaNode | None" = None
    enum: tuple[Any, ...] = ()
    ref: str | None = None
    inner: "SchemaNode | None" = None

    @field_validator("properties")
    @classmethod
    def _read_only_properties(cls, value: Mapping[str, "SchemaNode"]) -> Mapping[str, "SchemaNode"]:
        return MappingProxyType(dict(value))

    @field_validator("default", "enum")
    @classmethod
    def _read_only_values(cls, value: Any) -> Any:
        return freeze(value)

    # -- constructors ---------------------------------------------------------

    @classmethod
    def primitive(cls, type: str, format: str | None = None, **kwargs: Any) -> "SchemaNode":
        return cls(kind=SchemaKind.PRIMITIVE, type=type, format=format, **kwargs)

    @classmethod
    def object(
        cls,
        properties: dict[str, "SchemaNode"],
        required: list[str] | tuple[str, ...] = (),
        description: str | None = None,
    ) -> "SchemaNode":
        return cls(
            kind=SchemaKind.OBJECT,
            type="object",
            properties=properties,
            required=tuple(required),
            description=description,
        )

    @classmethod
    def array(cls, items: "SchemaNode", unique: bool = False) -> "SchemaNode":
        return cls(kind=SchemaKind.ARRAY, type="array", items=items, unique_items=unique)

    @classmethod
    def map(cls, values: "SchemaNode") -> "SchemaNode":
        return cls(kind=SchemaKind.MAP, type="object", additional_properties=values)

    @classmethod
    def enumeration(cls, values: list[Any] | tuple[Any, ...], description: str | None = None) -> "SchemaNode":
        return cls(kind=SchemaKind.ENUM, type=_enum_type(values), enum=tuple(values), description=description)

    @classmethod
    def reference(cls, name: str) -> "SchemaNode":
        return cls(kind=SchemaKind.REFERENCE, ref=name)

    @classmethod
    def nullable(cls, inner: "SchemaNode") -> "SchemaNode":
        if inner.kind is SchemaKind.NULLABLE:
            return inner
        return cls(kind=SchemaKind.NULLABLE, inner=inner)

    # -- queries --------------------------------------------------------------

    @property
    def is_reference(self) -> bool:
        return self.kind is SchemaKind.REFERENCE

    def references(self) -> Iterator[str]:
        """Yield every referenced schema name in this tree, depth first."""
        if self.ref is not None:
            yield self.ref
        for child in self.properties.values():
            yield from child.references()
        for child in (self.items, self.additional_properties, self.inner):
            if child is not None:
                yield from child.references()

    def with_description(self, description: str | None) -> "SchemaNode":
        if description is None or description == self.description:
            return self
        return self.model_copy(update={"description": description})

    # -- serialization --------------------------------------------------------

    def to_schema(self) -> dict[str, Any]:
        """Render this node as an OpenAPI 3.1 schema object."""
        if self.kind is SchemaKind.REFERENCE:
            schema: dict[str, Any] = {"$ref": COMPONENTS_PREFIX + self.ref}
        elif self.kind is SchemaKind.NULLABLE:
            schema = {"oneOf": [{"type": "null"}, self.inner.to_schema()]}
        else:
            schema = {}
            if self.type is not None:
                schema["type"] = self.type
            if self.format is not None:
                schema["format"] = self.format
            if self.kind is SchemaKind.OBJECT:
                schema["properties"] = {name: node.to_schema() for name, node in self.properties.items()}
                if self.required:
                    schema["required"] = list(self.required)
            elif self.kind is SchemaKind.ARRAY:
                schema["items"] = self.items.to_schema()
                if self.unique_items:
                    schema["uniqueItems"] = True
            elif self.kind is SchemaKind.MAP:
                schema["additionalProperties"] = self.additional_properties.to_schema()
            elif self.kind is SchemaKind.ENUM:
                schema["enum"] = thaw(self.enum)
        if self.description is not None:
            schema["description"] = self.description
        if self.default is not None:
            schema["default"] = thaw(self.default)
        return schema


def _enum_type(values) -> str | None:
    if values and all(isinstance(v, bool) for v in values):
        return "boolean"
    if values and all(isinstance(v, int) and not isinstance(v, bool) for v in values):
        return "integer"
    if all(isinstance(v, str) for v in values):
        return "string"
    return None


STRING = SchemaNode.primitive("string")
BOOLEAN = SchemaNode.primitive("boolean")
INT = SchemaNode.primitive("integer", "int32")
LONG = SchemaNode.primitive("integer", "int64")
FLOAT = SchemaNode.primitive("number", "float")
DOUBLE = SchemaNode.primitive("number", "double")
DECIMAL = SchemaNode.primitive("string", "decimal")
UUID = SchemaNode.primitive("string", "uuid")
DATE = SchemaNode.primitive("string", "date")
DATE_TIME = SchemaNode.primitive("string", "date-time")
TIME = SchemaNode.primitive("string", "time")
BYTES = SchemaNode.primitive("string", "byte")
ANY = SchemaNode(kind=SchemaKind.PRIMITIVE, description="Free-form value")
