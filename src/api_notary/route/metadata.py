"""Route documentation models.

The ``*Info`` models are what application code declares next to a route;
the notarizer turns them into the resolved ``RouteMetadata`` records that
the document assembler consumes.
"""

from collections.abc import Mapping
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from api_notary.schema.definition import SchemaNode, freeze, thaw

JSON = "application/json"


class ParameterLocation(str, Enum):
    PATH = "path"
    QUERY = "query"
    HEADER = "header"
    COOKIE = "cookie"


class Parameter(BaseModel):
    """A single operation parameter.

    Either ``schema_node`` or ``annotation`` must be given; an annotation is
    derived into a schema when the route is notarized.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    location: ParameterLocation  # path / query / header / cookie
    schema_node: SchemaNode | None = None
    annotation: Any = None
    required: bool = False
    description: str | None = None
    deprecated: bool = False
    examples: Mapping[str, Any] = Field(default_factory=dict, validate_default=True)
    # filled in by the binder for an undeclared {placeholder}
    implicit: bool = False

    @field_validator("examples")
    @classmethod
    def _read_only_examples(cls, value: Mapping[str, Any]) -> Mapping[str, Any]:
        return freeze(value)

    @model_validator(mode="before")
    @classmethod
    def _path_is_required(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("location") in (ParameterLocation.PATH, "path"):
            data = {**data, "required": True}
        return data

    @model_validator(mode="after")
    def _has_schema(self):
        if self.schema_node is None and self.annotation is None:
            raise ValueError(f"parameter '{self.name}' needs a schema_node or an annotation")
        return self

    def same_shape(self, other: "Parameter") -> bool:
        """True if both declarations describe the same parameter."""
        if self.location is not other.location:
            return False
        if self.schema_node is not None and other.schema_node is not None:
            return self.schema_node == other.schema_node
        return self.annotation == other.annotation

    def shape(self) -> str:
        kind = self.schema_node.to_schema() if self.schema_node is not None else self.annotation
        return f"{self.name}:{self.location.value}:{kind}"

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"name": self.name, "in": self.location.value, "required": self.required}
        if self.description is not None:
            result["description"] = self.description
        if self.deprecated:
            result["deprecated"] = True
        result["schema"] = self.schema_node.to_schema()
        if self.examples:
            result["examples"] = {name: {"value": thaw(value)} for name, value in self.examples.items()}
        return result


# -- declarations -------------------------------------------------------------


class RequestInfo(BaseModel):
    """Request body declaration."""

    request_type: Any
    description: str = ""
    examples: dict[str, Any] = {}
    required: bool = True
    media_types: tuple[str, ...] = (JSON,)


class ResponseInfo(BaseModel):
    """Response declaration. ``response_type=None`` documents an empty body."""

    status: int = 200
    response_type: Any = None
    description: str
    examples: dict[str, Any] = {}
    media_types: tuple[str, ...] = (JSON,)


class MethodInfo(BaseModel):
    """Documentation for one HTTP method of a route."""

    summary: str
    description: str = ""
    operation_id: str | None = None
    tags: tuple[str, ...] = ()
    deprecated: bool = False
    parameters: list[Parameter] = []
    request: RequestInfo | None = None
    response: ResponseInfo
    can_respond: list[ResponseInfo] = []


# -- resolved metadata --------------------------------------------------------


class _Content(BaseModel):
    model_config = ConfigDict(frozen=True)

    schema_node: SchemaNode | None = None
    description: str = ""
    examples: Mapping[str, Any] = Field(default_factory=dict, validate_default=True)
    media_types: tuple[str, ...] = (JSON,)

    @field_validator("examples")
    @classmethod
    def _read_only_examples(cls, value: Mapping[str, Any]) -> Mapping[str, Any]:
        return freeze(value)

    def content(self) -> dict[str, Any]:
        result = {}
        for media_type in self.media_types:
            entry: dict[str, Any] = {"schema": self.schema_node.to_schema()}
            if self.examples:
                entry["examples"] = {name: {"value": thaw(value)} for name, value in self.examples.items()}
            result[media_type] = entry
        return result

    def schemas(self) -> list[SchemaNode]:
        return [self.schema_node] if self.schema_node is not None else []


class RequestBody(_Content):
    required: bool = True

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if self.description:
            result["description"] = self.description
        result["content"] = self.content()
        result["required"] = self.required
        return result


class ResponseVariant(_Content):
    status: int

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"description": self.description}
        if self.schema_node is not None:
            result["content"] = self.content()
        return result


class RouteMetadata(BaseModel):
    """Everything documented about one method on one path template."""

    model_config = ConfigDict(frozen=True)

    path: str
    method: str  # lower case: get / post / put / patch / delete / head / options
    summary: str
    description: str = ""
    operation_id: str | None = None
    tags: tuple[str, ...] = ()
    deprecated: bool = False
    parameters: tuple[Parameter, ...] = ()
    request_body: RequestBody | None = None
    response: ResponseVariant
    alternatives: tuple[ResponseVariant, ...] = ()

    @property
    def responses(self) -> tuple[ResponseVariant, ...]:
        return (self.response,) + self.alternatives

    def schemas(self) -> list[SchemaNode]:
        """Every schema node referenced by this operation."""
        nodes = [p.schema_node for p in self.parameters if p.schema_node is not None]
        if self.request_body is not None:
            nodes.extend(self.request_body.schemas())
        for variant in self.responses:
            nodes.extend(variant.schemas())
        return nodes

    def to_operation(self) -> dict[str, Any]:
        op: dict[str, Any] = {}
        if self.tags:
            op["tags"] = list(self.tags)
        op["summary"] = self.summary
        if self.description:
            op["description"] = self.description
        if self.operation_id:
            op["operationId"] = self.operation_id
        if self.parameters:
            op["parameters"] = [p.to_dict() for p in self.parameters]
        if self.request_body is not None:
            op["requestBody"] = self.request_body.to_dict()
        op["responses"] = {str(v.status): v.to_dict() for v in self.responses}
        if self.deprecated:
            op["deprecated"] = True
        return op
