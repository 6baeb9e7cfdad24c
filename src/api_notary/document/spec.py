"""The assembled OpenAPI document and its global metadata."""

import json
from types import MappingProxyType
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field

from api_notary.config import settings
from api_notary.route.metadata import RouteMetadata
from api_notary.schema.definition import SchemaNode


class Contact(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str | None = None
    url: str | None = None
    email: str | None = None


class License(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    identifier: str | None = None
    url: str | None = None


class Info(BaseModel):
    """The ``info`` object of the document."""

    model_config = ConfigDict(frozen=True)

    title: str = Field(default_factory=lambda: settings.TITLE)
    version: str = Field(default_factory=lambda: settings.VERSION)
    summary: str | None = None
    description: str | None = None
    terms_of_service: str | None = Field(default=None, serialization_alias="termsOfService")
    contact: Contact | None = None
    license: License | None = None


class Server(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str
    description: str | None = None


class Tag(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    description: str | None = None


class ExternalDocumentation(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str
    description: str | None = None


class PathItem(BaseModel):
    """All documented operations sharing one path template."""

    model_config = ConfigDict(frozen=True)

    path: str
    operations: tuple[RouteMetadata, ...]

    def operation(self, method: str) -> RouteMetadata | None:
        for op in self.operations:
            if op.method == method.lower():
                return op
        return None

    def to_dict(self) -> dict[str, Any]:
        return {op.method: op.to_operation() for op in self.operations}


class SpecDocument(BaseModel):
    """Immutable snapshot of a fully assembled API description.

    ``paths`` and ``schemas`` are read-only views; ``to_dict`` builds a new
    OpenAPI dictionary on every call so callers cannot alter the snapshot.
    """

    model_config = ConfigDict(frozen=True)

    openapi: str
    json_schema_dialect: str | None = None
    info: Info
    servers: tuple[Server, ...] = ()
    tags: tuple[Tag, ...] = ()
    external_docs: ExternalDocumentation | None = None
    path_items: tuple[PathItem, ...] = ()
    schema_items: tuple[tuple[str, SchemaNode], ...] = ()

    @property
    def paths(self) -> MappingProxyType:
        return MappingProxyType({item.path: item for item in self.path_items})

    @property
    def schemas(self) -> MappingProxyType:
        return MappingProxyType(dict(self.schema_items))

    @property
    def operations(self) -> list[RouteMetadata]:
        return [op for item in self.path_items for op in item.operations]

    def to_dict(self) -> dict[str, Any]:
        doc: dict[str, Any] = {"openapi": self.openapi}
        if self.json_schema_dialect:
            doc["jsonSchemaDialect"] = self.json_schema_dialect
        doc["info"] = self.info.model_dump(by_alias=True, exclude_none=True)
        if self.servers:
            doc["servers"] = [s.model_dump(exclude_none=True) for s in self.servers]
        doc["paths"] = {item.path: item.to_dict() for item in self.path_items}
        doc["components"] = {"schemas": {name: node.to_schema() for name, node in self.schema_items}}
        if self.tags:
            doc["tags"] = [t.model_dump(exclude_none=True) for t in self.tags]
        if self.external_docs is not None:
            doc["externalDocs"] = self.external_docs.model_dump(exclude_none=True)
        return doc

    def to_json(self, indent: int | None = None) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=settings.JSON_INDENT if indent is None else indent)

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.to_dict(), sort_keys=False, allow_unicode=True)
