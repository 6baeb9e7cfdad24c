"""Document assembly: merge notarized routes and named schemas into one SpecDocument."""

from collections.abc import Iterable, Mapping

import structlog

from api_notary.config import settings
from api_notary.document.spec import ExternalDocumentation, Info, PathItem, Server, SpecDocument, Tag
from api_notary.errors import AssemblyError, ConflictError
from api_notary.route.metadata import RouteMetadata
from api_notary.schema.definition import SchemaNode

logger = structlog.get_logger()


def assemble(
    routes: Iterable[RouteMetadata],
    registry: Mapping[str, SchemaNode],
    info: Info | None = None,
    servers: Iterable[Server] = (),
    tags: Iterable[Tag] = (),
    external_docs: ExternalDocumentation | None = None,
    openapi: str | None = None,
    json_schema_dialect: str | None = None,
) -> SpecDocument:
    """Build an immutable SpecDocument.

    Routes are grouped by path template in first-seen order. Every schema
    reference, in routes and in registered schemas, must resolve to a
    registered name.
    """
    grouped: dict[str, list[RouteMetadata]] = {}
    for route in routes:
        operations = grouped.setdefault(route.path, [])
        if any(op.method == route.method for op in operations):
            raise ConflictError(f"{route.method.upper()} {route.path}", "operation is documented more than once")
        operations.append(route)

    schemas = {name: registry[name] for name in registry}
    _check_references(grouped, schemas)

    document = SpecDocument(
        openapi=openapi or settings.OPENAPI_VERSION,
        json_schema_dialect=json_schema_dialect or settings.JSON_SCHEMA_DIALECT,
        info=info or Info(),
        servers=tuple(servers),
        tags=tuple(tags),
        external_docs=external_docs,
        path_items=tuple(PathItem(path=path, operations=tuple(ops)) for path, ops in grouped.items()),
        schema_items=tuple(schemas.items()),
    )
    logger.info(
        "Spec document assembled",
        paths=len(grouped),
        operations=sum(len(ops) for ops in grouped.values()),
        schemas=len(schemas),
    )
    return document


def _check_references(grouped: dict[str, list[RouteMetadata]], schemas: dict[str, SchemaNode]) -> None:
    for path, operations in grouped.items():
        for op in operations:
            for node in op.schemas():
                for ref in node.references():
                    if ref not in schemas:
                        raise AssemblyError(ref, f"{op.method.upper()} {path}")
    for name, node in schemas.items():
        for ref in node.references():
            if ref not in schemas:
                raise AssemblyError(ref, f"components.schemas.{name}")
