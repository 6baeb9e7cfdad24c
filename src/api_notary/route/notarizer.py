"""Route notarization: turn route declarations into RouteMetadata."""

from collections.abc import Callable
from typing import Any

import structlog
from pydantic import BaseModel, model_validator
from pydantic_core import to_jsonable_python

from api_notary.errors import ConflictError
from api_notary.route.location import LocationDescriptor, bind, descriptor_of, is_location, merge_parameter
from api_notary.route.metadata import (
    MethodInfo,
    Parameter,
    RequestBody,
    RequestInfo,
    ResponseInfo,
    ResponseVariant,
    RouteMetadata,
)
from api_notary.schema.deriver import SchemaDeriver

logger = structlog.get_logger()

METHODS = ("get", "put", "post", "delete", "options", "head", "patch", "trace")

ExampleEncoder = Callable[[Any], Any]


def encode_example(value: Any) -> Any:
    """Convert an example instance into JSON-compatible data."""
    return to_jsonable_python(value, by_alias=True, fallback=str)


class NotarizedRoute(BaseModel):
    """Documentation attached to one route.

    The route is identified either by a literal ``path`` template or by a
    ``location`` (a LocationDescriptor or a class decorated with
    ``@location``). ``parameters`` apply to every documented method.
    """

    path: str | None = None
    location: Any = None
    parameters: list[Parameter] = []
    tags: tuple[str, ...] = ()
    get: MethodInfo | None = None
    put: MethodInfo | None = None
    post: MethodInfo | None = None
    delete: MethodInfo | None = None
    options: MethodInfo | None = None
    head: MethodInfo | None = None
    patch: MethodInfo | None = None
    trace: MethodInfo | None = None

    @model_validator(mode="after")
    def _one_target(self):
        if (self.path is None) == (self.location is None):
            raise ValueError("exactly one of 'path' or 'location' is required")
        if self.location is not None and not (
            isinstance(self.location, LocationDescriptor) or is_location(self.location)
        ):
            raise ValueError(f"{self.location!r} is not a location")
        return self

    def methods(self) -> list[tuple[str, MethodInfo]]:
        return [(m, getattr(self, m)) for m in METHODS if getattr(self, m) is not None]

    def descriptor(self) -> LocationDescriptor:
        if self.location is None:
            # a literal path carries its route-level parameters as declarations
            return LocationDescriptor(fragment=self.path, parameters=tuple(self.parameters))
        if isinstance(self.location, LocationDescriptor):
            return self.location
        return descriptor_of(self.location)


class RouteNotarizer:
    """Builds RouteMetadata for declared routes using a shared SchemaDeriver."""

    def __init__(self, deriver: SchemaDeriver, example_encoder: ExampleEncoder = encode_example):
        self.deriver = deriver
        self.example_encoder = example_encoder

    def notarize(self, route: NotarizedRoute) -> list[RouteMetadata]:
        """Return one RouteMetadata per documented method of ``route``."""
        descriptor = route.descriptor()
        template, bound = bind(descriptor, resolve=self.resolve)
        methods = route.methods()
        if not methods:
            raise ConflictError(template, "route documents no HTTP methods")

        params = {param.name: param for param in bound}
        if route.location is not None:
            for param in route.parameters:
                merge_parameter(params, self.resolve(param), template)

        result = []
        for method, info in methods:
            metadata = self._notarize_method(template, method, info, dict(params), route.tags)
            logger.debug("Route notarized", path=template, method=method)
            result.append(metadata)
        return result

    def resolve(self, param: Parameter) -> Parameter:
        """Derive the schema of a parameter declared by annotation."""
        if param.schema_node is not None:
            return param
        return param.model_copy(update={"schema_node": self.deriver.element(param.annotation)})

    def _notarize_method(
        self,
        template: str,
        method: str,
        info: MethodInfo,
        params: dict[str, Parameter],
        route_tags: tuple[str, ...],
    ) -> RouteMetadata:
        label = f"{method.upper()} {template}"
        for param in info.parameters:
            merge_parameter(params, self.resolve(param), label)

        response = self._variant(info.response)
        alternatives = []
        seen = {response.status}
        for extra in info.can_respond:
            if extra.status in seen:
                raise ConflictError(label, f"response status {extra.status} is declared more than once")
            seen.add(extra.status)
            alternatives.append(self._variant(extra))

        tags = tuple(dict.fromkeys(route_tags + info.tags))
        return RouteMetadata(
            path=template,
            method=method,
            summary=info.summary,
            description=info.description,
            operation_id=info.operation_id,
            tags=tags,
            deprecated=info.deprecated,
            parameters=tuple(params.values()),
            request_body=self._request(info.request) if info.request is not None else None,
            response=response,
            alternatives=tuple(alternatives),
        )

    def _variant(self, info: ResponseInfo) -> ResponseVariant:
        node = self.deriver.element(info.response_type) if info.response_type is not None else None
        return ResponseVariant(
            status=info.status,
            schema_node=node,
            description=info.description,
            examples=self._examples(info.examples),
            media_types=info.media_types,
        )

    def _request(self, info: RequestInfo) -> RequestBody:
        return RequestBody(
            schema_node=self.deriver.element(info.request_type),
            description=info.description,
            examples=self._examples(info.examples),
            required=info.required,
            media_types=info.media_types,
        )

    def _examples(self, examples: dict[str, Any]) -> dict[str, Any]:
        return {name: self.example_encoder(value) for name, value in examples.items()}
