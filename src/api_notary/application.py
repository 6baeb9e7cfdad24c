"""Application-level entry point.

NotarizedApplication collects type overrides and route documentation while
the host application initializes, then builds one SpecDocument. After
``build()`` the declarations are closed; ``rebuild()`` re-runs a
declaration callback against fresh registries and swaps the new document in
with a single assignment, so readers see either the old or the new document.

If the host has not configured structlog when the document is first built,
events below ``API_NOTARY_LOG_LEVEL`` (WARNING by default) are dropped.
"""

import threading
from collections.abc import Callable, Iterable, Mapping
from typing import Any

import structlog

from api_notary.config import ensure_logging
from api_notary.document.assembler import assemble
from api_notary.document.spec import ExternalDocumentation, Info, Server, SpecDocument, Tag
from api_notary.errors import NotaryError, RegistryFrozenError
from api_notary.route.notarizer import ExampleEncoder, NotarizedRoute, RouteNotarizer, encode_example
from api_notary.schema.configurator import DefaultConfigurator
from api_notary.schema.definition import SchemaNode
from api_notary.schema.deriver import SchemaDeriver
from api_notary.schema.registry import FrozenSchemaRegistry, OverrideTable, SchemaRegistry

logger = structlog.get_logger()

ROUTE_ATTR = "__notarized_route__"


class DocumentHolder:
    """Holds the current document. Swapping is atomic; reading needs no lock."""

    def __init__(self):
        self._document: SpecDocument | None = None
        self._lock = threading.Lock()

    @property
    def document(self) -> SpecDocument:
        document = self._document
        if document is None:
            raise NotaryError("Spec document has not been built yet")
        return document

    @property
    def ready(self) -> bool:
        return self._document is not None

    def swap(self, document: SpecDocument) -> SpecDocument | None:
        """Install ``document`` and return the one it replaced."""
        with self._lock:
            previous, self._document = self._document, document
        return previous


class NotarizedApplication:
    """Collects declarations during initialization and serves the built document."""

    def __init__(
        self,
        info: Info | None = None,
        servers: Iterable[Server] = (),
        tags: Iterable[Tag] = (),
        external_docs: ExternalDocumentation | None = None,
        overrides: Mapping[Any, SchemaNode] | None = None,
        configurator: DefaultConfigurator | None = None,
        example_encoder: ExampleEncoder = encode_example,
    ):
        self.info = info or Info()
        self.servers = tuple(servers)
        self.tags = tuple(tags)
        self.external_docs = external_docs
        self.configurator = configurator or DefaultConfigurator()
        self.example_encoder = example_encoder
        self.holder = DocumentHolder()
        self.registry: FrozenSchemaRegistry | None = None
        self._initial_overrides = dict(overrides or {})
        self._reset()

    # -- build phase ----------------------------------------------------------

    def register_override(self, type_: Any, node: SchemaNode) -> None:
        """Use ``node`` instead of deriving a schema for ``type_``."""
        self._check_open()
        self._overrides.append((type_, node))

    def register_type(self, type_: Any) -> None:
        """Include ``type_`` in the document components even if no route uses it."""
        self._check_open()
        self._types.append(type_)

    def notarize(self, route: NotarizedRoute | None = None, **kwargs: Any) -> NotarizedRoute:
        """Record documentation for a route, given as a NotarizedRoute or its fields."""
        self._check_open()
        if route is None:
            route = NotarizedRoute(**kwargs)
        self._routes.append(route)
        return route

    def documents(self, **kwargs: Any) -> Callable:
        """Decorator form of ``notarize`` for route handlers.

        The handler is returned unchanged apart from a ``__notarized_route__``
        attribute holding its NotarizedRoute.
        """

        def decorate(handler):
            setattr(handler, ROUTE_ATTR, self.notarize(**kwargs))
            return handler

        return decorate

    # -- assembly -------------------------------------------------------------

    def build(self) -> SpecDocument:
        """Derive, notarize and assemble; then close the build phase."""
        self._check_open()
        document, registry = self._assemble()
        self.registry = registry
        self._closed = True
        self.holder.swap(document)
        return document

    def rebuild(self, declare: Callable[["NotarizedApplication"], None]) -> SpecDocument:
        """Re-run initialization with the declarations made by ``declare``.

        If anything fails, the previous declarations and document stay in place.
        """
        saved = (self._overrides, self._types, self._routes, self._closed)
        self._reset()
        try:
            declare(self)
            document, registry = self._assemble()
        except Exception:
            self._overrides, self._types, self._routes, self._closed = saved
            raise
        self.registry = registry
        self._closed = True
        self.holder.swap(document)
        logger.info("Spec document rebuilt", paths=len(document.path_items))
        return document

    @property
    def document(self) -> SpecDocument:
        return self.holder.document

    def _assemble(self) -> tuple[SpecDocument, FrozenSchemaRegistry]:
        ensure_logging()
        overrides = OverrideTable()
        for type_, node in self._overrides:
            overrides.register(type_, node)
        registry = SchemaRegistry()
        deriver = SchemaDeriver(registry, overrides, self.configurator)
        for type_ in self._types:
            deriver.element(type_)

        notarizer = RouteNotarizer(deriver, self.example_encoder)
        routes = [metadata for route in self._routes for metadata in notarizer.notarize(route)]

        overrides.freeze()
        frozen = registry.freeze()
        document = assemble(
            routes,
            frozen,
            info=self.info,
            servers=self.servers,
            tags=self.tags,
            external_docs=self.external_docs,
        )
        return document, frozen

    def _reset(self) -> None:
        self._overrides: list[tuple[Any, SchemaNode]] = list(self._initial_overrides.items())
        self._types: list[Any] = []
        self._routes: list[NotarizedRoute] = []
        self._closed = False

    def _check_open(self) -> None:
        if self._closed:
            raise RegistryFrozenError("Application is already built; use rebuild() to change declarations")
