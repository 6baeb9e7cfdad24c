"""Process-wide schema state: the named schema registry and the override table.

Both objects have two phases. During application initialization they accept
writes; ``freeze()`` ends that phase and returns a read-only view.
"""

from collections.abc import Iterator, Mapping
from types import MappingProxyType
from typing import Any

import structlog

from api_notary.errors import NameCollisionError, RegistryFrozenError
from api_notary.schema.definition import SchemaNode

logger = structlog.get_logger()


class FrozenSchemaRegistry(Mapping):
    """Read-only mapping of canonical name to SchemaNode."""

    def __init__(self, schemas: Mapping[str, SchemaNode]):
        self._schemas = MappingProxyType(dict(schemas))

    def __getitem__(self, name: str) -> SchemaNode:
        return self._schemas[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._schemas)

    def __len__(self) -> int:
        return len(self._schemas)

    def __repr__(self) -> str:
        return f"FrozenSchemaRegistry({list(self._schemas)})"


class SchemaRegistry:
    """Build-phase registry of named schemas.

    A name maps to exactly one shape. Registering a structurally different
    node under a taken name raises NameCollisionError; registering an equal
    node again is a no-op.
    """

    def __init__(self):
        self._schemas: dict[str, SchemaNode] = {}
        self._owners: dict[str, Any] = {}
        self._frozen = False

    def register(self, name: str, node: SchemaNode, owner: Any = None) -> bool:
        """Register ``node`` under ``name``. Returns False if it was already present."""
        self._check_writable()
        existing = self._schemas.get(name)
        if existing is not None:
            if existing != node:
                raise NameCollisionError(name, self._owners.get(name), owner)
            return False
        self._schemas[name] = node
        self._owners[name] = owner
        logger.debug("Schema registered", name=name, kind=node.kind.value)
        return True

    def owner(self, name: str) -> Any:
        """Return the type that first registered ``name``, or None."""
        return self._owners.get(name)

    def get(self, name: str) -> SchemaNode | None:
        return self._schemas.get(name)

    def __getitem__(self, name: str) -> SchemaNode:
        return self._schemas[name]

    def __contains__(self, name: object) -> bool:
        return name in self._schemas

    def __iter__(self) -> Iterator[str]:
        return iter(self._schemas)

    def __len__(self) -> int:
        return len(self._schemas)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> FrozenSchemaRegistry:
        """End the build phase and return a read-only snapshot."""
        self._frozen = True
        return FrozenSchemaRegistry(self._schemas)

    def _check_writable(self) -> None:
        if self._frozen:
            raise RegistryFrozenError("Schema registry is frozen; rebuild to register new schemas")


class OverrideTable:
    """Caller-supplied schemas for types that should not be introspected.

    Later registrations for the same type replace earlier ones.
    """

    def __init__(self, overrides: Mapping[Any, SchemaNode] | None = None):
        self._overrides: dict[Any, SchemaNode] = {}
        self._frozen = False
        for type_, node in (overrides or {}).items():
            self.register(type_, node)

    def register(self, type_: Any, node: SchemaNode) -> None:
        if self._frozen:
            raise RegistryFrozenError("Override table is frozen; rebuild to register new overrides")
        if type_ in self._overrides:
            logger.debug("Override replaced", type=repr(type_))
        self._overrides[type_] = node

    def get(self, type_: Any) -> SchemaNode | None:
        try:
            return self._overrides.get(type_)
        except TypeError:
            # unhashable annotations can never have been registered
            return None

    def __contains__(self, type_: object) -> bool:
        return self.get(type_) is not None

    def __len__(self) -> int:
        return len(self._overrides)

    def items(self):
        return self._overrides.items()

    def freeze(self) -> Mapping[Any, SchemaNode]:
        self._frozen = True
        return MappingProxyType(dict(self._overrides))
