"""Type-to-schema derivation.

Walks a Python type annotation and produces a SchemaNode. Composite types
(dataclasses, pydantic models, TypedDicts) and enums are registered in the
SchemaRegistry under a canonical name and referenced from everywhere else,
which is also what terminates self-referential types.
"""

import collections.abc
import datetime
import decimal
import types
import uuid
from enum import Enum
from typing import Annotated, Any, Literal, TypeVar, Union, get_args, get_origin

import structlog

from api_notary.errors import DerivationError, NameCollisionError
from api_notary.schema import definition
from api_notary.schema.configurator import DefaultConfigurator, composite_origin
from api_notary.schema.definition import SchemaNode
from api_notary.schema.registry import OverrideTable, SchemaRegistry

logger = structlog.get_logger()

PRIMITIVES: dict[Any, SchemaNode] = {
    str: definition.STRING,
    bool: definition.BOOLEAN,
    int: definition.INT,
    float: definition.DOUBLE,
    decimal.Decimal: definition.DECIMAL,
    uuid.UUID: definition.UUID,
    datetime.date: definition.DATE,
    datetime.datetime: definition.DATE_TIME,
    datetime.time: definition.TIME,
    bytes: definition.BYTES,
}

SEQUENCE_ORIGINS = (list, tuple, collections.abc.Sequence, collections.abc.MutableSequence, collections.abc.Iterable)
SET_ORIGINS = (set, frozenset, collections.abc.Set, collections.abc.MutableSet)
MAPPING_ORIGINS = (dict, collections.abc.Mapping, collections.abc.MutableMapping)


def canonical_name(type_: Any) -> str:
    """Stable component name for a type; generic arguments join with '-'."""
    origin = get_origin(type_)
    if origin is not None:
        return "-".join([canonical_name(origin)] + [canonical_name(a) for a in get_args(type_)])
    meta = getattr(type_, "__pydantic_generic_metadata__", None)
    if meta and meta.get("origin") is not None:
        return "-".join([canonical_name(meta["origin"])] + [canonical_name(a) for a in meta["args"]])
    return getattr(type_, "__name__", repr(type_))


def _lookup(table: dict, key: Any):
    try:
        return table.get(key)
    except TypeError:
        return None


class SchemaDeriver:
    """Derives schemas for types, consulting the override table first.

    ``derive`` is idempotent: deriving the same type twice yields equal
    nodes and registers each canonical name once.
    """

    def __init__(
        self,
        registry: SchemaRegistry | None = None,
        overrides: OverrideTable | None = None,
        configurator: DefaultConfigurator | None = None,
    ):
        self.registry = registry if registry is not None else SchemaRegistry()
        self.overrides = overrides if overrides is not None else OverrideTable()
        self.configurator = configurator or DefaultConfigurator()
        self._in_progress: dict[str, Any] = {}

    def derive(self, type_: Any) -> SchemaNode:
        override = self.overrides.get(type_)
        if override is not None:
            return override

        primitive = _lookup(PRIMITIVES, type_)
        if primitive is not None:
            return primitive
        if type_ is Any or type_ is object:
            return definition.ANY

        origin = get_origin(type_)
        args = get_args(type_)

        if origin is Annotated:
            return self.derive(args[0])
        if origin is Union or origin is types.UnionType:
            return self._derive_union(type_, args)
        if origin is Literal:
            return SchemaNode.enumeration(args)
        if isinstance(type_, TypeVar):
            raise DerivationError(type_, "unbound type variable")

        container = self._derive_container(type_, origin, args)
        if container is not None:
            return container

        if isinstance(type_, type) and issubclass(type_, Enum):
            return self._derive_enum(type_)
        if composite_origin(type_) is not None:
            return self._derive_composite(type_)

        raise DerivationError(type_)

    def element(self, type_: Any) -> SchemaNode:
        """Derive a member or element type.

        Unlike ``derive``, an overridden class is registered under its
        canonical name and referenced, so it appears once in the document.
        """
        override = self.overrides.get(type_)
        if override is not None and isinstance(type_, type) and _lookup(PRIMITIVES, type_) is None:
            name = canonical_name(type_)
            if self.registry.register(name, override, owner=type_):
                logger.debug("Override referenced", name=name)
            return SchemaNode.reference(name)
        return self.derive(type_)

    # -- structural cases -----------------------------------------------------

    def _derive_union(self, type_: Any, args: tuple) -> SchemaNode:
        members = [a for a in args if a is not type(None)]
        if len(members) == 1 and len(args) == 2:
            return SchemaNode.nullable(self.element(members[0]))
        raise DerivationError(type_, "unions of several types are not supported")

    def _derive_container(self, type_: Any, origin: Any, args: tuple) -> SchemaNode | None:
        bare = type_ if isinstance(type_, type) else None
        if origin in SEQUENCE_ORIGINS or bare in (list, tuple):
            if origin is tuple and args and not (len(args) == 2 and args[1] is Ellipsis):
                if len(set(args)) != 1:
                    raise DerivationError(type_, "heterogeneous tuples are not supported")
            return SchemaNode.array(self.element(args[0]) if args else definition.ANY)
        if origin in SET_ORIGINS or bare in (set, frozenset):
            return SchemaNode.array(self.element(args[0]) if args else definition.ANY, unique=True)
        if origin in MAPPING_ORIGINS or bare is dict:
            if args and not _is_string_key(args[0]):
                raise DerivationError(type_, "map keys must be strings")
            return SchemaNode.map(self.element(args[1]) if args else definition.ANY)
        return None

    def _derive_enum(self, type_: type[Enum]) -> SchemaNode:
        name = canonical_name(type_)
        if self.registry.owner(name) is type_:
            return SchemaNode.reference(name)
        node = SchemaNode.enumeration([m.value for m in type_], description=_enum_description(type_))
        self.registry.register(name, node, owner=type_)
        return SchemaNode.reference(name)

    def _derive_composite(self, type_: Any) -> SchemaNode:
        name = canonical_name(type_)
        if name in self.registry and self.registry.owner(name) == type_:
            return SchemaNode.reference(name)
        if name in self._in_progress:
            if self._in_progress[name] == type_:
                return SchemaNode.reference(name)
            raise NameCollisionError(name, self._in_progress[name], type_)

        self._in_progress[name] = type_
        try:
            properties: dict[str, SchemaNode] = {}
            required: list[str] = []
            for member in self.configurator.members(type_):
                properties[member.name] = self.element(member.annotation).with_description(member.description)
                if member.required:
                    required.append(member.name)
            node = SchemaNode.object(properties, required, description=self.configurator.description(type_))
        finally:
            del self._in_progress[name]

        self.registry.register(name, node, owner=type_)
        return SchemaNode.reference(name)


def _is_string_key(type_: Any) -> bool:
    if type_ is str:
        return True
    if isinstance(type_, type) and issubclass(type_, str):
        return True
    if get_origin(type_) is Literal:
        return all(isinstance(a, str) for a in get_args(type_))
    return False


def _enum_description(type_: type[Enum]) -> str | None:
    doc = type_.__dict__.get("__doc__")
    if not doc or doc == Enum.__doc__ or doc == "An enumeration.":
        return None
    return doc.strip()
