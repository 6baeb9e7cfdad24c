"""Member introspection for composite types.

A configurator decides which members of a dataclass, pydantic model or
TypedDict end up in the schema, and under which names.
"""

import dataclasses
import inspect
from dataclasses import dataclass
from typing import Any, TypeVar, get_args, get_origin, get_type_hints, is_typeddict

from pydantic import BaseModel


@dataclass
class Member:
    """One schema property of a composite type."""

    name: str
    annotation: Any
    required: bool
    description: str | None = None


def composite_origin(type_: Any) -> type | None:
    """Return the class behind ``type_`` if it is an object-like composite."""
    target = get_origin(type_) or type_
    if not isinstance(target, type):
        return None
    if dataclasses.is_dataclass(target) or is_typeddict(target):
        return target
    if issubclass(target, BaseModel):
        return target
    return None


def substitute(annotation: Any, bindings: dict[Any, Any]) -> Any:
    """Replace type variables in ``annotation`` with their bound arguments."""
    if not bindings:
        return annotation
    if isinstance(annotation, TypeVar):
        return bindings.get(annotation, annotation)
    params = getattr(annotation, "__parameters__", ())
    if params and get_origin(annotation) is not None:
        return annotation[tuple(bindings.get(p, p) for p in params)]
    return annotation


class DefaultConfigurator:
    """Emits every declared member under its attribute name."""

    def members(self, type_: Any) -> list[Member]:
        cls = composite_origin(type_)
        bindings = {}
        if get_origin(type_) is not None:
            bindings = dict(zip(getattr(cls, "__parameters__", ()), get_args(type_)))

        if issubclass(cls, BaseModel):
            return [
                m for name, info in cls.model_fields.items()
                if (m := self.model_member(name, info)) is not None
            ]
        if is_typeddict(cls):
            hints = get_type_hints(cls)
            return [
                Member(name=name, annotation=substitute(hint, bindings), required=name in cls.__required_keys__)
                for name, hint in hints.items()
            ]

        hints = get_type_hints(cls, include_extras=True)
        result = []
        for f in dataclasses.fields(cls):
            member = self.dataclass_member(f, substitute(hints.get(f.name, f.type), bindings))
            if member is not None:
                result.append(member)
        return result

    def model_member(self, name: str, info) -> Member | None:
        return Member(name=name, annotation=info.annotation, required=info.is_required(), description=info.description)

    def dataclass_member(self, f: dataclasses.Field, annotation: Any) -> Member | None:
        required = f.default is dataclasses.MISSING and f.default_factory is dataclasses.MISSING
        return Member(name=f.name, annotation=annotation, required=required, description=f.metadata.get("description"))

    def description(self, type_: Any) -> str | None:
        cls = composite_origin(type_)
        doc = cls.__dict__.get("__doc__")
        if not doc:
            return None
        # dataclasses synthesize a signature docstring when none is written
        if dataclasses.is_dataclass(cls) and doc.startswith(f"{cls.__name__}("):
            return None
        return inspect.cleandoc(doc)


class PydanticConfigurator(DefaultConfigurator):
    """Honours serialization aliases and excluded fields.

    For pydantic models this reads ``Field(serialization_alias=...)``,
    ``Field(alias=...)`` and ``Field(exclude=True)``. Plain dataclasses may
    carry the same information in ``field(metadata={"alias": ..., "exclude": True})``.
    """

    def model_member(self, name: str, info) -> Member | None:
        if info.exclude is True:
            return None
        member = super().model_member(name, info)
        member.name = info.serialization_alias or info.alias or name
        return member

    def dataclass_member(self, f: dataclasses.Field, annotation: Any) -> Member | None:
        if f.metadata.get("exclude"):
            return None
        member = super().dataclass_member(f, annotation)
        member.name = f.metadata.get("alias", f.name)
        return member
