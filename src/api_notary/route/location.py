"""Hierarchical route locations and the path binder.

A LocationDescriptor contributes one path fragment and its own parameter
declarations, and may point at a parent descriptor. ``bind`` flattens the
chain into one path template and one ordered parameter list.

Classes can be turned into locations with the ``location`` decorator::

    @location("/type/{name}")
    @dataclass
    class Type:
        name: str

    @location("/other/{page}")
    @dataclass
    class Other:
        parent: Type
        page: int

    bind(descriptor_of(Other))  # ("/type/{name}/other/{page}", [name, page])
"""

import dataclasses
import re
from collections.abc import Callable
from typing import Any, get_type_hints

from pydantic import BaseModel, ConfigDict

from api_notary.errors import ConflictError
from api_notary.route.metadata import Parameter, ParameterLocation
from api_notary.schema.definition import STRING

PLACEHOLDER = re.compile(r"\{([^{}/]+)\}")

_FRAGMENT_ATTR = "__location_fragment__"
_PARAMETERS_ATTR = "__location_parameters__"
_DESCRIPTOR_ATTR = "__location_descriptor__"


class LocationDescriptor(BaseModel):
    """One level of a route hierarchy. Children never mutate their parent."""

    model_config = ConfigDict(frozen=True)

    fragment: str
    parameters: tuple[Parameter, ...] = ()
    parent: "LocationDescriptor | None" = None

    def chain(self) -> list["LocationDescriptor"]:
        """Descriptors from the root down to this one."""
        levels = []
        seen = set()
        node = self
        while node is not None:
            if id(node) in seen:
                raise ConflictError(node.fragment, "location descriptor is its own ancestor")
            seen.add(id(node))
            levels.append(node)
            node = node.parent
        levels.reverse()
        return levels


def bind(
    descriptor: LocationDescriptor,
    resolve: Callable[[Parameter], Parameter] | None = None,
) -> tuple[str, tuple[Parameter, ...]]:
    """Flatten a descriptor chain into ``(path_template, parameters)``.

    Fragments and parameters are concatenated root to leaf. ``resolve`` is
    applied to each declaration before it is compared with earlier ones.
    """
    levels = descriptor.chain()
    template = "".join(_normalize(level.fragment) for level in levels) or "/"

    params: dict[str, Parameter] = {}
    for level in levels:
        for param in level.parameters:
            merge_parameter(params, resolve(param) if resolve else param, template)
        for name in PLACEHOLDER.findall(level.fragment):
            if name not in params:
                params[name] = Parameter(name=name, location=ParameterLocation.PATH, schema_node=STRING, implicit=True)
    return template, tuple(params.values())


def merge_parameter(params: dict[str, Parameter], param: Parameter, route: str) -> None:
    """Add ``param`` to ``params`` keyed by name, rejecting incompatible redeclarations.

    An implicit placeholder parameter is replaced in place by an explicit path
    declaration of the same name.
    """
    existing = params.get(param.name)
    if existing is None:
        params[param.name] = param
    elif existing.implicit and not param.implicit and param.location is ParameterLocation.PATH:
        params[param.name] = param
    elif not existing.same_shape(param):
        raise ConflictError(
            route,
            f"parameter '{param.name}' declared as {existing.shape()} and as {param.shape()}",
        )


def _normalize(fragment: str) -> str:
    fragment = fragment.strip().rstrip("/")
    if fragment and not fragment.startswith("/"):
        fragment = "/" + fragment
    return fragment


# -- class decorator ----------------------------------------------------------


def location(fragment: str, parameters: list[Parameter] | tuple[Parameter, ...] = ()):
    """Mark a class as a route location.

    Members named in a ``{placeholder}`` become path parameters, a member
    annotated with another location class names the parent, and every other
    member becomes a query parameter. Explicit ``parameters`` take precedence
    over members of the same name. The descriptor is built on first use so
    that parent classes may be declared later in the module.
    """

    def decorate(cls):
        setattr(cls, _FRAGMENT_ATTR, fragment)
        setattr(cls, _PARAMETERS_ATTR, tuple(parameters))
        return cls

    return decorate


def is_location(cls: Any) -> bool:
    return isinstance(cls, type) and _FRAGMENT_ATTR in cls.__dict__


def descriptor_of(cls: type) -> LocationDescriptor:
    """Return the (cached) LocationDescriptor for a decorated class."""
    if not is_location(cls):
        raise TypeError(f"{cls!r} is not decorated with @location")
    cached = cls.__dict__.get(_DESCRIPTOR_ATTR)
    if cached is not None:
        return cached

    fragment = cls.__dict__[_FRAGMENT_ATTR]
    declared = list(cls.__dict__[_PARAMETERS_ATTR])
    names = {p.name for p in declared}
    placeholders = set(PLACEHOLDER.findall(fragment))
    parent = None

    defaults = _defaults(cls)
    for name, hint in get_type_hints(cls).items():
        if is_location(hint):
            parent = descriptor_of(hint)
            continue
        if name in names:
            continue
        if name in placeholders:
            declared.append(Parameter(name=name, location=ParameterLocation.PATH, annotation=hint))
        else:
            declared.append(
                Parameter(name=name, location=ParameterLocation.QUERY, annotation=hint, required=name not in defaults)
            )

    descriptor = LocationDescriptor(fragment=fragment, parameters=tuple(declared), parent=parent)
    setattr(cls, _DESCRIPTOR_ATTR, descriptor)
    return descriptor


def _defaults(cls: type) -> set[str]:
    if dataclasses.is_dataclass(cls):
        return {
            f.name for f in dataclasses.fields(cls)
            if f.default is not dataclasses.MISSING or f.default_factory is not dataclasses.MISSING
        }
    return {name for name in getattr(cls, "__annotations__", {}) if hasattr(cls, name)}
