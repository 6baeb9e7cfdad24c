import datetime
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Annotated, Literal, Optional, TypedDict

import pytest
from pydantic import BaseModel, Field

from api_notary.errors import DerivationError, NameCollisionError
from api_notary.schema import definition
from api_notary.schema.configurator import PydanticConfigurator
from api_notary.schema.definition import SchemaKind, SchemaNode
from api_notary.schema.deriver import SchemaDeriver, canonical_name
from api_notary.schema.registry import OverrideTable, SchemaRegistry
from playground import VERSION_SCHEMA, Entry, Response, Version


class Color(Enum):
    RED = "red"
    GREEN = "green"
    BLUE = "blue"


@dataclass
class TreeNode:
    value: int
    children: list["TreeNode"]
    parent: Optional["TreeNode"] = None


@dataclass
class Link:
    value: int
    next: Optional["Link"] = None


@dataclass
class Author:
    name: str
    books: list["Book"]


@dataclass
class Book:
    title: str
    author: Author


@dataclass
class Documented:
    """A documented dataclass."""

    count: int = field(metadata={"description": "How many"})


class Account(BaseModel):
    account_id: int = Field(serialization_alias="accountId", description="Account number")
    secret: str = Field(exclude=True)
    nickname: str | None = None


class Movie(TypedDict):
    title: str
    year: int


def _deriver(overrides=None, configurator=None):
    return SchemaDeriver(SchemaRegistry(), OverrideTable(overrides), configurator)


class TestPrimitives:
    @pytest.mark.parametrize(
        "type_, expected",
        [
            (str, definition.STRING),
            (bool, definition.BOOLEAN),
            (int, definition.INT),
            (float, definition.DOUBLE),
            (uuid.UUID, definition.UUID),
            (datetime.datetime, definition.DATE_TIME),
            (datetime.date, definition.DATE),
        ],
    )
    def test_primitive(self, type_, expected):
        assert _deriver().derive(type_) == expected

    def test_primitives_register_nothing(self):
        deriver = _deriver()
        deriver.derive(int)
        assert len(deriver.registry) == 0


class TestContainers:
    def test_list(self):
        assert _deriver().derive(list[int]) == SchemaNode.array(definition.INT)

    def test_homogeneous_tuple(self):
        assert _deriver().derive(tuple[str, ...]) == SchemaNode.array(definition.STRING)

    def test_heterogeneous_tuple_fails(self):
        with pytest.raises(DerivationError):
            _deriver().derive(tuple[int, str])

    def test_set_is_unique_array(self):
        node = _deriver().derive(set[str])
        assert node.kind is SchemaKind.ARRAY
        assert node.unique_items is True

    def test_mapping(self):
        assert _deriver().derive(dict[str, bool]) == SchemaNode.map(definition.BOOLEAN)

    def test_mapping_requires_string_keys(self):
        with pytest.raises(DerivationError):
            _deriver().derive(dict[int, str])

    def test_nested_containers(self):
        node = _deriver().derive(dict[str, list[Color]])
        assert node.additional_properties.items == SchemaNode.reference("Color")


class TestEnums:
    def test_literal_is_inline_enum(self):
        node = _deriver().derive(Literal["b", "a", "c"])
        assert node.kind is SchemaKind.ENUM
        assert node.enum == ("b", "a", "c")

    def test_enum_class_is_registered_in_declaration_order(self):
        deriver = _deriver()
        assert deriver.derive(Color) == SchemaNode.reference("Color")
        assert deriver.registry["Color"].enum == ("red", "green", "blue")


class TestNullable:
    def test_optional_wraps_inner(self):
        node = _deriver().derive(Optional[int])
        assert node == SchemaNode.nullable(definition.INT)

    def test_pipe_union_with_none(self):
        assert _deriver().derive(int | None) == SchemaNode.nullable(definition.INT)

    def test_multi_type_union_fails(self):
        with pytest.raises(DerivationError):
            _deriver().derive(int | str)


class TestComposites:
    def test_dataclass_registers_and_returns_reference(self):
        deriver = _deriver({Version: VERSION_SCHEMA})
        assert deriver.derive(Entry) == SchemaNode.reference("Entry")
        entry = deriver.registry["Entry"].to_schema()
        assert list(entry["properties"]) == ["id", "version", "timestamp"]
        assert entry["required"] == ["id", "version", "timestamp"]

    def test_idempotent(self):
        deriver = _deriver({Version: VERSION_SCHEMA})
        first = deriver.derive(Entry)
        names = list(deriver.registry)
        assert deriver.derive(Entry) == first
        assert list(deriver.registry) == names

    def test_self_reference_has_exactly_one_back_reference(self):
        deriver = _deriver()
        assert deriver.derive(Link) == SchemaNode.reference("Link")
        link = deriver.registry["Link"]
        assert list(link.references()) == ["Link"]
        assert link.properties["next"] == SchemaNode.nullable(SchemaNode.reference("Link"))

    def test_recursive_collections_terminate(self):
        deriver = _deriver()
        assert deriver.derive(TreeNode) == SchemaNode.reference("TreeNode")
        tree = deriver.registry["TreeNode"]
        assert list(tree.references()) == ["TreeNode", "TreeNode"]
        assert tree.properties["children"] == SchemaNode.array(SchemaNode.reference("TreeNode"))
        assert tree.required == ("value", "children")

    def test_mutual_reference_terminates(self):
        deriver = _deriver()
        deriver.derive(Author)
        assert deriver.registry["Book"].properties["author"] == SchemaNode.reference("Author")
        assert deriver.registry["Author"].properties["books"].items == SchemaNode.reference("Book")

    def test_generic_dataclass_name(self):
        deriver = _deriver({Version: VERSION_SCHEMA})
        assert deriver.derive(Response[Entry]) == SchemaNode.reference("Response-Entry")
        schema = deriver.registry["Response-Entry"]
        assert schema.properties["data"] == SchemaNode.reference("Entry")
        assert schema.required == ("success", "data")

    def test_descriptions(self):
        deriver = _deriver()
        deriver.derive(Documented)
        node = deriver.registry["Documented"]
        assert node.description == "A documented dataclass."
        assert node.properties["count"].description == "How many"

    def test_dataclass_without_docstring_has_no_description(self):
        deriver = _deriver()
        deriver.derive(TreeNode)
        assert deriver.registry["TreeNode"].description is None

    def test_typed_dict(self):
        deriver = _deriver()
        deriver.derive(Movie)
        assert deriver.registry["Movie"].required == ("title", "year")

    def test_pydantic_model_default_configurator(self):
        deriver = _deriver()
        deriver.derive(Account)
        node = deriver.registry["Account"]
        assert list(node.properties) == ["account_id", "secret", "nickname"]
        assert node.properties["nickname"] == SchemaNode.nullable(definition.STRING)
        assert node.required == ("account_id", "secret")

    def test_pydantic_configurator_aliases_and_exclusions(self):
        deriver = _deriver(configurator=PydanticConfigurator())
        deriver.derive(Account)
        node = deriver.registry["Account"]
        assert list(node.properties) == ["accountId", "nickname"]
        assert node.properties["accountId"].description == "Account number"

    def test_annotated_is_unwrapped(self):
        assert _deriver().derive(Annotated[int, "meta"]) == definition.INT


class TestOverrides:
    def test_override_wins_without_traversal(self):
        class ExplodingConfigurator(PydanticConfigurator):
            def members(self, type_):
                raise AssertionError("structural traversal must not happen")

        override = SchemaNode.primitive("string", "entry")
        deriver = _deriver({Entry: override}, configurator=ExplodingConfigurator())
        assert deriver.derive(Entry) is override
        assert len(deriver.registry) == 0

    def test_overridden_member_is_referenced(self):
        deriver = _deriver({Version: VERSION_SCHEMA})
        deriver.derive(Entry)
        assert deriver.registry["Entry"].properties["version"] == SchemaNode.reference("Version")
        assert deriver.registry["Version"] == VERSION_SCHEMA

    def test_override_of_primitive_stays_inline(self):
        instant = SchemaNode.primitive("string", "instant")
        deriver = _deriver({Version: VERSION_SCHEMA, datetime.datetime: instant})
        deriver.derive(Entry)
        assert deriver.registry["Entry"].properties["timestamp"] == instant

    def test_type_without_schema_fails(self):
        with pytest.raises(DerivationError) as exc:
            _deriver().derive(Version)
        assert exc.value.type_ is Version


def _make_entry(**members):
    return dataclass(type("Entry", (), {"__annotations__": members}))


@dataclass
class OuterEntry:
    inner: "InnerEntry"


@dataclass
class InnerEntry:
    outer: Optional[OuterEntry] = None


OuterEntry.__name__ = "Entry"
InnerEntry.__name__ = "Entry"


class TestNameCollision:
    def test_distinct_types_with_same_name_and_different_shape_collide(self):
        first, second = _make_entry(id=int), _make_entry(name=str)
        deriver = _deriver()
        deriver.derive(first)
        with pytest.raises(NameCollisionError) as exc:
            deriver.derive(second)
        assert exc.value.name == "Entry"

    def test_distinct_types_with_same_shape_share_the_name(self):
        first, second = _make_entry(id=int), _make_entry(id=int)
        deriver = _deriver()
        assert deriver.derive(first) == deriver.derive(second)
        assert len(deriver.registry) == 1

    def test_collision_inside_a_cycle_fails_fast(self):
        deriver = _deriver()
        with pytest.raises(NameCollisionError) as exc:
            deriver.derive(OuterEntry)
        assert exc.value.name == "Entry"
        assert exc.value.existing is OuterEntry
        assert len(deriver.registry) == 0


class TestCanonicalName:
    def test_plain_class(self):
        assert canonical_name(Entry) == "Entry"

    def test_generic(self):
        assert canonical_name(Response[Entry]) == "Response-Entry"
        assert canonical_name(Response[list[int]]) == "Response-list-int"
