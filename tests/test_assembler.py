import json

import pytest
import yaml
from pydantic import ValidationError

from api_notary.document.assembler import assemble
from api_notary.document.spec import Contact, Info, License, Server, Tag
from api_notary.errors import AssemblyError, ConflictError
from api_notary.route.metadata import Parameter, ParameterLocation, ResponseVariant, RouteMetadata
from api_notary.schema.definition import INT, STRING, SchemaNode
from playground import built_document


def _route(path="/x", method="get", node=None):
    return RouteMetadata(
        path=path,
        method=method,
        summary=f"{method} {path}",
        response=ResponseVariant(status=200, schema_node=node, description="OK"),
    )


class TestAssemble:
    def test_groups_methods_by_path_in_first_seen_order(self):
        doc = assemble([_route("/b"), _route("/a"), _route("/b", "post")], {})
        assert [item.path for item in doc.path_items] == ["/b", "/a"]
        assert [op.method for op in doc.paths["/b"].operations] == ["get", "post"]
        assert doc.paths["/b"].operation("POST").summary == "post /b"

    def test_duplicate_operation_conflicts(self):
        with pytest.raises(ConflictError):
            assemble([_route("/x"), _route("/x")], {})

    def test_unresolved_route_reference(self):
        with pytest.raises(AssemblyError) as exc:
            assemble([_route(node=SchemaNode.reference("Missing"))], {})
        assert exc.value.ref == "Missing"
        assert exc.value.where == "GET /x"

    def test_unresolved_schema_reference(self):
        registry = {"Outer": SchemaNode.object({"inner": SchemaNode.reference("Inner")})}
        with pytest.raises(AssemblyError) as exc:
            assemble([], registry)
        assert exc.value.where == "components.schemas.Outer"

    def test_resolved_references(self):
        registry = {"Thing": SchemaNode.object({"id": INT})}
        doc = assemble([_route(node=SchemaNode.reference("Thing"))], registry)
        assert doc.schemas["Thing"] == registry["Thing"]


class TestSpecDocument:
    def _document(self):
        return assemble(
            [_route(node=SchemaNode.reference("Thing"))],
            {"Thing": SchemaNode.object({"id": INT}, required=["id"])},
            info=Info(
                title="Things",
                version="2.0.0",
                terms_of_service="https://example.com/tos",
                contact=Contact(name="Team", email="team@example.com"),
                license=License(name="MIT", identifier="MIT"),
            ),
            servers=[Server(url="https://api.example.com", description="prod")],
            tags=[Tag(name="things")],
        )

    def test_openapi_shape(self):
        doc = self._document().to_dict()
        assert doc["openapi"] == "3.1.0"
        assert doc["jsonSchemaDialect"] == "https://spec.openapis.org/oas/3.1/dialect/base"
        assert doc["info"] == {
            "title": "Things",
            "version": "2.0.0",
            "termsOfService": "https://example.com/tos",
            "contact": {"name": "Team", "email": "team@example.com"},
            "license": {"name": "MIT", "identifier": "MIT"},
        }
        assert doc["servers"] == [{"url": "https://api.example.com", "description": "prod"}]
        assert doc["paths"]["/x"]["get"]["responses"]["200"]["content"]["application/json"]["schema"] == {
            "$ref": "#/components/schemas/Thing"
        }
        assert doc["components"]["schemas"]["Thing"] == {
            "type": "object",
            "properties": {"id": {"type": "integer", "format": "int32"}},
            "required": ["id"],
        }
        assert doc["tags"] == [{"name": "things"}]

    def test_json_and_yaml_render_the_same_document(self):
        document = self._document()
        assert json.loads(document.to_json()) == document.to_dict()
        assert yaml.safe_load(document.to_yaml()) == document.to_dict()

    def test_snapshot_parts_are_read_only(self):
        document = built_document()
        first = document.to_dict()
        with pytest.raises(TypeError):
            document.schemas["Entry"].properties["injected"] = STRING
        profile = document.paths["/{id}/profile"].operation("get")
        with pytest.raises(TypeError):
            profile.response.examples["test"]["success"] = False
        with pytest.raises(TypeError):
            profile.response.examples["other"] = {}
        assert document.to_dict() == first

    def test_nested_values_are_frozen_and_rendered_plain(self):
        node = SchemaNode.primitive("object", default={"tags": ["a"]})
        with pytest.raises(TypeError):
            node.default["tags"] = []
        assert node.to_schema()["default"] == {"tags": ["a"]}

        param = Parameter(name="ids", location=ParameterLocation.QUERY, schema_node=INT, examples={"two": [1, 2]})
        assert param.examples["two"] == (1, 2)
        assert param.to_dict()["examples"] == {"two": {"value": [1, 2]}}

    def test_snapshot_is_read_only(self):
        document = self._document()
        with pytest.raises(TypeError):
            document.paths["/y"] = None
        with pytest.raises(TypeError):
            document.schemas["Other"] = INT
        with pytest.raises(ValidationError):
            document.openapi = "2.0"

    def test_registry_changes_after_assembly_are_not_observed(self):
        registry = {"Thing": SchemaNode.object({"id": INT})}
        document = assemble([], registry)
        registry["Other"] = INT
        assert list(document.schemas) == ["Thing"]
