"""
API document generator.

Walks a RouteRegistry and projects it into an OpenAPI 3.1 document:
- one operation per route, grouped by tag
- parameters from the path_params / query / headers / cookies schemas
- request bodies and responses keyed by content type
- named schemas shared under components.schemas

generate() is a pure projection: the same registry state always yields the
same document (and the same bytes from render_json()). Serving the document
is up to the caller.
"""

import json
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from .model_schema import REF_PREFIX, ModelSchema
from .registry import RequestBody, ResponseContract, RouteRegistry, RouteSpec, merge_path
from .schema import ObjectSchema, Schema


PARAMETER_LOCATIONS = (
    ("path_params", "path"),
    ("query", "query"),
    ("headers", "header"),
    ("cookies", "cookie"),
)


class DocumentInfo(BaseModel):
    """Top-level document settings."""
    model_config = ConfigDict(frozen=True, extra='forbid')

    title: str
    version: str
    description: Optional[str] = None
    openapi: str = "3.1.0"
    servers: Tuple[Dict[str, Any], ...] = ()
    tags: Dict[str, str] = Field(default_factory=dict)  # tag -> description
    security_schemes: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    security: Tuple[Dict[str, List[str]], ...] = ()
    base_path: str = ""


class ComponentTable:
    """
    Shared schema components with deterministic name-collision handling.

    Equal schemas claimed under one name share a component; a different
    schema claiming a taken name gets Name_2, Name_3, ... in claim order.
    """

    def __init__(self):
        self._owners: Dict[str, Any] = {}
        self._nodes: Dict[str, Any] = {}

    def claim(self, name: str, owner: Any) -> str:
        candidate = name
        counter = 1
        while candidate in self._owners:
            if self._owners[candidate] == owner:
                return candidate
            counter += 1
            candidate = f"{name}_{counter}"
        self._owners[candidate] = owner
        return candidate

    def store(self, name: str, node: Dict[str, Any]) -> None:
        self._nodes[name] = node

    def reference(self, schema: Schema) -> Dict[str, Any]:
        name = self.claim(schema.component_name, schema.component_key())
        if name not in self._nodes:
            # Placeholder first so self-referencing schemas terminate
            self._nodes[name] = {}
            node = schema.inline_openapi(self)
            # A model may already have stored itself while hoisting its $defs
            if node.get("$ref") != REF_PREFIX + name:
                self._nodes[name] = node
        return {"$ref": REF_PREFIX + name}

    def as_dict(self) -> Dict[str, Any]:
        return {name: self._nodes[name] for name in sorted(self._nodes)}


def generate(registry: RouteRegistry, info: DocumentInfo) -> Dict[str, Any]:
    """
    Build the API document for every route in the registry.

    Returns:
        Plain dict/list tree, ready for JSON or YAML serialization
    """
    components = ComponentTable()
    paths: Dict[str, Dict[str, Any]] = {}
    used_tags: List[str] = []

    for spec in registry.specs():
        path = merge_path(info.base_path, spec.path) if info.base_path else spec.path
        paths.setdefault(path, {})[spec.method.lower()] = _operation(spec, components)
        for tag in spec.tags:
            if tag not in used_tags:
                used_tags.append(tag)

    info_node: Dict[str, Any] = {"title": info.title, "version": info.version}
    if info.description:
        info_node["description"] = info.description

    document: Dict[str, Any] = {"openapi": info.openapi, "info": info_node}
    if info.servers:
        document["servers"] = [dict(server) for server in info.servers]

    tag_names = sorted(set(used_tags) | set(info.tags))
    if tag_names:
        tags = []
        for tag in tag_names:
            node = {"name": tag}
            if info.tags.get(tag):
                node["description"] = info.tags[tag]
            tags.append(node)
        document["tags"] = tags

    document["paths"] = paths

    component_node: Dict[str, Any] = {}
    schemas = components.as_dict()
    if schemas:
        component_node["schemas"] = schemas
    if info.security_schemes:
        component_node["securitySchemes"] = {
            name: dict(scheme) for name, scheme in sorted(info.security_schemes.items())
        }
    if component_node:
        document["components"] = component_node

    if info.security:
        document["security"] = [dict(requirement) for requirement in info.security]

    return document


def render_json(document: Dict[str, Any]) -> str:
    """Canonical text form of a generated document."""
    return json.dumps(document, indent=2, ensure_ascii=False)


def _operation(spec: RouteSpec, components: ComponentTable) -> Dict[str, Any]:
    operation: Dict[str, Any] = {}
    if spec.tags:
        operation["tags"] = list(spec.tags)
    if spec.summary:
        operation["summary"] = spec.summary
    if spec.description:
        operation["description"] = spec.description
    if spec.operation_id:
        operation["operationId"] = spec.operation_id

    parameters = []
    for location, where in PARAMETER_LOCATIONS:
        schema = spec.request.for_location(location)
        if schema is not None:
            parameters.extend(_parameters(schema, where, components))
    if parameters:
        operation["parameters"] = parameters

    if spec.request.body is not None:
        operation["requestBody"] = _request_body(spec.request.body, components)

    operation["responses"] = {
        str(status): _response(contract, components)
        for status, contract in spec.responses.items()
    }

    if spec.deprecated:
        operation["deprecated"] = True
    if spec.security:
        operation["security"] = [dict(requirement) for requirement in spec.security]
    return operation


def _parameters(schema: Schema, where: str, components: ComponentTable) -> List[Dict[str, Any]]:
    parameters = []

    if isinstance(schema, ObjectSchema):
        for name, field_spec in schema.fields.items():
            parameter: Dict[str, Any] = {
                "name": name,
                "in": where,
                "required": where == "path" or (field_spec.required and not field_spec.schema.has_default),
                "schema": field_spec.schema.to_openapi(components),
            }
            description = field_spec.description or field_spec.schema.description
            if description:
                parameter["description"] = description
            if field_spec.example is not None:
                parameter["example"] = field_spec.example
            parameters.append(parameter)
        return parameters

    if isinstance(schema, ModelSchema):
        node = schema.inline_openapi(components)
        required = set(node.get("required", []))
        for name, prop in node.get("properties", {}).items():
            parameter = {
                "name": name,
                "in": where,
                "required": where == "path" or name in required,
                "schema": prop,
            }
            if prop.get("description"):
                parameter["description"] = prop["description"]
            parameters.append(parameter)

    return parameters


def _request_body(body: RequestBody, components: ComponentTable) -> Dict[str, Any]:
    node: Dict[str, Any] = {
        "content": {
            media_type: {"schema": schema.to_openapi(components)}
            for media_type, schema in body.content.items()
        },
        "required": body.required,
    }
    if body.description:
        node["description"] = body.description
    return node


def _response(contract: ResponseContract, components: ComponentTable) -> Dict[str, Any]:
    node: Dict[str, Any] = {"description": contract.description}
    if contract.headers:
        node["headers"] = {
            name: {"schema": schema.to_openapi(components)}
            for name, schema in contract.headers.items()
        }
    if contract.content:
        node["content"] = {
            media_type: {"schema": schema.to_openapi(components)}
            for media_type, schema in contract.content.items()
        }
    return node
