"""
Pydantic-backed schemas.

A pydantic BaseModel subclass can be used anywhere a Schema is accepted.
Validation defers to the model: its own config decides coercion and
extra-field handling (e.g. ``ConfigDict(extra='forbid', strict=True)``).
Handlers receive model instances instead of plain dicts.
"""

import inspect
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, ClassVar, Dict, List, Type

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from ..utils.normalize import is_blank
from .errors import CONSTRAINT, INVALID_VALUE, MISSING, TYPE_MISMATCH, UNDECLARED_FIELD, FieldError
from .schema import Schema


REF_PREFIX = "#/components/schemas/"


def is_model_class(obj: Any) -> bool:
    return inspect.isclass(obj) and issubclass(obj, BaseModel)


def _error_code(error_type: str) -> str:
    """Map a pydantic error type onto the contract error codes."""
    if error_type == "missing":
        return MISSING
    if error_type == "extra_forbidden":
        return UNDECLARED_FIELD
    if error_type.endswith("_type") or error_type.endswith("_parsing"):
        return TYPE_MISMATCH
    if error_type in ("literal_error", "enum"):
        return INVALID_VALUE
    return CONSTRAINT


@dataclass(frozen=True)
class ModelSchema(Schema):
    model: Type[BaseModel]

    type_name: ClassVar[str] = "object"

    @property
    def component_name(self):
        return self.name or self.model.__name__

    def field_names(self):
        return frozenset(
            info.alias or field_name
            for field_name, info in self.model.model_fields.items()
        )

    def _check(self, value, path, ctx):
        if isinstance(value, self.model):
            return value, []
        if ctx.coerce and isinstance(value, Mapping):
            # Text sources send "" for an absent value; let model defaults apply
            value = {key: item for key, item in value.items() if not is_blank(item)}
        try:
            return self.model.model_validate(value), []
        except PydanticValidationError as e:
            errors: List[FieldError] = []
            for item in e.errors():
                errors.append(FieldError(
                    ctx.location,
                    tuple(path) + tuple(item["loc"]),
                    item["msg"],
                    _error_code(item["type"]),
                ))
            return value, errors

    def component_key(self):
        node = self.model.model_json_schema(
            by_alias=True, ref_template=REF_PREFIX + "{model}"
        )
        definitions = node.pop("$defs", {})
        # Self-referencing models come back as a bare $ref to their own def
        ref = node.get("$ref", "")
        if ref.startswith(REF_PREFIX) and ref[len(REF_PREFIX):] in definitions:
            return definitions[ref[len(REF_PREFIX):]]
        return node

    def dump(self, value):
        if isinstance(value, BaseModel):
            return value.model_dump(mode="json", by_alias=True)
        return value

    def inline_openapi(self, refs=None) -> Dict[str, Any]:
        if refs is None:
            return self.model.model_json_schema(by_alias=True)

        node = self.model.model_json_schema(
            by_alias=True, ref_template=REF_PREFIX + "{model}"
        )
        definitions = node.pop("$defs", {})
        renames = {}
        for def_name, definition in definitions.items():
            final = refs.claim(def_name, definition)
            if final != def_name:
                renames[REF_PREFIX + def_name] = REF_PREFIX + final

        for def_name, definition in definitions.items():
            final = refs.claim(def_name, definition)
            refs.store(final, _rewrite_refs(definition, renames))

        node = _rewrite_refs(node, renames)
        if self.description:
            node["description"] = self.description
        return node


def _rewrite_refs(node: Any, renames: Dict[str, str]) -> Any:
    if not renames:
        return node
    if isinstance(node, dict):
        rewritten = {}
        for key, value in node.items():
            if key == "$ref" and value in renames:
                rewritten[key] = renames[value]
            else:
                rewritten[key] = _rewrite_refs(value, renames)
        return rewritten
    if isinstance(node, list):
        return [_rewrite_refs(item, renames) for item in node]
    return node
