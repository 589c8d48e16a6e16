"""
Schema engine - declarative value shapes.

A schema both validates a raw value and describes it for the API document.
Schemas are frozen once constructed.

Validation never stops at the first problem inside one value: every field
of an object and every item of an array is checked, and all FieldErrors
are returned together.

Coercion policy (ValidationContext.coerce):
- Text sources (path params, query, headers, cookies, form fields) are
  coerced to the declared primitive first ("42" -> 42, "true" -> True).
  An empty text value counts as absent.
- Parsed JSON bodies and handler payloads are only structurally checked.
"""

import copy
import math
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, localcontext
from types import MappingProxyType
from typing import Any, Callable, ClassVar, Dict, List, NamedTuple, Optional, Tuple
from uuid import UUID

from ..utils.normalize import CoercionError, is_blank, to_bool, to_int, to_list, to_number
from .errors import (
    CONSTRAINT,
    INVALID_VALUE,
    MISSING,
    TYPE_MISMATCH,
    UNDECLARED_FIELD,
    FieldError,
    PathStep,
)


class _NoDefault:
    def __repr__(self):
        return "NO_DEFAULT"


NO_DEFAULT = _NoDefault()
_ABSENT = object()

# Object extra-field policies
EXTRA_FORBID = "forbid"
EXTRA_IGNORE = "ignore"
EXTRA_ALLOW = "allow"
EXTRA_POLICIES = (EXTRA_FORBID, EXTRA_IGNORE, EXTRA_ALLOW)

Check = Callable[[Any], Optional[str]]
Path = Tuple[PathStep, ...]


@dataclass(frozen=True)
class ValidationContext:
    """Per-call settings threaded through a schema tree."""
    location: str = "body"
    coerce: bool = False
    extra: Optional[str] = None  # overrides ObjectSchema.extra when set


class SchemaResult(NamedTuple):
    value: Any
    errors: List[FieldError]

    @property
    def ok(self) -> bool:
        return not self.errors


def describe(value: Any) -> str:
    """JSON-flavoured name of a Python value's type, for error messages."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, Mapping):
        return "object"
    return type(value).__name__


@dataclass(frozen=True)
class Schema:
    """Base for every schema kind."""
    description: str = field(default="", kw_only=True)
    example: Any = field(default=None, kw_only=True)
    default: Any = field(default=NO_DEFAULT, kw_only=True)
    nullable: bool = field(default=False, kw_only=True)
    name: Optional[str] = field(default=None, kw_only=True)
    checks: Tuple[Check, ...] = field(default=(), kw_only=True, compare=False)

    type_name: ClassVar[str] = "value"

    @property
    def has_default(self) -> bool:
        return self.default is not NO_DEFAULT

    @property
    def component_name(self) -> Optional[str]:
        """Name under which the document generator shares this schema."""
        return self.name

    def component_key(self) -> Any:
        """Identity two claims of one component name must share to merge."""
        return self

    def field_names(self) -> Optional[frozenset]:
        """Declared field names for object-like schemas, else None."""
        return None

    def check(self, value: Any, path: Path, ctx: ValidationContext) -> Tuple[Any, List[FieldError]]:
        if value is None:
            if self.nullable:
                return None, []
            return None, [self._error(ctx, path, f"Expected {self.type_name}, got null", TYPE_MISMATCH)]

        value, errors = self._check(value, path, ctx)
        if errors:
            return value, errors
        return value, self._run_checks(value, path, ctx)

    def _run_checks(self, value: Any, path: Path, ctx: ValidationContext) -> List[FieldError]:
        errors = []
        for rule in self.checks:
            message = rule(value)
            if message:
                errors.append(self._error(ctx, path, message, CONSTRAINT))
        return errors

    def _check(self, value: Any, path: Path, ctx: ValidationContext) -> Tuple[Any, List[FieldError]]:
        raise NotImplementedError

    def _error(self, ctx: ValidationContext, path: Path, message: str, code: str) -> FieldError:
        return FieldError(ctx.location, tuple(path), message, code)

    def _mismatch(self, ctx: ValidationContext, path: Path, value: Any) -> FieldError:
        return self._error(
            ctx, path, f"Expected {self.type_name}, got {describe(value)}", TYPE_MISMATCH
        )

    def dump(self, value: Any) -> Any:
        """Convert a validated value to JSON-ready data."""
        return value

    # Document dialect (OpenAPI 3.1 / JSON Schema)

    def to_openapi(self, refs=None) -> Dict[str, Any]:
        if refs is not None and self.component_name:
            return refs.reference(self)
        return self.inline_openapi(refs)

    def inline_openapi(self, refs=None) -> Dict[str, Any]:
        node = self._openapi(refs)
        if self.description:
            node["description"] = self.description
        if self.example is not None:
            node["examples"] = [self.example]
        if self.has_default:
            node["default"] = self.default
        if self.nullable:
            node = _make_nullable(node)
        return node

    def _openapi(self, refs) -> Dict[str, Any]:
        return {}


def _make_nullable(node: Dict[str, Any]) -> Dict[str, Any]:
    node_type = node.get("type")
    if isinstance(node_type, str):
        node["type"] = [node_type, "null"]
        return node
    return {"anyOf": [node, {"type": "null"}]}


def _check_date(value: str) -> bool:
    date.fromisoformat(value)
    return True


def _check_datetime(value: str) -> bool:
    datetime.fromisoformat(value.replace("Z", "+00:00"))
    return True


def _check_uuid(value: str) -> bool:
    UUID(value)
    return True


_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

STRING_FORMATS: Dict[str, Callable[[str], bool]] = {
    "date": _check_date,
    "date-time": _check_datetime,
    "uuid": _check_uuid,
    "email": lambda v: bool(_EMAIL_RE.match(v)),
}


@dataclass(frozen=True)
class StringSchema(Schema):
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    pattern: Optional[str] = None
    allowed_values: Optional[Tuple[str, ...]] = None
    format: Optional[str] = None

    type_name: ClassVar[str] = "string"

    def __post_init__(self):
        if self.allowed_values is not None:
            object.__setattr__(self, "allowed_values", tuple(self.allowed_values))

    def _check(self, value, path, ctx):
        if not isinstance(value, str):
            return value, [self._mismatch(ctx, path, value)]

        errors = []
        if self.min_length is not None and len(value) < self.min_length:
            errors.append(self._error(
                ctx, path, f"String must contain at least {self.min_length} character(s)", CONSTRAINT))
        if self.max_length is not None and len(value) > self.max_length:
            errors.append(self._error(
                ctx, path, f"String must contain at most {self.max_length} character(s)", CONSTRAINT))
        if self.pattern is not None and not re.search(self.pattern, value):
            errors.append(self._error(
                ctx, path, f"String does not match pattern {self.pattern!r}", CONSTRAINT))
        if self.allowed_values is not None and value not in self.allowed_values:
            errors.append(self._error(
                ctx, path, f"{value!r} not in allowed values: {list(self.allowed_values)}", INVALID_VALUE))
        if self.format in STRING_FORMATS:
            try:
                valid = STRING_FORMATS[self.format](value)
            except ValueError:
                valid = False
            if not valid:
                errors.append(self._error(
                    ctx, path, f"Invalid {self.format}: {value!r}", CONSTRAINT))
        return value, errors

    def _openapi(self, refs):
        node: Dict[str, Any] = {"type": "string"}
        if self.min_length is not None:
            node["minLength"] = self.min_length
        if self.max_length is not None:
            node["maxLength"] = self.max_length
        if self.pattern is not None:
            node["pattern"] = self.pattern
        if self.allowed_values is not None:
            node["enum"] = list(self.allowed_values)
        if self.format is not None:
            node["format"] = self.format
        return node


def _is_multiple(value, step) -> bool:
    """Exact decimal check, so 0.3 counts as a multiple of 0.1."""
    for number in (value, step):
        if isinstance(number, float) and not math.isfinite(number):
            return False
    with localcontext() as dctx:
        # Room for the integer quotient of any finite float pair
        dctx.prec = 800
        return Decimal(repr(value)) % Decimal(repr(step)) == 0


@dataclass(frozen=True)
class NumberSchema(Schema):
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    exclusive_minimum: Optional[float] = None
    exclusive_maximum: Optional[float] = None
    multiple_of: Optional[float] = None

    type_name: ClassVar[str] = "number"

    def _coerce(self, value: str):
        return to_number(value)

    def _accepts(self, value) -> bool:
        return isinstance(value, (int, float)) and not isinstance(value, bool)

    def _check(self, value, path, ctx):
        if ctx.coerce and isinstance(value, str):
            try:
                value = self._coerce(value)
            except CoercionError:
                return value, [self._error(
                    ctx, path, f"Expected {self.type_name}, got {value!r}", TYPE_MISMATCH)]

        if not self._accepts(value):
            return value, [self._mismatch(ctx, path, value)]

        errors = []
        if self.minimum is not None and value < self.minimum:
            errors.append(self._error(
                ctx, path, f"Number must be greater than or equal to {self.minimum}", CONSTRAINT))
        if self.maximum is not None and value > self.maximum:
            errors.append(self._error(
                ctx, path, f"Number must be less than or equal to {self.maximum}", CONSTRAINT))
        if self.exclusive_minimum is not None and value <= self.exclusive_minimum:
            errors.append(self._error(
                ctx, path, f"Number must be greater than {self.exclusive_minimum}", CONSTRAINT))
        if self.exclusive_maximum is not None and value >= self.exclusive_maximum:
            errors.append(self._error(
                ctx, path, f"Number must be less than {self.exclusive_maximum}", CONSTRAINT))
        if self.multiple_of and not _is_multiple(value, self.multiple_of):
            errors.append(self._error(
                ctx, path, f"Number must be a multiple of {self.multiple_of}", CONSTRAINT))
        return value, errors

    def _openapi(self, refs):
        node: Dict[str, Any] = {"type": self.type_name}
        for attr, key in (
            ("minimum", "minimum"),
            ("maximum", "maximum"),
            ("exclusive_minimum", "exclusiveMinimum"),
            ("exclusive_maximum", "exclusiveMaximum"),
            ("multiple_of", "multipleOf"),
        ):
            bound = getattr(self, attr)
            if bound is not None:
                node[key] = bound
        return node


@dataclass(frozen=True)
class IntegerSchema(NumberSchema):
    type_name: ClassVar[str] = "integer"

    def _coerce(self, value: str):
        return to_int(value)

    def _accepts(self, value) -> bool:
        return isinstance(value, int) and not isinstance(value, bool)


@dataclass(frozen=True)
class BooleanSchema(Schema):
    type_name: ClassVar[str] = "boolean"

    def _check(self, value, path, ctx):
        if ctx.coerce and isinstance(value, str):
            try:
                value = to_bool(value)
            except CoercionError:
                return value, [self._error(
                    ctx, path, f"Expected boolean, got {value!r}", TYPE_MISMATCH)]
        if not isinstance(value, bool):
            return value, [self._mismatch(ctx, path, value)]
        return value, []

    def _openapi(self, refs):
        return {"type": "boolean"}


@dataclass(frozen=True)
class AnySchema(Schema):
    """Accepts any value, including null. Useful for pass-through payloads."""
    type_name: ClassVar[str] = "any"

    def check(self, value, path, ctx):
        return value, []

    def _openapi(self, refs):
        return {}


@dataclass(frozen=True)
class ArraySchema(Schema):
    items: Schema = field(default_factory=AnySchema)
    min_items: Optional[int] = None
    max_items: Optional[int] = None

    type_name: ClassVar[str] = "array"

    def __post_init__(self):
        object.__setattr__(self, "items", as_schema(self.items))

    def _check(self, value, path, ctx):
        if ctx.coerce and not isinstance(value, (list, tuple)):
            value = to_list(value)
        if not isinstance(value, (list, tuple)):
            return value, [self._mismatch(ctx, path, value)]

        result = []
        errors: List[FieldError] = []
        for index, item in enumerate(value):
            checked, item_errors = self.items.check(item, tuple(path) + (index,), ctx)
            result.append(checked)
            errors.extend(item_errors)

        if self.min_items is not None and len(value) < self.min_items:
            errors.append(self._error(
                ctx, path, f"Array must contain at least {self.min_items} item(s)", CONSTRAINT))
        if self.max_items is not None and len(value) > self.max_items:
            errors.append(self._error(
                ctx, path, f"Array must contain at most {self.max_items} item(s)", CONSTRAINT))
        return result, errors

    def dump(self, value):
        if isinstance(value, (list, tuple)):
            return [self.items.dump(item) for item in value]
        return value

    def _openapi(self, refs):
        node: Dict[str, Any] = {"type": "array", "items": self.items.to_openapi(refs)}
        if self.min_items is not None:
            node["minItems"] = self.min_items
        if self.max_items is not None:
            node["maxItems"] = self.max_items
        return node


@dataclass(frozen=True)
class FieldSpec:
    """Specification for a single object field."""
    schema: Schema
    required: bool = True
    description: str = ""
    example: Any = None

    def __post_init__(self):
        object.__setattr__(self, "schema", as_schema(self.schema))


def optional(schema, description: str = "", example: Any = None) -> FieldSpec:
    """Shorthand for a non-required field."""
    return FieldSpec(schema, required=False, description=description, example=example)


@dataclass(frozen=True)
class ObjectSchema(Schema):
    fields: Mapping = field(default_factory=dict)
    extra: str = EXTRA_FORBID

    type_name: ClassVar[str] = "object"

    def __post_init__(self):
        if self.extra not in EXTRA_POLICIES:
            raise ValueError(f"extra must be one of {EXTRA_POLICIES}, got {self.extra!r}")
        specs = {}
        for field_name, spec in self.fields.items():
            specs[field_name] = spec if isinstance(spec, FieldSpec) else FieldSpec(spec)
        object.__setattr__(self, "fields", MappingProxyType(specs))

    def field_names(self):
        return frozenset(self.fields)

    def _check(self, value, path, ctx):
        if not isinstance(value, Mapping):
            return value, [self._mismatch(ctx, path, value)]

        policy = ctx.extra or self.extra
        result: Dict[str, Any] = {}
        errors: List[FieldError] = []

        for field_name, spec in self.fields.items():
            field_path = tuple(path) + (field_name,)
            raw = value.get(field_name, _ABSENT)
            if raw is _ABSENT or (ctx.coerce and is_blank(raw)):
                if spec.schema.has_default:
                    result[field_name] = copy.deepcopy(spec.schema.default)
                elif spec.required:
                    errors.append(self._error(ctx, field_path, "Field required", MISSING))
                continue

            checked, field_errors = spec.schema.check(raw, field_path, ctx)
            errors.extend(field_errors)
            result[field_name] = checked

        for key in value:
            if key in self.fields:
                continue
            if policy == EXTRA_FORBID:
                errors.append(self._error(
                    ctx, tuple(path) + (key,), f"Unknown field '{key}'", UNDECLARED_FIELD))
            elif policy == EXTRA_ALLOW:
                result[key] = value[key]

        return result, errors

    def dump(self, value):
        if not isinstance(value, Mapping):
            return value
        dumped = {}
        for key, item in value.items():
            spec = self.fields.get(key)
            dumped[key] = spec.schema.dump(item) if spec else item
        return dumped

    def _openapi(self, refs):
        properties = {}
        required = []
        for field_name, spec in self.fields.items():
            prop = spec.schema.to_openapi(refs)
            if spec.description or spec.example is not None:
                if "$ref" in prop:
                    prop = {"allOf": [prop]}
                if spec.description:
                    prop["description"] = spec.description
                if spec.example is not None:
                    prop["examples"] = [spec.example]
            properties[field_name] = prop
            if spec.required and not spec.schema.has_default:
                required.append(field_name)

        node: Dict[str, Any] = {"type": "object", "properties": properties}
        if required:
            node["required"] = required
        if self.extra == EXTRA_FORBID:
            node["additionalProperties"] = False
        return node


@dataclass(frozen=True)
class UnionSchema(Schema):
    """
    Valid when any alternative matches (first match wins).

    When none match, the errors of every alternative are returned, each
    message prefixed with the alternative it came from.
    """
    options: Tuple[Schema, ...] = ()

    type_name: ClassVar[str] = "union"

    def __post_init__(self):
        if not self.options:
            raise ValueError("UnionSchema needs at least one option")
        object.__setattr__(self, "options", tuple(as_schema(o) for o in self.options))

    def check(self, value, path, ctx):
        if value is None and self.nullable:
            return None, []

        collected: List[FieldError] = []
        for index, option in enumerate(self.options, start=1):
            checked, errors = option.check(value, path, ctx)
            if not errors:
                return checked, self._run_checks(checked, path, ctx)
            label = option.component_name or option.type_name
            for error in errors:
                collected.append(FieldError(
                    error.location,
                    error.path,
                    f"alternative {index} ({label}): {error.message}",
                    error.code,
                ))
        return value, collected

    def dump(self, value):
        for option in self.options:
            _, errors = option.check(value, (), ValidationContext())
            if not errors:
                return option.dump(value)
        return value

    def _openapi(self, refs):
        return {"anyOf": [option.to_openapi(refs) for option in self.options]}


def as_schema(obj: Any) -> Schema:
    """Accept a Schema or a pydantic model class wherever a schema is expected."""
    if isinstance(obj, Schema):
        return obj
    from .model_schema import ModelSchema, is_model_class

    if is_model_class(obj):
        return ModelSchema(obj)
    raise TypeError(f"Expected a Schema or pydantic model class, got {obj!r}")


def validate(schema: Any, raw: Any, context: Optional[ValidationContext] = None) -> SchemaResult:
    """
    Validate a raw value against a schema.

    Returns:
        SchemaResult with the typed value (None when invalid) and every
        FieldError found.
    """
    schema = as_schema(schema)
    ctx = context or ValidationContext()
    value, errors = schema.check(raw, (), ctx)
    if errors:
        return SchemaResult(None, errors)
    return SchemaResult(value, [])
