"""
Contract enforcement package.

Provides the schema engine, route specs and registry, the request
validation pipeline, typed response building, the route factory and the
API document generator.
"""

from .errors import (
    ContractViolation,
    FieldError,
    ResponseContractViolation,
    SpecConfigurationError,
    ValidationError,
)
from .factory import RouteContext, RouteFactory, Runtime
from .model_schema import ModelSchema
from .openapi import DocumentInfo, generate, render_json
from .registry import (
    RegisteredRoute,
    RequestBody,
    RequestSchemas,
    ResponseContract,
    RouteRegistry,
    RouteSpec,
    SchemaMode,
    merge_path,
)
from .request import RequestView, SimpleRequest
from .response import TypedResponse, TypedResponseBuilder
from .schema import (
    AnySchema,
    ArraySchema,
    BooleanSchema,
    FieldSpec,
    IntegerSchema,
    NumberSchema,
    ObjectSchema,
    Schema,
    StringSchema,
    UnionSchema,
    ValidationContext,
    optional,
    validate,
)
from .validate import ValidatedInput, validate_request

__all__ = [
    'AnySchema',
    'ArraySchema',
    'BooleanSchema',
    'ContractViolation',
    'DocumentInfo',
    'FieldError',
    'FieldSpec',
    'IntegerSchema',
    'ModelSchema',
    'NumberSchema',
    'ObjectSchema',
    'RegisteredRoute',
    'RequestBody',
    'RequestSchemas',
    'RequestView',
    'ResponseContract',
    'ResponseContractViolation',
    'RouteContext',
    'RouteFactory',
    'RouteRegistry',
    'RouteSpec',
    'Runtime',
    'Schema',
    'SchemaMode',
    'SimpleRequest',
    'SpecConfigurationError',
    'StringSchema',
    'TypedResponse',
    'TypedResponseBuilder',
    'UnionSchema',
    'ValidatedInput',
    'ValidationContext',
    'ValidationError',
    'generate',
    'merge_path',
    'optional',
    'render_json',
    'validate',
    'validate_request',
]
