"""
SpecTap Contract Module

Loading, validation and indexing of API contract documents.

This module provides:
- Schema node model and reference resolver
- Contract registry for Swagger 2.0 and OpenAPI 3.x documents
- Contract error hierarchy
"""

from .errors import (
    ContractError,
    SpecInvalid,
    UnresolvedReference,
    CyclicSchema,
    HandlerNotFound,
    HandlerError
)
from .schema import (
    PrimitiveSchema,
    ObjectSchema,
    ArraySchema,
    ReferenceSchema,
    SchemaNode,
    SchemaResolver,
    parse_schema,
    value_matches_kind
)
from .registry import (
    SpecRegistry,
    ContractDocument,
    OperationDefinition,
    ParameterDefinition,
    PathSegment,
    load_contract
)

__all__ = [
    # Errors
    'ContractError',
    'SpecInvalid',
    'UnresolvedReference',
    'CyclicSchema',
    'HandlerNotFound',
    'HandlerError',

    # Schema
    'PrimitiveSchema',
    'ObjectSchema',
    'ArraySchema',
    'ReferenceSchema',
    'SchemaNode',
    'SchemaResolver',
    'parse_schema',
    'value_matches_kind',

    # Registry
    'SpecRegistry',
    'ContractDocument',
    'OperationDefinition',
    'ParameterDefinition',
    'PathSegment',
    'load_contract',
]
