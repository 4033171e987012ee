"""
SpecTap Runtime Module

Per-request contract enforcement.

This module provides:
- Operation matching with path template capture
- Parameter resolution, defaults and type coercion
- Schema validation with aggregated violations
- Mock response generation
- Dispatcher, handler registry and FastAPI server
"""

from .violations import ValidationError, ViolationKind, format_path
from .matcher import OperationMatcher, MatchResult
from .parameters import ParameterResolver, RawRequest, ResolvedParameter, Resolution, coerce_primitive
from .validator import Validator, DEFAULT_MAX_DEPTH
from .generator import MockGenerator
from .dispatcher import (
    Dispatcher,
    HandlerRegistry,
    Response,
    OUTCOME_UNMATCHED,
    OUTCOME_REJECTED,
    OUTCOME_MOCKED,
    OUTCOME_HANDLED,
    OUTCOME_FAILED
)
from .server import ContractServer, ServerConfig, ContractMetrics, create_contract_server

__all__ = [
    # Violations
    'ValidationError',
    'ViolationKind',
    'format_path',

    # Matcher
    'OperationMatcher',
    'MatchResult',

    # Parameters
    'ParameterResolver',
    'RawRequest',
    'ResolvedParameter',
    'Resolution',
    'coerce_primitive',

    # Validator
    'Validator',
    'DEFAULT_MAX_DEPTH',

    # Generator
    'MockGenerator',

    # Dispatcher
    'Dispatcher',
    'HandlerRegistry',
    'Response',
    'OUTCOME_UNMATCHED',
    'OUTCOME_REJECTED',
    'OUTCOME_MOCKED',
    'OUTCOME_HANDLED',
    'OUTCOME_FAILED',

    # Server
    'ContractServer',
    'ServerConfig',
    'ContractMetrics',
    'create_contract_server',
]
