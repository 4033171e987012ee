"""
SpecTap Parameter Resolver

Extracts declared parameters from a decoded request, injects defaults and
coerces string values to their declared types.

Resolution never fails outright: absent required parameters are passed
through for the Validator to report, and values that cannot be coerced are
kept as-is alongside an InvalidParameterValue violation.
"""

import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

from ..common import lookup_header
from ..contract import ArraySchema, ParameterDefinition, PrimitiveSchema, SchemaResolver
from ..contract.registry import COLLECTION_FORMATS
from .matcher import MatchResult
from .violations import ValidationError, ViolationKind


INTEGER_PATTERN = re.compile(r'[+-]?[0-9]+')

NUMBER_PATTERN = re.compile(r'[+-]?([0-9]+(\.[0-9]*)?|\.[0-9]+)([eE][+-]?[0-9]+)?')


@dataclass
class RawRequest:
    """A request as decoded by the transport layer."""

    method: str
    path: str
    query: Dict[str, Union[str, List[str]]] = field(default_factory=dict)
    headers: Dict[str, Any] = field(default_factory=dict)
    body: Any = None  # None means no body


@dataclass
class ResolvedParameter:
    """A parameter after extraction, default injection and coercion."""

    name: str
    location: str
    value: Any = None
    provided: bool = False
    defaulted: bool = False
    coercion_failed: bool = False
    definition: Optional[ParameterDefinition] = None

    @property
    def absent(self) -> bool:
        """True when the request gave no value and the contract no default."""
        return not self.provided and not self.defaulted


@dataclass
class Resolution:
    """Resolved parameters in declaration order plus coercion violations."""

    parameters: List[ResolvedParameter] = field(default_factory=list)
    violations: List[ValidationError] = field(default_factory=list)

    def values(self) -> Dict[str, Any]:
        """Mapping of parameter name to value, absent parameters omitted."""
        return {p.name: p.value for p in self.parameters if not p.absent}


class ParameterResolver:
    """
    Resolves the parameters of a matched operation.

    Example:
        resolver = ParameterResolver(document.resolver)
        resolution = resolver.resolve(match, RawRequest('GET', '/weather', query={'location': '95113'}))

        for parameter in resolution.parameters:
            print(parameter.name, parameter.value, parameter.provided)
    """

    def __init__(self, schema_resolver: SchemaResolver):
        """
        Initialize parameter resolver.

        Args:
            schema_resolver: Resolver of the loaded contract
        """
        self.schemas = schema_resolver

    def resolve(self, match: MatchResult, request: RawRequest) -> Resolution:
        """
        Resolve every parameter declared by the matched operation.

        Args:
            match: Successful MatchResult
            request: Decoded request

        Returns:
            Resolution with one entry per declared parameter
        """
        resolution = Resolution()

        for definition in match.operation.parameters:
            found, raw = self._extract(definition, match, request)

            parameter = ResolvedParameter(
                name=definition.name,
                location=definition.location,
                definition=definition
            )

            if found:
                parameter.provided = True
                value = raw
            elif definition.has_default:
                parameter.defaulted = True
                value = definition.default
            else:
                resolution.parameters.append(parameter)
                continue

            if definition.location == 'body' or definition.schema is None:
                parameter.value = value
            else:
                parameter.value, violations = self._coerce(definition, value)
                if violations:
                    parameter.coercion_failed = True
                    resolution.violations.extend(violations)

            resolution.parameters.append(parameter)

        return resolution

    def _extract(
        self,
        definition: ParameterDefinition,
        match: MatchResult,
        request: RawRequest
    ) -> Tuple[bool, Any]:
        """
        Read a raw value from the parameter's location.

        Returns:
            (found, raw value)
        """
        if definition.location == 'path':
            value = match.path_params.get(definition.name)
            return value is not None, value

        if definition.location == 'query':
            query = request.query or {}
            if definition.name not in query:
                return False, None
            return True, query[definition.name]

        if definition.location == 'header':
            value = lookup_header(request.headers, definition.name)
            return value is not None, value

        value = request.body
        for step in definition.body_path:
            if not isinstance(value, dict) or step not in value:
                return False, None
            value = value[step]
        return value is not None, value

    def _coerce(self, definition: ParameterDefinition, raw: Any) -> Tuple[Any, List[ValidationError]]:
        """
        Coerce a raw path/query/header value to the parameter schema.

        Returns:
            (best-effort value, coercion violations)
        """
        schema = self.schemas.deref(definition.schema)

        if isinstance(schema, ArraySchema):
            items_schema = self.schemas.deref(schema.items)
            values = []
            violations = []
            for index, item in enumerate(self._split(raw, definition.collection_format)):
                value, ok = coerce_primitive(items_schema, item)
                if not ok:
                    violations.append(ValidationError(
                        path=(definition.name, index),
                        kind=ViolationKind.INVALID_PARAMETER_VALUE,
                        message=f"Item {index} of parameter '{definition.name}' is not a valid {items_schema.kind}: {item!r}"
                    ))
                values.append(value)
            return values, violations

        if isinstance(raw, list):
            raw = raw[0] if raw else ''

        value, ok = coerce_primitive(schema, raw)
        if ok:
            return value, []
        return value, [ValidationError(
            path=(definition.name,),
            kind=ViolationKind.INVALID_PARAMETER_VALUE,
            message=f"Parameter '{definition.name}' is not a valid {schema.kind}: {raw!r}"
        )]

    def _split(self, raw: Any, collection_format: str) -> List[Any]:
        """Split a raw array value according to its collection format."""
        raw_values = raw if isinstance(raw, list) else [raw]
        separator = COLLECTION_FORMATS.get(collection_format, ',')

        items = []
        for raw_value in raw_values:
            if separator is None or not isinstance(raw_value, str):
                items.append(raw_value)
            elif raw_value != '':
                items.extend(raw_value.split(separator))
        return items


def coerce_primitive(schema: PrimitiveSchema, raw: Any) -> Tuple[Any, bool]:
    """
    Coerce a string to a primitive kind.

    Non-string values are returned unchanged and left to the Validator.

    Args:
        schema: Target primitive schema
        raw: Raw value

    Returns:
        (value, ok); on failure the raw value is returned with ok False
    """
    if not isinstance(raw, str) or schema.kind == 'string':
        return raw, True

    if schema.kind == 'integer':
        if INTEGER_PATTERN.fullmatch(raw):
            return int(raw), True
        return raw, False

    if schema.kind == 'number':
        if not NUMBER_PATTERN.fullmatch(raw):
            return raw, False
        value = float(raw)
        if not math.isfinite(value):
            return raw, False
        return value, True

    if schema.kind == 'boolean':
        lowered = raw.lower()
        if lowered == 'true':
            return True, True
        if lowered == 'false':
            return False, True
        return raw, False

    return raw, False
