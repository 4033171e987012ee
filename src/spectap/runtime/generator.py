"""
SpecTap Mock Generator

Synthesizes deterministic placeholder values that satisfy a schema.

Features:
- First enum value that fits the declared bounds
- Format-aware string sentinels (date, date-time, uuid, email, uri, byte)
- Numbers clamped into [minimum, maximum]
- Every declared property populated, one item per array
- Depth bound shared with the Validator so recursive schemas terminate
"""

import math
from typing import Any, Dict, Optional

from ..contract import ArraySchema, ObjectSchema, PrimitiveSchema, SchemaNode, SchemaResolver
from ..contract.schema import within_bounds
from .validator import DEFAULT_MAX_DEPTH


STRING_SENTINEL = 'string'

FORMAT_SENTINELS = {
    'date': '1970-01-01',
    'date-time': '1970-01-01T00:00:00Z',
    'uuid': '00000000-0000-0000-0000-000000000000',
    'email': 'user@example.com',
    'uri': 'https://example.com',
    'byte': 'U3dhZ2dlcg==',
}


class MockGenerator:
    """
    Schema-driven mock value generator.

    Output always passes the Validator. Once the depth bound is reached,
    arrays are generated empty and objects carry only their required
    properties, which terminates on any schema whose cycles pass through
    an array.

    Example:
        generator = MockGenerator(document.resolver)
        body = generator.generate(operation.success_schema)
    """

    def __init__(self, schema_resolver: SchemaResolver, max_depth: int = DEFAULT_MAX_DEPTH):
        """
        Initialize mock generator.

        Args:
            schema_resolver: Resolver of the loaded contract
            max_depth: Nesting depth at which generation is truncated
        """
        if max_depth < 0:
            raise ValueError(f"max_depth must be non-negative, got {max_depth}")
        self.schemas = schema_resolver
        self.max_depth = max_depth

    def generate(self, schema: Optional[SchemaNode]) -> Any:
        """
        Generate a value for a schema.

        Args:
            schema: Schema node, or None for operations without a body

        Returns:
            Schema-conformant value (None when schema is None)
        """
        if schema is None:
            return None
        return self._generate(schema, 0)

    def _generate(self, schema: SchemaNode, depth: int) -> Any:
        node = self.schemas.deref(schema)
        truncated = depth >= self.max_depth

        if isinstance(node, PrimitiveSchema):
            return self.generate_primitive(node)

        if isinstance(node, ArraySchema):
            if truncated:
                return []
            return [self._generate(node.items, depth + 1)]

        if isinstance(node, ObjectSchema):
            result: Dict[str, Any] = {}
            for name, prop in node.properties.items():
                if truncated and name not in node.required:
                    continue
                result[name] = self._generate(prop, depth + 1)
            return result

        return None

    def generate_primitive(self, node: PrimitiveSchema) -> Any:
        """Generate a placeholder literal for a primitive schema."""
        if node.enum:
            return next((v for v in node.enum if within_bounds(node, v)), node.enum[0])
        if node.kind == 'string':
            return self._string(node)
        if node.kind == 'boolean':
            return True
        return self._number(node)

    def _string(self, node: PrimitiveSchema) -> str:
        min_length = node.min_length or 0
        max_length = node.max_length

        sentinel = FORMAT_SENTINELS.get(node.format or '')
        if sentinel is not None and len(sentinel) >= min_length \
                and (max_length is None or len(sentinel) <= max_length):
            return sentinel

        value = STRING_SENTINEL
        if len(value) < min_length:
            value = value + 'x' * (min_length - len(value))
        if max_length is not None and len(value) > max_length:
            value = value[:max_length]
        return value

    def _number(self, node: PrimitiveSchema) -> Any:
        value = 1
        if node.minimum is not None and value < node.minimum:
            value = node.minimum
        if node.maximum is not None and value > node.maximum:
            value = node.maximum

        if node.kind == 'integer':
            # Round towards the inside of the range
            if node.minimum is not None and value == node.minimum:
                return int(math.ceil(value))
            return int(math.floor(value))
        return float(value)
