"""
SpecTap Validator

Checks resolved parameters, and nested body structures, against their
schemas and collects every violation in one pass.

Order of violations is deterministic: parameters in declaration order,
then depth-first through each value in property declaration order, with
undeclared properties of closed objects reported last in value order.
"""

from typing import Any, List, Tuple

from ..contract import (
    ArraySchema,
    ObjectSchema,
    PrimitiveSchema,
    SchemaNode,
    SchemaResolver,
    value_matches_kind,
)
from .parameters import ResolvedParameter
from .violations import PathStep, ValidationError, ViolationKind, format_path


DEFAULT_MAX_DEPTH = 32


class Validator:
    """
    Schema validator for resolved parameters.

    Recursion through self-referential schemas stops once max_depth
    object/array levels have been entered; anything deeper counts as valid.

    Example:
        validator = Validator(document.resolver)
        errors = validator.validate(resolution.parameters)

        for error in errors:
            print(error.to_dict())
    """

    def __init__(self, schema_resolver: SchemaResolver, max_depth: int = DEFAULT_MAX_DEPTH):
        """
        Initialize validator.

        Args:
            schema_resolver: Resolver of the loaded contract
            max_depth: Maximum nesting depth to descend into
        """
        if max_depth < 0:
            raise ValueError(f"max_depth must be non-negative, got {max_depth}")
        self.schemas = schema_resolver
        self.max_depth = max_depth

    def validate(self, parameters: List[ResolvedParameter]) -> List[ValidationError]:
        """
        Validate resolved parameters.

        Args:
            parameters: Parameters in declaration order

        Returns:
            Every violation found; empty when the request is valid
        """
        errors: List[ValidationError] = []

        for parameter in parameters:
            definition = parameter.definition
            if parameter.absent:
                if definition is not None and definition.required:
                    errors.append(ValidationError(
                        path=(parameter.name,),
                        kind=ViolationKind.REQUIRED,
                        message=f"Missing required {parameter.location} parameter '{parameter.name}'"
                    ))
                continue

            # Already reported by the ParameterResolver
            if parameter.coercion_failed:
                continue

            if definition is None or definition.schema is None:
                continue

            errors.extend(self.validate_value(definition.schema, parameter.value, (parameter.name,)))

        return errors

    def validate_value(
        self,
        schema: SchemaNode,
        value: Any,
        path: Tuple[PathStep, ...] = (),
        depth: int = 0
    ) -> List[ValidationError]:
        """
        Validate an arbitrary value against a schema node.

        Args:
            schema: Schema node (references are followed)
            value: Decoded value
            path: Path of the value, used in violations
            depth: Current nesting depth

        Returns:
            List of violations
        """
        errors: List[ValidationError] = []
        self._check(schema, value, path, depth, errors)
        return errors

    def _check(self, schema: SchemaNode, value: Any, path: Tuple[PathStep, ...], depth: int, errors: List[ValidationError]):
        if depth > self.max_depth:
            return

        node = self.schemas.deref(schema)

        if isinstance(node, PrimitiveSchema):
            self._check_primitive(node, value, path, errors)
        elif isinstance(node, ObjectSchema):
            self._check_object(node, value, path, depth, errors)
        elif isinstance(node, ArraySchema):
            if not isinstance(value, list):
                errors.append(self._type_mismatch('array', value, path))
                return
            for index, item in enumerate(value):
                self._check(node.items, item, path + (index,), depth + 1, errors)

    def _check_object(self, node: ObjectSchema, value: Any, path: Tuple[PathStep, ...], depth: int, errors: List[ValidationError]):
        if not isinstance(value, dict):
            errors.append(self._type_mismatch('object', value, path))
            return

        for name, prop in node.properties.items():
            if name in value:
                self._check(prop, value[name], path + (name,), depth + 1, errors)
            elif name in node.required:
                errors.append(ValidationError(
                    path=path + (name,),
                    kind=ViolationKind.REQUIRED,
                    message=f"Missing required property '{name}'"
                ))

        if node.closed:
            for name in value:
                if name not in node.properties:
                    errors.append(ValidationError(
                        path=path + (name,),
                        kind=ViolationKind.ADDITIONAL_PROPERTY,
                        message=f"Property '{name}' is not allowed"
                    ))

    def _check_primitive(self, node: PrimitiveSchema, value: Any, path: Tuple[PathStep, ...], errors: List[ValidationError]):
        if not value_matches_kind(node.kind, value):
            errors.append(self._type_mismatch(node.kind, value, path))
            return

        if node.enum is not None and not _in_enum(value, node.enum):
            allowed = ', '.join(repr(v) for v in node.enum)
            errors.append(ValidationError(
                path=path,
                kind=ViolationKind.ENUM_MISMATCH,
                message=f"Value {value!r} at '{format_path(path)}' is not one of: {allowed}"
            ))

        if node.kind == 'string':
            if node.min_length is not None and len(value) < node.min_length:
                errors.append(self._range(path, f"Length {len(value)} is below minLength {node.min_length}"))
            if node.max_length is not None and len(value) > node.max_length:
                errors.append(self._range(path, f"Length {len(value)} exceeds maxLength {node.max_length}"))
        elif node.kind in ('integer', 'number'):
            if node.minimum is not None and value < node.minimum:
                errors.append(self._range(path, f"Value {value} is below minimum {node.minimum}"))
            if node.maximum is not None and value > node.maximum:
                errors.append(self._range(path, f"Value {value} exceeds maximum {node.maximum}"))

    def _type_mismatch(self, expected: str, value: Any, path: Tuple[PathStep, ...]) -> ValidationError:
        return ValidationError(
            path=path,
            kind=ViolationKind.TYPE_MISMATCH,
            message=f"Expected {expected} at '{format_path(path)}', got {_describe(value)}"
        )

    def _range(self, path: Tuple[PathStep, ...], message: str) -> ValidationError:
        return ValidationError(
            path=path,
            kind=ViolationKind.RANGE_VIOLATION,
            message=f"{message} at '{format_path(path)}'"
        )


def _in_enum(value: Any, enum: Tuple[Any, ...]) -> bool:
    # True == 1 in Python, so compare kinds as well as values
    return any(value == literal and isinstance(value, bool) == isinstance(literal, bool) for literal in enum)


def _describe(value: Any) -> str:
    if value is None:
        return 'null'
    if isinstance(value, bool):
        return 'boolean'
    if isinstance(value, int):
        return 'integer'
    if isinstance(value, float):
        return 'number'
    if isinstance(value, str):
        return 'string'
    if isinstance(value, list):
        return 'array'
    if isinstance(value, dict):
        return 'object'
    return type(value).__name__
