"""
SpecTap Schema Model

Tagged schema nodes parsed from Swagger 2.0 / OpenAPI 3.x schema objects,
and the resolver that turns named references into concrete nodes.

Features:
- Primitive, object, array and reference nodes
- Enum, format, numeric range and string length constraints
- Eager, memoized reference resolution
- Detection of reference cycles that have no array hop
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterator, List, Optional, Tuple, Union

from .errors import CyclicSchema, SpecInvalid, UnresolvedReference


PRIMITIVE_KINDS = ('string', 'number', 'integer', 'boolean')

REFERENCE_PREFIXES = ('#/definitions/', '#/components/schemas/')


@dataclass(frozen=True)
class PrimitiveSchema:
    """Scalar value with optional constraints."""

    kind: str
    enum: Optional[Tuple[Any, ...]] = None
    format: Optional[str] = None
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None


@dataclass(frozen=True)
class ObjectSchema:
    """Mapping of named properties. Open to extra keys unless closed."""

    properties: Dict[str, 'SchemaNode'] = field(default_factory=dict)
    required: FrozenSet[str] = frozenset()
    closed: bool = False


@dataclass(frozen=True)
class ArraySchema:
    """Sequence whose items share one schema."""

    items: 'SchemaNode'


@dataclass(frozen=True)
class ReferenceSchema:
    """Named reference to a definition in the contract document."""

    target: str


SchemaNode = Union[PrimitiveSchema, ObjectSchema, ArraySchema, ReferenceSchema]


def escape_pointer_token(token: Any) -> str:
    """Escape a JSON pointer reference token (RFC 6901)."""
    return str(token).replace('~', '~0').replace('/', '~1')


def join_pointer(pointer: str, *tokens: Any) -> str:
    """Append reference tokens to a JSON pointer."""
    for token in tokens:
        pointer = f"{pointer}/{escape_pointer_token(token)}"
    return pointer


def value_matches_kind(kind: str, value: Any) -> bool:
    """
    Check a decoded value against a primitive kind.

    Booleans are never integers or numbers, and integers are valid numbers.
    """
    if kind == 'string':
        return isinstance(value, str)
    if kind == 'boolean':
        return isinstance(value, bool)
    if isinstance(value, bool):
        return False
    if kind == 'integer':
        return isinstance(value, int)
    if kind == 'number':
        return isinstance(value, (int, float))
    return False


def within_bounds(node: PrimitiveSchema, value: Any) -> bool:
    """Check a value of the node's kind against its length and range bounds."""
    if node.kind == 'string':
        if node.min_length is not None and len(value) < node.min_length:
            return False
        if node.max_length is not None and len(value) > node.max_length:
            return False
    elif node.kind in ('integer', 'number'):
        if node.minimum is not None and value < node.minimum:
            return False
        if node.maximum is not None and value > node.maximum:
            return False
    return True


def parse_reference(ref: Any, pointer: str) -> str:
    """
    Extract the definition name from a local $ref.

    Args:
        ref: The $ref value
        pointer: Location of the reference in the document

    Returns:
        Definition name

    Raises:
        UnresolvedReference: If the reference is not a local definition reference
    """
    if isinstance(ref, str):
        for prefix in REFERENCE_PREFIXES:
            if ref.startswith(prefix) and len(ref) > len(prefix):
                name = ref[len(prefix):]
                return name.replace('~1', '/').replace('~0', '~')
    raise UnresolvedReference(pointer, f"Unsupported reference {ref!r}")


def _number(raw: Dict[str, Any], key: str, pointer: str) -> Optional[float]:
    value = raw.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise SpecInvalid(join_pointer(pointer, key), f"'{key}' must be a finite number")
    try:
        finite = math.isfinite(value)
    except OverflowError:
        finite = False
    if not finite:
        raise SpecInvalid(join_pointer(pointer, key), f"'{key}' must be a finite number")
    return value


def _length(raw: Dict[str, Any], key: str, pointer: str) -> Optional[int]:
    value = raw.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise SpecInvalid(join_pointer(pointer, key), f"'{key}' must be a non-negative integer")
    return value


def _infer_type(raw: Dict[str, Any], pointer: str) -> str:
    schema_type = raw.get('type')
    if schema_type is None:
        if 'properties' in raw:
            return 'object'
        if 'items' in raw:
            return 'array'
        raise SpecInvalid(pointer, "Schema declares no type")
    if not isinstance(schema_type, str):
        raise SpecInvalid(join_pointer(pointer, 'type'), f"Unsupported schema type {schema_type!r}")
    return schema_type


def _parse_primitive(kind: str, raw: Dict[str, Any], pointer: str) -> PrimitiveSchema:
    enum = raw.get('enum')
    if enum is not None:
        if not isinstance(enum, list) or not enum:
            raise SpecInvalid(join_pointer(pointer, 'enum'), "Enum must be a non-empty list")
        for index, literal in enumerate(enum):
            if not value_matches_kind(kind, literal):
                raise SpecInvalid(
                    join_pointer(pointer, 'enum', index),
                    f"Enum value {literal!r} is not of type {kind}"
                )
        enum = tuple(enum)

    minimum = maximum = min_length = max_length = None
    if kind in ('number', 'integer'):
        minimum = _number(raw, 'minimum', pointer)
        maximum = _number(raw, 'maximum', pointer)
        if minimum is not None and maximum is not None and minimum > maximum:
            raise SpecInvalid(pointer, f"minimum {minimum} exceeds maximum {maximum}")
        if kind == 'integer' and minimum is not None and maximum is not None \
                and math.ceil(minimum) > math.floor(maximum):
            raise SpecInvalid(pointer, f"No integer lies between {minimum} and {maximum}")
    elif kind == 'string':
        min_length = _length(raw, 'minLength', pointer)
        max_length = _length(raw, 'maxLength', pointer)
        if min_length is not None and max_length is not None and min_length > max_length:
            raise SpecInvalid(pointer, f"minLength {min_length} exceeds maxLength {max_length}")

    schema_format = raw.get('format')
    node = PrimitiveSchema(
        kind=kind,
        enum=enum,
        format=schema_format if isinstance(schema_format, str) else None,
        minimum=minimum,
        maximum=maximum,
        min_length=min_length,
        max_length=max_length
    )

    if enum is not None and not any(within_bounds(node, literal) for literal in enum):
        raise SpecInvalid(join_pointer(pointer, 'enum'), "No enum value satisfies the declared bounds")
    return node


def _parse_object(raw: Dict[str, Any], pointer: str) -> ObjectSchema:
    raw_properties = raw.get('properties') or {}
    if not isinstance(raw_properties, dict):
        raise SpecInvalid(join_pointer(pointer, 'properties'), "Properties must be a mapping")

    properties = {
        name: parse_schema(prop, join_pointer(pointer, 'properties', name))
        for name, prop in raw_properties.items()
    }

    required = raw.get('required') or []
    if not isinstance(required, list):
        raise SpecInvalid(join_pointer(pointer, 'required'), "Required must be a list")
    for index, name in enumerate(required):
        if name not in properties:
            raise SpecInvalid(
                join_pointer(pointer, 'required', index),
                f"Required property '{name}' is not declared"
            )

    return ObjectSchema(
        properties=properties,
        required=frozenset(required),
        closed=raw.get('additionalProperties') is False
    )


def parse_schema(raw: Any, pointer: str) -> SchemaNode:
    """
    Parse a schema object into a SchemaNode.

    Args:
        raw: Schema object from the contract document
        pointer: JSON pointer of the schema object, used in error messages

    Returns:
        Parsed SchemaNode

    Raises:
        SpecInvalid: If the schema object is malformed or unsupported
    """
    if not isinstance(raw, dict):
        raise SpecInvalid(pointer, "Schema must be a mapping")

    if '$ref' in raw:
        return ReferenceSchema(target=parse_reference(raw['$ref'], join_pointer(pointer, '$ref')))

    kind = _infer_type(raw, pointer)
    if kind in PRIMITIVE_KINDS:
        return _parse_primitive(kind, raw, pointer)
    if kind == 'object':
        return _parse_object(raw, pointer)
    if kind == 'array':
        if 'items' not in raw:
            raise SpecInvalid(pointer, "Array schema declares no items")
        return ArraySchema(items=parse_schema(raw['items'], join_pointer(pointer, 'items')))

    raise SpecInvalid(join_pointer(pointer, 'type'), f"Unsupported schema type '{kind}'")


def iter_references(node: SchemaNode, via_array: bool = False) -> Iterator[Tuple[str, bool]]:
    """
    Yield (target, via_array) for every reference reachable from a node
    without following other references.
    """
    if isinstance(node, ReferenceSchema):
        yield node.target, via_array
    elif isinstance(node, ObjectSchema):
        for prop in node.properties.values():
            yield from iter_references(prop, via_array)
    elif isinstance(node, ArraySchema):
        yield from iter_references(node.items, True)


class SchemaResolver:
    """
    Resolves named references into concrete schema nodes.

    All definitions are resolved eagerly by check(); afterwards resolve() is
    a read-only lookup and the resolver can be shared across requests.

    Example:
        resolver = SchemaResolver({'Pet': ObjectSchema(...)}, '#/definitions')
        resolver.check()
        pet = resolver.resolve('Pet')
        node = resolver.deref(ReferenceSchema('Pet'))
    """

    def __init__(self, definitions: Dict[str, SchemaNode], base_pointer: str = '#/definitions'):
        """
        Initialize resolver.

        Args:
            definitions: Named schema nodes from the contract document
            base_pointer: JSON pointer of the definitions section
        """
        self.definitions = definitions
        self.base_pointer = base_pointer
        self._resolved: Dict[str, SchemaNode] = {}

    def resolve(self, name: str) -> SchemaNode:
        """
        Resolve a definition name to its first non-reference node.

        Raises:
            UnresolvedReference: If the name (or a name it aliases) is undefined
            CyclicSchema: If the name is part of a reference-only alias chain
        """
        if name in self._resolved:
            return self._resolved[name]

        chain: List[str] = []
        current = name
        while True:
            if current not in self.definitions:
                raise UnresolvedReference(
                    join_pointer(self.base_pointer, chain[-1] if chain else current),
                    f"Reference to undefined schema '{current}'"
                )
            if current in chain:
                cycle = ' -> '.join(chain + [current])
                raise CyclicSchema(join_pointer(self.base_pointer, name), f"Reference cycle {cycle}")
            chain.append(current)

            node = self.definitions[current]
            if not isinstance(node, ReferenceSchema):
                break
            current = node.target

        for alias in chain:
            self._resolved[alias] = node
        return node

    def deref(self, node: SchemaNode) -> SchemaNode:
        """Return the concrete node behind a reference (or the node itself)."""
        if isinstance(node, ReferenceSchema):
            return self.resolve(node.target)
        return node

    def check_references(self, node: SchemaNode, pointer: str):
        """Verify every reference reachable from a node resolves."""
        for target, _ in iter_references(node):
            if target not in self.definitions:
                raise UnresolvedReference(pointer, f"Reference to undefined schema '{target}'")

    def check(self):
        """
        Resolve every definition and reject cycles without an array hop.

        Raises:
            UnresolvedReference: On any dangling reference
            CyclicSchema: On any object/reference-only cycle
        """
        for name, node in self.definitions.items():
            self.check_references(node, join_pointer(self.base_pointer, name))
        for name in self.definitions:
            self.resolve(name)

        # Only edges that do not pass through an array can form a forbidden cycle
        edges = {
            name: [target for target, via_array in iter_references(node) if not via_array]
            for name, node in self.definitions.items()
        }

        visiting, done = set(), set()

        def visit(name: str, trail: List[str]):
            visiting.add(name)
            trail.append(name)
            for target in edges[name]:
                if target in visiting:
                    cycle = trail[trail.index(target):] + [target]
                    raise CyclicSchema(
                        join_pointer(self.base_pointer, target),
                        f"Schema cycle without array hop: {' -> '.join(cycle)}"
                    )
                if target not in done:
                    visit(target, trail)
            trail.pop()
            visiting.discard(name)
            done.add(name)

        for name in self.definitions:
            if name not in done:
                visit(name, [])
