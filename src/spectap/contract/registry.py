"""
SpecTap Contract Registry

Parses and structurally validates a Swagger 2.0 or OpenAPI 3.x contract
document, and builds the immutable operation index used at request time.

Features:
- Swagger 2.0 (definitions, basePath, body parameters, collectionFormat)
- OpenAPI 3.x (components.schemas, requestBody, servers, style/explode)
- Path-level parameters merged into each operation
- Local $ref parameters and responses
- Startup-fatal SpecInvalid with a JSON pointer to the offending node
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

from .errors import SpecInvalid
from .schema import (
    ArraySchema,
    PrimitiveSchema,
    SchemaNode,
    SchemaResolver,
    join_pointer,
    parse_schema,
)
from ..common import ContractLoader, PathNormalizer


LOCATIONS = ('path', 'query', 'header', 'body')

HTTP_METHODS = ('get', 'put', 'post', 'delete', 'options', 'head', 'patch', 'trace')

COLLECTION_FORMATS = {
    'csv': ',',
    'ssv': ' ',
    'tsv': '\t',
    'pipes': '|',
    'multi': None,
}

# Inline constraint keys of Swagger 2.0 non-body parameters
INLINE_SCHEMA_KEYS = (
    'type', 'format', 'enum', 'items', 'minimum', 'maximum', 'minLength', 'maxLength'
)

PLACEHOLDER_PATTERN = re.compile(r'^\{([^{}]+)\}$')


@dataclass(frozen=True)
class PathSegment:
    """One segment of a path template: a literal or a named placeholder."""

    text: str
    placeholder: bool = False


@dataclass(frozen=True)
class ParameterDefinition:
    """A declared operation parameter."""

    name: str
    location: str
    required: bool = False
    schema: Optional[SchemaNode] = None
    default: Any = None
    has_default: bool = False
    collection_format: str = 'csv'
    body_path: Tuple[str, ...] = ()


@dataclass(frozen=True)
class OperationDefinition:
    """A (method, path template) entry of the contract."""

    method: str
    path: str
    segments: Tuple[PathSegment, ...]
    parameters: Tuple[ParameterDefinition, ...]
    handler_id: str
    success_status: int = 200
    success_schema: Optional[SchemaNode] = None
    operation_id: Optional[str] = None
    order: int = 0

    @property
    def literal_count(self) -> int:
        """Number of literal (non-placeholder) segments."""
        return sum(1 for segment in self.segments if not segment.placeholder)

    @property
    def key(self) -> str:
        """Method and template, e.g. 'GET /weather/{id}'."""
        return f"{self.method} {self.path}"


@dataclass(frozen=True)
class ContractDocument:
    """Parsed, validated contract. Never mutated after load."""

    dialect: str
    title: str
    version: str
    base_path: str
    operations: Tuple[OperationDefinition, ...]
    definitions: Dict[str, SchemaNode]
    resolver: SchemaResolver
    index: Dict[Tuple[str, str], OperationDefinition] = field(default_factory=dict)

    def get_operation(self, method: str, path: str) -> Optional[OperationDefinition]:
        """Look up an operation by method and exact path template."""
        return self.index.get((method.upper(), path))


class SpecRegistry:
    """
    Builds and owns the ContractDocument.

    Example:
        registry = SpecRegistry()
        document = registry.load(yaml.safe_load(open('weather.yaml')))

        # Or straight from a file
        document = SpecRegistry().load_file('weather.yaml')

        for operation in document.operations:
            print(operation.key, operation.handler_id)
    """

    def __init__(self):
        """Initialize an empty registry."""
        self.document: Optional[ContractDocument] = None

    def load_file(self, file_path: str) -> ContractDocument:
        """
        Load a contract from a YAML or JSON file.

        Raises:
            FileNotFoundError: If the file does not exist
            ValueError: If the file cannot be parsed
            SpecInvalid: If the document is structurally invalid
        """
        return self.load(ContractLoader(file_path).load())

    def load(self, document: Dict[str, Any]) -> ContractDocument:
        """
        Parse and validate a contract document.

        Args:
            document: Contract document as a mapping

        Returns:
            Immutable ContractDocument

        Raises:
            SpecInvalid: On any structural violation (UnresolvedReference
                and CyclicSchema are subclasses)
        """
        parser = _DocumentParser(document)
        self.document = parser.parse()
        return self.document


def load_contract(source: Union[str, Dict[str, Any]]) -> ContractDocument:
    """
    Load a contract from a file path or an in-memory mapping.

    Example:
        document = load_contract('weather.yaml')
    """
    registry = SpecRegistry()
    if isinstance(source, dict):
        return registry.load(source)
    return registry.load_file(source)


class _DocumentParser:
    """Single-use parser for one contract document."""

    def __init__(self, raw: Dict[str, Any]):
        if not isinstance(raw, dict):
            raise SpecInvalid('#', "Contract document must be a mapping")
        self.raw = raw

        if str(raw.get('swagger', '')).startswith('2'):
            self.dialect = 'swagger2'
        elif str(raw.get('openapi', '')).startswith('3'):
            self.dialect = 'openapi3'
        else:
            raise SpecInvalid('#', "Unknown contract dialect; expected 'swagger: \"2.0\"' or 'openapi: 3.x'")

        self.resolver: Optional[SchemaResolver] = None

    @property
    def is_swagger2(self) -> bool:
        return self.dialect == 'swagger2'

    def parse(self) -> ContractDocument:
        definitions, base_pointer = self._parse_definitions()
        self.resolver = SchemaResolver(definitions, base_pointer)
        self.resolver.check()

        base_path = self._base_path()
        operations = self._parse_paths(base_path)

        index: Dict[Tuple[str, str], OperationDefinition] = {}
        for operation in operations:
            index[(operation.method, operation.path)] = operation

        info = self.raw.get('info') or {}
        return ContractDocument(
            dialect=self.dialect,
            title=str(info.get('title', '')),
            version=str(info.get('version', '')),
            base_path=base_path,
            operations=tuple(operations),
            definitions=definitions,
            resolver=self.resolver,
            index=index
        )

    # Definitions

    def _parse_definitions(self) -> Tuple[Dict[str, SchemaNode], str]:
        if self.is_swagger2:
            raw_definitions = self.raw.get('definitions') or {}
            base_pointer = '#/definitions'
        else:
            raw_definitions = (self.raw.get('components') or {}).get('schemas') or {}
            base_pointer = '#/components/schemas'

        if not isinstance(raw_definitions, dict):
            raise SpecInvalid(base_pointer, "Schema definitions must be a mapping")

        definitions = {
            name: parse_schema(raw, join_pointer(base_pointer, name))
            for name, raw in raw_definitions.items()
        }
        return definitions, base_pointer

    def _base_path(self) -> str:
        if self.is_swagger2:
            base_path = PathNormalizer.normalize_path(str(self.raw.get('basePath') or '/'))
            return '' if base_path == '/' else base_path
        servers = self.raw.get('servers') or []
        if servers and isinstance(servers[0], dict):
            return PathNormalizer.base_path_from_url(str(servers[0].get('url', '')))
        return ''

    # Local references to shared parameters and responses

    def _deref_local(self, node: Any, pointer: str) -> Tuple[Any, str]:
        if not isinstance(node, dict) or '$ref' not in node:
            return node, pointer
        ref = node['$ref']
        if not isinstance(ref, str) or not ref.startswith('#/'):
            raise SpecInvalid(join_pointer(pointer, '$ref'), f"Unsupported reference {ref!r}")
        target: Any = self.raw
        for token in ref[2:].split('/'):
            token = token.replace('~1', '/').replace('~0', '~')
            if not isinstance(target, dict) or token not in target:
                raise SpecInvalid(join_pointer(pointer, '$ref'), f"Unresolvable reference {ref!r}")
            target = target[token]
        return target, ref

    # Paths and operations

    def _parse_paths(self, base_path: str) -> List[OperationDefinition]:
        paths = self.raw.get('paths') or {}
        if not isinstance(paths, dict):
            raise SpecInvalid('#/paths', "Paths must be a mapping")

        operations: List[OperationDefinition] = []
        shapes: Dict[Tuple[str, Tuple[str, ...]], str] = {}

        for template, path_item in paths.items():
            path_pointer = join_pointer('#/paths', template)
            if not isinstance(template, str) or not template.startswith('/'):
                raise SpecInvalid(path_pointer, "Path template must start with '/'")
            if not isinstance(path_item, dict):
                raise SpecInvalid(path_pointer, "Path item must be a mapping")

            full_template = PathNormalizer.normalize_path(base_path + template)
            segments = self._parse_segments(full_template, path_pointer)
            shape = tuple('{}' if s.placeholder else s.text for s in segments)
            shared = path_item.get('parameters') or []

            for method, raw_operation in path_item.items():
                if str(method).lower() not in HTTP_METHODS:
                    continue
                method_upper = str(method).upper()
                op_pointer = join_pointer(path_pointer, method)

                if (method_upper, shape) in shapes:
                    raise SpecInvalid(
                        op_pointer,
                        f"{method_upper} {full_template} duplicates {method_upper} {shapes[(method_upper, shape)]}"
                    )
                shapes[(method_upper, shape)] = full_template

                operations.append(self._parse_operation(
                    method_upper, full_template, segments, shared,
                    path_pointer, raw_operation, op_pointer, len(operations)
                ))

        return operations

    def _parse_segments(self, template: str, pointer: str) -> Tuple[PathSegment, ...]:
        segments = []
        seen = set()
        for part in PathNormalizer.split_path(template):
            match = PLACEHOLDER_PATTERN.match(part)
            if match:
                name = match.group(1)
                if name in seen:
                    raise SpecInvalid(pointer, f"Placeholder '{{{name}}}' appears more than once")
                seen.add(name)
                segments.append(PathSegment(text=name, placeholder=True))
            elif '{' in part or '}' in part:
                raise SpecInvalid(pointer, f"Segment '{part}' mixes literal text and a placeholder")
            else:
                segments.append(PathSegment(text=part))
        return tuple(segments)

    def _parse_operation(
        self,
        method: str,
        template: str,
        segments: Tuple[PathSegment, ...],
        shared: List[Any],
        path_pointer: str,
        raw: Any,
        pointer: str,
        order: int
    ) -> OperationDefinition:
        if not isinstance(raw, dict):
            raise SpecInvalid(pointer, "Operation must be a mapping")

        parameters = self._merge_parameters(shared, path_pointer, raw.get('parameters') or [], pointer)

        if not self.is_swagger2 and raw.get('requestBody') is not None:
            parameters.append(self._parse_request_body(raw['requestBody'], join_pointer(pointer, 'requestBody')))

        names = set()
        for parameter in parameters:
            if parameter.name in names:
                raise SpecInvalid(pointer, f"Parameter name '{parameter.name}' is not unique")
            names.add(parameter.name)

        placeholders = {s.text for s in segments if s.placeholder}
        path_params = {p.name for p in parameters if p.location == 'path'}
        unbound = sorted(placeholders - path_params)
        if unbound:
            raise SpecInvalid(pointer, f"Placeholder '{{{unbound[0]}}}' has no path parameter")
        unused = sorted(path_params - placeholders)
        if unused:
            raise SpecInvalid(pointer, f"Path parameter '{unused[0]}' has no placeholder in {template}")

        success_status, success_schema = self._parse_success(raw.get('responses') or {}, join_pointer(pointer, 'responses'))

        operation_id = raw.get('operationId')
        return OperationDefinition(
            method=method,
            path=template,
            segments=segments,
            parameters=tuple(parameters),
            handler_id=self._handler_id(method, template, raw),
            success_status=success_status,
            success_schema=success_schema,
            operation_id=operation_id if isinstance(operation_id, str) else None,
            order=order
        )

    def _handler_id(self, method: str, template: str, raw: Dict[str, Any]) -> str:
        if raw.get('x-handler'):
            return str(raw['x-handler'])
        operation_id = raw.get('operationId')
        controller = raw.get('x-swagger-router-controller') or self.raw.get('x-swagger-router-controller')
        if operation_id and controller:
            return f"{controller}.{operation_id}"
        if operation_id:
            return str(operation_id)
        return f"{method} {template}"

    # Parameters

    def _merge_parameters(
        self,
        shared: List[Any],
        shared_pointer: str,
        own: List[Any],
        pointer: str
    ) -> List[ParameterDefinition]:
        merged: List[ParameterDefinition] = []
        positions: Dict[Tuple[str, str], int] = {}

        for raw_list, base in ((shared, join_pointer(shared_pointer, 'parameters')),
                               (own, join_pointer(pointer, 'parameters'))):
            if not isinstance(raw_list, list):
                raise SpecInvalid(base, "Parameters must be a list")
            for index, raw in enumerate(raw_list):
                parameter = self._parse_parameter(raw, join_pointer(base, index))
                key = (parameter.name, parameter.location)
                if key in positions:
                    merged[positions[key]] = parameter
                else:
                    positions[key] = len(merged)
                    merged.append(parameter)

        return merged

    def _parse_parameter(self, raw: Any, pointer: str) -> ParameterDefinition:
        raw, pointer = self._deref_local(raw, pointer)
        if not isinstance(raw, dict):
            raise SpecInvalid(pointer, "Parameter must be a mapping")

        name = raw.get('name')
        if not isinstance(name, str) or not name:
            raise SpecInvalid(pointer, "Parameter has no name")
        location = raw.get('in')
        if location not in LOCATIONS:
            raise SpecInvalid(join_pointer(pointer, 'in'), f"Unsupported parameter location {location!r}")

        required = bool(raw.get('required', False)) or location == 'path'

        if location == 'body':
            return self._parse_body_parameter(raw, name, required, pointer)

        if self.is_swagger2:
            schema_raw = {key: raw[key] for key in INLINE_SCHEMA_KEYS if key in raw}
            schema = parse_schema(schema_raw, pointer)
            collection_format = raw.get('collectionFormat', 'csv')
            if collection_format not in COLLECTION_FORMATS:
                raise SpecInvalid(
                    join_pointer(pointer, 'collectionFormat'),
                    f"Unsupported collection format {collection_format!r}"
                )
            has_default = 'default' in raw
            default = raw.get('default')
        else:
            if 'schema' not in raw:
                raise SpecInvalid(pointer, f"Parameter '{name}' has no schema")
            schema = parse_schema(raw['schema'], join_pointer(pointer, 'schema'))
            collection_format = self._style_to_format(raw, location)
            schema_raw = raw['schema'] if isinstance(raw['schema'], dict) else {}
            has_default = 'default' in raw or 'default' in schema_raw
            default = raw['default'] if 'default' in raw else schema_raw.get('default')

        self.resolver.check_references(schema, pointer)
        self._check_simple_schema(schema, name, pointer)

        return ParameterDefinition(
            name=name,
            location=location,
            required=required,
            schema=schema,
            default=default,
            has_default=has_default,
            collection_format=collection_format
        )

    def _parse_body_parameter(self, raw: Dict[str, Any], name: str, required: bool, pointer: str) -> ParameterDefinition:
        schema = None
        if raw.get('schema') is not None:
            schema = parse_schema(raw['schema'], join_pointer(pointer, 'schema'))
            self.resolver.check_references(schema, pointer)
        elif required:
            raise SpecInvalid(pointer, f"Required body parameter '{name}' has no schema")

        body_path = raw.get('x-body-path')
        if body_path is not None and (not isinstance(body_path, str) or not body_path):
            raise SpecInvalid(join_pointer(pointer, 'x-body-path'), "Body path must be a dotted property path")

        return ParameterDefinition(
            name=name,
            location='body',
            required=required,
            schema=schema,
            default=raw.get('default'),
            has_default='default' in raw,
            body_path=tuple(body_path.split('.')) if body_path else ()
        )

    def _parse_request_body(self, raw: Any, pointer: str) -> ParameterDefinition:
        raw, pointer = self._deref_local(raw, pointer)
        if not isinstance(raw, dict):
            raise SpecInvalid(pointer, "Request body must be a mapping")
        _, schema_raw, schema_pointer = self._pick_content(raw.get('content') or {}, join_pointer(pointer, 'content'))
        body = {
            'name': raw.get('x-name', 'body'),
            'in': 'body',
            'required': raw.get('required', False),
        }
        if schema_raw is not None:
            body['schema'] = schema_raw
        if 'x-body-path' in raw:
            body['x-body-path'] = raw['x-body-path']
        return self._parse_body_parameter(body, body['name'], bool(body['required']), schema_pointer or pointer)

    def _pick_content(self, content: Dict[str, Any], pointer: str) -> Tuple[Optional[str], Any, Optional[str]]:
        if not isinstance(content, dict) or not content:
            return None, None, None
        media_type = 'application/json' if 'application/json' in content else next(iter(content))
        media = content[media_type] or {}
        media_pointer = join_pointer(pointer, media_type)
        return media_type, media.get('schema'), join_pointer(media_pointer, 'schema')

    def _style_to_format(self, raw: Dict[str, Any], location: str) -> str:
        style = raw.get('style', 'form' if location == 'query' else 'simple')
        explode = raw.get('explode', style == 'form')
        if style == 'form':
            return 'multi' if explode else 'csv'
        if style == 'spaceDelimited':
            return 'ssv'
        if style == 'pipeDelimited':
            return 'pipes'
        return 'csv'

    def _check_simple_schema(self, schema: SchemaNode, name: str, pointer: str):
        node = self.resolver.deref(schema)
        if isinstance(node, ArraySchema):
            node = self.resolver.deref(node.items)
        if not isinstance(node, PrimitiveSchema):
            raise SpecInvalid(
                pointer,
                f"Parameter '{name}' must be a primitive or an array of primitives"
            )

    # Responses

    def _parse_success(self, responses: Dict[Any, Any], pointer: str) -> Tuple[int, Optional[SchemaNode]]:
        if not isinstance(responses, dict):
            raise SpecInvalid(pointer, "Responses must be a mapping")

        codes = []
        for code in responses:
            text = str(code)
            if text.isdigit() and 200 <= int(text) < 300:
                codes.append((int(text), code))
        if not codes:
            return 200, None

        status, code = min(codes)
        response, response_pointer = self._deref_local(responses[code], join_pointer(pointer, code))
        if not isinstance(response, dict):
            return status, None

        if self.is_swagger2:
            schema_raw = response.get('schema')
            schema_pointer = join_pointer(response_pointer, 'schema')
        else:
            _, schema_raw, schema_pointer = self._pick_content(
                response.get('content') or {}, join_pointer(response_pointer, 'content')
            )

        if schema_raw is None:
            return status, None
        schema = parse_schema(schema_raw, schema_pointer)
        self.resolver.check_references(schema, schema_pointer)
        return status, schema
