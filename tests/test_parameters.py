"""
Tests for SpecTap Parameter Resolver

Tests parameter extraction and coercion including:
- Path, query, header and body locations
- Default injection and absence tracking
- Primitive coercion and InvalidParameterValue
- Collection formats for array parameters
- Body property paths
"""

import pytest

from spectap.contract import PrimitiveSchema, load_contract
from spectap.runtime import (
    OperationMatcher,
    ParameterResolver,
    RawRequest,
    ViolationKind,
    coerce_primitive,
)


@pytest.fixture
def document():
    """Contract exercising every parameter location."""
    return load_contract({
        'swagger': '2.0',
        'info': {'title': 'Params', 'version': '1'},
        'paths': {
            '/items/{id}': {
                'get': {
                    'parameters': [
                        {'name': 'id', 'in': 'path', 'type': 'integer'},
                        {'name': 'verbose', 'in': 'query', 'type': 'boolean', 'default': False},
                        {'name': 'ratio', 'in': 'query', 'type': 'number'},
                        {'name': 'tags', 'in': 'query', 'type': 'array', 'items': {'type': 'string'}},
                        {'name': 'ids', 'in': 'query', 'type': 'array', 'items': {'type': 'integer'},
                         'collectionFormat': 'multi'},
                        {'name': 'levels', 'in': 'query', 'type': 'array', 'items': {'type': 'integer'},
                         'collectionFormat': 'pipes'},
                        {'name': 'X-Request-Id', 'in': 'header', 'type': 'string'},
                    ],
                    'responses': {}
                }
            },
            '/orders': {
                'post': {
                    'parameters': [
                        {'name': 'customer', 'in': 'body', 'required': True, 'x-body-path': 'order.customer',
                         'schema': {'type': 'string'}},
                        {'name': 'order', 'in': 'body', 'schema': {'type': 'object', 'properties': {}}},
                    ],
                    'responses': {}
                }
            },
        }
    })


def resolve(document, method, path, **request_fields):
    """Match a path and resolve its parameters."""
    match = OperationMatcher(document).match(method, path)
    assert match.matched
    request = RawRequest(method=method, path=path, **request_fields)
    return ParameterResolver(document.resolver).resolve(match, request)


def by_name(resolution):
    return {p.name: p for p in resolution.parameters}


class TestExtraction:
    """Test reading values from each location."""

    def test_declaration_order(self, document):
        """Test one entry per declared parameter, in order."""
        resolution = resolve(document, 'GET', '/items/5')

        assert [p.name for p in resolution.parameters] == [
            'id', 'verbose', 'ratio', 'tags', 'ids', 'levels', 'X-Request-Id'
        ]

    def test_path_value_coerced(self, document):
        """Test captured path values are coerced."""
        params = by_name(resolve(document, 'GET', '/items/5'))

        assert params['id'].value == 5
        assert params['id'].provided

    def test_header_case_insensitive(self, document):
        """Test header lookup ignores case."""
        params = by_name(resolve(document, 'GET', '/items/5', headers={'x-request-id': 'abc'}))

        assert params['X-Request-Id'].value == 'abc'
        assert params['X-Request-Id'].provided

    def test_absent_parameter(self, document):
        """Test parameters missing from the request with no default."""
        resolution = resolve(document, 'GET', '/items/5')
        params = by_name(resolution)

        assert params['ratio'].absent
        assert params['ratio'].value is None
        assert 'ratio' not in resolution.values()
        assert resolution.violations == []

    def test_body_path(self, document):
        """Test a body parameter scoped to a property path."""
        body = {'order': {'customer': 'ada', 'lines': []}}
        params = by_name(resolve(document, 'POST', '/orders', body=body))

        assert params['customer'].value == 'ada'
        assert params['order'].value == body

    def test_body_path_missing(self, document):
        """Test a missing property path leaves the parameter absent."""
        params = by_name(resolve(document, 'POST', '/orders', body={'order': {}}))

        assert params['customer'].absent

    def test_body_not_coerced(self, document):
        """Test body values are passed through without coercion."""
        params = by_name(resolve(document, 'POST', '/orders', body={'order': {'customer': 42}}))

        assert params['customer'].value == 42
        assert not params['customer'].coercion_failed


class TestDefaults:
    """Test default injection."""

    def test_default_injected(self, document):
        """Test a default counts as resolved but not provided."""
        resolution = resolve(document, 'GET', '/items/5')
        verbose = by_name(resolution)['verbose']

        assert verbose.value is False
        assert verbose.defaulted
        assert not verbose.provided
        assert not verbose.absent
        assert resolution.values()['verbose'] is False

    def test_provided_value_overrides_default(self, document):
        """Test a supplied value wins over the default."""
        verbose = by_name(resolve(document, 'GET', '/items/5', query={'verbose': 'TRUE'}))['verbose']

        assert verbose.value is True
        assert verbose.provided
        assert not verbose.defaulted

    def test_weather_unit_default(self, weather_document):
        """Test location=95113 without unit resolves unit to F."""
        resolution = resolve(weather_document, 'GET', '/api/weather', query={'location': '95113'})

        assert resolution.values() == {'location': '95113', 'unit': 'F', 'days': 1}
        assert resolution.violations == []


class TestCoercion:
    """Test coercion of raw values."""

    def test_invalid_integer(self, document):
        """Test a non-numeric path value is flagged, not raised."""
        resolution = resolve(document, 'GET', '/items/abc')
        params = by_name(resolution)

        assert params['id'].value == 'abc'
        assert params['id'].coercion_failed
        assert len(resolution.violations) == 1
        violation = resolution.violations[0]
        assert violation.kind == ViolationKind.INVALID_PARAMETER_VALUE
        assert violation.path == ('id',)

    def test_number(self, document):
        """Test numeric strings become floats."""
        params = by_name(resolve(document, 'GET', '/items/1', query={'ratio': '0.25'}))

        assert params['ratio'].value == 0.25

    def test_repeated_key_for_primitive_uses_first(self, document):
        """Test a repeated query key for a primitive parameter."""
        params = by_name(resolve(document, 'GET', '/items/1', query={'ratio': ['2', '3']}))

        assert params['ratio'].value == 2.0

    def test_csv_array(self, document):
        """Test csv arrays are split on commas."""
        params = by_name(resolve(document, 'GET', '/items/1', query={'tags': 'a,b,c'}))

        assert params['tags'].value == ['a', 'b', 'c']

    def test_empty_csv_array(self, document):
        """Test an empty csv value gives an empty array."""
        params = by_name(resolve(document, 'GET', '/items/1', query={'tags': ''}))

        assert params['tags'].value == []

    def test_multi_array(self, document):
        """Test multi arrays take each repeated key as one item."""
        params = by_name(resolve(document, 'GET', '/items/1', query={'ids': ['1', '2']}))

        assert params['ids'].value == [1, 2]

    def test_pipes_array(self, document):
        """Test pipe-separated arrays."""
        params = by_name(resolve(document, 'GET', '/items/1', query={'levels': '3|4'}))

        assert params['levels'].value == [3, 4]

    def test_invalid_array_item(self, document):
        """Test a bad item is reported with its index."""
        resolution = resolve(document, 'GET', '/items/1', query={'ids': ['1', 'two', '3']})

        assert by_name(resolution)['ids'].value == [1, 'two', 3]
        assert [v.path for v in resolution.violations] == [('ids', 1)]
        assert resolution.violations[0].kind == ViolationKind.INVALID_PARAMETER_VALUE

    def test_all_coercion_failures_collected(self, document):
        """Test resolution completes and collects every coercion failure."""
        resolution = resolve(document, 'GET', '/items/x', query={'verbose': 'yes', 'ratio': 'half'})

        assert [v.path for v in resolution.violations] == [('id',), ('verbose',), ('ratio',)]


class TestCoercePrimitive:
    """Test coerce_primitive()."""

    @pytest.mark.parametrize('raw,expected', [
        ('42', 42),
        ('-7', -7),
        ('+3', 3),
    ])
    def test_integers(self, raw, expected):
        """Test integer strings."""
        assert coerce_primitive(PrimitiveSchema(kind='integer'), raw) == (expected, True)

    @pytest.mark.parametrize('raw', ['4.5', '1e3', 'abc', ''])
    def test_invalid_integers(self, raw):
        """Test strings that are not integers."""
        assert coerce_primitive(PrimitiveSchema(kind='integer'), raw) == (raw, False)

    def test_non_finite_number_rejected(self):
        """Test nan and inf are not accepted as numbers."""
        assert coerce_primitive(PrimitiveSchema(kind='number'), 'nan')[1] is False
        assert coerce_primitive(PrimitiveSchema(kind='number'), 'inf')[1] is False
        assert coerce_primitive(PrimitiveSchema(kind='number'), '1e999')[1] is False

    @pytest.mark.parametrize('raw,expected', [
        ('0.25', 0.25),
        ('-3', -3.0),
        ('.5', 0.5),
        ('2.', 2.0),
        ('1e3', 1000.0),
        ('+6.02E23', 6.02e23),
    ])
    def test_numbers(self, raw, expected):
        """Test plain decimal and exponent notation."""
        assert coerce_primitive(PrimitiveSchema(kind='number'), raw) == (expected, True)

    @pytest.mark.parametrize('raw', ['1_000', ' 1e3 ', '0x10', '1.5.2', 'e3', '', '١٢'])
    def test_invalid_numbers(self, raw):
        """Test spellings outside plain decimal notation."""
        assert coerce_primitive(PrimitiveSchema(kind='number'), raw) == (raw, False)

    @pytest.mark.parametrize('raw', ['1_000', ' 5', '5 ', '٣'])
    def test_integer_spellings_rejected(self, raw):
        """Test underscores, surrounding spaces and non-ASCII digits."""
        assert coerce_primitive(PrimitiveSchema(kind='integer'), raw) == (raw, False)

    def test_booleans(self):
        """Test boolean strings ignore case."""
        schema = PrimitiveSchema(kind='boolean')

        assert coerce_primitive(schema, 'True') == (True, True)
        assert coerce_primitive(schema, 'false') == (False, True)
        assert coerce_primitive(schema, '1') == ('1', False)

    def test_strings_unchanged(self):
        """Test string kinds keep the raw value."""
        assert coerce_primitive(PrimitiveSchema(kind='string'), '007') == ('007', True)

    def test_non_string_passthrough(self):
        """Test already-decoded values are left to the validator."""
        assert coerce_primitive(PrimitiveSchema(kind='integer'), 3) == (3, True)
        assert coerce_primitive(PrimitiveSchema(kind='integer'), True) == (True, True)
