"""
Tests for SpecTap Dispatcher

Tests per-request orchestration including:
- Not-found responses
- Aggregated validation errors
- Mock mode responses
- Live mode handler invocation (sync and async)
- HandlerNotFound and handler error pass-through
"""

import asyncio

import pytest

from spectap.contract import HandlerError, HandlerNotFound
from spectap.runtime import (
    OUTCOME_FAILED,
    OUTCOME_HANDLED,
    OUTCOME_MOCKED,
    OUTCOME_REJECTED,
    OUTCOME_UNMATCHED,
    Dispatcher,
    HandlerRegistry,
    RawRequest,
    Response,
)


def dispatch(dispatcher, method, path, mode='mock', **request_fields):
    """Run one request through the dispatcher."""
    request = RawRequest(method=method, path=path, **request_fields)
    return asyncio.run(dispatcher.handle(method, path, request, mode=mode))


@pytest.fixture
def handlers():
    """Handlers for the weather contract."""
    registry = HandlerRegistry()

    @registry.handler('weather.getWeather')
    async def get_weather(params):
        return {'location': params['location'], 'unit': params['unit'], 'days': []}

    @registry.handler('weather.getStation')
    def get_station(params):
        if params['id'] == 404:
            raise HandlerError('Station not found', status=404)
        if params['id'] == 500:
            raise RuntimeError('database unavailable')
        if params['id'] == 418:
            raise HandlerError('teapot', status=418, body={'detail': 'short and stout'})
        if params['id'] == 202:
            return Response(status=202, body={'queued': True}, headers={'Retry-After': '5'})
        return {'id': params['id'], 'name': 'San Jose'}

    return registry


@pytest.fixture
def dispatcher(weather_document, handlers):
    return Dispatcher(weather_document, handlers)


class TestNotFound:
    """Test unmatched requests."""

    def test_unknown_path(self, dispatcher):
        """Test an unknown path gives 404."""
        response = dispatch(dispatcher, 'GET', '/api/nowhere')

        assert response.status == 404
        assert response.body == {'error': 'No operation matches GET /api/nowhere'}

    def test_wrong_method_lists_allowed(self, dispatcher):
        """Test a known path with another method."""
        response = dispatch(dispatcher, 'POST', '/api/weather/3')

        assert response.status == 404
        assert response.body['allowed_methods'] == ['GET']


class TestValidationFailures:
    """Test client errors."""

    def test_missing_location(self, dispatcher):
        """Test omitting location yields a Required violation."""
        response = dispatch(dispatcher, 'GET', '/api/weather')

        assert response.status == 400
        assert response.body['error'] == 'Request validation failed'
        assert response.body['violations'] == [{
            'path': 'location',
            'kind': 'Required',
            'message': "Missing required query parameter 'location'"
        }]

    def test_every_violation_reported(self, dispatcher):
        """Test coercion and validation violations are combined in declaration order."""
        response = dispatch(dispatcher, 'GET', '/api/weather', query={'unit': 'X', 'days': 'many'})

        assert response.status == 400
        assert [(v['path'], v['kind']) for v in response.body['violations']] == [
            ('location', 'Required'),
            ('unit', 'EnumMismatch'),
            ('days', 'InvalidParameterValue'),
        ]

    def test_nested_body_violations(self, dispatcher):
        """Test body violations carry nested paths."""
        body = {'id': 0, 'neighbours': [{'name': 'x'}]}
        response = dispatch(dispatcher, 'POST', '/api/stations', body=body)

        assert response.status == 400
        assert [(v['path'], v['kind']) for v in response.body['violations']] == [
            ('station.id', 'RangeViolation'),
            ('station.name', 'Required'),
            ('station.neighbours[0].id', 'Required'),
        ]

    def test_validation_precedes_mode(self, dispatcher):
        """Test invalid requests are rejected in live mode too."""
        response = dispatch(dispatcher, 'GET', '/api/weather', mode='live')

        assert response.status == 400


class TestMockMode:
    """Test generated responses."""

    def test_mock_success(self, dispatcher):
        """Test a valid request returns the generated success body."""
        response = dispatch(dispatcher, 'GET', '/api/weather', query={'location': '95113'})

        assert response.status == 200
        assert response.ok
        assert response.body['location'] == 'string'
        assert response.body['unit'] == 'C'
        assert response.body['days'][0]['date'] == '1970-01-01'

    def test_mock_success_status(self, dispatcher):
        """Test the declared success status is used."""
        response = dispatch(dispatcher, 'POST', '/api/stations', body={'id': 1, 'name': 'a'})

        assert response.status == 201
        assert response.body['id'] == 1

    def test_mock_ignores_handlers(self, weather_document):
        """Test mock mode needs no handlers."""
        response = dispatch(Dispatcher(weather_document), 'GET', '/api/weather/7')

        assert response.status == 200

    def test_unknown_mode(self, dispatcher):
        """Test an unknown mode is a programming error."""
        with pytest.raises(ValueError):
            dispatch(dispatcher, 'GET', '/api/weather/7', mode='stub')


class TestLiveMode:
    """Test handler invocation."""

    def test_async_handler(self, dispatcher):
        """Test coroutine handlers are awaited with resolved parameters."""
        response = dispatch(dispatcher, 'GET', '/api/weather', mode='live', query={'location': '95113'})

        assert response.status == 200
        assert response.body == {'location': '95113', 'unit': 'F', 'days': []}

    def test_sync_handler(self, dispatcher):
        """Test plain function handlers with coerced path values."""
        response = dispatch(dispatcher, 'GET', '/api/weather/7', mode='live')

        assert response.status == 200
        assert response.body == {'id': 7, 'name': 'San Jose'}

    def test_handler_not_found(self, dispatcher):
        """Test a live operation without a handler is a server error."""
        response = dispatch(dispatcher, 'GET', '/api/weather/mine', mode='live', headers={'X-Api-Key': 'k'})

        assert response.status == 500
        assert response.body == {
            'error': "No handler registered for 'weather.getMyStation'",
            'handler': 'weather.getMyStation'
        }

    def test_handler_error_passthrough(self, dispatcher):
        """Test HandlerError status and message are forwarded."""
        response = dispatch(dispatcher, 'GET', '/api/weather/404', mode='live')

        assert response.status == 404
        assert response.body == {'error': 'Station not found'}

    def test_handler_error_body(self, dispatcher):
        """Test a HandlerError body is forwarded unchanged."""
        response = dispatch(dispatcher, 'GET', '/api/weather/418', mode='live')

        assert response.status == 418
        assert response.body == {'detail': 'short and stout'}

    def test_unexpected_exception(self, dispatcher):
        """Test other exceptions become 500 without escaping."""
        response = dispatch(dispatcher, 'GET', '/api/weather/500', mode='live')

        assert response.status == 500
        assert response.body == {'error': 'database unavailable'}

    def test_handler_response(self, dispatcher):
        """Test handlers may return a full Response."""
        response = dispatch(dispatcher, 'GET', '/api/weather/202', mode='live')

        assert response.status == 202
        assert response.headers == {'Retry-After': '5'}


class TestOutcomes:
    """Test each Response records how it was produced."""

    def test_unmatched(self, dispatcher):
        assert dispatch(dispatcher, 'GET', '/api/nowhere').outcome == OUTCOME_UNMATCHED

    def test_rejected(self, dispatcher):
        assert dispatch(dispatcher, 'GET', '/api/weather').outcome == OUTCOME_REJECTED

    def test_mocked(self, dispatcher):
        assert dispatch(dispatcher, 'GET', '/api/weather/7').outcome == OUTCOME_MOCKED

    def test_handler_status_is_handled(self, dispatcher):
        """Test a 404 raised by a handler is not an unmatched request."""
        response = dispatch(dispatcher, 'GET', '/api/weather/404', mode='live')

        assert response.status == 404
        assert response.outcome == OUTCOME_HANDLED

    def test_failures(self, dispatcher):
        """Test missing handlers and unexpected exceptions."""
        missing = dispatch(dispatcher, 'GET', '/api/weather/mine', mode='live', headers={'X-Api-Key': 'k'})
        crashed = dispatch(dispatcher, 'GET', '/api/weather/500', mode='live')

        assert missing.outcome == OUTCOME_FAILED
        assert crashed.outcome == OUTCOME_FAILED


class TestHandlerRegistry:
    """Test HandlerRegistry."""

    def test_register_and_get(self):
        """Test registering and looking up handlers."""
        registry = HandlerRegistry({'a': len})
        registry.register('b', str)

        assert registry.get('a') is len
        assert 'b' in registry
        assert len(registry) == 2

    def test_missing_handler(self):
        """Test lookup failure raises HandlerNotFound."""
        with pytest.raises(HandlerNotFound) as exc_info:
            HandlerRegistry().get('missing')

        assert exc_info.value.handler_id == 'missing'

    def test_decorator_returns_function(self):
        """Test the decorator leaves the function usable."""
        registry = HandlerRegistry()

        @registry.handler('x')
        def handler(params):
            return params

        assert handler({'a': 1}) == {'a': 1}
        assert registry.get('x') is handler


class TestConcurrency:
    """Test concurrent requests share one dispatcher."""

    def test_concurrent_requests(self, weather_document):
        """Test in-flight handlers do not interfere."""
        registry = HandlerRegistry()

        @registry.handler('weather.getStation')
        async def get_station(params):
            await asyncio.sleep(0.01 * (5 - params['id']))
            return {'id': params['id'], 'name': 'n'}

        dispatcher = Dispatcher(weather_document, registry)

        async def run_all():
            requests = [
                dispatcher.handle('GET', f'/api/weather/{i}', RawRequest('GET', f'/api/weather/{i}'), mode='live')
                for i in range(1, 5)
            ]
            return await asyncio.gather(*requests)

        responses = asyncio.run(run_all())

        assert [r.body['id'] for r in responses] == [1, 2, 3, 4]
