"""
SpecTap Dispatcher

Runs matching, parameter resolution and validation for each request, then
either calls the registered handler (live mode) or answers with a generated
mock of the success schema (mock mode).
"""

import inspect
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Optional

from ..common import MODE_LIVE, MODE_MOCK, MODES
from ..contract import ContractDocument, HandlerError, HandlerNotFound
from .generator import MockGenerator
from .matcher import OperationMatcher
from .parameters import ParameterResolver, RawRequest
from .validator import DEFAULT_MAX_DEPTH, Validator


logger = logging.getLogger("spectap.dispatch")

# How the Dispatcher produced a Response
OUTCOME_UNMATCHED = 'unmatched'
OUTCOME_REJECTED = 'rejected'
OUTCOME_MOCKED = 'mocked'
OUTCOME_HANDLED = 'handled'
OUTCOME_FAILED = 'failed'  # handler missing or raised an unexpected exception


@dataclass
class Response:
    """Engine response handed back to the transport layer."""

    status: int
    body: Any = None
    headers: Dict[str, str] = field(default_factory=dict)
    outcome: str = OUTCOME_HANDLED

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class HandlerRegistry:
    """
    Mapping from handler identifier to callable.

    Handlers receive a dict of resolved parameter values and may be plain
    functions or coroutines.

    Example:
        handlers = HandlerRegistry()

        @handlers.handler('weather.getWeather')
        async def get_weather(params):
            return {'location': params['location'], 'unit': params['unit']}

        handlers.register('weather.listStations', list_stations)
    """

    def __init__(self, handlers: Optional[Dict[str, Callable]] = None):
        self._handlers: Dict[str, Callable] = dict(handlers or {})

    def register(self, handler_id: str, fn: Callable):
        """Bind a callable to a handler identifier."""
        self._handlers[handler_id] = fn

    def handler(self, handler_id: str) -> Callable:
        """Decorator form of register()."""
        def decorator(fn: Callable) -> Callable:
            self.register(handler_id, fn)
            return fn
        return decorator

    def get(self, handler_id: str) -> Callable:
        """
        Look up a handler.

        Raises:
            HandlerNotFound: If nothing is registered under handler_id
        """
        try:
            return self._handlers[handler_id]
        except KeyError:
            raise HandlerNotFound(handler_id) from None

    def __contains__(self, handler_id: str) -> bool:
        return handler_id in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)


class Dispatcher:
    """
    Per-request orchestration over a loaded contract.

    The Dispatcher holds no per-request state, so one instance serves any
    number of concurrent requests.

    Example:
        dispatcher = Dispatcher(document, handlers)
        response = await dispatcher.handle(
            'GET', '/weather', RawRequest('GET', '/weather', query={'location': '95113'}), mode='live'
        )
    """

    def __init__(
        self,
        document: ContractDocument,
        handlers: Optional[HandlerRegistry] = None,
        max_depth: int = DEFAULT_MAX_DEPTH
    ):
        """
        Initialize dispatcher.

        Args:
            document: Loaded contract document
            handlers: Handler registry for live mode
            max_depth: Depth bound for validation and mock generation
        """
        self.document = document
        self.handlers = handlers if handlers is not None else HandlerRegistry()
        self.matcher = OperationMatcher(document)
        self.resolver = ParameterResolver(document.resolver)
        self.validator = Validator(document.resolver, max_depth=max_depth)
        self.generator = MockGenerator(document.resolver, max_depth=max_depth)

    async def handle(self, method: str, path: str, request: RawRequest, mode: str = MODE_MOCK) -> Response:
        """
        Handle one request.

        Args:
            method: HTTP method
            path: Request path
            request: Decoded request
            mode: 'live' to call handlers, 'mock' to generate responses

        Returns:
            Response; per-request failures are returned, never raised

        Raises:
            ValueError: If mode is unknown
        """
        if mode not in MODES:
            raise ValueError(f"Unknown dispatch mode '{mode}'. Expected one of: {', '.join(MODES)}")

        match = self.matcher.match(method, path)
        if not match.matched:
            logger.debug(f"No match for {method} {path}: {match.reason}")
            body = {'error': match.reason}
            allowed = self.matcher.allowed_methods(path)
            if allowed:
                body['allowed_methods'] = allowed
            return Response(status=404, body=body, outcome=OUTCOME_UNMATCHED)

        operation = match.operation
        resolution = self.resolver.resolve(match, request)
        violations = resolution.violations + self.validator.validate(resolution.parameters)
        if violations:
            # Keep declaration order across coercion and validation violations
            order = {p.name: i for i, p in enumerate(operation.parameters)}
            violations.sort(key=lambda v: order.get(v.parameter, len(order)))
            logger.debug(f"Rejected {operation.key}: {len(violations)} violation(s)")
            return Response(status=400, body={
                'error': 'Request validation failed',
                'violations': [v.to_dict() for v in violations]
            }, outcome=OUTCOME_REJECTED)

        if mode == MODE_MOCK:
            return Response(
                status=operation.success_status,
                body=self.generator.generate(operation.success_schema),
                outcome=OUTCOME_MOCKED
            )

        try:
            handler = self.handlers.get(operation.handler_id)
        except HandlerNotFound as e:
            logger.warning(f"{operation.key}: {e}")
            return Response(status=500, body={'error': str(e), 'handler': e.handler_id},
                            outcome=OUTCOME_FAILED)

        return await self._invoke(handler, resolution.values(), operation.success_status)

    async def _invoke(self, handler: Callable, params: Dict[str, Any], success_status: int) -> Response:
        """Call a handler and turn its outcome into a Response."""
        try:
            result = handler(params)
            if inspect.isawaitable(result):
                result = await result
        except HandlerError as e:
            body = e.body if e.body is not None else {'error': e.message}
            return Response(status=e.status, body=body)
        except Exception as e:
            logger.exception(f"Handler {getattr(handler, '__name__', handler)!s} failed")
            return Response(status=500, body={'error': str(e) or type(e).__name__}, outcome=OUTCOME_FAILED)

        if isinstance(result, Response):
            return replace(result, outcome=OUTCOME_HANDLED)
        return Response(status=success_status, body=result)
