"""
SpecTap Contract Server

FastAPI-based HTTP front end for the contract engine.

Features:
- Catch-all route feeding decoded requests to the Dispatcher
- Live (handler) and mock (generated) modes, switchable at runtime
- Admin API for metrics, configuration and the operation list
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..common import MODE_MOCK, MODES, safe_json_parse
from ..contract import ContractDocument, load_contract
from .dispatcher import (
    OUTCOME_FAILED,
    OUTCOME_MOCKED,
    OUTCOME_REJECTED,
    OUTCOME_UNMATCHED,
    Dispatcher,
    HandlerRegistry,
    Response,
)
from .parameters import RawRequest
from .validator import DEFAULT_MAX_DEPTH


# Marks a body that is not valid JSON
_UNPARSED = object()


@dataclass
class ServerConfig:
    """Configuration for contract server behavior."""

    # Dispatch
    mode: str = MODE_MOCK  # live, mock
    max_depth: int = DEFAULT_MAX_DEPTH  # Recursion bound for validation and mocks

    # Server options
    host: str = "127.0.0.1"
    port: int = 8080
    log_level: str = "info"

    # Admin API
    admin_enabled: bool = True
    admin_prefix: str = "/__admin__"


@dataclass
class ContractMetrics:
    """Track contract server metrics."""

    total_requests: int = 0
    matched_requests: int = 0
    unmatched_requests: int = 0
    rejected_requests: int = 0
    mocked_responses: int = 0
    handled_responses: int = 0
    handler_errors: int = 0
    start_time: str = field(default_factory=lambda: datetime.now().isoformat())

    def record(self, response: Response):
        """
        Update counters from a dispatched response.

        Responses are classified by how the Dispatcher produced them, so a 404
        returned by a handler counts as handled, not unmatched.
        """
        self.total_requests += 1
        if response.outcome == OUTCOME_UNMATCHED:
            self.unmatched_requests += 1
            return
        self.matched_requests += 1
        if response.outcome == OUTCOME_REJECTED:
            self.rejected_requests += 1
        elif response.outcome == OUTCOME_MOCKED:
            self.mocked_responses += 1
        elif response.outcome == OUTCOME_FAILED:
            self.handler_errors += 1
        else:
            self.handled_responses += 1

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        uptime_seconds = (datetime.now() - datetime.fromisoformat(self.start_time)).total_seconds()
        return {
            'total_requests': self.total_requests,
            'matched_requests': self.matched_requests,
            'unmatched_requests': self.unmatched_requests,
            'rejected_requests': self.rejected_requests,
            'mocked_responses': self.mocked_responses,
            'handled_responses': self.handled_responses,
            'handler_errors': self.handler_errors,
            'match_rate': round((self.matched_requests / self.total_requests * 100) if self.total_requests > 0 else 0, 2),
            'uptime_seconds': round(uptime_seconds, 2),
            'start_time': self.start_time
        }


class ContractServer:
    """
    FastAPI server enforcing an API contract.

    Example:
        # Serve mocks straight from the contract
        server = ContractServer('weather.yaml')
        server.start(port=8080)

        # Serve real handlers
        handlers = HandlerRegistry({'weather.getWeather': get_weather})
        server = ContractServer('weather.yaml', config=ServerConfig(mode='live'), handlers=handlers)
        server.start()
    """

    def __init__(
        self,
        contract: Union[str, Dict[str, Any], ContractDocument],
        config: Optional[ServerConfig] = None,
        handlers: Optional[HandlerRegistry] = None
    ):
        """
        Initialize contract server.

        Args:
            contract: Contract file path, document mapping, or loaded ContractDocument
            config: Optional ServerConfig for server behavior
            handlers: Handler registry used in live mode

        Raises:
            SpecInvalid: If the contract is invalid
            ValueError: If the configured mode is unknown
        """
        self.config = config or ServerConfig()
        if self.config.mode not in MODES:
            raise ValueError(f"Unknown mode '{self.config.mode}'. Expected one of: {', '.join(MODES)}")

        self.metrics = ContractMetrics()

        self.logger = logging.getLogger("spectap.server")
        self.logger.setLevel(getattr(logging, self.config.log_level.upper()))

        self.document = contract if isinstance(contract, ContractDocument) else load_contract(contract)
        self.logger.info(f"Loaded {len(self.document.operations)} operations from contract '{self.document.title}'")

        self.handlers = handlers if handlers is not None else HandlerRegistry()
        self.dispatcher = Dispatcher(self.document, self.handlers, max_depth=self.config.max_depth)

        self.app = self._create_app()

    def _create_app(self) -> FastAPI:
        """Create FastAPI application with routes."""
        app = FastAPI(
            title=self.document.title or "SpecTap Contract Server",
            description="Contract-enforcing HTTP server",
            version=self.document.version or "1.0.0"
        )

        if self.config.admin_enabled:
            @app.get(f"{self.config.admin_prefix}/metrics")
            async def get_metrics():
                """Get server metrics."""
                return JSONResponse(content=self.metrics.to_dict())

            @app.post(f"{self.config.admin_prefix}/reset")
            async def reset_metrics():
                """Reset metrics."""
                self.metrics = ContractMetrics()
                return JSONResponse(content={'status': 'reset'})

            @app.get(f"{self.config.admin_prefix}/config")
            async def get_config():
                """Get current configuration."""
                return JSONResponse(content={
                    'mode': self.config.mode,
                    'max_depth': self.config.max_depth,
                    'total_operations': len(self.document.operations),
                    'registered_handlers': len(self.handlers)
                })

            @app.post(f"{self.config.admin_prefix}/config")
            async def update_config(request: Request):
                """Update configuration at runtime."""
                body = safe_json_parse(await request.body(), default={})
                if not isinstance(body, dict):
                    return JSONResponse(content={'error': 'Expected a JSON object'}, status_code=400)

                if 'mode' in body:
                    if body['mode'] not in MODES:
                        return JSONResponse(
                            content={'error': f"Unknown mode '{body['mode']}'"},
                            status_code=400
                        )
                    self.config.mode = body['mode']
                if 'max_depth' in body:
                    max_depth = body['max_depth']
                    if isinstance(max_depth, bool) or not isinstance(max_depth, int) or max_depth < 0:
                        return JSONResponse(
                            content={'error': 'max_depth must be a non-negative integer'},
                            status_code=400
                        )
                    self.config.max_depth = max_depth
                    self.dispatcher = Dispatcher(self.document, self.handlers, max_depth=max_depth)

                return JSONResponse(content={'status': 'updated'})

            @app.get(f"{self.config.admin_prefix}/operations")
            async def list_operations():
                """List all contract operations."""
                operations = [
                    {
                        'method': op.method,
                        'path': op.path,
                        'handler': op.handler_id,
                        'registered': op.handler_id in self.handlers,
                        'parameters': [p.name for p in op.parameters]
                    }
                    for op in self.document.operations
                ]
                return JSONResponse(content={
                    'total': len(operations),
                    'operations': operations
                })

        # Main catch-all route for contract dispatch
        @app.api_route("/{path:path}", methods=["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"])
        async def dispatch_request(request: Request, path: str):
            """Handle incoming requests through the contract engine."""
            return await self._handle_request(request)

        return app

    async def _handle_request(self, request: Request) -> JSONResponse:
        """
        Decode a FastAPI request, dispatch it and encode the result.

        Args:
            request: FastAPI Request object

        Returns:
            JSONResponse with the dispatched status and body
        """
        raw = await self._decode_request(request)
        mode = self.config.mode

        self.logger.debug(f"Incoming: {raw.method} {raw.path} ({mode})")

        response = await self.dispatcher.handle(raw.method, raw.path, raw, mode=mode)
        self.metrics.record(response)

        if response.status >= 500:
            self.logger.warning(f"{raw.method} {raw.path} -> {response.status}")
        else:
            self.logger.debug(f"{raw.method} {raw.path} -> {response.status}")

        return JSONResponse(
            content=response.body,
            status_code=response.status,
            headers=response.headers or None
        )

    async def _decode_request(self, request: Request) -> RawRequest:
        """
        Build a RawRequest from a FastAPI request.

        Repeated query keys become lists. The body is decoded as JSON when
        possible, kept as text otherwise, and None when empty or JSON null.
        """
        query: Dict[str, Any] = {}
        for key, value in request.query_params.multi_items():
            if key in query:
                existing = query[key]
                query[key] = existing + [value] if isinstance(existing, list) else [existing, value]
            else:
                query[key] = value

        raw_body = await request.body()
        body = None
        if raw_body:
            body = safe_json_parse(raw_body, default=_UNPARSED)
            if body is _UNPARSED:
                body = raw_body.decode('utf-8', errors='replace')

        return RawRequest(
            method=request.method,
            path=request.url.path,
            query=query,
            headers=dict(request.headers),
            body=body
        )

    def start(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        access_log: bool = True
    ):
        """
        Start the contract server.

        Args:
            host: Host to bind to (overrides config)
            port: Port to bind to (overrides config)
            access_log: Enable access logging
        """
        actual_host = host or self.config.host
        actual_port = port or self.config.port

        print(f"SpecTap Contract Server starting...")
        print(f"   Host: {actual_host}:{actual_port}")
        print(f"   Contract: {self.document.title} {self.document.version}")
        print(f"   Operations: {len(self.document.operations)}")
        print(f"   Mode: {self.config.mode}")

        if self.config.admin_enabled:
            print(f"   Admin API: http://{actual_host}:{actual_port}{self.config.admin_prefix}/metrics")

        missing = self.missing_handlers()
        if self.config.mode != MODE_MOCK and missing:
            print(f"   Warning: {len(missing)} operation(s) have no registered handler")

        print()

        uvicorn.run(
            self.app,
            host=actual_host,
            port=actual_port,
            log_level=self.config.log_level,
            access_log=access_log
        )

    def missing_handlers(self) -> List[str]:
        """Handler identifiers declared by the contract but not registered."""
        return [op.handler_id for op in self.document.operations if op.handler_id not in self.handlers]

    def get_app(self) -> FastAPI:
        """
        Get the FastAPI app instance for testing or custom deployment.

        Returns:
            FastAPI application instance
        """
        return self.app


def create_contract_server(
    contract: Union[str, Dict[str, Any]],
    handlers: Optional[HandlerRegistry] = None,
    host: str = "127.0.0.1",
    port: int = 8080,
    mode: str = MODE_MOCK,
    max_depth: int = DEFAULT_MAX_DEPTH,
    log_level: str = "info",
    admin_enabled: bool = True
) -> ContractServer:
    """
    Convenience function to create and configure a contract server.

    Args:
        contract: Contract file path or document mapping
        handlers: Handler registry for live mode
        host: Host to bind to
        port: Port to bind to
        mode: Dispatch mode (live, mock)
        max_depth: Recursion bound for validation and mock generation
        log_level: Logging level
        admin_enabled: Enable the admin API

    Returns:
        Configured ContractServer instance

    Example:
        server = create_contract_server('weather.yaml', port=8080, mode='mock')
        server.start()
    """
    config = ServerConfig(
        host=host,
        port=port,
        mode=mode,
        max_depth=max_depth,
        log_level=log_level,
        admin_enabled=admin_enabled
    )

    return ContractServer(contract, config=config, handlers=handlers)
