"""
SpecTap Contract Errors

Exception hierarchy for contract loading and request dispatch.

Startup errors (SpecInvalid and its subclasses) abort before any request is
served. Dispatch errors (HandlerNotFound, HandlerError) are recovered into a
structured response by the Dispatcher.
"""

from typing import Any, Optional


class ContractError(Exception):
    """Base class for all SpecTap errors."""


class SpecInvalid(ContractError, ValueError):
    """Contract document is structurally invalid."""

    def __init__(self, path: str, message: str):
        self.path = path
        self.message = message
        super().__init__(f"{path}: {message}")


class UnresolvedReference(SpecInvalid):
    """A schema reference names a definition that does not exist."""


class CyclicSchema(SpecInvalid):
    """A schema reference cycle has no array hop to terminate it."""


class HandlerNotFound(ContractError, LookupError):
    """No handler is registered for a live operation."""

    def __init__(self, handler_id: str):
        self.handler_id = handler_id
        super().__init__(f"No handler registered for '{handler_id}'")


class HandlerError(ContractError):
    """
    Raised by application handlers to control the error response.

    The Dispatcher passes status and body through unchanged. When no body is
    given, the response body is {"error": message}.
    """

    def __init__(self, message: str, status: int = 500, body: Optional[Any] = None):
        self.message = message
        self.status = status
        self.body = body
        super().__init__(message)
