"""
School Admin Backend — Custom Exception Hierarchy
===================================================

What:  Application-specific exceptions for failures that are not business
       errors. Business errors are returned by handlers as ``{"error": ...}``
       or ``{"errors": ...}`` values and never raised.
How:   Each exception carries a user-facing message and an optional context
       dict. The context is logged server-side and never sent to clients.

Exception Hierarchy:
    SchoolAdminError (base)
    ├── ConfigurationError   → raised at startup (bad exposure table, registry)
    ├── BadRequestError      → 400 (malformed request body)
    ├── RouteNotFoundError   → 404 (module / method / handler not found)
    ├── DispatchError        → 500 (middleware broke the chain protocol)
    └── StoreError           → 500 (block store operation failed)
"""

from typing import Any, Dict, Optional


class SchoolAdminError(Exception):
    """
    Base exception for all application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client)
    """

    status_code = 500

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ConfigurationError(SchoolAdminError):
    """Invalid wiring detected while building the application."""

    def __init__(
        self,
        message: str = "Invalid application configuration",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class BadRequestError(SchoolAdminError):
    """
    The request could not be turned into a parameter bag.

    When: body is not valid JSON, or is JSON but not an object.
    HTTP: 400 Bad Request
    """

    status_code = 400

    def __init__(
        self,
        message: str = "Malformed request",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RouteNotFoundError(SchoolAdminError):
    """
    Raised by the route resolver before any middleware runs.

    The message is one of: "module not found", "module has no exposed
    functions", "method not found", "handler not found".
    HTTP: 404 Not Found
    """

    status_code = 404

    def __init__(
        self,
        message: str = "method not found",
        module_name: Optional[str] = None,
        fn_name: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if module_name:
            ctx["module"] = module_name
        if fn_name:
            ctx["fn"] = fn_name
        super().__init__(message=message, context=ctx)


class DispatchError(SchoolAdminError):
    """A middleware violated the chain protocol (e.g. called next twice)."""

    def __init__(
        self,
        message: str = "middleware chain error",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class StoreError(SchoolAdminError):
    """
    Raised when a block store operation fails unexpectedly.

    Security Note:
        The message returned to the client is always generic. The SQL error
        is kept in ``context`` and only logged.
    """

    def __init__(
        self,
        message: str = "A storage error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
