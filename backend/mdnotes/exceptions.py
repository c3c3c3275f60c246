"""
mdnotes Backend - Custom Exception Hierarchy
==============================================

What:  Application-specific exceptions for every failure the API can report.
How:   Each exception carries a client-safe message and an optional context
       dict. Global handlers registered in main.py turn them into
       `{"error": <message>}` responses with the matching status code.
Who:   Raised by services, dependencies and route handlers.

Exception Hierarchy:
    NotesError (base)
    ├── ValidationError    → 400 Bad Request
    ├── AuthError          → 401 Unauthorized
    ├── NotFoundError      → 404 Not Found
    ├── StorageError       → 500 Internal Server Error
    └── StartupError       → fatal, process exits before serving
        └── MigrationError
"""

from typing import Any, Dict, Optional


class NotesError(Exception):
    """
    Base exception for all mdnotes application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(NotesError):
    """
    Raised when client input fails validation.

    When:    Malformed note id, malformed boolean query parameter, malformed JSON body.
    HTTP:    400 Bad Request
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class AuthError(NotesError):
    """
    Raised when a caller is not authenticated.

    When:    Missing, unknown or expired session cookie; wrong password on login.
    HTTP:    401 Unauthorized

    The message never distinguishes an unknown token from an expired one.
    """

    def __init__(
        self,
        message: str = "unauthorized",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(NotesError):
    """
    Raised when a requested resource does not exist.

    When:    GET/PUT/DELETE /notes/{id} with an id that has no row.
    HTTP:    404 Not Found
    """

    def __init__(
        self,
        resource: str = "note",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=f"{resource} not found", context=ctx)


class StorageError(NotesError):
    """
    Raised when a persistence operation fails.

    When:    Connection lost mid-query, constraint violation, pool exhausted, etc.
    HTTP:    500 Internal Server Error

    The client-facing message is always generic; the underlying driver error
    is logged server-side only.
    """

    def __init__(
        self,
        message: str = "database error",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class StartupError(NotesError):
    """
    Raised when the process cannot start serving traffic.

    When:    Configuration missing/invalid, database unreachable, migration failure.
    Effect:  Never recovered in-process; `python -m mdnotes` exits with status 1.
    """

    def __init__(
        self,
        message: str = "startup failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class MigrationError(StartupError):
    """
    Raised when a schema migration cannot be applied.

    When:    Unreadable or misnamed migration files, or a statement fails.
             The failing file's transaction is rolled back before this is raised.
    """

    def __init__(
        self,
        message: str = "migration failed",
        migration: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if migration:
            ctx["migration"] = migration
        super().__init__(message=message, context=ctx)
        self.migration = migration
