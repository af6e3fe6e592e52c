"""Error taxonomy shared by the data-access layer and the auth service.

Every error carries a machine-checkable ``kind`` decided where it is raised,
so callers branch on ``kind`` (or the class) instead of message text.
"""

from enum import Enum
from typing import Optional, Sequence


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    INVALID_CREDENTIALS = "invalid_credentials"
    UNAUTHORIZED = "unauthorized"
    TOKEN_EXPIRED = "token_expired"
    TOKEN_INVALID = "token_invalid"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    CONNECTION = "connection"
    POOL_EXHAUSTED = "pool_exhausted"
    QUERY = "query"


class AppError(Exception):
    kind: ErrorKind
    status_code: int = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


# -------------------- Business errors --------------------


class ValidationError(AppError):
    kind = ErrorKind.VALIDATION
    status_code = 400

    def __init__(self, message: str, reasons: Sequence[Enum] = ()):
        self.reasons = list(reasons)
        super().__init__(message)


class InvalidCredentials(AppError):
    kind = ErrorKind.INVALID_CREDENTIALS
    status_code = 401

    def __init__(self, message: str = "Invalid email or password"):
        super().__init__(message)


class Unauthorized(AppError):
    kind = ErrorKind.UNAUTHORIZED
    status_code = 401


class TokenError(AppError):
    status_code = 401


class TokenExpired(TokenError):
    kind = ErrorKind.TOKEN_EXPIRED

    def __init__(self, message: str = "Token has expired"):
        super().__init__(message)


class TokenInvalid(TokenError):
    kind = ErrorKind.TOKEN_INVALID

    def __init__(self, message: str = "Invalid token"):
        super().__init__(message)


class ConflictError(AppError):
    kind = ErrorKind.CONFLICT
    status_code = 409

    def __init__(self, message: str, constraint: Optional[str] = None):
        self.constraint = constraint
        super().__init__(message)


class NotFound(AppError):
    kind = ErrorKind.NOT_FOUND
    status_code = 404


# -------------------- Infrastructure errors --------------------


class InfrastructureError(AppError):
    """Never shown to API callers; detail is logged server-side only."""

    status_code = 500
    public_message = "Internal server error"


class DatabaseConnectionError(InfrastructureError):
    kind = ErrorKind.CONNECTION


class PoolExhausted(InfrastructureError):
    kind = ErrorKind.POOL_EXHAUSTED


class QueryError(InfrastructureError):
    kind = ErrorKind.QUERY
