"""
Custom Exceptions
Error kinds raised by services and mapped to HTTP status codes by FastAPI
Source: https://fastapi.tiangolo.com/tutorial/handling-errors/
Verified: 2025-11-14
"""

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError

# SQLSTATE class 23 code for a duplicate key
# Source: https://www.postgresql.org/docs/current/errcodes-appendix.html
UNIQUE_VIOLATION_SQLSTATE = "23505"


class AuthenticationError(HTTPException):
    """Raised when the acting user cannot be resolved"""

    def __init__(self, detail: str = "Could not validate credentials"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class PermissionDeniedError(HTTPException):
    """
    Raised when the acting role may not perform an action.

    Covers roles outside an operation's role group, editors a lifecycle
    state does not list, and scoped users reaching for another client.
    """

    def __init__(self, detail: str = "Permission denied"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
        )


class NotFoundError(HTTPException):
    """Raised when resource not found or outside the caller's scope"""

    def __init__(self, detail: str = "Resource not found"):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
        )


class BadRequestError(HTTPException):
    """Raised when a request breaks a business rule"""

    def __init__(self, detail: str = "Bad request"):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
        )


class ConflictError(HTTPException):
    """
    Raised when a business identifier is already taken.

    Claim, policy and invoice numbers, client tax ids, insurer names and
    codes, and affiliate document numbers are unique; so is an affiliate's
    membership in a policy.
    """

    def __init__(self, detail: str = "Resource conflict"):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
        )


def is_unique_violation(error: IntegrityError) -> bool:
    """
    Whether a constraint failure at commit was a duplicate key.

    PostgreSQL drivers report the SQLSTATE (``sqlstate`` on asyncpg and
    psycopg, ``pgcode`` on psycopg2). SQLite has no SQLSTATE, so its
    message is the fallback.
    """
    orig = error.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code is not None:
        return code == UNIQUE_VIOLATION_SQLSTATE
    return "unique constraint failed" in str(orig).lower()
