"""
Centralized exception handling for the Vehicle Transport Portal.

This module provides:
- Base APIException class extending FastAPI's HTTPException.
- Domain-specific exceptions with appropriate status codes and headers.
- Utility functions for formatting DB errors, logging, and routing exceptions.

Usage:
    - Raise specific exceptions in the transaction core, validators or route handlers.
    - Use `handle()` to normalize raw exceptions (DB, Pydantic) into API-friendly responses.
"""

from traceback import format_exception
from logging import getLogger
from fastapi import status, HTTPException
from sqlalchemy.exc import IntegrityError
from psycopg2.errorcodes import UNIQUE_VIOLATION, FOREIGN_KEY_VIOLATION
from pydantic import ValidationError
from sqlalchemy import Column


# ---------------------------------------------------------------------------
# Utility functions
# ---------------------------------------------------------------------------
def formatIntegrityError(e: IntegrityError) -> str:
    """
    Format a database integrity error into a user-friendly message.

    `Key (email)=(a@b.c) already exists.` becomes `For email value a@b.c already exists`.
    """
    errorMessage: str = e.orig.diag.message_detail or str(e.orig)
    errorMessage = errorMessage.translate({ord(i): None for i in '\\"\\.\\(\\)'})
    errorMessage = errorMessage.replace("Key ", "For ")
    errorMessage = errorMessage.replace("=", " value ")
    return errorMessage


def logException(e: Exception) -> None:
    """Log an exception with traceback using Uvicorn's error logger."""
    detail = "".join(format_exception(type(e), e, e.__traceback__))
    logger = getLogger("uvicorn.error")
    logger.error(detail)


# ---------------------------------------------------------------------------
# Base Exception
# ---------------------------------------------------------------------------
class APIException(HTTPException):
    """
    Base class for all application-specific exceptions.

    Provides default handling of status_code, detail, and headers.
    """

    status_code = status.HTTP_400_BAD_REQUEST
    detail = None
    headers = None

    def __init__(self, *args, **kwargs):
        kwargs.setdefault("status_code", self.status_code)
        kwargs.setdefault("detail", self.detail)
        kwargs.setdefault("headers", self.headers)
        super().__init__(*args, **kwargs)


# ---------------------------------------------------------------------------
# Exception handling entrypoint
# ---------------------------------------------------------------------------
def handle(e: Exception):
    """
    Normalize and re-raise exceptions as API-friendly errors.

    Converts raw exceptions from the DB and Pydantic into the corresponding
    APIException subclasses. Everything unexpected is logged and re-raised,
    which surfaces as a 500.
    """
    if isinstance(e, IntegrityError):
        sqlstate = getattr(getattr(e.orig, "diag", None), "sqlstate", None)
        if sqlstate == UNIQUE_VIOLATION:
            raise UniqueViolation(formatIntegrityError(e))
        if sqlstate == FOREIGN_KEY_VIOLATION:
            raise ForeignKeyViolation(formatIntegrityError(e))
    if isinstance(e, ValidationError):
        raise PydanticError(detail=e.errors())
    if isinstance(e, APIException):
        raise e

    logException(e)
    raise e


# ---------------------------------------------------------------------------
# Validation errors (400)
# ---------------------------------------------------------------------------
class PydanticError(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    headers = {"X-Error": "PydanticError"}

    def __init__(self, detail):
        super().__init__(detail=detail)


class UniqueViolation(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    headers = {"X-Error": "UniqueViolation"}

    def __init__(self, detail: str):
        super().__init__(detail=detail)


class ForeignKeyViolation(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    headers = {"X-Error": "ForeignKeyViolation"}

    def __init__(self, detail: str):
        super().__init__(detail=detail)


class InvalidValue(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    headers = {"X-Error": "InvalidValue"}

    def __init__(self, column_name: Column):
        detail = f"Invalid {column_name.name} is provided"
        super().__init__(detail=detail)


class MissingParameter(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    headers = {"X-Error": "MissingParameter"}

    def __init__(self, column_name: Column):
        detail = f"The {column_name.name} is missing"
        super().__init__(detail=detail)


class InvalidStateTransition(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    headers = {"X-Error": "InvalidStateTransition"}

    def __init__(self, column_name: Column):
        detail = f"The {column_name.name} cannot be set to the provided value"
        super().__init__(detail=detail)


class InvalidAssociation(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    headers = {"X-Error": "InvalidAssociation"}

    def __init__(self, column_name_1: Column, column_name_2: Column):
        detail = f"The {column_name_1.name} is not associated with {column_name_2.name}"
        super().__init__(detail=detail)


class InactiveResource(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    headers = {"X-Error": "InactiveResource"}

    def __init__(self, orm_class):
        detail = (
            f"The status of {orm_class.__name__} is not in an active or useful state"
        )
        super().__init__(detail=detail)


class AuctionOrderLocked(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    detail = "Orders created by an auction purchase cannot be accepted, rejected or reassigned"
    headers = {"X-Error": "AuctionOrderLocked"}


class DuplicateBilling(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    detail = "A completion payment already exists for this order"
    headers = {"X-Error": "DuplicateBilling"}


class DuplicateHandover(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    detail = "A handover of this type is already recorded for this order"
    headers = {"X-Error": "DuplicateHandover"}


class DuplicateApproval(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    detail = "A pending approval of this type already exists for this order"
    headers = {"X-Error": "DuplicateApproval"}


class ApprovalExpired(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    detail = "The approval request has expired"
    headers = {"X-Error": "ApprovalExpired"}


# ---------------------------------------------------------------------------
# Authentication & authorization errors (401, 403)
# ---------------------------------------------------------------------------
class InvalidCredentials(APIException):
    status_code = status.HTTP_401_UNAUTHORIZED
    detail = "Invalid email or password"
    headers = {"X-Error": "InvalidCredentials"}


class InvalidToken(APIException):
    status_code = status.HTTP_401_UNAUTHORIZED
    detail = "Invalid token"
    headers = {"X-Error": "InvalidToken"}


class InactiveAccount(APIException):
    status_code = status.HTTP_403_FORBIDDEN
    detail = "The account is not in active status"
    headers = {"X-Error": "InactiveAccount"}


class NoPermission(APIException):
    status_code = status.HTTP_403_FORBIDDEN
    detail = "This user has no permission to perform this action"
    headers = {"X-Error": "NoPermission"}


class NotAssignedDriver(APIException):
    status_code = status.HTTP_403_FORBIDDEN
    detail = "The order is not assigned to this driver"
    headers = {"X-Error": "NotAssignedDriver"}


# ---------------------------------------------------------------------------
# Lookup errors (404)
# ---------------------------------------------------------------------------
class InvalidIdentifier(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    detail = "Invalid ID provided"
    headers = {"X-Error": "InvalidIdentifier"}


class UnknownValue(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    headers = {"X-Error": "UnknownValue"}

    def __init__(self, column_name: Column):
        detail = f"Invalid {column_name.name} is provided"
        super().__init__(detail=detail)


class NotAvailable(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    detail = "Auction not found or already sold"
    headers = {"X-Error": "NotAvailable"}
