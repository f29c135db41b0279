# backend/fellowship/core/errors.py
"""
Error taxonomy shared by guards and domain services.

Every error is an HTTPException subclass, so FastAPI renders it with its
normal handler:

  Unauthenticated  401  no identifiable principal
  Forbidden        403  principal lacks the permission/ownership/role
  NotFound         404  referenced resource is absent
  ValidationFailed 400  malformed or out-of-range input
  Conflict         409  duplicate or wrong-state write
  StorageFailure   500  the database failed; message stays generic
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class FellowshipError(HTTPException):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail: str = "Request failed"

    def __init__(self, detail: Any = None) -> None:
        super().__init__(status_code=self.status_code, detail=detail or self.default_detail)


class Unauthenticated(FellowshipError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Unauthorized - Please log in"

    def __init__(self, detail: Any = None) -> None:
        super().__init__(detail)
        self.headers = {"WWW-Authenticate": "Bearer"}


class Forbidden(FellowshipError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Forbidden - Insufficient permissions"


class NotFound(FellowshipError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"


class ValidationFailed(FellowshipError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Validation failed"


class Conflict(FellowshipError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Conflict"


class StorageFailure(FellowshipError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Request failed. Please try again later."


@contextmanager
def storage_errors(message: str) -> Iterator[None]:
    """
    Translate database errors into a generic StorageFailure.

    The original exception is logged with its traceback; the client only
    ever sees `message`.
    """
    try:
        yield
    except SQLAlchemyError as exc:
        logger.exception("%s: %s", message, exc)
        raise StorageFailure(message) from exc
