from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from bson.errors import BSONError
from pymongo.errors import PyMongoError

logger = logging.getLogger(__name__)


class TodoApiError(Exception):
    """
    Base class for errors rendered through the response envelope.

    Subclasses pin the HTTP status; `error` carries raw detail that is echoed
    back to the caller (only StoreError sets it).
    """

    status_code: int = 500
    default_message: str = "An unexpected error occurred."

    def __init__(self, message: Optional[str] = None, error: Optional[str] = None) -> None:
        self.message = message or self.default_message
        self.error = error
        super().__init__(self.message)


class ValidationError(TodoApiError):
    """Missing or invalid request input."""

    status_code = 400
    default_message = "Invalid request."


class MalformedIdentifierError(TodoApiError):
    """The id in the path is not a valid ObjectId."""

    status_code = 400
    default_message = "Invalid ID format."


class NotFoundError(TodoApiError):
    """The id is well-formed but no todo matches it."""

    status_code = 404
    default_message = "Todo not found."


class StoreError(TodoApiError):
    """Connectivity, timeout or internal fault in the document store."""

    status_code = 500
    default_message = "A database error occurred."


# PUBLIC_INTERFACE
@contextmanager
def store_errors(action: str) -> Iterator[None]:
    """
    Convert driver and BSON encoding failures raised inside the block into a StoreError.

    Args:
        action: Gerund phrase naming the operation, e.g. "fetching the todo list".
    """
    try:
        yield
    except (PyMongoError, BSONError) as exc:
        logger.error("Store failure while %s: %s", action, exc)
        raise StoreError(f"An error occurred while {action}.", error=str(exc)) from exc
