import logging
from contextlib import contextmanager

from fastapi import HTTPException

from makemyday.errors import (
    APIRequestError,
    ConfigurationError,
    EmptyResponseError,
    ImportFormatError,
    MakeMyDayError,
    NotFoundError,
    ResponseParseError,
    StorageQuotaExceededError,
)

logger = logging.getLogger(__name__)


def to_http_exception(exc: MakeMyDayError) -> HTTPException:
    """Map the error taxonomy onto HTTP statuses; the message is shown as-is."""
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, (ConfigurationError, ImportFormatError)):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, (APIRequestError, EmptyResponseError, ResponseParseError)):
        return HTTPException(status_code=502, detail=str(exc))
    if isinstance(exc, StorageQuotaExceededError):
        return HTTPException(status_code=507, detail=str(exc))
    logger.error(f"Unhandled application error: {exc}")
    return HTTPException(status_code=500, detail=str(exc))


def with_storage_warning(body: dict, persist_error) -> dict:
    if persist_error:
        body["storage_warning"] = persist_error
    return body


@contextmanager
def http_errors():
    """Translate application errors raised in a route into HTTP responses."""
    try:
        yield
    except MakeMyDayError as e:
        raise to_http_exception(e) from e
    except ValueError as e:
        # pydantic's ValidationError is a ValueError too
        raise HTTPException(status_code=400, detail=str(e)) from e
