from __future__ import annotations

from typing import Optional


class MakeMyDayError(Exception):
    """Base class for errors surfaced to the user with a readable message."""


class ConfigurationError(MakeMyDayError):
    pass


class APIRequestError(MakeMyDayError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class EmptyResponseError(MakeMyDayError):
    pass


class ResponseParseError(MakeMyDayError):
    pass


class StorageError(MakeMyDayError):
    pass


class StorageQuotaExceededError(StorageError):
    pass


class ImportFormatError(MakeMyDayError):
    pass


class NotFoundError(MakeMyDayError, KeyError):
    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "not found"
