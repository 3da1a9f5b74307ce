from enum import Enum
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ErrorKind(str, Enum):
    VALIDATION = "VALIDATION"
    NOT_FOUND = "NOT_FOUND"
    SERVICE_NOT_FOUND = "SERVICE_NOT_FOUND"
    QUOTE_UNAVAILABLE = "QUOTE_UNAVAILABLE"
    INSUFFICIENT_BALANCE = "INSUFFICIENT_BALANCE"
    INDEX_PUBLISH_FAILED = "INDEX_PUBLISH_FAILED"
    INDEX_UPDATE_FAILED = "INDEX_UPDATE_FAILED"
    PROOF_MISMATCH = "PROOF_MISMATCH"


class Outcome(BaseModel, Generic[T]):
    """Either a value or the business-rule failure that prevented it."""

    value: Optional[T] = None
    error: Optional[ErrorKind] = None
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: ErrorKind, message: str) -> "Outcome[T]":
        return cls(error=error, message=message)
