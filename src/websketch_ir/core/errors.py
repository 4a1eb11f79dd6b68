# src/websketch_ir/core/errors.py
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class ErrorCode(str, Enum):
    """Failure kinds surfaced to callers of the core."""
    INVALID_JSON = "WS_INVALID_JSON"
    INVALID_CAPTURE = "WS_INVALID_CAPTURE"
    UNSUPPORTED_VERSION = "WS_UNSUPPORTED_VERSION"
    LIMIT_EXCEEDED = "WS_LIMIT_EXCEEDED"
    INVALID_ARGS = "WS_INVALID_ARGS"


class WebSketchError(Exception):
    """
    Typed failure raised by the throwing entry points (parse, render, diff).

    Attributes:
        code (ErrorCode): The failure kind.
        message (str): Human readable description.
        path (Optional[str]): Location in the capture, when one applies.
    """

    def __init__(self, code: ErrorCode, message: str, path: Optional[str] = None):
        super().__init__(f"{code.value}: {message}")
        self.code = code
        self.message = message
        self.path = path


class ValidationIssue(BaseModel):
    code: ErrorCode
    path: str
    message: str


class ValidationResult(BaseModel):
    valid: bool
    errors: List[ValidationIssue] = Field(default_factory=list)

    @property
    def first_error(self) -> Optional[ValidationIssue]:
        return self.errors[0] if self.errors else None
