"""Structured operation result returned by every core operation"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    CONFLICT = "conflict"
    INVALID = "invalid"
    NOT_FOUND = "not_found"


@dataclass
class OperationResult:
    success: bool
    message: str = ""
    data: Any = None
    error: Optional[ErrorKind] = None

    @classmethod
    def ok(cls, message: str = "", data: Any = None) -> "OperationResult":
        return cls(True, message, data)

    @classmethod
    def fail(cls, error: ErrorKind, message: str) -> "OperationResult":
        return cls(False, message, None, error)

    def __bool__(self):
        return self.success

    def to_dict(self):
        """Response envelope used by the HTTP API"""
        data = self.data
        if hasattr(data, 'to_dict'):
            data = data.to_dict()
        return {'success': self.success, 'data': data, 'message': self.message}
