from __future__ import annotations

from enum import StrEnum


class ErrorCode(StrEnum):
    INVALID_INPUT = "INVALID_INPUT"
    PAGE_NOT_FOUND = "PAGE_NOT_FOUND"
    PAGE_FETCH_FAILED = "PAGE_FETCH_FAILED"
    PAGE_PARSE_FAILED = "PAGE_PARSE_FAILED"
    SELECTION_NOT_FOUND = "SELECTION_NOT_FOUND"
    QUOTE_NOT_FOUND = "QUOTE_NOT_FOUND"


class QuoteGridError(Exception):
    """Raised for every expected failure condition.

    The source raises it for network and parse failures; the fetcher and
    metadata estimator absorb those. Tool handlers raise it for bad input and
    unknown identifiers, and server.py serialises it into the MCP error result.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        suggestion: str,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.recoverable = recoverable

    def to_dict(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "suggestion": self.suggestion,
                "recoverable": self.recoverable,
            }
        }
