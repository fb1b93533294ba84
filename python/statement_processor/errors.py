"""
Pipeline Errors

Fatal input and validation failures raised to the caller. Row-level problems
and classifier outages are never raised; they are reported through result
objects instead.
"""


class PipelineError(Exception):
    """Base exception for the statement rewards pipeline."""


class ParseError(PipelineError):
    """A statement file cannot be processed at all."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "details": self.details}


class ValidationError(PipelineError):
    """Caller supplied a malformed transaction or card profile."""

    def __init__(self, message: str, errors: list[str] | None = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or []

    def to_dict(self) -> dict:
        return {"error": self.message, "details": self.errors}


class ClassifierUnavailable(PipelineError):
    """The external classifier failed or returned something unusable."""
