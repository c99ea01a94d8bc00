from __future__ import annotations

from typing import Any, Dict


class MergeError(Exception):
    """Base class for failures surfaced by the merge engine."""

    def __init__(self, code: str, message: str, extra: Dict[str, Any] | None = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.extra = extra or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, **self.extra}


class ParseError(MergeError):
    """Raised when the markdown backend cannot parse a document."""

    side = "document"

    def __init__(
        self,
        message: str,
        code: str = "parse_failed",
        extra: Dict[str, Any] | None = None,
    ) -> None:
        payload = {"side": self.side}
        payload.update(extra or {})
        super().__init__(code, message, payload)


class TemplateParseError(ParseError):
    """The template document could not be parsed."""

    side = "template"

    def __init__(self, message: str, extra: Dict[str, Any] | None = None) -> None:
        super().__init__(message, code="template_parse_failed", extra=extra)


class DestinationParseError(ParseError):
    """The destination document could not be parsed."""

    side = "destination"

    def __init__(self, message: str, extra: Dict[str, Any] | None = None) -> None:
        super().__init__(message, code="destination_parse_failed", extra=extra)


class ConfigurationError(MergeError, ValueError):
    """Raised at construction time for unknown backends, preferences or options."""

    def __init__(
        self,
        message: str,
        code: str = "invalid_configuration",
        extra: Dict[str, Any] | None = None,
    ) -> None:
        super().__init__(code, message, extra)


__all__ = [
    "ConfigurationError",
    "DestinationParseError",
    "MergeError",
    "ParseError",
    "TemplateParseError",
]
