"""Structural merging of markdown documents."""

from __future__ import annotations

__version__ = "0.1.0"

from .services.partial_template import PartialMergeResult, PartialTemplateMerger  # noqa: E402
from .services.repair import RepairReport, repair_markdown  # noqa: E402
from .services.smart_merger import MergeResult, MergeStats, SmartMerger, merge_markdown  # noqa: E402
from .utils.errors import (  # noqa: E402
    ConfigurationError,
    DestinationParseError,
    MergeError,
    ParseError,
    TemplateParseError,
)

__all__ = [
    "ConfigurationError",
    "DestinationParseError",
    "MergeError",
    "MergeResult",
    "MergeStats",
    "ParseError",
    "PartialMergeResult",
    "PartialTemplateMerger",
    "RepairReport",
    "SmartMerger",
    "TemplateParseError",
    "__version__",
    "merge_markdown",
    "repair_markdown",
]
