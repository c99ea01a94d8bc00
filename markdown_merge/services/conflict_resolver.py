"""Decide which side wins for each matched pair of statements."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union

from ..config import PREFERENCE_VALUES
from ..utils.errors import ConfigurationError
from .nodes import FreezeBlock, MarkdownNode

Preference = Union[str, Mapping[str, str]]


class Decision(str, Enum):
    IDENTICAL = "identical"
    FROZEN = "frozen"
    TEMPLATE = "template"
    DESTINATION = "destination"


@dataclass(frozen=True)
class ConflictDecision:
    source: str
    decision: Decision
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"source": self.source, "decision": self.decision.value, "reason": self.reason}


def validate_preference(preference: Preference) -> Preference:
    if isinstance(preference, str):
        if preference not in PREFERENCE_VALUES:
            raise ConfigurationError(
                f"unknown preference {preference!r}", code="unknown_preference"
            )
        return preference
    if isinstance(preference, Mapping):
        for node_type, choice in preference.items():
            if choice not in PREFERENCE_VALUES:
                raise ConfigurationError(
                    f"unknown preference {choice!r} for {node_type!r}",
                    code="unknown_preference",
                )
        return dict(preference)
    raise ConfigurationError(
        f"preference must be a string or mapping, got {type(preference).__name__}",
        code="unknown_preference",
    )


class ConflictResolver:
    """Freeze first, then identity, then the configured preference."""

    def __init__(
        self,
        preference: Preference = "destination",
        template_analysis: Any = None,
        dest_analysis: Any = None,
    ) -> None:
        self.preference = validate_preference(preference)
        self.template_analysis = template_analysis
        self.dest_analysis = dest_analysis

    @property
    def default_preference(self) -> str:
        if isinstance(self.preference, str):
            return self.preference
        return self.preference.get("default", "destination")

    def preference_for(self, statement: Any) -> str:
        if isinstance(self.preference, str):
            return self.preference
        node_type = getattr(statement, "type", None)
        return self.preference.get(node_type, self.default_preference)

    def resolve(self, template_node: Any, dest_node: Any) -> ConflictDecision:
        if isinstance(dest_node, FreezeBlock):
            return ConflictDecision("destination", Decision.FROZEN, dest_node.reason)
        if isinstance(template_node, FreezeBlock):
            return ConflictDecision("template", Decision.FROZEN, template_node.reason)

        template_text = self.node_to_text(template_node, self.template_analysis)
        dest_text = self.node_to_text(dest_node, self.dest_analysis)
        if template_text == dest_text:
            return ConflictDecision(self.default_preference, Decision.IDENTICAL)

        choice = self.preference_for(dest_node)
        return ConflictDecision(choice, Decision(choice))

    @staticmethod
    def node_to_text(statement: Any, analysis: Any = None) -> str:
        """Exact source lines when known, regenerated markdown otherwise."""

        if analysis is not None:
            return analysis.node_text(statement)
        if isinstance(statement, MarkdownNode):
            return statement.to_markdown()
        return statement.render()


__all__ = ["ConflictDecision", "ConflictResolver", "Decision", "validate_preference"]
