"""Merge the bodies of fenced code blocks written in structured formats."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

import yaml

from ..utils.logging import log_debug

LOGGER = logging.getLogger(__name__)

Merger = Callable[..., Any]


@dataclass(slots=True)
class InnerMergeResult:
    merged: bool
    content: Optional[str] = None
    stats: Dict[str, Any] = field(default_factory=dict)
    reason: Optional[str] = None

    @classmethod
    def coerce(cls, value: Any) -> "InnerMergeResult":
        if isinstance(value, cls):
            return value
        if isinstance(value, Mapping):
            return cls(
                merged=bool(value.get("merged")),
                content=value.get("content"),
                stats=dict(value.get("stats") or {}),
                reason=value.get("reason"),
            )
        raise TypeError(f"merger returned {type(value).__name__}, expected a mapping")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "merged": self.merged,
            "content": self.content,
            "stats": dict(self.stats),
            "reason": self.reason,
        }


def merge_mappings(
    template: Mapping[str, Any],
    dest: Mapping[str, Any],
    preference: str,
    add_template_only: bool,
    stats: Dict[str, int],
) -> Dict[str, Any]:
    """Recursive key merge; destination key order wins, template-only keys go last."""

    merged: Dict[str, Any] = {}
    for key, dest_value in dest.items():
        if key not in template:
            merged[key] = dest_value
            continue
        template_value = template[key]
        if isinstance(dest_value, Mapping) and isinstance(template_value, Mapping):
            merged[key] = merge_mappings(template_value, dest_value, preference, add_template_only, stats)
        elif dest_value == template_value:
            merged[key] = dest_value
        else:
            stats["conflicts"] += 1
            merged[key] = template_value if preference == "template" else dest_value
    if add_template_only:
        for key, template_value in template.items():
            if key not in dest:
                merged[key] = template_value
                stats["keys_added"] += 1
    return merged


def _merge_loaded(
    template_data: Any, dest_data: Any, preference: str, add_template_only_nodes: bool
) -> Tuple[Optional[Dict[str, Any]], Dict[str, Any]]:
    if not isinstance(template_data, Mapping) or not isinstance(dest_data, Mapping):
        return None, {}
    stats = {"conflicts": 0, "keys_added": 0}
    merged = merge_mappings(template_data, dest_data, preference, add_template_only_nodes, stats)
    return merged, {"decision": "merged", **stats}


def _json_indent(text: str) -> int:
    for line in text.splitlines()[1:]:
        stripped = line.lstrip(" ")
        if stripped and len(stripped) != len(line):
            return len(line) - len(stripped)
    return 2


def merge_json(
    template: str, dest: str, preference: str, *, add_template_only_nodes: bool = False
) -> InnerMergeResult:
    merged, stats = _merge_loaded(
        json.loads(template), json.loads(dest), preference, add_template_only_nodes
    )
    if merged is None:
        return InnerMergeResult(merged=False, reason="json top-level value is not an object")
    content = json.dumps(merged, indent=_json_indent(dest), ensure_ascii=False) + "\n"
    return InnerMergeResult(merged=True, content=content, stats=stats)


def merge_yaml(
    template: str, dest: str, preference: str, *, add_template_only_nodes: bool = False
) -> InnerMergeResult:
    merged, stats = _merge_loaded(
        yaml.safe_load(template), yaml.safe_load(dest), preference, add_template_only_nodes
    )
    if merged is None:
        return InnerMergeResult(merged=False, reason="yaml document is not a mapping")
    content = yaml.safe_dump(
        merged, sort_keys=False, default_flow_style=False, allow_unicode=True
    )
    return InnerMergeResult(merged=True, content=content, stats=stats)


DEFAULT_MERGERS: Dict[str, Merger] = {
    "json": merge_json,
    "yaml": merge_yaml,
    "yml": merge_yaml,
}


def _language(node: Any) -> Optional[str]:
    language = getattr(node, "language", None)
    if language is None:
        info = getattr(node, "info", None) or ""
        parts = info.split()
        language = parts[0] if parts else None
    return language.lower() if language else None


class CodeBlockMerger:
    """Dispatch code-block bodies to a merger chosen by fence language."""

    def __init__(self, mergers: Optional[Mapping[str, Merger]] = None, enabled: bool = True) -> None:
        self.enabled = enabled
        self.mergers: Dict[str, Merger] = dict(DEFAULT_MERGERS)
        for language, merger in (mergers or {}).items():
            self.mergers[language.lower()] = merger

    def supports_language(self, language: Optional[str]) -> bool:
        return self.enabled and bool(language) and language.lower() in self.mergers

    def merge_code_blocks(
        self,
        template_node: Any,
        dest_node: Any,
        preference: str = "destination",
        add_template_only_nodes: bool = False,
    ) -> InnerMergeResult:
        if not self.enabled:
            return InnerMergeResult(merged=False, reason="inner code block merging disabled")
        language = _language(dest_node) or _language(template_node)
        if not language:
            return InnerMergeResult(merged=False, reason="no language specified")
        merger = self.mergers.get(language)
        if merger is None:
            return InnerMergeResult(merged=False, reason=f"no merger for language {language}")

        template_content = template_node.content
        dest_content = dest_node.content
        if template_content == dest_content:
            return InnerMergeResult(
                merged=True, content=dest_content, stats={"decision": "identical"}
            )
        try:
            result = InnerMergeResult.coerce(
                merger(
                    template_content,
                    dest_content,
                    preference,
                    add_template_only_nodes=add_template_only_nodes,
                )
            )
        except ImportError as exc:
            result = InnerMergeResult(merged=False, reason=f"merger library not available: {exc}")
        except Exception as exc:
            result = InnerMergeResult(merged=False, reason=str(exc))
        log_debug(LOGGER, "Inner code block merge", language=language, merged=result.merged, reason=result.reason)
        return result


__all__ = [
    "CodeBlockMerger",
    "DEFAULT_MERGERS",
    "InnerMergeResult",
    "merge_json",
    "merge_mappings",
    "merge_yaml",
]
