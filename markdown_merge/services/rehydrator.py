"""Rewrite inline links and images to reference style when a definition exists."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from ..config import DEFAULT_FREEZE_TOKEN
from ..utils.logging import log_debug
from .file_analysis import frozen_line_numbers
from .link_parser import (
    LinkConstruct,
    build_link_tree,
    build_url_to_label_map,
    find_all_constructs,
    flatten_leaf_first,
    parse_definitions,
)
from .problems import DocumentProblems
from .repair.code_fence_spacing import CodeFenceSpacing

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Replacement:
    start: int
    end: int
    text: str


class LinkReferenceRehydrator:
    """Convert ``[text](url)`` to ``[text][label]`` using the document's definitions.

    Fenced code and paired freeze regions for ``freeze_token`` are left alone.
    """

    def __init__(self, content: str, freeze_token: str = DEFAULT_FREEZE_TOKEN) -> None:
        self.content = content
        self.freeze_token = freeze_token
        self.problems = DocumentProblems()
        self.rehydration_count = 0
        self._url_to_label: Optional[Dict[str, str]] = None
        self._duplicates: Dict[str, List[str]] = {}

    @classmethod
    def rehydrate_text(
        cls, content: str, freeze_token: str = DEFAULT_FREEZE_TOKEN
    ) -> Tuple[str, "LinkReferenceRehydrator"]:
        rehydrator = cls(content, freeze_token)
        return rehydrator.rehydrate(), rehydrator

    @property
    def link_definitions(self) -> Dict[str, str]:
        """URL to the label selected for it."""

        return dict(self._definition_map())

    @property
    def duplicate_definitions(self) -> Dict[str, List[str]]:
        self._definition_map()
        return {url: list(labels) for url, labels in self._duplicates.items()}

    @property
    def changed(self) -> bool:
        return self.rehydration_count > 0

    def _definition_map(self) -> Dict[str, str]:
        if self._url_to_label is not None:
            return self._url_to_label
        definitions = parse_definitions(self.content)
        labels_by_url: Dict[str, List[str]] = {}
        for definition in definitions:
            labels_by_url.setdefault(definition.url, []).append(definition.label)
        self._duplicates = {url: labels for url, labels in labels_by_url.items() if len(labels) > 1}
        self._url_to_label = build_url_to_label_map(definitions)
        return self._url_to_label

    def _protected_ranges(self) -> List[Tuple[int, int]]:
        """Character ranges of fenced code blocks and freeze regions."""

        line_starts = [0]
        for index, char in enumerate(self.content):
            if char == "\n":
                line_starts.append(index + 1)
        ranges = []
        for block in CodeFenceSpacing(self.content).code_blocks:
            start = line_starts[block.start_line - 1]
            end_line = block.end_line or len(line_starts)
            end = line_starts[end_line] if end_line < len(line_starts) else len(self.content)
            ranges.append((start, end))
        for number in sorted(frozen_line_numbers(self.content, self.freeze_token)):
            start = line_starts[number - 1]
            end = line_starts[number] if number < len(line_starts) else len(self.content)
            ranges.append((start, end))
        return ranges

    def rehydrate(self) -> str:
        url_to_label = self._definition_map()
        for url, labels in self._duplicates.items():
            self.problems.add(
                "duplicate_link_definition",
                severity="warning",
                url=url,
                labels=list(labels),
                selected_label=url_to_label[url],
            )
        if not url_to_label:
            return self.content

        protected = self._protected_ranges()
        constructs = [
            item
            for item in find_all_constructs(self.content)
            if not any(start <= item.start < end for start, end in protected)
        ]
        forest = build_link_tree(constructs)
        edits: Dict[int, List[Replacement]] = {}
        for item in flatten_leaf_first(forest):
            child_edits = [edit for child in item.children for edit in edits.pop(id(child), [])]
            own = self._replacement_for(item, child_edits)
            edits[id(item)] = [own] if own is not None else child_edits

        pending = [edit for root in forest for edit in edits.get(id(root), [])]
        result = self.content
        for edit in sorted(pending, key=lambda edit: edit.start, reverse=True):
            result = result[: edit.start] + edit.text + result[edit.end :]
        log_debug(LOGGER, "Rehydrated link references", count=self.rehydration_count)
        return result

    def _replacement_for(
        self, item: LinkConstruct, child_edits: List[Replacement]
    ) -> Optional[Replacement]:
        if item.title:
            if item.is_image:
                self.problems.add(
                    "image_has_title", severity="info", alt=item.text, url=item.url, title=item.title
                )
            else:
                self.problems.add(
                    "link_has_title", severity="info", text=item.text, url=item.url, title=item.title
                )
            return None
        label = self._definition_map().get(item.url)
        if label is None:
            return None

        text = item.text
        text_start = item.start + (2 if item.is_image else 1)
        for edit in sorted(child_edits, key=lambda edit: edit.start, reverse=True):
            relative_start = edit.start - text_start
            relative_end = edit.end - text_start
            if relative_start >= 0 and relative_end <= len(text):
                text = text[:relative_start] + edit.text + text[relative_end:]
        self.rehydration_count += 1
        prefix = "!" if item.is_image else ""
        return Replacement(item.start, item.end, f"{prefix}[{text}][{label}]")


__all__ = ["LinkReferenceRehydrator", "Replacement"]
