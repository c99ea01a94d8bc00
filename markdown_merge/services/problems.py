"""Non-fatal findings collected while repairing or post-processing a document."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

CATEGORIES = (
    "duplicate_link_definition",
    "excessive_whitespace",
    "link_has_title",
    "image_has_title",
    "link_ref_spacing",
    "input_repaired",
)
SEVERITIES = ("info", "warning", "error")


@dataclass(frozen=True)
class Problem:
    category: str
    severity: str
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"category": self.category, "severity": self.severity, **self.details}


class DocumentProblems:
    """Append-only collection of :class:`Problem` records."""

    def __init__(self, problems: Optional[Iterable[Problem]] = None) -> None:
        self._problems: List[Problem] = list(problems or [])

    def add(self, category: str, severity: str = "warning", **details: Any) -> Problem:
        if category not in CATEGORIES:
            raise ValueError(f"Unknown category: {category}. Valid categories: {', '.join(CATEGORIES)}")
        if severity not in SEVERITIES:
            raise ValueError(f"Unknown severity: {severity}. Valid severities: {', '.join(SEVERITIES)}")
        problem = Problem(category=category, severity=severity, details=dict(details))
        self._problems.append(problem)
        return problem

    def all(self) -> List[Problem]:
        return list(self._problems)

    def by_category(self, category: str) -> List[Problem]:
        return [problem for problem in self._problems if problem.category == category]

    def by_severity(self, severity: str) -> List[Problem]:
        return [problem for problem in self._problems if problem.severity == severity]

    def infos(self) -> List[Problem]:
        return self.by_severity("info")

    def warnings(self) -> List[Problem]:
        return self.by_severity("warning")

    def errors(self) -> List[Problem]:
        return self.by_severity("error")

    @property
    def empty(self) -> bool:
        return not self._problems

    def count(self, category: Optional[str] = None, severity: Optional[str] = None) -> int:
        return sum(
            1
            for problem in self._problems
            if (category is None or problem.category == category)
            and (severity is None or problem.severity == severity)
        )

    def merge(self, other: "DocumentProblems") -> "DocumentProblems":
        self._problems.extend(other.all())
        return self

    def clear(self) -> None:
        self._problems.clear()

    def summary_by_category(self) -> Dict[str, int]:
        summary: Dict[str, int] = {}
        for problem in self._problems:
            summary[problem.category] = summary.get(problem.category, 0) + 1
        return summary

    def summary_by_severity(self) -> Dict[str, int]:
        summary: Dict[str, int] = {}
        for problem in self._problems:
            summary[problem.severity] = summary.get(problem.severity, 0) + 1
        return summary

    def to_list(self) -> List[Dict[str, Any]]:
        return [problem.to_dict() for problem in self._problems]

    def __len__(self) -> int:
        return len(self._problems)

    def __iter__(self):
        return iter(list(self._problems))


__all__ = ["CATEGORIES", "DocumentProblems", "Problem", "SEVERITIES"]
