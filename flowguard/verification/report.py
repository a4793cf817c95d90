# Author: Zhongkai Fu (fuzhongkai@gmail.com)
# License: BSD 3-Clause License

"""Issue and report containers shared by every validator."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Literal, Optional


IssueCode = Literal[
    # structural
    "MISSING_NODE_ID",
    "DUPLICATE_NODE_ID",
    "MISSING_NODE_KIND",
    "UNSUPPORTED_NODE_KIND",
    "MISSING_ENTRY_OR_EXIT",
    "MALFORMED_EDGE",
    "DANGLING_EDGE",
    "CYCLIC_GRAPH",
    # reference
    "MISSING_VARIABLE_CODE",
    "MISSING_VARIABLE_ID",
    "DUPLICATE_VARIABLE_ID",
    "MISSING_REFERENCE_VARIABLE_ID",
    "UNRESOLVED_VARIABLE_REFERENCE",
    # convention (warnings)
    "NON_CONVENTIONAL_ID",
    "VARIABLE_NAME_MISMATCH",
    "TOO_MANY_NODES",
    # internal
    "REPAIR_FAILED",
    "PARSE_FAILED",
]

Severity = Literal["error", "warning"]


@dataclass(frozen=True)
class ValidationIssue:
    """A single defect found in a workflow graph.

    ``node_id`` and ``field`` locate the defect when it belongs to one node;
    graph-level issues leave them empty.
    """

    code: IssueCode
    node_id: Optional[str]
    field: Optional[str]
    message: str
    severity: Severity = "error"

    def render(self) -> str:
        return f"[{self.code}] {self.message}"

    def dedup_key(self) -> tuple:
        return (self.code, self.node_id, self.message, self.severity)


@dataclass
class ValidationReport:
    """Ordered, de-duplicated collection of issues.

    Issues keep their discovery order. ``valid`` only looks at errors; warnings
    are advisory.
    """

    issues: List[ValidationIssue] = field(default_factory=list)

    def add(self, issue: ValidationIssue) -> None:
        # Same finding reached through a different field path is reported once.
        key = issue.dedup_key()
        if any(existing.dedup_key() == key for existing in self.issues):
            return
        self.issues.append(issue)

    def error(
        self,
        code: IssueCode,
        message: str,
        *,
        node_id: str | None = None,
        field: str | None = None,
    ) -> None:
        self.add(ValidationIssue(code=code, node_id=node_id, field=field, message=message))

    def warning(
        self,
        code: IssueCode,
        message: str,
        *,
        node_id: str | None = None,
        field: str | None = None,
    ) -> None:
        self.add(
            ValidationIssue(
                code=code, node_id=node_id, field=field, message=message, severity="warning"
            )
        )

    def extend(self, issues: Iterable[ValidationIssue]) -> None:
        for issue in issues:
            self.add(issue)

    def merge(self, other: "ValidationReport") -> "ValidationReport":
        self.extend(other.issues)
        return self

    @property
    def error_issues(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == "error"]

    @property
    def warning_issues(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == "warning"]

    @property
    def errors(self) -> List[str]:
        return [i.render() for i in self.error_issues]

    @property
    def warnings(self) -> List[str]:
        return [i.render() for i in self.warning_issues]

    @property
    def valid(self) -> bool:
        return not self.error_issues

    def codes(self, severity: Severity | None = None) -> List[str]:
        return [i.code for i in self.issues if severity is None or i.severity == severity]

    def to_dict(self) -> Dict[str, Any]:
        return {"valid": self.valid, "errors": self.errors, "warnings": self.warnings}


__all__ = ["IssueCode", "Severity", "ValidationIssue", "ValidationReport"]
