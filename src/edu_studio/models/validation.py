"""Validation result types. Findings are data, never exceptions."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, Field, computed_field


class IssueKind(StrEnum):
    VALIDATION = "VALIDATION"
    SCOPE = "SCOPE"


class Issue(BaseModel):
    kind: IssueKind
    message: str


class ValidationResult(BaseModel):
    findings: list[Issue] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def ok(self) -> bool:
        return not self.findings

    @computed_field  # type: ignore[prop-decorator]
    @property
    def issues(self) -> list[str]:
        return [issue.message for issue in self.findings]

    @computed_field  # type: ignore[prop-decorator]
    @property
    def scope_violations(self) -> list[str]:
        return [issue.message for issue in self.findings if issue.kind == IssueKind.SCOPE]


class FileCheck(BaseModel):
    """Outcome of re-validating one source file's metadata."""

    ok: bool
    name: str
    size: int
    mime: str | None = None
    issues: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
