from typing import List, Literal, Optional

from pydantic import BaseModel, StrictBool

Severity = Literal["critical", "warning", "info"]


class QAIssue(BaseModel):
    code: str
    severity: Severity
    description: str
    suggestion: Optional[str] = None
    affected_format: Optional[str] = None


class QAReport(BaseModel):
    passed: bool
    score: int
    issues: List[QAIssue] = []

    @property
    def critical_issues(self) -> List[QAIssue]:
        return [issue for issue in self.issues if issue.severity == "critical"]


class ComplianceVerdict(BaseModel):
    """Shape the compliance model must return; anything else is treated as unparseable."""

    approved: StrictBool
    issues: List[str] = []
