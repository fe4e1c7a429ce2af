from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence, Tuple

from pydantic import ValidationError

from creative_factory.schemas.blueprint import Blueprint
from creative_factory.schemas.copy_pack import CopyPack
from creative_factory.schemas.qa_report import ComplianceVerdict, QAReport
from creative_factory.services.generation import Err, GenerationService, Ok, Result
from creative_factory.services.quality_gate import evaluate_blueprint, run_quality_gate, score_issues

logger = logging.getLogger(__name__)

MANUAL_REVIEW_SUFFIX = "manual review required"

QCO_SYSTEM_PROMPT = """You are the Quality & Compliance Officer (QCO). You validate ads before publication.

VALIDATION CRITERIA:
1. Verifiable claims only (no "best", "unique", "guaranteed").
2. No unsourced health or financial promises.
3. No excessive emotional manipulation.
4. Readable text: platform safe zones respected.
5. Sufficient contrast.
6. Acceptable text density (max 2 lines per screen).

Reply ONLY with JSON: {"approved": true or false, "issues": ["issue 1", "issue 2"]}"""


@dataclass(frozen=True)
class ComplianceResult:
    approved: bool
    issues: List[str]
    quality: QAReport
    blueprint_reports: List[QAReport] = field(default_factory=list)

    def as_verdict(self) -> Dict[str, Any]:
        return {"approved": self.approved, "issues": list(self.issues), "qa_score": self.quality.score}


def interpret_verdict(result: Result[Dict[str, Any]]) -> Tuple[bool, List[str]]:
    """
    Map a compliance-model result to (approved, issues).

    The only approving branch is an ``Ok`` whose payload parses as a verdict with
    ``approved`` literally true. Every other branch is a non-approval with a reason.
    """
    if isinstance(result, Err):
        return False, [f"Compliance check failed ({result.reason}); {MANUAL_REVIEW_SUFFIX}"]
    if isinstance(result, Ok):
        try:
            verdict = ComplianceVerdict.model_validate(result.value)
        except ValidationError:
            return False, [f"Compliance verdict could not be parsed; {MANUAL_REVIEW_SUFFIX}"]
        if verdict.approved:
            return True, list(verdict.issues)
        return False, list(verdict.issues) or [f"Compliance officer did not approve; {MANUAL_REVIEW_SUFFIX}"]
    return False, [f"Unexpected compliance result; {MANUAL_REVIEW_SUFFIX}"]


def _blueprint_summary(blueprints: Sequence[Blueprint]) -> str:
    lines = []
    for bp in blueprints:
        overlays = [scene.text_overlay.text for scene in bp.scenes if scene.text_overlay and scene.text_overlay.text]
        lines.append(
            f"- {bp.aspect_ratio} variant {bp.variant}: {len(bp.scenes)} scenes, "
            f"{len(bp.subtitles)} subtitle cues, overlays: {json.dumps(overlays, ensure_ascii=False)}"
        )
    return "\n".join(lines)


class ComplianceValidator:
    def __init__(self, generation: GenerationService) -> None:
        self.generation = generation

    def validate(self, copy: CopyPack, blueprints: Sequence[Blueprint]) -> ComplianceResult:
        quality = run_quality_gate(copy, blueprints)
        blueprint_reports = [score_issues(evaluate_blueprint(bp)) for bp in blueprints]

        prompt = "\n".join(
            [
                "Validate this ad content:",
                "",
                "COPYWRITING:",
                json.dumps(copy.model_dump(mode="json"), ensure_ascii=False, indent=2),
                "",
                "BLUEPRINTS (summary):",
                _blueprint_summary(blueprints),
            ]
        )
        result = self.generation.request_json(purpose="creative_compliance", system=QCO_SYSTEM_PROMPT, prompt=prompt)
        model_approved, issues = interpret_verdict(result)

        for issue in quality.critical_issues:
            issues.append(f"{issue.code}: {issue.description}")
        if not quality.passed and not quality.critical_issues:
            issues.append(f"Quality score {quality.score} below threshold; {MANUAL_REVIEW_SUFFIX}")

        approved = model_approved and quality.passed
        logger.info(
            "Compliance validation finished",
            extra={
                "approved": approved,
                "model_approved": model_approved,
                "qa_score": quality.score,
                "issue_count": len(issues),
            },
        )
        return ComplianceResult(
            approved=approved,
            issues=issues,
            quality=quality,
            blueprint_reports=blueprint_reports,
        )
