"""Deterministic pre-check of blueprints and copy, run before the compliance model."""

from __future__ import annotations

from typing import Iterable, List

from creative_factory.schemas.blueprint import Blueprint
from creative_factory.schemas.copy_pack import CopyPack
from creative_factory.schemas.qa_report import QAIssue, QAReport

PASSING_SCORE = 70
MAX_OVERLAY_CHARS = 60
MAX_HOOK_WORDS = 10
MIN_DURATION_SECONDS = 5
MAX_DURATION_SECONDS = 60
MIN_SUBTITLE_COVERAGE = 0.5
MAX_SCENE_GAP_SECONDS = 0.5

DEDUCTIONS = {
    "SAFE_ZONE_UNDECLARED": 15,
    "SAFE_ZONE_VIOLATION": 15,
    "TEXT_TOO_LONG": 10,
    "CTA_MISSING": 20,
    "INVALID_DURATION": 5,
    "NO_SUBTITLES": 5,
    "LOW_SUBTITLE_COVERAGE": 3,
    "SCENE_GAP": 2,
    "HOOK_TOO_LONG": 5,
    "WEAK_CTA": 2,
}

CTA_ACTION_VERBS = (
    "découvrez",
    "obtenez",
    "essayez",
    "commencez",
    "réservez",
    "téléchargez",
    "inscrivez",
    "profitez",
    "commandez",
    "discover",
    "get",
    "try",
    "start",
    "book",
    "download",
    "sign up",
    "shop",
    "order",
    "buy",
    "claim",
    "learn",
    "join",
)


def evaluate_blueprint(blueprint: Blueprint) -> List[QAIssue]:
    ratio = blueprint.aspect_ratio
    issues: List[QAIssue] = []

    for scene in blueprint.scenes:
        overlay = scene.text_overlay
        if overlay is None:
            continue
        if overlay.safe_zone is None:
            issues.append(
                QAIssue(
                    code="SAFE_ZONE_UNDECLARED",
                    severity="critical",
                    description=f"Text overlay in {ratio} scene {scene.scene_id} does not declare safe-zone compliance",
                    suggestion="Declare safe_zone for every text overlay",
                    affected_format=ratio,
                )
            )
        elif overlay.safe_zone is False:
            issues.append(
                QAIssue(
                    code="SAFE_ZONE_VIOLATION",
                    severity="critical",
                    description=f"Text overlay in {ratio} scene {scene.scene_id} is outside the safe zone",
                    suggestion="Adjust text position to respect platform safe zones",
                    affected_format=ratio,
                )
            )
        if len(overlay.text) > MAX_OVERLAY_CHARS:
            issues.append(
                QAIssue(
                    code="TEXT_TOO_LONG",
                    severity="warning",
                    description=f"Text in {ratio} exceeds recommended length ({len(overlay.text)} chars)",
                    suggestion=f"Reduce text to max {MAX_OVERLAY_CHARS} characters for mobile readability",
                    affected_format=ratio,
                )
            )

    cta = blueprint.cta_placement
    if cta is None or not cta.timing:
        issues.append(
            QAIssue(
                code="CTA_MISSING",
                severity="critical",
                description=f"No CTA placement defined for {ratio}",
                suggestion="Add CTA in the last 3 seconds of the video",
                affected_format=ratio,
            )
        )

    duration = blueprint.duration_seconds
    if duration < MIN_DURATION_SECONDS or duration > MAX_DURATION_SECONDS:
        issues.append(
            QAIssue(
                code="INVALID_DURATION",
                severity="warning",
                description=f"Duration {duration:g}s is outside optimal range "
                f"({MIN_DURATION_SECONDS}-{MAX_DURATION_SECONDS}s) for {ratio}",
                affected_format=ratio,
            )
        )

    if not blueprint.subtitles:
        issues.append(
            QAIssue(
                code="NO_SUBTITLES",
                severity="warning",
                description=f"No subtitles defined for {ratio}",
                suggestion="Add subtitles for engagement and accessibility",
                affected_format=ratio,
            )
        )
    else:
        covered = sum(max(0.0, cue.end - cue.start) for cue in blueprint.subtitles)
        coverage = covered / duration
        if coverage < MIN_SUBTITLE_COVERAGE:
            issues.append(
                QAIssue(
                    code="LOW_SUBTITLE_COVERAGE",
                    severity="info",
                    description=f"Subtitles only cover {round(coverage * 100)}% of {ratio} video",
                    affected_format=ratio,
                )
            )

    if ratio == "9:16":
        for index, (current, following) in enumerate(zip(blueprint.scenes, blueprint.scenes[1:]), start=1):
            if following.start_time - current.end_time > MAX_SCENE_GAP_SECONDS:
                issues.append(
                    QAIssue(
                        code="SCENE_GAP",
                        severity="info",
                        description=f"Gap detected between scenes {index} and {index + 1} in 9:16 format",
                        suggestion="Add a transition or reduce the gap",
                        affected_format=ratio,
                    )
                )

    return issues


def evaluate_copy(copy: CopyPack) -> List[QAIssue]:
    issues: List[QAIssue] = []
    for hook in copy.hooks:
        if len(hook.split()) > MAX_HOOK_WORDS:
            issues.append(
                QAIssue(
                    code="HOOK_TOO_LONG",
                    severity="warning",
                    description=f'Hook "{hook[:30]}..." exceeds {MAX_HOOK_WORDS} words',
                    suggestion="Keep hooks under 8-10 words",
                )
            )
    for cta in copy.ctas:
        lowered = cta.lower()
        if not any(verb in lowered for verb in CTA_ACTION_VERBS):
            issues.append(
                QAIssue(
                    code="WEAK_CTA",
                    severity="info",
                    description=f'CTA "{cta}" may lack an action verb',
                    suggestion="Open with a strong action verb",
                )
            )
    return issues


def score_issues(issues: Iterable[QAIssue]) -> QAReport:
    issues = list(issues)
    score = 100 - sum(DEDUCTIONS.get(issue.code, 0) for issue in issues)
    has_critical = any(issue.severity == "critical" for issue in issues)
    return QAReport(passed=not has_critical and score >= PASSING_SCORE, score=max(0, score), issues=issues)


def run_quality_gate(copy: CopyPack, blueprints: Iterable[Blueprint]) -> QAReport:
    issues: List[QAIssue] = []
    for blueprint in blueprints:
        issues.extend(evaluate_blueprint(blueprint))
    issues.extend(evaluate_copy(copy))
    return score_issues(issues)
