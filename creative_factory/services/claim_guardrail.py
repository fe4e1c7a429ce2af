"""Offline claim guardrail for ad copy.

Absolute or superlative wording is rewritten through a fixed substitution table.
Numeric, health and finance claims are flagged as requiring evidence and left as-is.
None of the substitution outputs match a trigger, so running the guardrail on its own
output changes nothing.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Optional

from creative_factory.db.enums import ClaimDecisionEnum

GUARDED_COPY_FIELDS = ("hooks", "headlines", "ctas", "primary_texts")

_ABSOLUTE_REASON = "Absolute claim rewritten: requires a verifiable source"
_NUMERIC_REASON = "Numeric claim requires evidence (study, official statistic)"
_HEALTH_FINANCE_REASON = "Health/finance claim requires regulatory validation and a verifiable source"


@dataclass(frozen=True)
class _Substitution:
    pattern: re.Pattern[str]
    french: str
    english: str


def _word(term: str) -> re.Pattern[str]:
    return re.compile(rf"\b{term}\b", re.IGNORECASE)


# Longer phrases first so "le meilleur" wins over "meilleur".
_SUBSTITUTIONS: tuple[_Substitution, ...] = (
    _Substitution(_word("le meilleur"), "un excellent", "un excellent"),
    _Substitution(_word("la meilleure"), "une excellente", "une excellente"),
    _Substitution(_word("the best"), "an excellent", "an excellent"),
    _Substitution(_word("meilleure?s?"), "excellent", "excellent"),
    _Substitution(_word("best"), "excellent", "excellent"),
    _Substitution(_word("garantie?s?"), "conçu pour", "conçu pour"),
    _Substitution(_word("guaranteed"), "designed to", "designed to"),
    _Substitution(_word("uniques?"), "original", "original"),
    _Substitution(_word("miracles?"), "innovant", "innovative"),
    _Substitution(_word("révolutionnaires?"), "nouvelle génération", "nouvelle génération"),
    _Substitution(_word("revolutionary"), "next-generation", "next-generation"),
    _Substitution(re.compile(r"(?<!\w)#\s?1(?!\d)"), "leader", "leading"),
    _Substitution(_word(r"num[ée]ro\s?1"), "de référence", "de référence"),
    _Substitution(_word("number one"), "leading", "leading"),
    _Substitution(_word("parfaite?s?"), "optimisé", "optimisé"),
    _Substitution(_word("perfect"), "optimized", "optimized"),
    _Substitution(_word("prouvée?s?"), "testé", "testé"),
    _Substitution(_word("proven"), "tested", "tested"),
    _Substitution(_word("scientifiquement"), "soigneusement", "soigneusement"),
    _Substitution(re.compile(r"(?<![\w.,])100\s?%"), "hautement", "highly"),
)

_NUMERIC_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\d+(?:[.,]\d+)?\s*%"),
    re.compile(r"\d+(?:[.,]\d+)?\s*(?:€|euros?|\$|dollars?)", re.IGNORECASE),
    re.compile(r"[€$]\s*\d+(?:[.,]\d+)?"),
    re.compile(r"\d+(?:[.,]\d+)?\s*(?:fois|times|x)\b", re.IGNORECASE),
    re.compile(r"\d+\s*(?:clients?|users?|utilisateurs?|customers?)\b", re.IGNORECASE),
    re.compile(r"\b(?:économisez|save)\s*\d+", re.IGNORECASE),
    re.compile(r"\b(?:jusqu'à|jusqu’à|up to)\s*\d+", re.IGNORECASE),
)

_HEALTH_FINANCE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\b(?:guérit|guéri|cures?|soigne|treats?|médicaments?|medications?)\b", re.IGNORECASE),
    re.compile(r"\b(?:perte de poids|weight loss|minceur|slimming)\b", re.IGNORECASE),
    re.compile(r"\b(?:rendement|returns?|profits?|bénéfices?|gains?)\s*(?:de\s*|of\s*)?\d+", re.IGNORECASE),
    re.compile(r"\b(?:sans risque|risk[- ]?free)\b", re.IGNORECASE),
)


@dataclass(frozen=True)
class ClaimFinding:
    decision: ClaimDecisionEnum
    matched_term: str
    reason: str


@dataclass(frozen=True)
class ClaimRewrite:
    original: str
    rewritten: str
    was_modified: bool
    reason: Optional[str]
    findings: tuple[ClaimFinding, ...] = field(default_factory=tuple)


def _is_french(language: Optional[str]) -> bool:
    return bool(language) and language.lower().startswith("fr")


def _match_case(matched: str, replacement: str) -> str:
    if matched[:1].isupper() and replacement:
        return replacement[0].upper() + replacement[1:]
    return replacement


def rewrite_claim(text: Any, language: Optional[str] = None) -> ClaimRewrite:
    """Rewrite absolute claims and flag claims that need evidence. Never raises."""
    original = text if isinstance(text, str) else ("" if text is None else str(text))
    french = _is_french(language)
    findings: list[ClaimFinding] = []

    rewritten = original
    for substitution in _SUBSTITUTIONS:
        replacement = substitution.french if french else substitution.english
        matches = [m.group(0) for m in substitution.pattern.finditer(rewritten)]
        if not matches:
            continue
        findings.extend(
            ClaimFinding(ClaimDecisionEnum.rewritten, matched, _ABSOLUTE_REASON) for matched in matches
        )
        rewritten = substitution.pattern.sub(lambda m, r=replacement: _match_case(m.group(0), r), rewritten)

    for pattern in _HEALTH_FINANCE_PATTERNS:
        findings.extend(
            ClaimFinding(ClaimDecisionEnum.flagged, m.group(0), _HEALTH_FINANCE_REASON)
            for m in pattern.finditer(rewritten)
        )
    for pattern in _NUMERIC_PATTERNS:
        findings.extend(
            ClaimFinding(ClaimDecisionEnum.flagged, m.group(0), _NUMERIC_REASON)
            for m in pattern.finditer(rewritten)
        )

    was_modified = rewritten != original
    reason = findings[0].reason if findings else None
    return ClaimRewrite(
        original=original,
        rewritten=rewritten,
        was_modified=was_modified,
        reason=reason,
        findings=tuple(findings),
    )


@dataclass(frozen=True)
class GuardedCopy:
    copy: dict[str, Any]
    results: tuple[tuple[str, ClaimRewrite], ...]

    @property
    def has_issues(self) -> bool:
        return any(result.findings for _field, result in self.results)


def guard_copy(copy: dict[str, Any], language: Optional[str] = None) -> GuardedCopy:
    """Run every hook, headline, CTA and primary text through rewrite_claim independently."""
    guarded = dict(copy)
    results: list[tuple[str, ClaimRewrite]] = []
    for field_name in GUARDED_COPY_FIELDS:
        values = copy.get(field_name)
        if not isinstance(values, list):
            continue
        cleaned: list[str] = []
        for index, value in enumerate(values):
            result = rewrite_claim(value, language)
            cleaned.append(result.rewritten)
            results.append((f"{field_name}[{index}]", result))
        guarded[field_name] = cleaned
    return GuardedCopy(copy=guarded, results=tuple(results))
