from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Optional

from pydantic import ValidationError

from creative_factory.db.models import BrandKit
from creative_factory.schemas.copy_pack import CopyPack
from creative_factory.services.errors import GenerationStageError
from creative_factory.services.generation import Err, GenerationService

logger = logging.getLogger(__name__)

STAGE = "copywriting"

COPYWRITING_SYSTEM_PROMPT = """You are a senior performance-marketing copywriter producing short-form video ads.

RULES:
- No unverifiable claims: never write "best", "unique", "guaranteed", "miracle", "#1" or equivalents.
- No health or financial promises.
- Hooks must stop the scroll in under 10 words.
- CTAs start with an action verb.
- Respect the brand voice and never use a forbidden word.

Reply ONLY with a JSON object:
{
  "hooks": ["hook 1", "hook 2", "hook 3"],
  "scripts": [{"duration": 15, "text": "15s script"}, {"duration": 30, "text": "30s script"}],
  "ctas": ["cta 1", "cta 2", "cta 3"],
  "headlines": ["headline 1", "headline 2", "headline 3"],
  "primary_texts": ["primary text 1", "primary text 2", "primary text 3"]
}"""


@dataclass(frozen=True)
class CreativeBrief:
    offer: str
    objective: str
    language: str
    style: str
    duration_seconds: int
    geo: Optional[str] = None
    site_url: Optional[str] = None
    logo_url: Optional[str] = None
    product_images: tuple[str, ...] = ()


@dataclass(frozen=True)
class BrandVoice:
    tone_of_voice: Optional[str] = None
    values: list[str] = field(default_factory=list)
    forbidden_words: list[str] = field(default_factory=list)

    @classmethod
    def from_brand_kit(cls, kit: Optional[BrandKit]) -> Optional["BrandVoice"]:
        if kit is None:
            return None
        return cls(
            tone_of_voice=kit.tone_of_voice,
            values=list(kit.values or []),
            forbidden_words=list(kit.forbidden_words or []),
        )


def build_copy_prompt(brief: CreativeBrief, brand_voice: Optional[BrandVoice]) -> str:
    lines = [
        "Write the copy pack for this video ad.",
        "",
        f"OFFER: {brief.offer}",
        f"OBJECTIVE: {brief.objective}",
        f"LANGUAGE: {brief.language}",
        f"STYLE: {brief.style}",
        f"TARGET DURATION: {brief.duration_seconds}s",
    ]
    if brief.geo:
        lines.append(f"GEO: {brief.geo}")
    if brief.site_url:
        lines.append(f"SITE: {brief.site_url}")
    if brand_voice:
        lines.append("")
        lines.append("BRAND VOICE:")
        if brand_voice.tone_of_voice:
            lines.append(f"- Tone: {brand_voice.tone_of_voice}")
        if brand_voice.values:
            lines.append(f"- Values: {', '.join(brand_voice.values)}")
        if brand_voice.forbidden_words:
            lines.append(f"- Forbidden words: {', '.join(brand_voice.forbidden_words)}")
    lines.append("")
    lines.append("Produce exactly 3 hooks, 3 CTAs, 3 headlines and 3 primary texts.")
    return "\n".join(lines)


class CopyGenerator:
    def __init__(self, generation: GenerationService) -> None:
        self.generation = generation

    def generate(self, brief: CreativeBrief, brand_voice: Optional[BrandVoice] = None) -> CopyPack:
        result = self.generation.request_json(
            purpose="creative_copywriting",
            system=COPYWRITING_SYSTEM_PROMPT,
            prompt=build_copy_prompt(brief, brand_voice),
        )
        if isinstance(result, Err):
            raise GenerationStageError(STAGE, result.reason)
        try:
            copy = CopyPack.model_validate(result.value)
        except ValidationError as exc:
            logger.warning(
                "Copy pack failed validation",
                extra={"errors": exc.errors(include_url=False), "preview": json.dumps(result.value)[:300]},
            )
            raise GenerationStageError(STAGE, f"malformed copy pack: {exc.error_count()} validation error(s)") from exc
        return copy
