from __future__ import annotations

import logging
from typing import Sequence

from pydantic import ValidationError

from creative_factory.schemas.blueprint import SAFE_ZONES, Blueprint
from creative_factory.schemas.copy_pack import CopyPack, CopyScript
from creative_factory.services.copywriting import CreativeBrief
from creative_factory.services.errors import GenerationStageError
from creative_factory.services.generation import Err, GenerationService

logger = logging.getLogger(__name__)

STAGE = "blueprint"

BLUEPRINT_SYSTEM_PROMPT = """You are a motion designer producing renderer-agnostic video blueprints for paid social.

SAFE ZONE ({aspect_ratio}, pixels kept clear of platform UI):
- top: {top}px, bottom: {bottom}px, left: {left}px, right: {right}px
- CTA must sit at least {cta_bottom}px above the bottom edge

RULES:
- Mobile-readable text, contrast at least 4.5:1, max 2 lines of text per screen.
- Every text_overlay MUST declare "safe_zone": true only when it fits inside the safe zone.
- CTA visible during the final seconds of the video.
- Transitions between 0.3s and 0.5s.

Reply ONLY with a JSON object:
{{
  "aspect_ratio": "{aspect_ratio}",
  "duration_seconds": 15,
  "scenes": [
    {{
      "scene_id": "scene_1",
      "start_time": 0,
      "end_time": 3,
      "text_overlay": {{"text": "Hook", "position": "center", "font_size": "large", "safe_zone": true}},
      "asset_placeholder": {{"type": "background"}},
      "transition": "fade"
    }}
  ],
  "subtitles": [{{"start": 0, "end": 3, "text": "Subtitle"}}],
  "cta_placement": {{"position": "bottom_center", "timing": 12}},
  "brand_colors": {{"primary": "#000000", "secondary": "#ffffff"}}
}}"""


def variant_tag(index: int) -> str:
    if 0 <= index < 26:
        return chr(ord("A") + index)
    return f"V{index + 1}"


def _closest_script(scripts: Sequence[CopyScript], duration_seconds: int) -> CopyScript:
    return min(scripts, key=lambda script: abs(script.duration - duration_seconds))


def build_blueprint_prompt(brief: CreativeBrief, copy: CopyPack, aspect_ratio: str, variant_index: int) -> str:
    hook = copy.hooks[variant_index % len(copy.hooks)]
    cta = copy.ctas[variant_index % len(copy.ctas)]
    script = _closest_script(copy.scripts, brief.duration_seconds)
    images = ", ".join(brief.product_images) if brief.product_images else "none"
    return "\n".join(
        [
            f"Build the {aspect_ratio} blueprint for variant {variant_tag(variant_index)}.",
            "",
            f"DURATION: {brief.duration_seconds} seconds",
            f"STYLE: {brief.style}",
            f"HOOK: {hook}",
            f"SCRIPT: {script.text}",
            f"CTA: {cta}",
            "",
            "AVAILABLE ASSETS:",
            f"- Logo: {brief.logo_url or 'placeholder'}",
            f"- Product images: {images}",
        ]
    )


class BlueprintGenerator:
    def __init__(self, generation: GenerationService) -> None:
        self.generation = generation

    def generate(self, brief: CreativeBrief, copy: CopyPack, aspect_ratio: str, variant_index: int) -> Blueprint:
        zone = SAFE_ZONES[aspect_ratio]
        result = self.generation.request_json(
            purpose="creative_blueprint",
            system=BLUEPRINT_SYSTEM_PROMPT.format(aspect_ratio=aspect_ratio, **zone.model_dump()),
            prompt=build_blueprint_prompt(brief, copy, aspect_ratio, variant_index),
        )
        if isinstance(result, Err):
            raise GenerationStageError(STAGE, f"{aspect_ratio} variant {variant_tag(variant_index)}: {result.reason}")

        payload = dict(result.value)
        payload.setdefault("duration_seconds", brief.duration_seconds)
        # Slot identity comes from the request, not from the model.
        payload["aspect_ratio"] = aspect_ratio
        payload["variant"] = variant_tag(variant_index)
        payload["variant_index"] = variant_index
        payload["lead_hook"] = copy.hooks[variant_index % len(copy.hooks)]
        payload["lead_cta"] = copy.ctas[variant_index % len(copy.ctas)]
        try:
            return Blueprint.model_validate(payload)
        except ValidationError as exc:
            logger.warning(
                "Blueprint failed validation",
                extra={"aspect_ratio": aspect_ratio, "variant_index": variant_index, "errors": exc.errors(include_url=False)},
            )
            raise GenerationStageError(
                STAGE, f"{aspect_ratio} variant {variant_tag(variant_index)}: malformed blueprint"
            ) from exc

    def generate_all(
        self,
        brief: CreativeBrief,
        copy: CopyPack,
        aspect_ratios: Sequence[str],
        variants_per_format: int,
    ) -> list[Blueprint]:
        blueprints: list[Blueprint] = []
        for aspect_ratio in aspect_ratios:
            for variant_index in range(variants_per_format):
                blueprints.append(self.generate(brief, copy, aspect_ratio, variant_index))
        logger.info(
            "Blueprints generated",
            extra={"count": len(blueprints), "aspect_ratios": list(aspect_ratios), "variants": variants_per_format},
        )
        return blueprints
