"""Canned generation replies and in-memory stand-ins for the external services."""

import copy
import json
from typing import Any, Callable, Union

from creative_factory.llm.client import LLMGenerationParams
from creative_factory.schemas.render_service import RenderStatusOut

TEST_USER_ID = "user_test"

CLEAN_COPY = {
    "hooks": [
        "Votre équipe mérite mieux",
        "Moins de paperasse, plus de temps",
        "Simplifiez votre gestion dès ce soir",
    ],
    "scripts": [
        {"duration": 15, "text": "Vos journées sont trop courtes. Notre outil range tout pour vous."},
        {"duration": 30, "text": "Vos journées sont trop courtes. Notre outil range tout, vous gardez la main."},
    ],
    "ctas": ["Essayez gratuitement", "Découvrez la plateforme", "Réservez une démo"],
    "headlines": ["Gestion simplifiée", "Pensé pour les équipes", "Tout au même endroit"],
    "primary_texts": [
        "Centralisez vos dossiers et gagnez du temps chaque semaine.",
        "Une interface claire pour toute votre équipe.",
        "Commencez en quelques minutes, sans installation.",
    ],
}

CLEAN_BLUEPRINT = {
    "duration_seconds": 15,
    "scenes": [
        {
            "scene_id": "scene_1",
            "start_time": 0,
            "end_time": 5,
            "text_overlay": {"text": "Votre équipe mérite mieux", "position": "center", "font_size": "large", "safe_zone": True},
            "asset_placeholder": {"type": "background"},
            "transition": "fade",
        },
        {
            "scene_id": "scene_2",
            "start_time": 5,
            "end_time": 10,
            "text_overlay": {"text": "Tout au même endroit", "position": "center", "font_size": "medium", "safe_zone": True},
            "asset_placeholder": {"type": "product", "url": "https://cdn.example.test/product.png"},
            "transition": "slide",
        },
        {
            "scene_id": "scene_3",
            "start_time": 10,
            "end_time": 15,
            "text_overlay": {"text": "Essayez gratuitement", "position": "bottom", "font_size": "large", "safe_zone": True},
            "asset_placeholder": {"type": "logo"},
            "transition": "fade",
        },
    ],
    "subtitles": [
        {"start": 0, "end": 5, "text": "Vos journées sont trop courtes."},
        {"start": 5, "end": 10, "text": "Notre outil range tout pour vous."},
        {"start": 10, "end": 15, "text": "Essayez gratuitement."},
    ],
    "cta_placement": {"position": "bottom_center", "timing": 12},
    "brand_colors": {"primary": "#101820", "secondary": "#f2aa4c"},
}

APPROVED_VERDICT = {"approved": True, "issues": []}

Reply = Union[str, Exception, Callable[[str, LLMGenerationParams], str]]


class FakeLLM:
    """Answers generate_text by pipeline stage (the params.purpose tag)."""

    def __init__(self) -> None:
        self.replies: dict[str, Reply] = {
            "creative_copywriting": json.dumps(CLEAN_COPY, ensure_ascii=False),
            "creative_blueprint": json.dumps(CLEAN_BLUEPRINT, ensure_ascii=False),
            "creative_compliance": json.dumps(APPROVED_VERDICT),
        }
        self.calls: list[tuple[str, str]] = []

    def set_reply(self, purpose: str, reply: Reply) -> None:
        self.replies[purpose] = reply

    def set_copy(self, **overrides: Any) -> None:
        pack = copy.deepcopy(CLEAN_COPY)
        pack.update(overrides)
        self.replies["creative_copywriting"] = json.dumps(pack, ensure_ascii=False)

    def calls_for(self, purpose: str) -> list[str]:
        return [prompt for call_purpose, prompt in self.calls if call_purpose == purpose]

    def generate_text(self, prompt: str, params: LLMGenerationParams | None = None) -> str:
        purpose = params.purpose if params else None
        self.calls.append((purpose, prompt))
        reply = self.replies[purpose]
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply(prompt, params)
        return reply


class FakeRenderClient:
    """
    In-memory render service.

    Each render reports "processing" on its first poll and its final state on the next,
    unless ``stalled`` is set, in which case it never leaves "processing".
    """

    def __init__(self) -> None:
        self.sources: dict[str, dict[str, Any]] = {}
        self.poll_counts: dict[str, int] = {}
        self.failing_dimensions: set[tuple[int, int]] = set()
        self.fail_snapshots = False
        self.fail_static = False
        self.stalled = False
        self.submit_errors: dict[tuple[int, int], Exception] = {}
        self.snapshot_poll_error: Exception | None = None

    def submit(self, source: dict[str, Any]) -> str:
        error = self.submit_errors.get((source["width"], source["height"]))
        if error is not None and source.get("output_format") == "mp4":
            raise error
        render_id = f"render_{len(self.sources) + 1}"
        self.sources[render_id] = source
        self.poll_counts[render_id] = 0
        return render_id

    def poll(self, render_id: str) -> RenderStatusOut:
        self.poll_counts[render_id] += 1
        source = self.sources[render_id]
        if self.snapshot_poll_error is not None and "snapshot_time" in source:
            raise self.snapshot_poll_error
        if self.stalled or self.poll_counts[render_id] == 1:
            return RenderStatusOut(status="processing")
        if self._should_fail(source):
            return RenderStatusOut(status="failed", error="Renderer crashed")
        extension = source.get("output_format", "mp4")
        return RenderStatusOut(status="done", url=f"https://cdn.example.test/{render_id}.{extension}")

    def _should_fail(self, source: dict[str, Any]) -> bool:
        if source.get("output_format") == "mp4":
            return (source["width"], source["height"]) in self.failing_dimensions
        if "snapshot_time" in source:
            return self.fail_snapshots
        return self.fail_static

    def submitted(self, output_format: str) -> list[dict[str, Any]]:
        return [source for source in self.sources.values() if source.get("output_format") == output_format]


