from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Generic, Optional, TypeVar, Union

from creative_factory.config import settings
from creative_factory.llm.client import LLMClient, LLMClientConfigError, LLMGenerationParams

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Err:
    reason: str


Result = Union[Ok[T], Err]


def extract_first_json_object(text: str) -> Dict[str, Any]:
    """
    Extract and parse the first top-level JSON object from an arbitrary text blob.

    Models sometimes wrap JSON in prose or markdown fences even in JSON mode; the
    reply is still usable when a complete object is present.
    """

    if not isinstance(text, str):
        raise ValueError("Input text must be a string")
    raw = text.strip()
    if not raw:
        raise ValueError("Input text is empty")

    start: int | None = None
    depth = 0
    in_string = False
    escape = False

    for i, ch in enumerate(raw):
        if start is None:
            if ch == "{":
                start = i
                depth = 1
            continue

        if in_string:
            if escape:
                escape = False
                continue
            if ch == "\\":
                escape = True
                continue
            if ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
            continue
        if ch == "{":
            depth += 1
            continue
        if ch == "}":
            depth -= 1
            if depth == 0:
                parsed = json.loads(raw[start : i + 1])
                if not isinstance(parsed, dict):
                    raise ValueError("Extracted JSON was not an object")
                return parsed

    raise ValueError("Unable to locate a complete JSON object in response text")


class GenerationService:
    """
    Calls the text-generation provider and returns an explicit result.

    Transport errors, timeouts, empty replies and replies without a parseable JSON
    object all become ``Err``; callers branch on the result instead of catching.
    A missing provider configuration is not a generation outcome and propagates.
    """

    def __init__(
        self,
        llm: LLMClient,
        *,
        model: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        temperature: Optional[float] = None,
    ) -> None:
        self.llm = llm
        self.model = model or settings.LLM_DEFAULT_MODEL
        self.timeout_seconds = timeout_seconds or settings.GENERATION_STAGE_TIMEOUT_SECONDS
        self.temperature = temperature if temperature is not None else settings.GENERATION_TEMPERATURE

    def request_json(self, *, purpose: str, system: str, prompt: str) -> Result[Dict[str, Any]]:
        params = LLMGenerationParams(
            model=self.model,
            system=system,
            temperature=self.temperature,
            response_format={"type": "json_object"},
            timeout_seconds=self.timeout_seconds,
            purpose=purpose,
        )
        started = time.monotonic()
        try:
            text = self.llm.generate_text(prompt, params)
        except LLMClientConfigError:
            raise
        except Exception as exc:  # noqa: BLE001 - every provider failure is an Err
            logger.warning(
                "Generation call failed",
                extra={"purpose": purpose, "model": self.model, "error": str(exc)},
            )
            return Err(f"generation service error: {exc.__class__.__name__}: {exc}")

        elapsed_ms = int((time.monotonic() - started) * 1000)
        if elapsed_ms > self.timeout_seconds * 1000:
            logger.warning("Generation call exceeded deadline", extra={"purpose": purpose, "elapsed_ms": elapsed_ms})
            return Err(f"generation service exceeded {self.timeout_seconds:g}s deadline")

        if not text or not str(text).strip():
            return Err("generation service returned an empty response")
        try:
            payload = extract_first_json_object(str(text))
        except ValueError as exc:
            logger.warning(
                "Generation response was not JSON",
                extra={"purpose": purpose, "preview": str(text)[:200]},
            )
            return Err(f"unparseable generation response: {exc}")

        logger.debug("Generation call succeeded", extra={"purpose": purpose, "elapsed_ms": elapsed_ms})
        return Ok(payload)
