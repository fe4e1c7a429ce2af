from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Optional

import google.generativeai as genai
from anthropic import Anthropic
from openai import OpenAI

from creative_factory.config import settings

logger = logging.getLogger(__name__)

_MAX_RETRIES = int(os.getenv("LLM_REQUEST_RETRIES", "2"))


class LLMClientConfigError(Exception):
    pass


@dataclass
class LLMGenerationParams:
    model: Optional[str] = None
    system: Optional[str] = None
    max_tokens: Optional[int] = None
    temperature: float = 0.2
    response_format: Optional[dict[str, Any]] = None
    timeout_seconds: Optional[float] = None
    # Free-form tag identifying the pipeline stage that issued the call.
    purpose: Optional[str] = None


class LLMClient:
    """Routes text generation to OpenAI, Anthropic or Gemini based on the model name."""

    def __init__(self, default_model: Optional[str] = None) -> None:
        self.default_model = default_model or settings.LLM_DEFAULT_MODEL
        self._gemini_configured = False
        self._anthropic_client: Optional[Anthropic] = None
        self._openai_client: Optional[OpenAI] = None

    def generate_text(self, prompt: str, params: Optional[LLMGenerationParams] = None) -> str:
        model = params.model if params and params.model else self.default_model
        logger.debug(
            "LLM generate_text",
            extra={"model": model, "purpose": params.purpose if params else None},
        )
        if self._is_openai_model(model):
            return self._generate_with_openai(prompt, model, params)
        if model.startswith("claude"):
            return self._generate_with_anthropic(prompt, model, params)
        return self._generate_with_gemini(prompt, model, params)

    def _is_openai_model(self, model: str) -> bool:
        lower = model.lower()
        prefixes = ("gpt-", "chatgpt-", "o1", "o3", "o4", "omni-")
        return any(lower.startswith(prefix) for prefix in prefixes)

    def _timeout(self, params: Optional[LLMGenerationParams]) -> float:
        if params and params.timeout_seconds:
            return float(params.timeout_seconds)
        return float(settings.GENERATION_STAGE_TIMEOUT_SECONDS)

    def _generate_with_openai(self, prompt: str, model: str, params: Optional[LLMGenerationParams]) -> str:
        api_key = os.getenv("OPENAI_API_KEY")
        if not api_key:
            raise LLMClientConfigError("OPENAI_API_KEY not configured")

        if not self._openai_client:
            client_kwargs: dict[str, Any] = {"api_key": api_key, "max_retries": _MAX_RETRIES}
            base_url = os.getenv("OPENAI_BASE_URL")
            if base_url:
                client_kwargs["base_url"] = base_url
            self._openai_client = OpenAI(**client_kwargs)

        messages = []
        if params and params.system:
            messages.append({"role": "system", "content": params.system})
        messages.append({"role": "user", "content": prompt})

        completion_kwargs: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "timeout": self._timeout(params),
        }
        if params and params.temperature is not None:
            completion_kwargs["temperature"] = params.temperature
        if params and params.max_tokens:
            completion_kwargs["max_tokens"] = params.max_tokens
        if params and params.response_format:
            completion_kwargs["response_format"] = params.response_format

        try:
            completion = self._openai_client.chat.completions.create(**completion_kwargs)
        except Exception:
            logger.exception("OpenAI chat completion failed", extra={"model": model})
            raise

        text = None
        if completion and completion.choices:
            text = getattr(completion.choices[0].message, "content", None)
        if text:
            return text

        raise RuntimeError(f"OpenAI chat completion returned no content for model {model}")

    def _generate_with_gemini(self, prompt: str, model: str, params: Optional[LLMGenerationParams]) -> str:
        api_key = os.getenv("GEMINI_API_KEY")
        if not api_key:
            raise LLMClientConfigError("GEMINI_API_KEY not configured")

        if not self._gemini_configured:
            genai.configure(api_key=api_key)
            self._gemini_configured = True

        generation_config: dict[str, Any] = {
            "temperature": params.temperature if params else 0.2,
        }
        if params and params.max_tokens:
            generation_config["max_output_tokens"] = params.max_tokens
        if params and params.response_format:
            generation_config["response_mime_type"] = "application/json"

        model_name = model if model.startswith("models/") else f"models/{model}"
        model_client = genai.GenerativeModel(
            model_name=model_name,
            generation_config=generation_config,
            system_instruction=params.system if params else None,
        )
        try:
            result = model_client.generate_content(prompt, request_options={"timeout": self._timeout(params)})
            text = None
            if result and getattr(result, "candidates", None):
                first = result.candidates[0]
                if first and first.content and getattr(first.content, "parts", None):
                    parts = first.content.parts
                    if parts and getattr(parts[0], "text", None):
                        text = parts[0].text
            if not text and hasattr(result, "text"):
                text = result.text
        except Exception:
            logger.exception("Gemini generation failed", extra={"model": model})
            raise

        if text:
            return text

        raise RuntimeError(f"Gemini returned no content for model {model}")

    def _generate_with_anthropic(self, prompt: str, model: str, params: Optional[LLMGenerationParams]) -> str:
        api_key = os.getenv("ANTHROPIC_API_KEY")
        if not api_key:
            raise LLMClientConfigError("ANTHROPIC_API_KEY not configured")

        if not self._anthropic_client:
            self._anthropic_client = Anthropic(api_key=api_key)

        request_kwargs: dict[str, Any] = {
            "model": model,
            "max_tokens": params.max_tokens if params and params.max_tokens else 4096,
            "temperature": params.temperature if params else 0.2,
            "messages": [{"role": "user", "content": prompt}],
            "timeout": self._timeout(params),
        }
        if params and params.system:
            request_kwargs["system"] = params.system

        text = None
        last_error: Optional[Exception] = None
        for _ in range(max(1, _MAX_RETRIES)):
            try:
                response = self._anthropic_client.messages.create(**request_kwargs)
            except Exception as exc:
                logger.exception("Anthropic generation attempt failed", extra={"model": model})
                last_error = exc
                continue
            text_parts = [content.text for content in response.content if getattr(content, "text", None)]
            text = "".join(text_parts) if text_parts else None
            if text:
                return text

        if last_error is not None:
            raise last_error
        raise RuntimeError(f"Anthropic returned no content for model {model}")
