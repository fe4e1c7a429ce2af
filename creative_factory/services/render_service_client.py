from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx
from pydantic import ValidationError

from creative_factory.config import settings
from creative_factory.schemas.render_service import RenderStatusOut, RenderSubmitOut

logger = logging.getLogger(__name__)

# Provider lifecycle states collapsed onto pending/processing/done/failed.
_STATUS_MAP = {
    "planned": "pending",
    "waiting": "pending",
    "queued": "pending",
    "pending": "pending",
    "transcribing": "processing",
    "rendering": "processing",
    "processing": "processing",
    "succeeded": "done",
    "completed": "done",
    "done": "done",
    "failed": "failed",
    "error": "failed",
}


class RenderServiceConfigError(RuntimeError):
    pass


@dataclass
class RenderServiceRequestError(RuntimeError):
    message: str
    status_code: int | None = None
    details: dict[str, Any] | None = None

    def __str__(self) -> str:
        status = f" status={self.status_code}" if self.status_code is not None else ""
        return f"{self.message}{status}".strip()


class RenderServiceClient:
    def __init__(
        self,
        *,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        resolved_base = (base_url or settings.RENDER_SERVICE_BASE_URL or "").strip()
        resolved_key = (api_key or settings.RENDER_SERVICE_API_KEY or "").strip()
        if not resolved_base:
            raise RenderServiceConfigError("RENDER_SERVICE_BASE_URL is required")
        if not resolved_key:
            raise RenderServiceConfigError("RENDER_SERVICE_API_KEY is required")
        self.base_url = resolved_base.rstrip("/")
        self.api_key = resolved_key
        self.timeout_seconds = float(timeout_seconds or settings.RENDER_SERVICE_TIMEOUT_SECONDS or 30.0)

    def submit(self, source: dict[str, Any]) -> str:
        body = self._request_json("POST", "/renders", json_payload={"source": source})
        # The provider answers with one render per output; we always request exactly one.
        if isinstance(body, list):
            if not body:
                raise RenderServiceRequestError("Render service returned no render for submission")
            body = body[0]
        if isinstance(body, dict) and "render_id" not in body and body.get("id"):
            body = {**body, "render_id": body["id"]}
        return self._parse_model(RenderSubmitOut, body, context="submit").render_id

    def poll(self, render_id: str) -> RenderStatusOut:
        body = self._request_json("GET", f"/renders/{render_id}")
        if not isinstance(body, dict):
            raise RenderServiceRequestError(f"Render service returned non-object payload for render {render_id}")
        raw_status = str(body.get("status") or "").lower()
        normalized = {
            "status": _STATUS_MAP.get(raw_status, raw_status),
            "url": body.get("url"),
            "error": body.get("error") or body.get("error_message"),
        }
        return self._parse_model(RenderStatusOut, normalized, context="poll")

    def _request_json(
        self,
        method: str,
        path: str,
        *,
        json_payload: dict[str, Any] | None = None,
    ) -> Any:
        with httpx.Client(base_url=self.base_url, timeout=self.timeout_seconds) as client:
            resp = client.request(method=method, url=path, json=json_payload, headers=self._headers())

        if resp.status_code >= 400:
            self._raise_request_error(resp)

        try:
            return resp.json()
        except ValueError as exc:
            raise RenderServiceRequestError(
                f"Render service returned non-JSON payload for {method} {path}",
                status_code=resp.status_code,
            ) from exc

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

    def _raise_request_error(self, resp: httpx.Response) -> None:
        message = f"Render service request failed ({resp.status_code})"
        try:
            payload = resp.json()
        except ValueError:
            payload = None
        details = payload if isinstance(payload, dict) else None
        if details and isinstance(details.get("message"), str):
            message = details["message"]
        raise RenderServiceRequestError(message=message, status_code=resp.status_code, details=details)

    def _parse_model(self, model_cls, payload: Any, *, context: str):
        try:
            return model_cls.model_validate(payload)
        except ValidationError as exc:
            raise RenderServiceRequestError(
                f"Render service payload validation failed for {context}: {exc}",
                details={"payload": payload},
            ) from exc
