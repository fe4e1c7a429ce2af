from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

RENDER_STATUS = Literal["pending", "processing", "done", "failed"]


class RenderSubmitOut(BaseModel):
    model_config = ConfigDict(extra="ignore")

    render_id: str = Field(..., min_length=1)


class RenderStatusOut(BaseModel):
    model_config = ConfigDict(extra="ignore")

    status: RENDER_STATUS
    url: Optional[str] = None
    error: Optional[str] = None
