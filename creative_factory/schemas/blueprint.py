from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

AspectRatio = Literal["9:16", "1:1", "16:9"]


class SafeZone(BaseModel):
    top: int
    bottom: int
    left: int
    right: int
    cta_bottom: int


# Pixel margins kept clear of platform UI, per format.
SAFE_ZONES: dict[str, SafeZone] = {
    "9:16": SafeZone(top=150, bottom=200, left=40, right=40, cta_bottom=180),
    "1:1": SafeZone(top=80, bottom=80, left=40, right=40, cta_bottom=100),
    "16:9": SafeZone(top=60, bottom=80, left=80, right=80, cta_bottom=60),
}

RENDER_DIMENSIONS: dict[str, tuple[int, int]] = {
    "9:16": (1080, 1920),
    "1:1": (1080, 1080),
    "16:9": (1920, 1080),
}


class TextOverlay(BaseModel):
    model_config = ConfigDict(extra="ignore")

    text: str = ""
    position: str = "center"
    font_size: str = "medium"
    # None means the generator never declared safe-zone compliance.
    safe_zone: Optional[bool] = None


class AssetPlaceholder(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: str
    url: Optional[str] = None


class Scene(BaseModel):
    model_config = ConfigDict(extra="ignore")

    scene_id: str
    start_time: float = Field(..., ge=0)
    end_time: float = Field(..., ge=0)
    text_overlay: Optional[TextOverlay] = None
    asset_placeholder: Optional[AssetPlaceholder] = None
    transition: Optional[str] = None


class SubtitleCue(BaseModel):
    model_config = ConfigDict(extra="ignore")

    start: float = Field(..., ge=0)
    end: float = Field(..., ge=0)
    text: str


class CtaPlacement(BaseModel):
    model_config = ConfigDict(extra="ignore")

    position: str = "bottom_center"
    timing: Optional[float] = None
    text: Optional[str] = None


class BrandColors(BaseModel):
    model_config = ConfigDict(extra="ignore")

    primary: str = "#000000"
    secondary: str = "#ffffff"


class Blueprint(BaseModel):
    model_config = ConfigDict(extra="ignore")

    aspect_ratio: AspectRatio
    duration_seconds: float = Field(..., gt=0)
    scenes: list[Scene] = Field(..., min_length=1)
    subtitles: list[SubtitleCue] = Field(default_factory=list)
    cta_placement: Optional[CtaPlacement] = None
    brand_colors: Optional[BrandColors] = None
    variant: str = "A"
    variant_index: int = 0
    lead_hook: Optional[str] = None
    lead_cta: Optional[str] = None

    def to_storage(self) -> dict[str, Any]:
        return self.model_dump(mode="json")
