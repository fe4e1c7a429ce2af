from __future__ import annotations

from typing import Annotated

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, StringConstraints, field_validator

CopyLine = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]

COPY_ITEM_COUNT = 3


class CopyScript(BaseModel):
    model_config = ConfigDict(extra="ignore")

    duration: float = Field(..., gt=0)
    text: CopyLine = Field(..., validation_alias=AliasChoices("text", "script"))


class CopyPack(BaseModel):
    """Copy returned by the copywriting stage; extra items beyond three are dropped."""

    model_config = ConfigDict(extra="ignore")

    hooks: list[CopyLine] = Field(..., min_length=COPY_ITEM_COUNT)
    scripts: list[CopyScript] = Field(..., min_length=1)
    ctas: list[CopyLine] = Field(..., min_length=COPY_ITEM_COUNT)
    headlines: list[CopyLine] = Field(..., min_length=COPY_ITEM_COUNT)
    primary_texts: list[CopyLine] = Field(..., min_length=COPY_ITEM_COUNT)

    @field_validator("hooks", "ctas", "headlines", "primary_texts")
    @classmethod
    def keep_first_three(cls, value: list[str]) -> list[str]:
        return value[:COPY_ITEM_COUNT]
