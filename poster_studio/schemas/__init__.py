from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _EditorModel(BaseModel):
    """Base model that ignores unknown fields sent by the editor front-end."""

    model_config = ConfigDict(extra="ignore")


def new_item_id() -> str:
    return str(uuid.uuid4())


ConfirmationStatus = Literal["needs-review", "dirty", "confirmed"]
TaglineAlign = Literal["left", "right"]
DesignerStatus = Literal["idle", "loading", "success", "error"]


class Feature(_EditorModel):
    """A single feature callout placed around the product hero."""

    id: str = Field(default_factory=new_item_id)
    text: str = ""


class Shot(_EditorModel):
    """A thumbnail in the bottom shot row."""

    id: str = Field(default_factory=new_item_id)
    label: str = ""
    image: Optional[str] = Field(
        None,
        description="Binary-encoded image (usually a data URL) for the thumbnail.",
    )


def _default_features() -> list[Feature]:
    return [
        Feature(text="智能控温 精准锁鲜"),
        Feature(text="一键清洗 轻松省时"),
        Feature(text="多段变速 精细研磨"),
        Feature(text="静音降噪 舒适体验"),
    ]


def _default_shots() -> list[Shot]:
    return [
        Shot(label="正面视图"),
        Shot(label="侧面视图"),
        Shot(label="细节特写"),
    ]


class PosterState(_EditorModel):
    """Full form snapshot edited by the user."""

    brand_name: str = "KITCHEN PRO"
    brand_logo: Optional[str] = None
    agent_name: str = "旗舰渠道 · 全国分销"
    headline: str = "新一代厨房电器解决方案"
    tagline: str = "智造好厨房"
    tagline_align: TaglineAlign = "right"
    scenario_image: Optional[str] = None
    product_name: str = "多功能破壁料理机"
    product_image: Optional[str] = None
    features: list[Feature] = Field(default_factory=_default_features)
    series_description: str = "三视图 / 系列款式展示"
    shots: list[Shot] = Field(default_factory=_default_shots)


class PosterStateUpdate(_EditorModel):
    """Partial edit of the scalar and image fields of :class:`PosterState`.

    Only the fields present in the request body are applied. Sending an empty
    string for an image clears it.
    """

    brand_name: Optional[str] = None
    brand_logo: Optional[str] = None
    agent_name: Optional[str] = None
    headline: Optional[str] = None
    tagline: Optional[str] = None
    tagline_align: Optional[TaglineAlign] = None
    scenario_image: Optional[str] = None
    product_name: Optional[str] = None
    product_image: Optional[str] = None
    series_description: Optional[str] = None

    @field_validator("brand_logo", "scenario_image", "product_image", mode="after")
    @classmethod
    def _empty_image_clears(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            return ""
        return value

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class FeatureUpdate(_EditorModel):
    text: str


class ShotUpdate(_EditorModel):
    label: Optional[str] = None
    image: Optional[str] = None

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class ConfirmationRecord(_EditorModel):
    """Confirmation bookkeeping; demotion to ``dirty`` keeps the last stamp."""

    status: ConfirmationStatus = "needs-review"
    confirmed_signature: str = ""
    confirmed_at: Optional[datetime] = None


class ConfirmationView(_EditorModel):
    status: ConfirmationStatus
    label: str
    message: str
    confirm_label: str
    is_confirmed: bool
    can_confirm: bool
    confirmed_at: Optional[datetime] = None
    confirmed_at_display: str = ""
    signature: str


class PosterSessionView(_EditorModel):
    poster: PosterState
    confirmation: ConfirmationView


class PromptResponse(_EditorModel):
    prompt: str
    is_confirmed: bool


class DesignerSubmitRequest(_EditorModel):
    """Overrides for the designer endpoint; configured values are used otherwise."""

    endpoint: Optional[str] = None
    api_key: Optional[str] = None


class DesignerResult(_EditorModel):
    image_src: str = ""
    data: Any = None


class DesignerView(_EditorModel):
    status: DesignerStatus = "idle"
    message: str = ""
    result: Optional[DesignerResult] = None


__all__ = [
    "ConfirmationRecord",
    "ConfirmationStatus",
    "ConfirmationView",
    "DesignerResult",
    "DesignerStatus",
    "DesignerSubmitRequest",
    "DesignerView",
    "Feature",
    "FeatureUpdate",
    "PosterSessionView",
    "PosterState",
    "PosterStateUpdate",
    "PromptResponse",
    "Shot",
    "ShotUpdate",
    "TaglineAlign",
    "new_item_id",
]
