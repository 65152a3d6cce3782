"""Request body accepted by the Glibatree Art Designer endpoint.

Field names on the wire are camelCase; dump with ``by_alias=True``.
"""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class Canvas(_WireModel):
    width: int = 900
    height: int = 1400


class PosterMetadata(_WireModel):
    brand_name: str = Field(alias="brandName")
    agent_name: str = Field(alias="agentName")
    headline: str
    tagline: str
    tagline_align: Literal["left", "right"] = Field(alias="taglineAlign")
    product_name: str = Field(alias="productName")
    series_description: str = Field(alias="seriesDescription")


class FeatureEntry(_WireModel):
    id: str
    order: int = Field(..., ge=1)
    text: str


class ShotEntry(_WireModel):
    id: str
    order: int = Field(..., ge=1)
    label: str
    has_image: bool = Field(alias="hasImage")


class ShotAsset(_WireModel):
    id: str
    order: int = Field(..., ge=1)
    label: str
    image: str


class DesignerAssets(_WireModel):
    """Only images that were actually provided; absent ones stay unset."""

    brand_logo: Optional[str] = Field(None, alias="brandLogo")
    scenario_image: Optional[str] = Field(None, alias="scenarioImage")
    product_image: Optional[str] = Field(None, alias="productImage")
    shot_images: Optional[List[ShotAsset]] = Field(None, alias="shotImages")


class DesignerPayload(_WireModel):
    prompt: str
    canvas: Canvas = Field(default_factory=Canvas)
    locale: str = "zh-CN"
    theme: str = "modern-minimal-kitchen"
    metadata: PosterMetadata
    features: List[FeatureEntry]
    shots: List[ShotEntry]
    assets: DesignerAssets = Field(default_factory=DesignerAssets)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)
