from __future__ import annotations

from typing import Any

from poster_studio.models.payloads import (
    Canvas,
    DesignerAssets,
    DesignerPayload,
    FeatureEntry,
    PosterMetadata,
    ShotAsset,
    ShotEntry,
)
from poster_studio.schemas import PosterState
from poster_studio.services.designer import NotConfirmedError
from poster_studio.services.prompt import shot_label
from poster_studio.templates.layouts import CANVAS_HEIGHT, CANVAS_WIDTH


def _strip(value: str | None) -> str:
    return (value or "").strip()


def build_designer_payload(state: PosterState, prompt: str, *, is_confirmed: bool) -> dict[str, Any]:
    """Serialise the confirmed poster into the designer request body.

    Raises :class:`NotConfirmedError` when the assets are not confirmed
    against the current content.
    """

    if not is_confirmed:
        raise NotConfirmedError()

    # Asset order and default labels count only the shots that carry an image.
    shot_assets = [
        ShotAsset(
            id=shot.id,
            order=index + 1,
            label=shot_label(shot.label, index),
            image=shot.image,
        )
        for index, shot in enumerate(shot for shot in state.shots if shot.image)
    ]

    payload = DesignerPayload(
        prompt=prompt,
        canvas=Canvas(width=CANVAS_WIDTH, height=CANVAS_HEIGHT),
        metadata=PosterMetadata(
            brand_name=_strip(state.brand_name),
            agent_name=_strip(state.agent_name),
            headline=_strip(state.headline),
            tagline=_strip(state.tagline),
            tagline_align=state.tagline_align,
            product_name=_strip(state.product_name),
            series_description=_strip(state.series_description),
        ),
        features=[
            FeatureEntry(id=feature.id, order=index + 1, text=_strip(feature.text))
            for index, feature in enumerate(state.features)
        ],
        shots=[
            ShotEntry(
                id=shot.id,
                order=index + 1,
                label=shot_label(shot.label, index),
                has_image=bool(shot.image),
            )
            for index, shot in enumerate(state.shots)
        ],
        assets=DesignerAssets(
            brand_logo=state.brand_logo or None,
            scenario_image=state.scenario_image or None,
            product_image=state.product_image or None,
            shot_images=shot_assets or None,
        ),
    )
    return payload.to_wire()


__all__ = ["build_designer_payload"]
