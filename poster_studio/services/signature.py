"""Canonical signature of the poster form used for change detection."""

from __future__ import annotations

import json
from typing import Any

from poster_studio.schemas import PosterState
from poster_studio.services.fingerprint import fingerprint_image


def _signature_fields(state: PosterState) -> list[tuple[str, Any]]:
    # Pairs instead of a dict so the key order never depends on construction.
    return [
        ("brandName", state.brand_name),
        ("brandLogo", fingerprint_image(state.brand_logo)),
        ("agentName", state.agent_name),
        ("headline", state.headline),
        ("tagline", state.tagline),
        ("taglineAlign", state.tagline_align),
        ("scenarioImage", fingerprint_image(state.scenario_image)),
        ("productName", state.product_name),
        ("productImage", fingerprint_image(state.product_image)),
        ("seriesDescription", state.series_description),
        (
            "features",
            [[("id", item.id), ("text", item.text)] for item in state.features],
        ),
        (
            "shots",
            [
                [
                    ("id", shot.id),
                    ("label", shot.label),
                    ("fingerprint", fingerprint_image(shot.image)),
                ]
                for shot in state.shots
            ],
        ),
    ]


def _encode(value: Any) -> str:
    if isinstance(value, list) and value and isinstance(value[0], tuple):
        body = ",".join(f"{json.dumps(key)}:{_encode(item)}" for key, item in value)
        return "{" + body + "}"
    if isinstance(value, list):
        return "[" + ",".join(_encode(item) for item in value) + "]"
    return json.dumps(value, ensure_ascii=False)


def build_signature(state: PosterState) -> str:
    """Serialise every watched field into one comparable string."""

    return _encode(_signature_fields(state))


__all__ = ["build_signature"]
