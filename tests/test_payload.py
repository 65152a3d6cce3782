from __future__ import annotations

import pytest

from poster_studio.schemas import Feature, PosterState, Shot
from poster_studio.services.designer import NotConfirmedError
from poster_studio.services.payload import build_designer_payload

IMAGE = "data:image/png;base64,iVBORw0KGgo="


def make_state(**overrides) -> PosterState:
    data = {
        "brand_name": "ACME",
        "agent_name": " East Channel ",
        "headline": "Best Widget",
        "tagline": "Built to last",
        "product_name": "Widget 3000",
        "series_description": "Front / Side / Detail",
        "features": [
            Feature(id="f1", text="A"),
            Feature(id="f2", text=" B "),
            Feature(id="f3", text="C"),
        ],
        "shots": [
            Shot(id="s1", label="Front"),
            Shot(id="s2", label="Side"),
            Shot(id="s3", label="Detail"),
        ],
    }
    data.update(overrides)
    return PosterState(**data)


def test_payload_requires_confirmation() -> None:
    with pytest.raises(NotConfirmedError):
        build_designer_payload(make_state(), "prompt", is_confirmed=False)


def test_payload_shape_without_images() -> None:
    payload = build_designer_payload(make_state(), "the prompt", is_confirmed=True)

    assert payload["prompt"] == "the prompt"
    assert payload["canvas"] == {"width": 900, "height": 1400}
    assert payload["locale"] == "zh-CN"
    assert payload["theme"] == "modern-minimal-kitchen"
    assert payload["metadata"] == {
        "brandName": "ACME",
        "agentName": "East Channel",
        "headline": "Best Widget",
        "tagline": "Built to last",
        "taglineAlign": "right",
        "productName": "Widget 3000",
        "seriesDescription": "Front / Side / Detail",
    }
    assert [(item["order"], item["text"]) for item in payload["features"]] == [(1, "A"), (2, "B"), (3, "C")]
    assert [item["id"] for item in payload["features"]] == ["f1", "f2", "f3"]
    assert payload["shots"] == [
        {"id": "s1", "order": 1, "label": "Front", "hasImage": False},
        {"id": "s2", "order": 2, "label": "Side", "hasImage": False},
        {"id": "s3", "order": 3, "label": "Detail", "hasImage": False},
    ]
    assert payload["assets"] == {}


@pytest.mark.parametrize(
    "field, key",
    [
        ("brand_logo", "brandLogo"),
        ("scenario_image", "scenarioImage"),
        ("product_image", "productImage"),
    ],
)
def test_assets_include_only_present_images(field, key) -> None:
    payload = build_designer_payload(make_state(**{field: IMAGE}), "p", is_confirmed=True)
    assert payload["assets"] == {key: IMAGE}


def test_shot_assets_skip_shots_without_images() -> None:
    state = make_state(
        shots=[
            Shot(id="s1", label="Front"),
            Shot(id="s2", label="", image=IMAGE),
            Shot(id="s3", label="Detail", image=IMAGE),
        ]
    )

    payload = build_designer_payload(state, "p", is_confirmed=True)

    assert payload["assets"] == {
        "shotImages": [
            {"id": "s2", "order": 1, "label": "小图 1", "image": IMAGE},
            {"id": "s3", "order": 2, "label": "Detail", "image": IMAGE},
        ]
    }
    assert [shot["hasImage"] for shot in payload["shots"]] == [False, True, True]
    assert payload["shots"][1]["label"] == "小图 2"


def test_features_are_not_clamped_in_payload() -> None:
    features = [Feature(id=f"f{i}", text=str(i)) for i in range(5)]
    payload = build_designer_payload(make_state(features=features), "p", is_confirmed=True)
    assert [item["order"] for item in payload["features"]] == [1, 2, 3, 4, 5]
