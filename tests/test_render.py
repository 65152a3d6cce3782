from __future__ import annotations

import base64
from io import BytesIO

from PIL import Image

from poster_studio.schemas import Feature, PosterState, Shot
from poster_studio.services.render import (
    brand_initials,
    export_pdf,
    export_png,
    load_image_from_data_url,
    render_layout_preview,
    render_poster,
)


def make_data_url(color: tuple[int, int, int]) -> str:
    image = Image.new("RGB", (120, 120), color)
    buffer = BytesIO()
    image.save(buffer, format="PNG")
    encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
    return f"data:image/png;base64,{encoded}"


def make_state(**overrides) -> PosterState:
    data = {
        "brand_name": "ACME Home",
        "features": [Feature(id=f"f{i}", text=f"Feature {i}") for i in range(5)],
        "shots": [Shot(id="s1", label="Front"), Shot(id="s2", label=""), Shot(id="s3", label="Detail")],
    }
    data.update(overrides)
    return PosterState(**data)


def test_brand_initials() -> None:
    assert brand_initials("ACME Home") == "AH"
    assert brand_initials("kitchen") == "KI"
    assert brand_initials("   ") == "LOGO"
    assert brand_initials(None) == "LOGO"


def test_load_image_from_data_url_rejects_invalid_inputs() -> None:
    assert load_image_from_data_url(None) is None
    assert load_image_from_data_url("no-comma") is None
    assert load_image_from_data_url("data:image/png,raw") is None
    assert load_image_from_data_url("data:image/png;base64,bm90LWFuLWltYWdl") is None

    image = load_image_from_data_url(make_data_url((255, 0, 0)))
    assert image is not None
    assert image.mode == "RGBA"
    assert image.size == (120, 120)


def test_render_poster_canvas_size() -> None:
    poster = render_poster(make_state())
    assert poster.size == (900, 1400)


def test_render_poster_embeds_uploaded_assets() -> None:
    state = make_state(
        brand_logo=make_data_url((255, 0, 0)),
        scenario_image=make_data_url((0, 200, 0)),
        product_image=make_data_url((0, 0, 255)),
        shots=[
            Shot(id="s1", label="Front", image=make_data_url((245, 220, 0))),
            Shot(id="s2", label="Side"),
            Shot(id="s3", label="Detail"),
        ],
    )
    poster = render_poster(state).convert("RGB")

    # Centre of the scenario panel is covered by the green upload.
    red, green, blue = poster.getpixel((213, 625))
    assert red < 5 and blue < 5
    assert abs(green - 200) < 5


def test_export_png_and_pdf() -> None:
    state = make_state()

    png = export_png(state)
    with Image.open(BytesIO(png)) as image:
        assert image.format == "PNG"
        assert image.size == (900, 1400)

    scaled = export_png(state, pixel_ratio=0.5)
    with Image.open(BytesIO(scaled)) as image:
        assert image.size == (450, 700)

    pdf = export_pdf(state)
    assert pdf.startswith(b"%PDF")


def test_layout_preview_mentions_sections_and_clamped_features() -> None:
    preview = render_layout_preview(make_state())

    assert "顶部横条" in preview
    assert "AH · ACME Home" in preview
    assert "功能点 04: Feature 3" in preview
    assert "Feature 4" not in preview
    assert "小图 2" in preview
    assert "右对齐" in preview


def test_layout_preview_fills_missing_feature_slots() -> None:
    preview = render_layout_preview(make_state(features=[Feature(id="f1", text="Only")]))

    assert "功能点 01: Only" in preview
    assert "功能点 02: 功能点 2" in preview
    assert "功能点 03: 功能点 3" in preview
