"""Preview rendering and PNG / PDF export of the poster."""

from __future__ import annotations

import base64
import logging
from io import BytesIO
from typing import Tuple

from PIL import Image, ImageDraw, ImageFont, ImageOps

from poster_studio.schemas import PosterState
from poster_studio.services.prompt import (
    feature_placeholder,
    shot_label,
    text_or_placeholder,
)
from poster_studio.templates.layouts import (
    CANVAS_HEIGHT,
    CANVAS_WIDTH,
    feature_slots,
    shot_columns,
    visible_features,
    visible_shots,
)

logger = logging.getLogger(__name__)

ACCENT_RED = (239, 76, 84)
INK_BLACK = (17, 17, 17)
GUIDE_GREY = (203, 210, 217)
PANEL_GREY = (243, 244, 246)
MUTED_GREY = (107, 114, 128)
WHITE = (255, 255, 255)

# A4 portrait in points.
A4_POINTS = (595, 842)

try:
    RESAMPLE_LANCZOS = Image.Resampling.LANCZOS
except AttributeError:  # pragma: no cover - Pillow < 9.1
    RESAMPLE_LANCZOS = Image.LANCZOS  # type: ignore[attr-defined]

# Panel boxes on the 900x1400 canvas: (left, top, right, bottom).
HEADER_BOX = (64, 56, 836, 120)
HEADLINE_BOX = (64, 160, 836, 230)
SCENARIO_BOX = (64, 270, 362, 980)
PRODUCT_NAME_BOX = (402, 270, 836, 320)
PRODUCT_BOX = (402, 344, 836, 980)
SERIES_BOX = (64, 1030, 836, 1060)
SHOT_ROW_BOX = (64, 1084, 836, 1260)
TAGLINE_BOX = (64, 1290, 836, 1350)


def brand_initials(name: str | None) -> str:
    """Two-letter monogram shown when no logo image is available."""

    clean = (name or "").strip()
    if not clean:
        return "LOGO"
    if " " in clean:
        first, second = clean.split()[:2]
        initials = (first[:1] + second[:1]).upper()
        return initials or clean[:2].upper()
    return clean[:2].upper()


def load_image_from_data_url(data_url: str | None) -> Image.Image | None:
    """Decode a base64 data URL into a Pillow image, returning ``None`` on error."""
    if not data_url:
        return None
    if "," not in data_url:
        logger.warning("Data URL missing comma separator: %s", data_url[:32])
        return None

    header, encoded = data_url.split(",", 1)
    if not header.startswith("data:") or ";base64" not in header:
        logger.warning("Unsupported data URL header: %s", header)
        return None

    try:
        binary = base64.b64decode(encoded)
    except (base64.binascii.Error, ValueError) as exc:
        logger.warning("Failed to decode data URL: %s", exc)
        return None

    try:
        image = Image.open(BytesIO(binary))
        image.load()
    except Exception as exc:
        logger.warning("Decoded image is invalid: %s", exc)
        return None

    return image.convert("RGBA")


def _load_font(size: int, *, weight: str = "regular") -> ImageFont.ImageFont:
    """Attempt to load a CJK-capable font while gracefully falling back to default."""
    font_candidates = [
        "NotoSansCJKsc-Bold.otf" if weight != "regular" else "NotoSansCJKsc-Regular.otf",
        "NotoSansCJK-Bold.ttc" if weight != "regular" else "NotoSansCJK-Regular.ttc",
        "PingFang.ttc",
        "Microsoft YaHei.ttf",
        "Arial.ttf" if weight == "regular" else "Arial Bold.ttf",
        "DejaVuSans.ttf" if weight == "regular" else "DejaVuSans-Bold.ttf",
    ]
    for candidate in font_candidates:
        try:
            return ImageFont.truetype(candidate, size=size)
        except OSError:
            continue
    return ImageFont.load_default(size=size)


def _draw_text(
    draw: ImageDraw.ImageDraw,
    text: str,
    box: Tuple[int, int, int, int],
    font: ImageFont.ImageFont,
    fill: Tuple[int, int, int],
    *,
    align: str = "left",
) -> None:
    left, top, right, _bottom = box
    width = draw.textlength(text, font=font)
    if align == "center":
        x = left + (right - left - width) / 2
    elif align == "right":
        x = right - width
    else:
        x = left
    draw.text((int(x), int(top)), text, font=font, fill=fill)


def _paste_image(
    canvas: Image.Image,
    asset: Image.Image,
    box: Tuple[int, int, int, int],
    *,
    mode: str = "contain",
) -> None:
    """Paste ``asset`` into ``box`` on ``canvas`` while preserving aspect ratio."""
    left, top, right, bottom = box
    target_size = (max(right - left, 1), max(bottom - top, 1))

    if mode == "cover":
        resized = ImageOps.fit(asset, target_size, RESAMPLE_LANCZOS)
    else:
        resized = asset.copy()
        resized.thumbnail(target_size, RESAMPLE_LANCZOS)

    offset_x = left + (target_size[0] - resized.width) // 2
    offset_y = top + (target_size[1] - resized.height) // 2
    converted = resized.convert("RGBA")
    mask = converted.split()[3] if "A" in converted.getbands() else None
    canvas.paste(converted, (offset_x, offset_y), mask)


def _placeholder_panel(
    draw: ImageDraw.ImageDraw,
    box: Tuple[int, int, int, int],
    label: str,
    font: ImageFont.ImageFont,
) -> None:
    draw.rounded_rectangle(box, radius=24, fill=PANEL_GREY, outline=GUIDE_GREY, width=2)
    middle = box[1] + (box[3] - box[1]) // 2 - 10
    _draw_text(draw, label, (box[0], middle, box[2], box[3]), font, MUTED_GREY, align="center")


def _draw_callouts(
    canvas: Image.Image,
    draw: ImageDraw.ImageDraw,
    state: PosterState,
    font_number: ImageFont.ImageFont,
    font_text: ImageFont.ImageFont,
) -> None:
    left, top, right, bottom = PRODUCT_BOX
    panel_w, panel_h = right - left, bottom - top
    slots = feature_slots(len(state.features))
    features = visible_features(state.features)

    for index, slot in enumerate(slots):
        if index < len(features):
            text = (features[index].text or "").strip() or feature_placeholder(index)
        else:
            text = feature_placeholder(index)
        x = int(left + panel_w * slot.left)
        y = int(top + panel_h * slot.top)
        draw.ellipse((x - 7, y - 7, x + 7, y + 7), fill=WHITE, outline=ACCENT_RED, width=3)

        step = -1 if slot.direction == "left" else 1
        line_start = x + step * 12
        line_end = line_start + step * slot.line_length
        for dash in range(0, slot.line_length, 8):
            x0 = line_start + step * dash
            x1 = line_start + step * min(dash + 4, slot.line_length)
            draw.line((x0, y, x1, y), fill=INK_BLACK, width=1)

        label = f"{index + 1:02d} {text}"
        label_width = int(draw.textlength(label, font=font_text)) + 24
        if slot.direction == "left":
            bubble = (line_end - label_width - 6, y - 18, line_end - 6, y + 18)
        else:
            bubble = (line_end + 6, y - 18, line_end + 6 + label_width, y + 18)
        bubble = (
            max(bubble[0], 0),
            bubble[1],
            min(bubble[2], canvas.width),
            bubble[3],
        )
        draw.rounded_rectangle(bubble, radius=10, fill=WHITE, outline=GUIDE_GREY)
        _draw_text(draw, f"{index + 1:02d}", (bubble[0] + 10, y - 12, bubble[2], bubble[3]), font_number, ACCENT_RED)
        number_width = int(draw.textlength(f"{index + 1:02d} ", font=font_number))
        _draw_text(
            draw,
            text,
            (bubble[0] + 10 + number_width, y - 11, bubble[2], bubble[3]),
            font_text,
            INK_BLACK,
        )


def render_poster(state: PosterState) -> Image.Image:
    """Draw the 900x1400 preview of ``state``."""

    canvas = Image.new("RGBA", (CANVAS_WIDTH, CANVAS_HEIGHT), (*WHITE, 255))
    draw = ImageDraw.Draw(canvas)

    font_brand = _load_font(30, weight="bold")
    font_agent = _load_font(14, weight="semibold")
    font_headline = _load_font(48, weight="bold")
    font_product = _load_font(30, weight="bold")
    font_body = _load_font(16)
    font_number = _load_font(16, weight="bold")
    font_caption = _load_font(13, weight="semibold")
    font_tagline = _load_font(36, weight="bold")

    # Top bar
    logo_box = (HEADER_BOX[0], HEADER_BOX[1], HEADER_BOX[0] + 64, HEADER_BOX[1] + 64)
    logo = load_image_from_data_url(state.brand_logo)
    draw.ellipse(logo_box, fill=WHITE, outline=ACCENT_RED, width=2)
    if logo:
        _paste_image(canvas, logo, (logo_box[0] + 6, logo_box[1] + 6, logo_box[2] - 6, logo_box[3] - 6))
    else:
        _draw_text(
            draw,
            brand_initials(state.brand_name),
            (logo_box[0], logo_box[1] + 20, logo_box[2], logo_box[3]),
            font_body,
            ACCENT_RED,
            align="center",
        )
    brand_left = logo_box[2] + 24
    _draw_text(
        draw,
        text_or_placeholder(state.brand_name, "brand_name"),
        (brand_left, HEADER_BOX[1] + 6, HEADER_BOX[2], HEADER_BOX[3]),
        font_brand,
        INK_BLACK,
    )
    draw.rounded_rectangle((brand_left, HEADER_BOX[1] + 50, brand_left + 48, HEADER_BOX[1] + 54), radius=2, fill=ACCENT_RED)
    _draw_text(
        draw,
        text_or_placeholder(state.agent_name, "agent_name"),
        (HEADER_BOX[0], HEADER_BOX[1] + 24, HEADER_BOX[2], HEADER_BOX[3]),
        font_agent,
        MUTED_GREY,
        align="right",
    )

    _draw_text(draw, text_or_placeholder(state.headline, "headline"), HEADLINE_BOX, font_headline, ACCENT_RED, align="center")

    # Scenario panel
    scenario = load_image_from_data_url(state.scenario_image)
    if scenario:
        _paste_image(canvas, scenario, SCENARIO_BOX, mode="cover")
        draw.rounded_rectangle(SCENARIO_BOX, radius=30, outline=GUIDE_GREY, width=2)
    else:
        _placeholder_panel(draw, SCENARIO_BOX, "应用场景图", font_body)

    # Product panel
    _draw_text(draw, text_or_placeholder(state.product_name, "product_name"), PRODUCT_NAME_BOX, font_product, INK_BLACK)
    product = load_image_from_data_url(state.product_image)
    if product:
        draw.rounded_rectangle(PRODUCT_BOX, radius=30, fill=PANEL_GREY, outline=GUIDE_GREY, width=2)
        inset = (PRODUCT_BOX[2] - PRODUCT_BOX[0]) // 10
        _paste_image(
            canvas,
            product,
            (PRODUCT_BOX[0] + inset, PRODUCT_BOX[1] + inset, PRODUCT_BOX[2] - inset, PRODUCT_BOX[3] - inset),
        )
    else:
        _placeholder_panel(draw, PRODUCT_BOX, "上传 45° 主产品图", font_body)
    _draw_callouts(canvas, draw, state, font_number, font_body)

    # Shot row
    _draw_text(
        draw,
        text_or_placeholder(state.series_description, "series_description"),
        SERIES_BOX,
        font_caption,
        MUTED_GREY,
        align="center",
    )
    columns = shot_columns(state.shots)
    gap = 24
    row_left, row_top, row_right, row_bottom = SHOT_ROW_BOX
    cell_width = (row_right - row_left - gap * (columns - 1)) // columns
    for index, shot in enumerate(visible_shots(state.shots)):
        cell_left = row_left + index * (cell_width + gap)
        cell = (cell_left, row_top, cell_left + cell_width, row_bottom)
        draw.rounded_rectangle(cell, radius=24, fill=PANEL_GREY, outline=GUIDE_GREY)
        image_box = (cell[0] + 16, cell[1] + 16, cell[2] - 16, cell[3] - 48)
        thumb = load_image_from_data_url(shot.image)
        if thumb:
            _paste_image(canvas, ImageOps.grayscale(thumb).convert("RGBA"), image_box, mode="cover")
        else:
            draw.rounded_rectangle(image_box, radius=18, fill=WHITE, outline=GUIDE_GREY)
            _draw_text(draw, "小图", (image_box[0], image_box[1] + 40, image_box[2], image_box[3]), font_caption, MUTED_GREY, align="center")
        _draw_text(
            draw,
            shot_label(shot.label, index),
            (cell[0], cell[3] - 36, cell[2], cell[3]),
            font_caption,
            MUTED_GREY,
            align="center",
        )

    _draw_text(
        draw,
        text_or_placeholder(state.tagline, "tagline"),
        TAGLINE_BOX,
        font_tagline,
        ACCENT_RED,
        align="left" if state.tagline_align == "left" else "right",
    )
    return canvas


def _scaled(image: Image.Image, pixel_ratio: float) -> Image.Image:
    if pixel_ratio == 1:
        return image
    size = (max(int(image.width * pixel_ratio), 1), max(int(image.height * pixel_ratio), 1))
    return image.resize(size, RESAMPLE_LANCZOS)


def export_png(state: PosterState, *, pixel_ratio: float = 1.0) -> bytes:
    image = _scaled(render_poster(state), pixel_ratio).convert("RGB")
    buffer = BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def export_pdf(state: PosterState, *, pixel_ratio: float = 1.0) -> bytes:
    """Return a one-page A4 PDF with the poster fitted and centered."""

    poster = _scaled(render_poster(state), pixel_ratio).convert("RGB")
    page_w, page_h = A4_POINTS
    # Page raster keeps the poster pixels; resolution maps them back to points.
    ratio = min(page_w / poster.width, page_h / poster.height)
    scale = 1 / ratio
    page = Image.new("RGB", (int(page_w * scale), int(page_h * scale)), WHITE)
    offset = ((page.width - poster.width) // 2, (page.height - poster.height) // 2)
    page.paste(poster, offset)

    buffer = BytesIO()
    page.save(buffer, format="PDF", resolution=72 * scale)
    return buffer.getvalue()


def render_layout_preview(state: PosterState) -> str:
    """Return a textual preview summarising the layout structure."""

    logo_line = (
        f"已上传品牌 Logo（{text_or_placeholder(state.brand_name, 'brand_name')}）"
        if state.brand_logo
        else f"{brand_initials(state.brand_name)} · {text_or_placeholder(state.brand_name, 'brand_name')}"
    )
    scenario_line = "已上传场景图" if state.scenario_image else "应用场景图（待上传）"
    product_name = text_or_placeholder(state.product_name, "product_name")
    product_line = f"已上传 45° 渲染图（{product_name}）" if state.product_image else product_name
    features = visible_features(state.features)
    feature_lines = []
    for index, _slot in enumerate(feature_slots(len(state.features))):
        text = (features[index].text or "").strip() if index < len(features) else ""
        feature_lines.append(f"  - 功能点 {index + 1:02d}: {text or feature_placeholder(index)}")
    shots = visible_shots(state.shots)
    shot_count = sum(1 for shot in shots if shot.image)
    shot_lines = [
        f"  - {shot_label(shot.label, index)}{'（已上传）' if shot.image else ''}"
        for index, shot in enumerate(shots)
    ]
    align = "左对齐" if state.tagline_align == "left" else "右对齐"

    sections = [
        "顶部横条",
        f"  · 品牌 Logo（左上）：{logo_line}",
        f"  · 品牌代理名 / 分销名（右上）：{text_or_placeholder(state.agent_name, 'agent_name')}",
        "",
        "中部标题（大号粗体红字）",
        f"  · {text_or_placeholder(state.headline, 'headline')}",
        "",
        "左侧区域（约 40% 宽）",
        f"  · 应用场景图：{scenario_line}",
        "",
        "右侧区域（视觉中心）",
        f"  · 主产品 45° 渲染图：{product_line}",
        "  · 功能点标注：",
        *feature_lines,
        "",
        f"底部区域（{len(shots)} 列，已上传 {shot_count} 张小图）",
        f"  · {text_or_placeholder(state.series_description, 'series_description')}",
        *shot_lines,
        "",
        f"角落副标题 / 标语（{align}）",
        f"  · {text_or_placeholder(state.tagline, 'tagline')}",
    ]
    return "\n".join(sections)


__all__ = [
    "brand_initials",
    "export_pdf",
    "export_png",
    "load_image_from_data_url",
    "render_layout_preview",
    "render_poster",
]
