"""Compile the poster form into the design prompt sent to Glibatree."""

from __future__ import annotations

from typing import List, Optional

from poster_studio.schemas import PosterState
from poster_studio.templates.layouts import CANVAS_HEIGHT, CANVAS_WIDTH, feature_slots

# Placeholders shared with the preview renderer.
PLACEHOLDERS = {
    "brand_name": "品牌名称 / LOGO",
    "agent_name": "代理名 / 分销名",
    "headline": "标题文案",
    "tagline": "副标题文案",
    "product_name": "主产品名称",
    "series_description": "三视图 / 系列说明",
}


def feature_placeholder(index: int) -> str:
    return f"功能点 {index + 1}"


def shot_placeholder(index: int) -> str:
    return f"小图 {index + 1}"


def text_or_placeholder(value: Optional[str], field: str) -> str:
    text = (value or "").strip()
    return text or PLACEHOLDERS[field]


def feature_text(features: list, index: int) -> str:
    if index < len(features):
        text = (features[index].text or "").strip()
        if text:
            return text
    return feature_placeholder(index)


def shot_label(label: Optional[str], index: int) -> str:
    return (label or "").strip() or shot_placeholder(index)


CONFIRMED_LINE = "以下素材已由品牌方确认无误，请严格按照对应内容进行排版与设计。"
UNCONFIRMED_LINE = "素材仍在完善中，请以最新文本说明为准，保持整体风格一致。"

SHOT_WITH_IMAGE = "（已提供素材，请转换为灰度并保持统一风格）"
SHOT_WITHOUT_IMAGE = "（无素材，请设计灰度/黑白小图）"


def compile_prompt(state: PosterState, is_confirmed: bool) -> str:
    """Render ``state`` into the ordered instruction document.

    The output depends only on the arguments; the confirmation flag changes
    the qualifier on the second line and nothing else.
    """

    brand = text_or_placeholder(state.brand_name, "brand_name")
    agent = text_or_placeholder(state.agent_name, "agent_name")
    product = text_or_placeholder(state.product_name, "product_name")
    headline = text_or_placeholder(state.headline, "headline")
    tagline = text_or_placeholder(state.tagline, "tagline")

    lines: List[str] = [
        "使用 Glibatree Art Designer 绘制现代简洁风厨房电器宣传海报。",
        CONFIRMED_LINE if is_confirmed else UNCONFIRMED_LINE,
        f"画布尺寸 {CANVAS_WIDTH}x{CANVAS_HEIGHT} 像素，背景为浅灰或白色，整体主色为黑/红/灰银，留白充足、排版规整。",
        "版式结构：",
        "1. 顶部横条：左侧放品牌 Logo，右侧放代理名或分销名。",
        "   Logo 素材：已上传，请在左上角以原始比例放置。"
        if state.brand_logo
        else f"   Logo 文案呈现：{brand}.",
        f"   品牌名：{brand}；代理/分销：{agent}.",
        "2. 左侧约 40% 宽度放应用场景图。",
        "   应用场景素材：已上传，请与左侧区域对齐。"
        if state.scenario_image
        else "   若无素材，请绘制与厨房使用相关的应用场景，光线柔和。",
        "3. 右侧为视觉中心，摆放主产品 45° 渲染图，背景浅灰或白色，金属/塑料质感清晰。",
        f"   使用上传的主产品素材，产品名称：{product}."
        if state.product_image
        else f"   产品名称：{product}，需呈现高端金属与塑料质感。",
        "   在产品四周添加 3–4 条功能点标注（虚线连接小号黑色文字气泡）：",
    ]

    for index, _slot in enumerate(feature_slots(len(state.features))):
        lines.append(f"   {index + 1:02d}. {feature_text(state.features, index)}")

    lines.extend(
        [
            "   标注编号从 01 开始，气泡白底细阴影，文字使用黑色。",
            "4. 中部标题使用大号粗体红字。",
            f"   标题文案：{headline}.",
            "5. 底部横向排列 3–4 张灰度/黑白的小图，表现三视图或系列款式。",
        ]
    )
    if state.shots:
        lines.append("   底部小图说明：")
        for index, shot in enumerate(state.shots):
            suffix = SHOT_WITH_IMAGE if shot.image else SHOT_WITHOUT_IMAGE
            lines.append(f"   {index + 1}. {shot_label(shot.label, index)}{suffix}")
    lines.append("   每张小图之间等距，整体呈现灰度效果。")
    lines.append("6. 左下或右下角放置副标题/标语，使用大号粗体红字。")
    align = "左对齐" if state.tagline_align == "left" else "右对齐"
    lines.append(f"   副标题文案：{tagline}，对齐方式：{align}。")
    lines.append("额外要求：功能说明文字保持黑色，标题与副标题使用明亮红色，突出产品质感与品牌调性。")

    series = (state.series_description or "").strip()
    if series:
        lines.append(f"底部说明文案：{series}.")

    return "\n".join(lines)


__all__ = [
    "CONFIRMED_LINE",
    "PLACEHOLDERS",
    "SHOT_WITHOUT_IMAGE",
    "SHOT_WITH_IMAGE",
    "UNCONFIRMED_LINE",
    "compile_prompt",
    "feature_placeholder",
    "feature_text",
    "shot_label",
    "shot_placeholder",
    "text_or_placeholder",
]
