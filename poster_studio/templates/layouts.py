"""Fixed feature-callout slots shared by the prompt compiler and the renderer."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Sequence, TypeVar

T = TypeVar("T")

MIN_FEATURE_SLOTS = 3
MAX_FEATURE_SLOTS = 4
MIN_SHOT_COLUMNS = 3
MAX_SHOT_COLUMNS = 4

CANVAS_WIDTH = 900
CANVAS_HEIGHT = 1400


@dataclass(frozen=True)
class CalloutSlot:
    """Position of a callout dot inside the product panel.

    ``top`` and ``left`` are fractions of the panel size; the dashed line runs
    ``line_length`` pixels towards ``direction`` before the label bubble.
    """

    top: float
    left: float
    direction: Literal["left", "right"]
    line_length: int


FEATURE_LAYOUT_MAP: dict[int, tuple[CalloutSlot, ...]] = {
    3: (
        CalloutSlot(top=0.24, left=0.64, direction="left", line_length=160),
        CalloutSlot(top=0.48, left=0.36, direction="right", line_length=170),
        CalloutSlot(top=0.72, left=0.62, direction="left", line_length=170),
    ),
    4: (
        CalloutSlot(top=0.22, left=0.66, direction="left", line_length=160),
        CalloutSlot(top=0.38, left=0.34, direction="right", line_length=170),
        CalloutSlot(top=0.60, left=0.64, direction="left", line_length=170),
        CalloutSlot(top=0.78, left=0.36, direction="right", line_length=170),
    ),
}


def feature_display_count(count: int) -> int:
    return min(max(count, MIN_FEATURE_SLOTS), MAX_FEATURE_SLOTS)


def feature_slots(count: int) -> tuple[CalloutSlot, ...]:
    """Return the callout slots used for ``count`` features."""

    return FEATURE_LAYOUT_MAP.get(feature_display_count(count), FEATURE_LAYOUT_MAP[MAX_FEATURE_SLOTS])


def visible_features(features: Sequence[T]) -> list[T]:
    """Features that land in a layout slot, truncated to the slot count."""

    return list(features[: len(feature_slots(len(features)))])


def visible_shots(shots: Sequence[T]) -> list[T]:
    return list(shots[:MAX_SHOT_COLUMNS])


def shot_columns(shots: Sequence[object]) -> int:
    return len(visible_shots(shots)) or MIN_SHOT_COLUMNS


__all__ = [
    "CANVAS_HEIGHT",
    "CANVAS_WIDTH",
    "CalloutSlot",
    "FEATURE_LAYOUT_MAP",
    "MAX_FEATURE_SLOTS",
    "MAX_SHOT_COLUMNS",
    "MIN_FEATURE_SLOTS",
    "MIN_SHOT_COLUMNS",
    "feature_display_count",
    "feature_slots",
    "shot_columns",
    "visible_features",
    "visible_shots",
]
