"""Pydantic wire models for the Glibatree designer request."""

from .payloads import DesignerAssets, DesignerPayload  # noqa: F401

__all__ = ["DesignerAssets", "DesignerPayload"]
