"""HTTP client for the Glibatree Art Designer endpoint."""

from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence

import requests

from poster_studio.config import DesignerConfig

logger = logging.getLogger(__name__)


class DesignerError(RuntimeError):
    """Base class for failures surfaced to the editor as a status message."""

    message = "调用失败，请稍后重试。"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)


class NotConfirmedError(DesignerError):
    message = "请先在“素材确认”中点击“确认素材无误”，并确保素材未再次改动。"


class MissingEndpointError(DesignerError):
    message = "请填写 Glibatree Art Designer 接口地址。"


class BusyError(DesignerError):
    message = "已有绘制请求正在进行，请等待完成后再试。"


class TransportFailureError(DesignerError):
    def __init__(self, detail: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        self.detail = detail
        if status_code is not None:
            text = f"接口返回 {status_code}: {detail or '未知错误'}"
        else:
            text = detail or self.message
        super().__init__(text)


SUCCESS_MESSAGE = "绘制请求已完成，以下为返回结果。"
UNRECOGNIZED_SHAPE_MESSAGE = "绘制请求已完成，但返回数据中未包含图像，请查看响应详情。"


@dataclass
class DesignerResponse:
    """Outcome of a successful HTTP exchange.

    ``image_src`` is empty when no strategy recognised an image reference;
    that is still a success, only the advisory message differs.
    """

    image_src: str
    data: Any = None

    @property
    def unrecognized_shape(self) -> bool:
        return not self.image_src

    @property
    def message(self) -> str:
        return UNRECOGNIZED_SHAPE_MESSAGE if self.unrecognized_shape else SUCCESS_MESSAGE


def _first(value: Any) -> Any:
    if isinstance(value, list) and value:
        return value[0]
    return None


ExtractionStrategy = Callable[[dict[str, Any]], Any]

# Tried in order; the first truthy candidate wins.
EXTRACTION_STRATEGIES: Sequence[tuple[str, ExtractionStrategy]] = (
    ("image", lambda data: data.get("image")),
    ("images", lambda data: _first(data.get("images"))),
    ("outputs", lambda data: _first(data.get("outputs"))),
    ("url", lambda data: data.get("url")),
    ("result", lambda data: data.get("result")),
)


def _as_data_url(encoded: str) -> str:
    if encoded.startswith("data:"):
        return encoded
    return f"data:image/png;base64,{encoded}"


def normalise_image_candidate(candidate: Any) -> str:
    """Turn a raw candidate into something an ``<img src>`` accepts."""

    if isinstance(candidate, str):
        if candidate.startswith("data:") or candidate.startswith("http"):
            return candidate
        return _as_data_url(candidate)
    if isinstance(candidate, dict):
        if candidate.get("url"):
            return str(candidate["url"])
        if candidate.get("base64"):
            return _as_data_url(str(candidate["base64"]))
    return ""


def extract_image_reference(
    data: Any,
    strategies: Sequence[tuple[str, ExtractionStrategy]] = EXTRACTION_STRATEGIES,
) -> str:
    if not isinstance(data, dict):
        return ""
    for name, strategy in strategies:
        candidate = strategy(data)
        if candidate:
            logger.debug("Designer response matched shape %s", name)
            return normalise_image_candidate(candidate)
    return ""


def decode_data_url(data_url: str) -> Optional[bytes]:
    """Decode a base64 data URL, returning ``None`` when it is not one."""

    if not data_url.startswith("data:") or "," not in data_url:
        return None
    header, encoded = data_url.split(",", 1)
    if ";base64" not in header:
        return None
    try:
        return base64.b64decode(encoded)
    except (binascii.Error, ValueError) as exc:
        logger.warning("Failed to decode designer image: %s", exc)
        return None


@dataclass
class DesignerClient:
    """Posts payloads to the designer endpoint with ``requests``."""

    timeout: float = 60.0
    verify: bool = True
    session: requests.Session = field(default_factory=requests.Session)

    @classmethod
    def from_config(cls, config: DesignerConfig) -> "DesignerClient":
        return cls(timeout=config.timeout, verify=config.verify_tls)

    def submit(self, endpoint: str, api_key: str | None, payload: dict[str, Any]) -> DesignerResponse:
        url = (endpoint or "").strip()
        if not url:
            raise MissingEndpointError()

        headers = {"Content-Type": "application/json"}
        key = (api_key or "").strip()
        if key:
            headers["Authorization"] = f"Bearer {key}"

        logger.debug("Submitting designer payload to %s keys=%s", url, sorted(payload.keys()))
        try:
            response = self.session.post(
                url,
                headers=headers,
                json=payload,
                timeout=self.timeout,
                verify=self.verify,
            )
        except requests.RequestException as exc:
            logger.exception("Designer request to %s failed", url)
            raise TransportFailureError(str(exc)) from exc

        try:
            response.raise_for_status()
        except requests.HTTPError as exc:
            detail = response.text or ""
            raise TransportFailureError(detail, status_code=response.status_code) from exc

        content_type = response.headers.get("content-type", "")
        if "application/json" in content_type:
            try:
                data: Any = response.json()
            except ValueError as exc:
                raise TransportFailureError(f"无法解析接口返回的 JSON：{exc}") from exc
        else:
            data = {"raw": response.text}

        image_src = extract_image_reference(data)
        if not image_src:
            logger.warning("Designer response from %s did not include an image reference", url)
        return DesignerResponse(image_src=image_src, data=data)


__all__ = [
    "BusyError",
    "DesignerClient",
    "DesignerError",
    "DesignerResponse",
    "EXTRACTION_STRATEGIES",
    "MissingEndpointError",
    "NotConfirmedError",
    "SUCCESS_MESSAGE",
    "TransportFailureError",
    "UNRECOGNIZED_SHAPE_MESSAGE",
    "decode_data_url",
    "extract_image_reference",
    "normalise_image_candidate",
]
