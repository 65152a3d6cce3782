"""Editor session: the poster form, its confirmation state and designer status.

Every mutation goes through :class:`EditorSession`, which recomputes the
signature synchronously and lets the confirmation machine demote a stale
confirmation before the call returns.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from poster_studio.config import DesignerConfig
from poster_studio.schemas import (
    ConfirmationView,
    DesignerResult,
    DesignerStatus,
    DesignerView,
    Feature,
    PosterState,
    Shot,
)
from poster_studio.services.confirmation import (
    STATUS_META,
    ConfirmationMachine,
    confirm_button_label,
    format_confirmed_at,
)
from poster_studio.services.designer import (
    BusyError,
    DesignerClient,
    DesignerError,
    MissingEndpointError,
    NotConfirmedError,
)
from poster_studio.services.payload import build_designer_payload
from poster_studio.services.prompt import compile_prompt
from poster_studio.services.signature import build_signature
from poster_studio.templates.layouts import (
    MAX_FEATURE_SLOTS,
    MAX_SHOT_COLUMNS,
    MIN_FEATURE_SLOTS,
    MIN_SHOT_COLUMNS,
)

logger = logging.getLogger(__name__)

DIRTY_NOTICE = "素材内容有更新，请重新确认后再调用 Glibatree。"
LOADING_MESSAGE = "正在向 Glibatree Art Designer 提交绘制请求..."

MIN_FEATURES = MIN_FEATURE_SLOTS
MAX_FEATURES = MAX_FEATURE_SLOTS
MAX_SHOTS = MAX_SHOT_COLUMNS
MIN_SHOTS = MIN_SHOT_COLUMNS


class ItemNotFoundError(KeyError):
    """Raised when a feature or shot id does not exist in the form."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EditorSession:
    def __init__(
        self,
        state: PosterState | None = None,
        *,
        designer_config: DesignerConfig | None = None,
        client: DesignerClient | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._state = state or PosterState()
        self._machine = ConfirmationMachine()
        self._signature = build_signature(self._state)
        self._config = designer_config or DesignerConfig()
        self._client = client or DesignerClient.from_config(self._config)
        self._clock = clock

        self._designer_status: DesignerStatus = "idle"
        self._designer_message = ""
        self._designer_result: Optional[DesignerResult] = None

        self._busy = False
        # Guards the state/signature pair and the busy flag.
        self._lock = threading.RLock()
        self._dirty_notice_pending = False

    # ------------------------------------------------------------------
    # read side
    # ------------------------------------------------------------------

    @property
    def state(self) -> PosterState:
        return self._state.model_copy(deep=True)

    @property
    def signature(self) -> str:
        return self._signature

    @property
    def machine(self) -> ConfirmationMachine:
        return self._machine

    @property
    def is_confirmed(self) -> bool:
        return self._machine.is_confirmed(self._signature)

    @property
    def can_confirm(self) -> bool:
        return self._machine.can_confirm(self._signature)

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def prompt(self) -> str:
        return compile_prompt(self._state, self.is_confirmed)

    def payload(self) -> dict[str, Any]:
        return build_designer_payload(self._state, self.prompt, is_confirmed=self.is_confirmed)

    def confirmation_view(self) -> ConfirmationView:
        record = self._machine.record
        meta = STATUS_META.get(record.status, STATUS_META["needs-review"])
        can_confirm = self.can_confirm
        return ConfirmationView(
            status=record.status,
            label=meta["label"],
            message=meta["message"],
            confirm_label=confirm_button_label(record.status, can_confirm),
            is_confirmed=self.is_confirmed,
            can_confirm=can_confirm,
            confirmed_at=record.confirmed_at,
            confirmed_at_display=format_confirmed_at(record.confirmed_at),
            signature=self._signature,
        )

    def designer_view(self) -> DesignerView:
        return DesignerView(
            status=self._designer_status,
            message=self._designer_message,
            result=self._designer_result,
        )

    # ------------------------------------------------------------------
    # edits
    # ------------------------------------------------------------------

    def _commit(self, state: PosterState) -> None:
        signature = build_signature(state)
        with self._lock:
            self._state = state
            self._signature = signature
            if self._machine.record_edit(signature):
                self._notify_dirty()

    def _notify_dirty(self) -> None:
        if self._busy:
            self._dirty_notice_pending = True
            return
        self._dirty_notice_pending = False
        self._designer_status = "idle"
        self._designer_message = DIRTY_NOTICE
        self._designer_result = None

    def update(self, changes: dict[str, Any]) -> PosterState:
        """Apply scalar / image field changes and re-validate the form."""

        if not changes:
            return self.state
        with self._lock:
            data = self._state.model_dump()
            data.update({key: value for key, value in changes.items() if key not in {"features", "shots"}})
            for image_field in ("brand_logo", "scenario_image", "product_image"):
                if data.get(image_field) == "":
                    data[image_field] = None
            self._commit(PosterState.model_validate(data))
            return self.state

    def _feature_index(self, feature_id: str) -> int:
        for index, feature in enumerate(self._state.features):
            if feature.id == feature_id:
                return index
        raise ItemNotFoundError(feature_id)

    def _shot_index(self, shot_id: str) -> int:
        for index, shot in enumerate(self._state.shots):
            if shot.id == shot_id:
                return index
        raise ItemNotFoundError(shot_id)

    def update_feature(self, feature_id: str, text: str) -> Feature:
        with self._lock:
            index = self._feature_index(feature_id)
            features = list(self._state.features)
            features[index] = Feature.model_validate({**features[index].model_dump(), "text": text})
            self._commit(self._state.model_copy(update={"features": features}))
            return features[index]

    def add_feature(self) -> Optional[Feature]:
        """Append an empty feature; returns ``None`` at the upper bound."""

        with self._lock:
            if len(self._state.features) >= MAX_FEATURES:
                return None
            feature = Feature()
            self._commit(self._state.model_copy(update={"features": [*self._state.features, feature]}))
            return feature

    def remove_feature(self, feature_id: str) -> bool:
        with self._lock:
            index = self._feature_index(feature_id)
            if len(self._state.features) <= MIN_FEATURES:
                return False
            features = [item for pos, item in enumerate(self._state.features) if pos != index]
            self._commit(self._state.model_copy(update={"features": features}))
            return True

    def update_shot(self, shot_id: str, changes: dict[str, Any]) -> Shot:
        """Apply label / image changes; a null label leaves the label as is."""

        update = {key: value for key, value in changes.items() if key in {"label", "image"}}
        if update.get("label") is None:
            update.pop("label", None)
        if update.get("image") == "":
            update["image"] = None
        with self._lock:
            index = self._shot_index(shot_id)
            shots = list(self._state.shots)
            shots[index] = Shot.model_validate({**shots[index].model_dump(), **update})
            self._commit(self._state.model_copy(update={"shots": shots}))
            return shots[index]

    def add_shot(self) -> Optional[Shot]:
        with self._lock:
            if len(self._state.shots) >= MAX_SHOTS:
                return None
            shot = Shot()
            self._commit(self._state.model_copy(update={"shots": [*self._state.shots, shot]}))
            return shot

    def remove_shot(self, shot_id: str) -> bool:
        with self._lock:
            index = self._shot_index(shot_id)
            if len(self._state.shots) <= MIN_SHOTS:
                return False
            shots = [item for pos, item in enumerate(self._state.shots) if pos != index]
            self._commit(self._state.model_copy(update={"shots": shots}))
            return True

    # ------------------------------------------------------------------
    # confirmation and submission
    # ------------------------------------------------------------------

    def confirm(self) -> ConfirmationView:
        with self._lock:
            self._machine.confirm(self._signature, self._clock())
            return self.confirmation_view()

    def _fail(self, exc: DesignerError, *, clear_result: bool = True) -> DesignerView:
        self._designer_status = "error"
        self._designer_message = str(exc)
        if clear_result:
            self._designer_result = None
        return self.designer_view()

    def submit(self, endpoint: str | None = None, api_key: str | None = None) -> DesignerView:
        """Send the confirmed poster to the designer.

        Precondition and transport failures are folded into the returned
        status / message. Only :class:`BusyError` is raised, so the state of
        the in-flight request is left untouched. The confirmation check and
        the payload are taken from the same state under the session lock.
        """

        with self._lock:
            if self._busy:
                raise BusyError()

            if not self.is_confirmed:
                logger.info("Designer submission rejected: assets not confirmed")
                return self._fail(NotConfirmedError())

            url = (endpoint if endpoint is not None else self._config.api_url) or ""
            if not url.strip():
                logger.info("Designer submission rejected: endpoint missing")
                return self._fail(MissingEndpointError(), clear_result=False)

            payload = self.payload()
            key = api_key if api_key is not None else self._config.api_key
            self._busy = True
            self._designer_status = "loading"
            self._designer_message = LOADING_MESSAGE
            self._designer_result = None

        try:
            response = self._client.submit(url, key, payload)
        except DesignerError as exc:
            logger.warning("Designer submission failed: %s", exc)
            with self._lock:
                self._fail(exc)
        else:
            with self._lock:
                self._designer_status = "success"
                self._designer_message = response.message
                self._designer_result = DesignerResult(image_src=response.image_src, data=response.data)
        finally:
            with self._lock:
                self._busy = False
                if self._dirty_notice_pending and self._machine.status == "dirty":
                    self._notify_dirty()
                self._dirty_notice_pending = False

        return self.designer_view()

    def reset_designer(self) -> DesignerView:
        with self._lock:
            self._designer_status = "idle"
            self._designer_message = ""
            self._designer_result = None
            return self.designer_view()


__all__ = ["DIRTY_NOTICE", "EditorSession", "ItemNotFoundError", "LOADING_MESSAGE"]
