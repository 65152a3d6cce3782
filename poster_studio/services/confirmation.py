"""Asset confirmation state machine.

The machine only knows signatures. Callers recompute the signature after each
edit and feed it to :meth:`ConfirmationMachine.record_edit`; the explicit
confirm action is :meth:`ConfirmationMachine.confirm`.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from poster_studio.schemas import ConfirmationRecord, ConfirmationStatus

logger = logging.getLogger(__name__)

STATUS_META: dict[str, dict[str, str]] = {
    "needs-review": {
        "label": "待确认",
        "message": "确认左侧填写的图文素材，下一步将其一并提交给 Glibatree。",
    },
    "dirty": {
        "label": "需重新确认",
        "message": "素材已更新，请重新确认后再调用 Glibatree。",
    },
    "confirmed": {
        "label": "已确认",
        "message": "素材已确认，可继续调用 Glibatree。",
    },
}


def transition(
    status: ConfirmationStatus, confirmed_signature: str, live_signature: str
) -> ConfirmationStatus:
    """Automatic transition applied after an edit."""

    if status == "confirmed" and confirmed_signature != live_signature:
        return "dirty"
    return status


def format_confirmed_at(value: Optional[datetime]) -> str:
    if value is None:
        return ""
    return value.astimezone().strftime("%Y/%m/%d %H:%M:%S")


def confirm_button_label(status: ConfirmationStatus, can_confirm: bool) -> str:
    if status == "confirmed":
        return "重新确认素材" if can_confirm else "已确认"
    return "确认素材无误"


class ConfirmationMachine:
    def __init__(self, record: ConfirmationRecord | None = None) -> None:
        self._record = record or ConfirmationRecord()

    @property
    def record(self) -> ConfirmationRecord:
        return self._record.model_copy()

    @property
    def status(self) -> ConfirmationStatus:
        return self._record.status

    def record_edit(self, new_signature: str) -> bool:
        """Apply the automatic transition; return ``True`` on ``confirmed → dirty``."""

        previous = self._record.status
        status = transition(previous, self._record.confirmed_signature, new_signature)
        if status == previous:
            return False
        self._record = self._record.model_copy(update={"status": status})
        logger.info("Poster assets changed after confirmation; status %s -> %s", previous, status)
        return True

    def confirm(self, signature: str, now: datetime | None = None) -> ConfirmationRecord:
        if self.is_confirmed(signature):
            return self.record
        self._record = ConfirmationRecord(
            status="confirmed",
            confirmed_signature=signature,
            confirmed_at=now or datetime.now(timezone.utc),
        )
        logger.info("Poster assets confirmed at %s", self._record.confirmed_at)
        return self.record

    def is_confirmed(self, live_signature: str) -> bool:
        return (
            self._record.status == "confirmed"
            and self._record.confirmed_signature == live_signature
        )

    def can_confirm(self, live_signature: str) -> bool:
        return not self.is_confirmed(live_signature)


__all__ = [
    "ConfirmationMachine",
    "STATUS_META",
    "confirm_button_label",
    "format_confirmed_at",
    "transition",
]
