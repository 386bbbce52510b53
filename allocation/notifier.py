"""
Notification events emitted by the engine.

Delivery is fire-and-forget: the engine hands events to a ``Notifier`` after
its state change has been committed and never waits on, or fails because of,
delivery.
"""

import logging
from dataclasses import asdict, dataclass
from typing import ClassVar

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AssignmentNotice:
    kind: ClassVar[str] = "assignment"

    examiner_id: int
    copy_ids: tuple[int, ...]


@dataclass(frozen=True)
class WarningNotice:
    kind: ClassVar[str] = "warning"

    examiner_id: int
    copy_id: int
    idle_hours: float


@dataclass(frozen=True)
class ReassignmentNotice:
    kind: ClassVar[str] = "reassignment"

    old_examiner_id: int
    new_examiner_id: int | None
    copy_id: int


Notice = AssignmentNotice | WarningNotice | ReassignmentNotice


class Notifier:
    """Receives engine events. Implementations should not block."""

    def send(self, notice: Notice) -> None:
        raise NotImplementedError

    def notify(self, notice: Notice) -> None:
        """Send ``notice``, logging and dropping any delivery failure."""
        try:
            self.send(notice)
        except Exception:
            logger.error(
                f"Dropping {notice.kind} notice after delivery failure: {notice}",
                exc_info=True,
            )


class CeleryNotifier(Notifier):
    """Queues each notice on the worker, which renders and emails it."""

    def send(self, notice: Notice) -> None:
        from workers.tasks.notifications import send_notice

        payload = asdict(notice)
        if "copy_ids" in payload:
            payload["copy_ids"] = list(payload["copy_ids"])
        send_notice.delay(notice.kind, payload)
