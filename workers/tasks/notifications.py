"""Notification delivery tasks."""

import asyncio
import logging
from typing import Optional

from celery import Task

from allocation.store import StatsStore
from core.integrations.email import EmailTemplates, get_email_service
from database.engine import create_engine, create_session_factory
from workers.celery_app import celery_app

logger = logging.getLogger(__name__)


async def load_recipients(examiner_ids: list[int]) -> dict[int, dict]:
    """Email and display name per examiner id, for examiners that have an email."""
    engine = create_engine(null_pool=True)
    try:
        store = StatsStore(create_session_factory(engine))
        async with store.transaction() as tx:
            stats = await tx.list_stats(examiner_ids)
    finally:
        await engine.dispose()
    return {
        s.examiner_id: {"email": s.email, "name": s.name or f"Examiner {s.examiner_id}"}
        for s in stats
        if s.email
    }


def notice_recipients(kind: str, payload: dict) -> list[int]:
    if kind == "reassignment":
        return [e for e in (payload["old_examiner_id"], payload.get("new_examiner_id")) if e is not None]
    return [payload["examiner_id"]]


def render_notice(kind: str, payload: dict, recipients: dict[int, dict]) -> list[dict]:
    """
    Build the emails for one notice.

    A reassignment notice produces one email for the previous holder and,
    when the copy found a new holder, an assignment email for them.
    Examiners without an email address are skipped.
    """
    messages = []

    def add(examiner_id: Optional[int], template: dict):
        recipient = recipients.get(examiner_id)
        if recipient is None:
            logger.warning(f"No email on record for examiner {examiner_id}; {kind} notice not sent")
            return
        messages.append({"to": recipient["email"], **template})

    def name(examiner_id):
        return recipients.get(examiner_id, {}).get("name", "")

    if kind == "assignment":
        examiner_id = payload["examiner_id"]
        add(examiner_id, EmailTemplates.copies_assigned(name(examiner_id), payload["copy_ids"]))
    elif kind == "warning":
        examiner_id = payload["examiner_id"]
        add(
            examiner_id,
            EmailTemplates.idle_warning(name(examiner_id), payload["copy_id"], payload["idle_hours"]),
        )
    elif kind == "reassignment":
        old_id, new_id = payload["old_examiner_id"], payload.get("new_examiner_id")
        add(old_id, EmailTemplates.copy_reassigned_away(name(old_id), payload["copy_id"]))
        if new_id is not None:
            add(new_id, EmailTemplates.copies_assigned(name(new_id), [payload["copy_id"]]))
    else:
        raise ValueError(f"Unknown notice kind: {kind}")
    return messages


@celery_app.task(name="workers.tasks.notifications.send_email", bind=True)
def send_email(self: Task, to: str, subject: str, body: str) -> dict:
    """Send one HTML email, retrying on SMTP failure."""
    if not get_email_service().send_email(to, subject, body, html=True):
        raise self.retry(countdown=120, max_retries=5)
    return {"status": "sent", "to": to}


@celery_app.task(name="workers.tasks.notifications.send_notice")
def send_notice(kind: str, payload: dict) -> dict:
    """Render an engine notice and queue one email per recipient."""
    recipients = asyncio.run(load_recipients(notice_recipients(kind, payload)))
    messages = render_notice(kind, payload, recipients)

    task_ids = []
    for message in messages:
        task = send_email.delay(message["to"], message["subject"], message["body"])
        task_ids.append(task.id)

    return {
        "status": "queued",
        "kind": kind,
        "task_ids": task_ids,
        "total": len(task_ids),
    }
