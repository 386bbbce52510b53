"""Tests for notice rendering and delivery tasks."""

from unittest.mock import MagicMock, patch

import pytest

from workers.tasks.notifications import notice_recipients, render_notice, send_notice

RECIPIENTS = {
    1: {"email": "one@example.com", "name": "Examiner One"},
    2: {"email": "two@example.com", "name": "Examiner Two"},
}


class TestRenderNotice:
    def test_assignment(self):
        messages = render_notice("assignment", {"examiner_id": 1, "copy_ids": [4, 5]}, RECIPIENTS)

        assert len(messages) == 1
        assert messages[0]["to"] == "one@example.com"
        assert messages[0]["subject"] == "New Copy Assigned for Evaluation"

    def test_warning(self):
        messages = render_notice(
            "warning", {"examiner_id": 2, "copy_id": 4, "idle_hours": 12.5}, RECIPIENTS
        )

        assert messages[0]["subject"] == "Reminder: Copy Pending for Evaluation"

    def test_reassignment_notifies_both_holders(self):
        messages = render_notice(
            "reassignment",
            {"old_examiner_id": 1, "new_examiner_id": 2, "copy_id": 4},
            RECIPIENTS,
        )

        assert [(m["to"], m["subject"]) for m in messages] == [
            ("one@example.com", "Copy Reassigned"),
            ("two@example.com", "New Copy Assigned for Evaluation"),
        ]

    def test_unassignable_reassignment(self):
        messages = render_notice(
            "reassignment",
            {"old_examiner_id": 1, "new_examiner_id": None, "copy_id": 4},
            RECIPIENTS,
        )

        assert [m["to"] for m in messages] == ["one@example.com"]

    def test_missing_email_skipped(self, caplog):
        messages = render_notice("assignment", {"examiner_id": 9, "copy_ids": [4]}, RECIPIENTS)

        assert messages == []
        assert "No email on record for examiner 9" in caplog.text

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            render_notice("digest", {}, RECIPIENTS)


def test_notice_recipients():
    assert notice_recipients("assignment", {"examiner_id": 3}) == [3]
    assert notice_recipients(
        "reassignment", {"old_examiner_id": 3, "new_examiner_id": None}
    ) == [3]


class TestSendNotice:
    def test_queues_one_email_per_message(self):
        async def fake_recipients(examiner_ids):
            return {e: RECIPIENTS[e] for e in examiner_ids if e in RECIPIENTS}

        with patch(
            "workers.tasks.notifications.load_recipients", side_effect=fake_recipients
        ), patch("workers.tasks.notifications.send_email") as send_email:
            send_email.delay.side_effect = [MagicMock(id="t1"), MagicMock(id="t2")]

            result = send_notice.run(
                "reassignment", {"old_examiner_id": 1, "new_examiner_id": 2, "copy_id": 4}
            )

        assert result == {
            "status": "queued",
            "kind": "reassignment",
            "task_ids": ["t1", "t2"],
            "total": 2,
        }
        first_call = send_email.delay.call_args_list[0]
        assert first_call.args[0] == "one@example.com"
        assert first_call.args[1] == "Copy Reassigned"
