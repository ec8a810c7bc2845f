from __future__ import annotations

from marketplace.domain.enums import NotificationPriority, NotificationType
from marketplace.modules.notifications import notifier
from marketplace.repositories import notifications_repo


def test_notify_persists_and_lists_newest_first():
    notifier.notify(user_id="user_1", type=NotificationType.APPLICATION_RECEIVED, title="a", message="first")
    notifier.notify(
        user_id="user_1",
        type=NotificationType.APPLICATION_APPROVED,
        title="b",
        message="second",
        data={"applicationId": "app_1"},
        action_url="/applications/app_1",
        priority=NotificationPriority.HIGH,
    )
    notifier.notify(user_id="user_2", type=NotificationType.APPLICATION_RECEIVED, title="c", message="other")

    out = notifier.list_notifications(user_id="user_1")
    assert out["unreadCount"] == 2
    assert len(out["notifications"]) == 2
    newest = next(n for n in out["notifications"] if n["type"] == "application_approved")
    assert newest["priority"] == "high"
    assert newest["actionUrl"] == "/applications/app_1"
    assert newest["isRead"] is False


def test_notify_without_recipient_is_skipped():
    assert notifier.notify(user_id=None, type=NotificationType.APPLICATION_RECEIVED, title="t", message="m") is None
    assert notifier.notify(user_id="  ", type=NotificationType.APPLICATION_RECEIVED, title="t", message="m") is None


def test_emit_failure_never_raises(monkeypatch):
    def _boom(**_kw):
        raise RuntimeError("store down")

    monkeypatch.setattr(notifications_repo, "create_notification", _boom)
    assert notifier.notify(user_id="user_1", type=NotificationType.APPLICATION_RECEIVED, title="t", message="m") is None


def test_mark_read_is_scoped_to_owner():
    n = notifier.notify(user_id="user_1", type=NotificationType.APPLICATION_RECEIVED, title="t", message="m")
    assert notifier.mark_read(user_id="user_2", notification_id=n["id"]) is None
    assert notifier.mark_read(user_id="user_1", notification_id="ntf_missing") is None

    read = notifier.mark_read(user_id="user_1", notification_id=n["id"])
    assert read["isRead"] is True
    assert read["readAt"]
    assert notifier.list_notifications(user_id="user_1", unread_only=True)["notifications"] == []


def test_mark_all_read():
    for i in range(3):
        notifier.notify(user_id="user_1", type=NotificationType.APPLICATION_RECEIVED, title=str(i), message="m")
    assert notifier.mark_all_read(user_id="user_1") == 3
    assert notifier.mark_all_read(user_id="user_1") == 0
    assert notifier.list_notifications(user_id="user_1")["unreadCount"] == 0
