"""In-app notification signalling.

State transitions call `notify()` to record "transition X occurred for user
Y". Delivery (email, push, sockets) belongs to an external dispatcher that
reads these records; here we only persist them. Emission is best-effort: a
failure is logged and never fails the transition that triggered it.
"""

from __future__ import annotations

from typing import Any

from ...domain.enums import NotificationPriority, NotificationType
from ...observability.logging import get_logger
from ...repositories import notifications_repo

log = get_logger("notifications")


def notify(
    *,
    user_id: str | None,
    type: NotificationType,
    title: str,
    message: str,
    data: dict[str, Any] | None = None,
    action_url: str | None = None,
    priority: NotificationPriority = NotificationPriority.MEDIUM,
) -> dict[str, Any] | None:
    uid = str(user_id or "").strip()
    if not uid:
        log.warning("notification_skipped_no_recipient", notification_type=type.value)
        return None
    try:
        n = notifications_repo.create_notification(
            user_id=uid,
            fields={
                "type": type.value,
                "title": title,
                "message": message,
                "data": data or {},
                "actionUrl": action_url,
                "priority": priority.value,
            },
        )
    except Exception:
        log.exception("notification_emit_failed", notification_type=type.value, user_id=uid)
        return None
    log.info("notification_emitted", notification_type=type.value, user_id=uid, notification_id=n.get("id"))
    return n


def list_notifications(*, user_id: str, unread_only: bool = False) -> dict[str, Any]:
    items = notifications_repo.list_for_user(user_id, unread_only=unread_only)
    unread = items if unread_only else [n for n in items if not n.get("isRead")]
    return {"notifications": items, "unreadCount": len(unread)}


def mark_read(*, user_id: str, notification_id: str) -> dict[str, Any] | None:
    """Returns None when the notification does not exist or belongs to someone else."""
    n = notifications_repo.get_notification(notification_id)
    if not n or n.get("userId") != user_id:
        return None
    if n.get("isRead"):
        return n
    return notifications_repo.mark_read(notification_id)


def mark_all_read(*, user_id: str) -> int:
    unread = notifications_repo.list_for_user(user_id, unread_only=True)
    for n in unread:
        notifications_repo.mark_read(str(n.get("id")))
    return len(unread)
