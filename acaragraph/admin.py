# ============================================
#   Acaragraph — Admin Actions
#   ban / unban / mute / unmute / make_admin / remove_admin
# ============================================

from datetime import timedelta

from acaragraph.config import DEFAULT_MUTE_MINUTES
from acaragraph.clock import utcnow
from acaragraph.errors import ValidationError, PermissionDeniedError, NotFoundError
from acaragraph.moderation import is_admin
from acaragraph.logger import log_info, log_warning


ACTIONS = ("ban", "unban", "mute", "unmute", "make_admin", "remove_admin")


def require_admin(store, admin_id) -> dict:
    """Return the admin row or raise PermissionDeniedError."""
    if admin_id is None or admin_id == "":
        raise ValidationError("Admin id is required.")

    try:
        admin_id = int(admin_id)
    except (TypeError, ValueError):
        raise PermissionDeniedError("🚫 Administrator rights required.")

    admin = store.get_user(admin_id)
    if not is_admin(admin):
        log_warning("admin", f"Admin check denied for user {admin_id}")
        raise PermissionDeniedError("🚫 Administrator rights required.")

    store.log_event(admin_id, "admin_check", "Administrator rights check - granted")
    return admin


def _parse_duration(duration) -> int:
    if duration is None or duration == "":
        return DEFAULT_MUTE_MINUTES
    try:
        minutes = int(duration)
    except (TypeError, ValueError):
        raise ValidationError("Duration must be a number of minutes.")
    if minutes <= 0:
        raise ValidationError("Duration must be positive.")
    return minutes


def apply_user_action(store, core, admin_id, user_id, action, duration=None, now=None):
    """
    Apply one moderation action and propagate it to live connections.
    Returns a human readable confirmation.
    """
    if user_id is None or user_id == "" or not action:
        raise ValidationError("Missing parameters.")
    if action not in ACTIONS:
        raise ValidationError("Unknown action.")

    admin = require_admin(store, admin_id)
    now = now or utcnow()

    try:
        user_id = int(user_id)
    except (TypeError, ValueError):
        raise ValidationError("Invalid user id.")

    if store.get_user(user_id) is None:
        raise NotFoundError(f"user {user_id} not found for {action}")

    if action == "ban":
        store.set_banned(user_id, True)
        message = "User banned."
    elif action == "unban":
        store.set_banned(user_id, False)
        message = "User unbanned."
    elif action == "mute":
        minutes = _parse_duration(duration)
        store.set_muted_until(user_id, now + timedelta(minutes=minutes))
        message = f"User muted for {minutes} minute(s)."
    elif action == "unmute":
        store.clear_mute(user_id)
        message = "User unmuted."
    elif action == "make_admin":
        store.set_role(user_id, "admin")
        message = "User promoted to administrator."
    else:
        store.set_role(user_id, "user")
        message = "Administrator rights removed."

    store.log_event(admin["id"], f"admin_{action}", f"{action} on user {user_id}", now=now)
    core.notify_user_changed(user_id, action, admin["id"])

    log_info("admin", f"Admin {admin['id']} performed {action} on user {user_id}")
    return message
