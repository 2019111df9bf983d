# ============================================
#   Acaragraph — Moderation Gate
#   Ban / mute decision for every send attempt
# ============================================

import math
from typing import NamedTuple, Optional

from acaragraph.clock import utcnow
from acaragraph.errors import StoreError
from acaragraph.logger import log_info, log_warning, log_exception


BANNED_REASON = "🚫 You are banned and cannot send messages."
MUTED_REASON = "🔇 You are muted. You can write again in {minutes} minute(s)."

ADMIN_ROLES = ("admin", "super_admin")


class ModerationDecision(NamedTuple):
    allowed: bool
    reason: Optional[str] = None
    minutes_left: Optional[int] = None


ALLOWED = ModerationDecision(True)


def mute_minutes_left(muted_until, now) -> int:
    """ceil((muted_until - now) / 60s); 0 once the mute is over."""
    seconds = (muted_until - now).total_seconds()
    if seconds <= 0:
        return 0
    return math.ceil(seconds / 60)


def can_send(store, user: dict, now=None) -> ModerationDecision:
    """
    Decide whether `user` may send right now.

    `user` must be a fresh store read: ban / mute can change between
    connection and send (admin action mid-session), so nothing is cached.

    - banned                  → refused, fixed reason (ban wins over mute)
    - muted_until in future   → refused, reason carries minutes left
    - muted_until in the past → cleared in the store, then allowed
    """
    now = now or utcnow()
    user_id = user.get("id")

    if user.get("is_banned"):
        log_warning("moderation", f"User {user_id} refused: {BANNED_REASON}")
        return ModerationDecision(False, BANNED_REASON)

    muted_until = user.get("muted_until")
    if muted_until is not None:
        minutes = mute_minutes_left(muted_until, now)
        if minutes > 0:
            reason = MUTED_REASON.format(minutes=minutes)
            log_info("moderation", f"User {user_id} refused: {reason}")
            return ModerationDecision(False, reason, minutes)

        # Expired mute: lazily clear it. A failed write does not block the send,
        # the next check will try again.
        try:
            store.clear_mute(user_id)
            log_info("moderation", f"Expired mute of user {user_id} cleared.")
        except StoreError:
            log_exception("moderation", f"Could not clear expired mute of user {user_id}")

    return ALLOWED


def is_admin(user) -> bool:
    """Admins and super admins, as long as they are not banned."""
    if not user:
        return False
    return user.get("role") in ADMIN_ROLES and not user.get("is_banned")


def is_super_admin(user) -> bool:
    if not user:
        return False
    return user.get("role") == "super_admin" and not user.get("is_banned")
