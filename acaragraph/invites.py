# ============================================
#   Acaragraph — Invite Codes & Registration
#   (code → role → user row)
# ============================================

import re
import random

from acaragraph.clock import utcnow
from acaragraph.errors import ValidationError
from acaragraph.logger import log_info, log_warning


# =====================================================
#   AVATAR PALETTE (red theme)
# =====================================================

AVATAR_COLORS = [
    "#FF0000", "#FF3333", "#FF6666", "#FF9999", "#FF4D4D",
    "#E60000", "#CC0000", "#B30000", "#990000", "#800000",
    "#FF1A1A", "#FF8080", "#FFB3B3", "#FFE6E6",
]

# Code type → role. Anything else (e.g. "guest") registers a plain user.
CODE_ROLES = {
    "admin": "admin",
    "super_admin": "super_admin",
}

NICKNAME_FORBIDDEN = re.compile(r"[<>{}\[\]\\|]")
TG_USERNAME_REGEX = re.compile(r"^@[A-Za-z0-9_]+$")


# =====================================================
#   VALIDATION
# =====================================================

def validate_nickname(nickname) -> str:
    """
    Validate a display name:
        - 2 to 20 characters after trim
        - none of < > { } [ ] \\ |
    Returns the trimmed nickname.
    """
    if not isinstance(nickname, str) or not nickname.strip():
        raise ValidationError("Nickname cannot be empty.")

    nickname = nickname.strip()
    if len(nickname) < 2:
        raise ValidationError("Nickname must be at least 2 characters.")
    if len(nickname) > 20:
        raise ValidationError("Nickname must be at most 20 characters.")
    if NICKNAME_FORBIDDEN.search(nickname):
        raise ValidationError("Nickname contains forbidden characters.")

    return nickname


def validate_tg_username(username) -> str:
    """
    Normalize a Telegram handle: "@" is prepended when missing,
    then only letters, digits and underscore are accepted (max 32 chars).
    """
    if not isinstance(username, str) or not username.strip():
        raise ValidationError("Telegram username cannot be empty.")

    formatted = username.strip()
    if not formatted.startswith("@"):
        formatted = "@" + formatted

    if len(formatted) > 32:
        raise ValidationError("Telegram username is too long.")
    if not TG_USERNAME_REGEX.fullmatch(formatted):
        raise ValidationError("Telegram username may only contain letters, digits and underscore.")

    return formatted


def role_for_code_type(code_type) -> str:
    return CODE_ROLES.get(code_type, "user")


# =====================================================
#   FLOW
# =====================================================

def check_code(store, code, now=None) -> dict:
    """
    Check that `code` can still be redeemed.
    Returns {"code_id", "code_type"} or raises ValidationError.
    """
    code = (code or "").strip() if isinstance(code, str) else ""
    if len(code) < 3:
        raise ValidationError("Code must be at least 3 characters.")

    found = store.find_usable_invite_code(code=code, now=now or utcnow())
    if not found:
        log_warning("invites", f"Rejected invite code: {code!r}")
        raise ValidationError("❌ Invalid, expired or used code.")

    return {"code_id": found["id"], "code_type": found["type"]}


def register_user(store, nickname, tg_username, code_id, now=None, rng=random):
    """
    Redeem `code_id` for a new user. Returns the public user row.
    """
    now = now or utcnow()
    nickname = validate_nickname(nickname)
    tg_username = validate_tg_username(tg_username)

    code = store.find_usable_invite_code(code_id=code_id, now=now)
    if not code:
        raise ValidationError("Code is not valid.")

    role = role_for_code_type(code["type"])
    avatar_color = rng.choice(AVATAR_COLORS)

    user_id = store.create_user(nickname, tg_username, role, avatar_color, now)

    if not store.consume_invite_code(code["id"], user_id, now):
        # Lost a race for the last use: the user exists but the code is spent.
        log_warning("invites", f"Code {code['id']} exhausted while registering user {user_id}")

    store.log_event(user_id, "register", f"Registered with code {code['code']} ({role})", now=now)
    log_info("invites", f"New user: {nickname} ({role}), id={user_id}")

    user = store.get_user(user_id)
    return {
        "id": user["id"],
        "nickname": user["nickname"],
        "tg_username": user["tg_username"],
        "role": user["role"],
        "avatar_color": user["avatar_color"],
        "created_at": user["created_at"],
    }


def seed_invite_codes(store, seeds):
    """
    Insert the configured invite codes when the table is empty.
    Returns how many were created.
    """
    if not seeds or store.count_invite_codes() > 0:
        return 0

    for code, code_type, max_uses in seeds:
        store.add_invite_code(code, code_type, max_uses, notes="seeded at startup")
        log_info("invites", f"Seeded invite code {code} ({code_type}, max_uses={max_uses})")

    return len(seeds)
