# ============================================
#   Acaragraph — Presence Registry
#   Live connections → user identity (in memory)
# ============================================

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from acaragraph.clock import utcnow
from acaragraph.errors import StoreError
from acaragraph.events import PRESENCE_CHANGED, noop_emit
from acaragraph.logger import log_info, log_warning, log_exception


@dataclass
class Session:
    """One live transport connection bound to one authenticated user."""

    connection_id: str
    user_id: int
    nickname: str
    avatar_color: Optional[str] = None
    role: str = "user"
    status: str = "online"
    connected_at: datetime = field(default_factory=utcnow)

    def public(self) -> dict:
        return {
            "id": self.user_id,
            "nickname": self.nickname,
            "avatar_color": self.avatar_color,
            "role": self.role or "user",
            "status": self.status or "online",
        }


class PresenceRegistry:
    """
    Single owner of the live-session map. Source of truth for
    "who is connected right now"; the users.status column is only a hint.

    Sessions are keyed by connection id, NOT deduplicated by user id:
    two tabs of the same user are two entries.

    All mutations go through admit / evict / refresh_profile. Store
    write-through is best-effort and never blocks the transition.
    """

    def __init__(self, store, emit=None, clock=utcnow):
        self._store = store
        self._emit = emit or noop_emit
        self._clock = clock
        # dict keeps admission order
        self._sessions = {}

    # -----------------------------------------
    # READ
    # -----------------------------------------
    def __len__(self):
        return len(self._sessions)

    def __contains__(self, connection_id):
        return connection_id in self._sessions

    def get(self, connection_id) -> Optional[Session]:
        return self._sessions.get(connection_id)

    def connections_for_user(self, user_id):
        return [
            s.connection_id
            for s in self._sessions.values()
            if s.user_id == user_id
        ]

    def snapshot(self):
        """Public fields of every live session, in admission order."""
        return [s.public() for s in self._sessions.values()]

    # -----------------------------------------
    # MUTATIONS
    # -----------------------------------------
    def admit(self, connection_id, user_id, profile: dict) -> Session:
        """
        Insert or overwrite the session of `connection_id`.
        A re-auth on the same connection keeps its slot in the ordering.
        """
        previous = self._sessions.get(connection_id)

        session = Session(
            connection_id=connection_id,
            user_id=user_id,
            nickname=profile.get("nickname") or f"user{user_id}",
            avatar_color=profile.get("avatar_color"),
            role=profile.get("role") or "user",
            connected_at=self._clock(),
        )
        self._sessions[connection_id] = session

        if previous is not None and previous.user_id != user_id:
            log_warning(
                "presence",
                f"Connection {connection_id} re-authenticated as user {user_id} "
                f"(was {previous.user_id}).",
            )

        self._write_status(user_id, "online")
        log_info("presence", f"User {session.nickname} ({user_id}) online on {connection_id}.")

        self.broadcast()
        return session

    def evict(self, connection_id) -> Optional[Session]:
        """Drop a session. Unknown connection ids are a silent no-op."""
        session = self._sessions.pop(connection_id, None)
        if session is None:
            return None

        self._write_status(session.user_id, "offline")
        log_info("presence", f"User {session.nickname} ({session.user_id}) left ({connection_id}).")

        self.broadcast()
        return session

    def refresh_profile(self, user_id, profile: dict) -> int:
        """
        Update cached display fields of every session of `user_id`
        (e.g. after an admin changed the role). Returns sessions touched.
        """
        touched = 0
        for session in self._sessions.values():
            if session.user_id != user_id:
                continue
            for key in ("nickname", "avatar_color", "role"):
                if profile.get(key) is not None:
                    setattr(session, key, profile[key])
            touched += 1
        return touched

    # -----------------------------------------
    # SIDE EFFECTS
    # -----------------------------------------
    def broadcast(self):
        snapshot = self.snapshot()
        try:
            self._emit(PRESENCE_CHANGED, snapshot)
        except Exception:
            log_exception("presence", "Presence broadcast failed.")
        return snapshot

    def _write_status(self, user_id, status):
        try:
            self._store.update_user_status(user_id, status, self._clock())
        except StoreError:
            log_exception("presence", f"Could not persist status={status} for user {user_id}")
