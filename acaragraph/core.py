# ============================================
#   Acaragraph — Chat Core
#   Facade used by the socket / HTTP glue
# ============================================

from acaragraph.config import MAX_MESSAGE_LENGTH, HISTORY_LIMIT
from acaragraph.clock import utcnow, to_iso, from_db_timestamp
from acaragraph.errors import ValidationError, NotFoundError, StoreError, ChatError
from acaragraph.events import MESSAGE_CREATED, ADMIN_ACTION, noop_emit
from acaragraph.presence import PresenceRegistry
from acaragraph.pipeline import MessagePipeline
from acaragraph.logger import log_info, log_warning, log_error, log_exception


def _coerce_user_id(user_id) -> int:
    # int() would turn True into 1 and 1.9 into 1
    if isinstance(user_id, bool):
        raise ValidationError("Invalid user data.")
    if isinstance(user_id, float) and not user_id.is_integer():
        raise ValidationError("Invalid user data.")
    try:
        value = int(user_id)
    except (TypeError, ValueError):
        raise ValidationError("Invalid user data.")
    if value <= 0:
        raise ValidationError("Invalid user data.")
    return value


class ChatCore:
    """
    Presence & messaging core.

    Exposes auth / disconnect / send_message / get_presence_snapshot and
    emits presence_changed / message_created / admin_action through `emit`.
    Everything runs on the server's single event loop; the registry is
    only mutated from here.
    """

    def __init__(self, store, emit=None, clock=utcnow, max_length=MAX_MESSAGE_LENGTH):
        self.store = store
        self.clock = clock
        self._emit = emit or noop_emit
        self.registry = PresenceRegistry(store, emit=self._relay, clock=clock)
        self.pipeline = MessagePipeline(store, clock=clock, max_length=max_length)

    def set_emitter(self, emit):
        self._emit = emit or noop_emit

    def _relay(self, event, payload):
        try:
            self._emit(event, payload)
        except Exception:
            log_exception("core", f"Failed to emit {event}")

    # =====================================================
    #   CONNECTION LIFECYCLE
    # =====================================================

    def auth(self, connection_id, user_id):
        """
        Bind `connection_id` to `user_id` (re-auth overwrites).
        Display fields are snapshotted from the store now.
        """
        if not connection_id:
            raise ValidationError("Invalid user data.")
        user_id = _coerce_user_id(user_id)

        profile = self.store.get_public_profile(user_id)
        if profile is None:
            log_warning("core", f"Auth for unknown user {user_id} on {connection_id}")
            raise NotFoundError(f"user {user_id} not found")

        return self.registry.admit(connection_id, user_id, profile)

    def disconnect(self, connection_id):
        return self.registry.evict(connection_id)

    def session_for(self, connection_id):
        return self.registry.get(connection_id)

    def get_presence_snapshot(self):
        return self.registry.snapshot()

    def broadcast_presence(self):
        return self.registry.broadcast()

    # =====================================================
    #   MESSAGES
    # =====================================================

    def send_message(self, user_id, text, msg_type="text"):
        """
        Validate, moderate, persist and fan out one message.
        Returns the fan-out payload; raises a ChatError subclass otherwise.
        """
        user_id = _coerce_user_id(user_id)

        try:
            _, payload = self.pipeline.submit(user_id, text, msg_type)
        except NotFoundError as e:
            log_warning("core", f"Send aborted, {e.reason}")
            raise
        except StoreError as e:
            log_error("core", f"Send failed for user {user_id}: {e.reason}")
            raise

        self._relay(MESSAGE_CREATED, payload)
        return payload

    def get_history(self, limit=HISTORY_LIMIT, offset=0):
        """Recent messages in fan-out shape, oldest first."""
        rows = self.store.get_recent_messages(limit, offset)
        history = []
        for r in rows:
            created_at = from_db_timestamp(r.get("created_at"))
            history.append({
                "id": r["id"],
                "text": r["text"],
                "type": r["type"],
                "user": {
                    "id": r["user_id"],
                    "nickname": r["nickname"],
                    "avatar_color": r["avatar_color"],
                    "role": r["role"],
                    "status": r["status"],
                },
                "timestamp": to_iso(created_at) if created_at else None,
            })
        return history

    # =====================================================
    #   ADMIN PROPAGATION
    # =====================================================

    def notify_user_changed(self, user_id, action, admin_id=None):
        """
        Called after an admin action committed on `user_id`.
        Refreshes live sessions of that user and tells every connection.
        """
        touched = 0
        try:
            profile = self.store.get_public_profile(user_id)
            if profile is not None:
                touched = self.registry.refresh_profile(user_id, profile)
        except ChatError:
            log_exception("core", f"Could not refresh live sessions of user {user_id}")

        self._relay(ADMIN_ACTION, {
            "userId": user_id,
            "action": action,
            "timestamp": to_iso(self.clock()),
            "byAdminId": admin_id,
        })

        if touched:
            self.registry.broadcast()

        log_info("core", f"Admin action {action} on user {user_id} propagated ({touched} live session(s)).")
        return touched
