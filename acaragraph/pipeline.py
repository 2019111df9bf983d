# ============================================
#   Acaragraph — Message Pipeline
#   validate → moderate → persist → profile → count → payload
# ============================================

from markupsafe import escape

from acaragraph.config import MAX_MESSAGE_LENGTH, MESSAGE_TYPES
from acaragraph.clock import utcnow, to_iso
from acaragraph.errors import ValidationError, ModerationError, NotFoundError, StoreError
from acaragraph.moderation import can_send
from acaragraph.logger import log_info, log_exception


def clean_text(raw_text, max_length=MAX_MESSAGE_LENGTH) -> str:
    """
    Trim and bound a message. Returns the trimmed (not yet escaped) text.
    """
    if not isinstance(raw_text, str):
        raise ValidationError("Message cannot be empty.")

    text = raw_text.strip()
    if not text:
        raise ValidationError("Message cannot be empty.")

    if len(text) > max_length:
        raise ValidationError(f"Message is too long (max {max_length} characters).")

    return text


def escape_text(text: str) -> str:
    return str(escape(text))


class MessagePipeline:

    def __init__(self, store, clock=utcnow, max_length=MAX_MESSAGE_LENGTH):
        self._store = store
        self._clock = clock
        self.max_length = max_length

    def submit(self, user_id, raw_text, msg_type="text"):
        """
        Run one send attempt. Returns (message, fanout_payload).

        Raises ValidationError, ModerationError, NotFoundError or StoreError;
        each step short-circuits the following ones.
        """
        # 1) Shape
        text = clean_text(raw_text, self.max_length)
        msg_type = msg_type or "text"
        if msg_type not in MESSAGE_TYPES:
            raise ValidationError(f"Unknown message type: {msg_type}.")

        # 2) Moderation on a fresh read
        user = self._store.get_user(user_id)
        if user is None:
            raise NotFoundError(f"user {user_id} not found before send")

        # Whole seconds: the store keeps no fraction, and the fanned-out
        # timestamp must equal the one history returns later.
        now = self._clock().replace(microsecond=0)
        decision = can_send(self._store, user, now)
        if not decision.allowed:
            raise ModerationError(decision.reason)

        # 3) Persist
        text = escape_text(text)
        message_id = self._store.insert_message(user_id, text, msg_type, now)

        # 4) Author profile, fresh
        profile = self._store.get_public_profile(user_id)
        if profile is None:
            raise NotFoundError(f"author {user_id} vanished after message {message_id}")

        # 5) Counter; the message is already stored, so a failure here
        # only leaves message_count behind.
        try:
            self._store.increment_message_count(user_id)
        except StoreError:
            log_exception("pipeline", f"message_count not incremented for user {user_id}")

        message = {
            "id": message_id,
            "user_id": user_id,
            "text": text,
            "type": msg_type,
            "created_at": now,
        }

        payload = {
            "id": message_id,
            "text": text,
            "type": msg_type,
            "user": profile,
            "timestamp": to_iso(now),
        }

        log_info("pipeline", f'Message {message_id} from {profile.get("nickname")}: {text[:80]}')
        return message, payload
