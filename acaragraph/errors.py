# ============================================
#   Acaragraph — Error Taxonomy
# ============================================
#
# Every failure that leaves the chat core is one of these.
# - ValidationError / ModerationError: user-correctable, reason shown verbatim
# - NotFoundError / StoreError: generic "try again" for the client, detail in logs

GENERIC_RETRY_MESSAGE = "Something went wrong. Please try again."


class ChatError(Exception):
    """Base class for errors crossing the core boundary."""

    status_code = 500
    expose_reason = False

    def __init__(self, reason: str = ""):
        super().__init__(reason)
        self.reason = reason

    @property
    def public_message(self) -> str:
        """Message safe to send back to the requesting connection."""
        if self.expose_reason and self.reason:
            return self.reason
        return GENERIC_RETRY_MESSAGE


class ValidationError(ChatError):
    status_code = 400
    expose_reason = True


class ModerationError(ChatError):
    status_code = 403
    expose_reason = True


class PermissionDeniedError(ChatError):
    status_code = 403
    expose_reason = True


class NotFoundError(ChatError):
    status_code = 404


class StoreError(ChatError):
    status_code = 500
