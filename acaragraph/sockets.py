# ============================================
#   Acaragraph — Socket.IO Handlers
#   auth / get_messages / send_message / typing / disconnect
# ============================================

from flask import request
from flask_socketio import emit

from acaragraph.config import HISTORY_LIMIT
from acaragraph.errors import ChatError, ValidationError
from acaragraph.events import PRESENCE_CHANGED, MESSAGE_CREATED, ADMIN_ACTION
from acaragraph.logger import log_info, log_warning, log_exception


# =====================================================
#   CORE EVENTS → WIRE EVENTS
# =====================================================

def make_socket_emitter(socketio):
    """
    Build the emit callable handed to ChatCore: relays core events
    to every connection of the default namespace.
    """
    def _emit(event, payload):
        if event == PRESENCE_CHANGED:
            socketio.emit("online_users_update", {
                "users": payload,
                "count": len(payload),
            }, namespace="/")
        elif event == MESSAGE_CREATED:
            socketio.emit("new_message", payload, namespace="/")
        elif event == ADMIN_ACTION:
            socketio.emit("admin_action", payload, namespace="/")
        else:
            log_warning("sockets", f"Unknown core event dropped: {event}")

    return _emit


def _emit_error(err: ChatError):
    emit("error", {"message": err.public_message})


# =====================================================
#   HANDLERS
# =====================================================

def register_socket_handlers(socketio, core):

    # -----------------------------------------
    # CONNECT
    # -----------------------------------------
    @socketio.on("connect", namespace="/")
    def on_connect(auth=None):
        log_info("sockets", f"Client connected: sid={request.sid}")

    # -----------------------------------------
    # AUTH (re-auth overwrites)
    # -----------------------------------------
    @socketio.on("auth", namespace="/")
    def on_auth(data):
        data = data if isinstance(data, dict) else {}

        try:
            session = core.auth(request.sid, data.get("id"))
        except ChatError as e:
            _emit_error(e)
            return

        emit("auth_ok", {"user": session.public()})

    # -----------------------------------------
    # HISTORY
    # -----------------------------------------
    @socketio.on("get_messages", namespace="/")
    def on_get_messages(data=None):
        try:
            emit("messages_history", core.get_history(HISTORY_LIMIT))
        except ChatError as e:
            log_exception("sockets", f"History failed for sid={request.sid}")
            _emit_error(e)

    # -----------------------------------------
    # SEND MESSAGE
    # -----------------------------------------
    @socketio.on("send_message", namespace="/")
    def on_send_message(data):
        data = data if isinstance(data, dict) else {}

        session = core.session_for(request.sid)
        if session is None:
            _emit_error(ValidationError("Please authenticate first."))
            return

        try:
            core.send_message(session.user_id, data.get("text"), data.get("type") or "text")
        except ChatError as e:
            _emit_error(e)

    # -----------------------------------------
    # TYPING
    # -----------------------------------------
    @socketio.on("typing", namespace="/")
    def on_typing(data=None):
        session = core.session_for(request.sid)
        if session is None:
            return

        emit("user_typing", {
            "userId": session.user_id,
            "nickname": session.nickname,
        }, broadcast=True, include_self=False)

    # -----------------------------------------
    # DISCONNECT (idempotent)
    # -----------------------------------------
    @socketio.on("disconnect", namespace="/")
    def on_disconnect(reason=None):
        session = core.disconnect(request.sid)
        if session is not None:
            log_info("sockets", f'Client "{session.nickname}" disconnected (sid={request.sid}).')
