# ============================================
#   Acaragraph — REST API
#   /api/ping, /api/auth/*, /api/chat/*, /api/admin/*
# ============================================

from flask import Blueprint, jsonify, request

from acaragraph.config import HISTORY_LIMIT
from acaragraph.clock import to_iso, utcnow
from acaragraph.errors import ChatError, NotFoundError, ValidationError
from acaragraph.invites import check_code, register_user
from acaragraph.admin import apply_user_action, require_admin
from acaragraph.logger import log_info, log_warning, log_exception

API_VERSION = "1.0.0-red"


def _fail(err: ChatError):
    if isinstance(err, NotFoundError):
        log_warning("api", f"{request.path}: {err.reason}")
    elif not err.expose_reason:
        log_exception("api", f"{request.path} failed: {err.reason}")
    return jsonify({"success": False, "message": err.public_message}), err.status_code


def _int_arg(name, default):
    try:
        return int(request.args.get(name, default))
    except (TypeError, ValueError):
        return default


def create_api_blueprint(store, core):
    bp = Blueprint("api", __name__, url_prefix="/api")

    # -----------------------------------------
    # PING
    # -----------------------------------------
    @bp.route("/ping", methods=["GET"])
    def ping():
        return jsonify({
            "success": True,
            "message": "⚡ Acaragraph API is up!",
            "timestamp": to_iso(utcnow()),
            "version": API_VERSION,
        })

    # -----------------------------------------
    # INVITE CODE CHECK
    # -----------------------------------------
    @bp.route("/auth/check-code", methods=["POST"])
    def api_check_code():
        body = request.get_json(silent=True) or {}
        try:
            found = check_code(store, body.get("code"))
        except ChatError as e:
            return _fail(e)

        return jsonify({
            "success": True,
            "codeId": found["code_id"],
            "codeType": found["code_type"],
            "message": "✅ Code accepted!",
        })

    # -----------------------------------------
    # REGISTER
    # -----------------------------------------
    @bp.route("/auth/register", methods=["POST"])
    def api_register():
        body = request.get_json(silent=True) or {}
        try:
            user = register_user(store, body.get("nickname"), body.get("tgUsername"), body.get("codeId"))
        except ChatError as e:
            return _fail(e)

        return jsonify({
            "success": True,
            "user": user,
            "message": "🎉 Welcome to Acaragraph!",
        })

    # -----------------------------------------
    # CURRENT USER
    # -----------------------------------------
    @bp.route("/auth/me", methods=["GET"])
    def api_me():
        raw_id = request.headers.get("X-User-Id") or request.args.get("userId")
        try:
            if not raw_id:
                raise ValidationError("User id is required.")
            try:
                user = store.get_user(int(raw_id))
            except ValueError:
                raise ValidationError("Invalid user id.")
            if user is None:
                raise NotFoundError(f"user {raw_id} not found")
        except ChatError as e:
            return _fail(e)

        return jsonify({
            "success": True,
            "user": {
                "id": user["id"],
                "nickname": user["nickname"],
                "tg_username": user["tg_username"],
                "role": user["role"],
                "avatar_color": user["avatar_color"],
                "created_at": user["created_at"],
                "last_seen": to_iso(user["last_seen"]) if user["last_seen"] else None,
                "status": user["status"],
                "message_count": user["message_count"],
            },
        })

    # -----------------------------------------
    # CHAT HISTORY / ONLINE
    # -----------------------------------------
    @bp.route("/chat/messages", methods=["GET"])
    def api_messages():
        limit = min(max(_int_arg("limit", HISTORY_LIMIT), 1), HISTORY_LIMIT)
        offset = max(_int_arg("offset", 0), 0)
        try:
            messages = core.get_history(limit, offset)
        except ChatError as e:
            return _fail(e)

        return jsonify({"success": True, "messages": messages, "total": len(messages)})

    @bp.route("/chat/online", methods=["GET"])
    def api_online():
        try:
            users = store.list_online_users()
        except ChatError as e:
            return _fail(e)

        return jsonify({"success": True, "users": users, "count": len(users)})

    # -----------------------------------------
    # ADMIN
    # -----------------------------------------
    @bp.route("/admin/users", methods=["GET"])
    def api_admin_users():
        try:
            require_admin(store, request.args.get("adminId"))
            users = store.list_users()
        except ChatError as e:
            return _fail(e)

        return jsonify({"success": True, "users": users, "count": len(users)})

    @bp.route("/admin/users/action", methods=["POST"])
    def api_admin_action():
        body = request.get_json(silent=True) or {}
        try:
            message = apply_user_action(
                store,
                core,
                body.get("adminId"),
                body.get("userId"),
                body.get("action"),
                body.get("duration"),
            )
        except ChatError as e:
            return _fail(e)

        return jsonify({"success": True, "message": message})

    @bp.route("/admin/stats", methods=["GET"])
    def api_admin_stats():
        try:
            require_admin(store, request.args.get("adminId"))
            stats = store.get_stats()
        except ChatError as e:
            return _fail(e)

        stats["live_connections"] = len(core.get_presence_snapshot())
        return jsonify({"success": True, "stats": stats})

    log_info("api", "REST blueprint ready.")
    return bp
