# ============================================
#   Acaragraph — Application Factory
#   Flask + Socket.IO + chat core wiring
# ============================================

from flask import Flask
from flask_socketio import SocketIO

from acaragraph.config import (
    DB_PATH,
    CORS_ALLOWED_ORIGINS,
    SOCKETIO_ASYNC_MODE,
    SEED_INVITE_CODES,
    parse_seed_codes,
)
from acaragraph.store import SQLiteStore
from acaragraph.core import ChatCore
from acaragraph.reconciler import PresenceReconciler
from acaragraph.invites import seed_invite_codes
from acaragraph.api import create_api_blueprint
from acaragraph.sockets import make_socket_emitter, register_socket_handlers
from acaragraph.logger import log_info, log_error


def create_app(store=None, db_path=None, async_mode=SOCKETIO_ASYNC_MODE,
               start_reconciler=True, seed_codes=SEED_INVITE_CODES):
    """
    Build (app, socketio). Store / core / reconciler are reachable
    through app.extensions["acaragraph"].
    """
    app = Flask(__name__)
    socketio = SocketIO(app, cors_allowed_origins=CORS_ALLOWED_ORIGINS, async_mode=async_mode)

    # =========================================
    #   STORE + CORE
    # =========================================
    store = store or SQLiteStore(db_path or DB_PATH)
    core = ChatCore(store, emit=make_socket_emitter(socketio))
    reconciler = PresenceReconciler(store, core)

    # =========================================
    #   DEV INVITE CODES
    # =========================================
    try:
        seeded = seed_invite_codes(store, parse_seed_codes(seed_codes))
        if seeded:
            log_info("server", f"{seeded} invite code(s) seeded.")
    except Exception as e:
        log_error("server", f"Error seeding invite codes: {e}")

    # =========================================
    #   HTTP + SOCKET HANDLERS
    # =========================================
    app.register_blueprint(create_api_blueprint(store, core))
    register_socket_handlers(socketio, core)
    log_info("server", "HTTP routes and socket handlers registered.")

    # =========================================
    #   PRESENCE RECONCILER
    # =========================================
    if start_reconciler:
        try:
            reconciler.start(socketio)
        except Exception as e:
            log_error("server", f"Error starting presence reconciler: {e}")

    app.extensions["acaragraph"] = {
        "store": store,
        "core": core,
        "reconciler": reconciler,
    }
    return app, socketio
