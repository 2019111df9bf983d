# ============================================
#     Acaragraph — Main Application
# ============================================

# -------------------------------------------------
#   EVENTLET PATCH (REQUIRED FOR GUNICORN)
# -------------------------------------------------
import eventlet
eventlet.monkey_patch()

# -----------------------------------------
#   ENV VARIABLES (.env)
# -----------------------------------------
from dotenv import load_dotenv
load_dotenv()

from acaragraph.config import PORT, PERSIST_ROOT
from acaragraph.server import create_app
from acaragraph.logger import log_info

app, socketio = create_app()

# =========================================
#   RUN SERVER (DEV / PROD)
# =========================================
if __name__ == "__main__":
    log_info("app", f"Server starting on port {PORT} (data in {PERSIST_ROOT})...")
    socketio.run(app, host="0.0.0.0", port=PORT)
