# ============================================
#     Acaragraph — Global Configuration
# ============================================

import os

# =========================================
#   ENVIRONMENT
# =========================================
# Expected values: "dev", "prod"
ENV = os.getenv("ENV", "dev").lower()

IS_PROD = ENV == "prod"

# =========================================
#   PATHS / PERSISTENCE
# =========================================
# Override options:
#   - ACARA_PERSIST_ROOT=/custom/path
#   - ACARA_DB_PATH=/custom/acaragraph.db   (":memory:" is accepted)
#
# In dev, we default to a local folder inside the repo: ./var/data

# Project root = one level above /acaragraph
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

PERSIST_ROOT = (
    os.getenv("ACARA_PERSIST_ROOT")
    or ("/var/data" if IS_PROD else os.path.join(PROJECT_ROOT, "var", "data"))
)

DB_PATH = os.getenv("ACARA_DB_PATH", os.path.join(PERSIST_ROOT, "acaragraph.db"))

# =========================================
#   LOGGING
# =========================================
# ACARA_LOG_FILE="" turns the rotating file off (tests, throwaway runs).
# The file's folder is created by the logger when the handler is built.
LOG_DIR = os.path.join(PERSIST_ROOT, "logs")
DEFAULT_LOG_FILE = os.path.join(LOG_DIR, "acaragraph.log")
LOG_FILE = os.getenv("ACARA_LOG_FILE", DEFAULT_LOG_FILE)

LOG_LEVEL = os.getenv("ACARA_LOG_LEVEL", "INFO").upper()

# Console output: on by default in dev, off in prod.
LOG_TO_CONSOLE = os.getenv("ACARA_LOG_CONSOLE", "0" if IS_PROD else "1") == "1"

# =========================================
#   GENERAL PARAMETERS
# =========================================
MAX_MESSAGE_LENGTH = 2000       # Hard cap on message size (chars, after trim)
HISTORY_LIMIT = 100             # Messages returned by get_messages / history API
DEFAULT_MUTE_MINUTES = 5        # Admin "mute" without explicit duration

MESSAGE_TYPES = ("text", "system", "media")
ROLES = ("user", "admin", "super_admin")
PRESENCE_STATUSES = ("online", "away", "offline")

# =========================================
#   PRESENCE RECONCILER
# =========================================
# Every PRESENCE_SWEEP_INTERVAL_SECONDS, "online" rows whose last_seen is
# older than PRESENCE_STALE_SECONDS are demoted to "away".
PRESENCE_SWEEP_INTERVAL_SECONDS = int(os.getenv("PRESENCE_SWEEP_INTERVAL_SECONDS", "30"))
PRESENCE_STALE_SECONDS = int(os.getenv("PRESENCE_STALE_SECONDS", "60"))

# =========================================
#   TRANSPORT
# =========================================
PORT = int(os.getenv("PORT", "3000"))
CORS_ALLOWED_ORIGINS = os.getenv("CORS_ALLOWED_ORIGINS", "*")

# None lets Flask-SocketIO pick (eventlet when installed).
SOCKETIO_ASYNC_MODE = os.getenv("SOCKETIO_ASYNC_MODE") or None

# =========================================
#   DEV INVITE CODES
# =========================================
# Format: CODE:type:max_uses, comma separated.
# Seeded at startup when the invite_codes table is empty.
# In production nothing is seeded unless explicitly configured.
SEED_INVITE_CODES = os.getenv(
    "SEED_INVITE_CODES",
    "" if IS_PROD else "ADMIN-777:admin:5,USER-123:user:100,SUPER-001:super_admin:1",
)


def parse_seed_codes(raw: str):
    """
    Parse SEED_INVITE_CODES into a list of (code, type, max_uses).
    Malformed entries are skipped.
    """
    seeds = []
    for chunk in (raw or "").split(","):
        parts = [p.strip() for p in chunk.split(":")]
        if len(parts) != 3 or not parts[0]:
            continue
        try:
            max_uses = int(parts[2])
        except ValueError:
            continue
        seeds.append((parts[0], parts[1] or "user", max_uses))
    return seeds
