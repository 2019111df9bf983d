# ============================================
#   Acaragraph — SQLite Persistence
#   users / invite codes / messages / audit events
# ============================================

import os
import sqlite3
import threading
from datetime import timedelta

from acaragraph.config import DB_PATH, HISTORY_LIMIT, PRESENCE_STATUSES
from acaragraph.clock import utcnow, to_db_timestamp, from_db_timestamp
from acaragraph.errors import StoreError
from acaragraph.logger import log_info, log_error, log_exception


# =====================================================
#   SCHEMA
# =====================================================

SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    nickname VARCHAR(100) NOT NULL,
    tg_username VARCHAR(100) NOT NULL,
    role VARCHAR(20) DEFAULT 'user',
    avatar_color VARCHAR(7) DEFAULT '#FF0000',
    status VARCHAR(20) DEFAULT 'offline',
    message_count INTEGER DEFAULT 0,
    is_banned BOOLEAN DEFAULT 0,
    muted_until DATETIME,
    last_seen DATETIME,
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS invite_codes (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    code VARCHAR(50) UNIQUE NOT NULL,
    type VARCHAR(20) DEFAULT 'user',
    created_by INTEGER,
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
    used_by INTEGER,
    used_at DATETIME,
    max_uses INTEGER DEFAULT 1,
    uses_count INTEGER DEFAULT 0,
    expires_at DATETIME,
    is_active BOOLEAN DEFAULT 1,
    notes TEXT,
    FOREIGN KEY (created_by) REFERENCES users(id),
    FOREIGN KEY (used_by) REFERENCES users(id)
);

CREATE TABLE IF NOT EXISTS messages (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL,
    text TEXT NOT NULL,
    type VARCHAR(20) DEFAULT 'text',
    deleted_at DATETIME,
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (user_id) REFERENCES users(id)
);

CREATE TABLE IF NOT EXISTS events (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER,
    event_type VARCHAR(50) NOT NULL,
    description TEXT,
    ip_address VARCHAR(45),
    user_agent TEXT,
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (user_id) REFERENCES users(id)
);

CREATE INDEX IF NOT EXISTS idx_users_status_seen ON users (status, last_seen);
"""

PUBLIC_PROFILE_COLUMNS = "id, nickname, avatar_color, role, status"


def _user_from_row(row):
    if row is None:
        return None
    user = dict(row)
    user["is_banned"] = bool(user.get("is_banned"))
    user["muted_until"] = from_db_timestamp(user.get("muted_until"))
    user["last_seen"] = from_db_timestamp(user.get("last_seen"))
    return user


class SQLiteStore:
    """
    Thin keyed-access layer over SQLite.

    One shared connection, serialized by a lock. Every sqlite3 failure is
    logged and re-raised as StoreError so no driver exception leaves here.
    """

    def __init__(self, path: str = DB_PATH):
        self.path = path
        self._lock = threading.RLock()

        try:
            if path != ":memory:":
                folder = os.path.dirname(path)
                if folder:
                    os.makedirs(folder, exist_ok=True)

            self._conn = sqlite3.connect(path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys = ON")
            self._conn.executescript(SCHEMA)
        except sqlite3.Error as e:
            log_exception("store", f"Cannot open database at {path}")
            raise StoreError(f"cannot open database: {e}") from e

        log_info("store", f"Database ready at: {path}")

    # =====================================================
    #   LOW LEVEL HELPERS
    # =====================================================

    def _query(self, sql, params=()):
        with self._lock:
            try:
                return [dict(r) for r in self._conn.execute(sql, params).fetchall()]
            except sqlite3.Error as e:
                log_error("store", f"SQL query failed: {e} | {sql.strip()[:80]}")
                raise StoreError(str(e)) from e

    def _get(self, sql, params=()):
        with self._lock:
            try:
                return self._conn.execute(sql, params).fetchone()
            except sqlite3.Error as e:
                log_error("store", f"SQL get failed: {e} | {sql.strip()[:80]}")
                raise StoreError(str(e)) from e

    def _run(self, sql, params=()):
        """
        Execute a write inside its own transaction.
        Returns (lastrowid, rowcount).
        """
        with self._lock:
            try:
                with self._conn:
                    cur = self._conn.execute(sql, params)
                    return cur.lastrowid, cur.rowcount
            except sqlite3.Error as e:
                log_error("store", f"SQL run failed: {e} | {sql.strip()[:80]}")
                raise StoreError(str(e)) from e

    def close(self):
        with self._lock:
            try:
                self._conn.close()
            except sqlite3.Error as e:
                raise StoreError(str(e)) from e

    # =====================================================
    #   USERS
    # =====================================================

    def create_user(self, nickname, tg_username, role="user", avatar_color="#FF0000", now=None):
        now = now or utcnow()
        user_id, _ = self._run(
            """INSERT INTO users (nickname, tg_username, role, avatar_color, created_at, last_seen)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (nickname, tg_username, role, avatar_color, to_db_timestamp(now), to_db_timestamp(now)),
        )
        return user_id

    def get_user(self, user_id):
        row = self._get("SELECT * FROM users WHERE id = ?", (user_id,))
        return _user_from_row(row)

    def get_public_profile(self, user_id):
        row = self._get(
            f"SELECT {PUBLIC_PROFILE_COLUMNS} FROM users WHERE id = ?",
            (user_id,),
        )
        return dict(row) if row else None

    def list_users(self):
        rows = self._query(
            """SELECT u.id, u.nickname, u.tg_username, u.role, u.avatar_color,
                      u.created_at, u.last_seen, u.status, u.is_banned, u.muted_until,
                      u.message_count
               FROM users u
               ORDER BY u.created_at DESC, u.id DESC"""
        )
        for r in rows:
            r["is_banned"] = bool(r["is_banned"])
        return rows

    def list_online_users(self):
        return self._query(
            """SELECT id, nickname, avatar_color, role, status, last_seen
               FROM users
               WHERE status = 'online'
               ORDER BY nickname ASC"""
        )

    def update_user_status(self, user_id, status, seen_at=None):
        if status not in PRESENCE_STATUSES:
            raise ValueError(f"unknown presence status: {status!r}")
        seen_at = seen_at or utcnow()
        _, changed = self._run(
            "UPDATE users SET status = ?, last_seen = ? WHERE id = ?",
            (status, to_db_timestamp(seen_at), user_id),
        )
        return changed > 0

    def clear_mute(self, user_id):
        _, changed = self._run("UPDATE users SET muted_until = NULL WHERE id = ?", (user_id,))
        return changed > 0

    def set_muted_until(self, user_id, until):
        _, changed = self._run(
            "UPDATE users SET muted_until = ? WHERE id = ?",
            (to_db_timestamp(until) if until else None, user_id),
        )
        return changed > 0

    def set_banned(self, user_id, banned: bool):
        _, changed = self._run(
            "UPDATE users SET is_banned = ? WHERE id = ?",
            (1 if banned else 0, user_id),
        )
        return changed > 0

    def set_role(self, user_id, role):
        _, changed = self._run("UPDATE users SET role = ? WHERE id = ?", (role, user_id))
        return changed > 0

    def increment_message_count(self, user_id):
        _, changed = self._run(
            "UPDATE users SET message_count = message_count + 1 WHERE id = ?",
            (user_id,),
        )
        return changed > 0

    def sweep_stale_presence(self, threshold_seconds, now=None):
        """
        Demote every "online" row not seen for threshold_seconds to "away".
        Single UPDATE; returns the number of demoted rows.
        """
        now = now or utcnow()
        cutoff = now - timedelta(seconds=threshold_seconds)
        _, changed = self._run(
            """UPDATE users
               SET status = 'away'
               WHERE status = 'online'
               AND last_seen < ?""",
            (to_db_timestamp(cutoff),),
        )
        return changed

    # =====================================================
    #   MESSAGES
    # =====================================================

    def insert_message(self, user_id, text, msg_type="text", created_at=None):
        created_at = created_at or utcnow()
        message_id, _ = self._run(
            "INSERT INTO messages (user_id, text, type, created_at) VALUES (?, ?, ?, ?)",
            (user_id, text, msg_type, to_db_timestamp(created_at)),
        )
        return message_id

    def get_recent_messages(self, limit=HISTORY_LIMIT, offset=0):
        """
        Latest non-deleted messages with their author, oldest first.
        """
        rows = self._query(
            """SELECT m.id, m.text, m.type, m.created_at,
                      u.id AS user_id, u.nickname, u.avatar_color,
                      u.tg_username, u.role, u.status
               FROM messages m
               JOIN users u ON m.user_id = u.id
               WHERE m.deleted_at IS NULL
               ORDER BY m.id DESC
               LIMIT ? OFFSET ?""",
            (limit, offset),
        )
        rows.reverse()
        return rows

    # =====================================================
    #   INVITE CODES
    # =====================================================

    def add_invite_code(self, code, code_type="user", max_uses=1, expires_at=None,
                        created_by=None, notes=None):
        code_id, _ = self._run(
            """INSERT INTO invite_codes (code, type, created_by, max_uses, expires_at, notes)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (
                code,
                code_type,
                created_by,
                max_uses,
                to_db_timestamp(expires_at) if expires_at else None,
                notes,
            ),
        )
        return code_id

    def count_invite_codes(self):
        row = self._get("SELECT COUNT(*) AS count FROM invite_codes")
        return row["count"] if row else 0

    def find_usable_invite_code(self, code=None, code_id=None, now=None):
        """
        Look up an active, unexpired, not exhausted invite code
        either by its text or by its id.
        """
        if code is None and code_id is None:
            return None

        now_ts = to_db_timestamp(now or utcnow())
        where, param = ("code = ?", code) if code is not None else ("id = ?", code_id)

        row = self._get(
            f"""SELECT id, code, type, max_uses, uses_count, expires_at
                FROM invite_codes
                WHERE {where} AND is_active = 1
                AND (expires_at IS NULL OR expires_at > ?)
                AND (max_uses IS NULL OR uses_count < max_uses)""",
            (param, now_ts),
        )
        return dict(row) if row else None

    def consume_invite_code(self, code_id, user_id, now=None):
        """
        Count one use of a code. The guard in WHERE keeps uses_count
        from ever passing max_uses.
        """
        _, changed = self._run(
            """UPDATE invite_codes
               SET uses_count = uses_count + 1,
                   used_by = ?,
                   used_at = ?
               WHERE id = ? AND (max_uses IS NULL OR uses_count < max_uses)""",
            (user_id, to_db_timestamp(now or utcnow()), code_id),
        )
        return changed > 0

    # =====================================================
    #   AUDIT EVENTS / STATS
    # =====================================================

    def log_event(self, user_id, event_type, description="", ip="", user_agent="", now=None):
        """
        Best-effort audit trail: failures are logged, never raised.
        """
        try:
            self._run(
                """INSERT INTO events (user_id, event_type, description, ip_address, user_agent, created_at)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (user_id, event_type, description, ip, user_agent, to_db_timestamp(now or utcnow())),
            )
            return True
        except StoreError:
            log_exception("store", f"Failed to log event {event_type} for user {user_id}")
            return False

    def list_events(self, user_id=None, limit=100):
        if user_id is None:
            return self._query("SELECT * FROM events ORDER BY id DESC LIMIT ?", (limit,))
        return self._query(
            "SELECT * FROM events WHERE user_id = ? ORDER BY id DESC LIMIT ?",
            (user_id, limit),
        )

    def get_stats(self):
        row = self._get(
            """SELECT
                 (SELECT COUNT(*) FROM users) AS total_users,
                 (SELECT COUNT(*) FROM users WHERE status = 'online') AS online_users,
                 (SELECT COUNT(*) FROM messages) AS total_messages,
                 (SELECT COUNT(*) FROM invite_codes) AS total_codes,
                 (SELECT COUNT(*) FROM invite_codes WHERE is_active = 1) AS active_codes,
                 (SELECT COUNT(*) FROM users WHERE is_banned = 1) AS banned_users"""
        )
        return dict(row) if row else {}
