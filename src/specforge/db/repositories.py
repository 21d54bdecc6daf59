"""CRUD functions for all database domains.

Grouped by domain: users, sessions, messages, analysis results.
"""
from __future__ import annotations

import json
import logging
import uuid
from typing import Any

from specforge.db.engine import get_conn
from specforge.models import SessionStatus

logger = logging.getLogger(__name__)

_STATUS_ORDER = [s.value for s in SessionStatus]
# SQL rank of the stored status; unknown values rank below every known one.
_STATUS_RANK = (
    "CASE status "
    + " ".join(f"WHEN '{s}' THEN {i}" for i, s in enumerate(_STATUS_ORDER))
    + " ELSE -1 END"
)


# ══════════════════════════════════════════════════════════════════════
#  Users
# ══════════════════════════════════════════════════════════════════════

def upsert_user(user_id: str, email: str = "", plan: str = "free") -> None:
    conn = get_conn()
    conn.execute(
        """\
        INSERT INTO users (id, email, plan) VALUES (?, ?, ?)
        ON CONFLICT(id) DO UPDATE SET email=excluded.email, plan=excluded.plan
        """,
        (user_id, email, plan),
    )
    conn.commit()


def get_user(user_id: str) -> dict | None:
    conn = get_conn()
    row = conn.execute("SELECT * FROM users WHERE id=?", (user_id,)).fetchone()
    return dict(row) if row else None


# ══════════════════════════════════════════════════════════════════════
#  Sessions
# ══════════════════════════════════════════════════════════════════════

def create_session(
    theme: str,
    user_id: str | None = None,
    session_id: str | None = None,
) -> str:
    session_id = session_id or uuid.uuid4().hex[:12]
    conn = get_conn()
    conn.execute(
        "INSERT INTO sessions (id, theme, user_id) VALUES (?, ?, ?)",
        (session_id, theme, user_id),
    )
    conn.commit()
    return session_id


def get_session(session_id: str) -> dict | None:
    conn = get_conn()
    row = conn.execute("SELECT * FROM sessions WHERE id=?", (session_id,)).fetchone()
    return dict(row) if row else None


def set_session_status(session_id: str, status: str) -> bool:
    """Advance a session's status.  Never moves it backwards.

    The rank check and the write happen in one statement.  Returns True
    if the row changed.
    """
    conn = get_conn()
    cur = conn.execute(
        f"""\
        UPDATE sessions SET status=?, updated_at=datetime('now')
        WHERE id=? AND {_STATUS_RANK} < ?
        """,
        (status, session_id, _STATUS_ORDER.index(status)),
    )
    conn.commit()
    if not cur.rowcount:
        logger.debug("Status of %s not advanced to %s", session_id, status)
        return False
    return True


# ══════════════════════════════════════════════════════════════════════
#  Transcript messages
# ══════════════════════════════════════════════════════════════════════

def add_message(session_id: str, role: str, content: str) -> int:
    conn = get_conn()
    cur = conn.execute(
        "INSERT INTO messages (session_id, role, content) VALUES (?, ?, ?)",
        (session_id, role, content),
    )
    conn.commit()
    return cur.lastrowid or 0


def get_messages(session_id: str) -> list[dict]:
    conn = get_conn()
    rows = conn.execute(
        """\
        SELECT id, role, content, created_at FROM messages
        WHERE session_id=? ORDER BY id ASC
        """,
        (session_id,),
    ).fetchall()
    return [dict(r) for r in rows]


# ══════════════════════════════════════════════════════════════════════
#  Analysis results (stage artifacts)
# ══════════════════════════════════════════════════════════════════════

def upsert_analysis_result(session_id: str, result_type: str, data: dict[str, Any]) -> None:
    """Insert or overwrite the result for (session_id, result_type)."""
    conn = get_conn()
    conn.execute(
        """\
        INSERT INTO analysis_results (session_id, type, data)
        VALUES (?, ?, ?)
        ON CONFLICT(session_id, type) DO UPDATE SET
            data=excluded.data,
            created_at=datetime('now')
        """,
        (session_id, result_type, json.dumps(data, ensure_ascii=False)),
    )
    conn.commit()


def get_analysis_result(session_id: str, result_type: str) -> dict | None:
    conn = get_conn()
    row = conn.execute(
        "SELECT data FROM analysis_results WHERE session_id=? AND type=?",
        (session_id, result_type),
    ).fetchone()
    return json.loads(row["data"]) if row else None


def list_analysis_results(session_id: str) -> list[dict]:
    conn = get_conn()
    rows = conn.execute(
        """\
        SELECT type, data, created_at FROM analysis_results
        WHERE session_id=? ORDER BY id
        """,
        (session_id,),
    ).fetchall()
    result = []
    for row in rows:
        d = dict(row)
        d["data"] = json.loads(d["data"])
        result.append(d)
    return result
