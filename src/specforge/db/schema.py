"""SQLite schema definitions for Specforge."""
from __future__ import annotations

TABLES: list[str] = [
    # ── Users ─────────────────────────────────────────────────────────
    """\
    CREATE TABLE IF NOT EXISTS users (
        id         TEXT PRIMARY KEY,
        email      TEXT NOT NULL DEFAULT '',
        plan       TEXT NOT NULL DEFAULT 'free',
        created_at TEXT NOT NULL DEFAULT (datetime('now'))
    )""",

    # ── Interview sessions ────────────────────────────────────────────
    """\
    CREATE TABLE IF NOT EXISTS sessions (
        id         TEXT PRIMARY KEY,
        theme      TEXT NOT NULL DEFAULT '',
        user_id    TEXT DEFAULT NULL,
        status     TEXT NOT NULL DEFAULT 'interviewing',
        created_at TEXT NOT NULL DEFAULT (datetime('now')),
        updated_at TEXT NOT NULL DEFAULT (datetime('now'))
    )""",

    # ── Transcript messages ───────────────────────────────────────────
    """\
    CREATE TABLE IF NOT EXISTS messages (
        id         INTEGER PRIMARY KEY AUTOINCREMENT,
        session_id TEXT NOT NULL,
        role       TEXT NOT NULL CHECK (role IN ('user', 'assistant')),
        content    TEXT NOT NULL,
        created_at TEXT NOT NULL DEFAULT (datetime('now')),
        FOREIGN KEY (session_id) REFERENCES sessions(id) ON DELETE CASCADE
    )""",

    # ── Stage artifacts (one row per session + stage) ─────────────────
    """\
    CREATE TABLE IF NOT EXISTS analysis_results (
        id         INTEGER PRIMARY KEY AUTOINCREMENT,
        session_id TEXT NOT NULL,
        type       TEXT NOT NULL,
        data       TEXT NOT NULL,
        created_at TEXT NOT NULL DEFAULT (datetime('now')),
        UNIQUE (session_id, type),
        FOREIGN KEY (session_id) REFERENCES sessions(id) ON DELETE CASCADE
    )""",
]

INDEXES: list[str] = [
    "CREATE INDEX IF NOT EXISTS idx_sessions_user ON sessions(user_id)",
    "CREATE INDEX IF NOT EXISTS idx_messages_session ON messages(session_id, id)",
]
