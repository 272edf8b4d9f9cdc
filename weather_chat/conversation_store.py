import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .config import BASE_DIR, CHAT_DB_PATH

LOGGER = logging.getLogger("weather_chat.store")

if isinstance(CHAT_DB_PATH, str) and CHAT_DB_PATH.strip():
    DB_PATH = Path(CHAT_DB_PATH.strip())
else:
    DB_PATH = BASE_DIR / "chat_history.db"

UNTITLED_SENTINEL = "Nueva conversación"
VALID_ROLES = {"user", "assistant"}


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def normalize_user_id(user_id: str | None) -> str | None:
    raw = str(user_id or "").strip()
    if not raw:
        return None
    cleaned = "".join(ch for ch in raw if ch.isalnum() or ch in ("-", "_", ".", ":", "@"))
    cleaned = cleaned[:64].strip()
    return cleaned or None


def _connect() -> sqlite3.Connection:
    DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(DB_PATH)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def init_store() -> None:
    with _connect() as conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS conversations (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                title TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS turns (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                conversation_id INTEGER NOT NULL
                    REFERENCES conversations (id) ON DELETE CASCADE,
                role TEXT NOT NULL,
                content TEXT NOT NULL,
                is_weather INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL
            )
            """
        )
        conn.execute(
            """
            CREATE INDEX IF NOT EXISTS idx_conversation_user_time
            ON conversations (user_id, created_at DESC)
            """
        )
        conn.execute(
            """
            CREATE INDEX IF NOT EXISTS idx_turn_conversation_time
            ON turns (conversation_id, created_at, id)
            """
        )
        conn.commit()
    LOGGER.info("chat store ready path=%s", DB_PATH)


def _conversation_from_row(row: sqlite3.Row) -> dict[str, Any]:
    return {
        "id": int(row["id"]),
        "user_id": str(row["user_id"]),
        "title": str(row["title"]),
        "created_at": str(row["created_at"]),
        "updated_at": str(row["updated_at"]),
    }


def _turn_from_row(row: sqlite3.Row) -> dict[str, Any]:
    return {
        "id": int(row["id"]),
        "conversation_id": int(row["conversation_id"]),
        "role": str(row["role"]),
        "content": str(row["content"]),
        "is_weather": bool(row["is_weather"]),
        "created_at": str(row["created_at"]),
    }


def create_conversation(user_id: str, title: str = UNTITLED_SENTINEL) -> dict[str, Any]:
    timestamp = _utc_now()
    with _connect() as conn:
        cursor = conn.execute(
            """
            INSERT INTO conversations (user_id, title, created_at, updated_at)
            VALUES (?, ?, ?, ?)
            """,
            (user_id, title, timestamp, timestamp),
        )
        conversation_id = int(cursor.lastrowid)
        conn.commit()
    return {
        "id": conversation_id,
        "user_id": user_id,
        "title": title,
        "created_at": timestamp,
        "updated_at": timestamp,
    }


def get_conversation(conversation_id: int) -> dict[str, Any] | None:
    with _connect() as conn:
        row = conn.execute(
            """
            SELECT id, user_id, title, created_at, updated_at
            FROM conversations
            WHERE id = ?
            """,
            (int(conversation_id),),
        ).fetchone()
    if row is None:
        return None
    return _conversation_from_row(row)


def list_conversations(user_id: str) -> list[dict[str, Any]]:
    with _connect() as conn:
        rows = conn.execute(
            """
            SELECT id, user_id, title, created_at, updated_at
            FROM conversations
            WHERE user_id = ?
            ORDER BY created_at DESC, id DESC
            """,
            (user_id,),
        ).fetchall()
    return [_conversation_from_row(row) for row in rows]


def list_turns(conversation_id: int) -> list[dict[str, Any]]:
    with _connect() as conn:
        rows = conn.execute(
            """
            SELECT id, conversation_id, role, content, is_weather, created_at
            FROM turns
            WHERE conversation_id = ?
            ORDER BY created_at ASC, id ASC
            """,
            (int(conversation_id),),
        ).fetchall()
    return [_turn_from_row(row) for row in rows]


def append_turn(conversation_id: int, role: str, content: str, is_weather: bool = False) -> dict[str, Any]:
    role_value = str(role or "").strip().lower()
    if role_value not in VALID_ROLES:
        raise ValueError(f"Unsupported turn role: {role!r}")

    payload = str(content or "")
    created_at = _utc_now()
    with _connect() as conn:
        cursor = conn.execute(
            """
            INSERT INTO turns (conversation_id, role, content, is_weather, created_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (int(conversation_id), role_value, payload, 1 if is_weather else 0, created_at),
        )
        turn_id = int(cursor.lastrowid)
        conn.execute(
            "UPDATE conversations SET updated_at = ? WHERE id = ?",
            (created_at, int(conversation_id)),
        )
        conn.commit()
    return {
        "id": turn_id,
        "conversation_id": int(conversation_id),
        "role": role_value,
        "content": payload,
        "is_weather": bool(is_weather),
        "created_at": created_at,
    }


def rename_if_untitled(conversation_id: int, title: str) -> bool:
    # Conditional update keeps the title change one-shot even under concurrent sends.
    with _connect() as conn:
        changed = conn.execute(
            """
            UPDATE conversations
            SET title = ?, updated_at = ?
            WHERE id = ? AND title = ?
            """,
            (title, _utc_now(), int(conversation_id), UNTITLED_SENTINEL),
        ).rowcount
        conn.commit()
    return bool(changed)


def delete_conversation(conversation_id: int) -> bool:
    with _connect() as conn:
        deleted = conn.execute(
            "DELETE FROM conversations WHERE id = ?",
            (int(conversation_id),),
        ).rowcount
        conn.commit()
    return bool(deleted)
