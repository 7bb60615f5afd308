"""
Database engine initialisation and kid document storage.

Users live in a plain table; kid records are nested documents and are
stored as JSON text keyed by id.
"""

import json
import sys
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import create_engine, text

from rally_access.config import get_env, KIDS_TABLE, USERS_TABLE


def init_engine():
    """Create a SQLAlchemy engine and verify the connection."""
    db_uri = get_env("DB_URI")
    engine = create_engine(db_uri, echo=False, future=True)
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception as e:
        print("ERROR: could not connect to DB:", e, file=sys.stderr)
        sys.exit(1)
    print("[init] Connected to DB.")
    return engine


def create_schema(engine) -> None:
    """Create the users and kids tables if they do not exist yet."""
    with engine.begin() as conn:
        conn.execute(text(f"""
            CREATE TABLE IF NOT EXISTS {USERS_TABLE} (
                id VARCHAR(64) PRIMARY KEY,
                display_name VARCHAR(200) NOT NULL,
                role VARCHAR(32),
                instructor_id VARCHAR(64),
                api_key VARCHAR(128) UNIQUE,
                is_active INTEGER NOT NULL DEFAULT 1
            )
        """))
        conn.execute(text(f"""
            CREATE TABLE IF NOT EXISTS {KIDS_TABLE} (
                id VARCHAR(64) PRIMARY KEY,
                document TEXT NOT NULL
            )
        """))


def _row_to_kid(row: Mapping[str, Any]) -> Dict[str, Any]:
    document = json.loads(row["document"])
    if not isinstance(document, dict):
        raise ValueError(f"Kid {row['id']} has a non-object document.")
    document["id"] = str(row["id"])
    return document


def fetch_kids(engine) -> List[Dict[str, Any]]:
    """Return every kid document, ordered by participant number."""
    sql = text(f"SELECT id, document FROM {KIDS_TABLE}")
    with engine.connect() as conn:
        rows = conn.execute(sql).mappings().all()
    kids = [_row_to_kid(r) for r in rows]
    kids.sort(key=lambda k: str(k.get("participantNumber") or ""))
    return kids


def fetch_kid(engine, kid_id: str) -> Optional[Dict[str, Any]]:
    """Return one kid document, or None if there is no such id."""
    sql = text(f"SELECT id, document FROM {KIDS_TABLE} WHERE id = :id")
    with engine.connect() as conn:
        row = conn.execute(sql, {"id": kid_id}).mappings().first()
    return _row_to_kid(row) if row else None


def _encode(document: Mapping[str, Any]) -> str:
    body = {k: v for k, v in document.items() if k != "id"}
    return json.dumps(body, default=str)


def insert_kid(engine, kid_id: str, document: Mapping[str, Any]) -> None:
    sql = text(f"INSERT INTO {KIDS_TABLE} (id, document) VALUES (:id, :doc)")
    with engine.begin() as conn:
        conn.execute(sql, {"id": kid_id, "doc": _encode(document)})


def save_kid(engine, kid_id: str, document: Mapping[str, Any]) -> None:
    """Overwrite a stored kid document. Raises ValueError if the id is unknown."""
    sql = text(f"UPDATE {KIDS_TABLE} SET document = :doc WHERE id = :id")
    with engine.begin() as conn:
        result = conn.execute(sql, {"id": kid_id, "doc": _encode(document)})
    if result.rowcount == 0:
        raise ValueError(f"Kid not found: {kid_id}")


def delete_kid(engine, kid_id: str) -> None:
    """Remove a stored kid document. Raises ValueError if the id is unknown."""
    sql = text(f"DELETE FROM {KIDS_TABLE} WHERE id = :id")
    with engine.begin() as conn:
        result = conn.execute(sql, {"id": kid_id})
    if result.rowcount == 0:
        raise ValueError(f"Kid not found: {kid_id}")
