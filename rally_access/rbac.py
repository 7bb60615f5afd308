"""
Role-Based Access Control – loading the caller and building the session evaluator.
"""

from typing import Any, Dict, Iterable, List, Mapping

from sqlalchemy import text

from rally_access.config import USERS_TABLE
from rally_access.models import Caller, Role, link_id
from rally_access.permissions import PermissionEvaluator


def load_caller(engine, api_key: str) -> Caller:
    """Look up a user by API key and return their Caller."""
    sql = text(f"""
        SELECT id, display_name, role, instructor_id
        FROM {USERS_TABLE}
        WHERE api_key = :k AND is_active = 1
    """)
    with engine.connect() as conn:
        row = conn.execute(sql, {"k": api_key}).mappings().first()

    if not row:
        raise ValueError(f"Invalid key or user inactive (no match in {USERS_TABLE}).")

    role = Role.parse(row["role"])
    if role == Role.UNRECOGNIZED:
        print(f"[warn] User {row['id']} has unrecognized role {row['role']!r}; no access granted.")

    return Caller(
        user_id=str(row["id"]),
        role=role,
        instructor_id=link_id(row["instructor_id"]),
        display_name=str(row["display_name"] or ""),
    )


def build_evaluator(caller: Caller) -> PermissionEvaluator:
    """Derive the session's PermissionEvaluator from a Caller."""
    if caller.role == Role.INSTRUCTOR and not caller.instructor_id:
        print(f"[warn] Instructor {caller.user_id} has no instructor_id; no kids will be linked.")
    return PermissionEvaluator(caller)


def visible_kids(evaluator: PermissionEvaluator,
                 kids: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """Keep the kids the caller may see, each redacted to viewable fields."""
    return [evaluator.filter_data(kid) for kid in kids if evaluator.can_view_kid(kid)]
