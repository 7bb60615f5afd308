"""
Unit tests for RBAC – caller loading and session evaluator building.
"""

import pytest

from rally_access.config import get_env
from rally_access.models import Caller, Role
from rally_access.permissions import PermissionEvaluator
from rally_access.rbac import load_caller, build_evaluator, visible_kids


# ── Helpers / Fakes ──────────────────────────────────────────────────

class FakeResult:
    """Mimic SQLAlchemy Result with .mappings().first()."""
    def __init__(self, row_dict_or_none):
        self._row = row_dict_or_none

    def mappings(self):
        return self

    def first(self):
        return self._row


class FakeConn:
    def __init__(self, row_dict_or_none=None):
        self._row = row_dict_or_none
        self.executed = []

    def execute(self, sql, params=None):
        self.executed.append((sql, params))
        return FakeResult(self._row)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False


class FakeEngine:
    """Mimic engine.connect() context manager."""
    def __init__(self, row_dict_or_none=None):
        self._row = row_dict_or_none
        self.connect_calls = 0

    def connect(self):
        self.connect_calls += 1
        return FakeConn(self._row)


def user_row(role, instructor_id=None, user_id="user-123"):
    return {"id": user_id, "display_name": "Dana", "role": role, "instructor_id": instructor_id}


# ── Tests: get_env ───────────────────────────────────────────────────

def test_get_env_ok(monkeypatch):
    monkeypatch.setenv("X", "123")
    assert get_env("X") == "123"


def test_get_env_missing_exits(monkeypatch, capsys):
    monkeypatch.delenv("MISSING_ENV", raising=False)
    with pytest.raises(SystemExit) as e:
        get_env("MISSING_ENV")
    assert e.value.code == 1
    err = capsys.readouterr().err
    assert "ERROR: env var MISSING_ENV is not set" in err


# ── Tests: load_caller ───────────────────────────────────────────────

def test_load_caller_parent_ok():
    engine = FakeEngine(user_row("parent"))
    caller = load_caller(engine, api_key="k")
    assert caller == Caller(user_id="user-123", role=Role.PARENT, instructor_id=None, display_name="Dana")
    assert engine.connect_calls == 1


def test_load_caller_instructor_id_is_string():
    caller = load_caller(FakeEngine(user_row("instructor", instructor_id=7)), api_key="k")
    assert caller.role is Role.INSTRUCTOR
    assert caller.instructor_id == "7"


@pytest.mark.parametrize("blank", ["", "  "])
def test_load_caller_blank_instructor_id_is_none(blank, capsys):
    caller = load_caller(FakeEngine(user_row("instructor", instructor_id=blank)), api_key="k")
    assert caller.instructor_id is None
    build_evaluator(caller)
    assert "no instructor_id" in capsys.readouterr().out


def test_load_caller_host_is_guest():
    assert load_caller(FakeEngine(user_row("host")), api_key="k").role is Role.GUEST


def test_load_caller_missing_role_is_guest():
    assert load_caller(FakeEngine(user_row(None)), api_key="k").role is Role.GUEST


def test_load_caller_invalid_key():
    with pytest.raises(ValueError, match="Invalid key"):
        load_caller(FakeEngine(None), api_key="bad")


def test_load_caller_unrecognized_role_warns(capsys):
    caller = load_caller(FakeEngine(user_row("nurse")), api_key="k")
    assert caller.role is Role.UNRECOGNIZED
    assert "unrecognized role 'nurse'" in capsys.readouterr().out


# ── Tests: build_evaluator / visible_kids ────────────────────────────

def test_build_evaluator_binds_caller():
    caller = Caller(user_id="a1", role=Role.ADMIN)
    ev = build_evaluator(caller)
    assert isinstance(ev, PermissionEvaluator)
    assert ev.caller is caller
    assert ev.can_delete is True


def test_build_evaluator_warns_for_unlinked_instructor(capsys):
    build_evaluator(Caller(user_id="i1", role=Role.INSTRUCTOR))
    assert "no instructor_id" in capsys.readouterr().out


def test_visible_kids_filters_and_redacts(kid, other_kid):
    ev = build_evaluator(Caller(user_id="user-123", role=Role.PARENT))
    out = visible_kids(ev, [kid, other_kid])
    assert [k["id"] for k in out] == ["kid-1"]
    assert "medicalNotes" not in out[0]


def test_visible_kids_guest_sees_all_redacted(kid, other_kid):
    ev = build_evaluator(Caller(user_id="host-1", role=Role.GUEST))
    out = visible_kids(ev, [kid, other_kid])
    assert [k["id"] for k in out] == ["kid-1", "kid-2"]
    assert all("email" not in k.get("parentInfo", {}) for k in out)
