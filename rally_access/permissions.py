"""
Field-level permission evaluator.

One PermissionEvaluator is built per authenticated session, right after the
caller's identity and role are known. It answers three kinds of questions:

- coarse capability flags (create / edit / delete / view) for the role,
- whether a caller may see a kid record at all (``can_view_kid``),
- whether a caller may view or edit a single field of a record.

Admins are always allowed. Parents and instructors must be linked to the
record (``parentInfo.parentIds`` / legacy ``parentInfo.parentId``, or
``instructorId``) before any field rule is consulted. Guests skip the link
check but are limited to their allow-list. On every check the role's deny
rules win over its allow rules.

The evaluator never raises. Missing or malformed records, contexts and
field paths all resolve to a denial.
"""

import copy
from typing import Any, List, Mapping, Optional, Tuple, Union

from rally_access.fields import ROOT, FieldPath, get_path, set_path
from rally_access.models import Caller, Capabilities, EvaluationContext, RecordKind, Role, link_id
from rally_access.policies import ROLE_POLICIES, RolePolicy, policy_for

VEHICLE_ROOT = FieldPath(("vehicle",))

FieldLike = Union[str, FieldPath]


class PermissionEvaluator:
    """Per-session access decisions for one caller. Read-only after construction."""

    def __init__(self, caller: Caller, policies: Mapping[Role, RolePolicy] = ROLE_POLICIES):
        self._caller = caller
        self._policy = policy_for(caller.role, policies)

    @classmethod
    def from_user_data(cls, user_id: str, user_data: Optional[Mapping[str, Any]],
                       policies: Mapping[Role, RolePolicy] = ROLE_POLICIES) -> "PermissionEvaluator":
        """Build from a raw user document (``role``, ``instructorId``, ``displayName``)."""
        return cls(Caller.from_user_data(user_id, user_data), policies)

    def __repr__(self) -> str:
        return f"PermissionEvaluator(user_id={self._caller.user_id!r}, role={self.role.value!r})"

    # ── Capabilities ─────────────────────────────────────────────────

    @property
    def caller(self) -> Caller:
        return self._caller

    @property
    def role(self) -> Role:
        return self._caller.role

    @property
    def capabilities(self) -> Capabilities:
        return self._policy.capabilities

    @property
    def can_create(self) -> bool:
        return self._policy.capabilities.can_create

    @property
    def can_edit(self) -> bool:
        return self._policy.capabilities.can_edit

    @property
    def can_delete(self) -> bool:
        return self._policy.capabilities.can_delete

    @property
    def can_view(self) -> bool:
        return self._policy.capabilities.can_view

    # ── Record links ─────────────────────────────────────────────────

    def _is_parent_of(self, record: Any) -> bool:
        if not isinstance(record, Mapping):
            return False
        info = record.get("parentInfo")
        if not isinstance(info, Mapping):
            return False
        uid = self._caller.user_id
        if not uid:
            return False
        parent_ids = info.get("parentIds")
        if isinstance(parent_ids, (list, tuple, set, frozenset)) and uid in parent_ids:
            return True
        # legacy records only carry the singular id
        return info.get("parentId") == uid

    def _is_instructor_of(self, record: Any) -> bool:
        if not isinstance(record, Mapping):
            return False
        instructor_id = link_id(self._caller.instructor_id)
        if not instructor_id:
            return False
        return link_id(record.get("instructorId")) == instructor_id

    def _linked(self, record: Any) -> bool:
        role = self.role
        if role == Role.PARENT:
            return self._is_parent_of(record)
        if role == Role.INSTRUCTOR:
            return self._is_instructor_of(record)
        return role in (Role.ADMIN, Role.GUEST)

    def can_view_kid(self, record: Any) -> bool:
        """Whether the caller may see this kid record at all."""
        return self._linked(record)

    # ── Field checks ─────────────────────────────────────────────────

    @staticmethod
    def _context(context: Any) -> EvaluationContext:
        if isinstance(context, EvaluationContext):
            return context
        return EvaluationContext.for_kid(None)

    @staticmethod
    def _qualified(field: Any, ctx: EvaluationContext) -> Optional[FieldPath]:
        path = FieldPath.parse(field)
        if path is None:
            return None
        if ctx.record_kind == RecordKind.VEHICLE:
            return FieldPath(VEHICLE_ROOT.segments + path.segments)
        return path

    def _visible(self, path: FieldPath) -> bool:
        """Field-rule decision, assuming the link check already passed."""
        if self.role == Role.INSTRUCTOR:
            return True
        if self._policy.view_deny.matches(path):
            return False
        return self._policy.view_allow.matches(path)

    def can_view_field(self, field: FieldLike, context: Optional[EvaluationContext] = None) -> bool:
        """Decide whether *field* of the context's record may be displayed.

        Vehicle contexts take field names relative to the vehicle document;
        they are checked under the ``vehicle.`` namespace.
        """
        if self.role == Role.ADMIN:
            return True
        if self.role not in (Role.PARENT, Role.INSTRUCTOR, Role.GUEST):
            return False
        ctx = self._context(context)
        path = self._qualified(field, ctx)
        if path is None or not self._linked(ctx.owner_record):
            return False
        return self._visible(path)

    def can_edit_field(self, field: FieldLike, context: Optional[EvaluationContext] = None) -> bool:
        """Decide whether *field* of the context's record may be changed."""
        if self.role == Role.ADMIN:
            return True
        if self.role not in (Role.PARENT, Role.INSTRUCTOR, Role.GUEST):
            return False
        ctx = self._context(context)
        path = self._qualified(field, ctx)
        if path is None or not self._linked(ctx.owner_record):
            return False
        return self._policy.edit_allow.matches(path)

    # ── Whole-record helpers ─────────────────────────────────────────

    def _has_view_rules_beneath(self, path: FieldPath) -> bool:
        return (self._policy.view_allow.has_rules_beneath(path)
                or self._policy.view_deny.has_rules_beneath(path))

    def _redact(self, node: Mapping, prefix: FieldPath) -> dict:
        out = {}
        for key, value in node.items():
            path = prefix.child(str(key))
            if isinstance(value, Mapping) and self._has_view_rules_beneath(path):
                out[key] = self._redact(value, path)
            elif self._visible(path):
                out[key] = copy.deepcopy(value)
        return out

    def filter_data(self, record: Any, kind: Union[RecordKind, str] = RecordKind.KID,
                    linked_kid: Optional[Mapping[str, Any]] = None) -> Any:
        """Return a copy of *record* with every field the caller may not view removed.

        The walk follows the record's own keys, so fields no rule mentions
        are dropped rather than leaked. Containers that hold viewable fields
        stay in place even if they end up empty. Admins get the record back
        unchanged; an unlinked caller gets an empty dict.
        """
        if self.role == Role.ADMIN:
            return record
        if self.role not in (Role.PARENT, Role.INSTRUCTOR, Role.GUEST):
            return {}
        try:
            kind = RecordKind(kind)
        except ValueError:
            return {}
        if not isinstance(record, Mapping):
            return {}
        ctx = EvaluationContext(target_record=record, record_kind=kind, linked_kid=linked_kid)
        if not self._linked(ctx.owner_record):
            return {}
        prefix = VEHICLE_ROOT if kind == RecordKind.VEHICLE else ROOT
        return self._redact(record, prefix)

    def field_value(self, field: FieldLike, context: Optional[EvaluationContext] = None,
                    default: Any = "-") -> Any:
        """Read a field for display: None when hidden, *default* when empty."""
        path = FieldPath.parse(field)
        if path is None or not self.can_view_field(path, context):
            return None
        value = get_path(self._context(context).target_record, path)
        return value or default

    def apply_edits(self, updates: Any,
                    context: Optional[EvaluationContext] = None) -> Tuple[dict, List[str]]:
        """Apply ``{field: value}`` updates to a copy of the context's record.

        All-or-nothing: if any field may not be edited the record comes back
        unchanged together with the sorted list of rejected fields. Malformed
        paths, and paths that overlap another key of the same update (one
        inside the other), are rejected for every role.
        """
        ctx = self._context(context)
        record = dict(ctx.target_record) if isinstance(ctx.target_record, Mapping) else {}
        updated = copy.deepcopy(record)
        if not isinstance(updates, Mapping):
            return updated, []

        parsed = [(str(field), FieldPath.parse(field), value) for field, value in updates.items()]
        paths = [path for _, path, _ in parsed if path is not None]
        rejected = set()
        for name, path, _ in parsed:
            if path is None or not self.can_edit_field(path, ctx):
                rejected.add(name)
            elif sum(1 for other in paths if path.is_within(other) or other.is_within(path)) > 1:
                rejected.add(name)
        if rejected:
            return updated, sorted(rejected)

        for _, path, value in parsed:
            set_path(updated, path, copy.deepcopy(value))
        return updated, []
