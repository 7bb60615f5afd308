"""
Domain dataclasses and enums used across the application.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional


class Role(str, Enum):
    """Caller role. UNRECOGNIZED is kept apart from GUEST on purpose."""
    ADMIN = "admin"
    INSTRUCTOR = "instructor"
    PARENT = "parent"
    GUEST = "guest"
    UNRECOGNIZED = "unrecognized"

    @classmethod
    def parse(cls, value: Any) -> "Role":
        """Map a raw role value from the user store onto a Role."""
        if value is None:
            return cls.GUEST
        if not isinstance(value, str):
            return cls.UNRECOGNIZED
        key = value.strip().lower()
        if not key:
            return cls.GUEST
        if key == "host":
            return cls.GUEST
        try:
            return cls(key)
        except ValueError:
            return cls.UNRECOGNIZED


def link_id(value: Any) -> Optional[str]:
    """Normalise a stored link id; blank or missing ids link to nothing."""
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip()
    return text or None


class RecordKind(str, Enum):
    KID = "kid"
    VEHICLE = "vehicle"


@dataclass(frozen=True)
class Caller:
    """The authenticated user's identity and relationship attributes."""
    user_id: str
    role: Role
    instructor_id: Optional[str] = None  # scope for instructor role
    display_name: str = ""

    @classmethod
    def from_user_data(cls, user_id: str, user_data: Optional[Mapping[str, Any]]) -> "Caller":
        data = user_data if isinstance(user_data, Mapping) else {}
        return cls(
            user_id=str(user_id),
            role=Role.parse(data.get("role")),
            instructor_id=link_id(data.get("instructorId")),
            display_name=str(data.get("displayName") or ""),
        )


@dataclass(frozen=True)
class Capabilities:
    """Coarse CRUD flags for a role, independent of any record."""
    can_create: bool = False
    can_edit: bool = False
    can_delete: bool = False
    can_view: bool = False

    def as_dict(self) -> dict:
        return {
            "can_create": self.can_create,
            "can_edit": self.can_edit,
            "can_delete": self.can_delete,
            "can_view": self.can_view,
        }


@dataclass(frozen=True)
class EvaluationContext:
    """The record a field check is made against.

    For vehicle records, *linked_kid* is the kid the vehicle is assigned to;
    parent and instructor ownership is resolved through it.
    """
    target_record: Optional[Mapping[str, Any]]
    record_kind: RecordKind = RecordKind.KID
    linked_kid: Optional[Mapping[str, Any]] = None

    @classmethod
    def for_kid(cls, kid: Optional[Mapping[str, Any]]) -> "EvaluationContext":
        return cls(target_record=kid, record_kind=RecordKind.KID)

    @classmethod
    def for_vehicle(cls, vehicle: Optional[Mapping[str, Any]],
                    kid: Optional[Mapping[str, Any]] = None) -> "EvaluationContext":
        return cls(target_record=vehicle, record_kind=RecordKind.VEHICLE, linked_kid=kid)

    @property
    def owner_record(self) -> Optional[Mapping[str, Any]]:
        """The record that carries the parent/instructor links."""
        if self.record_kind == RecordKind.VEHICLE:
            return self.linked_kid
        return self.target_record
