"""
Per-role field policy tables and the capability matrix.

Rules are dotted paths. A trailing ``.*`` marks a subtree rule that covers
the path and everything beneath it; every other rule is an exact match.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from rally_access.fields import EMPTY_RULES, RuleSet
from rally_access.models import Capabilities, Role


@dataclass(frozen=True)
class RolePolicy:
    """Static field rules for one role. Deny always beats allow."""
    capabilities: Capabilities = field(default_factory=Capabilities)
    view_allow: RuleSet = EMPTY_RULES
    view_deny: RuleSet = EMPTY_RULES
    edit_allow: RuleSet = EMPTY_RULES


# ── Parent ───────────────────────────────────────────────────────────
PARENT_VIEW_ALLOW = RuleSet.of(
    "id", "participantNumber", "firstName", "lastName", "fullName",
    "personalInfo.firstName", "personalInfo.lastName",
    "personalInfo.address", "address", "personalInfo.dateOfBirth",
    "dateOfBirth", "personalInfo.capabilities", "personalInfo.announcersNotes",
    "personalInfo.photo",
    "parentInfo.parentId", "parentInfo.parentIds",
    "parentInfo.name", "guardianName", "parentInfo.email", "email",
    "parentInfo.phone", "contactNumber", "parentInfo.grandparentsInfo.*",
    "comments.parent", "notes", "signedDeclaration", "signedFormStatus",
    "vehicle.make", "vehicle.model", "vehicle.licensePlate", "vehicle.photo",
)

PARENT_VIEW_DENY = RuleSet.of(
    "comments.organization", "comments.teamLeader", "comments.familyContact",
    "instructorComments", "medicalNotes", "emergencyContact", "emergencyPhone",
    "vehicle.batteryType", "vehicle.batteryDate", "vehicle.driveType",
    "vehicle.steeringType", "vehicle.notes", "vehicle.modifications",
)

PARENT_EDIT_ALLOW = RuleSet.of(
    "comments.parent", "notes", "personalInfo.photo",
    "parentInfo.phone", "contactNumber",
    "parentInfo.grandparentsInfo.names", "parentInfo.grandparentsInfo.phone",
)

# ── Instructor ───────────────────────────────────────────────────────
# Linked instructors see every field, so there are no view tables.
INSTRUCTOR_EDIT_ALLOW = RuleSet.of(
    "comments.teamLeader", "instructorComments", "medicalNotes",
    "vehicle.batteryType", "vehicle.batteryDate", "vehicle.driveType",
    "vehicle.steeringType", "vehicle.notes", "vehicle.modifications",
)

# ── Guest / host ─────────────────────────────────────────────────────
GUEST_VIEW_ALLOW = RuleSet.of(
    "id", "firstName", "lastName",
    "personalInfo.firstName", "personalInfo.lastName",
    "personalInfo.address", "address",
    "personalInfo.capabilities", "personalInfo.announcersNotes",
    "parentInfo.name", "guardianName", "parentInfo.phone", "contactNumber",
    "vehicle.make", "vehicle.model", "participantNumber",
)

GUEST_VIEW_DENY = RuleSet.of(
    "parentInfo.email", "email", "comments.parent", "comments.familyContact",
    "parentInfo.grandparentsInfo.*", "signedDeclaration", "emergencyContact",
    "emergencyPhone",
)

GUEST_EDIT_ALLOW = RuleSet.of("comments.organization")


ROLE_POLICIES: Mapping[Role, RolePolicy] = MappingProxyType({
    Role.ADMIN: RolePolicy(
        capabilities=Capabilities(can_create=True, can_edit=True, can_delete=True, can_view=True),
    ),
    Role.INSTRUCTOR: RolePolicy(
        capabilities=Capabilities(can_create=True, can_edit=True, can_delete=False, can_view=True),
        edit_allow=INSTRUCTOR_EDIT_ALLOW,
    ),
    Role.PARENT: RolePolicy(
        capabilities=Capabilities(can_view=True),
        view_allow=PARENT_VIEW_ALLOW,
        view_deny=PARENT_VIEW_DENY,
        edit_allow=PARENT_EDIT_ALLOW,
    ),
    Role.GUEST: RolePolicy(
        capabilities=Capabilities(can_view=True),
        view_allow=GUEST_VIEW_ALLOW,
        view_deny=GUEST_VIEW_DENY,
        edit_allow=GUEST_EDIT_ALLOW,
    ),
    Role.UNRECOGNIZED: RolePolicy(),
})

NO_ACCESS = RolePolicy()


def policy_for(role: Role, policies: Mapping[Role, RolePolicy] = ROLE_POLICIES) -> RolePolicy:
    """Look up a role's policy; anything missing gets no access."""
    return policies.get(role, NO_ACCESS)
