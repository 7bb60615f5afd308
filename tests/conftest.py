"""
Shared fixtures: sample records and an in-memory SQLite store.
"""

import copy

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.pool import StaticPool

from rally_access.database import create_schema, insert_kid


KID = {
    "id": "kid-1",
    "participantNumber": "007",
    "instructorId": "instr-1",
    "teamId": "team-9",
    "personalInfo": {
        "firstName": "Noa",
        "lastName": "Levi",
        "address": "1 Main St",
        "photo": "noa.jpg",
        "photoUrl": "http://cdn.example.com/noa.jpg",
    },
    "parentInfo": {
        "parentIds": ["user-123"],
        "name": "Dana Levi",
        "email": "dana@example.com",
        "phone": "050-0000000",
        "grandparentsInfo": {"names": "Avi & Rina", "phone": "052-0000000"},
    },
    "comments": {"parent": "loves red", "organization": "needs ramp", "teamLeader": "fast"},
    "medicalNotes": "asthma",
    "emergencyContact": "Moshe",
    "signedDeclaration": True,
    "vehicle": {"make": "Razor", "batteryType": "12V"},
}

OTHER_KID = {
    "id": "kid-2",
    "participantNumber": "008",
    "instructorId": "instr-2",
    "personalInfo": {"firstName": "Omer", "lastName": "Cohen"},
    "parentInfo": {"parentId": "other-parent", "email": "other@example.com"},
    "medicalNotes": "none",
}

USERS = [
    # id, display_name, role, instructor_id, api_key
    ("admin-1", "Ada Admin", "admin", None, "key-admin"),
    ("user-123", "Dana Levi", "parent", None, "key-parent"),
    ("instr-user", "Ido Instructor", "instructor", "instr-1", "key-instructor"),
    ("host-1", "Hila Host", "host", None, "key-host"),
    ("weird-1", "Sam Super", "superuser", None, "key-weird"),
]


@pytest.fixture
def kid():
    return copy.deepcopy(KID)


@pytest.fixture
def other_kid():
    return copy.deepcopy(OTHER_KID)


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    create_schema(eng)
    with eng.begin() as conn:
        for user_id, name, role, instructor_id, api_key in USERS:
            conn.execute(
                text("""
                    INSERT INTO users (id, display_name, role, instructor_id, api_key, is_active)
                    VALUES (:id, :name, :role, :iid, :key, 1)
                """),
                {"id": user_id, "name": name, "role": role, "iid": instructor_id, "key": api_key},
            )
    insert_kid(eng, KID["id"], KID)
    insert_kid(eng, OTHER_KID["id"], OTHER_KID)
    return eng
