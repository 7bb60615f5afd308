#!/usr/bin/env python3
"""
Seed the users and kids tables with fake data for local development.
Prints the API key of every created user so you can log in with them.
"""

import random
import secrets
import string
import uuid
from datetime import datetime, timedelta

from faker import Faker
from sqlalchemy import text

from rally_access.config import USERS_TABLE
from rally_access.database import init_engine, create_schema, insert_kid

# --------------------------------------------------------------------
# CONFIG
# --------------------------------------------------------------------
NUM_PARENTS = 12
NUM_INSTRUCTORS = 3
NUM_GUESTS = 2
NUM_KIDS = 20

# share of kids still carrying only the legacy singular parentId
LEGACY_PARENT_SHARE = 0.25

# --------------------------------------------------------------------
# SETUP
# --------------------------------------------------------------------
fake = Faker()
random.seed(42)
Faker.seed(42)


# --------------------------------------------------------------------
# HELPERS
# --------------------------------------------------------------------
def random_bool(p_true=0.5):
    return random.random() < p_true


def random_datetime_within(days_back=365):
    now = datetime.utcnow()
    delta = timedelta(days=random.randint(0, days_back), seconds=random.randint(0, 86400))
    return now - delta


def new_api_key(prefix="rally", length=32):
    chars = string.ascii_letters + string.digits
    return f"{prefix}_" + "".join(secrets.choice(chars) for _ in range(length))


# --------------------------------------------------------------------
# SEED FUNCTIONS
# --------------------------------------------------------------------
def seed_users(conn, role, n, instructor_ids=None):
    rows = []
    for i in range(n):
        rows.append(
            {
                "id": str(uuid.uuid4()),
                "display_name": fake.name(),
                "role": role,
                "instructor_id": instructor_ids[i] if instructor_ids else None,
                "api_key": new_api_key(),
                "is_active": 1,
            }
        )
    conn.execute(
        text(f"""
            INSERT INTO {USERS_TABLE} (id, display_name, role, instructor_id, api_key, is_active)
            VALUES (:id, :display_name, :role, :instructor_id, :api_key, :is_active)
        """),
        rows,
    )
    return rows


def build_kid(number, parent, co_parent, instructor_id):
    parent_info = {
        "name": parent["display_name"],
        "email": fake.email(),
        "phone": fake.phone_number(),
        "grandparentsInfo": {
            "names": f"{fake.name()} & {fake.name()}",
            "phone": fake.phone_number(),
        },
    }
    if random_bool(LEGACY_PARENT_SHARE):
        parent_info["parentId"] = parent["id"]
    else:
        parent_ids = [parent["id"]]
        if co_parent is not None:
            parent_ids.append(co_parent["id"])
        parent_info["parentIds"] = parent_ids

    return {
        "participantNumber": f"{number:03d}",
        "instructorId": instructor_id,
        "personalInfo": {
            "firstName": fake.first_name(),
            "lastName": fake.last_name(),
            "address": fake.street_address(),
            "dateOfBirth": fake.date_of_birth(minimum_age=5, maximum_age=14).isoformat(),
            "capabilities": random.choice(["walks", "wheelchair", "walker"]),
            "announcersNotes": fake.sentence(),
            "photo": None,
        },
        "parentInfo": parent_info,
        "comments": {
            "parent": fake.sentence() if random_bool(0.5) else "",
            "organization": fake.sentence() if random_bool(0.3) else "",
            "teamLeader": fake.sentence() if random_bool(0.3) else "",
            "familyContact": fake.sentence() if random_bool(0.2) else "",
        },
        "instructorComments": fake.sentence() if random_bool(0.4) else "",
        "medicalNotes": fake.sentence() if random_bool(0.3) else "",
        "emergencyContact": fake.name(),
        "emergencyPhone": fake.phone_number(),
        "signedDeclaration": random_bool(0.8),
        "signedFormStatus": random.choice(["pending", "completed"]),
        "vehicle": {
            "make": random.choice(["Power Wheels", "Peg Perego", "Razor"]),
            "model": fake.word().title(),
            "licensePlate": fake.bothify("??-###").upper(),
            "batteryType": random.choice(["12V", "24V"]),
            "batteryDate": random_datetime_within(400).date().isoformat(),
            "driveType": random.choice(["single", "dual"]),
            "steeringType": random.choice(["joystick", "wheel"]),
            "notes": fake.sentence(),
            "modifications": fake.sentence() if random_bool(0.3) else "",
        },
        "createdAt": random_datetime_within().isoformat(),
    }


def seed_kids(engine, parents, instructor_ids, n=NUM_KIDS):
    kid_ids = []
    for number in range(1, n + 1):
        parent = random.choice(parents)
        co_parent = random.choice(parents) if random_bool(0.3) else None
        if co_parent is parent:
            co_parent = None
        kid_id = str(uuid.uuid4())
        insert_kid(engine, kid_id, build_kid(number, parent, co_parent, random.choice(instructor_ids)))
        kid_ids.append(kid_id)
    return kid_ids


def main():
    engine = init_engine()
    create_schema(engine)

    instructor_ids = [f"instr-{i + 1:02d}" for i in range(NUM_INSTRUCTORS)]
    with engine.begin() as conn:
        admins = seed_users(conn, "admin", 1)
        instructors = seed_users(conn, "instructor", NUM_INSTRUCTORS, instructor_ids)
        parents = seed_users(conn, "parent", NUM_PARENTS)
        guests = seed_users(conn, "host", NUM_GUESTS)

    kid_ids = seed_kids(engine, parents, instructor_ids)

    print("=" * 70)
    print(f"Seeded {len(kid_ids)} kids")
    print("=" * 70)
    for user in admins + instructors + parents[:3] + guests:
        print(f"  {user['role']:<11} {user['display_name']:<28} {user['api_key']}")
    print("=" * 70)


if __name__ == "__main__":
    main()
