#!/usr/bin/env python3
"""
Generate API keys for dashboard users and a JWT secret for the API server.
Paste the JWT line into your .env and run the INSERT statements against the users table.
"""

import secrets
import string


def generate_api_key(prefix="rally", length=32):
    """Generate a secure random API key."""
    chars = string.ascii_letters + string.digits
    random_part = "".join(secrets.choice(chars) for _ in range(length))
    return f"{prefix}_{random_part}"


def generate_secret_key():
    return secrets.token_hex(32)


def insert_statement(display_name, role, api_key, instructor_id=None):
    instructor = f"'{instructor_id}'" if instructor_id else "NULL"
    return f"""
INSERT INTO users
    (id, display_name, role, instructor_id, api_key, is_active)
VALUES
    ('{secrets.token_hex(8)}', '{display_name}', '{role}', {instructor}, '{api_key}', 1);
"""


if __name__ == "__main__":
    print("=" * 70)
    print("Rally Access Key Generator")
    print("=" * 70)
    print()

    print("JWT secret (.env):")
    print("-" * 70)
    print(f"  JWT_SECRET_KEY={generate_secret_key()}")
    print()

    print("=" * 70)
    print("SQL Insert Examples:")
    print("=" * 70)

    print("-- For an Admin:")
    print(insert_statement("System Admin", "admin", generate_api_key()))

    print("-- For an Instructor:")
    print(insert_statement("Team Leader", "instructor", generate_api_key(), instructor_id="instr-01"))

    print("-- For a Parent:")
    print(insert_statement("Dana Parent", "parent", generate_api_key()))

    print("-- For a Host:")
    print(insert_statement("Event Host", "host", generate_api_key()))

    print("=" * 70)
    print("Note: Run these SQL statements in your database to create users.")
    print("=" * 70)
