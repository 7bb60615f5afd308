"""
Smoke checks for the Rally Access API endpoints.
Run the API server first: python -m rally_access.api.app
Then run this: python scripts/api_smoke.py
"""

import json
import os
import traceback

import requests

BASE_URL = os.getenv("API_BASE_URL", "http://localhost:8000")


def banner(title):
    print("\n" + "=" * 50)
    print(f"CHECK: {title}")
    print("=" * 50)


def show(response):
    print(f"Status Code: {response.status_code}")
    print(f"Response: {json.dumps(response.json(), indent=2)[:1500]}")


def check_health():
    banner("Health Check")
    response = requests.get(f"{BASE_URL}/health")
    show(response)
    return response.status_code == 200


def check_login(api_key):
    banner("Login")
    response = requests.post(f"{BASE_URL}/api/auth/login", json={"api_key": api_key})
    show(response)
    if response.status_code == 200:
        return response.json().get("token")
    return None


def check_login_invalid():
    banner("Login with Invalid Credentials")
    response = requests.post(f"{BASE_URL}/api/auth/login", json={"api_key": "invalid-key-123"})
    show(response)
    return response.status_code == 401


def check_kids_without_token():
    banner("Kids Without Token")
    response = requests.get(f"{BASE_URL}/api/kids")
    show(response)
    return response.status_code == 401


def check_kids(token):
    """List visible kids; returns the first kid id (or None)."""
    banner("List Visible Kids")
    response = requests.get(f"{BASE_URL}/api/kids", headers={"Authorization": f"Bearer {token}"})
    show(response)
    if response.status_code != 200:
        return None
    kids = response.json().get("kids", [])
    return kids[0].get("id") if kids else None


def check_kid_permissions(token, kid_id):
    banner("Field Permissions")
    response = requests.get(
        f"{BASE_URL}/api/kids/{kid_id}/permissions",
        headers={"Authorization": f"Bearer {token}"},
        params={"fields": "personalInfo.firstName,parentInfo.email,comments.parent,medicalNotes"},
    )
    show(response)
    return response.status_code == 200


def check_delete_gate(token, kid_id):
    """DELETE must be refused unless the login carries can_delete."""
    banner("Delete Gate")
    profile = requests.get(f"{BASE_URL}/api/user/profile", headers={"Authorization": f"Bearer {token}"})
    can_delete = profile.json().get("capabilities", {}).get("can_delete", False)
    if can_delete:
        print("Login may delete; skipping so the seeded kid survives.")
        return True
    response = requests.delete(f"{BASE_URL}/api/kids/{kid_id}", headers={"Authorization": f"Bearer {token}"})
    show(response)
    return response.status_code == 403


def check_profile(token):
    banner("Get User Profile")
    response = requests.get(f"{BASE_URL}/api/user/profile", headers={"Authorization": f"Bearer {token}"})
    show(response)
    return response.status_code == 200


def check_logout(token):
    banner("Logout")
    response = requests.post(f"{BASE_URL}/api/auth/logout", headers={"Authorization": f"Bearer {token}"})
    show(response)
    return response.status_code == 200


def main():
    print("=" * 50)
    print("Rally Access API Smoke Run")
    print("=" * 50)
    print(f"Base URL: {BASE_URL}")
    print("Make sure the API server is running!")
    print()

    api_key = input("Enter your API key: ").strip()
    if not api_key:
        print("ERROR: API key is required")
        return

    results = {}
    try:
        results["Health Check"] = check_health()
        results["Login Invalid"] = check_login_invalid()

        token = check_login(api_key)
        if token:
            results["Login Valid"] = True
            results["Kids Without Token"] = check_kids_without_token()
            results["Get Profile"] = check_profile(token)
            kid_id = check_kids(token)
            if kid_id:
                results["Field Permissions"] = check_kid_permissions(token, kid_id)
                results["Delete Gate"] = check_delete_gate(token, kid_id)
            results["Logout"] = check_logout(token)
        else:
            results["Login Valid"] = False
            print("\nERROR: Could not login. Remaining checks skipped.")

    except Exception as e:
        print(f"\n\nERROR: {e}")
        traceback.print_exc()

    print("\n" + "=" * 50)
    print("SUMMARY")
    print("=" * 50)
    passed = sum(1 for v in results.values() if v)
    for name, result in results.items():
        status = "✓ PASS" if result else "✗ FAIL"
        print(f"{status}: {name}")
    print(f"\nTotal: {passed}/{len(results)} checks passed")
    print("=" * 50)


if __name__ == "__main__":
    main()
