"""
Shared helpers for TaskFlow examples.

Handles the health check and authentication (register + login) so each
example can focus on its specific workflow.
"""

import os
import sys
import uuid

import httpx

BASE = os.environ.get("TASKFLOW_API_URL", "http://localhost:5000/api").rstrip("/")


def check_backend() -> None:
    """Verify the backend is reachable and its database is connected."""
    try:
        resp = httpx.get(f"{BASE}/health", timeout=5)
    except httpx.ConnectError:
        print(f"ERROR: Backend not reachable at {BASE}")
        print("Start it with:  taskflow serve")
        sys.exit(1)

    if resp.status_code != 200:
        print(f"ERROR: Health check returned {resp.status_code}")
        sys.exit(1)

    health = resp.json()
    print("Backend health:")
    print(f"  Store: {health['store']}")
    print(f"  Redis: {health['redis']}")

    if health["status"] != "ok":
        print("\nERROR: Database is not connected. Run `taskflow check-store` for a diagnosis.")
        sys.exit(1)


def register_and_login(name: str, password: str = "demo-password-123") -> dict:
    """Register a fresh user and log in, returning the login response.

    Uses a unique email per run so examples can be re-run.
    """
    run_id = uuid.uuid4().hex[:8]
    email = f"{name.lower()}-{run_id}@example.com"

    resp = httpx.post(
        f"{BASE}/auth/register",
        json={"name": name, "email": email, "password": password},
        timeout=10,
    )
    if resp.status_code != 201:
        print(f"ERROR: Registration failed: {resp.status_code} {resp.text}")
        sys.exit(1)

    resp = httpx.post(
        f"{BASE}/auth/login",
        json={"email": email, "password": password},
        timeout=10,
    )
    if resp.status_code != 200:
        print(f"ERROR: Login failed: {resp.status_code} {resp.text}")
        sys.exit(1)
    return resp.json()


def create_client(name: str = "Demo") -> tuple[httpx.Client, dict]:
    """Check backend, authenticate, and return (client with auth headers, user)."""
    check_backend()
    login = register_and_login(name)
    print(f"  Auth:  ✓ ({login['user']['email']})")
    client = httpx.Client(
        base_url=BASE,
        timeout=10,
        headers={"Authorization": f"Bearer {login['token']}"},
    )
    return client, login["user"]
