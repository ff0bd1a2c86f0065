#!/usr/bin/env python3
"""
TaskFlow Quickstart — one user's task lifecycle in one script.

Registers a user → logs in → creates a task → lists → completes → deletes,
then shows that a second user can't see the first user's tasks.
Run with: python examples/quickstart.py

Requires: pip install httpx
Backend must be running: http://localhost:5000 (or set TASKFLOW_API_URL)
"""

import sys

from _common import create_client


def main():
    ann, ann_user = create_client("Ann")
    print(f"  User:  {ann_user['name']} ({ann_user['id'][:8]}...)")

    # ── Create task ───────────────────────────────────────────────
    print("\n1. Creating task...")
    resp = ann.post("/tasks", json={"title": "Write spec", "description": "First draft"})
    assert resp.status_code == 201, f"Failed: {resp.text}"
    task = resp.json()
    print(f"   Task {task['id'][:8]}...: {task['title']}")
    print(f"   Status: {task['status']}")

    # ── List ──────────────────────────────────────────────────────
    print("\n2. Listing tasks...")
    resp = ann.get("/tasks")
    listing = resp.json()
    print(f"   {listing['count']} task(s)")

    resp = ann.get("/tasks", params={"search": "spec"})
    print(f"   Search 'spec': {resp.json()['count']} match(es)")

    # ── Complete ──────────────────────────────────────────────────
    print("\n3. Completing task...")
    resp = ann.put(f"/tasks/{task['id']}", json={"status": "completed"})
    assert resp.status_code == 200, f"Failed: {resp.text}"
    print(f"   → {resp.json()['status']}")

    # ── Isolation ─────────────────────────────────────────────────
    print("\n4. Checking another user can't see it...")
    bob, _ = create_client("Bob")
    resp = bob.get(f"/tasks/{task['id']}")
    print(f"   Bob GET → {resp.status_code}")
    if resp.status_code != 404:
        print("ERROR: task visible to another user")
        sys.exit(1)
    print(f"   Bob's list: {bob.get('/tasks').json()['count']} task(s)")

    # ── Delete ────────────────────────────────────────────────────
    print("\n5. Deleting task...")
    resp = ann.delete(f"/tasks/{task['id']}")
    assert resp.status_code == 200, f"Failed: {resp.text}"
    print(f"   Remaining: {ann.get('/tasks').json()['count']} task(s)")

    print("\n✓ Lifecycle finished.")


if __name__ == "__main__":
    main()
