#!/usr/bin/env python
"""
Smoke check against a running API.

Walks a grievance from Draft to Resolved with the seeded officer and admin
accounts (see ``welfare-seed``) and prints each step.
"""
import argparse
import sys

import requests


def _call(method, url, token=None, **kwargs):
    headers = {"Content-Type": "application/json"}
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return requests.request(method, url, headers=headers, timeout=10, **kwargs)


def _step(label, response, expected):
    ok = response.status_code == expected
    print(f"   {label}: {response.status_code} {'✓' if ok else '✗'}")
    if not ok:
        print(f"   {response.text}")
    return ok


def run(base_url: str, officer_token: str, admin_token: str) -> bool:
    api = base_url.rstrip("/") + "/api"
    print(f"Smoke check against {api}")
    print("=" * 50)

    if not _step("health", _call("GET", f"{api}/health"), 200):
        return False
    if not _step("profile", _call("GET", f"{api}/auth/profile", officer_token), 200):
        return False

    created = _call(
        "POST",
        f"{api}/grievances",
        officer_token,
        json={
            "title": "Smoke check grievance",
            "description": "Created by the smoke check script",
            "category": "administrative",
            "priority": "low",
            "submit": True,
        },
    )
    if not _step("file grievance", created, 201):
        return False
    grievance_id = created.json()["id"]

    for transition in ("review", "resolve"):
        response = _call(
            "POST",
            f"{api}/grievances/{grievance_id}/transitions/{transition}",
            admin_token,
            json={"comment": f"smoke check {transition}"},
        )
        if not _step(transition, response, 200):
            return False

    history = _call("GET", f"{api}/grievances/{grievance_id}/history", officer_token)
    if not _step("history", history, 200):
        return False
    print(f"   stages: {' -> '.join(h['to_stage'] for h in history.json())}")
    return True


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Smoke check a running Welfare API")
    parser.add_argument("--base-url", default="http://localhost:8000")
    parser.add_argument("--officer-token", default="mock-test-officer-001")
    parser.add_argument("--admin-token", default="mock-test-admin-001")
    args = parser.parse_args(argv)

    try:
        ok = run(args.base_url, args.officer_token, args.admin_token)
    except requests.RequestException as exc:
        print(f"✗ Could not reach {args.base_url}: {exc}")
        return 2
    print("\n✓ All good" if ok else "\n✗ Smoke check failed")
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
