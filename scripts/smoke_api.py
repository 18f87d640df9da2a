#!/usr/bin/env python3
"""Smoke test against a running API: /health, bookmark create, archive reaches a terminal state, delete.

Run with: python scripts/smoke_api.py
Requires: API running (uvicorn apps.linkvault.main:app) with outbound network for SMOKE_URL.
"""

import os
import sys
import time

import requests

API_BASE = os.getenv("API_BASE", "http://localhost:8000").rstrip("/")
SMOKE_URL = os.getenv("SMOKE_URL", "https://example.com/")
POLL_SECONDS = float(os.getenv("SMOKE_POLL_SECONDS", "90"))
TERMINAL = {"success", "failed", "blocked", "invalid_url"}


def main() -> int:
    failures: list[str] = []

    # 1. GET /health => ok true
    print("1. GET /health ...")
    try:
        r = requests.get(f"{API_BASE}/health", timeout=10)
        if r.status_code != 200 or not r.json().get("ok"):
            print(f"   FAIL: {r.status_code} {r.text[:200]}")
            return 1
        print(f"   ok archives={r.json().get('archives')}")
    except requests.RequestException as e:
        print(f"   FAIL: {e}")
        return 1

    # 2. POST /bookmarks (unique query string so reruns do not hit 409)
    print("2. POST /bookmarks ...")
    sep = "&" if "?" in SMOKE_URL else "?"
    url = f"{SMOKE_URL}{sep}smoke={int(time.time())}"
    r = requests.post(f"{API_BASE}/bookmarks", json={"url": url, "note": "smoke"}, timeout=10)
    if r.status_code != 201:
        print(f"   FAIL: {r.status_code} {r.text[:200]}")
        return 1
    bookmark_id = r.json()["id"]
    print(f"   ok id={bookmark_id}")

    # 3. Poll archive until terminal
    print("3. Poll archive ...")
    deadline = time.monotonic() + POLL_SECONDS
    state = None
    while time.monotonic() < deadline:
        r = requests.get(f"{API_BASE}/bookmarks/{bookmark_id}/archive", timeout=10)
        if r.status_code != 200:
            failures.append(f"archive => {r.status_code}")
            break
        data = r.json()
        state = data["state"]
        if state in TERMINAL:
            print(f"   {state} title={data.get('title')!r} error={data.get('error_message')!r}")
            break
        time.sleep(2)
    else:
        failures.append(f"archive still {state} after {POLL_SECONDS}s")
    if state != "success":
        failures.append(f"archive ended {state}")

    # 4. Transition history is ordered and has one head
    print("4. GET transitions ...")
    rows = requests.get(f"{API_BASE}/bookmarks/{bookmark_id}/archive/transitions", timeout=10).json()
    heads = [t for t in rows if t["most_recent"]]
    if len(heads) != 1 or [t["sort_key"] for t in rows] != list(range(1, len(rows) + 1)):
        failures.append(f"bad transition history: {rows}")
    print(f"   {[t['to_state'] for t in rows]}")

    # 5. DELETE cleans up
    print("5. DELETE /bookmarks ...")
    r = requests.delete(f"{API_BASE}/bookmarks/{bookmark_id}", timeout=10)
    if r.status_code != 204:
        failures.append(f"delete => {r.status_code}")

    if failures:
        print("\nFAILURES:", failures)
        return 1
    print("\nSmoke passed.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
