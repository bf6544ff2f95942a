"""Seed a running NoteEase adapter with demo notes.

Creates a spread of notes across builtin and custom categories, pins a
couple and moves one to the trash so every list screen has something to
show.

Usage:
    python scripts/seed_notes.py [--base-url http://localhost:8000] [--reset]
"""

from __future__ import annotations

import argparse
import sys

import requests

DEFAULT_BASE_URL = "http://localhost:8000"
TIMEOUT = 10


# Each entry: (title, content, category, pinned)
NOTES: list[tuple[str, str, str, bool]] = [
    ("Groceries", "<p>Eggs, milk, bread, <b>coffee</b></p>", "personal", True),
    ("Dentist", "<p>Thursday 9:30, bring insurance card</p>", "personal", False),
    ("Sprint planning", "<p>Carry over the search refactor</p>", "work", True),
    ("1:1 topics", "<ul><li>Growth plan</li><li>On-call rota</li></ul>", "work", False),
    ("Birthday list", "<p>Grandma: gardening gloves</p>", "family", False),
    ("Lisbon trip", "<p>Book tram 28 tickets early</p>", "travel", False),
    ("Sourdough", "<p>Feed starter at 8pm, 1:1:1</p>", "recipes", False),
    ("Old draft", "<p>Ideas that did not make it</p>", "personal", False),
]


def check_health(base_url: str) -> bool:
    """Verify the adapter is reachable and the store is ready."""
    try:
        resp = requests.get(f"{base_url}/health", timeout=TIMEOUT)
        data = resp.json()
        return data.get("status") == "healthy"
    except Exception as e:
        print(f"  Health check failed: {e}")
        return False


def create_note(base_url: str, title: str, content: str, category: str) -> dict:
    """Create one note and return it."""
    resp = requests.post(
        f"{base_url}/notes",
        json={"title": title, "content": content, "category": category},
        timeout=TIMEOUT,
    )
    resp.raise_for_status()
    return resp.json()


def main() -> None:
    """Create all demo notes sequentially."""
    parser = argparse.ArgumentParser(description="Seed NoteEase with demo notes")
    parser.add_argument(
        "--base-url",
        default=DEFAULT_BASE_URL,
        help=f"Adapter base URL (default: {DEFAULT_BASE_URL})",
    )
    parser.add_argument(
        "--reset", action="store_true", help="Wipe existing app data first"
    )
    args = parser.parse_args()
    base_url = args.base_url.rstrip("/")

    print(f"\n  Seeding notes via {base_url}")

    if not check_health(base_url):
        print("  FAIL: NoteEase is not ready. Is the adapter running?")
        sys.exit(1)

    if args.reset:
        resp = requests.post(f"{base_url}/reset", timeout=TIMEOUT)
        if not resp.json().get("ok"):
            print("  FAIL: storage could not be cleared.")
            sys.exit(1)
        print("  Existing data wiped.")

    created: dict[str, str] = {}
    for i, (title, content, category, pinned) in enumerate(NOTES, 1):
        try:
            note = create_note(base_url, title, content, category)
        except Exception as e:
            print(f"  [{i}/{len(NOTES)}] ERROR {title}: {e}")
            continue
        created[title] = note["id"]
        if pinned:
            requests.post(f"{base_url}/notes/{note['id']}/pin", timeout=TIMEOUT)
        print(f"  [{i}/{len(NOTES)}] {title} ({category}){' pinned' if pinned else ''}")

    if "Old draft" in created:
        requests.post(f"{base_url}/notes/{created['Old draft']}/delete", timeout=TIMEOUT)
        print("  Moved 'Old draft' to the trash.")

    state = requests.get(f"{base_url}/state", timeout=TIMEOUT).json()
    custom = [c["name"] for c in state["categories"] if c["custom"]]
    print()
    print(f"  Done! {len(created)} notes created, {len(state['notes'])} visible.")
    print(f"  Custom categories: {custom or '(none)'}")
    print(f"  API docs: {base_url}/docs")
    print()


if __name__ == "__main__":
    main()
