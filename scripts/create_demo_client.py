"""
Create the demo client (TechCorp Solutions, token G1001) with its four
journey pages. Safe to re-run: does nothing if the token already exists.

Usage:
  python scripts/create_demo_client.py
"""

from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.genius.modules.clients.service import create_client, get_client_by_token  # noqa: E402
from scripts._db_utils import resolve_database_url, script_session  # noqa: E402

DEMO_TOKEN = "G1001"
DEMO_CLIENT = {
    "company": "TechCorp Solutions",
    "contact": "John Smith",
    "email": "john@techcorp.com",
    "position": "Senior Software Engineer",
    "salary": "$120,000 - $150,000",
    "hypothesis": (
        "John's current role lacks growth opportunities and he values work-life balance and "
        "remote flexibility. Our premium placement service should emphasize career advancement "
        "and flexible work arrangements to drive conversion."
    ),
}


def create_demo_client(*, database_url: str | None = None) -> str:
    with script_session(resolve_database_url(database_url)) as s:
        existing = get_client_by_token(s, DEMO_TOKEN)
        if existing:
            print(f"Demo client already exists (id={existing.id}, token={existing.token}).")
            return existing.token
        c = create_client(s, DEMO_CLIENT, user=None, token=DEMO_TOKEN)
        print(f"Created demo client {c.company} (id={c.id}) with {len(c.pages)} journey pages.")
        print(f"Client link: /activate/{c.token}")
        return c.token


def main() -> None:
    create_demo_client()


if __name__ == "__main__":
    main()
