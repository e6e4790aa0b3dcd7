"""
Seed script for the Alerto store (Firestore or the in-memory store).

Usage:
  - Dry run (default): python scripts/seed_db.py
  - Apply to configured DB: python scripts/seed_db.py --apply
  - Force in-memory store even if Firebase is configured: python scripts/seed_db.py --apply --force-mock

Behavior:
  - Creates demo accounts for every role (password: "password123") around Naga City.
  - Creates a handful of alerts in different lifecycle states.
  - Existing accounts (same email) are skipped, so re-running is safe.

NOTE: When applying to real Firestore, ensure `FIREBASE_CREDENTIALS_PATH` is set and `USE_MOCK_DB=false` in `.env`.
"""

import argparse
from datetime import timedelta
from typing import Dict, List

from app.core.errors import ConflictError
from app.core.security import hash_password
from app.core.settings import settings
from app.models.alert import Alert, AlertLocation, TimelineEntry
from app.models.base import GeoPoint, utcnow
from app.models.user import EmergencyContact, User
from app.repositories import Repositories, get_repositories, reset_repositories

DEMO_PASSWORD = "password123"

DEMO_USERS: List[Dict] = [
    {"key": "police1", "name": "Police Station 1", "email": "police1@naga.gov.ph", "role": "police",
     "contact_number": "09171234567", "coordinates": [123.1816, 13.6218],
     "address": "Naga City Police Station 1, Panganiban Drive, Naga City"},
    {"key": "police2", "name": "Police Station 2", "email": "police2@naga.gov.ph", "role": "police",
     "contact_number": "09171234568", "coordinates": [123.1850, 13.6190],
     "address": "Naga City Police Station 2, Carolina, Naga City"},
    {"key": "bmc", "name": "Bicol Medical Center", "email": "bmc@hospital.ph", "role": "hospital",
     "contact_number": "09181234567", "coordinates": [123.1789, 13.6195],
     "address": "Bicol Medical Center, Naga City"},
    {"key": "ncgh", "name": "Naga City Hospital", "email": "ncgh@hospital.ph", "role": "hospital",
     "contact_number": "09181234568", "coordinates": [123.1820, 13.6240],
     "address": "Naga City Hospital, Downtown, Naga City"},
    {"key": "fire", "name": "Naga Fire Station", "email": "fire@naga.gov.ph", "role": "fire",
     "contact_number": "09191234567", "coordinates": [123.1805, 13.6210],
     "address": "Naga City Fire Station, Naga City"},
    {"key": "juan", "name": "Juan Dela Cruz", "email": "juan@email.com", "role": "citizen",
     "contact_number": "09201234567", "coordinates": [123.1830, 13.6200],
     "address": "Penafrancia Ave, Naga City",
     "emergency_contacts": [{"name": "Maria Dela Cruz", "relationship": "wife", "contact_number": "09201234568"}]},
    {"key": "maria", "name": "Maria Santos", "email": "maria@email.com", "role": "citizen",
     "contact_number": "09211234567", "coordinates": [123.1870, 13.6180],
     "address": "Magsaysay Ave, Naga City",
     "emergency_contacts": [{"name": "Pedro Santos", "relationship": "husband", "contact_number": "09211234568"}]},
    {"key": "pedro", "name": "Pedro Garcia", "email": "pedro@email.com", "role": "family",
     "contact_number": "09221234567", "coordinates": [123.1795, 13.6225],
     "address": "Elias Angeles St, Naga City"},
    {"key": "admin", "name": "System Admin", "email": "admin@naga.gov.ph", "role": "admin",
     "contact_number": "09231234567", "coordinates": [123.1816, 13.6218],
     "address": "Naga City Hall"},
]

# Juan's alerts also reach Pedro
FAMILY_LINKS = {"juan": ["pedro"]}


def seed_users(repos: Repositories, apply: bool) -> Dict[str, User]:
    password_hash = hash_password(DEMO_PASSWORD) if apply else ""
    seeded: Dict[str, User] = {}

    for demo in DEMO_USERS:
        print(f"Preparing: users/{demo['email']} ({demo['role']})")
        if not apply:
            continue
        user = User(
            id=repos.users.new_id(),
            name=demo["name"],
            email=demo["email"],
            password_hash=password_hash,
            contact_number=demo["contact_number"],
            role=demo["role"],
            address=demo["address"],
            location=GeoPoint(coordinates=demo["coordinates"]),
            is_verified=True,
            emergency_contacts=[EmergencyContact(**c) for c in demo.get("emergency_contacts", [])],
        )
        try:
            seeded[demo["key"]] = repos.users.create(user)
            print(f"Wrote: users/{user.id}")
        except ConflictError:
            seeded[demo["key"]] = repos.users.get_by_email(demo["email"])
            print(f"Skipped (exists): {demo['email']}")

    if apply:
        for key, members in FAMILY_LINKS.items():
            member_ids = [seeded[m].id for m in members if m in seeded]
            repos.users.update(seeded[key].id, {"family_members": member_ids})
    return seeded


def _alert(repos: Repositories, reporter: User, title: str, type: str, priority: str, status: str,
           address: str, coordinates: List[float], age_minutes: int) -> Alert:
    created = utcnow() - timedelta(minutes=age_minutes)
    return Alert(
        id=repos.alerts.new_id(),
        title=title,
        type=type,
        priority=priority,
        status=status,
        location=AlertLocation(address=address, coordinates=GeoPoint(coordinates=coordinates)),
        reporter=reporter.id,
        timeline=[TimelineEntry(action="Alert created", user=reporter.id, timestamp=created)],
        created_at=created,
        updated_at=created,
    )


def seed_alerts(repos: Repositories, users: Dict[str, User], apply: bool) -> None:
    titles = [
        "Chest Pain - Need Urgent Medical Help",
        "Robbery in Progress",
        "House Fire - Family Trapped",
        "Vehicle Collision",
    ]
    for title in titles:
        print(f"Preparing: alerts/{title}")
    if not apply:
        return

    juan, maria, pedro = users["juan"], users["maria"], users["pedro"]
    fire, police = users["fire"], users["police1"]

    alerts = [
        _alert(repos, juan, titles[0], "hospital", "high", "pending",
               "Penafrancia Ave, Naga City", [123.1830, 13.6200], 5),
        _alert(repos, maria, titles[1], "police", "critical", "active",
               "Magsaysay Ave, Naga City", [123.1870, 13.6180], 15),
    ]

    burning = _alert(repos, pedro, titles[2], "fire", "critical", "responded",
                     "Elias Angeles St, Naga City", [123.1795, 13.6225], 30)
    burning.responder = fire.id
    burning.response_time = burning.created_at + timedelta(minutes=4)
    burning.timeline.append(TimelineEntry(
        action="Responder assigned and en route", user=fire.id, timestamp=burning.response_time
    ))
    alerts.append(burning)

    collision = _alert(repos, juan, titles[3], "police", "medium", "resolved",
                       "Panganiban Drive, Naga City", [123.1810, 13.6205], 120)
    collision.responder = police.id
    collision.response_time = collision.created_at + timedelta(minutes=6)
    collision.resolved_time = collision.created_at + timedelta(minutes=50)
    collision.timeline.extend([
        TimelineEntry(action="Responder assigned and en route", user=police.id, timestamp=collision.response_time),
        TimelineEntry(action="Alert resolved", user=police.id, timestamp=collision.resolved_time,
                      notes="Vehicles cleared, no injuries"),
    ])
    alerts.append(collision)

    for alert in alerts:
        repos.alerts.create(alert)
        print(f"Wrote: alerts/{alert.id} ({alert.status})")


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--apply", action="store_true", help="Write seed to the DB instead of dry-run")
    parser.add_argument("--force-mock", action="store_true", help="Force the in-memory store even if Firebase is configured")
    args = parser.parse_args()

    if args.force_mock:
        print("Forcing in-memory store for this run.")
        settings.USE_MOCK_DB = True
        reset_repositories()

    repos = get_repositories()
    users = seed_users(repos, apply=args.apply)
    seed_alerts(repos, users, apply=args.apply)

    if args.apply:
        print(f"Seeding completed. All demo passwords: {DEMO_PASSWORD}")
    else:
        print("Dry run complete. Re-run with --apply to write to DB.")


if __name__ == "__main__":
    main()
