from __future__ import annotations

import datetime
import sys
from pathlib import Path
from typing import Dict, List, Optional

from sqlalchemy import select

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from board import ParadeBoard
from database import (
    Person,
    SessionLocal,
    add_person,
    init_database,
    list_checklist_items,
    normalize_week_start,
    save_checklist_item,
    upsert_roster_day,
)

DEFAULT_SITE = "north-base"
DEFAULT_PARADE_DAYS = [0, 3]  # Sunday and Wednesday

SAMPLE_PEOPLE: List[Dict[str, str]] = [
    {"name": "Noa Levi", "personal_number": "8123401"},
    {"name": "Itai Cohen", "personal_number": "8123402"},
    {"name": "Maya Peretz", "personal_number": "8123403"},
    {"name": "Omer Biton", "personal_number": "8123404"},
    {"name": "Shira Mizrahi", "personal_number": "8123405"},
    {"name": "Yonatan Azulay", "personal_number": "8123406"},
]

SAMPLE_TASKS: List[str] = [
    "Vehicle bay floor",
    "Dispatch office",
    "Kitchenette",
    "Showers",
    "Parking lot litter",
]


def _ensure_people(session, site: str) -> List[str]:
    ids: List[str] = []
    for entry in SAMPLE_PEOPLE:
        stmt = select(Person).where(Person.site == site, Person.full_name == entry["name"])
        person = session.scalars(stmt).first()
        if not person:
            person = add_person(
                session,
                site=site,
                full_name=entry["name"],
                personal_number=entry["personal_number"],
            )
        ids.append(person.id)
    return ids


def _ensure_tasks(session, site: str) -> int:
    existing = {item.item_name for item in list_checklist_items(session, site, only_active=False)}
    created = 0
    for name in SAMPLE_TASKS:
        if name in existing:
            continue
        save_checklist_item(session, site=site, item_name=name)
        created += 1
    return created


def _rotate(ids: List[str], offset: int) -> Optional[str]:
    if not ids:
        return None
    return ids[offset % len(ids)]


def _fill_roster(session, site: str, week_start: datetime.date, ids: List[str]) -> None:
    for day in range(7):
        base = day * 3
        upsert_roster_day(
            session,
            site=site,
            week_start=week_start,
            day=day,
            morning=_rotate(ids, base),
            afternoon=_rotate(ids, base + 1),
            evening=_rotate(ids, base + 2),
        )


def seed_site(site: str = DEFAULT_SITE, today: Optional[datetime.date] = None) -> None:
    init_database()
    current = normalize_week_start(today or datetime.date.today())
    previous = current - datetime.timedelta(days=7)
    with SessionLocal() as session:
        ids = _ensure_people(session, site)
        created_tasks = _ensure_tasks(session, site)
        _fill_roster(session, site, previous, ids)
        _fill_roster(session, site, current, list(reversed(ids)))
    ParadeBoard(site, actor="seed").save_parade_days(DEFAULT_PARADE_DAYS)
    print(
        f"Seed complete for {site}. {len(ids)} people, {created_tasks} new tasks, "
        f"rosters for weeks of {previous.isoformat()} and {current.isoformat()}."
    )


if __name__ == "__main__":
    seed_site(sys.argv[1] if len(sys.argv) > 1 else DEFAULT_SITE)
