from __future__ import annotations

import datetime
import json
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Integer,
    String,
    UniqueConstraint,
    create_engine,
    select,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker
from sqlalchemy.types import Time


DATA_DIR = Path(__file__).resolve().parent / "data"
DATA_DIR.mkdir(parents=True, exist_ok=True)
DATABASE_URL = f"sqlite:///{(DATA_DIR / 'parade.db').as_posix()}"
# Weeks start on Sunday; day_of_week 0 = Sunday ... 6 = Saturday.
WEEK_STARTS_ON = 6  # datetime.date.weekday() value for Sunday
DAY_LABELS = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]
DAY_SHORT_LABELS = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def normalize_week_start(date_value: datetime.date) -> datetime.date:
    """Return the Sunday that opens the week containing the provided date."""
    if isinstance(date_value, datetime.datetime):
        date_value = date_value.date()
    offset = (date_value.weekday() - WEEK_STARTS_ON) % 7
    if offset == 0:
        return date_value
    return date_value - datetime.timedelta(days=offset)


def day_of_week(date_value: datetime.date) -> int:
    """Return the Sunday-based day index (0 = Sunday) for a date."""
    return (date_value.weekday() - WEEK_STARTS_ON) % 7


def format_week_label(week_start: datetime.date) -> str:
    end = week_start + datetime.timedelta(days=6)
    start_str = week_start.strftime("%b %d")
    end_str = end.strftime("%b %d")
    if week_start.year != end.year:
        start_str = week_start.strftime("%b %d %Y")
        end_str = end.strftime("%b %d %Y")
    return f"Week of {start_str} - {end_str}"


class Base(DeclarativeBase):
    """Metadata for every table of the parade board living in parade.db."""

    pass


class Person(Base):
    __tablename__ = "people"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    site: Mapped[str] = mapped_column(String(80), nullable=False)
    full_name: Mapped[str] = mapped_column(String(120), nullable=False)
    personal_number: Mapped[str] = mapped_column(String(20), nullable=False, default="")
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class ChecklistItem(Base):
    __tablename__ = "cleaning_checklist_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    site: Mapped[str] = mapped_column(String(80), nullable=False)
    item_name: Mapped[str] = mapped_column(String(160), nullable=False)
    item_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class WorkScheduleDay(Base):
    __tablename__ = "work_schedule"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    site: Mapped[str] = mapped_column(String(80), nullable=False)
    week_start_date: Mapped[datetime.date] = mapped_column(Date, nullable=False)
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)  # 0 = Sunday
    morning_person_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    afternoon_person_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    evening_person_id: Mapped[str | None] = mapped_column(String(36), nullable=True)

    __table_args__ = (
        UniqueConstraint("site", "week_start_date", "day_of_week", name="uq_work_schedule_site_week_day"),
    )


class ParadeDayConfig(Base):
    __tablename__ = "cleaning_parade_config"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    site: Mapped[str] = mapped_column(String(80), nullable=False)
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class ItemAssignment(Base):
    __tablename__ = "cleaning_item_assignments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    site: Mapped[str] = mapped_column(String(80), nullable=False)
    item_id: Mapped[str] = mapped_column(String(36), nullable=False)
    parade_day: Mapped[int] = mapped_column(Integer, nullable=False)
    # Legacy overloaded column: "manual-<personId>", "<day>-<shift>" or "prev-<day>-<shift>".
    shift_type: Mapped[str] = mapped_column(String(80), nullable=False)
    manual_person_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    deadline_time: Mapped[datetime.time | None] = mapped_column(Time, nullable=True)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
    )

    __table_args__ = (
        UniqueConstraint("site", "item_id", "parade_day", name="uq_item_assignment_site_item_day"),
    )


class AuditLog(Base):
    __tablename__ = "audit_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(60), nullable=False)
    action: Mapped[str] = mapped_column(String(60), nullable=False)
    target_type: Mapped[str] = mapped_column(String(32), nullable=False, default="Assignment")
    target_id: Mapped[str | None] = mapped_column(String(80), nullable=True)
    payloadJSON: Mapped[str] = mapped_column(String(4000), nullable=False, default="{}")
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    def payload_dict(self) -> Dict:
        try:
            value = json.loads(self.payloadJSON or "{}")
            if isinstance(value, dict):
                return value
        except json.JSONDecodeError:
            pass
        return {}


engine = create_engine(
    DATABASE_URL,
    echo=False,
    future=True,
)
SessionLocal = sessionmaker(bind=engine, expire_on_commit=False, future=True)


def init_database() -> None:
    Base.metadata.create_all(engine)


def add_person(session, *, site: str, full_name: str, personal_number: str = "", person_id: Optional[str] = None) -> Person:
    person = Person(site=site, full_name=full_name.strip(), personal_number=personal_number or "")
    if person_id:
        person.id = person_id
    session.add(person)
    session.commit()
    session.refresh(person)
    return person


def list_checklist_items(session, site: str, *, only_active: bool = True) -> List[ChecklistItem]:
    stmt = select(ChecklistItem).where(ChecklistItem.site == site)
    if only_active:
        stmt = stmt.where(ChecklistItem.is_active.is_(True))
    stmt = stmt.order_by(ChecklistItem.item_order.asc(), ChecklistItem.item_name.asc())
    return list(session.scalars(stmt))


def save_checklist_item(session, *, site: str, item_name: str, item_id: Optional[str] = None) -> ChecklistItem:
    name = (item_name or "").strip()
    if not name:
        raise ValueError("Checklist item name is required.")
    if item_id:
        item = session.get(ChecklistItem, item_id)
        if not item:
            raise ValueError(f"Checklist item with id {item_id} was not found.")
        item.item_name = name
    else:
        order = len(list_checklist_items(session, site, only_active=False))
        item = ChecklistItem(site=site, item_name=name, item_order=order)
        session.add(item)
    session.commit()
    session.refresh(item)
    return item


def upsert_roster_day(
    session,
    *,
    site: str,
    week_start: datetime.date,
    day: int,
    morning: Optional[str] = None,
    afternoon: Optional[str] = None,
    evening: Optional[str] = None,
) -> WorkScheduleDay:
    if day < 0 or day > 6:
        raise ValueError("day must be between 0 (Sunday) and 6 (Saturday).")
    normalized = normalize_week_start(week_start)
    stmt = select(WorkScheduleDay).where(
        WorkScheduleDay.site == site,
        WorkScheduleDay.week_start_date == normalized,
        WorkScheduleDay.day_of_week == day,
    )
    entry = session.scalars(stmt).first()
    if not entry:
        entry = WorkScheduleDay(site=site, week_start_date=normalized, day_of_week=day)
        session.add(entry)
    entry.morning_person_id = morning
    entry.afternoon_person_id = afternoon
    entry.evening_person_id = evening
    session.commit()
    session.refresh(entry)
    return entry


def record_audit_log(
    session,
    user_id: str,
    action: str,
    target_type: str = "Assignment",
    target_id: Optional[str] = None,
    payload: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    log = AuditLog(
        user_id=user_id,
        action=action,
        target_type=target_type,
        target_id=target_id,
        payloadJSON=json.dumps(payload or {}, default=str),
    )
    session.add(log)
    session.commit()
    return log


def list_audit_log(session, *, action: Optional[str] = None) -> List[AuditLog]:
    stmt = select(AuditLog)
    if action:
        stmt = stmt.where(AuditLog.action == action)
    stmt = stmt.order_by(AuditLog.id.asc())
    return list(session.scalars(stmt))
