from __future__ import annotations

import datetime
import json
import os
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import (
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
    delete,
    select,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship, sessionmaker


DATA_DIR = Path(__file__).resolve().parent / "data"
DATA_DIR.mkdir(parents=True, exist_ok=True)
DATABASE_URL = os.environ.get(
    "LABOR_BUDGET_DATABASE_URL",
    f"sqlite:///{(DATA_DIR / 'labor.db').as_posix()}",
)
UTC = datetime.timezone.utc


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(UTC)


class Base(DeclarativeBase):
    """Metadata for locations, staff, shifts and the sales ledger."""

    pass


class Location(Base):
    __tablename__ = "locations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False, default="")
    target_labor_percent: Mapped[float | None] = mapped_column(Float, nullable=True)
    labor_budget_warning_percent: Mapped[float | None] = mapped_column(Float, nullable=True)
    labor_budget_max_percent: Mapped[float | None] = mapped_column(Float, nullable=True)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class Employee(Base):
    __tablename__ = "employees"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    full_name: Mapped[str] = mapped_column(String(120), nullable=False, default="")
    base_hourly_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    overtime_multiplier: Mapped[float] = mapped_column(Float, nullable=False, default=1.5)
    locations: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    status: Mapped[str] = mapped_column(String(12), default="active", nullable=False)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
    )

    wage_history: Mapped[List["EmployeePositionWage"]] = relationship(
        back_populates="employee",
        cascade="all, delete-orphan",
        order_by="EmployeePositionWage.effective_date",
        lazy="selectin",
    )

    @property
    def location_ids(self) -> List[int]:
        ids: List[int] = []
        for token in self.locations.split(","):
            token = token.strip()
            if token.isdigit():
                ids.append(int(token))
        return ids

    @location_ids.setter
    def location_ids(self, ids: Iterable[int]) -> None:
        self.locations = ",".join(str(value) for value in sorted({int(value) for value in ids}))


class EmployeePositionWage(Base):
    __tablename__ = "employee_position_wages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    employee_id: Mapped[int] = mapped_column(ForeignKey("employees.id", ondelete="CASCADE"))
    position: Mapped[str] = mapped_column(String(80), nullable=False)
    rate: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    effective_date: Mapped[datetime.date | None] = mapped_column(Date, nullable=True)

    employee: Mapped[Employee] = relationship(back_populates="wage_history")

    __table_args__ = (
        UniqueConstraint("employee_id", "position", "effective_date", name="uq_employee_position_wage"),
    )


class Shift(Base):
    __tablename__ = "shifts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    employee_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    position: Mapped[str] = mapped_column(String(80), nullable=False, default="")
    start: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class SalesEntry(Base):
    __tablename__ = "sales_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    location_id: Mapped[int] = mapped_column(Integer, nullable=False)
    date: Mapped[datetime.date] = mapped_column(Date, nullable=False)
    kind: Mapped[str] = mapped_column(String(12), nullable=False, default="actual")
    amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
    )

    __table_args__ = (
        UniqueConstraint("location_id", "date", "kind", name="uq_sales_entry_location_date_kind"),
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "location_id": self.location_id,
            "date": self.date.isoformat(),
            "kind": self.kind,
            "amount": self.amount,
        }


class AuditLog(Base):
    __tablename__ = "audit_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(60), nullable=False)
    action: Mapped[str] = mapped_column(String(60), nullable=False)
    target_type: Mapped[str] = mapped_column(String(32), nullable=False, default="SalesEntry")
    target_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    payloadJSON: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


engine = create_engine(
    DATABASE_URL,
    echo=False,
    future=True,
)
SessionLocal = sessionmaker(bind=engine, expire_on_commit=False, future=True)


def init_database() -> None:
    Base.metadata.create_all(engine)


def coerce_session(session):
    """Return (session, should_close), opening a fresh session when none is supplied."""
    if session is None:
        return SessionLocal(), True
    return session, False


def get_location(session, location_id: int) -> Optional[Location]:
    session, close_session = coerce_session(session)
    try:
        return session.get(Location, location_id)
    finally:
        if close_session:
            session.close()


def list_location_employees(session, location_id: int, *, only_active: bool = True) -> List[Employee]:
    session, close_session = coerce_session(session)
    try:
        stmt = select(Employee).order_by(Employee.full_name.asc(), Employee.id.asc())
        if only_active:
            stmt = stmt.where(Employee.status == "active")
        return [employee for employee in session.scalars(stmt) if location_id in employee.location_ids]
    finally:
        if close_session:
            session.close()


def get_shifts_between(
    session,
    start: datetime.date,
    end: datetime.date,
    *,
    employee_ids: Optional[Iterable[int]] = None,
) -> List[Shift]:
    """Return shifts starting on any day from ``start`` through ``end`` inclusive."""
    session, close_session = coerce_session(session)
    try:
        lower = datetime.datetime.combine(start, datetime.time.min)
        upper = datetime.datetime.combine(end + datetime.timedelta(days=1), datetime.time.min)
        stmt = (
            select(Shift)
            .where(Shift.start >= lower, Shift.start < upper)
            .order_by(Shift.start, Shift.end, Shift.id)
        )
        if employee_ids is not None:
            ids = list(employee_ids)
            if not ids:
                return []
            stmt = stmt.where(Shift.employee_id.in_(ids))
        return list(session.scalars(stmt))
    finally:
        if close_session:
            session.close()


def save_employee_wage_history(session, employee_id: int, entries: Iterable[Dict[str, Any]]) -> int:
    """Replace an employee's position wage history; returns the number of rows written."""
    session, close_session = coerce_session(session)
    try:
        session.execute(delete(EmployeePositionWage).where(EmployeePositionWage.employee_id == employee_id))
        count = 0
        for entry in entries or []:
            position = str(entry.get("position") or "").strip()
            if not position:
                continue
            try:
                rate = round(float(entry.get("rate", 0.0)), 2)
            except (TypeError, ValueError):
                continue
            effective = entry.get("effective_date")
            if isinstance(effective, str):
                effective = datetime.date.fromisoformat(effective) if effective else None
            session.add(
                EmployeePositionWage(
                    employee_id=employee_id,
                    position=position,
                    rate=max(0.0, rate),
                    effective_date=effective,
                )
            )
            count += 1
        session.commit()
        return count
    finally:
        if close_session:
            session.close()


def record_audit_log(
    session,
    user_id: str,
    action: str,
    target_type: str = "SalesEntry",
    target_id: Optional[int] = None,
    payload: Optional[Dict[str, Any]] = None,
    *,
    commit: bool = True,
) -> AuditLog:
    log = AuditLog(
        user_id=user_id,
        action=action,
        target_type=target_type,
        target_id=target_id,
        payloadJSON=json.dumps(payload or {}, default=str),
    )
    session.add(log)
    if commit:
        session.commit()
    return log
