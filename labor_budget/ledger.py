from __future__ import annotations

import datetime
import logging
import math
import threading
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from . import database
from .database import SalesEntry, record_audit_log
from .periods import Period


logger = logging.getLogger(__name__)

# process-wide: writers serialize across ledger instances
_WRITE_LOCK = threading.Lock()


class SalesKind(Enum):
    ACTUAL = "actual"
    PROJECTED = "projected"

    @classmethod
    def parse(cls, value) -> "SalesKind":
        if isinstance(value, SalesKind):
            return value
        try:
            return cls(str(value or "").strip().lower())
        except ValueError:
            raise ValueError(f"Unsupported sales kind '{value}'.") from None


class SalesValidationError(ValueError):
    """Raised when one or more sales entries fail validation; nothing is written."""

    def __init__(self, problems: List[Dict[str, Any]]) -> None:
        reasons = "; ".join(
            f"entry {problem.get('index', 0)}: {problem['reason']}" for problem in problems
        )
        super().__init__(f"Invalid sales data ({reasons})")
        self.problems = problems


def _as_date(value) -> datetime.date:
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    return datetime.date.fromisoformat(str(value))


def _validate(index: int, location_id, date_value, kind, amount) -> tuple:
    """Return ((location_id, date, kind, amount), None) or (None, problem)."""
    problem = {"index": index, "location_id": location_id, "date": date_value, "kind": kind}
    if isinstance(location_id, bool) or (isinstance(location_id, float) and not location_id.is_integer()):
        return None, {**problem, "reason": "location_id must be an integer"}
    try:
        parsed_location = int(location_id)
    except (TypeError, ValueError, OverflowError):
        return None, {**problem, "reason": "location_id must be an integer"}
    try:
        parsed_date = _as_date(date_value)
    except (TypeError, ValueError):
        return None, {**problem, "reason": "date must be an ISO calendar date"}
    try:
        parsed_kind = SalesKind.parse(kind)
    except ValueError as exc:
        return None, {**problem, "reason": str(exc)}
    if isinstance(amount, bool):
        return None, {**problem, "reason": "amount must be numeric"}
    try:
        parsed_amount = float(amount)
    except (TypeError, ValueError):
        return None, {**problem, "reason": "amount must be numeric"}
    if math.isnan(parsed_amount) or math.isinf(parsed_amount):
        return None, {**problem, "reason": "amount must be numeric"}
    if parsed_amount < 0:
        return None, {**problem, "reason": "amount must not be negative"}
    return (parsed_location, parsed_date, parsed_kind, parsed_amount), None


class SalesLedger:
    """Actual and projected sales per location and day, one entry per key.

    Reads and writes go through ``session_factory``; every write commits as a
    single transaction together with its audit record.
    """

    def __init__(self, session_factory: Optional[Callable] = None, *, actor: str = "system") -> None:
        self._session_factory = session_factory
        self.actor = actor
        self._write_lock = _WRITE_LOCK

    def _session(self):
        factory = self._session_factory or database.SessionLocal
        return factory()

    @staticmethod
    def _find(session, location_id: int, date_value: datetime.date, kind: SalesKind) -> Optional[SalesEntry]:
        stmt = select(SalesEntry).where(
            SalesEntry.location_id == location_id,
            SalesEntry.date == date_value,
            SalesEntry.kind == kind.value,
        )
        return session.scalars(stmt).first()

    def get(self, location_id: int, date_value, kind) -> Optional[SalesEntry]:
        sales_kind = SalesKind.parse(kind)
        with self._session() as session:
            return self._find(session, int(location_id), _as_date(date_value), sales_kind)

    def entries(self, location_id: int, period: Period, kind=None) -> List[SalesEntry]:
        stmt = (
            select(SalesEntry)
            .where(
                SalesEntry.location_id == int(location_id),
                SalesEntry.date >= period.start,
                SalesEntry.date <= period.end,
            )
            .order_by(SalesEntry.date, SalesEntry.kind)
        )
        if kind is not None:
            stmt = stmt.where(SalesEntry.kind == SalesKind.parse(kind).value)
        with self._session() as session:
            return list(session.scalars(stmt))

    def range_total(self, location_id: int, period: Period, kind) -> float:
        stmt = select(func.coalesce(func.sum(SalesEntry.amount), 0.0)).where(
            SalesEntry.location_id == int(location_id),
            SalesEntry.kind == SalesKind.parse(kind).value,
            SalesEntry.date >= period.start,
            SalesEntry.date <= period.end,
        )
        with self._session() as session:
            return float(session.scalar(stmt) or 0.0)

    def daily_totals(self, location_id: int, period: Period, kind) -> Dict[datetime.date, float]:
        totals = {day: 0.0 for day in period.days()}
        for entry in self.entries(location_id, period, kind):
            totals[entry.date] = totals.get(entry.date, 0.0) + float(entry.amount or 0.0)
        return totals

    def upsert(self, location_id, date_value, kind, amount) -> SalesEntry:
        parsed, problem = _validate(0, location_id, date_value, kind, amount)
        if problem:
            raise SalesValidationError([problem])
        return self._apply([parsed], action="SALES_UPSERT")[0]

    def bulk_upsert(self, entries: Iterable[Dict[str, Any]], *, action: str = "SALES_BULK_UPSERT") -> int:
        """Apply every entry or none of them; returns the number of entries written."""
        parsed_entries = []
        problems: List[Dict[str, Any]] = []
        for index, entry in enumerate(entries or []):
            if not isinstance(entry, dict):
                problems.append({"index": index, "reason": "entry must be a mapping"})
                continue
            parsed, problem = _validate(
                index,
                entry.get("location_id"),
                entry.get("date"),
                entry.get("kind"),
                entry.get("amount"),
            )
            if problem:
                problems.append(problem)
            else:
                parsed_entries.append(parsed)
        if problems:
            raise SalesValidationError(problems)
        if not parsed_entries:
            return 0
        # Later duplicates of a key win, matching sequential upserts.
        deduped: Dict[tuple, tuple] = {}
        for parsed in parsed_entries:
            deduped[parsed[:3]] = parsed
        return len(self._apply(list(deduped.values()), action=action))

    def _apply(self, parsed_entries: List[tuple], *, action: str) -> List[SalesEntry]:
        with self._write_lock:
            try:
                return self._write(parsed_entries, action=action)
            except IntegrityError:
                # Another writer inserted one of the keys first; retry as an update.
                logger.info("Sales upsert collided with a concurrent insert; retrying")
                return self._write(parsed_entries, action=action)

    def _write(self, parsed_entries: List[tuple], *, action: str) -> List[SalesEntry]:
        written: List[SalesEntry] = []
        with self._session() as session:
            with session.begin():
                for location_id, date_value, kind, amount in parsed_entries:
                    entry = self._find(session, location_id, date_value, kind)
                    if entry is None:
                        entry = SalesEntry(location_id=location_id, date=date_value, kind=kind.value)
                        session.add(entry)
                    entry.amount = amount
                    written.append(entry)
                session.flush()
                record_audit_log(
                    session,
                    user_id=self.actor,
                    action=action,
                    target_type="SalesEntry",
                    target_id=written[0].id if len(written) == 1 else None,
                    payload={
                        "count": len(written),
                        "entries": [
                            {
                                "location_id": entry.location_id,
                                "date": entry.date.isoformat(),
                                "kind": entry.kind,
                                "amount": entry.amount,
                            }
                            for entry in written[:50]
                        ],
                    },
                    commit=False,
                )
        return written
