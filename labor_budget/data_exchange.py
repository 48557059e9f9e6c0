from __future__ import annotations

import datetime
import json
from pathlib import Path
from typing import Dict, List, Optional

from sqlalchemy import select

from .database import DATA_DIR, SalesEntry, coerce_session
from .ledger import SalesLedger
from .periods import Period


EXPORT_DIR = DATA_DIR / "exports"
EXPORT_DIR.mkdir(parents=True, exist_ok=True)


def _timestamp() -> str:
    return datetime.datetime.now().strftime("%Y%m%d_%H%M%S")


# ---------------------------------------------------------------------------
# Sales ledger import/export


def export_sales_entries(session, location_id: int, period: Optional[Period] = None) -> Path:
    session, close_session = coerce_session(session)
    try:
        stmt = (
            select(SalesEntry)
            .where(SalesEntry.location_id == location_id)
            .order_by(SalesEntry.date.asc(), SalesEntry.kind.asc())
        )
        if period is not None:
            stmt = stmt.where(SalesEntry.date >= period.start, SalesEntry.date <= period.end)
        payload: List[Dict] = [
            {"date": entry.date.isoformat(), "kind": entry.kind, "amount": entry.amount}
            for entry in session.scalars(stmt)
        ]
    finally:
        if close_session:
            session.close()
    document = {
        "generated_at": datetime.datetime.now(datetime.timezone.utc).isoformat(),
        "location_id": location_id,
        "period": period.to_dict() if period else None,
        "entries": payload,
    }
    filename = EXPORT_DIR / f"sales_{location_id}_{_timestamp()}.json"
    filename.write_text(json.dumps(document, indent=2), encoding="utf-8")
    return filename


def import_sales_entries(
    ledger: SalesLedger,
    file_path: Path,
    *,
    location_id: Optional[int] = None,
) -> int:
    """Load a sales export into ``ledger``; the whole file is applied or rejected.

    ``location_id`` redirects the entries to another location; otherwise the
    location recorded in the file (or on each entry) is used.
    """
    data = json.loads(Path(file_path).read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError("Sales file must be a JSON object.")
    default_location = location_id if location_id is not None else data.get("location_id")
    entries = []
    for entry in data.get("entries", []):
        if not isinstance(entry, dict):
            entries.append(entry)
            continue
        target = location_id if location_id is not None else entry.get("location_id", default_location)
        entries.append(
            {
                "location_id": target,
                "date": entry.get("date"),
                "kind": entry.get("kind", "actual"),
                "amount": entry.get("amount"),
            }
        )
    return ledger.bulk_upsert(entries, action="SALES_IMPORT")
