"""Lightweight FastAPI wrapper over the labor budget engine.

Endpoints read the ledger and scheduling tables through the same helpers the
library exposes; every response is assembled from the engine's own payloads.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
import datetime
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from . import database, trends
from .budget import budget_config_for
from .database import get_location, get_shifts_between, init_database, list_location_employees
from .ledger import SalesLedger, SalesValidationError
from .periods import Period, Preset, custom_period, range_for, step
from .projection import autofill, autofill_entries, history_windows, parse_rule_key
from .summary import DEFAULT_TREND_PERIODS, get_period_summary


@asynccontextmanager
async def lifespan(_: FastAPI):
    init_database()
    yield


app = FastAPI(title="Labor Budget API", version="0.1", lifespan=lifespan)


def get_db():
    db = database.SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_ledger() -> SalesLedger:
    return SalesLedger(database.SessionLocal, actor="api")


def _parse_date(value: Optional[str], field: str) -> datetime.date:
    if not value:
        return datetime.date.today()
    try:
        return datetime.date.fromisoformat(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"{field} must be YYYY-MM-DD")


def _resolve_period(preset: str, ref: Optional[str], start: Optional[str], end: Optional[str]) -> Period:
    if Preset.parse(preset) is Preset.CUSTOM:
        if not start or not end:
            raise HTTPException(status_code=400, detail="custom periods require start and end")
        return custom_period(_parse_date(start, "start"), _parse_date(end, "end"))
    return range_for(preset, _parse_date(ref, "ref"))


def _require_location(db, location_id: int):
    location = get_location(db, location_id)
    if location is None:
        raise HTTPException(status_code=404, detail="Location not found")
    return location


def _actor(payload: Dict[str, Any]) -> str:
    return str(payload.get("actor") or "api").strip() or "api"


def _validation_error(exc: SalesValidationError) -> HTTPException:
    return HTTPException(
        status_code=400,
        detail=jsonable_encoder({"message": str(exc), "problems": exc.problems}),
    )


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/api/v1/periods/{preset}")
def period_range(
    preset: str,
    ref: Optional[str] = Query(None),
    direction: Optional[str] = Query(None),
    start: Optional[str] = Query(None),
    end: Optional[str] = Query(None),
) -> JSONResponse:
    reference = _parse_date(ref, "ref")
    if direction:
        if direction not in {"prev", "next"}:
            raise HTTPException(status_code=400, detail="direction must be prev or next")
        reference = step(preset, reference, direction)
    period = _resolve_period(preset, reference.isoformat(), start, end)
    payload = period.to_dict()
    payload["reference_date"] = reference.isoformat()
    return JSONResponse(content=jsonable_encoder(payload))


@app.get("/api/v1/locations/{location_id}/summary")
def location_summary(
    location_id: int,
    preset: str = Query("weekly"),
    ref: Optional[str] = Query(None),
    start: Optional[str] = Query(None),
    end: Optional[str] = Query(None),
    trend_periods: int = Query(DEFAULT_TREND_PERIODS, ge=0, le=52),
    db=Depends(get_db),
) -> JSONResponse:
    _require_location(db, location_id)
    period = _resolve_period(preset, ref, start, end)
    summary = get_period_summary(db, location_id, period, trend_periods=trend_periods)
    return JSONResponse(content=jsonable_encoder(summary))


@app.get("/api/v1/locations/{location_id}/sales")
def list_sales(
    location_id: int,
    preset: str = Query("weekly"),
    ref: Optional[str] = Query(None),
    start: Optional[str] = Query(None),
    end: Optional[str] = Query(None),
    kind: Optional[str] = Query(None),
    ledger: SalesLedger = Depends(get_ledger),
) -> JSONResponse:
    period = _resolve_period(preset, ref, start, end)
    try:
        entries = ledger.entries(location_id, period, kind)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return JSONResponse(
        content=jsonable_encoder(
            {
                "period": period.to_dict(),
                "entries": [entry.to_dict() for entry in entries],
                "actual_total": ledger.range_total(location_id, period, "actual"),
                "projected_total": ledger.range_total(location_id, period, "projected"),
            }
        )
    )


@app.put("/api/v1/locations/{location_id}/sales")
def save_sales_entry(
    location_id: int,
    payload: Dict[str, Any],
    db=Depends(get_db),
) -> JSONResponse:
    _require_location(db, location_id)
    ledger = SalesLedger(database.SessionLocal, actor=_actor(payload))
    try:
        entry = ledger.upsert(location_id, payload.get("date"), payload.get("kind", "actual"), payload.get("amount"))
    except SalesValidationError as exc:
        raise _validation_error(exc) from exc
    return JSONResponse(content=jsonable_encoder(entry.to_dict()))


@app.post("/api/v1/locations/{location_id}/sales/bulk")
def save_sales_entries(
    location_id: int,
    payload: Dict[str, Any],
    db=Depends(get_db),
) -> JSONResponse:
    _require_location(db, location_id)
    ledger = SalesLedger(database.SessionLocal, actor=_actor(payload))
    entries = []
    for entry in payload.get("entries") or []:
        if isinstance(entry, dict):
            entry = {"kind": "actual", **entry, "location_id": location_id}
        entries.append(entry)
    try:
        count = ledger.bulk_upsert(entries)
    except SalesValidationError as exc:
        raise _validation_error(exc) from exc
    return JSONResponse(content=jsonable_encoder({"saved": count}))


@app.post("/api/v1/locations/{location_id}/projections/autofill")
def autofill_projection(
    location_id: int,
    payload: Dict[str, Any],
    db=Depends(get_db),
) -> JSONResponse:
    _require_location(db, location_id)
    try:
        rule, adjusted = parse_rule_key(payload.get("rule") or "historical_average")
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    try:
        adjustment = float(payload.get("adjustment_percent") or 0.0)
    except (TypeError, ValueError):
        raise HTTPException(status_code=400, detail="adjustment_percent must be numeric")
    # only the _adj rule variants scale the estimate
    if not adjusted:
        adjustment = 0.0
    period = _resolve_period(payload.get("preset") or "weekly", payload.get("ref"), payload.get("start"), payload.get("end"))

    ledger = SalesLedger(database.SessionLocal, actor=_actor(payload))
    history = []
    for window in history_windows(rule, period):
        history.extend(ledger.entries(location_id, window, "actual"))
    projected = autofill(rule, adjustment, period, history)

    saved = 0
    if payload.get("commit"):
        saved = ledger.bulk_upsert(autofill_entries(location_id, projected), action="SALES_AUTOFILL")
    return JSONResponse(
        content=jsonable_encoder(
            {
                "period": period.to_dict(),
                "rule": rule.value,
                "adjusted": adjusted,
                "adjustment_percent": adjustment,
                "amounts": {day.isoformat(): amount for day, amount in projected.items()},
                "saved": saved,
            }
        )
    )


@app.get("/api/v1/locations/{location_id}/trend")
def location_trend(
    location_id: int,
    preset: str = Query("weekly"),
    ref: Optional[str] = Query(None),
    start: Optional[str] = Query(None),
    end: Optional[str] = Query(None),
    periods: int = Query(DEFAULT_TREND_PERIODS, ge=1, le=52),
    db=Depends(get_db),
) -> JSONResponse:
    location = _require_location(db, location_id)
    period = _resolve_period(preset, ref, start, end)
    window = trends.trend_window(period, periods)
    employees = list_location_employees(db, location_id)
    shifts = get_shifts_between(db, window.start, window.end, employee_ids=[employee.id for employee in employees])
    sales = SalesLedger(database.SessionLocal).entries(location_id, window)
    trend = trends.history(periods, period, sales, shifts, employees, budget_config_for(location))
    return JSONResponse(
        content=jsonable_encoder(
            {
                "period": period.to_dict(),
                "trend": [item.to_dict() for item in trend],
                "average_actual_sales": round(trends.average_actual_sales(trend), 2),
            }
        )
    )
