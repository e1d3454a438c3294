from __future__ import annotations

from calendar import monthrange
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Literal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ot_admin.errors import ValidationError
from ot_admin.models import OvertimeEntry, OvertimeStatus
from ot_admin.schemas import DayStatsRead, HoursBreakdown, SummaryItemRead, SummaryRead
from ot_admin.settings import get_facility_timezone

SummaryScope = Literal["daily", "weekly", "monthly", "yearly"]

_PREFIX_LENGTHS: dict[str, int] = {"daily": 10, "monthly": 7, "yearly": 4}


def minutes_to_hours(minutes: int) -> float:
    return round(minutes / 60, 2)


def _today() -> date:
    return datetime.now(get_facility_timezone()).date()


def parse_date_key(value: str, *, field: str = "date") -> date:
    try:
        if len(value) != 10:
            raise ValueError(value)
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a YYYY-MM-DD date")


@dataclass
class _Bucket:
    total: int = 0
    pending: int = 0
    approved: int = 0
    rejected: int = 0
    normal_minutes: int = 0
    double_minutes: int = 0
    triple_minutes: int = 0
    approved_total_minutes: int = 0

    def add(
        self,
        status: OvertimeStatus,
        count: int,
        normal: int,
        double: int,
        triple: int,
        approved_total: int,
    ) -> None:
        self.total += count
        if status == OvertimeStatus.PENDING:
            self.pending += count
        elif status == OvertimeStatus.APPROVED:
            self.approved += count
        elif status == OvertimeStatus.REJECTED:
            self.rejected += count
        self.normal_minutes += normal
        self.double_minutes += double
        self.triple_minutes += triple
        self.approved_total_minutes += approved_total

    def counts(self) -> dict[str, object]:
        return {
            "total": self.total,
            "pending": self.pending,
            "approved": self.approved,
            "rejected": self.rejected,
            "hours": HoursBreakdown(
                normal=minutes_to_hours(self.normal_minutes),
                double=minutes_to_hours(self.double_minutes),
                triple=minutes_to_hours(self.triple_minutes),
            ),
            "approved_hours": minutes_to_hours(self.approved_total_minutes),
        }


def _grouped_rows(db: Session, *, date_from: str, date_to: str):  # type: ignore[no-untyped-def]
    stmt = (
        select(
            OvertimeEntry.work_date,
            OvertimeEntry.status,
            func.count(OvertimeEntry.id),
            func.coalesce(func.sum(OvertimeEntry.normal_minutes), 0),
            func.coalesce(func.sum(OvertimeEntry.double_minutes), 0),
            func.coalesce(func.sum(OvertimeEntry.triple_minutes), 0),
            func.coalesce(func.sum(OvertimeEntry.approved_total_minutes), 0),
        )
        .where(
            OvertimeEntry.work_date >= date_from,
            OvertimeEntry.work_date <= date_to,
        )
        .group_by(OvertimeEntry.work_date, OvertimeEntry.status)
    )
    return db.execute(stmt).all()


def _bucketize(rows, key_for: Callable[[str], str]) -> dict[str, _Bucket]:  # type: ignore[no-untyped-def]
    buckets: dict[str, _Bucket] = {}
    for work_date, status, count, normal, double, triple, approved_total in rows:
        key = key_for(work_date)
        bucket = buckets.setdefault(key, _Bucket())
        bucket.add(
            OvertimeStatus(status),
            int(count),
            int(normal),
            int(double),
            int(triple),
            int(approved_total),
        )
    return buckets


def day_stats(db: Session, work_date: str) -> DayStatsRead:
    parse_date_key(work_date)
    buckets = _bucketize(_grouped_rows(db, date_from=work_date, date_to=work_date), lambda key: key)
    bucket = buckets.get(work_date, _Bucket())
    return DayStatsRead(date=work_date, **bucket.counts())


def range_stats(db: Session, date_from: str, date_to: str) -> list[DayStatsRead]:
    if parse_date_key(date_from, field="from") > parse_date_key(date_to, field="to"):
        raise ValidationError("from must not be after to")
    buckets = _bucketize(_grouped_rows(db, date_from=date_from, date_to=date_to), lambda key: key)
    return [DayStatsRead(date=key, **buckets[key].counts()) for key in sorted(buckets)]


def _parse_anchor(scope: SummaryScope, anchor: str) -> date:
    value = anchor.strip()
    try:
        if scope == "yearly" and len(value) == 4:
            return date(int(value), 1, 1)
        if scope == "monthly" and len(value) == 7:
            year_str, month_str = value.split("-")
            return date(int(year_str), int(month_str), 1)
    except ValueError:
        raise ValidationError(f"Invalid anchor for {scope} scope: {anchor}")
    return parse_date_key(value, field="anchor")


def resolve_summary_window(
    scope: SummaryScope,
    *,
    anchor: str | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
) -> tuple[date, date]:
    """Resolve the inclusive ``[from, to]`` window of a summary.

    Explicit bounds win over the anchor and must be given together. Without
    an anchor the window contains today in the facility timezone.
    """
    if date_from is not None or date_to is not None:
        if date_from is None or date_to is None:
            raise ValidationError("from and to must be provided together")
        start = parse_date_key(date_from, field="from")
        end = parse_date_key(date_to, field="to")
        if start > end:
            raise ValidationError("from must not be after to")
        return start, end

    anchor_day = _parse_anchor(scope, anchor) if anchor else _today()
    if scope == "daily":
        return anchor_day, anchor_day
    if scope == "weekly":
        monday = anchor_day - timedelta(days=anchor_day.weekday())
        return monday, monday + timedelta(days=6)
    if scope == "monthly":
        last_day = monthrange(anchor_day.year, anchor_day.month)[1]
        return anchor_day.replace(day=1), anchor_day.replace(day=last_day)
    if scope == "yearly":
        return date(anchor_day.year, 1, 1), date(anchor_day.year, 12, 31)
    raise ValidationError(f"Unknown summary scope: {scope}")


def period_key(scope: SummaryScope, work_date: str) -> str:
    if scope == "weekly":
        day = date.fromisoformat(work_date)
        return (day - timedelta(days=day.weekday())).isoformat()
    return work_date[: _PREFIX_LENGTHS[scope]]


def summary(
    db: Session,
    scope: SummaryScope,
    *,
    anchor: str | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
) -> SummaryRead:
    if scope not in ("daily", "weekly", "monthly", "yearly"):
        raise ValidationError(f"Unknown summary scope: {scope}")
    start, end = resolve_summary_window(scope, anchor=anchor, date_from=date_from, date_to=date_to)
    rows = _grouped_rows(db, date_from=start.isoformat(), date_to=end.isoformat())
    buckets = _bucketize(rows, lambda work_date: period_key(scope, work_date))
    return SummaryRead(
        scope=scope,
        from_date=start.isoformat(),
        to_date=end.isoformat(),
        items=[SummaryItemRead(period=key, **buckets[key].counts()) for key in sorted(buckets)],
    )
