from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from functools import lru_cache
from typing import Literal

from ot_admin.errors import ValidationError
from ot_admin.models import NO_SHIFT
from ot_admin.settings import Settings, get_settings, split_csv

MINUTES_PER_DAY = 24 * 60

DayType = Literal["WEEKDAY", "SATURDAY", "SUNDAY"]
ShiftType = Literal["SHIFT_0630", "SHIFT_0830", "OTHER"]


def hhmm_to_minutes(value: str) -> int:
    hour_str, minute_str = value.split(":")
    hour = int(hour_str)
    minute = int(minute_str)
    if hour < 0 or hour > 23 or minute < 0 or minute > 59:
        raise ValueError(f"Invalid HH:MM value: {value!r}")
    return hour * 60 + minute


@dataclass(frozen=True)
class OtRuleConfig:
    break_deduct_minutes: int = 60
    break_applies_at_minutes: int = 6 * 60
    rounding_step_minutes: int = 15
    night_after_minutes: int = 21 * 60
    weekday_early_start: int = 15 * 60 + 30
    weekday_default_start: int = 17 * 60 + 30
    saturday_early_start: int = 11 * 60 + 30
    saturday_default_start: int = 13 * 60 + 30
    shift_0630_labels: tuple[str, ...] = ("shift 1",)
    shift_0630_tokens: tuple[str, ...] = ("6:30", "0630")
    shift_0830_labels: tuple[str, ...] = ("shift 2",)
    shift_0830_tokens: tuple[str, ...] = ("8:30", "0830")

    @classmethod
    def from_settings(cls, settings: Settings) -> OtRuleConfig:
        return cls(
            break_deduct_minutes=max(0, settings.ot_break_deduct_minutes),
            break_applies_at_minutes=max(0, settings.ot_break_applies_at_minutes),
            rounding_step_minutes=max(1, settings.ot_rounding_step_minutes),
            night_after_minutes=hhmm_to_minutes(settings.ot_night_after),
            weekday_early_start=hhmm_to_minutes(settings.ot_start_weekday_early),
            weekday_default_start=hhmm_to_minutes(settings.ot_start_weekday_default),
            saturday_early_start=hhmm_to_minutes(settings.ot_start_saturday_early),
            saturday_default_start=hhmm_to_minutes(settings.ot_start_saturday_default),
            shift_0630_labels=tuple(item.lower() for item in split_csv(settings.ot_shift_0630_labels)),
            shift_0630_tokens=split_csv(settings.ot_shift_0630_tokens),
            shift_0830_labels=tuple(item.lower() for item in split_csv(settings.ot_shift_0830_labels)),
            shift_0830_tokens=split_csv(settings.ot_shift_0830_tokens),
        )


DEFAULT_RULE_CONFIG = OtRuleConfig()


@dataclass(frozen=True)
class OtComputation:
    normal_minutes: int
    double_minutes: int
    triple_minutes: int
    is_night: bool

    @property
    def total_minutes(self) -> int:
        return self.normal_minutes + self.double_minutes + self.triple_minutes


NO_SHIFT_COMPUTATION = OtComputation(normal_minutes=0, double_minutes=0, triple_minutes=0, is_night=False)


def classify_day(work_date: str) -> DayType:
    weekday = date.fromisoformat(work_date).weekday()
    if weekday == 6:
        return "SUNDAY"
    if weekday == 5:
        return "SATURDAY"
    return "WEEKDAY"


def classify_shift(shift: str, config: OtRuleConfig = DEFAULT_RULE_CONFIG) -> ShiftType:
    label = shift.strip().lower()
    if label in config.shift_0630_labels or any(token in label for token in config.shift_0630_tokens):
        return "SHIFT_0630"
    if label in config.shift_0830_labels or any(token in label for token in config.shift_0830_tokens):
        return "SHIFT_0830"
    return "OTHER"


def ot_start_minutes(day_type: DayType, shift_type: ShiftType, config: OtRuleConfig = DEFAULT_RULE_CONFIG) -> int:
    if day_type == "SATURDAY":
        return config.saturday_early_start if shift_type == "SHIFT_0630" else config.saturday_default_start
    return config.weekday_early_start if shift_type == "SHIFT_0630" else config.weekday_default_start


def apply_break_deduction(minutes: int, config: OtRuleConfig = DEFAULT_RULE_CONFIG) -> int:
    if minutes >= config.break_applies_at_minutes:
        return max(0, minutes - config.break_deduct_minutes)
    return max(0, minutes)


def floor_to_step(minutes: int, config: OtRuleConfig = DEFAULT_RULE_CONFIG) -> int:
    step = config.rounding_step_minutes
    return (max(0, minutes) // step) * step


def _payable(minutes: int, config: OtRuleConfig) -> int:
    return floor_to_step(apply_break_deduction(minutes, config), config)


def compute_ot_minutes(
    *,
    work_date: str,
    shift: str,
    in_time: str,
    out_time: str,
    is_triple_day: bool,
    config: OtRuleConfig = DEFAULT_RULE_CONFIG,
) -> OtComputation:
    """Split one day's punches into payable overtime buckets.

    ``in_time``/``out_time`` are local ``HH:MM`` strings; an out time earlier
    than the in time is taken to be on the following day. Exactly one bucket
    is filled: triple on flagged days, double on Sundays, otherwise normal
    counted from the day/shift overtime start. ``NO_SHIFT`` rows are the
    caller's concern and must not reach this function.
    """
    in_minutes = hhmm_to_minutes(in_time)
    out_minutes = hhmm_to_minutes(out_time)
    out_adjusted = out_minutes + MINUTES_PER_DAY if out_minutes < in_minutes else out_minutes

    is_night = out_adjusted > config.night_after_minutes
    raw_worked = max(0, out_adjusted - in_minutes)

    if is_triple_day:
        return OtComputation(
            normal_minutes=0,
            double_minutes=0,
            triple_minutes=_payable(raw_worked, config),
            is_night=is_night,
        )

    day_type = classify_day(work_date)
    if day_type == "SUNDAY":
        return OtComputation(
            normal_minutes=0,
            double_minutes=_payable(raw_worked, config),
            triple_minutes=0,
            is_night=is_night,
        )

    ot_start = ot_start_minutes(day_type, classify_shift(shift, config), config)
    raw_ot = max(0, out_adjusted - max(in_minutes, ot_start))
    return OtComputation(
        normal_minutes=_payable(raw_ot, config),
        double_minutes=0,
        triple_minutes=0,
        is_night=is_night,
    )


@lru_cache
def get_rule_config() -> OtRuleConfig:
    return OtRuleConfig.from_settings(get_settings())


def compute_entry_minutes(
    *,
    work_date: str,
    shift: str,
    in_time: str | None,
    out_time: str | None,
    is_triple_day: bool,
    config: OtRuleConfig | None = None,
) -> tuple[OtComputation, str, str]:
    """Returns the computation plus the in/out times to store for the entry."""
    if shift == NO_SHIFT:
        return NO_SHIFT_COMPUTATION, "", ""
    if not in_time or not out_time:
        raise ValidationError("in_time and out_time are required unless shift is NO_SHIFT")
    computation = compute_ot_minutes(
        work_date=work_date,
        shift=shift,
        in_time=in_time,
        out_time=out_time,
        is_triple_day=is_triple_day,
        config=config or get_rule_config(),
    )
    return computation, in_time, out_time
