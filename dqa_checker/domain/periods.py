"""Period granularities and decomposition of assessment periods.

An assessment is conducted at a nominal frequency (e.g. quarterly) while the
datasets feeding it are collected at their own, possibly finer, period type
(e.g. monthly). ``PeriodExpander`` turns one assessment period into the
ordered list of dataset periods that have to be entered and compared.
"""
from __future__ import annotations

import calendar
import logging
import re
from dataclasses import dataclass
from datetime import date, timedelta
from enum import IntEnum
from typing import Callable, Iterable, Mapping, Sequence

logger = logging.getLogger(__name__)

MONTH_NAMES = tuple(calendar.month_name[1:])

# Quarter→weekly decomposition assumes 13 weeks per quarter and ignores
# 53-week ISO years.
WEEKS_PER_QUARTER = 13


class PeriodTokenError(ValueError):
    """Raised when a period token does not match its granularity's format."""


class Granularity(IntEnum):
    """Calendar resolution of a period, ordered from finest to coarsest."""

    DAILY = 1
    WEEKLY = 2
    MONTHLY = 3
    QUARTERLY = 4
    YEARLY = 5

    @property
    def period_type(self) -> str:
        """DHIS2 period type name (``Daily`` ... ``Yearly``)."""
        return self.name.capitalize()

    @property
    def frequency(self) -> str:
        """Assessment frequency name (``daily`` ... ``annually``)."""
        if self is Granularity.YEARLY:
            return "annually"
        return self.name.lower()

    @classmethod
    def parse(cls, value: Granularity | str) -> Granularity:
        if isinstance(value, Granularity):
            return value
        text = str(value).strip().lower()
        if text in _ALIASES:
            return _ALIASES[text]
        raise ValueError(f"Unknown period granularity: {value!r}")

    def is_coarser_than(self, other: Granularity) -> bool:
        return self > other


_ALIASES: dict[str, Granularity] = {
    "daily": Granularity.DAILY,
    "weekly": Granularity.WEEKLY,
    "monthly": Granularity.MONTHLY,
    "quarterly": Granularity.QUARTERLY,
    "yearly": Granularity.YEARLY,
    "annually": Granularity.YEARLY,
    "annual": Granularity.YEARLY,
}


@dataclass(frozen=True)
class SubPeriod:
    id: str
    display_name: str
    period_type: Granularity

    def to_dict(self) -> dict[str, str]:
        return {
            "id": self.id,
            "name": self.id,
            "displayName": self.display_name,
            "periodType": self.period_type.period_type,
        }


@dataclass(frozen=True)
class ExpansionResult:
    """Outcome of an expansion.

    ``degraded`` separates "no decomposition was needed" (False) from "the
    input could not be decomposed and was passed through" (True).
    """

    periods: tuple[SubPeriod, ...]
    degraded: bool = False
    reason: str | None = None

    def __iter__(self):
        return iter(self.periods)

    def __len__(self) -> int:
        return len(self.periods)

    @property
    def ids(self) -> list[str]:
        return [period.id for period in self.periods]


@dataclass(frozen=True)
class PeriodParts:
    year: int
    quarter: int | None = None
    month: int | None = None
    week: int | None = None
    day: int | None = None


_TOKEN_PATTERNS: dict[Granularity, re.Pattern[str]] = {
    Granularity.YEARLY: re.compile(r"^(?P<year>\d{4})$"),
    Granularity.QUARTERLY: re.compile(r"^(?P<year>\d{4})Q(?P<quarter>[1-4])$"),
    Granularity.MONTHLY: re.compile(r"^(?P<year>\d{4})(?P<month>0[1-9]|1[0-2])$"),
    Granularity.WEEKLY: re.compile(r"^(?P<year>\d{4})W(?P<week>0[1-9]|[1-4]\d|5[0-3])$"),
    Granularity.DAILY: re.compile(r"^(?P<year>\d{4})(?P<month>\d{2})(?P<day>\d{2})$"),
}


def parse_period(token: str, granularity: Granularity | str) -> PeriodParts:
    """Validate ``token`` against the format of ``granularity`` and split it."""
    granularity = Granularity.parse(granularity)
    if not isinstance(token, str):
        raise PeriodTokenError(f"Period token must be a string, got {type(token).__name__}")
    match = _TOKEN_PATTERNS[granularity].match(token.strip())
    if match is None:
        raise PeriodTokenError(f"{token!r} is not a valid {granularity.period_type} period")
    parts = {name: int(value) for name, value in match.groupdict().items()}
    if granularity is Granularity.DAILY:
        try:
            date(parts["year"], parts["month"], parts["day"])
        except ValueError as exc:
            raise PeriodTokenError(f"{token!r} is not a calendar date") from exc
    return PeriodParts(**parts)


def format_period_display(token: str, granularity: Granularity | str) -> str:
    granularity = Granularity.parse(granularity)
    parts = parse_period(token, granularity)
    if granularity is Granularity.QUARTERLY:
        return f"Q{parts.quarter} {parts.year}"
    if granularity is Granularity.MONTHLY:
        return f"{MONTH_NAMES[parts.month - 1]} {parts.year}"
    if granularity is Granularity.WEEKLY:
        return _week_display(parts.year, parts.week)
    if granularity is Granularity.DAILY:
        return f"{parts.day:02d}/{parts.month:02d}/{parts.year}"
    return str(parts.year)


def period_type_from_frequency(frequency: str) -> str:
    try:
        return Granularity.parse(frequency).period_type
    except ValueError:
        return Granularity.MONTHLY.period_type


def _rank(value: Granularity | str) -> Granularity:
    try:
        return Granularity.parse(value)
    except ValueError:
        return Granularity.MONTHLY


def needs_sub_periods(frequency: Granularity | str, period_type: Granularity | str) -> bool:
    """True when the assessment frequency is strictly coarser than the dataset period type."""
    return _rank(frequency).is_coarser_than(_rank(period_type))


def dataset_period_types(datasets: Iterable[Mapping[str, object]]) -> list[str]:
    seen: dict[str, None] = {}
    for dataset in datasets:
        period_type = dataset.get("periodType")
        if period_type:
            seen.setdefault(str(period_type), None)
    return list(seen)


def finest_period_type(period_types: Iterable[Granularity | str]) -> Granularity | None:
    parsed = []
    for value in period_types:
        try:
            parsed.append(Granularity.parse(value))
        except ValueError:
            logger.debug("Ignoring unknown period type %r", value)
    return min(parsed) if parsed else None


def _week_display(year: int, week: int) -> str:
    return f"Week {week:02d}, {year}"


def _month(year: int, month: int) -> SubPeriod:
    return SubPeriod(
        id=f"{year}{month:02d}",
        display_name=f"{MONTH_NAMES[month - 1]} {year}",
        period_type=Granularity.MONTHLY,
    )


def _week(year: int, week: int) -> SubPeriod:
    return SubPeriod(
        id=f"{year}W{week:02d}",
        display_name=_week_display(year, week),
        period_type=Granularity.WEEKLY,
    )


def _day(day: date) -> SubPeriod:
    return SubPeriod(
        id=f"{day.year}{day.month:02d}{day.day:02d}",
        display_name=f"{day.day:02d}/{day.month:02d}/{day.year}",
        period_type=Granularity.DAILY,
    )


def _days_of_month(year: int, month: int) -> list[date]:
    first = date(year, month, 1)
    return [first + timedelta(days=offset) for offset in range(calendar.monthrange(year, month)[1])]


def iso_weeks_in_month(year: int, month: int) -> list[tuple[int, int]]:
    """Distinct (ISO year, ISO week) pairs touched by the days of a month, in order."""
    weeks: dict[tuple[int, int], None] = {}
    for day in _days_of_month(year, month):
        iso_year, iso_week, _ = day.isocalendar()
        weeks.setdefault((iso_year, iso_week), None)
    return list(weeks)


def _quarter_to_months(parts: PeriodParts) -> list[SubPeriod]:
    first = (parts.quarter - 1) * 3 + 1
    return [_month(parts.year, month) for month in range(first, first + 3)]


def _quarter_to_weeks(parts: PeriodParts) -> list[SubPeriod]:
    start = (parts.quarter - 1) * WEEKS_PER_QUARTER + 1
    end = parts.quarter * WEEKS_PER_QUARTER
    return [_week(parts.year, week) for week in range(start, end + 1)]


def _year_to_quarters(parts: PeriodParts) -> list[SubPeriod]:
    return [
        SubPeriod(id=f"{parts.year}Q{quarter}", display_name=f"Q{quarter} {parts.year}", period_type=Granularity.QUARTERLY)
        for quarter in range(1, 5)
    ]


def _year_to_months(parts: PeriodParts) -> list[SubPeriod]:
    return [_month(parts.year, month) for month in range(1, 13)]


def _month_to_weeks(parts: PeriodParts) -> list[SubPeriod]:
    return [_week(iso_year, week) for iso_year, week in iso_weeks_in_month(parts.year, parts.month)]


def _month_to_days(parts: PeriodParts) -> list[SubPeriod]:
    return [_day(day) for day in _days_of_month(parts.year, parts.month)]


_Expander = Callable[[PeriodParts], Sequence[SubPeriod]]

DECOMPOSITIONS: Mapping[tuple[Granularity, Granularity], _Expander] = {
    (Granularity.QUARTERLY, Granularity.MONTHLY): _quarter_to_months,
    (Granularity.QUARTERLY, Granularity.WEEKLY): _quarter_to_weeks,
    (Granularity.YEARLY, Granularity.QUARTERLY): _year_to_quarters,
    (Granularity.YEARLY, Granularity.MONTHLY): _year_to_months,
    (Granularity.MONTHLY, Granularity.WEEKLY): _month_to_weeks,
    (Granularity.MONTHLY, Granularity.DAILY): _month_to_days,
}


class PeriodExpander:
    """Decomposes an assessment period into dataset periods.

    ``expand`` never raises: malformed tokens, unknown granularities and
    pairs without a decomposition rule come back as the original period,
    flagged ``degraded``.
    """

    def expand(
        self,
        assessment_period: str,
        assessment_frequency: Granularity | str,
        dataset_period_type: Granularity | str,
    ) -> ExpansionResult:
        try:
            frequency = Granularity.parse(assessment_frequency)
            target = Granularity.parse(dataset_period_type)
        except ValueError as exc:
            return self._degraded(assessment_period, _rank(assessment_frequency), str(exc))

        if not frequency.is_coarser_than(target):
            try:
                display_name = format_period_display(assessment_period, frequency)
            except ValueError as exc:
                return self._degraded(assessment_period, frequency, str(exc))
            return ExpansionResult(periods=(SubPeriod(assessment_period, display_name, frequency),))

        decompose = DECOMPOSITIONS.get((frequency, target))
        if decompose is None:
            return self._degraded(
                assessment_period,
                frequency,
                f"No decomposition from {frequency.period_type} to {target.period_type}",
            )

        try:
            periods = tuple(decompose(parse_period(assessment_period, frequency)))
        except Exception as exc:  # noqa: BLE001
            return self._degraded(assessment_period, frequency, str(exc))
        if not periods:
            return self._degraded(assessment_period, frequency, "Decomposition produced no periods")
        return ExpansionResult(periods=periods)

    @staticmethod
    def _degraded(assessment_period: object, frequency: Granularity, reason: str) -> ExpansionResult:
        logger.warning("Falling back to undecomposed period %r: %s", assessment_period, reason)
        token = str(assessment_period)
        return ExpansionResult(
            periods=(SubPeriod(id=token, display_name=token, period_type=frequency),),
            degraded=True,
            reason=reason,
        )
