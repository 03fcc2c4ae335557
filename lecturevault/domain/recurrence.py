"""
Deterministic recurrence occurrence generator.

Works on naive UTC datetimes only. The event's stored timezone is display
metadata and never enters this module, so occurrences do not drift across
daylight-saving boundaries.

Rule text (keys case-insensitive, unknown keys ignored):
    FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,WE;COUNT=10
    FREQ=MONTHLY;BYMONTHDAY=15;UNTIL=20241231

Frequencies:
- DAILY: every N days (optionally limited by BYDAY / BYMONTHDAY)
- WEEKLY: BYDAY weekdays (default: weekday of start) every N weeks, weeks start on Monday
- MONTHLY: BYMONTHDAY days (default: day of start) every N months; missing days are skipped,
  negative days count from the end of the month
- YEARLY: BYMONTH x BYMONTHDAY (defaults from start) every N years
"""
import calendar
import itertools
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterator

from lecturevault.domain.errors import MalformedRule


WEEKDAY_MAP = {"MO": 0, "TU": 1, "WE": 2, "TH": 3, "FR": 4, "SA": 5, "SU": 6}
WEEKDAY_CODES = {v: k for k, v in WEEKDAY_MAP.items()}
WEEKDAY_NAMES = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
VALID_FREQ = frozenset({"DAILY", "WEEKLY", "MONTHLY", "YEARLY"})
MAX_EMPTY_PERIODS = 1000


@dataclass(frozen=True)
class RuleSpec:
    freq: str
    interval: int = 1
    count: int | None = None
    until: datetime | None = None  # inclusive
    by_weekday: frozenset[int] | None = None  # MO=0..SU=6
    by_monthday: tuple[int, ...] | None = None  # 1..31 or -31..-1
    by_month: tuple[int, ...] | None = None  # 1..12


def last_day_of_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def shift_month(year: int, month: int, n: int) -> tuple[int, int]:
    month0 = month - 1 + n
    return year + month0 // 12, month0 % 12 + 1


# --- Parsing ---

def _parse_int(value: str, key: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise MalformedRule(f"{key} must be an integer, got {value!r}") from None


def _parse_int_list(value: str, key: str, valid) -> tuple[int, ...]:
    out = []
    for part in value.split(","):
        n = _parse_int(part.strip(), key)
        if not valid(n):
            raise MalformedRule(f"{key} value out of range: {n}")
        out.append(n)
    if not out:
        raise MalformedRule(f"{key} must not be empty")
    return tuple(sorted(set(out)))


def parse_by_weekday(value: str) -> frozenset[int]:
    """Parse comma-separated weekday codes (e.g. 'MO,TU,FR') to a set of ints."""
    out = set()
    for part in value.split(","):
        code = part.strip().upper()
        if code not in WEEKDAY_MAP:
            raise MalformedRule(f"unknown weekday in BYDAY: {part!r}")
        out.add(WEEKDAY_MAP[code])
    return frozenset(out)


def parse_until(value: str) -> datetime:
    """YYYYMMDD (whole day, inclusive) or YYYYMMDDTHHMMSS[Z]."""
    raw = value.strip().upper().rstrip("Z")
    try:
        if "T" in raw:
            return datetime.strptime(raw, "%Y%m%dT%H%M%S")
        return datetime.combine(datetime.strptime(raw, "%Y%m%d").date(), time(23, 59, 59))
    except ValueError:
        raise MalformedRule(f"UNTIL must be YYYYMMDD or YYYYMMDDTHHMMSSZ, got {value!r}") from None


def parse_rule(text: str | None) -> RuleSpec:
    """
    Parse rule text into a RuleSpec.

    Raises:
        MalformedRule: empty text, missing/unknown FREQ, bad or out-of-range values
    """
    if text is None or not text.strip():
        raise MalformedRule("recurrence rule is empty")

    fields: dict[str, str] = {}
    for part in text.strip().split(";"):
        part = part.strip()
        if not part:
            continue
        key, sep, value = part.partition("=")
        if not sep:
            raise MalformedRule(f"expected KEY=VALUE, got {part!r}")
        key = key.strip().upper()
        if key in fields:
            raise MalformedRule(f"duplicate key: {key}")
        fields[key] = value.strip()

    freq = fields.get("FREQ", "").upper()
    if not freq:
        raise MalformedRule("FREQ is required")
    if freq not in VALID_FREQ:
        raise MalformedRule(f"invalid FREQ: {freq}")

    interval = 1
    if "INTERVAL" in fields:
        interval = _parse_int(fields["INTERVAL"], "INTERVAL")
        if interval < 1:
            raise MalformedRule("INTERVAL must be >= 1")

    count = None
    if "COUNT" in fields:
        count = _parse_int(fields["COUNT"], "COUNT")
        if count < 1:
            raise MalformedRule("COUNT must be >= 1")

    return RuleSpec(
        freq=freq,
        interval=interval,
        count=count,
        until=parse_until(fields["UNTIL"]) if "UNTIL" in fields else None,
        by_weekday=parse_by_weekday(fields["BYDAY"]) if "BYDAY" in fields else None,
        by_monthday=_parse_int_list(
            fields["BYMONTHDAY"], "BYMONTHDAY", lambda d: 1 <= abs(d) <= 31
        ) if "BYMONTHDAY" in fields else None,
        by_month=_parse_int_list(
            fields["BYMONTH"], "BYMONTH", lambda m: 1 <= m <= 12
        ) if "BYMONTH" in fields else None,
    )


def format_rule(rule: RuleSpec) -> str:
    """Inverse of parse_rule."""
    parts = [f"FREQ={rule.freq}"]
    if rule.interval > 1:
        parts.append(f"INTERVAL={rule.interval}")
    if rule.count is not None:
        parts.append(f"COUNT={rule.count}")
    if rule.until is not None:
        if rule.until.time() == time(23, 59, 59):
            parts.append(f"UNTIL={rule.until:%Y%m%d}")
        else:
            parts.append(f"UNTIL={rule.until:%Y%m%dT%H%M%S}Z")
    if rule.by_weekday:
        parts.append("BYDAY=" + ",".join(WEEKDAY_CODES[d] for d in sorted(rule.by_weekday)))
    if rule.by_monthday:
        parts.append("BYMONTHDAY=" + ",".join(str(d) for d in rule.by_monthday))
    if rule.by_month:
        parts.append("BYMONTH=" + ",".join(str(m) for m in rule.by_month))
    return ";".join(parts)


def describe_rule(rule: RuleSpec) -> str:
    """Human readable summary, e.g. 'Every 2 weeks on Mon, Wed'."""
    n = rule.interval
    if rule.freq == "DAILY":
        if rule.by_weekday == frozenset(range(5)):
            return "Every weekday"
        return "Daily" if n == 1 else f"Every {n} days"
    if rule.freq == "WEEKLY":
        base = "Weekly" if n == 1 else f"Every {n} weeks"
        if rule.by_weekday:
            days = ", ".join(WEEKDAY_NAMES[d] for d in sorted(rule.by_weekday))
            return f"{base} on {days}"
        return base
    if rule.freq == "MONTHLY":
        base = "Monthly" if n == 1 else f"Every {n} months"
        if rule.by_monthday:
            return f"{base} on day {', '.join(str(d) for d in rule.by_monthday)}"
        return base
    return "Yearly" if n == 1 else f"Every {n} years"


class RecurrencePatterns:
    """Common rules, ready to format_rule()."""

    @staticmethod
    def daily(interval: int = 1, count: int | None = None) -> RuleSpec:
        return RuleSpec(freq="DAILY", interval=interval, count=count)

    @staticmethod
    def weekly(weekdays: str | None = None, interval: int = 1, count: int | None = None) -> RuleSpec:
        return RuleSpec(
            freq="WEEKLY", interval=interval, count=count,
            by_weekday=parse_by_weekday(weekdays) if weekdays else None,
        )

    @staticmethod
    def monthly(monthday: int | None = None, interval: int = 1, count: int | None = None) -> RuleSpec:
        return RuleSpec(
            freq="MONTHLY", interval=interval, count=count,
            by_monthday=(monthday,) if monthday else None,
        )

    @staticmethod
    def yearly(interval: int = 1, count: int | None = None) -> RuleSpec:
        return RuleSpec(freq="YEARLY", interval=interval, count=count)

    @staticmethod
    def weekdays(count: int | None = None) -> RuleSpec:
        return RuleSpec(freq="WEEKLY", count=count, by_weekday=frozenset(range(5)))

    @staticmethod
    def weekends(count: int | None = None) -> RuleSpec:
        return RuleSpec(freq="WEEKLY", count=count, by_weekday=frozenset({5, 6}))


# --- Generation ---

def _resolve_monthdays(year: int, month: int, monthdays: tuple[int, ...]) -> list[int]:
    last = last_day_of_month(year, month)
    out = set()
    for d in monthdays:
        day = d if d > 0 else last + d + 1
        if 1 <= day <= last:
            out.add(day)
    return sorted(out)


def _period(rule: RuleSpec, dtstart: datetime, k: int) -> tuple[date, list[date]]:
    """Return (first day of period k, candidate dates inside it)."""
    start = dtstart.date()
    step = k * rule.interval

    if rule.freq == "DAILY":
        d = start + timedelta(days=step)
        if rule.by_weekday and d.weekday() not in rule.by_weekday:
            return d, []
        if rule.by_monthday and d.day not in _resolve_monthdays(d.year, d.month, rule.by_monthday):
            return d, []
        return d, [d]

    if rule.freq == "WEEKLY":
        week_monday = start - timedelta(days=start.weekday()) + timedelta(weeks=step)
        weekdays = rule.by_weekday or {start.weekday()}
        return week_monday, [week_monday + timedelta(days=dow) for dow in sorted(weekdays)]

    if rule.freq == "MONTHLY":
        y, m = shift_month(start.year, start.month, step)
        days = _resolve_monthdays(y, m, rule.by_monthday or (start.day,))
        out = [date(y, m, day) for day in days]
        if rule.by_weekday:
            out = [d for d in out if d.weekday() in rule.by_weekday]
        return date(y, m, 1), out

    if rule.freq == "YEARLY":
        y = start.year + step
        out = []
        for m in rule.by_month or (start.month,):
            out.extend(date(y, m, day) for day in _resolve_monthdays(y, m, rule.by_monthday or (start.day,)))
        return date(y, 1, 1), sorted(out)

    raise MalformedRule(f"unhandled FREQ: {rule.freq}")


def iter_occurrence_starts(
    rule: RuleSpec,
    dtstart: datetime,
    max_empty_periods: int = MAX_EMPTY_PERIODS,
) -> Iterator[datetime]:
    """
    Yield candidate start timestamps in ascending order, beginning at dtstart.

    COUNT is counted from dtstart, not from any query window. Time of day is
    taken from dtstart. Stops at UNTIL, COUNT, or after max_empty_periods
    consecutive periods without a candidate (e.g. BYMONTHDAY=30 on a
    February-only yearly rule), or when the next period would pass date.max.
    """
    emitted = 0
    empty = 0
    for k in itertools.count():
        try:
            period_start, days = _period(rule, dtstart, k)
        except MalformedRule:
            raise
        except (OverflowError, ValueError):
            # period lies past date.max
            return
        if rule.until is not None and datetime.combine(period_start, time.min) > rule.until:
            return
        produced = False
        for d in days:
            candidate = datetime.combine(d, dtstart.time())
            if candidate < dtstart:
                continue
            if rule.until is not None and candidate > rule.until:
                return
            yield candidate
            produced = True
            emitted += 1
            if rule.count is not None and emitted >= rule.count:
                return
        if produced:
            empty = 0
        else:
            empty += 1
            if empty >= max_empty_periods:
                return


def generate_occurrence_starts(
    rule: RuleSpec,
    dtstart: datetime,
    window_start: datetime,
    window_end: datetime,
    max_empty_periods: int = MAX_EMPTY_PERIODS,
) -> list[datetime]:
    """Candidate starts in [window_start, window_end). Deterministic, sorted ascending."""
    if window_start > window_end:
        raise ValueError("window_start must be <= window_end")
    out: list[datetime] = []
    for candidate in iter_occurrence_starts(rule, dtstart, max_empty_periods):
        if candidate >= window_end:
            break
        if candidate >= window_start:
            out.append(candidate)
    return out
