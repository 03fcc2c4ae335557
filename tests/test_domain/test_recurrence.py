"""
Tests for recurrence rule parsing and occurrence generation
"""
import pytest
from datetime import datetime

from lecturevault.domain.errors import MalformedRule
from lecturevault.domain.recurrence import (
    RecurrencePatterns, RuleSpec, describe_rule, format_rule,
    generate_occurrence_starts, iter_occurrence_starts, parse_rule,
)


def _starts(text, dtstart, limit=50, **kwargs):
    out = []
    for candidate in iter_occurrence_starts(parse_rule(text), dtstart, **kwargs):
        out.append(candidate)
        if len(out) >= limit:
            break
    return out


# --- Parsing ---

def test_parse_weekly_rule():
    rule = parse_rule("FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,WE;COUNT=10")
    assert rule.freq == "WEEKLY"
    assert rule.interval == 2
    assert rule.by_weekday == frozenset({0, 2})
    assert rule.count == 10
    assert rule.until is None


def test_parse_is_case_insensitive_and_ignores_unknown_keys():
    rule = parse_rule("freq=daily;interval=3;WKST=MO")
    assert rule == RuleSpec(freq="DAILY", interval=3)


def test_parse_date_only_until_covers_whole_day():
    rule = parse_rule("FREQ=DAILY;UNTIL=20240131")
    assert rule.until == datetime(2024, 1, 31, 23, 59, 59)


def test_parse_until_with_time():
    rule = parse_rule("FREQ=DAILY;UNTIL=20240131T120000Z")
    assert rule.until == datetime(2024, 1, 31, 12, 0, 0)


@pytest.mark.parametrize("text", [
    "",
    "   ",
    "FREQ",
    "INTERVAL=2",
    "FREQ=HOURLY",
    "FREQ=DAILY;INTERVAL=0",
    "FREQ=DAILY;COUNT=0",
    "FREQ=DAILY;COUNT=abc",
    "FREQ=WEEKLY;BYDAY=XX",
    "FREQ=MONTHLY;BYMONTHDAY=32",
    "FREQ=MONTHLY;BYMONTHDAY=0",
    "FREQ=YEARLY;BYMONTH=13",
    "FREQ=DAILY;UNTIL=2024-01-01",
    "FREQ=DAILY;FREQ=WEEKLY",
])
def test_parse_rejects_malformed_rules(text):
    with pytest.raises(MalformedRule):
        parse_rule(text)


def test_parse_none_is_malformed():
    with pytest.raises(MalformedRule):
        parse_rule(None)


def test_format_rule_normalizes_order_and_drops_default_interval():
    assert format_rule(parse_rule("BYDAY=WE,MO;INTERVAL=2;FREQ=WEEKLY")) == "FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,WE"
    assert format_rule(parse_rule("FREQ=MONTHLY;INTERVAL=1;BYMONTHDAY=15;UNTIL=20241231")) == (
        "FREQ=MONTHLY;UNTIL=20241231;BYMONTHDAY=15"
    )


def test_format_rule_keeps_until_time():
    text = format_rule(RuleSpec(freq="DAILY", until=datetime(2024, 3, 4, 8, 59, 59)))
    assert text == "FREQ=DAILY;UNTIL=20240304T085959Z"
    assert parse_rule(text).until == datetime(2024, 3, 4, 8, 59, 59)


def test_describe_rule():
    assert describe_rule(parse_rule("FREQ=DAILY")) == "Daily"
    assert describe_rule(parse_rule("FREQ=DAILY;BYDAY=MO,TU,WE,TH,FR")) == "Every weekday"
    assert describe_rule(parse_rule("FREQ=WEEKLY")) == "Weekly"
    assert describe_rule(parse_rule("FREQ=WEEKLY;INTERVAL=2;BYDAY=WE,MO")) == "Every 2 weeks on Mon, Wed"
    assert describe_rule(parse_rule("FREQ=MONTHLY;BYMONTHDAY=15")) == "Monthly on day 15"
    assert describe_rule(parse_rule("FREQ=YEARLY;INTERVAL=4")) == "Every 4 years"


def test_recurrence_patterns():
    assert format_rule(RecurrencePatterns.daily()) == "FREQ=DAILY"
    assert format_rule(RecurrencePatterns.weekly("MO,TH", interval=2)) == "FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,TH"
    assert format_rule(RecurrencePatterns.monthly(15, count=6)) == "FREQ=MONTHLY;COUNT=6;BYMONTHDAY=15"
    assert format_rule(RecurrencePatterns.yearly()) == "FREQ=YEARLY"
    assert format_rule(RecurrencePatterns.weekdays()) == "FREQ=WEEKLY;BYDAY=MO,TU,WE,TH,FR"
    assert format_rule(RecurrencePatterns.weekends()) == "FREQ=WEEKLY;BYDAY=SA,SU"


# --- Generation ---

def test_daily_count_keeps_time_of_day():
    assert _starts("FREQ=DAILY;COUNT=3", datetime(2024, 1, 1, 9, 30)) == [
        datetime(2024, 1, 1, 9, 30),
        datetime(2024, 1, 2, 9, 30),
        datetime(2024, 1, 3, 9, 30),
    ]


def test_weekly_defaults_to_start_weekday():
    """2024-01-03 is a Wednesday."""
    starts = generate_occurrence_starts(
        parse_rule("FREQ=WEEKLY"), datetime(2024, 1, 3, 10, 0),
        datetime(2024, 1, 1), datetime(2024, 1, 25),
    )
    assert [s.day for s in starts] == [3, 10, 17, 24]


def test_weekly_byday_skips_days_before_start():
    starts = _starts("FREQ=WEEKLY;BYDAY=MO,WE,FR;COUNT=4", datetime(2024, 1, 3, 10, 0))
    assert [s.date().isoformat() for s in starts] == ["2024-01-03", "2024-01-05", "2024-01-08", "2024-01-10"]


def test_weekly_interval():
    starts = _starts("FREQ=WEEKLY;INTERVAL=2;COUNT=3", datetime(2024, 1, 1, 8, 0))
    assert [s.day for s in starts] == [1, 15, 29]


def test_monthly_skips_months_without_the_day():
    starts = _starts("FREQ=MONTHLY;COUNT=4", datetime(2024, 1, 31, 12, 0))
    assert [(s.month, s.day) for s in starts] == [(1, 31), (3, 31), (5, 31), (7, 31)]


def test_monthly_negative_day_counts_from_month_end():
    starts = _starts("FREQ=MONTHLY;BYMONTHDAY=-1;COUNT=3", datetime(2024, 1, 31, 12, 0))
    assert [(s.month, s.day) for s in starts] == [(1, 31), (2, 29), (3, 31)]


def test_yearly_leap_day():
    starts = _starts("FREQ=YEARLY;COUNT=2", datetime(2024, 2, 29, 9, 0))
    assert starts == [datetime(2024, 2, 29, 9, 0), datetime(2028, 2, 29, 9, 0)]


def test_until_is_inclusive():
    starts = _starts("FREQ=DAILY;UNTIL=20240103", datetime(2024, 1, 1, 9, 0))
    assert len(starts) == 3
    assert starts[-1] == datetime(2024, 1, 3, 9, 0)


def test_count_is_counted_from_start_not_window():
    starts = generate_occurrence_starts(
        parse_rule("FREQ=DAILY;COUNT=5"), datetime(2024, 1, 1, 9, 0),
        datetime(2024, 1, 4), datetime(2024, 1, 31),
    )
    assert starts == [datetime(2024, 1, 4, 9, 0), datetime(2024, 1, 5, 9, 0)]


def test_count_and_until_whichever_first():
    starts = _starts("FREQ=DAILY;COUNT=10;UNTIL=20240102", datetime(2024, 1, 1, 9, 0))
    assert len(starts) == 2


def test_impossible_rule_terminates():
    """February never has a 30th."""
    assert _starts("FREQ=YEARLY;BYMONTH=2;BYMONTHDAY=30", datetime(2024, 2, 1), max_empty_periods=20) == []


def test_window_excludes_end():
    starts = generate_occurrence_starts(
        parse_rule("FREQ=DAILY"), datetime(2024, 1, 1, 0, 0),
        datetime(2024, 1, 1), datetime(2024, 1, 3),
    )
    assert starts == [datetime(2024, 1, 1), datetime(2024, 1, 2)]


def test_generation_is_deterministic():
    rule = parse_rule("FREQ=WEEKLY;BYDAY=TU,TH")
    args = (rule, datetime(2024, 1, 2, 14, 0), datetime(2024, 1, 1), datetime(2024, 3, 1))
    assert generate_occurrence_starts(*args) == generate_occurrence_starts(*args)


def test_inverted_window_raises():
    with pytest.raises(ValueError):
        generate_occurrence_starts(
            parse_rule("FREQ=DAILY"), datetime(2024, 1, 1),
            datetime(2024, 2, 1), datetime(2024, 1, 1),
        )


def test_series_ends_at_calendar_limit():
    assert _starts("FREQ=YEARLY;INTERVAL=9000", datetime(2024, 1, 1, 9, 0)) == [datetime(2024, 1, 1, 9, 0)]
    assert _starts("FREQ=DAILY;INTERVAL=4000000", datetime(2024, 1, 1)) == [datetime(2024, 1, 1)]


def test_impossible_rule_with_wide_interval_stops_at_calendar_limit():
    assert _starts("FREQ=YEARLY;INTERVAL=10;BYMONTH=2;BYMONTHDAY=30", datetime(2024, 1, 1)) == []
