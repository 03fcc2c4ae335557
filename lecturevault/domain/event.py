"""
CalendarEvent recurrence shapes.

A calendar_events row is exactly one of:

    Standalone()                  plain event
    Template(rule)                recurrence_rule set, expanded on read
    Instance(parent_id, anchor)   materialized override of one template occurrence

event_kind() is the only place that decides which, so the rule/parent
exclusivity is checked once for inserts, updates and reads alike.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Union

from lecturevault.domain.errors import InvariantViolation
from lecturevault.domain.recurrence import RuleSpec, parse_rule


@dataclass(frozen=True)
class Standalone:
    pass


@dataclass(frozen=True)
class Template:
    rule_text: str
    rule: RuleSpec


@dataclass(frozen=True)
class Instance:
    parent_id: int
    anchor: datetime  # original start of the overridden occurrence


EventKind = Union[Standalone, Template, Instance]


def _get(row: Any, key: str):
    if isinstance(row, Mapping):
        return row.get(key)
    return getattr(row, key, None)


def event_kind(row: Any) -> EventKind:
    """
    Classify an event row (ORM object or field mapping).

    Raises:
        InvariantViolation: rule and parent both set, or an instance without its anchor date
        MalformedRule: template rule text does not parse
    """
    rule_text = _get(row, "recurrence_rule")
    parent_id = _get(row, "recurrence_parent_id")

    if rule_text is not None and parent_id is not None:
        raise InvariantViolation(
            "an event cannot be both a recurrence template and an instance of another template"
        )
    if rule_text is not None:
        return Template(rule_text=rule_text, rule=parse_rule(rule_text))
    if parent_id is not None:
        anchor = _get(row, "recurrence_date")
        if anchor is None:
            raise InvariantViolation("a recurrence instance requires recurrence_date")
        return Instance(parent_id=parent_id, anchor=anchor)
    if _get(row, "is_recurrence_exception"):
        raise InvariantViolation("is_recurrence_exception requires recurrence_parent_id")
    return Standalone()


def check_event_times(row: Any) -> None:
    start, end = _get(row, "start_time"), _get(row, "end_time")
    if start is not None and end is not None and end < start:
        raise InvariantViolation("end_time must not be before start_time")
