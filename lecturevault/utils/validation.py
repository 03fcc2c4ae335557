"""
Validation utilities
"""
import re

HEX_COLOR_RE = re.compile(r"^#[0-9A-Fa-f]{6}$")
CLOCK_TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")

REMINDER_TYPES = ("notification", "email", "popup")
CALENDAR_VIEWS = ("month", "week", "day", "agenda")
TIME_FORMATS = ("12h", "24h")


def validate_hex_color(value: str) -> tuple[bool, str | None]:
    """
    Validate a category color

    Returns:
        (is_valid, error_message)

    Example:
        >>> validate_hex_color("#3B82F6")
        (True, None)
        >>> validate_hex_color("blue")
        (False, "color must look like #RRGGBB, got 'blue'")
    """
    if not isinstance(value, str) or not HEX_COLOR_RE.match(value):
        return False, f"color must look like #RRGGBB, got {value!r}"
    return True, None


def validate_clock_time(value: str) -> tuple[bool, str | None]:
    """
    Validate a 24h "HH:MM" wall clock value (working hours)

    Example:
        >>> validate_clock_time("09:00")
        (True, None)
        >>> validate_clock_time("9am")
        (False, "expected HH:MM, got '9am'")
    """
    if not isinstance(value, str) or not CLOCK_TIME_RE.match(value):
        return False, f"expected HH:MM, got {value!r}"
    return True, None


def validate_choice(value, choices: tuple, name: str) -> tuple[bool, str | None]:
    if value not in choices:
        return False, f"{name} must be one of {', '.join(map(str, choices))}, got {value!r}"
    return True, None


def validate_non_negative(value, name: str) -> tuple[bool, str | None]:
    if value is None:
        return True, None
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        return False, f"{name} must be a non-negative integer, got {value!r}"
    return True, None


def validate_minute_offsets(value) -> tuple[bool, str | None]:
    """Default reminder offsets: list of non-negative minutes, e.g. [15, 60]"""
    if value is None:
        return True, None
    if not isinstance(value, list):
        return False, f"default_reminders must be a list of minutes, got {value!r}"
    for item in value:
        ok, error = validate_non_negative(item, "default_reminders item")
        if not ok:
            return False, error
    return True, None
