import math
from typing import Any

from backend.models.lab_test import LabTest


def is_numeric(value: Any) -> bool:
    # bool is an int subclass but never a measurement
    if isinstance(value, bool):
        return False
    if isinstance(value, float):
        return math.isfinite(value)
    return isinstance(value, int)


def _fmt(number: float | None) -> str:
    if number is None:
        return ""
    return f"{number:g}"


def format_reference_range(test: LabTest) -> str:
    if test.has_numeric_range:
        text = f"{_fmt(test.range_min)}-{_fmt(test.range_max)}"
        if test.range_unit:
            text = f"{text} {test.range_unit}"
        return text
    if test.range_text:
        return test.range_text
    return "See reference"


def range_applies(test: LabTest, gender: str | None) -> bool:
    if not test.range_gender or test.range_gender == "All":
        return True
    return gender == test.range_gender


def classify_value(
    test: LabTest,
    value: Any,
    gender: str | None = None,
    requested_flag: str | None = None,
) -> tuple[str, bool]:
    """Return ``(flag, is_abnormal)`` for a submitted result value.

    Numeric values are compared against a numeric catalog range: below the
    minimum is Low, above the maximum is High, anything else Normal. Textual
    ranges and non-numeric values are never auto-flagged; they keep the flag
    the caller asked for, or Normal.
    """
    if test.has_numeric_range and is_numeric(value) and range_applies(test, gender):
        if test.range_min is not None and value < test.range_min:
            flag = "Low"
        elif test.range_max is not None and value > test.range_max:
            flag = "High"
        else:
            flag = "Normal"
    else:
        flag = requested_flag or "Normal"
    return flag, flag != "Normal"


def describe_value(value: Any, unit: str | None) -> str:
    text = "Pending" if value is None else str(value)
    if unit:
        text = f"{text} {unit}"
    return text
