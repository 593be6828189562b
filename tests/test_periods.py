"""Unit tests for billing period helpers."""

from datetime import date

import pytest

from app.core.exceptions import ValidationError
from app.core.periods import (
    due_date_for,
    next_period,
    parse_period,
    period_bounds,
    period_of,
    previous_period,
)


def test_parse_period() -> None:
    assert parse_period("2025-11") == (2025, 11)


@pytest.mark.parametrize("bad", ["2025-13", "2025-00", "25-11", "2025-1", "2025/11", "", "2025-11\n", "2025-11 "])
def test_parse_period_rejects_malformed(bad: str) -> None:
    with pytest.raises(ValidationError) as exc:
        parse_period(bad)
    assert exc.value.status_code == 400


def test_next_and_previous_cross_year() -> None:
    assert next_period("2025-11") == "2025-12"
    assert next_period("2025-12") == "2026-01"
    assert previous_period("2026-01") == "2025-12"
    assert previous_period("2025-12") == "2025-11"


def test_period_bounds_leap_february() -> None:
    assert period_bounds("2024-02") == (date(2024, 2, 1), date(2024, 2, 29))
    assert period_bounds("2025-02") == (date(2025, 2, 1), date(2025, 2, 28))


def test_due_date_and_period_of() -> None:
    assert due_date_for("2025-11", 15) == date(2025, 11, 15)
    assert period_of(date(2025, 11, 30)) == "2025-11"
