"""Census aggregation: average age and head-count of the people being priced."""

from __future__ import annotations

from datetime import date
from typing import Iterable, Sequence

from benefits_enrollment.contracts.interfaces import CensusSummary, Person

DEFAULT_AVERAGE_AGE = 35.0


def age_on(date_of_birth: date, as_of: date) -> int:
    """Whole years between `date_of_birth` and `as_of`."""
    age = as_of.year - date_of_birth.year
    if (as_of.month, as_of.day) < (date_of_birth.month, date_of_birth.day):
        age -= 1
    return age


def aggregate(people: Sequence[Person], as_of: date, default_average_age: float = DEFAULT_AVERAGE_AGE) -> CensusSummary:
    # An empty census still quotes, at the configured default age.
    if not people:
        return CensusSummary(average_age=float(default_average_age), member_count=0)

    ages: Iterable[int] = (age_on(p.date_of_birth, as_of) for p in people)
    return CensusSummary(average_age=sum(ages) / len(people), member_count=len(people))
