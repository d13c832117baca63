from datetime import date

from benefits_enrollment.contracts.interfaces import Person
from benefits_enrollment.rating.census import age_on, aggregate


def _person(dob):
    return Person(first_name="Pat", last_name="Doe", date_of_birth=dob)


def test_age_before_and_after_birthday():
    dob = date(1990, 6, 15)
    assert age_on(dob, date(2025, 6, 14)) == 34
    assert age_on(dob, date(2025, 6, 15)) == 35
    assert age_on(dob, date(2025, 12, 31)) == 35


def test_leap_day_birthday():
    dob = date(2000, 2, 29)
    assert age_on(dob, date(2025, 2, 28)) == 24
    assert age_on(dob, date(2025, 3, 1)) == 25


def test_aggregate_averages_ages():
    as_of = date(2025, 1, 1)
    summary = aggregate([_person(date(1985, 1, 1)), _person(date(1995, 1, 1))], as_of)
    assert summary.member_count == 2
    assert summary.average_age == 35.0


def test_empty_census_uses_default_age():
    summary = aggregate([], date(2025, 1, 1))
    assert summary.average_age == 35.0
    assert summary.member_count == 0


def test_empty_census_honours_configured_default():
    assert aggregate([], date(2025, 1, 1), default_average_age=40).average_age == 40.0
