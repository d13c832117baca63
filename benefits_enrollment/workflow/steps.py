"""Canonical enrollment step sequence."""

from __future__ import annotations

from typing import Iterable, List

APPLICATION_INITIATOR = "application-initiator"
COMPANY_INFORMATION = "company-information"
OWNERSHIP_INFO = "ownership-info"
AUTHORIZED_CONTACT = "authorized-contact"
EMPLOYEES = "employees"
DOCUMENTS = "documents"
PLANS = "plans"
CONTRIBUTIONS = "contributions"
REVIEW = "review"

CANONICAL_STEPS: List[str] = [
    APPLICATION_INITIATOR,
    COMPANY_INFORMATION,
    OWNERSHIP_INFO,
    AUTHORIZED_CONTACT,
    EMPLOYEES,
    DOCUMENTS,
    PLANS,
    CONTRIBUTIONS,
    REVIEW,
]


def is_known_step(step: str) -> bool:
    return step in CANONICAL_STEPS


def first_incomplete_step(completed: Iterable[str]) -> str:
    """The first canonical step not yet completed (review once all others are)."""
    done = set(completed)
    for step in CANONICAL_STEPS:
        if step not in done:
            return step
    return REVIEW
