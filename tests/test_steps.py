from benefits_enrollment.workflow.steps import (
    APPLICATION_INITIATOR,
    CANONICAL_STEPS,
    COMPANY_INFORMATION,
    REVIEW,
    first_incomplete_step,
    is_known_step,
)


def test_canonical_order():
    assert CANONICAL_STEPS[0] == APPLICATION_INITIATOR
    assert CANONICAL_STEPS[-1] == REVIEW
    assert len(CANONICAL_STEPS) == 9


def test_first_incomplete_step():
    assert first_incomplete_step([]) == APPLICATION_INITIATOR
    assert first_incomplete_step([APPLICATION_INITIATOR]) == COMPANY_INFORMATION
    assert first_incomplete_step(CANONICAL_STEPS[:-1]) == REVIEW
    assert first_incomplete_step(CANONICAL_STEPS) == REVIEW


def test_known_steps():
    assert is_known_step(REVIEW)
    assert not is_known_step("payment")
