import pytest
from datetime import date

from appraisal_engine.core.exceptions import AppraisalValidationError, InvalidTransitionError
from appraisal_engine.models.appraisal import Appraisal, AppraisalStatus
from appraisal_engine.models.performance_plan import PerformancePlan
from appraisal_engine.services.state_machine import TERMINAL_STATES, TRANSITIONS, AppraisalStateMachine

S = AppraisalStatus


@pytest.fixture
def machine():
    return AppraisalStateMachine()


@pytest.fixture
def plan():
    return PerformancePlan(period_start=date(2026, 1, 1), period_end=date(2026, 12, 31))


def _appraisal(status=S.DRAFT, self_assessment=None, overall_rating=0, reviewer_account_id=None):
    return Appraisal(
        employee_id=1,
        plan_id=1,
        reviewer_account_id=reviewer_account_id,
        appraisal_type="annual",
        status=status.value,
        overall_rating=overall_rating,
        self_assessment=self_assessment,
    )


def test_draft_can_only_be_submitted(machine):
    assert machine.allowed_transitions(S.DRAFT) == frozenset({S.SUBMITTED})
    assert machine.allowed_transitions("revision_requested") == frozenset({S.DRAFT, S.SUBMITTED})


def test_terminal_states_have_no_exits():
    for terminal in TERMINAL_STATES:
        assert TRANSITIONS[terminal] == frozenset()


def test_every_status_has_a_transition_entry():
    assert set(TRANSITIONS) == set(AppraisalStatus)


def test_submit_complete_draft_stamps_submitted_at(machine, plan, complete_self_assessment):
    appraisal = _appraisal(self_assessment=complete_self_assessment(), overall_rating=4)
    machine.apply(appraisal, S.SUBMITTED, plan)
    assert appraisal.status == "submitted"
    assert appraisal.submitted_at is not None
    assert appraisal.approved_at is None


def test_submit_empty_draft_reports_every_missing_piece(machine, plan):
    appraisal = _appraisal()
    with pytest.raises(AppraisalValidationError) as exc:
        machine.apply(appraisal, S.SUBMITTED, plan)

    fields = exc.value.fields
    assert "self_assessment.achievements" in fields
    assert "self_assessment.performance_categories" in fields
    assert "overall_rating" in fields
    # Rejected submission leaves the record untouched
    assert appraisal.status == "draft"
    assert appraisal.submitted_at is None


def test_submit_rejects_incomplete_achievement_and_zero_rating(machine, plan):
    payload = {
        "self_assessment": {
            "achievements": [{"achievement_status": "achieved", "comment": "  "}],
            "performance_categories": [{"name": "Delivery", "rating": 0}, {"name": "Ownership", "rating": 7}],
        },
        "overall_rating": 3,
    }
    errors = machine.submission_errors(payload, plan)
    messages = {e["field"]: e["msg"] for e in errors}

    assert "self_assessment.achievements[0].comment" in messages
    assert "self_assessment.achievements[0].achievement_status" not in messages
    assert messages["self_assessment.performance_categories[0].rating"] == "Delivery must have a rating"
    assert "between 1 and 5" in messages["self_assessment.performance_categories[1].rating"]
    assert "overall_rating" not in messages


def test_submit_rejects_inverted_review_period(machine, complete_self_assessment):
    plan = PerformancePlan(period_start=date(2026, 12, 31), period_end=date(2026, 1, 1))
    appraisal = _appraisal(self_assessment=complete_self_assessment(), overall_rating=4)
    with pytest.raises(AppraisalValidationError) as exc:
        machine.apply(appraisal, S.SUBMITTED, plan)
    assert exc.value.fields == ["review_period"]


def test_draft_cannot_jump_to_approved(machine, plan):
    appraisal = _appraisal()
    with pytest.raises(InvalidTransitionError) as exc:
        machine.apply(appraisal, S.APPROVED, plan)
    assert exc.value.current == "draft"
    assert exc.value.requested == "approved"


def test_same_state_is_a_plain_save(machine, plan):
    appraisal = _appraisal(status=S.SUPERVISOR_REVIEW)
    machine.apply(appraisal, S.SUPERVISOR_REVIEW, plan)
    assert appraisal.status == "supervisor_review"


@pytest.mark.parametrize("terminal", [S.APPROVED, S.REJECTED])
def test_terminal_states_reject_every_request(machine, plan, terminal):
    appraisal = _appraisal(status=terminal)
    with pytest.raises(InvalidTransitionError):
        machine.apply(appraisal, terminal, plan)
    with pytest.raises(InvalidTransitionError):
        machine.apply(appraisal, S.DRAFT, plan)


def test_resubmission_keeps_original_submitted_at(machine, plan, complete_self_assessment):
    appraisal = _appraisal(self_assessment=complete_self_assessment(), overall_rating=4)
    machine.apply(appraisal, S.SUBMITTED, plan)
    first_submitted_at = appraisal.submitted_at

    machine.apply(appraisal, S.REVISION_REQUESTED, plan)
    machine.apply(appraisal, S.SUBMITTED, plan)
    assert appraisal.submitted_at == first_submitted_at


def test_review_path_to_approval_stamps_approved_at(machine, plan, complete_self_assessment):
    appraisal = _appraisal(self_assessment=complete_self_assessment(), overall_rating=4)
    for step in (S.SUBMITTED, S.SUPERVISOR_REVIEW, S.REVIEWER_ASSESSMENT, S.APPROVED):
        machine.apply(appraisal, step, plan)
    assert appraisal.status == "approved"
    assert appraisal.approved_at is not None


def test_review_states_skip_content_checks(machine, plan):
    # Content is only checked on the way into submitted from an editable state
    appraisal = _appraisal(status=S.SUBMITTED)
    machine.apply(appraisal, S.SUPERVISOR_REVIEW, plan)
    assert appraisal.status == "supervisor_review"


def test_submit_without_overall_rating_fails_on_that_alone(machine, plan, complete_self_assessment):
    appraisal = _appraisal(self_assessment=complete_self_assessment())
    with pytest.raises(AppraisalValidationError) as exc:
        machine.apply(appraisal, S.SUBMITTED, plan)
    assert exc.value.fields == ["overall_rating"]
    assert appraisal.status == "draft"


def test_supervisor_cannot_approve_past_assigned_reviewer(machine, plan):
    appraisal = _appraisal(status=S.SUPERVISOR_REVIEW, reviewer_account_id=3)
    with pytest.raises(InvalidTransitionError):
        machine.apply(appraisal, S.APPROVED, plan)
    assert appraisal.status == "supervisor_review"

    machine.apply(appraisal, S.REVIEWER_ASSESSMENT, plan)
    assert appraisal.status == "reviewer_assessment"


def test_supervisor_approval_is_final_without_reviewer(machine, plan):
    appraisal = _appraisal(status=S.SUPERVISOR_REVIEW)
    machine.apply(appraisal, S.APPROVED, plan)
    assert appraisal.status == "approved"
    assert appraisal.approved_at is not None
