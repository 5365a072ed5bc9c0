import pytest
from datetime import date

from appraisal_engine.core.exceptions import MissingSupervisorAccountError, NotFoundError
from appraisal_engine.models.performance_plan import PerformancePlan
from appraisal_engine.services.plan_provisioner import PlanProvisioner


def test_provisions_plan_from_reporting_lines(db_session, people):
    plan = PlanProvisioner(db_session).ensure_plan(people.eve.id, 2026)
    db_session.commit()

    assert plan.id is not None
    assert plan.period_label == "2026 Annual"
    assert plan.period_start == date(2026, 1, 1)
    assert plan.period_end == date(2026, 12, 31)
    assert plan.supervisor_account_id == people.sam_account.id
    assert plan.reviewer_account_id == people.rita_account.id
    assert plan.status == "draft"


def test_existing_plan_is_reused(db_session, people):
    provisioner = PlanProvisioner(db_session)
    first = provisioner.ensure_plan(people.eve.id, 2026)
    db_session.commit()
    second = provisioner.ensure_plan(people.eve.id, 2026)

    assert first.id == second.id
    assert db_session.query(PerformancePlan).count() == 1


def test_reviewer_is_optional(db_session, people):
    plan = PlanProvisioner(db_session).ensure_plan(people.bob.id, 2026)
    assert plan.supervisor_account_id == people.zed_account.id
    assert plan.reviewer_account_id is None


def test_missing_supervisor_creates_nothing(db_session, people):
    with pytest.raises(MissingSupervisorAccountError) as exc:
        PlanProvisioner(db_session).ensure_plan(people.olga.id, 2026)

    assert exc.value.employee_id == people.olga.id
    assert exc.value.status_code == 422
    assert db_session.query(PerformancePlan).count() == 0


def test_supervisor_without_login_account(db_session, make_employee):
    boss = make_employee("boss@example.com", "Boss")
    worker = make_employee("worker@example.com", "Worker", supervisor=boss)

    with pytest.raises(MissingSupervisorAccountError):
        PlanProvisioner(db_session).ensure_plan(worker.id, 2026)
    assert db_session.query(PerformancePlan).count() == 0


def test_unknown_employee(db_session, people):
    with pytest.raises(NotFoundError):
        PlanProvisioner(db_session).ensure_plan(4242, 2026)
