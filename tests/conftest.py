import os
from datetime import date
from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Set env before importing app components
os.environ["APP_ENV"] = "testing"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"

from appraisal_engine.database import Base, get_db
from appraisal_engine.main import app
from fastapi.testclient import TestClient

# SQLite in-memory database configuration
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session():
    """
    Fresh schema per test. The services commit and roll back on their own,
    so an outer rollback cannot undo their work.
    """
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()

    yield session

    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def make_account(db_session):
    from appraisal_engine.models.account import Account, AccountRole

    def _make_account(email, role=AccountRole.EMPLOYEE, full_name=None, is_active=True):
        account = Account(email=email, role=role, full_name=full_name, is_active=is_active)
        db_session.add(account)
        db_session.commit()
        return account
    return _make_account


@pytest.fixture(scope="function")
def make_employee(db_session):
    from appraisal_engine.models.employee import Employee

    def _make_employee(email, first_name, last_name="Test", account=None, supervisor=None, reviewer=None):
        employee = Employee(
            email=email,
            first_name=first_name,
            last_name=last_name,
            account_id=account.id if account else None,
            supervisor_id=supervisor.id if supervisor else None,
            reviewer_id=reviewer.id if reviewer else None,
        )
        db_session.add(employee)
        db_session.commit()
        return employee
    return _make_employee


@pytest.fixture(scope="function")
def people(make_account, make_employee):
    """
    A small org:
      - Eve reports to Sam (supervisor) and is reviewed by Rita
      - Bob reports to Zed
      - Olga has no supervisor
      - Hana is HR and has no employee record
    """
    from appraisal_engine.models.account import AccountRole

    hr = make_account("hana@example.com", AccountRole.HR_ADMIN, "Hana HR")

    sam_account = make_account("sam@example.com", AccountRole.MANAGER, "Sam Supervisor")
    sam = make_employee("sam@example.com", "Sam", "Supervisor", account=sam_account)
    rita_account = make_account("rita@example.com", AccountRole.MANAGER, "Rita Reviewer")
    rita = make_employee("rita@example.com", "Rita", "Reviewer", account=rita_account)
    zed_account = make_account("zed@example.com", AccountRole.MANAGER, "Zed Manager")
    zed = make_employee("zed@example.com", "Zed", "Manager", account=zed_account)

    eve_account = make_account("eve@example.com", AccountRole.EMPLOYEE, "Eve Employee")
    eve = make_employee("eve@example.com", "Eve", "Employee", account=eve_account, supervisor=sam, reviewer=rita)
    bob_account = make_account("bob@example.com", AccountRole.EMPLOYEE, "Bob Builder")
    bob = make_employee("bob@example.com", "Bob", "Builder", account=bob_account, supervisor=zed)
    olga_account = make_account("olga@example.com", AccountRole.EMPLOYEE, "Olga Orphan")
    olga = make_employee("olga@example.com", "Olga", "Orphan", account=olga_account)

    return SimpleNamespace(
        hr=hr,
        sam=sam, sam_account=sam_account,
        rita=rita, rita_account=rita_account,
        zed=zed, zed_account=zed_account,
        eve=eve, eve_account=eve_account,
        bob=bob, bob_account=bob_account,
        olga=olga, olga_account=olga_account,
    )


@pytest.fixture(scope="function")
def make_plan(db_session):
    from appraisal_engine.models.performance_plan import PerformancePlan

    def _make_plan(employee, supervisor_account, reviewer_account=None, year=2026,
                   period_start=None, period_end=None):
        plan = PerformancePlan(
            employee_id=employee.id,
            supervisor_account_id=supervisor_account.id,
            reviewer_account_id=reviewer_account.id if reviewer_account else None,
            year=year,
            period_label=f"{year} Annual",
            period_start=period_start or date(year, 1, 1),
            period_end=period_end or date(year, 12, 31),
        )
        db_session.add(plan)
        db_session.commit()
        return plan
    return _make_plan


@pytest.fixture(scope="function")
def eve_plan(people, make_plan):
    return make_plan(people.eve, people.sam_account, people.rita_account)


@pytest.fixture(scope="function")
def complete_self_assessment():
    """A self assessment that passes every submission check."""
    def _build(rating=4):
        return {
            "achievements": [
                {"title": "Ship billing v2", "achievement_status": "achieved", "comment": "Delivered in Q2"},
            ],
            "performance_categories": [
                {"name": "Delivery", "rating": rating},
                {"name": "Collaboration", "rating": 3},
            ],
        }
    return _build


@pytest.fixture(scope="function")
def appraisal_service(db_session):
    from appraisal_engine.core.roles import load_role_table
    from appraisal_engine.services.appraisal_service import AppraisalService

    return AppraisalService(db_session, role_table=load_role_table(), today=lambda: date(2026, 3, 1))


@pytest.fixture(scope="function")
def get_token():
    """Helper fixture to create access tokens for an account."""
    from appraisal_engine.services.auth import create_access_token

    def _get_token(account):
        return create_access_token(data={"sub": account.email, "role": account.role.value})
    return _get_token


@pytest.fixture(scope="function")
def auth_headers(get_token):
    def _headers(account):
        return {"Authorization": f"Bearer {get_token(account)}"}
    return _headers


@pytest.fixture(scope="function")
def client(db_session):
    """Get a TestClient that uses the test database session via dependency override."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
