from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from backend.database import Base, get_db
from backend.main import app
from backend.models.lab_test import LabTest
from backend.models.user import User
from backend.seed.lab_test_seed import upsert_lab_tests
from backend.services.auth import create_session, hash_password


@pytest.fixture()
def db_session() -> Generator:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def client(db_session) -> Generator[TestClient, None, None]:
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    # Tests use an in-memory DB via dependency override; skip app startup side effects.
    original_startup = list(app.router.on_startup)
    app.router.on_startup.clear()
    with TestClient(app) as test_client:
        yield test_client
    app.router.on_startup[:] = original_startup
    app.dependency_overrides.clear()


@pytest.fixture()
def catalog(db_session) -> dict[str, LabTest]:
    upsert_lab_tests(db_session)
    db_session.commit()
    return {test.test_code: test for test in db_session.query(LabTest).all()}


def make_user(db, role: str, email: str | None = None, gender: str | None = None, **fields) -> User:
    user = User(
        email=email or f"{role.lower()}-{db.query(User).count() + 1}@example.com",
        password_hash=hash_password("secret123"),
        first_name=fields.pop("first_name", role),
        last_name=fields.pop("last_name", "User"),
        role=role,
        gender=gender,
        **fields,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def auth_headers(db, user: User) -> dict[str, str]:
    session = create_session(db, user.id)
    return {"Authorization": f"Bearer {session.id}"}


@pytest.fixture()
def user_factory(db_session):
    def _make(role: str, **fields) -> User:
        return make_user(db_session, role, **fields)

    return _make


@pytest.fixture()
def doctor(db_session) -> User:
    return make_user(db_session, "Doctor", department="Internal Medicine")


@pytest.fixture()
def technician(db_session) -> User:
    return make_user(db_session, "Technician", department="Laboratory")


@pytest.fixture()
def admin(db_session) -> User:
    return make_user(db_session, "Admin")


@pytest.fixture()
def patient(db_session) -> User:
    return make_user(db_session, "Patient", gender="Female", first_name="Jane", last_name="Doe")


@pytest.fixture()
def doctor_headers(db_session, doctor) -> dict[str, str]:
    return auth_headers(db_session, doctor)


@pytest.fixture()
def tech_headers(db_session, technician) -> dict[str, str]:
    return auth_headers(db_session, technician)


@pytest.fixture()
def admin_headers(db_session, admin) -> dict[str, str]:
    return auth_headers(db_session, admin)


@pytest.fixture()
def patient_headers(db_session, patient) -> dict[str, str]:
    return auth_headers(db_session, patient)


@pytest.fixture()
def place_order(client, doctor_headers, patient, catalog):
    """Create an order through the API for the given test codes and return its JSON."""

    def _place(*codes: str, priority: str = "Routine", patient_id: str | None = None) -> dict:
        response = client.post(
            "/api/v1/lab/orders",
            json={
                "patientId": patient_id or patient.id,
                "tests": [{"testId": catalog[code].id, "priority": priority} for code in codes],
                "clinicalInfo": "Routine check-up",
            },
            headers=doctor_headers,
        )
        assert response.status_code == 201, response.text
        return response.json()["order"]

    return _place


@pytest.fixture()
def advance(client, tech_headers, catalog):
    """Move one test line of an order to the given status."""

    def _advance(order_id: str, code: str, status: str = "Collected"):
        return client.patch(
            f"/api/v1/lab/orders/{order_id}/tests/{catalog[code].id}/status",
            json={"status": status},
            headers=tech_headers,
        )

    return _advance


@pytest.fixture()
def enter_result(client, tech_headers, catalog):
    def _enter(order_id: str, code: str, value, **extra):
        result = {"value": value}
        for key in ("unit", "flag"):
            if key in extra:
                result[key] = extra.pop(key)
        return client.post(
            "/api/v1/lab/results",
            json={"orderId": order_id, "testId": catalog[code].id, "result": result, **extra},
            headers=tech_headers,
        )

    return _enter
