"""
Pytest fixtures for the test suite.

- `db_session`: in-memory SQLite, one connection, rolled back after each test.
- `session_factory`: file-backed SQLite in tmp_path. Ledger code opens one
  session per transaction attempt, so it needs real separate connections.
- `client`: the FastAPI app on top of `session_factory`, seeded with demo data.
"""
from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker

from warehouse_ops.db.base import Base
from warehouse_ops.models import production as _production  # noqa: F401
from warehouse_ops.models import productivity as _productivity  # noqa: F401
from warehouse_ops.models import security as _security  # noqa: F401


TEST_DB_URL = "sqlite:///:memory:"


@pytest.fixture
def engine():
    """Create a fresh in-memory SQLite engine for each test."""
    return create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        echo=False,
    )


@pytest.fixture
def tables(engine):
    """Create all ORM tables on the test engine."""
    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture
def db_session(tables):
    """
    Provide a Session bound to the test DB; roll back after each test.
    """
    connection = tables.connect()
    transaction = connection.begin()
    TestSession = sessionmaker(
        bind=connection,
        autocommit=False,
        autoflush=False,
        class_=Session,
    )
    session = TestSession()
    yield session
    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def file_engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'warehouse-test.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(file_engine):
    return sessionmaker(bind=file_engine, autocommit=False, autoflush=False, class_=Session)


@pytest.fixture
def make_case(session_factory):
    """Create a production case (and its shipment) and return nothing."""
    from warehouse_ops.models.production import ProductionCase, Shipment

    def _make(shipment_id: str, case_number: str, total: int, consumed: int = 0) -> None:
        with session_factory() as db:
            if db.get(Shipment, shipment_id) is None:
                db.add(Shipment(id=shipment_id))
                db.flush()
            db.add(
                ProductionCase(
                    shipment_id=shipment_id,
                    case_number=case_number,
                    total_lines=total,
                    consumed_lines=consumed,
                    remaining_lines=max(0, total - consumed),
                    fully_sorted=consumed >= total,
                )
            )
            db.commit()

    return _make


@pytest.fixture
def make_user(session_factory):
    from warehouse_ops.models.security import User

    def _make(employee_no: str, role: str | None = None, permissions: dict | None = None) -> str:
        with session_factory() as db:
            user = User(employee_no=employee_no, full_name=f"User {employee_no}", role=role, permissions=permissions)
            db.add(user)
            db.commit()
            return user.id

    return _make


@pytest.fixture
def case_state(session_factory):
    """Read a case back as (total, consumed, remaining, fully_sorted)."""
    from warehouse_ops.models.production import ProductionCase

    def _read(shipment_id: str, case_number: str) -> tuple[int, int, int, bool]:
        with session_factory() as db:
            case = db.scalars(
                select(ProductionCase).where(
                    ProductionCase.shipment_id == shipment_id,
                    ProductionCase.case_number == case_number,
                )
            ).one()
            return case.total_lines, case.consumed_lines, case.remaining_lines, case.fully_sorted

    return _read


@pytest.fixture
def app(file_engine, session_factory):
    from warehouse_ops.db.init_db import init_db
    from warehouse_ops.db.session import get_session_factory
    from warehouse_ops.main import create_app

    init_db(bind=file_engine)
    application = create_app(initialize_db=False)
    application.dependency_overrides[get_session_factory] = lambda: session_factory
    return application


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def user_ids(app, session_factory) -> dict[str, str]:
    """Seeded employee number -> user id."""
    from warehouse_ops.models.security import User

    with session_factory() as db:
        return {u.employee_no: u.id for u in db.scalars(select(User))}
