# tests/conftest.py
# Общие фикстуры: SQLite в памяти, сессия, участники, TestClient.

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret")

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from tripsplit.db import Base, get_db
from tripsplit.main import app
from tripsplit.models.user import User, UserRole
from tripsplit.schemas.expense import ExpenseCreate
from tripsplit.services.wallet import create_topup
from tripsplit.utils.auth import hash_pin


@pytest.fixture()
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(eng)
    yield eng
    Base.metadata.drop_all(eng)
    eng.dispose()


@pytest.fixture()
def db(engine):
    TestingSession = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


def _user(db, name, pin, role=UserRole.member):
    u = User(name=name, pin_hash=hash_pin(pin), role=role)
    db.add(u)
    db.commit()
    return u


@pytest.fixture()
def alice(db):
    return _user(db, "Alice", "1111")


@pytest.fixture()
def bob(db):
    return _user(db, "Bob", "2222")


@pytest.fixture()
def carol(db):
    return _user(db, "Carol", "3333")


@pytest.fixture()
def admin(db):
    return _user(db, "admin", "0000", UserRole.admin)


@pytest.fixture()
def fund(db):
    """Пополнить кошелёк: fund(user, 1000)."""
    def _fund(user, amount):
        create_topup(db, user, Decimal(str(amount)), Decimal("2.4"), "ATM")
        db.commit()
    return _fund


@pytest.fixture()
def make_expense(db):
    """
    make_expense(actor, title, total, payers=[(user, given, change)], splits=[(user, owed)], kind="group")
    """
    from tripsplit.services.expenses import create_expense

    def _make(actor, title, total, payers=(), splits=(), kind="group", date=None):
        data = {
            "title": title,
            "total_amount": Decimal(str(total)),
            "kind": kind,
            "payers": [
                {"user_id": u.id, "cash_given": Decimal(str(g)), "change_taken": Decimal(str(c))}
                for (u, g, c) in payers
            ],
            "splits": [{"user_id": u.id, "owed_amount": Decimal(str(o))} for (u, o) in splits],
        }
        if date is not None:
            data["date"] = date
        expense = create_expense(db, actor, ExpenseCreate(**data))
        db.commit()
        return expense
    return _make


@pytest.fixture()
def client(engine):
    TestingSession = sessionmaker(bind=engine, autocommit=False, autoflush=False)

    def _get_db():
        session = TestingSession()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


PINS = {"Alice": "1111", "Bob": "2222", "Carol": "3333", "admin": "0000"}


@pytest.fixture()
def login_as(client):
    """Войти через /api/auth/login: сессионная кука остаётся в клиенте."""
    def _login(user):
        r = client.post("/api/auth/login", json={"user_id": user.id, "pin": PINS[user.name]})
        assert r.status_code == 200, r.text
        return client
    return _login
