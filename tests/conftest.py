"""
Shared fixtures: an in-memory SQLite store per test and an app bound to it.
"""

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import pytest

from app import create_app
from database import init_db
from models import Customer, Product


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(engine, session_factory):
    app = create_app(session_factory=session_factory, bind=engine)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def make_product(db):
    def _make(**overrides):
        fields = {
            "name": "Galaxy A15",
            "brand": "Samsung",
            "category": "Phones",
            "buying_price": 300000.0,
            "selling_price": 400000.0,
            "pieces": 5,
            "low_stock_alert": 2,
        }
        fields.update(overrides)
        product = Product(**fields)
        db.add(product)
        db.commit()
        db.refresh(product)
        return product

    return _make


@pytest.fixture
def make_customer(db):
    def _make(**overrides):
        fields = {
            "name": "Asha Mwinyi",
            "phone": "+255700000001",
            "email": "asha@example.com",
            "address": "Kariakoo",
            "loyalty_points": 0,
            "loan_balance": 0.0,
        }
        fields.update(overrides)
        customer = Customer(**fields)
        db.add(customer)
        db.commit()
        db.refresh(customer)
        return customer

    return _make
