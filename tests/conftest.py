import os

# Configure the app for an in-memory database before it is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.pop("SMS_URL", None)

import pytest
from fastapi.testclient import TestClient

from ussdloan import app
from ussdloan.database import Base, SessionLocal, engine
from ussdloan.registry import SubscriberRegistry
from ussdloan.validators import DocumentType

MSISDN = "233241234567"


@pytest.fixture(autouse=True)
def tables():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def subscriber(db):
    registered = SubscriberRegistry(db).register(MSISDN, "Ama Mensah", "15091990", DocumentType.PASSPORT,
                                                 "A1234567")
    db.commit()
    return registered


@pytest.fixture
def dial(client):
    def _dial(text="", msisdn=MSISDN):
        response = client.post("/ussd", json={"MSISDN": msisdn, "USERDATA": text})
        assert response.status_code == 200, response.text
        return response.json()
    return _dial
