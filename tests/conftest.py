import os

os.environ.pop("DATABASE_URL", None)

import mongomock
import pytest
from fastapi.testclient import TestClient

from database import ensure_indexes, get_db
from main import app


@pytest.fixture
def mongo_db():
    db = mongomock.MongoClient()["storefront_test"]
    ensure_indexes(db)
    return db


@pytest.fixture(autouse=True)
def no_telegram(monkeypatch):
    monkeypatch.delenv("TELEGRAM_BOT_TOKEN", raising=False)
    monkeypatch.delenv("TELEGRAM_CHAT_ID", raising=False)


@pytest.fixture
def client(mongo_db):
    app.dependency_overrides[get_db] = lambda: mongo_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def make_product(client):
    def _make(**overrides):
        payload = {"name": "Milk", "price": 40, "stock": 10}
        payload.update(overrides)
        r = client.post("/api/products", json=payload)
        assert r.status_code == 200
        return r.json()
    return _make


@pytest.fixture
def register_and_login(client):
    def _register(name="A", phone="111", password="p", address=""):
        r = client.post("/api/customers", json={"name": name, "phone": phone, "password": password,
                                                "address": address})
        assert r.status_code == 200
        r = client.post("/api/login", json={"identifier": phone, "password": password})
        assert r.status_code == 200
        body = r.json()
        return body["user"]["id"], body["token"]
    return _register
