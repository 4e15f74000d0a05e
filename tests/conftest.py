import json

import mongomock
import pytest
from fastapi.testclient import TestClient

import database
import main
from schemas import Product, SelectionEntry


def make_product(pid="p1", name="Temple Necklace", price_inr="1000.00", price_bhd="4.500",
                 stock=10, **extra):
    return Product(id=pid, name=name, product_code=extra.pop("product_code", f"PJ-{pid}"),
                   price_inr=price_inr, price_bhd=price_bhd,
                   gross_weight=extra.pop("gross_weight", "12.500"),
                   net_weight=extra.pop("net_weight", "11.800"),
                   stock=stock, **extra)


def make_selection(*pairs):
    return {p.id: SelectionEntry(product=p, quantity=q) for p, q in pairs}


class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload
        self.content = b"" if payload is None else json.dumps(payload).encode()

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        return self._payload


class FakeSession:
    """Stands in for requests.Session; answers from a queue of responses."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []
        self.headers = {}

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def mongo(monkeypatch):
    mock_db = mongomock.MongoClient()["palaniappa_test"]
    monkeypatch.setattr(database, "db", mock_db)
    monkeypatch.setattr(main, "db", mock_db)
    return mock_db


@pytest.fixture
def api(mongo):
    return TestClient(main.app)
