from __future__ import annotations

import copy
import os
import sys
from pathlib import Path
from types import SimpleNamespace

import pytest

# Ensure the repo root is on sys.path so `import divein.*` works in tests.
ROOT_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT_DIR))

os.environ.setdefault("MONGO_URI", "mongodb://localhost:27017")
os.environ.setdefault("MONGO_DB_NAME", "divein_test")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")
os.environ.setdefault("ENFORCE_EXPIRY", "true")

from fastapi.testclient import TestClient  # noqa: E402
from pymongo.errors import DuplicateKeyError, ServerSelectionTimeoutError  # noqa: E402


# -----------------------
# In-memory stand-in for a motor collection (only what the services call)
# -----------------------
def _compare(value, op, arg) -> bool:
    if op == "$in":
        return value in arg
    if op == "$ne":
        return value != arg
    if value is None:
        return False
    if op == "$gt":
        return value > arg
    if op == "$gte":
        return value >= arg
    if op == "$lt":
        return value < arg
    if op == "$lte":
        return value <= arg
    raise NotImplementedError(op)


def _matches(doc: dict, query: dict) -> bool:
    for key, cond in query.items():
        if key == "$or":
            if not any(_matches(doc, sub) for sub in cond):
                return False
            continue
        if key == "$and":
            if not all(_matches(doc, sub) for sub in cond):
                return False
            continue
        value = doc.get(key)
        if isinstance(cond, dict) and cond and all(k.startswith("$") for k in cond):
            if not all(_compare(value, op, arg) for op, arg in cond.items()):
                return False
        elif value != cond:
            return False
    return True


class FakeCursor:
    def __init__(self, docs):
        self._docs = docs

    def sort(self, key, direction=1):
        self._docs = sorted(self._docs, key=lambda d: d.get(key), reverse=direction < 0)
        return self

    async def to_list(self, length=None):
        return [copy.deepcopy(d) for d in (self._docs if length is None else self._docs[:length])]


class FakeCollection:
    def __init__(self, unique=()):
        self.docs: list[dict] = []
        self.unique = set(unique)
        self.calls: list[str] = []

    async def create_index(self, keys, unique=False, **_):
        if unique and isinstance(keys, str):
            self.unique.add(keys)
        return keys

    async def insert_one(self, doc):
        self.calls.append("insert_one")
        for field in self.unique | {"_id"}:
            if field in doc and any(d.get(field) == doc[field] for d in self.docs):
                raise DuplicateKeyError(f"duplicate {field}")
        self.docs.append(copy.deepcopy(doc))
        return SimpleNamespace(inserted_id=doc.get("_id"))

    async def find_one(self, query):
        self.calls.append("find_one")
        for doc in self.docs:
            if _matches(doc, query):
                return copy.deepcopy(doc)
        return None

    def find(self, query):
        self.calls.append("find")
        return FakeCursor([d for d in self.docs if _matches(d, query)])

    async def update_one(self, query, update):
        self.calls.append("update_one")
        for doc in self.docs:
            if _matches(doc, query):
                before = dict(doc)
                doc.update(copy.deepcopy(update.get("$set", {})))
                return SimpleNamespace(matched_count=1, modified_count=int(before != doc))
        return SimpleNamespace(matched_count=0, modified_count=0)

    async def delete_one(self, query):
        self.calls.append("delete_one")
        for i, doc in enumerate(self.docs):
            if _matches(doc, query):
                del self.docs[i]
                return SimpleNamespace(deleted_count=1)
        return SimpleNamespace(deleted_count=0)


class BrokenCollection:
    """Every call fails the way an unreachable MongoDB does."""

    def __getattr__(self, name):
        def fail(*args, **kwargs):
            raise ServerSelectionTimeoutError("no servers available")

        return fail


# -----------------------
# Fixtures
# -----------------------
@pytest.fixture
def collections():
    return {
        "users": FakeCollection(unique=["email"]),
        "organizations": FakeCollection(unique=["user_id"]),
        "opportunities": FakeCollection(),
        "applications": FakeCollection(),
        "password_reset_tokens": FakeCollection(unique=["token_hash"]),
        "revoked_tokens": FakeCollection(unique=["jti"]),
    }


@pytest.fixture
def opportunity_store(collections):
    from divein.services.opportunity_store import OpportunityStore

    return OpportunityStore(collections["opportunities"], enforce_expiry=True)


@pytest.fixture
def application_store(collections):
    from divein.services.application_store import ApplicationStore

    return ApplicationStore(collections["applications"])


@pytest.fixture
def mailbox():
    return []


@pytest.fixture
def auth_service(collections, mailbox):
    from divein.services.auth_service import AuthService

    def fake_mailer(to_email, subject, html_content):
        mailbox.append({"to": to_email, "subject": subject, "html": html_content})

    return AuthService(
        users=collections["users"],
        organizations=collections["organizations"],
        reset_tokens=collections["password_reset_tokens"],
        revoked_tokens=collections["revoked_tokens"],
        mailer=fake_mailer,
    )


@pytest.fixture
def client(opportunity_store, application_store, auth_service):
    from divein.main import app
    from divein.services.application_store import get_application_store
    from divein.services.auth_service import get_auth_service
    from divein.services.opportunity_store import get_opportunity_store

    app.dependency_overrides[get_opportunity_store] = lambda: opportunity_store
    app.dependency_overrides[get_application_store] = lambda: application_store
    app.dependency_overrides[get_auth_service] = lambda: auth_service
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def register_org(client):
    """Register + log in an organization; returns (user_id, auth headers)."""

    def _register(email="org@example.ro", password="parola123", organization_name="Asociația Tinerilor Buzău"):
        r = client.post(
            "/auth/register",
            json={
                "email": email,
                "password": password,
                "confirm_password": password,
                "organization_name": organization_name,
            },
        )
        assert r.status_code == 201, r.text
        r = client.post("/auth/login", json={"email": email, "password": password})
        assert r.status_code == 200, r.text
        data = r.json()["data"]
        return data["user"]["id"], {"Authorization": f"Bearer {data['access_token']}"}

    return _register
