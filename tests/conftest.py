import itertools
from types import SimpleNamespace

import pytest
from firebase_admin import firestore

from careerpath import create_app
from careerpath.auth import AuthError
from careerpath.config import TestConfig
from careerpath.ml.engine import Engine
from careerpath.store import DocumentStore


# --- In-memory document store ----------------------------------------------
class FakeSnapshot:
    def __init__(self, doc_id, data):
        self.id = doc_id
        self._data = data

    @property
    def exists(self):
        return self._data is not None

    def to_dict(self):
        return dict(self._data) if self._data is not None else None


class FakeDocument:
    def __init__(self, collection, doc_id):
        self.collection = collection
        self.id = doc_id

    def get(self):
        if self.collection.fail:
            raise RuntimeError("store unavailable")
        return FakeSnapshot(self.id, self.collection.docs.get(self.id))

    def set(self, data):
        self.collection.docs[self.id] = dict(data)

    def update(self, data):
        if self.id not in self.collection.docs:
            raise KeyError(self.id)
        self.collection.docs[self.id].update(data)


OPS = {
    "==": lambda a, b: a == b,
    "!=": lambda a, b: a != b,
    ">=": lambda a, b: a is not None and a >= b,
    "<=": lambda a, b: a is not None and a <= b,
    ">": lambda a, b: a is not None and a > b,
    "<": lambda a, b: a is not None and a < b,
}


class FakeQuery:
    def __init__(self, collection, filters=(), orders=(), limit=None):
        self.collection = collection
        self.filters = list(filters)
        self.orders = list(orders)
        self._limit = limit

    def _copy(self, **changes):
        params = {"filters": self.filters, "orders": self.orders, "limit": self._limit}
        params.update(changes)
        return FakeQuery(self.collection, **params)

    def where(self, field, op, value):
        return self._copy(filters=self.filters + [(field, op, value)])

    def order_by(self, field, direction=None):
        return self._copy(orders=self.orders + [(field, direction)])

    def limit(self, count):
        return self._copy(limit=count)

    def get(self):
        if self.collection.fail:
            raise RuntimeError("store unavailable")
        rows = [
            (doc_id, data) for doc_id, data in self.collection.docs.items()
            if all(OPS[op](data.get(field), value) for field, op, value in self.filters)
        ]
        for field, direction in reversed(self.orders):
            rows.sort(key=lambda r: r[1].get(field) or "", reverse=direction == firestore.Query.DESCENDING)
        if self._limit is not None:
            rows = rows[:self._limit]
        return [FakeSnapshot(doc_id, data) for doc_id, data in rows]

    stream = get


class FakeCollection(FakeQuery):
    def __init__(self, name):
        self.name = name
        self.docs = {}
        self.fail = False
        self._ids = itertools.count(1)
        super().__init__(self)

    def document(self, doc_id):
        return FakeDocument(self, doc_id)

    def add(self, data):
        if self.fail:
            raise RuntimeError("store unavailable")
        doc_id = f"{self.name}-{next(self._ids)}"
        self.docs[doc_id] = dict(data)
        return "update-time", FakeDocument(self, doc_id)


class FakeFirestore:
    def __init__(self):
        self.collections = {}

    def collection(self, name):
        if name not in self.collections:
            self.collections[name] = FakeCollection(name)
        return self.collections[name]


# --- Identity provider --------------------------------------------------------
class FakeIdentity:
    def __init__(self):
        self.accounts = {}
        self.verification_sent = []
        self.resets_sent = []
        self.revoked = []
        self._ids = itertools.count(1)

    def add_account(self, email, password="secret123", verified=True, name=None):
        uid = f"uid-{next(self._ids)}"
        self.accounts[email] = {"uid": uid, "password": password, "verified": verified, "name": name}
        return uid

    def _claims_for(self, uid):
        for email, account in self.accounts.items():
            if account["uid"] == uid:
                return {
                    "uid": uid,
                    "sub": uid,
                    "email": email,
                    "email_verified": account["verified"],
                    "name": account["name"],
                }
        raise ValueError("unknown user")

    def sign_up(self, email, password):
        if email in self.accounts:
            raise AuthError("EMAIL_EXISTS")
        uid = self.add_account(email, password, verified=False)
        return {"localId": uid, "idToken": f"id-{uid}"}

    def sign_in_with_password(self, email, password):
        account = self.accounts.get(email)
        if not account or account["password"] != password:
            raise AuthError("INVALID_LOGIN_CREDENTIALS")
        return {"localId": account["uid"], "idToken": f"id-{account['uid']}"}

    def send_email_verification(self, id_token):
        self.verification_sent.append(id_token)

    def send_password_reset(self, email):
        if email not in self.accounts:
            raise AuthError("EMAIL_NOT_FOUND")
        self.resets_sent.append(email)

    def verify_id_token(self, id_token):
        return self._claims_for(id_token[len("id-"):])

    def create_session_cookie(self, id_token, expires_in):
        return f"cookie-{id_token[len('id-'):]}"

    def verify_session_cookie(self, cookie):
        if not cookie.startswith("cookie-"):
            raise ValueError("malformed session cookie")
        uid = cookie[len("cookie-"):]
        if uid in self.revoked:
            raise ValueError("session revoked")
        return self._claims_for(uid)

    def revoke_refresh_tokens(self, uid):
        self.revoked.append(uid)


# --- Text generation ------------------------------------------------------------
class FakeGenAI:
    """Stands in for ``genai.Client``; replies are queued per test."""

    def __init__(self):
        self.replies = []
        self.calls = []
        self.models = self

    def queue(self, *replies):
        self.replies.extend(replies)

    def generate_content(self, model, contents, config=None):
        self.calls.append({
            "model": model,
            "system": config.system_instruction if config else None,
            "prompt": contents,
            "config": config,
        })
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return SimpleNamespace(text=reply)


# --- Fixtures -------------------------------------------------------------------
@pytest.fixture
def firestore_client():
    return FakeFirestore()


@pytest.fixture
def store(firestore_client):
    return DocumentStore(firestore_client)


@pytest.fixture
def llm():
    return FakeGenAI()


@pytest.fixture
def engine(llm):
    return Engine("test-model", client=llm)


@pytest.fixture
def identity():
    return FakeIdentity()


@pytest.fixture
def app(store, engine, identity):
    app = create_app(TestConfig, store=store, engine=engine, identity=identity)
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def user_uid(identity):
    return identity.add_account("ada@example.com", name="Ada Lovelace")


@pytest.fixture
def auth_client(client, user_uid):
    client.set_cookie("session", f"cookie-{user_uid}")
    return client
