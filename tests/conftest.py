"""
Pytest configuration and shared fixtures.

FakeFirestore mirrors the small part of the google-cloud-firestore client the
app touches: documents, add(), where(filter=FieldFilter), stream(),
transactions and on_snapshot() live queries.
"""

import base64
import copy
import json
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List

import pytest

from errors import AuthError
from gemini_client import GeminiClient


# ---------------- fake Firestore ----------------
class FakeSnapshot:
    def __init__(self, doc_id: str, data):
        self.id = doc_id
        self._data = data

    @property
    def exists(self) -> bool:
        return self._data is not None

    def to_dict(self):
        return copy.deepcopy(self._data)


class FakeWatch:
    def __init__(self, db, query, callback):
        self.db = db
        self.query = query
        self.callback = callback
        self.active = True

    def fire(self):
        if self.active:
            self.callback(self.query._snaps(), [], datetime.now(timezone.utc))

    def unsubscribe(self):
        self.active = False


class FakeDocRef:
    def __init__(self, collection, doc_id: str):
        self._collection = collection
        self.id = doc_id

    @property
    def _docs(self) -> dict:
        return self._collection._docs

    def get(self, transaction=None):
        snap = FakeSnapshot(self.id, copy.deepcopy(self._docs.get(self.id)))
        if self._collection._db.on_read:
            self._collection._db.on_read(self.id)
        return snap

    def set(self, data: dict, merge: bool = False):
        if merge and self.id in self._docs:
            self._docs[self.id].update(copy.deepcopy(data))
        else:
            self._docs[self.id] = copy.deepcopy(data)
        self._collection._db._changed()

    def update(self, data: dict):
        if self.id not in self._docs:
            raise KeyError(f"No document to update: {self.id}")
        self._docs[self.id].update(copy.deepcopy(data))
        self._collection._db._changed()

    def delete(self):
        self._docs.pop(self.id, None)
        self._collection._db._changed()


class FakeQuery:
    def __init__(self, collection, filters=()):
        self._collection = collection
        self._filters = list(filters)

    def where(self, *args, filter=None):
        if filter is not None:
            f = (filter.field_path, filter.op_string, filter.value)
        else:
            f = tuple(args)
        return FakeQuery(self._collection, self._filters + [f])

    def _snaps(self) -> list:
        out = []
        for doc_id, data in self._collection._docs.items():
            if all(op == "==" and data.get(field) == value
                   for field, op, value in self._filters):
                out.append(FakeSnapshot(doc_id, copy.deepcopy(data)))
        return out

    def stream(self):
        return iter(self._snaps())

    def on_snapshot(self, callback):
        watch = FakeWatch(self._collection._db, self, callback)
        self._collection._db._watches.append(watch)
        watch.fire()
        return watch


class FakeCollection(FakeQuery):
    def __init__(self, db, name: str):
        super().__init__(self)
        self._db = db
        self.name = name
        self._docs: Dict[str, dict] = {}

    def document(self, doc_id: str = None):
        return FakeDocRef(self, doc_id or uuid.uuid4().hex[:20])

    def add(self, data: dict):
        ref = self.document()
        ref.set(data)
        return datetime.now(timezone.utc), ref


class FakeTransaction:
    """
    Enough of firestore.Transaction for @firestore.transactional: transactions
    on one database run one at a time and buffered writes land on commit.
    """

    _max_attempts = 5
    _read_only = False

    def __init__(self, db):
        self._db = db
        self._id = None
        self._writes = []

    def _clean_up(self):
        self._writes = []
        self._id = None

    def _begin(self, retry_id=None):
        self._db._txn_lock.acquire()
        self._id = uuid.uuid4().hex.encode()

    def update(self, ref, data: dict):
        self._writes.append((ref, data))

    def _commit(self):
        try:
            for ref, data in self._writes:
                ref.update(data)
        finally:
            self._clean_up()
            self._db._txn_lock.release()

    def _rollback(self):
        if self._id is not None:
            self._clean_up()
            self._db._txn_lock.release()


class FakeFirestore:
    def __init__(self):
        self._collections: Dict[str, FakeCollection] = {}
        self._watches: List[FakeWatch] = []
        self._txn_lock = threading.Lock()
        # called with the document id after every document read
        self.on_read = None

    def transaction(self) -> FakeTransaction:
        return FakeTransaction(self)

    def collection(self, name: str) -> FakeCollection:
        if name not in self._collections:
            self._collections[name] = FakeCollection(self, name)
        return self._collections[name]

    def _changed(self):
        for watch in list(self._watches):
            watch.fire()


# ---------------- fake Gemini HTTP ----------------
class FakeResponse:
    def __init__(self, status_code: int = 200, body: Any = None):
        self.status_code = status_code
        self._body = body

    def json(self):
        if self._body is None:
            raise ValueError("no json")
        return self._body


class FakeSession:
    """Returns queued responses in order and records every POST."""

    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.calls: List[Dict[str, Any]] = []

    def queue(self, *responses):
        self.responses.extend(responses)

    def post(self, url, headers=None, json=None, timeout=None):
        self.calls.append({"url": url, "headers": headers, "json": json})
        if not self.responses:
            raise AssertionError(f"Unexpected Gemini call to {url}")
        resp = self.responses.pop(0)
        if isinstance(resp, Exception):
            raise resp
        return resp


def text_response(text: str) -> FakeResponse:
    return FakeResponse(200, {"candidates": [{"content": {"role": "model", "parts": [{"text": text}]}}]})


def json_response(payload: Any) -> FakeResponse:
    return text_response(json.dumps(payload))


def tool_call_response(name: str = "getAllUsers") -> FakeResponse:
    return FakeResponse(200, {"candidates": [{"content": {
        "role": "model", "parts": [{"functionCall": {"name": name, "args": {}}}]}}]})


PNG_B64 = base64.b64encode(b"\x89PNG\r\n\x1a\nfake").decode()


def image_response(data: str = PNG_B64) -> FakeResponse:
    return FakeResponse(200, {"candidates": [{"content": {"role": "model", "parts": [
        {"text": "Here you go"},
        {"inlineData": {"mimeType": "image/png", "data": data}},
    ]}}]})


# ---------------- fixtures ----------------
@pytest.fixture
def fake_db() -> FakeFirestore:
    return FakeFirestore()


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def gemini(fake_session) -> GeminiClient:
    return GeminiClient(api_key="test-key", session=fake_session, max_retries=0)


def make_profile(uid: str, name: str, offered, desired, **extra) -> Dict[str, Any]:
    return {
        "uid": uid,
        "name": name,
        "profilePicture": "",
        "shortBio": extra.pop("shortBio", f"{name}'s bio"),
        "skillsOffered": list(offered),
        "skillsDesired": list(desired),
        "portfolio": extra.pop("portfolio", []),
        **extra,
    }


@pytest.fixture
def alice() -> Dict[str, Any]:
    return make_profile("alice", "Alice", ["Python", "Baking"], ["Guitar", "Figma"])


@pytest.fixture
def bob() -> Dict[str, Any]:
    return make_profile("bob", "Bob", ["Guitar", "Piano"], ["Python"])


@pytest.fixture
def carol() -> Dict[str, Any]:
    return make_profile("carol", "Carol", ["Knitting"], ["Baking"])


@pytest.fixture
def populated_db(fake_db, alice, bob, carol) -> FakeFirestore:
    for p in (alice, bob, carol):
        fake_db.collection("profiles").document(p["uid"]).set(p)
    return fake_db


TOKENS = {
    "token-alice": {"uid": "alice", "name": "Alice"},
    "token-bob": {"uid": "bob", "name": "Bob"},
    "token-carol": {"uid": "carol", "name": "Carol"},
    "token-newbie": {"uid": "newbie", "name": "Newbie"},
}


def _fake_verify(token: str) -> dict:
    if token not in TOKENS:
        raise AuthError("Invalid token")
    return TOKENS[token]


@pytest.fixture
def client(monkeypatch, populated_db, gemini):
    """Flask test client wired to the fake database and fake Gemini."""
    import web

    monkeypatch.setattr(web, "get_db", lambda: populated_db)
    monkeypatch.setattr(web, "verify_token", _fake_verify)
    monkeypatch.setattr(web, "get_gemini", lambda: gemini)
    web.app.config["TESTING"] = True
    with web.app.test_client() as c:
        yield c


def auth(user: str = "alice") -> Dict[str, str]:
    return {"Authorization": f"Bearer token-{user}"}
