import itertools
import sys
from pathlib import Path

import pytest
from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from careplan import models as _models  # noqa: E402,F401
from careplan.core.db import build_engine  # noqa: E402


@pytest.fixture()
def engine():
    test_engine = build_engine("sqlite://", poolclass=StaticPool)
    SQLModel.metadata.create_all(test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture()
def db(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture()
def session_factory(engine):
    return lambda: Session(engine)


@pytest.fixture()
def paused_scheduler():
    # Paused: jobs are stored and replaced by id but never run.
    scheduler = BackgroundScheduler()
    scheduler.start(paused=True)
    yield scheduler
    scheduler.shutdown(wait=False)


class FakeSnapshot:
    def __init__(self, reference, data):
        self.reference = reference
        self.id = reference.id
        self._data = dict(data)

    def to_dict(self):
        return dict(self._data)


class FakeDocumentRef:
    def __init__(self, parent, doc_id):
        self.parent = parent
        self.id = doc_id

    def collection(self, name):
        return self.parent.client.collection(f"{self.parent.path}/{self.id}/{name}")

    def set(self, data):
        self.parent.client.write_calls += 1
        if self.parent.client.fail_writes:
            raise RuntimeError("remote unavailable")
        self.parent.docs[self.id] = dict(data)

    def delete(self):
        if self.parent.client.fail_writes:
            raise RuntimeError("remote unavailable")
        self.parent.docs.pop(self.id, None)


_OPERATORS = {
    "==": lambda left, right: left == right,
    ">=": lambda left, right: left is not None and left >= right,
    "<=": lambda left, right: left is not None and left <= right,
}


class FakeQuery:
    def __init__(self, collection, filters):
        self.collection = collection
        self.filters = list(filters)

    def where(self, *, filter):
        return FakeQuery(self.collection, self.filters + [filter])

    def stream(self):
        if self.collection.client.fail_reads:
            raise RuntimeError("remote unavailable")
        for doc_id, data in list(self.collection.docs.items()):
            if all(_OPERATORS[f.op_string](data.get(f.field_path), f.value) for f in self.filters):
                yield FakeSnapshot(FakeDocumentRef(self.collection, doc_id), data)


class FakeCollection:
    def __init__(self, client, path):
        self.client = client
        self.path = path
        self.docs = {}

    def document(self, doc_id=None):
        if doc_id is None:
            doc_id = f"auto-{next(self.client.auto_ids)}"
        return FakeDocumentRef(self, doc_id)

    def where(self, *, filter):
        return FakeQuery(self, [filter])

    def stream(self):
        return FakeQuery(self, []).stream()


class FakeFirestore:
    """In-memory stand-in for ``google.cloud.firestore.Client``."""

    def __init__(self):
        self.collections = {}
        self.auto_ids = itertools.count(1)
        self.fail_writes = False
        self.fail_reads = False
        self.write_calls = 0

    def collection(self, path):
        return self.collections.setdefault(path, FakeCollection(self, path))

    def docs(self, owner_id, name):
        return self.collection(f"careplans/{owner_id}/{name}").docs


@pytest.fixture()
def fake_firestore():
    return FakeFirestore()
