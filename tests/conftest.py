"""Shared fixtures: an in-memory stand-in for the MongoDB node.

The fake understands just the commands and collection calls this project
issues, and raises the same pymongo exceptions a real server would cause.
"""
import random
import threading
from types import SimpleNamespace

import pytest
from pymongo.errors import BulkWriteError, CollectionInvalid, DuplicateKeyError, OperationFailure

from mongodb_source.config import GeneratorSettings, MongoSettings

ENV_KEYS = (
    "MONGO_URI",
    "REPLICA_SET_NAME",
    "REPLICA_SET_MEMBER_HOST",
    "MONGO_ADMIN_USER",
    "MONGO_ADMIN_PASSWORD",
    "MONGO_ADMIN_DB",
    "DB_NAME",
    "MONGO_SERVER_SELECTION_TIMEOUT_MS",
    "MONGO_TLS",
    "MONGO_TLS_ALLOW_INVALID_CERTIFICATES",
    "READY_TIMEOUT_SECONDS",
    "READY_POLL_INTERVAL_SECONDS",
    "SEED_IDEMPOTENT",
    "TARGET_CPS",
    "DURATION_SECONDS",
    "CONCURRENCY",
    "BATCH_SIZE",
    "LOG_INTERVAL_SECONDS",
    "GENERATOR_SEED",
)


def _matches(doc, query):
    for key, want in (query or {}).items():
        value = doc.get(key)
        if isinstance(want, dict) and "$in" in want:
            if value not in want["$in"]:
                return False
        elif isinstance(want, dict) and want.get("$type") == "number":
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                return False
        elif value != want:
            return False
    return True


def _project(doc, projection):
    if not projection:
        return dict(doc)
    keep = {k for k, v in projection.items() if v}
    out = {k: v for k, v in doc.items() if k in keep}
    if projection.get("_id", 1):
        out["_id"] = doc["_id"]
    return out


class FakeCursor:
    def __init__(self, docs):
        self._docs = list(docs)

    def sort(self, key, direction=1):
        self._docs.sort(key=lambda d: d.get(key), reverse=direction == -1)
        return self

    def limit(self, n):
        self._docs = self._docs[:n]
        return self

    def __iter__(self):
        return iter(self._docs)


class FakeCollection:
    def __init__(self, store, lock):
        self._store = store
        self._lock = lock
        self._rng = random.Random(0)

    def _docs(self, query=None):
        with self._lock:
            return [dict(d) for d in self._store.values() if _matches(d, query)]

    def insert_one(self, doc):
        with self._lock:
            if doc["_id"] in self._store:
                raise DuplicateKeyError("E11000 duplicate key error", code=11000)
            self._store[doc["_id"]] = dict(doc)
        return SimpleNamespace(inserted_id=doc["_id"], acknowledged=True)

    def insert_many(self, docs):
        inserted = []
        with self._lock:
            for i, doc in enumerate(docs):
                if doc["_id"] in self._store:
                    raise BulkWriteError({
                        "writeErrors": [{"index": i, "code": 11000, "errmsg": "E11000 duplicate key error"}],
                        "nInserted": len(inserted),
                    })
                self._store[doc["_id"]] = dict(doc)
                inserted.append(doc["_id"])
        return SimpleNamespace(inserted_ids=inserted, acknowledged=True)

    def find(self, query=None, projection=None):
        return FakeCursor(_project(d, projection) for d in self._docs(query))

    def find_one(self, query=None, projection=None, sort=None):
        docs = self._docs(query)
        for key, direction in reversed(sort or []):
            docs.sort(key=lambda d: d.get(key), reverse=direction == -1)
        return _project(docs[0], projection) if docs else None

    def distinct(self, key, query=None):
        return sorted({d.get(key) for d in self._docs(query)})

    def count_documents(self, query):
        return len(self._docs(query))

    def update_one(self, query, update):
        with self._lock:
            for doc in self._store.values():
                if _matches(doc, query):
                    before = dict(doc)
                    doc.update(update.get("$set", {}))
                    return SimpleNamespace(matched_count=1, modified_count=int(before != doc))
        return SimpleNamespace(matched_count=0, modified_count=0)

    def aggregate(self, pipeline):
        docs = self._docs()
        for stage in pipeline:
            if "$sample" in stage:
                size = min(stage["$sample"]["size"], len(docs))
                docs = self._rng.sample(docs, size)
            elif "$project" in stage:
                docs = [_project(d, stage["$project"]) for d in docs]
        return iter(docs)


class FakeServer:
    def __init__(self, primary_after=1):
        self.replset = None
        self.status_polls = 0
        self.primary_after = primary_after
        self.users = {}
        self.databases = {}
        self.commands = []
        self.clients = []
        self.lock = threading.Lock()

    def collections(self, db_name):
        return self.databases.setdefault(db_name, {})

    def client_factory(self, settings, authenticated=True):
        creds = None
        if authenticated and settings.password():
            creds = (settings.admin_user, settings.password())
        client = FakeClient(self, creds)
        self.clients.append(client)
        return client

    def run_command(self, client, db_name, name, value=1, **kwargs):
        self.commands.append(name)
        if name == "ping":
            if client.creds is not None:
                user, pwd = client.creds
                if self.users.get(user, {}).get("pwd") != pwd:
                    raise OperationFailure("Authentication failed.", code=18)
            return {"ok": 1}
        if name == "replSetInitiate":
            if self.replset is not None:
                raise OperationFailure("already initialized", code=23)
            self.replset = value
            return {"ok": 1}
        if name == "replSetGetStatus":
            if self.replset is None:
                raise OperationFailure("no replset config has been received", code=94)
            self.status_polls += 1
            state = 1 if self.status_polls >= self.primary_after else 2
            return {"set": self.replset["_id"], "myState": state, "ok": 1}
        if name == "createUser":
            if value in self.users:
                raise OperationFailure(f"User \"{value}@{db_name}\" already exists", code=51003)
            self.users[value] = {"pwd": kwargs["pwd"], "roles": kwargs["roles"], "db": db_name}
            return {"ok": 1}
        if name == "usersInfo":
            user = self.users.get(value)
            if user is None:
                return {"users": [], "ok": 1}
            return {"users": [{"user": value, "db": user["db"], "roles": user["roles"]}], "ok": 1}
        raise OperationFailure(f"no such command: '{name}'", code=59)


class FakeDatabase:
    def __init__(self, client, name):
        self.client = client
        self.name = name
        self._server = client.server

    def __getitem__(self, coll_name):
        store = self._server.collections(self.name).setdefault(coll_name, {})
        return FakeCollection(store, self._server.lock)

    def command(self, name, value=1, **kwargs):
        return self._server.run_command(self.client, self.name, name, value, **kwargs)

    def list_collection_names(self):
        return sorted(self._server.collections(self.name))

    def create_collection(self, coll_name):
        colls = self._server.collections(self.name)
        if coll_name in colls:
            raise CollectionInvalid(f"collection {coll_name} already exists")
        colls[coll_name] = {}
        return self[coll_name]


class FakeClient:
    def __init__(self, server, creds=None):
        self.server = server
        self.creds = creds
        self.closed = False

    @property
    def admin(self):
        return FakeDatabase(self, "admin")

    def __getitem__(self, name):
        return FakeDatabase(self, name)

    def close(self):
        self.closed = True


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def settings():
    return MongoSettings(admin_password="s3cret", ready_timeout_seconds=5, ready_poll_interval_seconds=1)


@pytest.fixture
def server():
    return FakeServer()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def seeded_server(server, settings, clock):
    from mongodb_source.seeder import seed_environment

    seed_environment(settings, client_factory=server.client_factory, sleep=clock.sleep, clock=clock)
    return server


@pytest.fixture
def inventory(seeded_server, settings):
    return FakeClient(seeded_server, (settings.admin_user, settings.password()))[settings.db_name]


@pytest.fixture
def generator_settings():
    return GeneratorSettings(target_cps=100, duration_seconds=1, concurrency=2, batch_size=5, log_interval_seconds=1, seed=7)
