"""
Centralized Test Configuration.
"""

import os

# Required settings must exist before the app modules are imported
os.environ.setdefault("NODE_ENV", "development")
os.environ.setdefault("PORT", "3000")
os.environ.setdefault("MONGO_URI", "mongodb://localhost:27017")

import asyncio
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from httpx import AsyncClient, ASGITransport

from backend.app.core.config import Settings
from backend.app.db.mongo import MongoConnection
from backend.app.db.ping_collection import PingStore
from backend.app.main import create_app


# Mock Motor client for reliability in CI/CD
class MockCursor:
    def __init__(self, documents):
        self._documents = list(documents)
        self._limit = None

    def sort(self, key, direction=1):
        self._documents.sort(key=lambda doc: doc[key], reverse=direction < 0)
        return self

    def limit(self, count):
        self._limit = count
        return self

    async def to_list(self, length=None):
        documents = self._documents
        if self._limit:
            documents = documents[:self._limit]
        return [dict(doc) for doc in documents]


class MockCollection:
    def __init__(self, name):
        self.name = name
        self.documents = []
        self.insert_error = None

    async def insert_one(self, document):
        if self.insert_error:
            raise self.insert_error
        self.documents.append(dict(document))
        return SimpleNamespace(inserted_id=len(self.documents), acknowledged=True)

    def find(self, filter=None, projection=None):
        filter = filter or {}

        def matches(doc):
            for key, condition in filter.items():
                value = doc.get(key)
                if isinstance(condition, dict):
                    if "$gte" in condition and not value >= condition["$gte"]:
                        return False
                    if "$lt" in condition and not value < condition["$lt"]:
                        return False
                elif value != condition:
                    return False
            return True

        return MockCursor(doc for doc in self.documents if matches(doc))


class MockDatabase:
    def __init__(self, name):
        self.name = name
        self.collection_options = {}
        self.create_calls = 0
        self.list_error = None
        self.create_error = None
        self._handles = {}

    async def list_collection_names(self, filter=None):
        if self.list_error:
            raise self.list_error
        names = list(self.collection_options)
        if filter and "name" in filter:
            names = [name for name in names if name == filter["name"]]
        return names

    async def create_collection(self, name, **options):
        self.create_calls += 1
        if self.create_error:
            raise self.create_error
        self.collection_options[name] = options
        return self[name]

    def __getitem__(self, name):
        if name not in self._handles:
            self._handles[name] = MockCollection(name)
        return self._handles[name]


class MockAdmin:
    def __init__(self):
        self.ping_count = 0
        self.error = None
        self.gate = None

    async def command(self, name, *args, **kwargs):
        self.ping_count += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.error:
            raise self.error
        return {"ok": 1.0}


class MockMotorClient:
    def __init__(self, uri=None, **options):
        self.uri = uri
        self.options = options
        self.admin = MockAdmin()
        self.closed = False
        self._databases = {}

    def __getitem__(self, name):
        if name not in self._databases:
            self._databases[name] = MockDatabase(name)
        return self._databases[name]

    def close(self):
        self.closed = True


@pytest.fixture
def test_settings():
    return Settings(
        _env_file=None,
        node_env="development",
        port=3000,
        mongo_uri="mongodb://mongo.test:27017",
    )


@pytest.fixture
def mongo_client():
    return MockMotorClient()


@pytest.fixture
def mongo_db(mongo_client, test_settings):
    return mongo_client[test_settings.mongo_db_name]


@pytest.fixture
def pings(mongo_db):
    """The mock ``pings`` collection documents land in."""
    return mongo_db["pings"]


@pytest.fixture
def client_factory(mongo_client):
    return MagicMock(return_value=mongo_client)


@pytest.fixture
def connection(test_settings, client_factory):
    return MongoConnection(test_settings, client_factory=client_factory)


@pytest.fixture
def ping_store(test_settings):
    return PingStore(test_settings)


@pytest.fixture
async def ready_store(connection, ping_store):
    """Connected and provisioned, as after a normal startup."""
    client = await connection.connect()
    await ping_store.initialize(client)
    return ping_store


@pytest.fixture
def app(test_settings, connection, ping_store):
    return create_app(test_settings, connection=connection, ping_store=ping_store)


@pytest.fixture
async def client(app, ready_store):
    """Async client for testing (lifespan work already done by ready_store)."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def heartbeat_failure():
    return SimpleNamespace(connection_id=("mongo.test", 27017), reply=OSError("connection reset"))


@pytest.fixture
def gate():
    return asyncio.Event()
