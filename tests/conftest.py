"""Shared pytest fixtures for all tests."""

import sqlite3

import pytest
from fastapi.testclient import TestClient

from quickdrop.kvstore import KVStore
from quickdrop.main import create_app
from quickdrop.models import AppSettings
from quickdrop.store import BlobStore


class FakeClock:
    """Controllable stand-in for ``time.time``."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def stored_keys(path) -> set[str]:
    """Every row in the key-value table, expired or not."""
    with sqlite3.connect(path) as conn:
        return {row[0] for row in conn.execute("SELECT key FROM kv")}


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
async def kv(tmp_path, clock):
    """
    Initialised key-value store in a temporary directory.

    Args:
        tmp_path: pytest tmp_path fixture
        clock: Fake clock fixture

    Returns:
        KVStore with a 512 byte per-value ceiling
    """
    store = KVStore(tmp_path / "kv.db", max_value_size=512, clock=clock)
    await store.init_db()
    return store


@pytest.fixture
async def store(kv, clock):
    """
    Blob store with small limits: 8 character chunks, 30 byte files, 120s TTL.

    Pending sweeps are cancelled on teardown.
    """
    blob_store = BlobStore(kv, max_chunk_size=8, max_total_size=30, expiry_time=120, clock=clock)
    yield blob_store
    await blob_store.close()


@pytest.fixture
def settings(tmp_path):
    return AppSettings(
        data_dir=tmp_path / "data",
        max_chunk_size=8,
        max_value_size=512,
        max_total_size=30,
        expiry_time=120,
    )


@pytest.fixture
def client(settings, clock):
    """Create FastAPI test client with lifespan events running."""
    app = create_app(settings, clock=clock)
    with TestClient(app) as test_client:
        yield test_client


def delete_row(path, key: str) -> None:
    """Remove a key behind the store's back."""
    with sqlite3.connect(path) as conn:
        conn.execute("DELETE FROM kv WHERE key = ?", (key,))
