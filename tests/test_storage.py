"""Tests for protocol document storage."""

from pathlib import Path

import pytest

from governance.storage import DocumentStore, LocalDocumentStore, with_retry
from governance.storage.retry import MAX_ATTEMPTS


@pytest.fixture
def store(tmp_path: Path) -> LocalDocumentStore:
    return LocalDocumentStore(tmp_path / "docs")


async def test_put_and_get(store: LocalDocumentStore) -> None:
    stored = await store.put("meeting-1/abc.docx", b"document")

    assert stored.key == "meeting-1/abc.docx"
    assert stored.size_bytes == 8
    assert await store.get("meeting-1/abc.docx") == b"document"
    assert await store.exists("meeting-1/abc.docx") is True


async def test_put_replaces_existing(store: LocalDocumentStore) -> None:
    await store.put("a.docx", b"one")
    await store.put("a.docx", b"two")

    assert await store.get("a.docx") == b"two"


async def test_get_missing_raises(store: LocalDocumentStore) -> None:
    with pytest.raises(FileNotFoundError):
        await store.get("missing.docx")


async def test_delete_is_idempotent(store: LocalDocumentStore) -> None:
    await store.put("a.docx", b"one")

    await store.delete("a.docx")
    await store.delete("a.docx")

    assert await store.exists("a.docx") is False


async def test_key_cannot_escape_root(store: LocalDocumentStore) -> None:
    with pytest.raises(ValueError, match="escapes"):
        await store.put("../outside.docx", b"x")


async def test_health_check_creates_root(store: LocalDocumentStore) -> None:
    assert await store.health_check() is True
    assert store.root.is_dir()


def test_local_store_satisfies_protocol(store: LocalDocumentStore) -> None:
    assert isinstance(store, DocumentStore)


class TestWithRetry:
    async def test_retries_transient_errors(self) -> None:
        calls = []

        @with_retry
        async def flaky() -> str:
            calls.append(1)
            if len(calls) < 2:
                raise ConnectionError("reset")
            return "ok"

        assert await flaky() == "ok"
        assert len(calls) == 2

    async def test_gives_up_after_max_attempts(self) -> None:
        calls = []

        @with_retry
        async def down() -> None:
            calls.append(1)
            raise TimeoutError("slow")

        with pytest.raises(TimeoutError):
            await down()
        assert len(calls) == MAX_ATTEMPTS

    async def test_other_errors_are_not_retried(self) -> None:
        calls = []

        @with_retry
        async def broken() -> None:
            calls.append(1)
            raise ValueError("bad key")

        with pytest.raises(ValueError):
            await broken()
        assert len(calls) == 1
