"""
Tests for the transactional document stores.
"""

import asyncio

import pytest

from subvault.models import AppDocument, Category
from subvault.services.crypto import CipherService, DecryptionError, generate_key
from subvault.services.storage import (
    ConcurrentModificationError,
    CorruptDocumentError,
    EncryptedFileDocumentStore,
    InMemoryDocumentStore,
    atomic_write_bytes,
)


def add_category(name: str):
    def transform(document: AppDocument) -> AppDocument:
        items = list(document.categories.items) + [Category(name=name)]
        return document.with_categories(items, timestamp=1)
    return transform


class FlakyStore(InMemoryDocumentStore):
    """Simulates another writer committing underneath us `conflicts` times."""

    def __init__(self, conflicts: int, max_commit_attempts: int = 3):
        super().__init__(max_commit_attempts=max_commit_attempts)
        self.conflicts = conflicts
        self.commit_calls = 0

    async def _commit(self, document, expected_revision):
        self.commit_calls += 1
        if self.conflicts > 0:
            self.conflicts -= 1
            raise ConcurrentModificationError("someone else committed")
        await super()._commit(document, expected_revision)


class TestInMemoryStore:
    """Tests for transactional updates and watch."""

    @pytest.mark.asyncio
    async def test_update_bumps_revision(self, store):
        committed = await store.update(add_category("Music"))
        assert committed.revision == 1
        assert (await store.read()).categories.items[0].name == "Music"

    @pytest.mark.asyncio
    async def test_unchanged_transform_does_not_commit(self, store):
        result = await store.update(lambda document: document)
        assert result.revision == 0

    @pytest.mark.asyncio
    async def test_transform_error_leaves_store_untouched(self, store):
        def explode(document):
            raise ValueError("nope")

        with pytest.raises(ValueError):
            await store.update(explode)
        assert (await store.read()).revision == 0

    @pytest.mark.asyncio
    async def test_concurrent_updates_are_serialized(self, store):
        await asyncio.gather(*(store.update(add_category(f"C{i}")) for i in range(20)))

        document = await store.read()
        assert document.revision == 20
        assert len(document.categories.items) == 20

    @pytest.mark.asyncio
    async def test_conflict_is_retried(self):
        store = FlakyStore(conflicts=2, max_commit_attempts=3)
        committed = await store.update(add_category("Music"))

        assert committed.revision == 1
        assert store.commit_calls == 3

    @pytest.mark.asyncio
    async def test_conflict_gives_up_after_max_attempts(self):
        store = FlakyStore(conflicts=5, max_commit_attempts=2)
        with pytest.raises(ConcurrentModificationError):
            await store.update(add_category("Music"))
        assert store.commit_calls == 2

    @pytest.mark.asyncio
    async def test_watch_emits_snapshot_then_commits(self, store):
        stream = store.watch()
        first = await stream.__anext__()
        assert first.revision == 0

        await store.update(add_category("Music"))
        second = await asyncio.wait_for(stream.__anext__(), timeout=1)
        assert second.revision == 1
        await stream.aclose()

    @pytest.mark.asyncio
    async def test_watch_skips_noop_updates(self, store):
        stream = store.watch()
        await stream.__anext__()

        await store.update(lambda document: document)
        await store.update(add_category("Music"))

        nxt = await asyncio.wait_for(stream.__anext__(), timeout=1)
        assert nxt.revision == 1
        await stream.aclose()


class TestEncryptedFileStore:
    """Tests for the encrypted file backend."""

    @pytest.fixture
    def path(self, tmp_path):
        return tmp_path / "appdata.svd"

    @pytest.mark.asyncio
    async def test_missing_file_is_empty_document(self, path, cipher):
        document = await EncryptedFileDocumentStore(path, cipher).read()
        assert document == AppDocument()

    @pytest.mark.asyncio
    async def test_persists_across_instances(self, path, cipher):
        await EncryptedFileDocumentStore(path, cipher).update(add_category("Music"))

        reopened = await EncryptedFileDocumentStore(path, cipher).read()
        assert reopened.revision == 1
        assert reopened.categories.items[0].name == "Music"

    @pytest.mark.asyncio
    async def test_file_is_not_plaintext(self, path, cipher):
        await EncryptedFileDocumentStore(path, cipher).update(add_category("VerySecretName"))
        assert b"VerySecretName" not in path.read_bytes()

    @pytest.mark.asyncio
    async def test_wrong_key_raises(self, path, cipher):
        await EncryptedFileDocumentStore(path, cipher).update(add_category("Music"))

        other = EncryptedFileDocumentStore(path, CipherService(generate_key()))
        with pytest.raises(DecryptionError):
            await other.read()
        with pytest.raises(DecryptionError):
            await other.update(add_category("Overwrite"))

    @pytest.mark.asyncio
    async def test_invalid_document_raises(self, path, cipher):
        path.write_bytes(cipher.encrypt(b'{"revision": -3}'))
        with pytest.raises(CorruptDocumentError):
            await EncryptedFileDocumentStore(path, cipher).read()

    @pytest.mark.asyncio
    async def test_detects_writer_in_another_instance(self, path, cipher):
        first = EncryptedFileDocumentStore(path, cipher, max_commit_attempts=1)
        second = EncryptedFileDocumentStore(path, cipher)
        await first.update(add_category("A"))

        stale = await first.read()
        await second.update(add_category("B"))

        with pytest.raises(ConcurrentModificationError):
            await first._commit(stale.model_copy(update={"revision": 2}), expected_revision=1)

        # A normal update reloads and succeeds
        committed = await first.update(add_category("C"))
        assert [c.name for c in committed.categories.items] == ["A", "B", "C"]

    def test_atomic_write_leaves_no_temp_files(self, tmp_path):
        target = tmp_path / "nested" / "file.bin"
        atomic_write_bytes(target, b"one")
        atomic_write_bytes(target, b"two")

        assert target.read_bytes() == b"two"
        assert [p.name for p in target.parent.iterdir()] == ["file.bin"]
