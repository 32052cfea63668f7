"""
Tests for the plaintext-to-encrypted migration
"""
import copy

import pytest

from common.database import InMemoryStore
from common.security import EncryptionService, EncryptionSettings, is_encrypted
from database.mappings import Collection, MigrationMapping
from database.migrate_encrypt_data import DataEncryptionMigrator


@pytest.fixture
def migrator(memory_store, encryption) -> DataEncryptionMigrator:
    return DataEncryptionMigrator(memory_store, encryption)


class TestRecordProcessing:

    @pytest.mark.parametrize("value, expected", [
        ("plain text", True),
        ("", False),
        ("   ", False),
        (None, False),
        (42, False),
    ])
    def test_needs_encryption(self, migrator, value, expected):
        assert migrator.needs_encryption(value) is expected

    def test_encrypted_value_does_not_need_encryption(self, migrator, encryption):
        assert migrator.needs_encryption(encryption.encrypt("done")) is False

    def test_process_record_returns_only_changed_fields(self, migrator, encryption):
        record = {"id": 1, "mood": "sad", "note": encryption.encrypt("rain"), "activity": None}

        needs_update, updates = migrator.process_record(record, ["mood", "note", "activity"])

        assert needs_update is True
        assert list(updates) == ["mood"]
        assert encryption.decrypt(updates["mood"]) == "sad"

    def test_process_record_without_changes(self, migrator):
        needs_update, updates = migrator.process_record({"id": 1, "note": ""}, ["note", "missing"])
        assert needs_update is False
        assert updates == {}


class TestMigrateModel:

    @pytest.mark.asyncio
    async def test_encrypts_plaintext_in_place(self, migrator, memory_store, encryption):
        result = await migrator.migrate_model(Collection.JOURNAL_ENTRY, ["content"])

        assert result.success is True
        assert result.total_records == 3
        assert result.processed_records == 3
        assert result.encrypted_records == 1

        records = memory_store.collections["journal_entry"]
        assert is_encrypted(records[0]["content"])
        assert encryption.decrypt(records[0]["content"]) == "Today was hard"
        assert records[1]["content"] is None
        assert records[2]["content"] == "   "

    @pytest.mark.asyncio
    async def test_partial_update_only_touches_changed_fields(self, migrator, memory_store):
        await migrator.migrate_model(Collection.MOOD_CHECK_IN, ["mood", "note", "activity"])

        assert memory_store.update_calls[0][2].keys() == {"mood", "note"}
        assert memory_store.update_calls[1][2].keys() == {"mood", "activity"}
        assert memory_store.collections["mood_check_in"][0]["intensity"] == 3

    @pytest.mark.asyncio
    async def test_small_batches_cover_every_record(self, encryption):
        records = [{"id": i, "user_id": "u", "item": f"thing {i}"} for i in range(1, 8)]
        store = InMemoryStore(collections={"gratitude_entry": records})
        migrator = DataEncryptionMigrator(store, encryption)

        result = await migrator.migrate_model(Collection.GRATITUDE_ENTRY, ["item"], batch_size=3)

        assert result.processed_records == 7
        assert result.encrypted_records == 7
        assert all(is_encrypted(r["item"]) for r in store.collections["gratitude_entry"])

    @pytest.mark.asyncio
    async def test_second_run_changes_nothing(self, migrator, memory_store):
        await migrator.migrate_model(Collection.JOURNAL_ENTRY, ["content"])
        snapshot = copy.deepcopy(memory_store.collections)

        second = await migrator.migrate_model(Collection.JOURNAL_ENTRY, ["content"])

        assert second.encrypted_records == 0
        assert second.processed_records == 3
        assert memory_store.collections == snapshot

    @pytest.mark.asyncio
    async def test_dry_run_counts_without_writing(self, migrator, memory_store, sample_collections):
        result = await migrator.migrate_model(
            Collection.MOOD_CHECK_IN, ["mood", "note", "activity"], dry_run=True,
        )

        assert result.dry_run is True
        assert result.encrypted_records == 2
        assert result.encrypted_fields == 4
        assert memory_store.update_calls == []
        assert memory_store.collections == sample_collections

    @pytest.mark.asyncio
    async def test_store_error_is_reported(self, encryption):
        migrator = DataEncryptionMigrator(InMemoryStore(), encryption)

        result = await migrator.migrate_model(Collection.REPORT, ["message"])

        assert result.success is False
        assert "report" in result.error

    @pytest.mark.asyncio
    async def test_invalid_batch_size_is_reported(self, migrator, memory_store, sample_collections):
        before = copy.deepcopy(sample_collections)

        result = await migrator.migrate_model(Collection.REPORT, ["message"], batch_size=0)

        assert result.success is False
        assert "batch_size" in result.error
        assert memory_store.collections == before


class TestMigrateAll:

    @pytest.mark.asyncio
    async def test_migrates_every_collection(self, migrator, memory_store, encryption):
        results = await migrator.migrate_all()

        assert [r.collection for r in results] == [c.value for c in Collection]
        assert all(r.success for r in results)
        assert sum(r.encrypted_records for r in results) == 10
        assert sum(r.processed_records for r in results) == 12

        plan = memory_store.collections["coping_plan"][0]["plan"]
        assert encryption.decrypt(plan) == "breathe, then call Sam"

    @pytest.mark.asyncio
    async def test_is_idempotent(self, migrator):
        await migrator.migrate_all()
        results = await migrator.migrate_all()

        assert all(r.encrypted_records == 0 for r in results)

    @pytest.mark.asyncio
    async def test_dry_run_leaves_data_identical(self, migrator, memory_store, sample_collections):
        dry = await migrator.migrate_all(dry_run=True)

        assert memory_store.collections == sample_collections
        assert memory_store.update_calls == []

        live = await migrator.migrate_all()
        assert [r.encrypted_records for r in dry] == [r.encrypted_records for r in live]
        assert [r.encrypted_fields for r in dry] == [r.encrypted_fields for r in live]

    @pytest.mark.asyncio
    async def test_failure_is_isolated_to_one_collection(self, sample_collections, encryption):
        del sample_collections["crisis_event"]
        store = InMemoryStore(collections=sample_collections)
        migrator = DataEncryptionMigrator(store, encryption)

        results = await migrator.migrate_all()

        failed = [r for r in results if not r.success]
        assert [r.collection for r in failed] == ["crisis_event"]
        assert len(results) == len(Collection)
        assert is_encrypted(store.collections["report"][0]["message"])

    @pytest.mark.asyncio
    async def test_invalid_batch_size_fails_every_collection(self, migrator, memory_store, sample_collections):
        before = copy.deepcopy(sample_collections)

        results = await migrator.migrate_all(batch_size=0)

        assert len(results) == len(Collection)
        assert not any(r.success for r in results)
        assert memory_store.update_calls == []
        assert memory_store.collections == before

    @pytest.mark.asyncio
    async def test_refuses_to_run_without_key(self, memory_store, sample_collections):
        migrator = DataEncryptionMigrator(
            memory_store,
            EncryptionService(),
            encryption_settings=EncryptionSettings(encryption_key=None),
        )

        results = await migrator.migrate_all()

        assert len(results) == 1
        assert results[0].success is False
        assert memory_store.collections == sample_collections

    @pytest.mark.asyncio
    async def test_initializes_service_from_settings(self, memory_store, sample_collections):
        service = EncryptionService()
        migrator = DataEncryptionMigrator(
            memory_store,
            service,
            encryption_settings=EncryptionSettings(encryption_key="test-secret", encryption_salt="a,b"),
            mappings=[MigrationMapping(Collection.GHOST_LETTER, ("content",))],
        )

        results = await migrator.migrate_all()

        assert service.initialized is True
        assert len(results) == 1
        assert results[0].to_dict()["encrypted_records"] == 1
        assert memory_store.collections["journal_entry"] == sample_collections["journal_entry"]
