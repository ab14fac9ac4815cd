"""
Backup export and merge-import tests.

Tests cover:
    - export produces the six top-level arrays
    - export -> import round trip (ids relabeled, references resolve)
    - importing twice yields two disjoint copies
    - strict vs lenient handling of dangling entryIds
    - malformed documents persist nothing
"""

import json
import sqlite3
from datetime import date

import pytest

from aura.backup import (
    BackupManager,
    ImportParseError,
    ImportReferenceError,
    ReferencePolicy,
    default_backup_filename,
    parse_backup_document,
    plan_merge,
)
from aura.models.audit import AuditEventType
from aura.models.records import (
    DEFAULT_CATEGORIES,
    Expense,
    MoodRecord,
    NoteRecord,
    Table,
    Task,
    VoiceEntry,
)
from aura.services.storage import ObjectStore, StorageWriteError


def _backup_document(**overrides) -> dict:
    document = {
        "voiceEntries": [
            {"id": "e1", "rawText": "Spent 250 on food", "intent": "EXPENSE",
             "confidence": 0.9, "extractedEntities": {"amount": 250},
             "createdAt": 2000, "source": "voice"},
            {"id": "e2", "rawText": "Feeling great", "intent": "MOOD",
             "confidence": 0.9, "extractedEntities": {}, "createdAt": 1000,
             "source": "voice"},
        ],
        "expenses": [
            {"id": "x1", "entryId": "e1", "amount": 250, "currency": "INR",
             "category": "Food", "date": "2024-05-01", "description": "Lunch"},
        ],
        "tasks": [
            {"id": "t1", "title": "Pay rent", "description": "", "completed": False,
             "priority": "high", "category": "Personal", "date": "2024-05-02",
             "createdAt": 1500},
        ],
        "moods": [
            {"id": "m1", "entryId": "e2", "sentiment": "Happy",
             "sentence": "Good day", "reason": "Sunny", "createdAt": 1000},
        ],
        "notes": [],
        "categories": ["Food", "Travel"],
    }
    document.update(overrides)
    return document


async def _seed(store) -> None:
    await store.save_items([
        (Table.VOICE_ENTRIES, VoiceEntry(id="e1", raw_text="Spent 250", intent="EXPENSE", created_at=2000)),
        (Table.EXPENSES, Expense(id="x1", entry_id="e1", amount=250, category="Food", date=date(2024, 5, 1))),
        (Table.VOICE_ENTRIES, VoiceEntry(id="e2", raw_text="Good day", intent="MOOD", created_at=1000)),
        (Table.MOODS, MoodRecord(id="m1", entry_id="e2", sentiment="Happy", sentence="Good day", created_at=1000)),
        (Table.VOICE_ENTRIES, VoiceEntry(id="e3", raw_text="Milk", intent="NOTE", created_at=500)),
        (Table.NOTES, NoteRecord(id="n1", entry_id="e3", text="Milk", date=date(2024, 5, 1), created_at=500)),
        (Table.TASKS, Task(id="t1", title="Pay rent", category="Personal", date=date(2024, 5, 2), created_at=1500)),
        (Table.CATEGORIES, "Food"),
        (Table.CATEGORIES, "Travel"),
    ])


def _assert_references_resolve(snapshot) -> None:
    entry_ids = {e.id for e in snapshot.voice_entries}
    for record in [*snapshot.expenses, *snapshot.moods, *snapshot.notes]:
        assert record.entry_id in entry_ids


class TestExport:

    @pytest.mark.asyncio
    async def test_document_has_six_top_level_arrays(self, store):
        await _seed(store)

        document = json.loads(await BackupManager(store).export_backup_json())

        assert set(document) == {
            "voiceEntries", "expenses", "tasks", "moods", "notes", "categories",
        }
        assert document["categories"] == ["Food", "Travel"]
        assert document["expenses"][0]["entryId"] == "e1"
        assert document["expenses"][0]["date"] == "2024-05-01"

    @pytest.mark.asyncio
    async def test_export_is_audited(self, store, audit_logger):
        await BackupManager(store, audit_logger=audit_logger).export_backup_json()
        assert audit_logger.recent_events()[0].event_type == AuditEventType.BACKUP_EXPORTED

    @pytest.mark.asyncio
    async def test_export_to_directory_uses_dated_name(self, store, tmp_path):
        path = await BackupManager(store).export_to_path(tmp_path)

        assert path.parent == tmp_path
        assert path.name.startswith("aura_vault_")
        assert json.loads(path.read_text(encoding="utf-8"))["notes"] == []

    def test_default_filename(self):
        assert default_backup_filename(date(2024, 5, 1)) == "aura_vault_2024-05-01.json"


class TestMergeImport:

    @pytest.mark.asyncio
    async def test_round_trip_relabels_ids_and_keeps_links(self, store, other_store):
        await _seed(store)
        exported = await BackupManager(store).export_backup_json()

        summary = await BackupManager(other_store).import_backup_json(exported)
        original = await store.load_all()
        imported = await other_store.load_all()

        assert summary.imported["voiceEntries"] == 3
        assert summary.total == 7
        for table in (Table.VOICE_ENTRIES, Table.EXPENSES, Table.TASKS, Table.MOODS, Table.NOTES):
            assert len(imported.collection(table)) == len(original.collection(table))
        assert {e.id for e in imported.voice_entries}.isdisjoint({e.id for e in original.voice_entries})
        assert sorted(e.raw_text for e in imported.voice_entries) == sorted(
            e.raw_text for e in original.voice_entries
        )
        _assert_references_resolve(imported)

    @pytest.mark.asyncio
    async def test_children_follow_their_entry(self, store):
        summary = await BackupManager(store).import_backup_json(json.dumps(_backup_document()))
        snapshot = await store.load_all()

        new_e1 = summary.entry_id_map["e1"]
        assert snapshot.expenses[0].entry_id == new_e1
        assert snapshot.entry_for(new_e1).raw_text == "Spent 250 on food"

    @pytest.mark.asyncio
    async def test_double_import_yields_two_copies(self, store):
        manager = BackupManager(store)
        text = json.dumps(_backup_document())

        await manager.import_backup_json(text)
        await manager.import_backup_json(text)
        snapshot = await store.load_all()

        assert len(snapshot.voice_entries) == 4
        assert len(snapshot.expenses) == 2
        assert len(snapshot.tasks) == 2
        assert len({t.id for t in snapshot.tasks}) == 2
        _assert_references_resolve(snapshot)

    @pytest.mark.asyncio
    async def test_existing_rows_are_untouched(self, store):
        await _seed(store)
        before = await store.load_all()

        await BackupManager(store).import_backup_json(json.dumps(_backup_document()))
        after = await store.load_all()

        for expense in before.expenses:
            assert expense in after.expenses

    @pytest.mark.asyncio
    async def test_categories_dedupe_case_insensitively(self, store):
        await store.save_items([(Table.CATEGORIES, "Food"), (Table.CATEGORIES, "Travel")])
        document = _backup_document(categories=["FOOD", "travel", "Pets", "pets", "", 7])

        summary = await BackupManager(store).import_backup_json(json.dumps(document))

        assert await store.load_table(Table.CATEGORIES) == ["Food", "Travel", "Pets"]
        assert summary.imported["categories"] == 1

    @pytest.mark.asyncio
    async def test_categories_into_empty_table_keep_defaults(self, store):
        await BackupManager(store).import_backup_json(json.dumps(_backup_document()))

        stored = await store.load_table(Table.CATEGORIES)

        assert stored == [*DEFAULT_CATEGORIES, "Travel"]

    @pytest.mark.asyncio
    async def test_import_is_audited(self, store, audit_logger):
        manager = BackupManager(store, audit_logger=audit_logger)
        await manager.import_backup_json(json.dumps(_backup_document()))

        event = audit_logger.recent_events()[0]
        assert event.event_type == AuditEventType.BACKUP_IMPORTED
        assert event.details["counts"]["expenses"] == 1


class TestReferencePolicy:

    @pytest.mark.asyncio
    async def test_strict_policy_aborts_on_dangling_entry_id(self, store):
        document = _backup_document(notes=[
            {"id": "n9", "entryId": "ghost", "text": "orphan", "date": "2024-05-01",
             "createdAt": 1},
        ])

        with pytest.raises(ImportReferenceError):
            await BackupManager(store).import_backup_json(json.dumps(document))

        snapshot = await store.load_all()
        assert snapshot.voice_entries == []
        assert snapshot.notes == []

    @pytest.mark.asyncio
    async def test_lenient_policy_detaches_and_counts(self, store):
        document = _backup_document(notes=[
            {"id": "n9", "entryId": "ghost", "text": "orphan", "date": "2024-05-01",
             "createdAt": 1},
        ])

        summary = await BackupManager(store).import_backup_json(
            json.dumps(document),
            policy=ReferencePolicy.LENIENT,
        )
        snapshot = await store.load_all()

        assert summary.unresolved_references == 1
        assert len(snapshot.notes) == 1
        assert snapshot.entry_for(snapshot.notes[0].entry_id) is None

    @pytest.mark.asyncio
    async def test_policy_can_be_set_on_the_manager(self, store):
        document = _backup_document(expenses=[
            {"id": "x9", "entryId": "ghost", "amount": 1, "category": "Food",
             "date": "2024-05-01"},
        ])
        manager = BackupManager(store, policy=ReferencePolicy.LENIENT)

        summary = await manager.import_backup_json(json.dumps(document))

        assert summary.unresolved_references == 1


class TestMalformedBackups:

    @pytest.mark.asyncio
    async def test_invalid_json(self, store, audit_logger):
        manager = BackupManager(store, audit_logger=audit_logger)
        with pytest.raises(ImportParseError):
            await manager.import_backup_json("{not json")
        assert audit_logger.recent_events()[0].event_type == AuditEventType.IMPORT_FAILED

    @pytest.mark.asyncio
    async def test_non_object_document(self, store):
        with pytest.raises(ImportParseError):
            await BackupManager(store).import_backup_json("[1, 2, 3]")

    @pytest.mark.asyncio
    async def test_non_array_collections_count_as_empty(self, store):
        document = _backup_document(expenses="oops", moods={"m1": {}})
        del document["notes"]

        summary = await BackupManager(store).import_backup_json(json.dumps(document))

        assert summary.imported["expenses"] == 0
        assert summary.imported["moods"] == 0
        assert summary.imported["voiceEntries"] == 2
        assert summary.imported["tasks"] == 1

    @pytest.mark.asyncio
    async def test_invalid_record_persists_nothing(self, store):
        document = _backup_document()
        document["expenses"][0]["amount"] = -5

        with pytest.raises(ImportParseError):
            await BackupManager(store).import_backup_json(json.dumps(document))

        assert (await store.load_all()).voice_entries == []

    @pytest.mark.asyncio
    async def test_repeated_entry_id_persists_nothing(self, store):
        document = _backup_document()
        document["voiceEntries"][1]["id"] = "e1"

        for policy in (ReferencePolicy.STRICT, ReferencePolicy.LENIENT):
            with pytest.raises(ImportParseError):
                await BackupManager(store, policy=policy).import_backup_json(json.dumps(document))

        assert (await store.load_all()).voice_entries == []

    @pytest.mark.asyncio
    async def test_other_entry_sources_are_kept(self, store):
        document = _backup_document()
        document["voiceEntries"][0]["source"] = "typed"

        await BackupManager(store).import_backup_json(json.dumps(document))

        sources = sorted(e.source for e in (await store.load_all()).voice_entries)
        assert sources == ["typed", "voice"]

    @pytest.mark.asyncio
    async def test_legacy_envelope_is_accepted(self, store):
        wrapped = {
            "app": "Aura",
            "exportedAt": "2024-05-01T10:00:00Z",
            "database": _backup_document(),
        }

        summary = await BackupManager(store).import_backup_json(json.dumps(wrapped))

        assert summary.imported["voiceEntries"] == 2

    @pytest.mark.asyncio
    async def test_storage_failure_persists_nothing(self, store, monkeypatch):
        original_put = ObjectStore.put
        calls = {"count": 0}

        def failing_put(self, item):
            calls["count"] += 1
            if calls["count"] == 4:
                raise sqlite3.OperationalError("disk I/O error")
            return original_put(self, item)

        monkeypatch.setattr(ObjectStore, "put", failing_put)

        with pytest.raises(StorageWriteError):
            await BackupManager(store).import_backup_json(json.dumps(_backup_document()))

        monkeypatch.undo()
        snapshot = await store.load_all()
        assert snapshot.voice_entries == []
        assert snapshot.tasks == []


class TestPlanning:
    """parse_backup_document and plan_merge are pure."""

    def test_plan_maps_every_entry(self):
        plan = plan_merge(parse_backup_document(json.dumps(_backup_document())))

        assert set(plan.entry_id_map) == {"e1", "e2"}
        assert plan.counts()["moods"] == 1
        assert plan.categories == ["Food", "Travel"]

    def test_rows_are_in_wire_shape(self):
        plan = plan_merge(parse_backup_document(json.dumps(_backup_document())))

        table, row = next((t, r) for t, r in plan.rows if t is Table.EXPENSES)
        assert row["entryId"] == plan.entry_id_map["e1"]
        assert row["id"] != "x1"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
