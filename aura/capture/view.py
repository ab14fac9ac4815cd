"""
Materialized Vault View

The in-memory mirror of disk that callers render from.

CRITICAL: The view is only ever updated AFTER the corresponding store
write has returned. It may lag behind disk, it is never ahead of it.

Each update publishes a new snapshot object instead of mutating the
current one, so a caller holding an older snapshot never sees it change
under them.
"""

from typing import Optional

from aura.models.records import (
    Table,
    Task,
    VaultRecord,
    VaultSnapshot,
    VoiceEntry,
)


class VaultView:
    """Latest committed state of the vault, as seen by the UI."""

    def __init__(self, snapshot: Optional[VaultSnapshot] = None):
        self._snapshot = snapshot or VaultSnapshot()
        self._version = 0

    @property
    def snapshot(self) -> VaultSnapshot:
        return self._snapshot

    @property
    def version(self) -> int:
        """Bumped on every published change."""
        return self._version

    def _publish(self, snapshot: VaultSnapshot) -> None:
        self._snapshot = snapshot
        self._version += 1

    def replace(self, snapshot: VaultSnapshot) -> None:
        """Swap in a snapshot freshly read from disk."""
        self._publish(snapshot)

    def reset(self) -> None:
        """Empty collections, default categories (after a purge)."""
        self._publish(VaultSnapshot())

    def apply_capture(
        self,
        entry: VoiceEntry,
        table: Table,
        record: VaultRecord,
        new_category: Optional[str] = None,
    ) -> None:
        """Prepend a committed capture (entry + child) to the view."""
        current = self._snapshot
        field_name = {
            Table.EXPENSES: "expenses",
            Table.TASKS: "tasks",
            Table.MOODS: "moods",
            Table.NOTES: "notes",
        }[table]
        update = {
            "voice_entries": [entry, *current.voice_entries],
            field_name: [record, *getattr(current, field_name)],
        }
        if new_category and new_category not in current.categories:
            update["categories"] = [*current.categories, new_category]
        self._publish(current.model_copy(update=update))

    def apply_categories(self, categories: list[str]) -> None:
        self._publish(self._snapshot.model_copy(update={"categories": list(categories)}))

    def apply_task(self, task: Task) -> None:
        """Replace a task in place (completion toggles)."""
        current = self._snapshot
        tasks = [task if t.id == task.id else t for t in current.tasks]
        self._publish(current.model_copy(update={"tasks": tasks}))
