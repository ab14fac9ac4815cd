"""
Expense Category Vocabulary

A deduplicated set of category names with a case-insensitive index.
"shopping" and "Shopping" are the same category; the casing that was
stored first wins and is what every lookup returns.

The vocabulary grows lazily: a capture naming a category we have never
seen persists it before anything else happens, so the capture that
introduced it already resolves to it.

IMPORTANT: An empty category table means "the defaults". The first time
a new name is persisted into an empty table, the defaults are written
alongside it so they are not lost.
"""

from typing import Iterable, Iterator, Optional

import structlog

from aura.models.records import DEFAULT_CATEGORIES, Table
from aura.services.storage import EntityStoreInterface


logger = structlog.get_logger(__name__)


def category_key(name: str) -> str:
    """Index key for case-insensitive matching."""
    return name.strip().casefold()


class CategoryVocabulary:
    """In-memory view of the category table, kept in step with disk."""

    def __init__(
        self,
        store: EntityStoreInterface,
        names: Optional[Iterable[str]] = None,
        persisted: bool = False,
    ):
        """
        Args:
            store: Where new categories are persisted
            names: Known categories (defaults when None)
            persisted: Whether `names` came from a non-empty table
        """
        self._store = store
        self._names: list[str] = []
        self._index: dict[str, str] = {}
        self._persisted = persisted
        self._absorb(DEFAULT_CATEGORIES if names is None else names)

    @classmethod
    async def load(cls, store: EntityStoreInterface) -> "CategoryVocabulary":
        """Build the vocabulary from the category table."""
        rows = await store.load_table(Table.CATEGORIES)
        if rows:
            return cls(store, rows, persisted=True)
        return cls(store)

    def _absorb(self, names: Iterable[str]) -> None:
        for name in names:
            if not isinstance(name, str) or not name.strip():
                continue
            key = category_key(name)
            if key not in self._index:
                self._index[key] = name.strip()
                self._names.append(name.strip())

    @property
    def names(self) -> list[str]:
        return list(self._names)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._names))

    def __len__(self) -> int:
        return len(self._names)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.match(name) is not None

    def match(self, name: Optional[str]) -> Optional[str]:
        """Stored casing of `name`, or None if it is not a known category."""
        if not name or not name.strip():
            return None
        return self._index.get(category_key(name))

    async def ensure(self, name: str) -> tuple[str, bool]:
        """
        Make sure `name` is a known category.

        Persists novel names before updating memory.

        Returns:
            (canonical_name, created)

        Raises:
            ValueError: blank name
            StorageWriteError: the category could not be persisted
        """
        if not name or not name.strip():
            raise ValueError("Category name cannot be blank")

        existing = self.match(name)
        if existing is not None:
            return existing, False

        name = name.strip()
        rows = [name] if self._persisted else [*self._names, name]
        await self._store.save_items((Table.CATEGORIES, row) for row in rows)

        self._absorb([name])
        self._persisted = True
        logger.info("category_added", category=name, seeded_defaults=len(rows) > 1)
        return name, True

    def reset(self) -> None:
        """Forget everything but the defaults (after a purge)."""
        self._names.clear()
        self._index.clear()
        self._persisted = False
        self._absorb(DEFAULT_CATEGORIES)

    async def refresh(self) -> None:
        """Re-read the category table (after an import)."""
        rows = await self._store.load_table(Table.CATEGORIES)
        self._names.clear()
        self._index.clear()
        self._persisted = bool(rows)
        self._absorb(rows or DEFAULT_CATEGORIES)
