"""Processed-set cache guarding against placing a photo twice."""

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Protocol
from uuid import UUID

from printbooth.domain.photos import TemplateOwner


class ProcessedSetStore(Protocol):
    """Persistence interface for processed photo id lists."""

    def load(self, key: str) -> list[str]:
        """Return the stored ids for a key, or an empty list."""

    def save(self, key: str, ids: list[str]) -> None:
        """Replace the stored ids for a key."""


@dataclass
class InMemoryProcessedSetStore(ProcessedSetStore):
    """Process-local store; contents do not survive a restart."""

    entries: dict[str, list[str]] = field(default_factory=dict)

    def load(self, key: str) -> list[str]:
        return list(self.entries.get(key, []))

    def save(self, key: str, ids: list[str]) -> None:
        self.entries[key] = list(ids)


def processed_key(owner: TemplateOwner) -> str:
    """Build the storage key for an owner's processed set."""
    return f"processed_photos_{owner.key}"


class ProcessedSet:
    """Set of photo ids already placed for one owner, saved on every change."""

    def __init__(self, store: ProcessedSetStore, key: str) -> None:
        self._store = store
        self._key = key
        self._ids: set[UUID] = set()
        for raw in store.load(key):
            try:
                self._ids.add(UUID(str(raw)))
            except ValueError:
                continue

    def __contains__(self, photo_id: object) -> bool:
        return photo_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def ids(self) -> set[UUID]:
        return set(self._ids)

    def add(self, photo_id: UUID) -> None:
        """Mark a photo id as processed."""
        if photo_id in self._ids:
            return
        self._ids.add(photo_id)
        self._save()

    def update(self, photo_ids: Iterable[UUID]) -> None:
        """Mark several photo ids as processed with a single write."""
        new_ids = set(photo_ids) - self._ids
        if not new_ids:
            return
        self._ids.update(new_ids)
        self._save()

    def discard(self, photo_id: UUID) -> None:
        """Forget a photo id so it can be placed again."""
        if photo_id not in self._ids:
            return
        self._ids.discard(photo_id)
        self._save()

    def _save(self) -> None:
        self._store.save(self._key, sorted(str(photo_id) for photo_id in self._ids))


@dataclass
class ProcessedSetCache:
    """Loads per-owner processed sets from a store."""

    store: ProcessedSetStore

    def load(self, owner: TemplateOwner) -> ProcessedSet:
        """Load the processed set for an owner."""
        return ProcessedSet(self.store, processed_key(owner))
