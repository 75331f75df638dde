"""Template slot manager for the 3x3 print grid."""

import asyncio
import logging
from collections.abc import Iterable
from uuid import UUID

from printbooth.domain.errors import (
    NoEmptySlotError,
    PersistenceError,
    SlotIndexError,
)
from printbooth.domain.photos import Photo, PhotoStatus, TemplateOwner
from printbooth.domain.template import SLOT_COUNT, TemplateSlot
from printbooth.services.photos import PhotoRepository
from printbooth.services.processed import ProcessedSet, ProcessedSetCache

_logger = logging.getLogger(__name__)


class TemplateSlotManager:
    """Owns the slot array of one template view.

    Slot mutations are synchronous. The only awaiting operation is `remove`,
    which clears the slot first and restores it if the store rejects the
    status change. `generation` changes on every `initialize` so that late
    completions can tell whether they still belong to the active owner.
    """

    def __init__(
        self, repository: PhotoRepository, processed_cache: ProcessedSetCache
    ) -> None:
        self.repository = repository
        self.processed_cache = processed_cache
        self.owner: TemplateOwner | None = None
        self.processed: ProcessedSet | None = None
        self.generation = 0
        self._slots: list[TemplateSlot | None] = [None] * SLOT_COUNT

    def initialize(self, owner: TemplateOwner) -> None:
        """Reset to empty slots for the given owner and load its processed set."""
        self.generation += 1
        self.owner = owner
        self.processed = self.processed_cache.load(owner)
        self._slots = [None] * SLOT_COUNT
        _logger.info(
            "Template initialized",
            extra={"owner": owner.key, "processed": len(self.processed)},
        )

    @property
    def slots(self) -> list[TemplateSlot | None]:
        return list(self._slots)

    @property
    def empty_count(self) -> int:
        return sum(1 for slot in self._slots if slot is None)

    def filled_slots(self) -> list[tuple[int, TemplateSlot]]:
        """Return filled slots with their index, in index order."""
        return [(index, slot) for index, slot in enumerate(self._slots) if slot]

    def occupies(self, photo_id: UUID) -> bool:
        """Return true when the photo sits in any slot."""
        return any(slot and slot.photo.id == photo_id for slot in self._slots)

    def index_of(self, photo_id: UUID) -> int | None:
        for index, slot in enumerate(self._slots):
            if slot and slot.photo.id == photo_id and not slot.is_duplicate:
                return index
        return None

    def is_processed(self, photo_id: UUID) -> bool:
        return self.processed is not None and photo_id in self.processed

    def place_incoming(self, photos: Iterable[Photo]) -> list[tuple[int, Photo]]:
        """Place new photos, oldest first, into the first empty slots.

        Photos already in a slot or in the processed set are skipped; photos
        that do not fit stay unplaced and come back on the next poll.
        """
        processed = self._require_processed()
        placed: list[tuple[int, Photo]] = []
        for photo in sorted(photos, key=lambda item: item.created_at):
            if photo.id in processed or self.occupies(photo.id):
                continue
            index = self.first_empty(0)
            if index is None:
                break
            self._slots[index] = TemplateSlot(photo=photo)
            processed.add(photo.id)
            placed.append((index, photo))
        if placed:
            _logger.info(
                "Placed incoming photos",
                extra={
                    "owner": self.owner.key if self.owner else None,
                    "count": len(placed),
                },
            )
        return placed

    def add_manual(self, at_or_after_index: int, photo: Photo) -> int:
        """Place a photo into the first empty slot at or after an index."""
        self._check_index(at_or_after_index)
        existing = self.index_of(photo.id)
        if existing is not None:
            return existing
        index = self.first_empty(at_or_after_index)
        if index is None:
            raise NoEmptySlotError("No empty slots available")
        self._slots[index] = TemplateSlot(photo=photo)
        self._require_processed().add(photo.id)
        return index

    def duplicate(self, index: int) -> int:
        """Copy a filled slot's photo into the first empty slot."""
        source = self._filled(index)
        target = self.first_empty(0)
        if target is None:
            raise NoEmptySlotError("No empty slots available")
        self._slots[target] = TemplateSlot(photo=source.photo, is_duplicate=True)
        self._require_processed().add(source.photo.id)
        return target

    async def remove(self, index: int) -> Photo:
        """Clear a slot and mark its photo deleted in the store.

        While another slot still shows the same photo the slot is only cleared
        locally; removing the last copy writes the deleted status.
        """
        slot = self._filled(index)
        owner = self.owner
        generation = self.generation
        processed = self._require_processed()
        self._slots[index] = None
        if self.occupies(slot.photo.id):
            return slot.photo

        processed.add(slot.photo.id)
        try:
            await asyncio.to_thread(
                self.repository.update_by_ids,
                owner,
                [slot.photo.id],
                {"status": PhotoStatus.DELETED.value},
            )
        except Exception as exc:
            _logger.exception(
                "Failed to delete photo",
                extra={"photo_id": str(slot.photo.id), "index": index},
            )
            processed.discard(slot.photo.id)
            if generation == self.generation and self._slots[index] is None:
                self._slots[index] = slot
            raise PersistenceError(f"Failed to remove photo: {exc}") from exc
        return slot.photo

    def clear_slot(self, index: int) -> None:
        """Empty one slot without touching the store."""
        self._check_index(index)
        self._slots[index] = None

    def clear_photos(self, photo_ids: Iterable[UUID]) -> list[int]:
        """Empty every slot showing one of the photos; other slots stay put."""
        targets = set(photo_ids)
        cleared: list[int] = []
        for index, slot in enumerate(self._slots):
            if slot and slot.photo.id in targets:
                self._slots[index] = None
                cleared.append(index)
        return cleared

    def clear_all(self) -> None:
        """Empty every slot without touching the store."""
        self._slots = [None] * SLOT_COUNT

    def reorder(self, from_index: int, to_index: int) -> None:
        """Move a slot's content, shifting the slots in between."""
        self._check_index(from_index)
        self._check_index(to_index)
        slot = self._slots.pop(from_index)
        self._slots.insert(to_index, slot)

    def first_empty(self, start: int = 0) -> int | None:
        """Return the first empty slot index at or after `start`."""
        self._check_index(start)
        for index in range(start, SLOT_COUNT):
            if self._slots[index] is None:
                return index
        return None

    def _filled(self, index: int) -> TemplateSlot:
        self._check_index(index)
        slot = self._slots[index]
        if slot is None:
            raise SlotIndexError(f"Slot {index} is empty")
        return slot

    def _check_index(self, index: int) -> None:
        if not 0 <= index < SLOT_COUNT:
            raise SlotIndexError(f"Slot index {index} is out of range")

    def _require_processed(self) -> ProcessedSet:
        if self.processed is None:
            raise RuntimeError("Template is not initialized")
        return self.processed
