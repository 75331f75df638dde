"""Tests for the template slot manager."""

import asyncio

import pytest

from printbooth.domain.errors import NoEmptySlotError, PersistenceError, SlotIndexError
from printbooth.domain.photos import PhotoStatus
from printbooth.domain.template import SLOT_COUNT
from printbooth.services.processed import processed_key
from printbooth.services.slots import TemplateSlotManager
from tests.conftest import make_photo


def test_place_incoming_fills_slots_oldest_first(slot_manager, owner) -> None:
    newest = make_photo(owner, 5)
    oldest = make_photo(owner, 1)
    middle = make_photo(owner, 3)

    placed = slot_manager.place_incoming([newest, oldest, middle])

    assert [index for index, _ in placed] == [0, 1, 2]
    assert [slot.photo.id for _, slot in slot_manager.filled_slots()] == [
        oldest.id,
        middle.id,
        newest.id,
    ]
    assert slot_manager.empty_count == SLOT_COUNT - 3


def test_place_incoming_is_idempotent(slot_manager, owner) -> None:
    photos = [make_photo(owner, minute) for minute in range(3)]

    slot_manager.place_incoming(photos)
    before = slot_manager.slots
    placed_again = slot_manager.place_incoming(photos)

    assert placed_again == []
    assert slot_manager.slots == before


def test_place_incoming_stops_when_full(slot_manager, owner) -> None:
    photos = [make_photo(owner, minute) for minute in range(SLOT_COUNT + 2)]

    placed = slot_manager.place_incoming(photos)

    assert len(placed) == SLOT_COUNT
    assert slot_manager.empty_count == 0
    assert not slot_manager.is_processed(photos[-1].id)


def test_processed_set_survives_reinitialize(
    slot_manager, owner, processed_store, repository, processed_cache
) -> None:
    photo = make_photo(owner)
    slot_manager.place_incoming([photo])

    assert processed_store.entries[processed_key(owner)] == [str(photo.id)]

    reloaded = TemplateSlotManager(repository, processed_cache)
    reloaded.initialize(owner)
    assert reloaded.place_incoming([photo]) == []


def test_add_manual_uses_first_empty_at_or_after_index(slot_manager, owner) -> None:
    slot_manager.place_incoming([make_photo(owner, 0)])
    manual = make_photo(owner, 1)

    assert slot_manager.add_manual(0, manual) == 1
    assert slot_manager.add_manual(0, manual) == 1
    assert slot_manager.is_processed(manual.id)


def test_duplicate_without_empty_slot_leaves_grid_unchanged(
    slot_manager, owner
) -> None:
    slot_manager.place_incoming([make_photo(owner, minute) for minute in range(9)])
    before = slot_manager.slots

    with pytest.raises(NoEmptySlotError):
        slot_manager.duplicate(0)

    assert slot_manager.slots == before
    assert slot_manager.empty_count == 0


def test_duplicate_marks_copy(slot_manager, owner) -> None:
    photo = make_photo(owner)
    slot_manager.place_incoming([photo])

    target = slot_manager.duplicate(0)

    copy = slot_manager.slots[target]
    assert copy is not None
    assert copy.is_duplicate
    assert copy.photo.id == photo.id
    assert slot_manager.index_of(photo.id) == 0


def test_duplicate_empty_slot_raises(slot_manager) -> None:
    with pytest.raises(SlotIndexError):
        slot_manager.duplicate(4)


def test_remove_marks_photo_deleted(slot_manager, owner, repository) -> None:
    photo = make_photo(owner)
    repository.add(photo)
    slot_manager.place_incoming([photo])

    removed = asyncio.run(slot_manager.remove(0))

    assert removed.id == photo.id
    assert slot_manager.slots[0] is None
    assert repository.photos[photo.id].status == PhotoStatus.DELETED.value
    assert slot_manager.is_processed(photo.id)


def test_remove_failure_restores_slot_and_forgets_processed(
    slot_manager, owner, repository
) -> None:
    photo = make_photo(owner)
    repository.add(photo)
    repository.fail_updates = True
    slot_manager.add_manual(3, photo)
    before = slot_manager.slots

    with pytest.raises(PersistenceError):
        asyncio.run(slot_manager.remove(3))

    assert slot_manager.slots == before
    assert not slot_manager.is_processed(photo.id)


def test_remove_duplicate_clears_only_the_copy(
    slot_manager, owner, repository
) -> None:
    photo = make_photo(owner)
    repository.add(photo)
    slot_manager.place_incoming([photo])
    copy_index = slot_manager.duplicate(0)

    asyncio.run(slot_manager.remove(copy_index))

    assert slot_manager.slots[copy_index] is None
    assert slot_manager.slots[0] is not None
    assert repository.update_calls == []


def test_removing_every_copy_deletes_photo(slot_manager, owner, repository) -> None:
    photo = make_photo(owner)
    repository.add(photo)
    slot_manager.place_incoming([photo])
    copy_index = slot_manager.duplicate(0)

    asyncio.run(slot_manager.remove(0))
    assert repository.update_calls == []
    asyncio.run(slot_manager.remove(copy_index))

    assert slot_manager.filled_slots() == []
    assert repository.photos[photo.id].status == PhotoStatus.DELETED.value
    assert repository.update_calls == [([photo.id], {"status": "deleted"})]


def test_failed_delete_of_last_copy_restores_that_slot(
    slot_manager, owner, repository
) -> None:
    photo = make_photo(owner)
    repository.add(photo)
    slot_manager.place_incoming([photo])
    copy_index = slot_manager.duplicate(0)
    asyncio.run(slot_manager.remove(0))
    repository.fail_updates = True

    with pytest.raises(PersistenceError):
        asyncio.run(slot_manager.remove(copy_index))

    restored = slot_manager.slots[copy_index]
    assert restored is not None
    assert restored.photo.id == photo.id
    assert slot_manager.slots[0] is None


def test_reorder_moves_slot(slot_manager, owner) -> None:
    photos = [make_photo(owner, minute) for minute in range(3)]
    slot_manager.place_incoming(photos)

    slot_manager.reorder(0, 2)

    assert [slot.photo.id for _, slot in slot_manager.filled_slots()] == [
        photos[1].id,
        photos[2].id,
        photos[0].id,
    ]


def test_out_of_range_index_raises(slot_manager, owner) -> None:
    with pytest.raises(SlotIndexError):
        slot_manager.add_manual(SLOT_COUNT, make_photo(owner))


def test_initialize_bumps_generation(slot_manager, owner) -> None:
    generation = slot_manager.generation
    slot_manager.place_incoming([make_photo(owner)])

    slot_manager.initialize(owner)

    assert slot_manager.generation == generation + 1
    assert slot_manager.empty_count == SLOT_COUNT
