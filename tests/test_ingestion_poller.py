"""Tests for the photo ingestion poller."""

import asyncio

from printbooth.domain.photos import OwnerKind, TemplateOwner
from printbooth.services.ingestion import PhotoIngestionPoller
from tests.conftest import make_photo


def test_tick_places_awaiting_photos(slot_manager, owner, repository) -> None:
    photos = [make_photo(owner, minute) for minute in (2, 0, 1)]
    repository.add(*photos)
    poller = PhotoIngestionPoller(repository, slot_manager)
    poller.owner = owner

    placed = asyncio.run(poller.tick())

    assert placed == 3
    assert [slot.photo.created_at for _, slot in slot_manager.filled_slots()] == sorted(
        photo.created_at for photo in photos
    )


def test_repeated_ticks_never_place_a_photo_twice(
    slot_manager, owner, repository
) -> None:
    photo = make_photo(owner)
    repository.add(photo)
    poller = PhotoIngestionPoller(repository, slot_manager)
    poller.owner = owner

    async def run_ticks() -> None:
        for _ in range(5):
            await poller.tick()

    asyncio.run(run_ticks())

    occupied = [slot for _, slot in slot_manager.filled_slots()]
    assert len(occupied) == 1
    assert occupied[0].photo.id == photo.id


def test_removed_photo_is_not_placed_again(slot_manager, owner, repository) -> None:
    photo = make_photo(owner)
    repository.add(photo)
    poller = PhotoIngestionPoller(repository, slot_manager)
    poller.owner = owner

    async def scenario() -> None:
        await poller.tick()
        await slot_manager.remove(0)
        await poller.tick()

    asyncio.run(scenario())

    assert slot_manager.filled_slots() == []


def test_tick_failure_is_transient(slot_manager, owner, repository) -> None:
    repository.add(make_photo(owner))
    repository.fail_reads = True
    poller = PhotoIngestionPoller(repository, slot_manager)
    poller.owner = owner

    assert asyncio.run(poller.tick()) == 0
    assert slot_manager.filled_slots() == []

    repository.fail_reads = False
    assert asyncio.run(poller.tick()) == 1


def test_tick_drops_result_after_owner_switch(
    slot_manager, owner, repository
) -> None:
    repository.add(make_photo(owner))
    other = TemplateOwner(OwnerKind.EVENT, owner.id)
    poller = PhotoIngestionPoller(repository, slot_manager)
    poller.owner = owner
    original_list = repository.list_awaiting

    def switch_while_fetching(requested):  # type: ignore[no-untyped-def]
        photos = original_list(requested)
        slot_manager.initialize(other)
        return photos

    repository.list_awaiting = switch_while_fetching  # type: ignore[method-assign]

    assert asyncio.run(poller.tick()) == 0
    assert slot_manager.filled_slots() == []


def test_overlapping_tick_is_skipped(slot_manager, owner, repository) -> None:
    repository.add(make_photo(owner))
    poller = PhotoIngestionPoller(repository, slot_manager)
    poller.owner = owner

    async def scenario() -> tuple[int, int]:
        first, second = await asyncio.gather(poller.tick(), poller.tick())
        return first, second

    results = asyncio.run(scenario())

    assert sorted(results) == [0, 1]
    assert repository.list_calls == 1


def test_start_and_stop(slot_manager, owner, repository) -> None:
    repository.add(make_photo(owner))
    poller = PhotoIngestionPoller(repository, slot_manager, interval_seconds=0.01)

    async def scenario() -> bool:
        await poller.start(owner)
        for _ in range(100):
            if slot_manager.filled_slots():
                break
            await asyncio.sleep(0.01)
        running = poller.running
        await poller.stop()
        return running

    assert asyncio.run(scenario()) is True
    assert not poller.running
    assert poller.owner is None
    assert len(slot_manager.filled_slots()) == 1


def test_no_tick_after_stop(slot_manager, owner, repository) -> None:
    poller = PhotoIngestionPoller(repository, slot_manager, interval_seconds=0.01)

    async def scenario() -> int:
        await poller.start(owner)
        await asyncio.sleep(0.03)
        await poller.stop()
        calls = repository.list_calls
        await asyncio.sleep(0.05)
        return repository.list_calls - calls

    assert asyncio.run(scenario()) == 0
