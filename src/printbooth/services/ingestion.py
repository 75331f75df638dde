"""Fixed-interval poller that feeds new photos into the template."""

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field

from printbooth.domain.errors import TransientFetchError
from printbooth.domain.photos import Photo, TemplateOwner
from printbooth.services.photos import PhotoRepository
from printbooth.services.slots import TemplateSlotManager

_logger = logging.getLogger(__name__)


@dataclass
class PhotoIngestionPoller:
    """Polls the store for awaiting photos while an owner is active.

    Ticks never overlap: a tick that starts while another is running is
    skipped. Results fetched for an owner that is no longer active are
    dropped before they reach the slot array.
    """

    repository: PhotoRepository
    slot_manager: TemplateSlotManager
    interval_seconds: float = 3.0
    owner: TemplateOwner | None = None
    _task: asyncio.Task | None = field(default=None, init=False, repr=False)
    _tick_lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False, repr=False)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self, owner: TemplateOwner) -> None:
        """Start polling for an owner, replacing any previous loop."""
        await self.stop()
        self.owner = owner
        self._task = asyncio.create_task(self._run(owner))

    async def stop(self) -> None:
        """Stop polling; no tick runs after this returns."""
        self.owner = None
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def tick(self) -> int:
        """Run one poll and return the number of photos placed."""
        if self._tick_lock.locked():
            _logger.debug("Poll tick already in progress, skipping")
            return 0
        async with self._tick_lock:
            owner = self.owner
            if owner is None:
                return 0
            generation = self.slot_manager.generation
            try:
                photos = await self._fetch(owner)
            except TransientFetchError:
                _logger.warning(
                    "Poll tick failed, retrying next tick",
                    exc_info=True,
                    extra={"owner": owner.key},
                )
                return 0
            if (
                owner != self.owner
                or owner != self.slot_manager.owner
                or generation != self.slot_manager.generation
            ):
                _logger.info("Dropping poll result for inactive owner")
                return 0
            fresh = [
                photo for photo in photos if not self.slot_manager.is_processed(photo.id)
            ]
            return len(self.slot_manager.place_incoming(fresh))

    async def _fetch(self, owner: TemplateOwner) -> list[Photo]:
        try:
            return await asyncio.to_thread(self.repository.list_awaiting, owner)
        except Exception as exc:
            raise TransientFetchError(str(exc)) from exc

    async def _run(self, owner: TemplateOwner) -> None:
        while self.owner == owner:
            await self.tick()
            await asyncio.sleep(self.interval_seconds)
