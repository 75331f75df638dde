"""Template views: one slot grid, poller and print handoff per owner."""

import asyncio
import logging
from dataclasses import dataclass, field, replace
from uuid import UUID

from printbooth.domain.errors import (
    NoEmptySlotError,
    PersistenceError,
    PhotoNotFoundError,
    TemplateNotOpenError,
)
from printbooth.domain.photos import Photo, PhotoOrigin, PhotoStatus, TemplateOwner
from printbooth.services.edits import EditTracker
from printbooth.services.ingestion import PhotoIngestionPoller
from printbooth.services.photos import (
    PhotoRepository,
    PhotoUploader,
    admin_order_code,
)
from printbooth.services.printing import PrintHandoff
from printbooth.services.processed import ProcessedSetCache
from printbooth.services.rendering import SheetRenderer
from printbooth.services.slots import TemplateSlotManager

_logger = logging.getLogger(__name__)

REPRINT_LIMIT = 100


@dataclass
class TemplateSession:
    """An open template view for a single owner."""

    owner: TemplateOwner
    repository: PhotoRepository
    uploader: PhotoUploader
    slots: TemplateSlotManager
    edits: EditTracker
    poller: PhotoIngestionPoller
    handoff: PrintHandoff

    async def open(self) -> None:
        """Load the processed set, reset the grid and start polling."""
        self.slots.initialize(self.owner)
        self.edits.reset(self.owner)
        self.handoff.cancel()
        await self.poller.start(self.owner)

    async def close(self) -> None:
        """Stop polling; nothing touches this view's grid afterwards."""
        await self.poller.stop()
        self.handoff.cancel()

    def current_order_code(self) -> str | None:
        """Order code of the first photo in the grid that has one."""
        for _, slot in self.slots.filled_slots():
            if slot.photo.order_code:
                return slot.photo.order_code
        return None

    async def upload_to_slot(
        self,
        index: int,
        filename: str,
        content: bytes,
        content_type: str = "image/jpeg",
    ) -> int:
        """Upload a file and place it at the slot or the next empty one."""
        if self.slots.first_empty(index) is None:
            raise NoEmptySlotError("No empty slots available")
        photo = await self.uploader.upload(
            self.owner,
            filename,
            content,
            origin=PhotoOrigin.MANUAL_UPLOAD,
            order_code=self.current_order_code() or admin_order_code(self.owner),
            content_type=content_type,
        )
        return self.slots.add_manual(index, photo)

    async def list_reprints(self, limit: int = REPRINT_LIMIT) -> list[Photo]:
        """Return recently printed or waiting photos, newest first."""
        statuses = [PhotoStatus.PRINTED.value, self.owner.kind.awaiting_status]
        try:
            return await asyncio.to_thread(
                self.repository.query,
                self.owner,
                statuses,
                descending=True,
                limit=limit,
            )
        except Exception as exc:
            _logger.exception("Failed to load reprints", extra={"owner": self.owner.key})
            raise PersistenceError(f"Failed to load photos: {exc}") from exc

    async def add_reprint(self, photo_id: UUID) -> int:
        """Put a printed photo back into the grid and mark it awaiting again."""
        try:
            photo = await asyncio.to_thread(
                self.repository.get_photo, self.owner, photo_id
            )
        except Exception as exc:
            raise PersistenceError(f"Failed to load photo: {exc}") from exc
        if photo is None:
            raise PhotoNotFoundError(f"Photo {photo_id} not found")

        status = self.owner.kind.awaiting_status
        photo = replace(photo, status=status, printed_at=None)
        generation = self.slots.generation
        already_placed = self.slots.index_of(photo_id) is not None
        index = self.slots.add_manual(0, photo)
        try:
            await asyncio.to_thread(
                self.repository.update_by_ids,
                self.owner,
                [photo_id],
                {"status": status, "printed_at": None},
            )
        except Exception as exc:
            _logger.exception(
                "Failed to reset photo for reprint", extra={"photo_id": str(photo_id)}
            )
            current = self.slots.index_of(photo_id)
            if (
                not already_placed
                and generation == self.slots.generation
                and current is not None
            ):
                self.slots.clear_slot(current)
            raise PersistenceError(f"Failed to add photo: {exc}") from exc
        return index

    async def clear_template(self) -> int:
        """Mark every photo in the grid deleted and empty all slots."""
        photo_ids = list(
            dict.fromkeys(slot.photo.id for _, slot in self.slots.filled_slots())
        )
        if photo_ids:
            try:
                await asyncio.to_thread(
                    self.repository.update_by_ids,
                    self.owner,
                    photo_ids,
                    {"status": PhotoStatus.DELETED.value},
                )
            except Exception as exc:
                _logger.exception(
                    "Failed to clear template", extra={"owner": self.owner.key}
                )
                raise PersistenceError(f"Failed to clear template: {exc}") from exc
            self.slots.processed.update(photo_ids)
        self.slots.clear_all()
        self.edits.clear()
        return len(photo_ids)


@dataclass
class TemplateSessions:
    """Registry of open template views, keyed by owner."""

    repository: PhotoRepository
    uploader: PhotoUploader
    processed_cache: ProcessedSetCache
    renderer: SheetRenderer
    poll_interval_seconds: float = 3.0
    _sessions: dict[TemplateOwner, TemplateSession] = field(
        default_factory=dict, init=False, repr=False
    )

    async def open(self, owner: TemplateOwner) -> TemplateSession:
        """Open the view for an owner, or return it when already open."""
        session = self._sessions.get(owner)
        if session is not None:
            return session
        session = self._build(owner)
        self._sessions[owner] = session
        await session.open()
        _logger.info("Template opened", extra={"owner": owner.key})
        return session

    def get(self, owner: TemplateOwner) -> TemplateSession:
        session = self._sessions.get(owner)
        if session is None:
            raise TemplateNotOpenError(f"No template open for {owner.key}")
        return session

    async def close(self, owner: TemplateOwner) -> None:
        session = self._sessions.pop(owner, None)
        if session is None:
            raise TemplateNotOpenError(f"No template open for {owner.key}")
        await session.close()
        _logger.info("Template closed", extra={"owner": owner.key})

    async def close_all(self) -> None:
        sessions, self._sessions = self._sessions, {}
        for session in sessions.values():
            await session.close()

    def _build(self, owner: TemplateOwner) -> TemplateSession:
        slots = TemplateSlotManager(self.repository, self.processed_cache)
        edits = EditTracker(self.repository)
        return TemplateSession(
            owner=owner,
            repository=self.repository,
            uploader=self.uploader,
            slots=slots,
            edits=edits,
            poller=PhotoIngestionPoller(
                self.repository, slots, interval_seconds=self.poll_interval_seconds
            ),
            handoff=PrintHandoff(slots, edits, self.renderer, self.repository),
        )
