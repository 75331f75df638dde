"""Print facilities and the operator-confirmed print handoff."""

import asyncio
import base64
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol
from uuid import UUID

import httpx

from printbooth.adapters.printnode_client import PrintNodeClient
from printbooth.domain.errors import (
    HandoffStateError,
    NothingToPrintError,
    PersistenceError,
    PrintSubmissionError,
    UnsavedEditsError,
)
from printbooth.domain.photos import PhotoStatus
from printbooth.domain.printing import PendingPrint, PrintOutcome, PrintSheet
from printbooth.domain.template import PrintState
from printbooth.services.edits import EditTracker
from printbooth.services.photos import PhotoRepository
from printbooth.services.print_helper import PrintHelperLink
from printbooth.services.rendering import SheetItem, SheetRenderer
from printbooth.services.slots import TemplateSlotManager

_logger = logging.getLogger(__name__)


class PrintFacility(Protocol):
    """Something that turns a rendered sheet into paper."""

    async def submit(self, sheet: PrintSheet) -> str | None:
        """Hand the sheet over and return a job id when one exists."""


class ManualPrintFacility(PrintFacility):
    """The operator prints the returned PDF with the system print dialog."""

    async def submit(self, sheet: PrintSheet) -> str | None:
        return None


@dataclass
class PrintNodeFacility(PrintFacility):
    """Submits the sheet to a cloud printer."""

    client: PrintNodeClient
    api_key: str
    printer_id: int

    async def submit(self, sheet: PrintSheet) -> str | None:
        content = base64.b64encode(sheet.pdf).decode("ascii")
        try:
            job_id = await self.client.submit_print_job(
                self.api_key, self.printer_id, content, sheet.title
            )
        except (httpx.HTTPError, ValueError) as exc:
            _logger.exception(
                "Cloud print submission failed", extra={"printer_id": self.printer_id}
            )
            raise PrintSubmissionError(f"Failed to submit print job: {exc}") from exc
        _logger.info(
            "Print job submitted",
            extra={"job_id": job_id, "printer_id": self.printer_id},
        )
        return str(job_id)


@dataclass
class PrintHelperFacility(PrintFacility):
    """Relays the sheet to a printer of the connected desktop helper."""

    link: PrintHelperLink
    printer_name: str

    async def submit(self, sheet: PrintSheet) -> str | None:
        reply = await self.link.print_sheet(sheet.pdf, self.printer_name)
        if reply.get("status") == "error":
            raise PrintSubmissionError(
                str(reply.get("message") or "Print helper reported an error")
            )
        return None


@dataclass
class PrintHandoff:
    """Render, hand off and confirm one print of the template.

    `prepare` walks Idle through SavingEdits and Rendering to
    AwaitingConfirmation; `finish` records the operator's answer. Photos are
    only marked printed after an explicit yes, in a single bulk update, and
    only the slots holding the printed photos are cleared.
    """

    slot_manager: TemplateSlotManager
    edits: EditTracker
    renderer: SheetRenderer
    repository: PhotoRepository
    state: PrintState = PrintState.IDLE
    pending: PendingPrint | None = None
    _generation: int = field(default=0, init=False, repr=False)

    async def prepare(
        self, facility: PrintFacility, save_edits: bool | None = None
    ) -> PendingPrint:
        """Render the filled slots and hand the sheet to a print facility.

        Raises `UnsavedEditsError` when photos have unsaved edits and the
        caller has not decided whether to save them.
        """
        if self.state is not PrintState.IDLE:
            raise HandoffStateError(f"Cannot print while {self.state.value}")
        dirty = self._dirty_in_grid()
        if dirty and save_edits is None:
            raise UnsavedEditsError(dirty)
        try:
            if dirty and save_edits:
                self.state = PrintState.SAVING_EDITS
                await self._save_edits(dirty)
            self.state = PrintState.RENDERING
            pending = await self._render_and_submit(facility)
        except BaseException:
            self.state = PrintState.IDLE
            raise
        self.pending = pending
        self.state = PrintState.AWAITING_CONFIRMATION
        return pending

    async def finish(self, printed: bool) -> PrintOutcome:
        """Apply the operator's answer to the pending print."""
        if self.state is not PrintState.AWAITING_CONFIRMATION or self.pending is None:
            raise HandoffStateError("No print is waiting for confirmation")
        pending = self.pending
        if not printed:
            self.cancel()
            return PrintOutcome(printed=False, job_id=pending.job_id)
        if self._generation != self.slot_manager.generation:
            self.cancel()
            raise HandoffStateError("The template changed since the sheet was rendered")

        # Photos removed from the grid after rendering keep their deleted status.
        photo_ids = [
            photo_id
            for photo_id in pending.sheet.photo_ids
            if self.slot_manager.occupies(photo_id)
        ]
        self.state = PrintState.PERSISTING
        try:
            if photo_ids:
                await self._mark_printed(photo_ids)
        finally:
            self.pending = None
            self.state = PrintState.IDLE
        if self._generation == self.slot_manager.generation:
            self.slot_manager.processed.update(photo_ids)
            self.edits.discard(photo_ids)
            self.slot_manager.clear_photos(photo_ids)
        _logger.info(
            "Template printed",
            extra={"count": len(photo_ids), "job_id": pending.job_id},
        )
        return PrintOutcome(printed=True, photo_ids=photo_ids, job_id=pending.job_id)

    def cancel(self) -> None:
        """Drop a pending print without touching the store or the slots."""
        self.pending = None
        self.state = PrintState.IDLE

    async def run(
        self,
        facility: PrintFacility,
        decide_save_edits: Callable[[list[UUID]], Awaitable[bool]],
        confirm_printed: Callable[[PendingPrint], Awaitable[bool]],
    ) -> PrintOutcome:
        """Run a whole print cycle, asking the callbacks at each decision."""
        save_edits = None
        dirty = self._dirty_in_grid()
        if dirty:
            save_edits = await decide_save_edits(dirty)
        pending = await self.prepare(facility, save_edits=save_edits)
        try:
            printed = await confirm_printed(pending)
        except BaseException:
            self.cancel()
            raise
        return await self.finish(printed)

    def _dirty_in_grid(self) -> list[UUID]:
        return [
            photo_id
            for photo_id in self.edits.dirty_ids()
            if self.slot_manager.occupies(photo_id)
        ]

    async def _save_edits(self, photo_ids: list[UUID]) -> None:
        for photo_id in photo_ids:
            try:
                await self.edits.save(photo_id)
            except PersistenceError:
                _logger.warning(
                    "Continuing print without saved edit",
                    extra={"photo_id": str(photo_id)},
                )

    async def _render_and_submit(self, facility: PrintFacility) -> PendingPrint:
        filled = self.slot_manager.filled_slots()
        if not filled:
            raise NothingToPrintError("No photos in template to print")
        self._generation = self.slot_manager.generation
        items = [
            SheetItem(
                photo=slot.photo,
                edit=self.edits.state_for(slot.photo.id, slot.photo.scale),
            )
            for _, slot in filled
        ]
        overlay_url = await self._overlay_url()
        sheet = await self.renderer.render(items, overlay_url)
        job_id = await facility.submit(sheet)
        return PendingPrint(sheet=sheet, job_id=job_id)

    async def _overlay_url(self) -> str | None:
        owner = self.slot_manager.owner
        if owner is None:
            return None
        try:
            return await asyncio.to_thread(self.repository.get_overlay_url, owner)
        except Exception:
            _logger.warning(
                "Overlay lookup failed, printing without frame",
                exc_info=True,
                extra={"owner": owner.key},
            )
            return None

    async def _mark_printed(self, photo_ids: list[UUID]) -> None:
        owner = self.slot_manager.owner
        patch = {
            "status": PhotoStatus.PRINTED.value,
            "printed_at": datetime.now(tz=UTC).isoformat(),
        }
        try:
            await asyncio.to_thread(
                self.repository.update_by_ids, owner, photo_ids, patch
            )
        except Exception as exc:
            _logger.exception(
                "Failed to mark photos printed", extra={"count": len(photo_ids)}
            )
            raise PersistenceError(f"Failed to mark photos printed: {exc}") from exc
