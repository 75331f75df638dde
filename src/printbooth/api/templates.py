"""Template view endpoints used by the booth operator."""

import base64
from uuid import UUID

from fastapi import APIRouter, Depends, File, Header, HTTPException, Request, UploadFile

from printbooth.api.admin import require_admin
from printbooth.api.models import (
    ConfirmPrintRequest,
    PrintRequest,
    ReorderRequest,
    TransformRequest,
    edit_payload,
    photo_payload,
    slot_payload,
)
from printbooth.containers import AppContainer
from printbooth.domain.errors import PhotoNotFoundError
from printbooth.domain.photos import OwnerKind, TemplateOwner
from printbooth.services.printing import (
    ManualPrintFacility,
    PrintFacility,
    PrintHelperFacility,
    PrintNodeFacility,
)
from printbooth.services.templates import TemplateSession

router = APIRouter(
    prefix="/templates/{kind}/{owner_id}",
    tags=["templates"],
    dependencies=[Depends(require_admin)],
)


def _container(request: Request) -> AppContainer:
    return request.app.state.container


def get_session(kind: OwnerKind, owner_id: UUID, request: Request) -> TemplateSession:
    """Resolve the open template view addressed by the path."""
    return _container(request).templates.get(TemplateOwner(kind, owner_id))


def _snapshot(session: TemplateSession) -> dict[str, object]:
    return {
        "owner": {"kind": session.owner.kind.value, "id": str(session.owner.id)},
        "slots": [slot_payload(slot) for slot in session.slots.slots],
        "empty_slots": session.slots.empty_count,
        "edits": {
            str(photo_id): edit_payload(edit)
            for photo_id, edit in session.edits.states().items()
        },
        "print_state": session.handoff.state.value,
        "polling": session.poller.running,
    }


def _require_in_grid(session: TemplateSession, photo_id: UUID) -> None:
    if not session.slots.occupies(photo_id):
        raise PhotoNotFoundError(f"Photo {photo_id} is not in the template")


def _current_zoom(session: TemplateSession, photo_id: UUID) -> float:
    for _, slot in session.slots.filled_slots():
        if slot.photo.id == photo_id:
            return slot.photo.scale
    return 1.0


@router.post("/open")
async def open_template(
    kind: OwnerKind, owner_id: UUID, request: Request
) -> dict[str, object]:
    """Open the template view and start polling for new photos."""
    session = await _container(request).templates.open(TemplateOwner(kind, owner_id))
    return _snapshot(session)


@router.post("/close")
async def close_template(
    kind: OwnerKind, owner_id: UUID, request: Request
) -> dict[str, str]:
    await _container(request).templates.close(TemplateOwner(kind, owner_id))
    return {"status": "closed"}


@router.get("/")
async def template_state(
    session: TemplateSession = Depends(get_session),
) -> dict[str, object]:
    return _snapshot(session)


@router.post("/slots/{index}/upload")
async def upload_to_slot(
    index: int,
    file: UploadFile = File(...),
    session: TemplateSession = Depends(get_session),
) -> dict[str, int]:
    """Upload a photo and place it at the slot or the next empty one."""
    content = await file.read()
    placed = await session.upload_to_slot(
        index,
        file.filename or "upload.jpg",
        content,
        content_type=file.content_type or "image/jpeg",
    )
    return {"index": placed}


@router.post("/slots/reorder")
async def reorder_slots(
    body: ReorderRequest, session: TemplateSession = Depends(get_session)
) -> dict[str, object]:
    session.slots.reorder(body.from_index, body.to_index)
    return _snapshot(session)


@router.post("/slots/{index}/duplicate")
async def duplicate_slot(
    index: int, session: TemplateSession = Depends(get_session)
) -> dict[str, int]:
    return {"index": session.slots.duplicate(index)}


@router.delete("/slots/{index}")
async def remove_slot(
    index: int, session: TemplateSession = Depends(get_session)
) -> dict[str, str]:
    photo = await session.slots.remove(index)
    return {"photo_id": str(photo.id)}


@router.post("/clear")
async def clear_template(
    session: TemplateSession = Depends(get_session),
) -> dict[str, int]:
    return {"deleted": await session.clear_template()}


@router.post("/edits/{photo_id}")
async def change_transform(
    photo_id: UUID,
    body: TransformRequest,
    session: TemplateSession = Depends(get_session),
) -> dict[str, object]:
    _require_in_grid(session, photo_id)
    edit = session.edits.on_transform_change(photo_id, body.x, body.y, body.zoom)
    return edit_payload(edit)


@router.post("/edits/{photo_id}/zoom-in")
async def zoom_in(
    photo_id: UUID, session: TemplateSession = Depends(get_session)
) -> dict[str, object]:
    _require_in_grid(session, photo_id)
    return edit_payload(
        session.edits.zoom_in(photo_id, _current_zoom(session, photo_id))
    )


@router.post("/edits/{photo_id}/zoom-out")
async def zoom_out(
    photo_id: UUID, session: TemplateSession = Depends(get_session)
) -> dict[str, object]:
    _require_in_grid(session, photo_id)
    return edit_payload(
        session.edits.zoom_out(photo_id, _current_zoom(session, photo_id))
    )


@router.post("/edits/{photo_id}/reset")
async def reset_edit(
    photo_id: UUID, session: TemplateSession = Depends(get_session)
) -> dict[str, object]:
    _require_in_grid(session, photo_id)
    return edit_payload(session.edits.reset_to_default(photo_id))


@router.post("/edits/{photo_id}/save")
async def save_edit(
    photo_id: UUID, session: TemplateSession = Depends(get_session)
) -> dict[str, object]:
    edit = await session.edits.save(photo_id)
    if edit is None:
        raise HTTPException(status_code=404, detail="No edit for this photo")
    return edit_payload(edit)


@router.post("/print")
async def start_print(
    body: PrintRequest,
    request: Request,
    session: TemplateSession = Depends(get_session),
    x_printnode_api_key: str | None = Header(default=None),
) -> dict[str, object]:
    """Render the grid and hand it to the chosen print facility."""
    facility = _facility(body, _container(request), x_printnode_api_key)
    pending = await session.handoff.prepare(facility, save_edits=body.save_edits)
    return {
        "state": session.handoff.state.value,
        "job_id": pending.job_id,
        "title": pending.sheet.title,
        "photo_ids": [str(photo_id) for photo_id in pending.sheet.photo_ids],
        "pdf": base64.b64encode(pending.sheet.pdf).decode("ascii"),
    }


@router.post("/print/confirm")
async def confirm_print(
    body: ConfirmPrintRequest, session: TemplateSession = Depends(get_session)
) -> dict[str, object]:
    """Record whether the sheet physically printed."""
    outcome = await session.handoff.finish(body.printed)
    return {
        "printed": outcome.printed,
        "job_id": outcome.job_id,
        "photo_ids": [str(photo_id) for photo_id in outcome.photo_ids],
    }


@router.get("/reprints")
async def list_reprints(
    limit: int = 100, session: TemplateSession = Depends(get_session)
) -> dict[str, object]:
    photos = await session.list_reprints(limit)
    return {"photos": [photo_payload(photo) for photo in photos]}


@router.post("/reprints/{photo_id}")
async def add_reprint(
    photo_id: UUID, session: TemplateSession = Depends(get_session)
) -> dict[str, int]:
    return {"index": await session.add_reprint(photo_id)}


def _facility(
    body: PrintRequest, container: AppContainer, api_key: str | None
) -> PrintFacility:
    if body.facility == "printnode":
        if not api_key or body.printer_id is None:
            raise HTTPException(
                status_code=400,
                detail="PrintNode API key and printer id are required",
            )
        return PrintNodeFacility(container.printnode_client, api_key, body.printer_id)
    if body.facility == "helper":
        if not body.printer_name:
            raise HTTPException(status_code=400, detail="Printer name is required")
        return PrintHelperFacility(container.print_helper, body.printer_name)
    return ManualPrintFacility()
