"""Request bodies and response serializers for the operator API."""

from typing import Literal

from pydantic import BaseModel, Field

from printbooth.domain.photos import Photo
from printbooth.domain.printing import JobStatusReport, PrinterInfo
from printbooth.domain.template import EditState, TemplateSlot


class TransformRequest(BaseModel):
    x: float = 0.0
    y: float = 0.0
    zoom: float = 1.0


class ReorderRequest(BaseModel):
    from_index: int = Field(ge=0)
    to_index: int = Field(ge=0)


class PrintRequest(BaseModel):
    """How the sheet leaves the service and what to do with unsaved edits."""

    facility: Literal["manual", "printnode", "helper"] = "manual"
    save_edits: bool | None = None
    printer_id: int | None = None
    printer_name: str | None = None


class ConfirmPrintRequest(BaseModel):
    printed: bool


def photo_payload(photo: Photo) -> dict[str, object]:
    return {
        "id": str(photo.id),
        "source_url": photo.source_url,
        "status": photo.status,
        "origin": photo.origin.value,
        "order_code": photo.order_code,
        "scale": photo.scale,
        "created_at": photo.created_at.isoformat(),
        "printed_at": photo.printed_at.isoformat() if photo.printed_at else None,
    }


def slot_payload(slot: TemplateSlot | None) -> dict[str, object] | None:
    if slot is None:
        return None
    return {"photo": photo_payload(slot.photo), "is_duplicate": slot.is_duplicate}


def edit_payload(edit: EditState) -> dict[str, object]:
    return {"x": edit.x, "y": edit.y, "zoom": edit.zoom, "dirty": edit.dirty}


def printer_payload(printer: PrinterInfo | None) -> dict[str, object] | None:
    if printer is None:
        return None
    return {
        "name": printer.name,
        "state": printer.state,
        "description": printer.description,
        "connected": printer.connected,
        "capabilities": {
            "supports_photo": printer.supports_photo,
            "supports_letter": printer.supports_letter,
        },
    }


def status_payload(report: JobStatusReport) -> dict[str, object]:
    """Serialize a job status in the shape the booth frontend polls for."""
    return {
        "status": report.status.value,
        "originalState": report.original_state,
        "message": report.message,
        "jobId": report.job_id,
        "printer": printer_payload(report.printer),
        "created": report.created,
        "updated": report.updated,
        "lastError": report.last_error,
    }
