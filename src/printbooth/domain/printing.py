"""Domain models for print sheets and print job status."""

from dataclasses import dataclass, field
from enum import Enum
from uuid import UUID


class JobStatus(str, Enum):
    """Normalized print job status vocabulary."""

    QUEUED = "queued"
    PRINTING = "printing"
    COMPLETED = "completed"
    FAILED = "failed"
    ERROR = "error"


@dataclass(frozen=True)
class PrinterInfo:
    """Printer details derived from provider data."""

    name: str = "Unknown"
    state: str = "online"
    description: str = ""
    connected: bool = True
    supports_photo: bool = True
    supports_letter: bool = True


@dataclass(frozen=True)
class JobStatusReport:
    """Normalized status of a print job."""

    status: JobStatus
    original_state: str
    message: str
    job_id: int | None = None
    printer: PrinterInfo | None = None
    created: str | None = None
    updated: str | None = None
    last_error: str | None = None


@dataclass(frozen=True)
class PrintSheet:
    """A rendered template page ready for a print facility."""

    pdf: bytes
    photo_ids: list[UUID]
    title: str


@dataclass(frozen=True)
class PendingPrint:
    """A rendered sheet waiting for the operator to confirm the physical print."""

    sheet: PrintSheet
    job_id: str | None = None


@dataclass(frozen=True)
class PrintOutcome:
    """Result of a completed print handoff."""

    printed: bool
    photo_ids: list[UUID] = field(default_factory=list)
    job_id: str | None = None
