"""Normalization of cloud print provider job and printer states.

The provider is known to report transient and incomplete data, so every
rule here resolves towards an optimistic status instead of failing: an
unknown state counts as printing, a missing job behind a known job id is
assumed to still be in flight, and missing capability data counts as
supported.
"""

import json
import logging
from dataclasses import dataclass
from datetime import UTC, datetime

from printbooth.adapters.printnode_client import PrintNodeClient, ProviderResponse
from printbooth.domain.errors import UnreliableProviderDataError
from printbooth.domain.printing import JobStatus, JobStatusReport, PrinterInfo

_logger = logging.getLogger(__name__)

_STATE_MAP = {
    "completed": JobStatus.COMPLETED,
    "printed": JobStatus.COMPLETED,
    "finished": JobStatus.COMPLETED,
    "failed": JobStatus.FAILED,
    "error": JobStatus.FAILED,
    "cancelled": JobStatus.FAILED,
    "queued": JobStatus.QUEUED,
    "waiting": JobStatus.QUEUED,
    "pending": JobStatus.QUEUED,
    "in-progress": JobStatus.PRINTING,
    "printing": JobStatus.PRINTING,
    "processing": JobStatus.PRINTING,
}

_MESSAGES = {
    JobStatus.COMPLETED: "Print job completed successfully",
    JobStatus.FAILED: "Print job failed",
    JobStatus.QUEUED: "Print job is queued",
    JobStatus.PRINTING: "Print job is printing",
}

_LETTER_PAPER = "Letter (8.5 x 11 in)"


def describe_printer(raw: object) -> PrinterInfo | None:
    """Build printer info from a provider printer object or list."""
    if isinstance(raw, list):
        raw = raw[0] if raw else None
    if not isinstance(raw, dict):
        return None
    computer = raw.get("computer")
    computer_state = computer.get("state") if isinstance(computer, dict) else None
    capabilities = raw.get("capabilities")
    capabilities = capabilities if isinstance(capabilities, dict) else {}
    return PrinterInfo(
        name=str(raw.get("name") or "Unknown"),
        state=str(raw.get("state") or "online"),
        description=str(raw.get("description") or ""),
        connected=computer_state is None or computer_state == "online",
        supports_photo=_supports_photo(capabilities.get("medias")),
        supports_letter=_supports_letter(
            capabilities.get("medias"), capabilities.get("papers")
        ),
    )


def _supports_photo(medias: object) -> bool:
    if not isinstance(medias, list) or not medias:
        return True
    return any(
        "photo" in str(media).lower() or "premium" in str(media).lower()
        for media in medias
    )


def _supports_letter(medias: object, papers: object) -> bool:
    if isinstance(papers, dict) and papers:
        return _LETTER_PAPER in papers or any("letter" in key.lower() for key in papers)
    if isinstance(medias, list) and medias:
        return any("letter" in str(media).lower() for media in medias)
    return True


def normalize_job_status(
    job: dict[str, object] | None,
    printer: dict[str, object] | None = None,
    *,
    job_id: int | None = None,
    job_found: bool = True,
) -> JobStatusReport:
    """Map a provider job and printer into the internal status vocabulary."""
    printer_info = describe_printer(printer) if printer is not None else None
    job = job if isinstance(job, dict) else {}
    state = str(job.get("state") or "").strip()
    resolved_id = _as_int(job.get("id")) or job_id

    if not job_found or not state:
        if job_id is None and resolved_id is None:
            _logger.warning("Print job data has no job id")
            return JobStatusReport(
                status=JobStatus.ERROR,
                original_state="unknown",
                message="No print job ID found",
                printer=printer_info,
                last_error="Invalid print job data",
            )
        _logger.info(
            "Print job has no state, assuming processing",
            extra={"job_id": resolved_id, "job_found": job_found},
        )
        return JobStatusReport(
            status=JobStatus.PRINTING,
            original_state="processing",
            message="Print job is being processed",
            job_id=resolved_id,
            printer=printer_info,
        )

    status = _STATE_MAP.get(state.lower())
    if status is None:
        _logger.info(
            "Unknown print state, assuming printing", extra={"state": state}
        )
        status = JobStatus.PRINTING
        message = f"Print job is processing (state: {state})"
    elif status is JobStatus.FAILED:
        message = str(job.get("errorMessage") or _MESSAGES[status])
    else:
        message = _MESSAGES[status]

    return JobStatusReport(
        status=status,
        original_state=state,
        message=message,
        job_id=resolved_id,
        printer=printer_info or PrinterInfo(),
        created=_as_str(job.get("createTimestamp")),
        updated=_last_transition(job) or datetime.now(tz=UTC).isoformat(),
    )


def _last_transition(job: dict[str, object]) -> str | None:
    transitions = job.get("state_transitions")
    if isinstance(transitions, list) and transitions:
        last = transitions[-1]
        if isinstance(last, dict):
            return _as_str(last.get("createTimestamp"))
    return None


def _as_int(value: object) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.isdigit():
        return int(value)
    return None


def _as_str(value: object) -> str | None:
    return str(value) if value is not None else None


def _decode(response: ProviderResponse) -> object:
    try:
        return json.loads(response.text)
    except ValueError as exc:
        raise UnreliableProviderDataError("Unparsable provider response") from exc


@dataclass
class PrintStatusService:
    """Fetches provider printer/job data and normalizes it."""

    client: PrintNodeClient

    async def list_printers(self, api_key: str) -> list[dict[str, object]]:
        """Return the printers of the account in a compact form."""
        printers = await self.client.list_printers(api_key)
        formatted = []
        for printer in printers:
            computer = printer.get("computer")
            formatted.append(
                {
                    "id": printer.get("id"),
                    "name": printer.get("name"),
                    "description": printer.get("description") or printer.get("name"),
                    "state": printer.get("state"),
                    "computer": computer.get("name", "Unknown")
                    if isinstance(computer, dict)
                    else "Unknown",
                }
            )
        return formatted

    async def get_status(
        self, api_key: str, job_id: int, printer_id: int
    ) -> JobStatusReport:
        """Return the normalized status of a job; never raises for bad data."""
        printer = await self._fetch_printer(api_key, printer_id)
        try:
            response = await self.client.get_print_job(api_key, job_id)
        except Exception as exc:
            _logger.exception("Failed to get print job status", extra={"job_id": job_id})
            return JobStatusReport(
                status=JobStatus.ERROR,
                original_state="error",
                message="Failed to get print job status",
                job_id=job_id,
                printer=describe_printer(printer) if printer else None,
                last_error=str(exc),
            )
        if response.status_code == 404:
            return normalize_job_status(None, printer, job_id=job_id, job_found=False)
        if response.status_code >= 400:
            _logger.warning(
                "Print job lookup failed",
                extra={"job_id": job_id, "status_code": response.status_code},
            )
            return JobStatusReport(
                status=JobStatus.ERROR,
                original_state="error",
                message="Failed to get print job status",
                job_id=job_id,
                printer=describe_printer(printer) if printer else None,
                last_error=response.text,
            )
        try:
            job = _decode(response)
        except UnreliableProviderDataError:
            _logger.warning("Unparsable print job data", extra={"job_id": job_id})
            return normalize_job_status(None, printer, job_id=job_id, job_found=False)
        if isinstance(job, list):
            job = job[0] if job else None
        return normalize_job_status(
            job if isinstance(job, dict) else None, printer, job_id=job_id
        )

    async def _fetch_printer(
        self, api_key: str, printer_id: int
    ) -> dict[str, object] | None:
        try:
            response = await self.client.get_printer(api_key, printer_id)
            if response.status_code >= 400:
                raise UnreliableProviderDataError(
                    f"Printer lookup returned {response.status_code}"
                )
            printer = _decode(response)
        except Exception:
            _logger.warning(
                "Failed to get printer info", exc_info=True, extra={"printer_id": printer_id}
            )
            return None
        if isinstance(printer, list):
            printer = printer[0] if printer else None
        return printer if isinstance(printer, dict) else None
