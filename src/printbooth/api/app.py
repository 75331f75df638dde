"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from uuid import UUID

import httpx
from fastapi import (
    Depends,
    FastAPI,
    File,
    Header,
    HTTPException,
    Request,
    UploadFile,
    WebSocket,
    WebSocketDisconnect,
    status,
)
from fastapi.responses import JSONResponse

from printbooth.api.admin import require_admin
from printbooth.api.models import photo_payload, status_payload
from printbooth.api.templates import router as templates_router
from printbooth.app_logging import configure_logging
from printbooth.containers import AppContainer
from printbooth.domain.errors import (
    HandoffStateError,
    NoEmptySlotError,
    NothingToPrintError,
    PersistenceError,
    PhotoNotFoundError,
    PrintBoothError,
    PrintHelperUnavailableError,
    PrintSubmissionError,
    SlotIndexError,
    TemplateNotOpenError,
    UnsavedEditsError,
)
from printbooth.domain.photos import OwnerKind, TemplateOwner

_ERROR_STATUS: dict[type[PrintBoothError], int] = {
    TemplateNotOpenError: status.HTTP_404_NOT_FOUND,
    PhotoNotFoundError: status.HTTP_404_NOT_FOUND,
    SlotIndexError: status.HTTP_404_NOT_FOUND,
    NoEmptySlotError: status.HTTP_409_CONFLICT,
    HandoffStateError: status.HTTP_409_CONFLICT,
    UnsavedEditsError: status.HTTP_409_CONFLICT,
    NothingToPrintError: 422,
    PersistenceError: status.HTTP_502_BAD_GATEWAY,
    PrintSubmissionError: status.HTTP_502_BAD_GATEWAY,
    PrintHelperUnavailableError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(templates_router)

    @app.exception_handler(PrintBoothError)
    async def booth_error_handler(
        request: Request, exc: PrintBoothError
    ) -> JSONResponse:
        status_code = _status_for(exc)
        logger.info(
            "Request failed",
            extra={"path": request.url.path, "error": type(exc).__name__},
        )
        content: dict[str, object] = {
            "error": type(exc).__name__,
            "detail": str(exc),
        }
        if isinstance(exc, UnsavedEditsError):
            content["photo_ids"] = [str(photo_id) for photo_id in exc.photo_ids]
        return JSONResponse(status_code=status_code, content=content)

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.post("/owners/{kind}/{owner_id}/photos")
    async def submit_guest_photo(
        kind: OwnerKind,
        owner_id: UUID,
        request: Request,
        file: UploadFile = File(...),
        order_code: str | None = None,
    ) -> dict[str, object]:
        """Store a booth camera capture so the template picks it up."""
        state_container: AppContainer = request.app.state.container
        photo = await state_container.photo_uploader.submit_guest_photo(
            TemplateOwner(kind, owner_id), await file.read(), order_code
        )
        return photo_payload(photo)

    @app.get("/print/printers", dependencies=[Depends(require_admin)])
    async def list_printers(
        request: Request,
        source: str = "printnode",
        x_printnode_api_key: str | None = Header(default=None),
    ) -> dict[str, object]:
        """List printers of the cloud account or of the connected helper."""
        state_container: AppContainer = request.app.state.container
        if source == "helper":
            return {"printers": await state_container.print_helper.list_printers()}
        if not x_printnode_api_key:
            raise HTTPException(status_code=400, detail="PrintNode API key is required")
        try:
            printers = await state_container.print_status_service.list_printers(
                x_printnode_api_key
            )
        except (httpx.HTTPError, ValueError) as exc:
            logger.exception("Failed to fetch printers")
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail="Failed to fetch printers",
            ) from exc
        return {"printers": printers}

    @app.get("/print/status", dependencies=[Depends(require_admin)])
    async def print_status(
        request: Request,
        job_id: int,
        printer_id: int,
        x_printnode_api_key: str | None = Header(default=None),
    ) -> dict[str, object]:
        """Return the normalized status of a cloud print job."""
        if not x_printnode_api_key:
            raise HTTPException(status_code=400, detail="PrintNode API key is required")
        state_container: AppContainer = request.app.state.container
        report = await state_container.print_status_service.get_status(
            x_printnode_api_key, job_id, printer_id
        )
        return status_payload(report)

    @app.websocket("/print-helper/ws")
    async def print_helper_socket(websocket: WebSocket, token: str | None = None) -> None:
        """Connection point for the desktop print helper."""
        state_container: AppContainer = websocket.app.state.container
        if not token or token != state_container.settings.admin_token:
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return
        await websocket.accept()
        link = state_container.print_helper
        link.attach(websocket)
        try:
            while True:
                message = await websocket.receive_json()
                if isinstance(message, dict):
                    await link.handle_message(message)
        except WebSocketDisconnect:
            logger.info("Print helper socket closed")
        finally:
            link.detach(websocket)

    return app


def _status_for(exc: PrintBoothError) -> int:
    for error_type in type(exc).__mro__:
        if error_type in _ERROR_STATUS:
            return _ERROR_STATUS[error_type]
    return status.HTTP_400_BAD_REQUEST
