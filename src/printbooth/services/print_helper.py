"""Message link to the desktop print helper.

The helper connects to the service over a WebSocket and answers two
commands: ``GET_PRINTERS`` with a ``PRINTER_LIST`` message, and ``PRINT``
with a stream of ``processing``/``printing`` updates that ends in
``success``, ``error`` or ``info``.
"""

import asyncio
import base64
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol

from printbooth.domain.errors import PrintHelperUnavailableError

_logger = logging.getLogger(__name__)

PRINTER_LIST = "PRINTER_LIST"
FINAL_PRINT_STATUSES = frozenset({"success", "error", "info"})


class HelperSocket(Protocol):
    """The sending half of a helper connection."""

    async def send_json(self, data: Any) -> None:
        """Send one JSON message to the helper."""


@dataclass
class PrintHelperLink:
    """Request/response channel to at most one connected helper.

    Commands are serialized; each one waits for its terminal message or
    fails with `PrintHelperUnavailableError` after `timeout_seconds`.
    """

    timeout_seconds: float = 30.0
    _socket: HelperSocket | None = field(default=None, init=False, repr=False)
    _messages: asyncio.Queue = field(default_factory=asyncio.Queue, init=False, repr=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False, repr=False)

    @property
    def connected(self) -> bool:
        return self._socket is not None

    def attach(self, socket: HelperSocket) -> None:
        """Use a newly connected helper, replacing any previous one."""
        if self._socket is not None:
            _logger.info("Replacing connected print helper")
        self._socket = socket
        self._messages = asyncio.Queue()
        _logger.info("Print helper connected")

    def detach(self, socket: HelperSocket | None = None) -> None:
        """Forget the helper; a stale socket does not detach a newer one."""
        if socket is not None and socket is not self._socket:
            return
        self._socket = None
        self._messages.put_nowait({"status": "error", "message": "Helper disconnected"})
        _logger.info("Print helper disconnected")

    async def handle_message(self, message: dict[str, Any]) -> None:
        """Feed a message received from the helper."""
        _logger.debug("Message from print helper", extra={"status": message.get("status")})
        await self._messages.put(message)

    async def list_printers(self) -> list[dict[str, Any]]:
        """Ask the helper for its printers."""
        reply = await self._command(
            {"command": "GET_PRINTERS"},
            lambda message: message.get("status") == PRINTER_LIST
            or message.get("status") == "error",
        )
        if reply.get("status") != PRINTER_LIST:
            raise PrintHelperUnavailableError(
                str(reply.get("message") or "Print helper returned no printers")
            )
        printers = reply.get("printers")
        return printers if isinstance(printers, list) else []

    async def print_sheet(self, pdf: bytes, printer_name: str) -> dict[str, Any]:
        """Send a PDF to a helper printer and wait for the final status."""
        data = "data:application/pdf;base64," + base64.b64encode(pdf).decode("ascii")
        return await self._command(
            {"command": "PRINT", "data": data, "printerName": printer_name},
            lambda message: message.get("status") in FINAL_PRINT_STATUSES,
        )

    async def _command(
        self, payload: dict[str, Any], is_final: Callable[[dict[str, Any]], bool]
    ) -> dict[str, Any]:
        async with self._lock:
            socket = self._socket
            if socket is None:
                raise PrintHelperUnavailableError("Print helper is not connected")
            while not self._messages.empty():
                self._messages.get_nowait()
            await socket.send_json(payload)
            try:
                return await asyncio.wait_for(
                    self._await_final(is_final), timeout=self.timeout_seconds
                )
            except TimeoutError as exc:
                _logger.warning(
                    "Print helper did not answer", extra={"command": payload["command"]}
                )
                raise PrintHelperUnavailableError("Print helper did not answer") from exc

    async def _await_final(
        self, is_final: Callable[[dict[str, Any]], bool]
    ) -> dict[str, Any]:
        while True:
            message = await self._messages.get()
            if is_final(message):
                return message
