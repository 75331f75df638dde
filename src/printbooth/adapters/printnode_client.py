"""PrintNode cloud print API client."""

from dataclasses import dataclass
from typing import Protocol

import httpx


@dataclass(frozen=True)
class ProviderResponse:
    """Raw provider response; the body stays undecoded for tolerant parsing."""

    status_code: int
    text: str


class PrintNodeClient(Protocol):
    """Interface for PrintNode API interactions."""

    async def list_printers(self, api_key: str) -> list[dict[str, object]]:
        """Return the raw printer list for an account."""

    async def get_printer(self, api_key: str, printer_id: int) -> ProviderResponse:
        """Fetch a printer by id."""

    async def get_print_job(self, api_key: str, job_id: int) -> ProviderResponse:
        """Fetch a print job by id."""

    async def submit_print_job(
        self, api_key: str, printer_id: int, pdf_base64: str, title: str
    ) -> int:
        """Submit a PDF print job and return its id."""


@dataclass
class HttpxPrintNodeClient(PrintNodeClient):
    """HTTPX-backed PrintNode client; the API key is passed per request."""

    base_url: str
    http_client: httpx.AsyncClient

    @classmethod
    def create(cls, base_url: str) -> "HttpxPrintNodeClient":
        """Create a PrintNode client with a managed httpx session."""
        return cls(base_url=base_url, http_client=httpx.AsyncClient())

    async def list_printers(self, api_key: str) -> list[dict[str, object]]:
        """Return the raw printer list."""
        response = await self.http_client.get(
            f"{self.base_url}/printers", auth=(api_key, ""), timeout=15
        )
        response.raise_for_status()
        payload = response.json()
        if not isinstance(payload, list):
            raise ValueError("Unexpected response from PrintNode")
        return payload

    async def get_printer(self, api_key: str, printer_id: int) -> ProviderResponse:
        """Fetch a printer without raising on error status codes."""
        response = await self.http_client.get(
            f"{self.base_url}/printers/{printer_id}", auth=(api_key, ""), timeout=15
        )
        return ProviderResponse(status_code=response.status_code, text=response.text)

    async def get_print_job(self, api_key: str, job_id: int) -> ProviderResponse:
        """Fetch a print job without raising on error status codes."""
        response = await self.http_client.get(
            f"{self.base_url}/printjobs/{job_id}", auth=(api_key, ""), timeout=15
        )
        return ProviderResponse(status_code=response.status_code, text=response.text)

    async def submit_print_job(
        self, api_key: str, printer_id: int, pdf_base64: str, title: str
    ) -> int:
        """Submit a PDF job with the letter-size photo sheet options."""
        payload = {
            "printerId": printer_id,
            "title": title,
            "contentType": "pdf_base64",
            "content": pdf_base64,
            "source": "PrintBooth App",
            "options": {
                "copies": 1,
                "dpi": "300",
                "paper": "Letter",
                "fit_to_page": True,
                "color": True,
            },
        }
        response = await self.http_client.post(
            f"{self.base_url}/printjobs",
            auth=(api_key, ""),
            json=payload,
            timeout=30,
        )
        response.raise_for_status()
        job_id = response.json()
        if not isinstance(job_id, int):
            raise ValueError(f"Invalid job id received from PrintNode: {job_id!r}")
        return job_id

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
