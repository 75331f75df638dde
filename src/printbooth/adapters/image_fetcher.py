"""HTTP download of photo and overlay images."""

from dataclasses import dataclass

import httpx

from printbooth.services.rendering import ImageFetcher


@dataclass
class HttpxImageFetcher(ImageFetcher):
    """HTTPX-backed image downloader."""

    http_client: httpx.AsyncClient

    @classmethod
    def create(cls) -> "HttpxImageFetcher":
        """Create a fetcher with a managed httpx session."""
        return cls(http_client=httpx.AsyncClient(follow_redirects=True))

    async def fetch(self, url: str) -> bytes:
        """Download the image at a URL."""
        response = await self.http_client.get(url, timeout=20)
        response.raise_for_status()
        return response.content

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
