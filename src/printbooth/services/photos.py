"""Photo store interfaces and guest photo submission."""

import asyncio
import logging
import random
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol
from uuid import UUID

from printbooth.domain.errors import PersistenceError
from printbooth.domain.photos import Photo, PhotoOrigin, TemplateOwner

_logger = logging.getLogger(__name__)


class PhotoRepository(Protocol):
    """Persistence interface for photo rows."""

    def list_awaiting(self, owner: TemplateOwner) -> list[Photo]:
        """Return photos waiting for a slot, oldest first."""

    def query(
        self,
        owner: TemplateOwner,
        statuses: list[str],
        *,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Photo]:
        """Return photos of an owner with one of the given statuses."""

    def get_photo(self, owner: TemplateOwner, photo_id: UUID) -> Photo | None:
        """Return a photo by id, if present."""

    def insert(self, owner: TemplateOwner, payload: dict[str, object]) -> Photo:
        """Insert a photo row and return it."""

    def update_by_filter(
        self,
        owner: TemplateOwner,
        filters: dict[str, object],
        patch: dict[str, object],
    ) -> None:
        """Update every row of the owner matching all filters."""

    def update_by_ids(
        self, owner: TemplateOwner, photo_ids: list[UUID], patch: dict[str, object]
    ) -> None:
        """Update the given rows in one request."""

    def get_overlay_url(self, owner: TemplateOwner) -> str | None:
        """Return the frame overlay configured for the owner, if any."""


class PhotoStorage(Protocol):
    """Object storage interface for photo files."""

    def upload(self, path: str, content: bytes, content_type: str) -> None:
        """Upload a file to the given path."""

    def get_public_url(self, path: str) -> str:
        """Return the public URL of a stored file."""


def admin_order_code(owner: TemplateOwner, now: datetime | None = None) -> str:
    """Order code for photos an operator adds by hand."""
    stamp = int((now or datetime.now(tz=UTC)).timestamp() * 1000)
    return f"{owner.kind.order_prefix}-ADMIN-{str(stamp)[-6:]}"


def guest_order_code(owner: TemplateOwner, now: datetime | None = None) -> str:
    """Order code for photos taken by guests on the booth camera."""
    year = (now or datetime.now(tz=UTC)).year
    return f"{owner.kind.order_prefix}-{year}-{random.randint(0, 9999):04d}"  # noqa: S311


def storage_path(owner: TemplateOwner, filename: str, now: datetime | None = None) -> str:
    """Build a unique object path for an owner's photo file."""
    stamp = int((now or datetime.now(tz=UTC)).timestamp() * 1000)
    return f"{owner.kind.value}/{owner.id}/{stamp}-{filename}"


@dataclass
class PhotoUploader:
    """Uploads photo files and records them as rows awaiting a slot."""

    repository: PhotoRepository
    storage: PhotoStorage

    async def upload(  # noqa: PLR0913
        self,
        owner: TemplateOwner,
        filename: str,
        content: bytes,
        *,
        origin: PhotoOrigin,
        order_code: str,
        content_type: str = "image/jpeg",
    ) -> Photo:
        """Store the file, insert its row and return the new photo."""
        path = storage_path(owner, filename)
        try:
            await asyncio.to_thread(self.storage.upload, path, content, content_type)
            url = await asyncio.to_thread(self.storage.get_public_url, path)
            return await asyncio.to_thread(
                self.repository.insert,
                owner,
                {
                    "source_url": url,
                    "status": owner.kind.awaiting_status,
                    "origin": origin.value,
                    "order_code": order_code,
                },
            )
        except Exception as exc:
            _logger.exception(
                "Failed to store photo",
                extra={"owner": owner.key, "path": path},
            )
            raise PersistenceError(f"Failed to store photo: {exc}") from exc

    async def submit_guest_photo(
        self, owner: TemplateOwner, content: bytes, order_code: str | None = None
    ) -> Photo:
        """Store a camera capture so the template poller can pick it up."""
        return await self.upload(
            owner,
            "capture.jpg",
            content,
            origin=PhotoOrigin.CAMERA_CAPTURE,
            order_code=order_code or guest_order_code(owner),
        )
