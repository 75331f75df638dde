"""Domain models for booth photos and the owners they belong to."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID


class OwnerKind(str, Enum):
    """Kind of template owner; each kind keeps its photos in its own table."""

    MARKET = "market"
    EVENT = "event"

    @property
    def table(self) -> str:
        return "market_photos" if self is OwnerKind.MARKET else "photos"

    @property
    def owner_column(self) -> str:
        return "market_id" if self is OwnerKind.MARKET else "event_id"

    @property
    def awaiting_status(self) -> str:
        """Status of a photo that still waits for a slot."""
        return "in_template" if self is OwnerKind.MARKET else "pending"

    @property
    def order_prefix(self) -> str:
        return "MKT" if self is OwnerKind.MARKET else "EVT"


class PhotoStatus(str, Enum):
    """Lifecycle statuses shared by market and event photos."""

    PENDING = "pending"
    IN_TEMPLATE = "in_template"
    PRINTED = "printed"
    DELETED = "deleted"


class PhotoOrigin(str, Enum):
    """Where a photo came from, decided once when the row is created."""

    CAMERA_CAPTURE = "camera_capture"
    MANUAL_UPLOAD = "manual_upload"


@dataclass(frozen=True)
class TemplateOwner:
    """The event or market a template view works for."""

    kind: OwnerKind
    id: UUID

    @property
    def key(self) -> str:
        return f"{self.kind.value}_{self.id}"


@dataclass(frozen=True)
class Photo:
    """Represents a photo row in the store."""

    id: UUID
    owner_id: UUID
    source_url: str
    status: str
    created_at: datetime
    origin: PhotoOrigin = PhotoOrigin.CAMERA_CAPTURE
    printed_at: datetime | None = None
    order_code: str | None = None
    scale: float = 1.0

    @property
    def receives_overlay(self) -> bool:
        """Only camera captures are framed with the owner's overlay."""
        return self.origin is PhotoOrigin.CAMERA_CAPTURE
