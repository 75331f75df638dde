"""Supabase-backed photo repository."""

from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

from supabase import Client

from printbooth.domain.photos import OwnerKind, Photo, PhotoOrigin, TemplateOwner
from printbooth.services.photos import PhotoRepository

_URL_COLUMNS = {
    OwnerKind.MARKET: "photo_url",
    OwnerKind.EVENT: "url",
}

_OVERLAY_SOURCES = {
    OwnerKind.MARKET: ("market_camera_settings", "border_url"),
    OwnerKind.EVENT: ("design_settings", "frame_overlay"),
}


@dataclass
class SupabasePhotoRepository(PhotoRepository):
    """Supabase implementation for market and event photo rows."""

    client: Client

    def list_awaiting(self, owner: TemplateOwner) -> list[Photo]:
        """Return photos waiting for a slot, oldest first."""
        response = (
            self.client.table(owner.kind.table)
            .select("*")
            .eq(owner.kind.owner_column, str(owner.id))
            .eq("status", owner.kind.awaiting_status)
            .is_("printed_at", "null")
            .order("created_at", desc=False)
            .execute()
        )
        return [_row_to_photo(owner, row) for row in response.data or []]

    def query(
        self,
        owner: TemplateOwner,
        statuses: list[str],
        *,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Photo]:
        """Return photos of an owner with one of the given statuses."""
        request = (
            self.client.table(owner.kind.table)
            .select("*")
            .eq(owner.kind.owner_column, str(owner.id))
            .in_("status", statuses)
            .order("created_at", desc=descending)
        )
        if limit is not None:
            request = request.limit(limit)
        response = request.execute()
        return [_row_to_photo(owner, row) for row in response.data or []]

    def get_photo(self, owner: TemplateOwner, photo_id: UUID) -> Photo | None:
        """Return a photo by id, if present."""
        response = (
            self.client.table(owner.kind.table)
            .select("*")
            .eq("id", str(photo_id))
            .eq(owner.kind.owner_column, str(owner.id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _row_to_photo(owner, response.data[0])

    def insert(self, owner: TemplateOwner, payload: dict[str, object]) -> Photo:
        """Insert a photo row and return it."""
        row = {
            owner.kind.owner_column: str(owner.id),
            _URL_COLUMNS[owner.kind]: payload["source_url"],
            "status": payload.get("status", owner.kind.awaiting_status),
            "origin": payload.get("origin", PhotoOrigin.CAMERA_CAPTURE.value),
            "order_code": payload.get("order_code"),
        }
        response = self.client.table(owner.kind.table).insert(row).execute()
        if not response.data:
            raise RuntimeError("Failed to create photo row")
        return _row_to_photo(owner, response.data[0])

    def update_by_filter(
        self,
        owner: TemplateOwner,
        filters: dict[str, object],
        patch: dict[str, object],
    ) -> None:
        """Update every row of the owner matching all filters."""
        request = (
            self.client.table(owner.kind.table)
            .update(_with_timestamp(patch))
            .eq(owner.kind.owner_column, str(owner.id))
        )
        for column, value in filters.items():
            request = request.eq(column, value)
        request.execute()

    def update_by_ids(
        self, owner: TemplateOwner, photo_ids: list[UUID], patch: dict[str, object]
    ) -> None:
        """Update the given rows in one request."""
        if not photo_ids:
            return
        self.client.table(owner.kind.table).update(_with_timestamp(patch)).in_(
            "id", [str(photo_id) for photo_id in photo_ids]
        ).execute()

    def get_overlay_url(self, owner: TemplateOwner) -> str | None:
        """Return the frame overlay configured for the owner, if any."""
        table, column = _OVERLAY_SOURCES[owner.kind]
        response = (
            self.client.table(table)
            .select(column)
            .eq(owner.kind.owner_column, str(owner.id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        value = response.data[0].get(column)
        return str(value) if value else None


def _with_timestamp(patch: dict[str, object]) -> dict[str, object]:
    return {**patch, "updated_at": datetime.now(tz=UTC).isoformat()}


def _row_to_photo(owner: TemplateOwner, row: dict[str, object]) -> Photo:
    return Photo(
        id=UUID(str(row["id"])),
        owner_id=owner.id,
        source_url=str(row.get(_URL_COLUMNS[owner.kind]) or ""),
        status=str(row.get("status") or owner.kind.awaiting_status),
        created_at=_parse_timestamp(row.get("created_at")) or datetime.now(tz=UTC),
        origin=_parse_origin(row),
        printed_at=_parse_timestamp(row.get("printed_at")),
        order_code=row.get("order_code"),
        scale=float(row.get("scale") or 1.0),
    )


def _parse_origin(row: dict[str, object]) -> PhotoOrigin:
    """Read the stored origin; legacy rows fall back to their upload source."""
    raw = row.get("origin")
    if raw:
        try:
            return PhotoOrigin(str(raw))
        except ValueError:
            pass
    if row.get("column_source") == "admin_upload" or row.get("source") == "admin":
        return PhotoOrigin.MANUAL_UPLOAD
    return PhotoOrigin.CAMERA_CAPTURE


def _parse_timestamp(value: object) -> datetime | None:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed
