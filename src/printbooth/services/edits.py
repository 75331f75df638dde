"""Pan/zoom edit tracking for photos in the template."""

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from uuid import UUID

from printbooth.domain.errors import PersistenceError
from printbooth.domain.photos import TemplateOwner
from printbooth.domain.template import ZOOM_STEP, EditState, clamp_zoom
from printbooth.services.photos import PhotoRepository

_logger = logging.getLogger(__name__)


@dataclass
class EditTracker:
    """Keeps ephemeral edit state per photo and persists zoom on save."""

    repository: PhotoRepository
    owner: TemplateOwner | None = None
    _states: dict[UUID, EditState] = field(default_factory=dict)

    def reset(self, owner: TemplateOwner | None) -> None:
        """Drop all edit state, e.g. when switching owners."""
        self.owner = owner
        self._states = {}

    def state_for(self, photo_id: UUID, default_zoom: float = 1.0) -> EditState:
        return self._states.get(photo_id, EditState(zoom=clamp_zoom(default_zoom)))

    def states(self) -> dict[UUID, EditState]:
        return dict(self._states)

    def on_transform_change(
        self, photo_id: UUID, x: float, y: float, zoom: float
    ) -> EditState:
        """Record a pan/zoom change and mark the photo dirty."""
        state = EditState(x=x, y=y, zoom=clamp_zoom(zoom), dirty=True)
        self._states[photo_id] = state
        return state

    def zoom_in(self, photo_id: UUID, current: float = 1.0) -> EditState:
        state = self.state_for(photo_id, current)
        return self.on_transform_change(photo_id, state.x, state.y, state.zoom + ZOOM_STEP)

    def zoom_out(self, photo_id: UUID, current: float = 1.0) -> EditState:
        state = self.state_for(photo_id, current)
        return self.on_transform_change(photo_id, state.x, state.y, state.zoom - ZOOM_STEP)

    def reset_to_default(self, photo_id: UUID) -> EditState:
        return self.on_transform_change(photo_id, 0.0, 0.0, 1.0)

    def dirty_ids(self) -> list[UUID]:
        return [photo_id for photo_id, state in self._states.items() if state.dirty]

    async def save(self, photo_id: UUID) -> EditState | None:
        """Persist the zoom of a photo; the dirty flag clears only on success."""
        state = self._states.get(photo_id)
        if state is None or self.owner is None:
            return None
        try:
            await asyncio.to_thread(
                self.repository.update_by_ids,
                self.owner,
                [photo_id],
                {"scale": state.zoom},
            )
        except Exception as exc:
            _logger.exception(
                "Failed to save photo edit", extra={"photo_id": str(photo_id)}
            )
            raise PersistenceError(f"Failed to save changes: {exc}") from exc
        current = self._states.get(photo_id)
        if current is None:
            return None
        if current == state:
            current = replace(current, dirty=False)
            self._states[photo_id] = current
        return current

    def discard(self, photo_ids: Iterable[UUID]) -> None:
        for photo_id in photo_ids:
            self._states.pop(photo_id, None)

    def clear(self) -> None:
        self._states = {}
