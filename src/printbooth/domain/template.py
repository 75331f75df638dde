"""Domain models for the 3x3 print template."""

from dataclasses import dataclass
from enum import Enum

from printbooth.domain.photos import Photo

SLOT_COUNT = 9
GRID_SIZE = 3

MIN_ZOOM = 0.2
MAX_ZOOM = 3.0
ZOOM_STEP = 0.1


@dataclass(frozen=True)
class TemplateSlot:
    """A slot occupant; duplicates are display copies of another slot's photo."""

    photo: Photo
    is_duplicate: bool = False


@dataclass(frozen=True)
class EditState:
    """Ephemeral pan/zoom state for a photo in the template."""

    x: float = 0.0
    y: float = 0.0
    zoom: float = 1.0
    dirty: bool = False


class PrintState(str, Enum):
    """States of the print handoff."""

    IDLE = "idle"
    SAVING_EDITS = "saving_edits"
    RENDERING = "rendering"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    PERSISTING = "persisting"


def clamp_zoom(value: float) -> float:
    """Clamp a zoom factor into the supported range."""
    return max(MIN_ZOOM, min(MAX_ZOOM, round(value, 2)))
