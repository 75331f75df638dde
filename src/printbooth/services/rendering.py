"""Rendering of the 3x3 template onto a printable letter page.

All layout math happens in 300 DPI pixel space: a letter page is
2550x3300 px, each grid cell is 2.717 in square and holds a centered
2 in photo, which is the size of the finished magnet.
"""

import asyncio
import io
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol
from uuid import UUID

from PIL import Image, ImageDraw, ImageFont, ImageOps

from printbooth.domain.photos import Photo
from printbooth.domain.printing import PrintSheet
from printbooth.domain.template import GRID_SIZE, EditState

DPI = 300
PAGE_WIDTH = int(8.5 * DPI)
PAGE_HEIGHT = int(11.0 * DPI)
CELL_SIZE = round(2.717 * DPI)
PHOTO_SIZE = 2 * DPI
GRID_WIDTH = CELL_SIZE * GRID_SIZE
TEXT_SIZE = 32

_logger = logging.getLogger(__name__)


class ImageFetcher(Protocol):
    """Interface for downloading images."""

    async def fetch(self, url: str) -> bytes:
        """Return the raw bytes of the image at a URL."""


@dataclass(frozen=True)
class SheetItem:
    """One photo to draw, with the edit state to apply."""

    photo: Photo
    edit: EditState


@dataclass
class SheetRenderer:
    """Composes template photos into a single-page PDF."""

    fetcher: ImageFetcher
    caption: str | None = None

    async def render(
        self, items: list[SheetItem], overlay_url: str | None = None
    ) -> PrintSheet:
        """Download the images and lay them out in grid order."""
        images = await asyncio.gather(
            *(self.fetcher.fetch(item.photo.source_url) for item in items)
        )
        overlay = None
        if overlay_url and any(item.photo.receives_overlay for item in items):
            try:
                overlay = await self.fetcher.fetch(overlay_url)
            except Exception:
                _logger.warning(
                    "Overlay failed to load", exc_info=True, extra={"url": overlay_url}
                )
        pdf = await asyncio.to_thread(
            compose_sheet, items, list(images), overlay, self.caption
        )
        return PrintSheet(
            pdf=pdf,
            photo_ids=_unique_ids(items),
            title=f"PrintBooth Job - {datetime.now(tz=UTC).isoformat()}",
        )


def compose_sheet(
    items: list[SheetItem],
    images: list[bytes],
    overlay: bytes | None = None,
    caption: str | None = None,
) -> bytes:
    """Draw the photos onto a letter page and return it as PDF bytes."""
    page = Image.new("RGB", (PAGE_WIDTH, PAGE_HEIGHT), "white")
    draw = ImageDraw.Draw(page)
    font = _load_font()
    overlay_image = _open(overlay).convert("RGBA") if overlay else None
    offset_x = (PAGE_WIDTH - GRID_WIDTH) // 2
    offset_y = (PAGE_HEIGHT - GRID_WIDTH) // 2
    margin = (CELL_SIZE - PHOTO_SIZE) // 2

    for position, (item, raw) in enumerate(zip(items, images, strict=True)):
        row, col = divmod(position, GRID_SIZE)
        photo_x = offset_x + col * CELL_SIZE + margin
        photo_y = offset_y + row * CELL_SIZE + margin
        square = fit_photo(_open(raw), item.edit.zoom)
        page.paste(square, (photo_x, photo_y))
        if overlay_image is not None and item.photo.receives_overlay:
            frame = overlay_image.resize((PHOTO_SIZE, PHOTO_SIZE))
            page.paste(frame, (photo_x, photo_y), frame)
        if item.photo.order_code:
            _draw_centered(
                draw,
                (photo_x + PHOTO_SIZE // 2, photo_y - margin // 2),
                item.photo.order_code,
                font,
            )
        if caption:
            _draw_upside_down(page, caption, font, photo_x, photo_y + PHOTO_SIZE)

    buffer = io.BytesIO()
    page.save(buffer, format="PDF", resolution=DPI)
    return buffer.getvalue()


def fit_photo(image: Image.Image, zoom: float) -> Image.Image:
    """Crop or shrink a photo into the printed square according to zoom."""
    image = ImageOps.exif_transpose(image).convert("RGB")
    side = min(image.width, image.height)
    if zoom >= 1:
        crop = max(1, round(side / zoom))
        left = (image.width - crop) // 2
        top = (image.height - crop) // 2
        return image.crop((left, top, left + crop, top + crop)).resize(
            (PHOTO_SIZE, PHOTO_SIZE)
        )
    square = ImageOps.fit(image, (side, side)).resize(
        (max(1, round(PHOTO_SIZE * zoom)),) * 2
    )
    canvas = Image.new("RGB", (PHOTO_SIZE, PHOTO_SIZE), "white")
    inset = (PHOTO_SIZE - square.width) // 2
    canvas.paste(square, (inset, inset))
    return canvas


def _draw_upside_down(
    page: Image.Image, text: str, font: ImageFont.ImageFont, x: int, y: int
) -> None:
    label = Image.new("RGB", (PHOTO_SIZE, TEXT_SIZE + 8), "white")
    _draw_centered(
        ImageDraw.Draw(label), (PHOTO_SIZE // 2, label.height // 2), text, font
    )
    page.paste(label.rotate(180), (x, y + 8))


def _draw_centered(
    draw: ImageDraw.ImageDraw,
    center: tuple[int, int],
    text: str,
    font: ImageFont.ImageFont,
) -> None:
    left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
    position = (center[0] - (right - left) // 2, center[1] - (bottom - top) // 2)
    draw.text(position, text, fill="black", font=font)


def _load_font() -> ImageFont.ImageFont:
    try:
        return ImageFont.truetype("DejaVuSans.ttf", TEXT_SIZE)
    except OSError:
        return ImageFont.load_default(size=TEXT_SIZE)


def _open(raw: bytes) -> Image.Image:
    image = Image.open(io.BytesIO(raw))
    image.load()
    return image


def _unique_ids(items: list[SheetItem]) -> list[UUID]:
    seen: list[UUID] = []
    for item in items:
        if item.photo.id not in seen:
            seen.append(item.photo.id)
    return seen
