"""Tests for sheet rendering."""

import asyncio
import io

from PIL import Image

from printbooth.domain.template import EditState
from printbooth.services.rendering import (
    PHOTO_SIZE,
    SheetItem,
    SheetRenderer,
    compose_sheet,
    fit_photo,
)
from tests.conftest import jpeg_bytes, make_photo


def test_fit_photo_zoom_in_fills_square() -> None:
    image = Image.new("RGB", (400, 200), "blue")

    fitted = fit_photo(image, 2.0)

    assert fitted.size == (PHOTO_SIZE, PHOTO_SIZE)
    assert fitted.getpixel((0, 0)) == (0, 0, 255)


def test_fit_photo_zoom_out_leaves_white_border() -> None:
    image = Image.new("RGB", (300, 300), "blue")

    fitted = fit_photo(image, 0.5)

    assert fitted.size == (PHOTO_SIZE, PHOTO_SIZE)
    assert fitted.getpixel((0, 0)) == (255, 255, 255)
    assert fitted.getpixel((PHOTO_SIZE // 2, PHOTO_SIZE // 2)) == (0, 0, 255)


def test_compose_sheet_returns_pdf(owner) -> None:
    items = [
        SheetItem(make_photo(owner, minute, order_code="MKT-2025-0001"), EditState())
        for minute in range(3)
    ]

    pdf = compose_sheet(
        items,
        [jpeg_bytes() for _ in items],
        overlay=_png_overlay(),
        caption="www.printbooth.test",
    )

    assert pdf.startswith(b"%PDF")


def test_renderer_collects_unique_ids(owner, fetcher) -> None:
    photo = make_photo(owner)
    items = [SheetItem(photo, EditState()), SheetItem(photo, EditState(zoom=1.5))]

    sheet = asyncio.run(SheetRenderer(fetcher).render(items))

    assert sheet.photo_ids == [photo.id]
    assert sheet.title.startswith("PrintBooth Job - ")
    assert fetcher.fetched == [photo.source_url, photo.source_url]


def _png_overlay() -> bytes:
    buffer = io.BytesIO()
    Image.new("RGBA", (100, 100), (255, 0, 0, 64)).save(buffer, format="PNG")
    return buffer.getvalue()
