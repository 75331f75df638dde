"""Shared test fixtures."""

import io
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta
from uuid import UUID, uuid4

import pytest
from PIL import Image

from printbooth.adapters.printnode_client import PrintNodeClient, ProviderResponse
from printbooth.config import Settings
from printbooth.containers import AppContainer
from printbooth.domain.photos import (
    OwnerKind,
    Photo,
    PhotoOrigin,
    TemplateOwner,
)
from printbooth.services.photos import PhotoRepository, PhotoStorage, PhotoUploader
from printbooth.services.print_helper import PrintHelperLink
from printbooth.services.print_status import PrintStatusService
from printbooth.services.processed import InMemoryProcessedSetStore, ProcessedSetCache
from printbooth.services.rendering import ImageFetcher, SheetRenderer
from printbooth.services.slots import TemplateSlotManager
from printbooth.services.templates import TemplateSessions

BASE_TIME = datetime(2025, 5, 3, 10, 0, tzinfo=UTC)


def make_photo(
    owner: TemplateOwner,
    minutes: int = 0,
    *,
    origin: PhotoOrigin = PhotoOrigin.CAMERA_CAPTURE,
    order_code: str | None = None,
    status: str | None = None,
) -> Photo:
    """Build a photo created `minutes` after a fixed base time."""
    photo_id = uuid4()
    return Photo(
        id=photo_id,
        owner_id=owner.id,
        source_url=f"https://cdn.test/{photo_id}.jpg",
        status=status or owner.kind.awaiting_status,
        created_at=BASE_TIME + timedelta(minutes=minutes),
        origin=origin,
        order_code=order_code,
    )


def jpeg_bytes(size: tuple[int, int] = (40, 30), color: str = "red") -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="JPEG")
    return buffer.getvalue()


@dataclass
class InMemoryPhotoRepository(PhotoRepository):
    """In-memory photo repository for tests."""

    photos: dict[UUID, Photo] = field(default_factory=dict)
    overlay_url: str | None = None
    fail_updates: bool = False
    fail_reads: bool = False
    update_calls: list[tuple[list[UUID], dict[str, object]]] = field(
        default_factory=list
    )
    list_calls: int = 0

    def add(self, *photos: Photo) -> None:
        for photo in photos:
            self.photos[photo.id] = photo

    def list_awaiting(self, owner: TemplateOwner) -> list[Photo]:
        self.list_calls += 1
        if self.fail_reads:
            raise ConnectionError("store unavailable")
        return sorted(
            (
                photo
                for photo in self.photos.values()
                if photo.owner_id == owner.id
                and photo.status == owner.kind.awaiting_status
                and photo.printed_at is None
            ),
            key=lambda photo: photo.created_at,
        )

    def query(
        self,
        owner: TemplateOwner,
        statuses: list[str],
        *,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Photo]:
        if self.fail_reads:
            raise ConnectionError("store unavailable")
        photos = sorted(
            (
                photo
                for photo in self.photos.values()
                if photo.owner_id == owner.id and photo.status in statuses
            ),
            key=lambda photo: photo.created_at,
            reverse=descending,
        )
        return photos[:limit] if limit is not None else photos

    def get_photo(self, owner: TemplateOwner, photo_id: UUID) -> Photo | None:
        photo = self.photos.get(photo_id)
        if photo is None or photo.owner_id != owner.id:
            return None
        return photo

    def insert(self, owner: TemplateOwner, payload: dict[str, object]) -> Photo:
        photo = Photo(
            id=uuid4(),
            owner_id=owner.id,
            source_url=str(payload["source_url"]),
            status=str(payload.get("status", owner.kind.awaiting_status)),
            created_at=datetime.now(tz=UTC),
            origin=PhotoOrigin(str(payload["origin"])),
            order_code=payload.get("order_code"),  # type: ignore[arg-type]
        )
        self.photos[photo.id] = photo
        return photo

    def update_by_filter(
        self,
        owner: TemplateOwner,
        filters: dict[str, object],
        patch: dict[str, object],
    ) -> None:
        matching = [
            photo.id
            for photo in self.photos.values()
            if photo.owner_id == owner.id
            and all(getattr(photo, key, None) == value for key, value in filters.items())
        ]
        self.update_by_ids(owner, matching, patch)

    def update_by_ids(
        self, owner: TemplateOwner, photo_ids: list[UUID], patch: dict[str, object]
    ) -> None:
        if self.fail_updates:
            raise ConnectionError("write rejected")
        self.update_calls.append((list(photo_ids), dict(patch)))
        for photo_id in photo_ids:
            photo = self.photos.get(photo_id)
            if photo is None:
                continue
            changes: dict[str, object] = {}
            if "status" in patch:
                changes["status"] = patch["status"]
            if "printed_at" in patch:
                raw = patch["printed_at"]
                changes["printed_at"] = (
                    datetime.fromisoformat(str(raw)) if raw is not None else None
                )
            if "scale" in patch:
                changes["scale"] = patch["scale"]
            self.photos[photo_id] = replace(photo, **changes)

    def get_overlay_url(self, owner: TemplateOwner) -> str | None:
        return self.overlay_url


@dataclass
class InMemoryPhotoStorage(PhotoStorage):
    """In-memory object storage for tests."""

    files: dict[str, bytes] = field(default_factory=dict)

    def upload(self, path: str, content: bytes, content_type: str) -> None:
        self.files[path] = content

    def get_public_url(self, path: str) -> str:
        return f"https://cdn.test/storage/{path}"


@dataclass
class FakeImageFetcher(ImageFetcher):
    """Fake fetcher returning a small JPEG for every URL."""

    content: bytes = field(default_factory=jpeg_bytes)
    failing_urls: set[str] = field(default_factory=set)
    fetched: list[str] = field(default_factory=list)

    async def fetch(self, url: str) -> bytes:
        self.fetched.append(url)
        if url in self.failing_urls:
            raise ConnectionError(f"cannot fetch {url}")
        return self.content


@dataclass
class FakePrintNodeClient(PrintNodeClient):
    """Fake PrintNode client with canned responses."""

    printers: list[dict[str, object]] = field(default_factory=list)
    printer_response: ProviderResponse = field(
        default_factory=lambda: ProviderResponse(200, "[]")
    )
    job_response: ProviderResponse = field(
        default_factory=lambda: ProviderResponse(200, "[]")
    )
    next_job_id: int = 4242
    submitted: list[dict[str, object]] = field(default_factory=list)

    async def list_printers(self, api_key: str) -> list[dict[str, object]]:
        return self.printers

    async def get_printer(self, api_key: str, printer_id: int) -> ProviderResponse:
        return self.printer_response

    async def get_print_job(self, api_key: str, job_id: int) -> ProviderResponse:
        return self.job_response

    async def submit_print_job(
        self, api_key: str, printer_id: int, pdf_base64: str, title: str
    ) -> int:
        self.submitted.append(
            {"api_key": api_key, "printer_id": printer_id, "title": title}
        )
        return self.next_job_id


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_service_key="service-key",
        admin_token="admin-token",
        processed_cache_dir=tmp_path / "processed",
        poll_interval_seconds=0.05,
        helper_timeout_seconds=1.0,
    )


@pytest.fixture
def owner() -> TemplateOwner:
    return TemplateOwner(OwnerKind.MARKET, uuid4())


@pytest.fixture
def repository() -> InMemoryPhotoRepository:
    return InMemoryPhotoRepository()


@pytest.fixture
def storage() -> InMemoryPhotoStorage:
    return InMemoryPhotoStorage()


@pytest.fixture
def processed_store() -> InMemoryProcessedSetStore:
    return InMemoryProcessedSetStore()


@pytest.fixture
def processed_cache(processed_store: InMemoryProcessedSetStore) -> ProcessedSetCache:
    return ProcessedSetCache(processed_store)


@pytest.fixture
def slot_manager(
    repository: InMemoryPhotoRepository,
    processed_cache: ProcessedSetCache,
    owner: TemplateOwner,
) -> TemplateSlotManager:
    manager = TemplateSlotManager(repository, processed_cache)
    manager.initialize(owner)
    return manager


@pytest.fixture
def fetcher() -> FakeImageFetcher:
    return FakeImageFetcher()


@pytest.fixture
def renderer(fetcher: FakeImageFetcher) -> SheetRenderer:
    return SheetRenderer(fetcher, caption="www.printbooth.test")


@pytest.fixture
def printnode_client() -> FakePrintNodeClient:
    return FakePrintNodeClient()


@pytest.fixture
def container(
    settings: Settings,
    repository: InMemoryPhotoRepository,
    storage: InMemoryPhotoStorage,
    processed_cache: ProcessedSetCache,
    renderer: SheetRenderer,
    printnode_client: FakePrintNodeClient,
) -> AppContainer:
    uploader = PhotoUploader(repository, storage)
    templates = TemplateSessions(
        repository=repository,
        uploader=uploader,
        processed_cache=processed_cache,
        renderer=renderer,
        poll_interval_seconds=settings.poll_interval_seconds,
    )

    async def close_resources() -> None:
        await templates.close_all()

    return AppContainer(
        settings=settings,
        photo_repository=repository,
        photo_uploader=uploader,
        templates=templates,
        printnode_client=printnode_client,
        print_status_service=PrintStatusService(printnode_client),
        print_helper=PrintHelperLink(timeout_seconds=settings.helper_timeout_seconds),
        close_resources=close_resources,
    )
