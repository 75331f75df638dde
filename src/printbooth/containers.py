"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from printbooth.adapters.file_processed_store import JsonFileProcessedSetStore
from printbooth.adapters.image_fetcher import HttpxImageFetcher
from printbooth.adapters.printnode_client import HttpxPrintNodeClient, PrintNodeClient
from printbooth.adapters.supabase_photo_repository import SupabasePhotoRepository
from printbooth.adapters.supabase_photo_storage import SupabasePhotoStorage
from printbooth.config import Settings
from printbooth.services.photos import PhotoRepository, PhotoUploader
from printbooth.services.print_helper import PrintHelperLink
from printbooth.services.print_status import PrintStatusService
from printbooth.services.processed import ProcessedSetCache
from printbooth.services.rendering import SheetRenderer
from printbooth.services.templates import TemplateSessions


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    photo_repository: PhotoRepository
    photo_uploader: PhotoUploader
    templates: TemplateSessions
    printnode_client: PrintNodeClient
    print_status_service: PrintStatusService
    print_helper: PrintHelperLink
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    photo_repository = SupabasePhotoRepository(supabase_client)
    photo_storage = SupabasePhotoStorage(
        supabase_client, bucket=resolved_settings.photos_bucket
    )
    photo_uploader = PhotoUploader(photo_repository, photo_storage)
    image_fetcher = HttpxImageFetcher.create()
    printnode_client = HttpxPrintNodeClient.create(resolved_settings.printnode_base_url)
    templates = TemplateSessions(
        repository=photo_repository,
        uploader=photo_uploader,
        processed_cache=ProcessedSetCache(
            JsonFileProcessedSetStore(resolved_settings.processed_cache_dir)
        ),
        renderer=SheetRenderer(image_fetcher, caption=resolved_settings.sheet_caption),
        poll_interval_seconds=resolved_settings.poll_interval_seconds,
    )

    async def close_resources() -> None:
        await templates.close_all()
        await image_fetcher.close()
        await printnode_client.close()

    return AppContainer(
        settings=resolved_settings,
        photo_repository=photo_repository,
        photo_uploader=photo_uploader,
        templates=templates,
        printnode_client=printnode_client,
        print_status_service=PrintStatusService(printnode_client),
        print_helper=PrintHelperLink(
            timeout_seconds=resolved_settings.helper_timeout_seconds
        ),
        close_resources=close_resources,
    )
