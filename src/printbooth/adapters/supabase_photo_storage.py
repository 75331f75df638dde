"""Supabase Storage adapter for photo files."""

from dataclasses import dataclass

from supabase import Client

from printbooth.services.photos import PhotoStorage


@dataclass
class SupabasePhotoStorage(PhotoStorage):
    """Stores photo files in a Supabase Storage bucket."""

    client: Client
    bucket: str

    def upload(self, path: str, content: bytes, content_type: str) -> None:
        """Upload a file to the bucket."""
        self.client.storage.from_(self.bucket).upload(
            path,
            content,
            {"content-type": content_type, "cache-control": "3600"},
        )

    def get_public_url(self, path: str) -> str:
        """Return the public URL of a stored file."""
        return self.client.storage.from_(self.bucket).get_public_url(path)
