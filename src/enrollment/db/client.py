"""
Enrollment - Supabase Client.

Low-level storage and table access. All Supabase calls go through here.
"""

import logging
import time

from supabase import Client, create_client

from enrollment.config import settings
from enrollment.errors import RecordCreationError, StorageUploadError
from onboarding.services import UploadKind, UploadReceipt
from onboarding.state import UploadedFile

logger = logging.getLogger(__name__)

# Singleton client instance
_client: Client | None = None


def get_client() -> Client:
    """
    Get the Supabase client.

    Uses singleton pattern to reuse connection.
    """
    global _client

    if _client is None:
        _client = create_client(
            settings.supabase_url,
            settings.supabase_anon_key,
        )

    return _client


# =============================================================================
# Storage
# =============================================================================


def upload_file(client: Client, bucket: str, path: str, uploaded: UploadedFile) -> str:
    """
    Upload bytes to a storage bucket (upsert).

    Returns the stored path.

    Raises:
        StorageUploadError: Supabase rejected the upload
    """
    try:
        response = client.storage.from_(bucket).upload(
            path,
            uploaded.file,
            file_options={"content-type": uploaded.type or "application/octet-stream", "upsert": "true"},
        )
    except Exception as e:
        raise StorageUploadError(f"Upload to {bucket}/{path} failed: {e}") from e

    return getattr(response, "path", None) or path


def get_public_url(client: Client, bucket: str, path: str) -> str:
    return client.storage.from_(bucket).get_public_url(path)


def avatar_path(owner_id: str, filename: str) -> str:
    """avatars/<owner>/avatar.<ext>"""
    extension = filename.rsplit(".", 1)[-1] if "." in filename else "jpg"
    return f"{owner_id}/avatar.{extension}"


def document_path(filename: str) -> str:
    """documents/uploads/<ms timestamp>-<name>"""
    return f"uploads/{int(time.time() * 1000)}-{filename}"


# =============================================================================
# Backend
# =============================================================================


class SupabaseEnrollmentBackend:
    """
    FileUploadService + RecordCreationService over Supabase.

    Avatars go to the avatars bucket under the owner id; every other
    document goes to the documents bucket under uploads/.
    """

    def __init__(self, client: Client | None = None, enrollment_settings=None):
        self._client = client
        self._settings = enrollment_settings or settings

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = get_client()
        return self._client

    async def upload(
        self,
        kind: UploadKind,
        file: UploadedFile,
        owner_id: str | None = None,
    ) -> UploadReceipt | None:
        if file.file is None:
            return None

        if kind == UploadKind.AVATAR:
            if not owner_id:
                logger.warning("Avatar upload without an owner id, skipping")
                return None
            bucket = self._settings.avatars_bucket
            path = avatar_path(owner_id, file.name)
        else:
            bucket = self._settings.documents_bucket
            path = document_path(file.name)

        stored_path = upload_file(self.client, bucket, path, file)
        if not stored_path:
            logger.error(f"Upload to {bucket} returned no path")
            return None

        url = get_public_url(self.client, bucket, stored_path)
        logger.debug(f"Uploaded {file.name} to {bucket}/{stored_path}")
        return UploadReceipt(url=url, path=stored_path)

    async def create(self, payload: dict) -> dict | None:
        """
        Insert the enrollment record.

        Returns the created row, or None if the insert returned nothing.
        """
        try:
            response = (
                self.client.table(self._settings.submissions_table)
                .insert(payload)
                .execute()
            )
        except Exception as e:
            raise RecordCreationError(f"Creating enrollment failed: {e}") from e

        if not response.data:
            return None
        return response.data[0]
