"""
Copy images from a shared Google Drive folder into Firebase Storage.

Files are processed one at a time: download from Drive, upload to the bucket
under a sanitized name, make sure the object has a public download token,
and collect the resulting public URL. A file that fails is recorded and the
sync carries on with the next one.
"""
import logging
import re
import uuid
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional
from urllib.parse import quote

import httpx

from ..errors import DriveSyncError
from ..importer.detection import extract_folder_id
from ..models import DriveFile, SyncFailure, SyncResult
from .pipeline import ProgressCallback, SequentialPipeline

logger = logging.getLogger(__name__)

DRIVE_API_URL = "https://www.googleapis.com/drive/v3"
STORAGE_API_URL = "https://firebasestorage.googleapis.com/v0/b"
REQUEST_TIMEOUT = 60.0
PAGE_SIZE = 1000

UNSAFE_FILENAME_CHARS = re.compile(r'[^a-zA-Z0-9.-]')


def sanitize_filename(name: str) -> str:
    """Replace everything but letters, digits, dots and dashes with '_'"""
    return UNSAFE_FILENAME_CHARS.sub('_', name)


def _error_message(response: httpx.Response) -> str:
    try:
        return response.json()["error"]["message"]
    except (ValueError, KeyError, TypeError):
        return f"{response.status_code} {response.reason_phrase}"


@dataclass
class Transfer:
    file: DriveFile
    content: bytes = b""


class DriveToStorageSync:
    """Drive folder → storage bucket image copier"""

    def __init__(
        self,
        google_api_key: Optional[str],
        storage_bucket: Optional[str],
        transport: Optional[httpx.AsyncBaseTransport] = None,
        drive_url: str = DRIVE_API_URL,
        storage_url: str = STORAGE_API_URL,
        token_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ):
        self.google_api_key = google_api_key
        self.storage_bucket = storage_bucket
        self.transport = transport
        self.drive_url = drive_url
        self.storage_url = storage_url
        self.token_factory = token_factory

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=REQUEST_TIMEOUT, transport=self.transport, follow_redirects=True)

    def _require_api_key(self) -> str:
        if not self.google_api_key:
            raise DriveSyncError("Google API Key not configured. Set GOOGLE_API_KEY in your .env file.")
        return self.google_api_key

    def _require_bucket(self) -> str:
        if not self.storage_bucket:
            raise DriveSyncError("Storage bucket not configured. Set FIREBASE_STORAGE_BUCKET in your .env file.")
        return self.storage_bucket

    def extract_folder_id(self, url: str) -> Optional[str]:
        return extract_folder_id(url)

    def object_url(self, path: str) -> str:
        return f"{self.storage_url}/{self._require_bucket()}/o/{quote(path, safe='')}"

    def public_url(self, path: str, token: str) -> str:
        return f"{self.object_url(path)}?alt=media&token={token}"

    # -- Drive -------------------------------------------------------------

    async def list_files(self, folder_id: str) -> List[DriveFile]:
        """Images in a folder (not trashed), following result pages"""
        api_key = self._require_api_key()
        params: Dict[str, str] = {
            "q": f"'{folder_id}' in parents and mimeType contains 'image/' and trashed=false",
            "fields": "nextPageToken,files(id,name,mimeType)",
            "pageSize": str(PAGE_SIZE),
            "key": api_key,
        }
        files: List[DriveFile] = []

        try:
            async with self._client() as client:
                while True:
                    response = await client.get(f"{self.drive_url}/files", params=params)
                    if not response.is_success:
                        raise DriveSyncError(f"Failed to list Drive files: {_error_message(response)}")
                    data = response.json()
                    files.extend(DriveFile.model_validate(f) for f in data.get("files") or [])

                    page_token = data.get("nextPageToken")
                    if not page_token:
                        break
                    params["pageToken"] = page_token
        except httpx.HTTPError as e:
            raise DriveSyncError(f"Failed to list Drive files: {e}") from e

        logger.info("Found %d image(s) in Drive folder %s", len(files), folder_id)
        return files

    async def download_file(self, file_id: str) -> bytes:
        api_key = self._require_api_key()
        async with self._client() as client:
            response = await client.get(f"{self.drive_url}/files/{file_id}", params={"alt": "media", "key": api_key})
        if not response.is_success:
            raise DriveSyncError(f"Failed to download file: {_error_message(response)}")
        return response.content

    # -- Storage -----------------------------------------------------------

    async def get_or_create_download_token(self, path: str) -> str:
        """Existing public download token of an object, or a newly assigned one"""
        url = self.object_url(path)
        async with self._client() as client:
            response = await client.get(url)
            if not response.is_success:
                raise DriveSyncError(f"Failed to read metadata for {path}: {_error_message(response)}")

            tokens = response.json().get("downloadTokens")
            if tokens:
                return tokens.split(",")[0]

            token = self.token_factory()
            response = await client.patch(url, json={"metadata": {"firebaseStorageDownloadTokens": token}})
            if not response.is_success:
                raise DriveSyncError(f"Failed to set download token for {path}: {_error_message(response)}")
            return token

    async def upload(self, content: bytes, path: str, content_type: str = "image/jpeg") -> str:
        """
        Upload raw bytes to ``path`` in the bucket.

        Returns:
            Public URL carrying the object's download token
        """
        bucket = self._require_bucket()
        async with self._client() as client:
            response = await client.post(
                f"{self.storage_url}/{bucket}/o",
                params={"uploadType": "media", "name": path},
                headers={"Content-Type": content_type or "image/jpeg"},
                content=content,
            )
        if not response.is_success:
            raise DriveSyncError(f"Failed to upload to storage: {_error_message(response)}")

        tokens = response.json().get("downloadTokens")
        token = tokens.split(",")[0] if tokens else await self.get_or_create_download_token(path)
        return self.public_url(path, token)

    # -- sync --------------------------------------------------------------

    async def sync_folder_to_storage(
        self, folder_id: str, dest_path: str, on_progress: Optional[ProgressCallback] = None
    ) -> SyncResult:
        """
        Copy every image of a Drive folder into ``dest_path`` in the bucket.

        Args:
            folder_id: Drive folder id (see extract_folder_id)
            dest_path: Folder inside the bucket, e.g. 'restaurants/bistro'
            on_progress: Called with (current, total, file name) before each file

        Returns:
            Public URLs of uploaded files and the files that failed
        """
        self._require_bucket()
        files = await self.list_files(folder_id)
        prefix = dest_path.strip("/")

        async def download(file: DriveFile) -> Transfer:
            return Transfer(file=file, content=await self.download_file(file.id))

        async def upload(transfer: Transfer) -> str:
            name = sanitize_filename(transfer.file.name)
            path = f"{prefix}/{name}" if prefix else name
            url = await self.upload(transfer.content, path, transfer.file.mime_type)
            logger.info("Uploaded: %s → %s", transfer.file.name, url)
            return url

        pipeline = SequentialPipeline([download, upload], describe=lambda f: f.name)
        outcome = await pipeline.run(files, on_progress)

        return SyncResult(
            success=outcome.completed,
            failed=[SyncFailure(name=f.item.name, error=str(f.error)) for f in outcome.failed],
        )
