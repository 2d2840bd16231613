"""Google Drive v3 client used by the storage broker.

Provides:
- Idempotent find-or-create of folders
- Streamed (resumable) file upload with best-effort public sharing
- File and folder deletion
- Folder size aggregation

The client holds no user state. Every operation takes a ``DriveAccess``
value carrying the caller's tokens, so concurrent requests for different
users never share credentials.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, BinaryIO, Callable, TypeVar

import httplib2
from google.auth.exceptions import RefreshError, TransportError
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseUpload
from pydantic import BaseModel

from sendany.core.logging import get_logger
from sendany.drive.exceptions import AccessTokenRejectedError, RemoteUnavailableError

T = TypeVar("T")

logger = get_logger(__name__)

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"

# Resumable upload chunk size (must be a multiple of 256 KiB)
UPLOAD_CHUNK_SIZE = 8 * 1024 * 1024

# Page size when listing folder children
LIST_PAGE_SIZE = 1000


@dataclass(frozen=True)
class DriveAccess:
    """Credential pair applied to a single Drive call."""

    access_token: str = field(repr=False)
    refresh_token: str = field(repr=False)


class DriveFile(BaseModel):
    """A file created in Google Drive by an upload."""

    id: str
    name: str
    size: int = 0
    mime_type: str
    public_url: str
    shared: bool = True  # False when the public read grant failed


def public_url(file_id: str, mime_type: str) -> str:
    """Build the link used to display or download an uploaded file.

    Images get a direct content link that renders inline, videos the embeddable
    preview player, everything else a download link.
    """
    if mime_type.startswith("image/"):
        return f"https://lh3.googleusercontent.com/d/{file_id}=s2000"
    if mime_type.startswith("video/"):
        return f"https://drive.google.com/file/d/{file_id}/preview"
    return f"https://drive.google.com/uc?export=download&id={file_id}"


def escape_query_value(value: str) -> str:
    """Escape a string literal for a Drive ``files.list`` query."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


def translate_error(exc: Exception, operation: str) -> RemoteUnavailableError:
    """Map a Google API or transport exception to a broker error."""
    if isinstance(exc, HttpError):
        status = exc.resp.status
        if status == 401:
            return AccessTokenRejectedError(f"{operation}: access token rejected")
        retryable = status == 429 or status >= 500
        return RemoteUnavailableError(
            f"{operation} failed: HTTP {status}",
            retryable=retryable,
            status=status,
        )
    if isinstance(exc, RefreshError):
        # Raised by the transport when a 401 arrives and it has nothing to refresh with
        return AccessTokenRejectedError(f"{operation}: access token rejected")
    return RemoteUnavailableError(f"{operation} failed: {exc}", retryable=True)


class GoogleDriveClient:
    """Thin async wrapper around the Drive v3 API."""

    def __init__(self, build_service: Callable[[DriveAccess], Any] | None = None):
        """Initialize the client.

        Args:
            build_service: Optional factory returning a Drive resource for the
                given access. Defaults to ``googleapiclient.discovery.build``.
        """
        self._build_service = build_service or self._default_service

    @staticmethod
    def _default_service(access: DriveAccess) -> Any:
        # Only the access token is handed to the transport: refreshing is the
        # broker's job, so a stale token surfaces as AccessTokenRejectedError.
        creds = Credentials(token=access.access_token)
        return build("drive", "v3", credentials=creds, cache_discovery=False)

    async def _run(self, operation: str, access: DriveAccess, call: Callable[[Any], T]) -> T:
        """Run a blocking Drive call in a worker thread and translate errors."""

        def _invoke() -> T:
            return call(self._build_service(access))

        try:
            return await asyncio.to_thread(_invoke)
        except (HttpError, RefreshError, TransportError, httplib2.HttpLib2Error, OSError) as e:
            error = translate_error(e, operation)
            logger.warning(
                "drive_call_failed",
                operation=operation,
                status=error.status,
                retryable=error.retryable,
                error=str(e),
            )
            raise error from e

    # ========== Folders ==========

    async def find_or_create_folder(
        self,
        access: DriveAccess,
        name: str,
        parent_id: str | None = None,
        description: str | None = None,
    ) -> str:
        """Return the id of a folder with this exact name, creating it if absent.

        Only non-trashed folders are considered. When several folders share the
        name, the first match returned by Drive wins.

        Args:
            access: Credentials for this call.
            name: Exact folder name.
            parent_id: Optional parent folder to scope the lookup and creation.
            description: Description set on a newly created folder.

        Returns:
            Drive folder id.
        """
        query = (
            f"name = '{escape_query_value(name)}' "
            f"and mimeType = '{FOLDER_MIME_TYPE}' and trashed = false"
        )
        if parent_id:
            query += f" and '{escape_query_value(parent_id)}' in parents"

        result = await self._run(
            "find_folder",
            access,
            lambda service: service.files().list(
                q=query,
                fields="files(id, name)",
                pageSize=10,
                spaces="drive",
            ).execute(),
        )
        existing = result.get("files", [])
        if existing:
            folder_id = existing[0]["id"]
            logger.debug("drive_folder_reused", name=name, folder_id=folder_id, matches=len(existing))
            return folder_id

        metadata: dict[str, Any] = {"name": name, "mimeType": FOLDER_MIME_TYPE}
        if parent_id:
            metadata["parents"] = [parent_id]
        if description:
            metadata["description"] = description

        created = await self._run(
            "create_folder",
            access,
            lambda service: service.files().create(body=metadata, fields="id").execute(),
        )
        logger.info("drive_folder_created", name=name, folder_id=created["id"], parent_id=parent_id)
        return created["id"]

    async def folder_size(self, access: DriveAccess, folder_id: str) -> int:
        """Sum the ``size`` of all non-trashed direct children of a folder.

        Subfolders are not recursed into (folders carry no size).
        """
        query = f"'{escape_query_value(folder_id)}' in parents and trashed = false"

        def _sum_pages(service: Any) -> int:
            total = 0
            page_token = None
            while True:
                result = service.files().list(
                    q=query,
                    fields="nextPageToken, files(size)",
                    pageSize=LIST_PAGE_SIZE,
                    pageToken=page_token,
                ).execute()
                for f in result.get("files", []):
                    total += int(f.get("size", 0))
                page_token = result.get("nextPageToken")
                if not page_token:
                    return total

        return await self._run("folder_size", access, _sum_pages)

    async def delete_folder(self, access: DriveAccess, folder_id: str) -> None:
        """Delete a folder and everything in it. Not recoverable."""
        await self._run(
            "delete_folder",
            access,
            lambda service: service.files().delete(fileId=folder_id).execute(),
        )
        logger.info("drive_folder_deleted", folder_id=folder_id)

    # ========== Files ==========

    async def upload(
        self,
        access: DriveAccess,
        stream: BinaryIO,
        filename: str,
        mime_type: str,
        parent_folder_id: str,
    ) -> DriveFile:
        """Stream content into a new file inside a folder.

        After the file exists, public read access is granted. A failed grant is
        logged and reported through ``DriveFile.shared``; it never fails the
        upload.

        Args:
            access: Credentials for this call.
            stream: Readable binary stream positioned at the start of the content.
            filename: Name of the new Drive file.
            mime_type: Content type of the file.
            parent_folder_id: Folder to create the file in.

        Returns:
            DriveFile describing the created object.
        """
        media = MediaIoBaseUpload(
            stream,
            mimetype=mime_type,
            chunksize=UPLOAD_CHUNK_SIZE,
            resumable=True,
        )
        metadata = {"name": filename, "parents": [parent_folder_id]}

        created = await self._run(
            "upload_file",
            access,
            lambda service: service.files().create(
                body=metadata,
                media_body=media,
                fields="id, name, size, mimeType",
            ).execute(),
        )
        file_id = created["id"]
        stored_mime = created.get("mimeType") or mime_type

        shared = await self._grant_public_read(access, file_id)

        logger.info(
            "drive_file_uploaded",
            file_id=file_id,
            name=created.get("name", filename),
            size=int(created.get("size", 0)),
            shared=shared,
        )

        return DriveFile(
            id=file_id,
            name=created.get("name", filename),
            size=int(created.get("size", 0)),
            mime_type=stored_mime,
            public_url=public_url(file_id, stored_mime),
            shared=shared,
        )

    async def _grant_public_read(self, access: DriveAccess, file_id: str) -> bool:
        """Make a file readable by anyone with the link. Returns success."""
        try:
            await self._run(
                "grant_permission",
                access,
                lambda service: service.permissions().create(
                    fileId=file_id,
                    body={"role": "reader", "type": "anyone"},
                ).execute(),
            )
        except RemoteUnavailableError as e:
            logger.warning("drive_permission_grant_failed", file_id=file_id, error=e.message)
            return False
        return True

    async def delete_file(self, access: DriveAccess, file_id: str) -> None:
        """Delete a single file."""
        await self._run(
            "delete_file",
            access,
            lambda service: service.files().delete(fileId=file_id).execute(),
        )
        logger.info("drive_file_deleted", file_id=file_id)


_client: GoogleDriveClient | None = None


def get_drive_client() -> GoogleDriveClient:
    """Get or create the shared Drive client (stateless, safe to share)."""
    global _client
    if _client is None:
        _client = GoogleDriveClient()
    return _client
