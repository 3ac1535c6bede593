"""Google Drive file uploader for the sipandai client.

This module uploads one file into a resolved folder with a single multipart
request. It does not chunk, resume, or retry; the client facade owns the
retry policy.

Example:
    from sipandai.gdrive.uploader import UploadFile, UploadManager

    uploader = UploadManager(auth, classifier)
    result = await uploader.upload_file(
        UploadFile.from_path(Path("surat_cuti.pdf")),
        parent_folder_id=structure.subject_id,
        destination_name="surat_cuti.pdf",
    )
    print(result.web_view_link)
"""

import mimetypes
import time
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Any, Dict, Optional, Union

import structlog

from sipandai.gdrive.auth import AuthController
from sipandai.gdrive.classifier import ErrorClassifier
from sipandai.gdrive.errors import DriveClientError, ErrorCategory
from sipandai.gdrive.sdk import call_sdk

logger = structlog.get_logger()

DEFAULT_MIME = "application/octet-stream"

# Fields returned by files.create
UPLOAD_FIELDS = "id,name,webViewLink,webContentLink"


@dataclass
class UploadFile:
    """File content plus metadata.

    Attributes:
        content: Raw bytes to upload.
        name: Original file name.
        mime_type: MIME type sent with the upload.
        description: Optional Drive file description.
    """

    content: bytes
    name: str
    mime_type: str = DEFAULT_MIME
    description: Optional[str] = None

    @classmethod
    def from_path(cls, path: Union[str, Path], description: Optional[str] = None) -> "UploadFile":
        """Read a local file, guessing the MIME type from its extension."""
        path = Path(path)
        mime_type, _ = mimetypes.guess_type(path.name)
        return cls(
            content=path.read_bytes(),
            name=path.name,
            mime_type=mime_type or DEFAULT_MIME,
            description=description,
        )

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class UploadResult:
    """Result of a successful upload.

    Attributes:
        file_id: Google Drive file ID of the uploaded file.
        file_name: Name of the uploaded file.
        web_view_link: Link that opens the file in the Drive viewer.
        web_content_link: Direct download link.
        parent_folder_id: ID of the parent folder.
        upload_time_seconds: Time taken to upload the file.
    """

    file_id: str
    file_name: str
    web_view_link: str
    web_content_link: str
    parent_folder_id: str = ""
    upload_time_seconds: float = 0.0


class UploadManager:
    """Performs single-request uploads with the signed-in session."""

    def __init__(self, auth: AuthController, classifier: ErrorClassifier) -> None:
        self._auth = auth
        self._classifier = classifier

    async def upload_file(
        self,
        file: UploadFile,
        parent_folder_id: str,
        destination_name: str,
    ) -> UploadResult:
        """Upload a file into a folder.

        Args:
            file: Content and metadata to upload.
            parent_folder_id: Drive id of the target folder.
            destination_name: File name to create in Drive.

        Returns:
            UploadResult with the new file's id and links.

        Raises:
            DriveClientError: UNKNOWN if the folder id or destination name is
                empty, ACCESS_DENIED without a valid session (no request is
                made in either case), or the classified upload failure.
        """
        for argument, value in (
            ("parent_folder_id", parent_folder_id),
            ("destination_name", destination_name),
        ):
            if not value:
                logger.error("upload_invalid_argument", argument=argument)
                raise DriveClientError(
                    self._classifier.info(
                        ErrorCategory.UNKNOWN, raw=f"{argument} must not be empty"
                    )
                )

        self._auth.require_session()
        service = await self._auth.drive_service()

        from googleapiclient.http import MediaIoBaseUpload

        file_metadata: Dict[str, Any] = {
            "name": destination_name,
            "parents": [parent_folder_id],
        }
        if file.description:
            file_metadata["description"] = file.description

        media = MediaIoBaseUpload(
            BytesIO(file.content),
            mimetype=file.mime_type or DEFAULT_MIME,
            resumable=False,
        )

        start_time = time.time()
        try:
            request = service.files().create(
                body=file_metadata,
                media_body=media,
                fields=UPLOAD_FIELDS,
            )
            created = await call_sdk(request.execute)
        except Exception as e:
            info = self._classifier.classify(e)
            logger.error(
                "upload_failed",
                file_name=destination_name,
                folder_id=parent_folder_id,
                size=file.size,
                error=str(e),
                error_type=type(e).__name__,
                category=info.category.value,
            )
            raise DriveClientError(info) from e

        elapsed = time.time() - start_time
        logger.info(
            "file_uploaded",
            file_id=created.get("id"),
            file_name=destination_name,
            folder_id=parent_folder_id,
            size=file.size,
            upload_time_seconds=round(elapsed, 3),
        )

        return UploadResult(
            file_id=str(created.get("id", "")),
            file_name=str(created.get("name") or destination_name),
            web_view_link=str(created.get("webViewLink", "")),
            web_content_link=str(created.get("webContentLink", "")),
            parent_folder_id=parent_folder_id,
            upload_time_seconds=elapsed,
        )
