"""Folder provisioning for uploaded documents.

Uploads land in a fixed three-level hierarchy:

    <root folder> / <category> / <subject>

e.g. ``SIPANDAI / Cuti / Siti``. Each level is resolved with a
find-by-name-under-parent query and created only when missing. The Drive
API is not transactional, so duplicate creation is prevented locally:
concurrent requests for the same (category, subject) share one resolution,
and every get-or-create step holds a per-(parent, name) lock.

Example:
    provisioner = FolderProvisioner(auth, classifier, FolderConfig())
    structure = await provisioner.resolve_folder_structure("Cuti", "Siti")
    print(structure.subject_id)
"""

import asyncio
import re
import unicodedata
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import structlog

from sipandai.gdrive.auth import AuthController
from sipandai.gdrive.classifier import ErrorClassifier
from sipandai.gdrive.config import FolderConfig
from sipandai.gdrive.errors import DriveClientError
from sipandai.gdrive.sdk import call_sdk

logger = structlog.get_logger()

FOLDER_MIME = "application/vnd.google-apps.folder"

# Parent id of the top level of "My Drive"
DRIVE_ROOT = "root"

_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class FolderStructure:
    """Resolved folder ids for one (category, subject) pair."""

    root_id: str
    category_id: str
    subject_id: str


def normalize_folder_name(value: Optional[str], fallback: str) -> str:
    """Turn user input into a stable folder name.

    Applies NFC normalization, collapses whitespace, and replaces path
    separators. Empty input yields ``fallback``.

    Example:
        >>> normalize_folder_name("  Kategori   A ", "Umum")
        'Kategori A'
        >>> normalize_folder_name("", "Pegawai")
        'Pegawai'
    """
    text = unicodedata.normalize("NFC", value or "")
    text = text.replace("/", "-").replace("\\", "-")
    text = _WHITESPACE.sub(" ", text).strip()
    return text or fallback


def _escape_query_value(value: str) -> str:
    # Drive query strings are single-quoted
    return value.replace("\\", "\\\\").replace("'", "\\'")


class FolderProvisioner:
    """Idempotent get-or-create of the root → category → subject path.

    Resolved structures and folder ids are cached until ``clear()``, which
    the client calls on sign-out and reset. Remote deletion is not detected.
    """

    def __init__(
        self,
        auth: AuthController,
        classifier: ErrorClassifier,
        folder_config: Optional[FolderConfig] = None,
    ) -> None:
        self._auth = auth
        self._classifier = classifier
        self._config = folder_config or FolderConfig()

        self._structures: Dict[Tuple[str, str], FolderStructure] = {}
        self._in_flight: Dict[Tuple[str, str], "asyncio.Task[FolderStructure]"] = {}
        self._folder_ids: Dict[Tuple[str, str], str] = {}
        self._locks: Dict[Tuple[str, str], asyncio.Lock] = {}
        # Bumped by clear(); resolutions from an older generation do not cache.
        self._generation = 0

    async def resolve_folder_structure(self, category: str, subject: str) -> FolderStructure:
        """Resolve (creating where missing) the folders for a pair.

        Args:
            category: Category folder name, e.g. a submission type.
            subject: Subject folder name, e.g. an employee name.

        Returns:
            FolderStructure with the three folder ids.

        Raises:
            DriveClientError: ACCESS_DENIED without a valid session, or the
                classified Drive API failure.
        """
        self._auth.require_session()

        key = (
            normalize_folder_name(category, self._config.default_category),
            normalize_folder_name(subject, self._config.default_subject),
        )

        cached = self._structures.get(key)
        if cached is not None:
            return cached

        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.get_running_loop().create_task(self._resolve(key, self._generation))
            self._in_flight[key] = task
            task.add_done_callback(lambda done: self._forget_in_flight(key, done))

        return await asyncio.shield(task)

    def clear(self) -> None:
        """Forget every cached structure and folder id."""
        self._generation += 1
        self._structures.clear()
        self._folder_ids.clear()
        self._in_flight.clear()
        logger.debug("folder_cache_cleared")

    def _forget_in_flight(self, key: Tuple[str, str], task: "asyncio.Task[FolderStructure]") -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]

    async def _resolve(self, key: Tuple[str, str], generation: int) -> FolderStructure:
        category_name, subject_name = key
        service = await self._auth.drive_service()

        root_id = await self._get_or_create(
            service, generation, DRIVE_ROOT, self._config.root_folder_name
        )
        category_id = await self._get_or_create(service, generation, root_id, category_name)
        subject_id = await self._get_or_create(service, generation, category_id, subject_name)

        structure = FolderStructure(root_id=root_id, category_id=category_id, subject_id=subject_id)
        if generation == self._generation:
            self._structures[key] = structure
        logger.info(
            "folder_structure_resolved",
            category=category_name,
            subject=subject_name,
            subject_id=subject_id,
        )
        return structure

    async def _get_or_create(self, service: Any, generation: int, parent_id: str, name: str) -> str:
        key = (parent_id, name)
        lock = self._locks.setdefault(key, asyncio.Lock())

        async with lock:
            folder_id = self._folder_ids.get(key)
            if folder_id is not None:
                return folder_id

            try:
                folder_id = await self._find_folder(service, parent_id, name)
                if folder_id is None:
                    folder_id = await self._create_folder(service, parent_id, name)
            except DriveClientError:
                raise
            except Exception as e:
                info = self._classifier.classify(e)
                logger.error(
                    "folder_get_or_create_failed",
                    parent_id=parent_id,
                    folder_name=name,
                    error=str(e),
                    error_type=type(e).__name__,
                    category=info.category.value,
                )
                raise DriveClientError(info) from e

            if generation == self._generation:
                self._folder_ids[key] = folder_id
            return folder_id

    async def _find_folder(self, service: Any, parent_id: str, name: str) -> Optional[str]:
        query = (
            f"'{_escape_query_value(parent_id)}' in parents and "
            f"name = '{_escape_query_value(name)}' and "
            f"mimeType = '{FOLDER_MIME}' and "
            "trashed = false"
        )
        request = service.files().list(q=query, fields="files(id,name)", pageSize=1)
        response = await call_sdk(request.execute)

        files = response.get("files", [])
        if files:
            logger.debug("folder_found", parent_id=parent_id, folder_name=name)
            return str(files[0]["id"])
        return None

    async def _create_folder(self, service: Any, parent_id: str, name: str) -> str:
        file_metadata = {
            "name": name,
            "mimeType": FOLDER_MIME,
            "parents": [parent_id],
        }
        request = service.files().create(body=file_metadata, fields="id")
        folder = await call_sdk(request.execute)

        logger.info("folder_created", parent_id=parent_id, folder_name=name, folder_id=folder["id"])
        return str(folder["id"])
