"""Gallery service: orchestrates the blob store, metadata store and path cache.

Every operation is a short sequence of awaited calls against the three
stores.  There is no cross-store transaction: a failure part way through an
upload or delete leaves the earlier steps in place.
"""
import logging
from pathlib import Path
from typing import List, Tuple

from .blob_store import BlobStore
from .errors import (
    NoFilesProvided,
    NotFound,
    NothingToDownload,
    PartialInsertFailure,
    ReconciliationFailure,
    TooManyFiles,
)
from .metadata_store import MetadataStore
from .path_cache import PathCache
from .schemas import StoredUpload, UploadedFile, is_supported_image

logger = logging.getLogger(__name__)


class GalleryService:
    """Upload, list, delete and archive operations over the three stores."""

    def __init__(
        self,
        blob_store: BlobStore,
        metadata_store: MetadataStore,
        path_cache: PathCache,
        max_files_per_upload: int = 10,
    ) -> None:
        self.blob_store = blob_store
        self.metadata_store = metadata_store
        self.path_cache = path_cache
        self.max_files_per_upload = max_files_per_upload

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    async def reconcile(self) -> List[str]:
        """Prune ghost cache entries and return the valid image paths.

        A path is valid when a file with a supported image extension exists
        in the upload directory.  Every cache entry that is not a valid path
        is removed (all occurrences).  Calling this twice in a row with no
        change in between returns the same list and removes nothing the
        second time.

        Raises:
            ReconciliationFailure: If the cache or the directory listing fails.
        """
        try:
            cached = await self.path_cache.all()
            names = await self.blob_store.list_names()

            valid_files = [
                self.blob_store.public_path(name)
                for name in names
                if is_supported_image(name)
            ]
            valid_set = set(valid_files)

            # dict.fromkeys dedupes while keeping order; LREM removes all copies.
            ghosts = [path for path in dict.fromkeys(cached) if path not in valid_set]
            for ghost in ghosts:
                await self.path_cache.remove(ghost)
                logger.info("Removed ghost file from Redis: %s", ghost)
        except Exception as exc:
            logger.error("Error cleaning Redis: %s", exc)
            raise ReconciliationFailure(detail=str(exc)) from exc

        return valid_files

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------

    def check_batch_size(self, count: int) -> None:
        """Raise TooManyFiles if *count* parts exceed the per-upload limit."""
        if count > self.max_files_per_upload:
            raise TooManyFiles(
                f"At most {self.max_files_per_upload} files may be uploaded at once."
            )

    async def upload(self, parts: List[Tuple[str, bytes]]) -> Tuple[List[str], List[str]]:
        """Store uploaded parts, record metadata and refresh the cache.

        Args:
            parts: ``(original filename, content)`` per uploaded file.

        Returns:
            ``(new paths, all valid paths)``

        Raises:
            NoFilesProvided: If *parts* is empty.
            TooManyFiles: If more than ``max_files_per_upload`` parts arrive.
            PartialInsertFailure: If MongoDB accepted fewer records than sent.
        """
        if not parts:
            raise NoFilesProvided()
        self.check_batch_size(len(parts))

        stored: List[StoredUpload] = []
        for original_name, content in parts:
            stored.append(await self.blob_store.save(original_name, content))

        file_paths = [upload.relative_path for upload in stored]
        logger.info("Uploaded files: %s", file_paths)

        records = [UploadedFile.from_upload(upload) for upload in stored]
        inserted_ids = await self.metadata_store.insert_many(records)
        if len(inserted_ids) != len(records):
            logger.error(
                "Some files failed to insert into MongoDB (%d of %d)",
                len(inserted_ids),
                len(records),
            )
            raise PartialInsertFailure()
        logger.info("Files successfully inserted into MongoDB: %s", inserted_ids)

        for path in file_paths:
            await self.path_cache.append(path)

        all_images = await self.reconcile()
        return file_paths, all_images

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    async def delete(self, file_id: str) -> UploadedFile:
        """Remove one upload from all three stores.

        Order: blob file, metadata record, cache entries.  A file that is
        already missing from disk is logged and skipped so the record and
        cache entry can still be cleaned up.

        Raises:
            NotFound: If no record has *file_id*.
        """
        record = await self.metadata_store.get(file_id)
        if record is None:
            raise NotFound()

        try:
            await self.blob_store.remove(record.file_path)
            logger.info("File %s removed from file system", record.file_name)
        except FileNotFoundError:
            logger.warning("File %s already missing from file system", record.file_name)

        await self.metadata_store.delete(file_id)
        logger.info("File %s removed from MongoDB", record.file_name)

        await self.path_cache.remove(record.file_path)
        logger.info("File path %s removed from Redis", record.file_path)
        return record

    # ------------------------------------------------------------------
    # Download
    # ------------------------------------------------------------------

    async def archive_paths(self) -> List[Path]:
        """Files on disk for every valid image, ready for archiving.

        Raises:
            NothingToDownload: If there are no valid images.
        """
        valid_images = await self.reconcile()
        if not valid_images:
            raise NothingToDownload()
        return [self.blob_store.resolve(path) for path in valid_images]
