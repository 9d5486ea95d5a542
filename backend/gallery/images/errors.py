"""Error taxonomy for the image endpoints.

Services raise these; routers catch them at the handler boundary and turn
them into JSON responses using ``status_code`` and ``message``.
"""
from typing import Optional


class GalleryError(Exception):
    """Base class for errors reported to API callers."""

    status_code: int = 500
    message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, detail: Optional[str] = None) -> None:
        self.message = message or self.message
        self.detail = detail
        super().__init__(self.message)

    def to_body(self) -> dict:
        body = {"message": self.message}
        if self.detail:
            body["error"] = self.detail
        return body


class NoFilesProvided(GalleryError):
    status_code = 400
    message = "No files were uploaded."


class TooManyFiles(GalleryError):
    status_code = 400
    message = "Too many files in one upload."


class PartialInsertFailure(GalleryError):
    status_code = 500
    message = "Failed to insert some files into MongoDB"


class UploadFailure(GalleryError):
    status_code = 500
    message = "Error during upload"


class NotFound(GalleryError):
    status_code = 404
    message = "File not found in MongoDB"


class ReconciliationFailure(GalleryError):
    status_code = 500
    message = "Error reading uploads directory"


class NothingToDownload(GalleryError):
    status_code = 404
    message = "No images to download"


class StoreUnavailable(GalleryError):
    """A backing store could not be reached at startup."""
    status_code = 503
    message = "Store unavailable"
