"""Pydantic schemas for the image gallery.

- StoredUpload: one uploaded part after it has been written to disk
- UploadedFile: the metadata document kept in MongoDB
- UploadResponse / MessageResponse: API response bodies

MongoDB documents use camelCase keys (``fileName``, ``filePath`` ...).
UploadedFile keeps snake_case attributes and maps them with aliases, so
``to_document()`` / ``from_document()`` are the only places that know about
the stored layout.
"""
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

# Extensions the reconciliation routine treats as images (case-insensitive).
SUPPORTED_IMAGE_EXTENSIONS = ("jpg", "jpeg", "png", "gif", "jfif", "webp")
SUPPORTED_IMAGE_PATTERN = re.compile(
    r"\.(" + "|".join(SUPPORTED_IMAGE_EXTENSIONS) + r")$", re.IGNORECASE
)


def is_supported_image(filename: str) -> bool:
    """Return True if *filename* ends in a supported image extension."""
    return SUPPORTED_IMAGE_PATTERN.search(filename) is not None


class StoredUpload(BaseModel):
    """An uploaded part after it has been written to the blob store."""
    filename:      str = Field(..., description="Name on disk (timestamp + extension)")
    original_name: str = Field(..., description="Filename sent by the client")
    stored_path:   str = Field(..., description="Absolute path on disk")
    relative_path: str = Field(..., description="Public path, e.g. /uploads/<filename>")
    size_bytes:    int = Field(..., ge=0)
    created_at:    datetime = Field(..., description="Filesystem-reported creation time")


class UploadedFile(BaseModel):
    """Metadata document for one uploaded image."""
    model_config = ConfigDict(populate_by_name=True)

    id:                 Optional[str] = Field(default=None)
    file_name:          str = Field(..., alias="fileName")
    upload_time:        Optional[datetime] = Field(
        default_factory=lambda: datetime.now(timezone.utc), alias="uploadTime"
    )
    # Older records carry null timestamps; delete only needs name and path.
    file_creation_time: Optional[datetime] = Field(default=None, alias="fileCreationTime")
    file_path:          str = Field(..., alias="filePath")

    @classmethod
    def from_upload(cls, upload: StoredUpload) -> "UploadedFile":
        return cls(
            file_name=upload.filename,
            file_creation_time=upload.created_at,
            file_path=upload.relative_path,
        )

    def to_document(self) -> Dict[str, Any]:
        """Mongo document for insertion (``_id`` is left to the store)."""
        return self.model_dump(by_alias=True, exclude={"id"})

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "UploadedFile":
        data = dict(doc)
        _id = data.pop("_id", None)
        return cls(id=str(_id) if _id is not None else None, **data)


class UploadResponse(BaseModel):
    """Response body for POST /upload."""
    model_config = ConfigDict(populate_by_name=True)

    message:    str = "Files uploaded successfully!"
    files:      List[str] = Field(default_factory=list)
    all_images: List[str] = Field(default_factory=list, alias="allImages")


class MessageResponse(BaseModel):
    message: str
