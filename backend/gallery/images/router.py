"""FastAPI router for the gallery image endpoints."""
import logging
from typing import List

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.datastructures import UploadFile

from .archive import iter_zip
from .errors import GalleryError, NoFilesProvided, ReconciliationFailure, UploadFailure
from .schemas import MessageResponse, UploadResponse
from .service import GalleryService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["images"])


def get_gallery_service(request: Request) -> GalleryService:
    """Return the GalleryService owned by the running application."""
    return request.app.state.gallery_service


def _error_response(exc: GalleryError) -> JSONResponse:
    return JSONResponse(exc.to_body(), status_code=exc.status_code)


@router.post("/upload", response_model=UploadResponse)
async def upload_images(request: Request, service: GalleryService = Depends(get_gallery_service)):
    """Upload up to ten images in the multipart field ``image``.

    Returns:
        ``{message, files, allImages}`` where ``files`` are the new public
        paths and ``allImages`` is the reconciled list of every valid image.
    """
    try:
        form = await request.form()
        # Browsers send an unnamed empty part when no file was picked; it
        # arrives as a plain string field, or as a file with no name.
        uploads = [
            item for item in form.getlist("image")
            if isinstance(item, UploadFile) and item.filename
        ]
        if not uploads:
            raise NoFilesProvided()
        service.check_batch_size(len(uploads))

        parts = [(upload.filename, await upload.read()) for upload in uploads]
        files, all_images = await service.upload(parts)
        body = UploadResponse(files=files, all_images=all_images)
        return JSONResponse(body.model_dump(by_alias=True))

    except ReconciliationFailure as e:
        logger.error("Upload error: %s", e.detail)
        return _error_response(UploadFailure(detail=e.detail))
    except GalleryError as e:
        logger.error("Upload error: %s", e.message)
        return _error_response(e)
    except Exception as e:
        logger.exception("Upload error: %s", e)
        return _error_response(UploadFailure(detail=str(e)))


@router.get("/images", response_model=List[str])
async def list_images(service: GalleryService = Depends(get_gallery_service)):
    """List every valid image path after pruning stale cache entries."""
    try:
        valid_images = await service.reconcile()
    except GalleryError as e:
        logger.error("Error reading uploads directory: %s", e.detail)
        return _error_response(e)
    logger.info("Existing images: %d", len(valid_images))
    return JSONResponse(valid_images)


@router.delete("/delete/{file_id}", response_model=MessageResponse)
async def delete_image(file_id: str, service: GalleryService = Depends(get_gallery_service)):
    """Delete one upload by its MongoDB id.

    Raises nothing; a missing record becomes a 404 body and any store error a
    500 body.
    """
    try:
        await service.delete(file_id)
    except GalleryError as e:
        logger.warning("Delete of %s failed: %s", file_id, e.message)
        return _error_response(e)
    except Exception as e:
        logger.exception("Error during file deletion: %s", e)
        return JSONResponse(
            {"message": "Error deleting file", "error": str(e)},
            status_code=500,
        )
    return JSONResponse(MessageResponse(message="File deleted successfully!").model_dump())


@router.get("/download-all")
async def download_all(request: Request, service: GalleryService = Depends(get_gallery_service)):
    """Stream every valid image as one ZIP attachment."""
    try:
        paths = await service.archive_paths()
    except GalleryError as e:
        if e.status_code >= 500:
            logger.error("Error during download: %s", e.message)
            return JSONResponse(
                {"message": "Error during download", "error": e.detail or e.message},
                status_code=e.status_code,
            )
        return _error_response(e)

    archive = request.app.state.config.archive
    logger.info("Streaming %d images as %s", len(paths), archive.filename)
    return StreamingResponse(
        iter_zip(paths, compression_level=archive.compression_level),
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="{archive.filename}"'},
    )
