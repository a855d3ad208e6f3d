"""
Attachment file storage on local disk.

Files land in UPLOAD_DIR/<task_id>/<uuid><ext> and are served back under
/uploads by the static mount in main.
"""

import logging
import os
import uuid
from pathlib import Path

from fastapi import HTTPException, UploadFile

logger = logging.getLogger(__name__)

UPLOAD_DIR = Path(os.environ.get("UPLOAD_DIR", "uploads"))
MAX_FILE_SIZE = int(os.environ.get("MAX_FILE_SIZE", str(50 * 1024 * 1024)))  # 50MB
MAX_FILES_PER_REQUEST = 5
CHUNK_SIZE = 1024 * 1024

ALLOWED_EXTENSIONS = {
    ".pdf", ".txt", ".md", ".doc", ".docx",  # Documents
    ".png", ".jpg", ".jpeg", ".gif", ".webp",  # Images (no .svg: XSS)
    ".json", ".xml", ".csv", ".xlsx",  # Data files
    ".zip", ".tar", ".gz"  # Archives
}
ALLOWED_MIME_TYPES = {
    "application/pdf",
    "text/plain", "text/markdown",
    "application/msword", "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "image/png", "image/jpeg", "image/gif", "image/webp",
    "application/json", "application/xml", "text/xml", "text/csv",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/zip", "application/x-tar", "application/gzip"
}


def validate_file_upload(file: UploadFile) -> None:
    """Validate file extension and MIME type."""
    if not file.filename:
        raise HTTPException(status_code=400, detail="File name is required")

    file_ext = Path(file.filename).suffix.lower()
    if file_ext not in ALLOWED_EXTENSIONS:
        raise HTTPException(
            status_code=400,
            detail=f"File type not allowed. Allowed extensions: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
        )

    # Many clients send octet-stream for binary files, so the extension decides
    if file.content_type not in ALLOWED_MIME_TYPES and file.content_type != "application/octet-stream":
        raise HTTPException(
            status_code=400,
            detail=f"MIME type not allowed: {file.content_type}"
        )


async def save_upload_file(task_id: int, file: UploadFile) -> tuple[str, str, int]:
    """
    Save an uploaded file in 1MB chunks, aborting as soon as MAX_FILE_SIZE
    is exceeded.

    Returns:
        tuple: (filename, filepath, file_size)
    """
    task_dir = UPLOAD_DIR / str(task_id)
    task_dir.mkdir(parents=True, exist_ok=True)

    file_ext = Path(file.filename).suffix.lower()
    unique_filename = f"{uuid.uuid4()}{file_ext}"
    filepath = task_dir / unique_filename

    total_size = 0
    try:
        with open(filepath, "wb") as f:
            while True:
                chunk = await file.read(CHUNK_SIZE)
                if not chunk:
                    break

                total_size += len(chunk)
                if total_size > MAX_FILE_SIZE:
                    raise HTTPException(
                        status_code=413,
                        detail=f"File too large. Maximum size: {MAX_FILE_SIZE / (1024*1024):.0f}MB"
                    )

                f.write(chunk)
    except HTTPException:
        remove_upload_file(task_id, unique_filename)
        raise
    except OSError as e:
        remove_upload_file(task_id, unique_filename)
        logger.error(f"Failed to save file: {e}")
        raise HTTPException(status_code=500, detail="Failed to save file")

    relative_path = f"/uploads/{task_id}/{unique_filename}"
    logger.debug(f"Saved upload {file.filename} as {relative_path} ({total_size} bytes)")
    return unique_filename, relative_path, total_size


def remove_upload_file(task_id: int, filename: str) -> None:
    file_path = UPLOAD_DIR / str(task_id) / filename
    if file_path.exists():
        file_path.unlink()
        logger.debug(f"Removed upload file: {file_path}")
