"""
Task endpoints. Every route requires a bearer token and only sees tasks
owned by the caller.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, File, HTTPException, Request, Response, UploadFile, status
from sqlalchemy.orm import Session, selectinload

import models
import schemas
from auth.dependencies import get_current_user
from database import get_db
from tasks.uploads import (
    MAX_FILE_SIZE,
    MAX_FILES_PER_REQUEST,
    remove_upload_file,
    save_upload_file,
    validate_file_upload,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tarefas", tags=["tasks"])


def get_owned_task(db: Session, task_id: int, user: models.User) -> models.Task:
    """Load a task owned by user, or raise 404."""
    task = db.query(models.Task)\
        .options(selectinload(models.Task.attachments))\
        .filter(models.Task.id == task_id, models.Task.owner_id == user.id)\
        .first()
    if not task:
        logger.info(f"Task {task_id} not found for user {user.id}")
        raise HTTPException(status_code=404, detail="Task not found")
    return task


@router.get("", response_model=List[schemas.Task])
def list_tasks(
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """List the caller's tasks."""
    logger.debug(f"User {current_user.id} listing tasks")
    return db.query(models.Task)\
        .options(selectinload(models.Task.attachments))\
        .filter(models.Task.owner_id == current_user.id)\
        .order_by(models.Task.id)\
        .all()


@router.get("/{task_id}", response_model=schemas.Task)
def get_task(
    task_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return get_owned_task(db, task_id, current_user)


@router.post("", response_model=schemas.Task, status_code=status.HTTP_201_CREATED)
def create_task(
    task: schemas.TaskCreate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Create a task owned by the caller."""
    logger.info(f"User {current_user.id} creating task: {task.title}")

    db_task = models.Task(**task.model_dump(), owner_id=current_user.id)
    db.add(db_task)
    db.commit()
    db.refresh(db_task)

    logger.info(f"Task created successfully: id={db_task.id}")
    return db_task


@router.put("/{task_id}", response_model=schemas.Task)
def update_task(
    task_id: int,
    task_update: schemas.TaskUpdate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Partially update a task; only fields present in the body change."""
    task = get_owned_task(db, task_id, current_user)

    update_data = task_update.model_dump(exclude_unset=True)
    if update_data.get("title", "") is None:
        raise HTTPException(status_code=400, detail="title cannot be null")
    for key, value in update_data.items():
        if value is None:
            continue
        setattr(task, key, value)

    db.commit()
    db.refresh(task)
    logger.info(f"Task {task_id} updated by user {current_user.id}: {sorted(update_data)}")
    return task


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_task(
    task_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    task = get_owned_task(db, task_id, current_user)
    db.delete(task)
    db.commit()

    logger.info(f"Task {task_id} deleted by user {current_user.id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ============== Attachments ==============

def check_content_length(request: Request, file_count: int) -> None:
    content_length = request.headers.get("content-length")
    if not content_length:
        return
    try:
        content_length_int = int(content_length)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid Content-Length header: {content_length}")
    if content_length_int > MAX_FILE_SIZE * file_count:
        raise HTTPException(
            status_code=413,
            detail=f"Request too large. Maximum size: {MAX_FILE_SIZE / (1024*1024):.0f}MB per file"
        )


async def store_attachments(
    db: Session,
    task: models.Task,
    files: List[UploadFile],
    user: models.User,
) -> List[models.TaskAttachment]:
    """Validate, write and record a batch of files; nothing is kept if any step fails."""
    for file in files:
        validate_file_upload(file)

    saved = []
    try:
        for file in files:
            filename, filepath, file_size = await save_upload_file(task.id, file)
            saved.append((file, filename, filepath, file_size))
    except HTTPException:
        for _, filename, _, _ in saved:
            remove_upload_file(task.id, filename)
        raise

    try:
        attachments = []
        for file, filename, filepath, file_size in saved:
            attachment = models.TaskAttachment(
                task_id=task.id,
                filename=filename,
                original_filename=file.filename,
                filepath=filepath,
                mime_type=file.content_type or "application/octet-stream",
                file_size=file_size,
                uploaded_by=user.id
            )
            db.add(attachment)
            attachments.append(attachment)
        db.commit()
    except Exception as e:
        db.rollback()
        for _, filename, _, _ in saved:
            remove_upload_file(task.id, filename)
        logger.error(f"Failed to create attachment records for task {task.id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to save attachment")

    for attachment in attachments:
        db.refresh(attachment)

    logger.info(f"Stored {len(attachments)} attachment(s) on task {task.id}")
    return attachments


@router.post("/{task_id}/anexo", response_model=schemas.AttachmentUploadResult)
async def upload_attachment(
    task_id: int,
    request: Request,
    anexo: UploadFile = File(...),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Upload a single file attachment to a task (form field `anexo`)."""
    logger.debug(f"Uploading attachment to task {task_id}: {anexo.filename}")
    check_content_length(request, 1)

    task = get_owned_task(db, task_id, current_user)
    attachments = await store_attachments(db, task, [anexo], current_user)
    return {"message": "Attachment uploaded successfully", "attachments": attachments}


@router.post("/{task_id}/anexos", response_model=schemas.AttachmentUploadResult)
async def upload_attachments(
    task_id: int,
    request: Request,
    anexos: List[UploadFile] = File(...),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Upload up to MAX_FILES_PER_REQUEST files at once (form field `anexos`)."""
    logger.debug(f"Uploading {len(anexos)} attachment(s) to task {task_id}")
    if len(anexos) > MAX_FILES_PER_REQUEST:
        raise HTTPException(
            status_code=400,
            detail=f"Too many files. Maximum per request: {MAX_FILES_PER_REQUEST}"
        )
    check_content_length(request, len(anexos))

    task = get_owned_task(db, task_id, current_user)
    attachments = await store_attachments(db, task, anexos, current_user)
    return {"message": "Attachments uploaded successfully", "attachments": attachments}
