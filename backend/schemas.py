from pydantic import BaseModel, EmailStr, Field, ConfigDict, field_validator
from datetime import datetime
from typing import Optional, List
from enum import Enum


class TaskPriority(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"


# Titles rejected by the task validator (case-insensitive)
RESERVED_TASK_TITLES = {"task", "tarefa"}


# User schemas
class UserBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr


class UserCreate(UserBase):
    password: str = Field(..., min_length=8, max_length=100)


class User(UserBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    is_active: bool
    created_at: datetime


# Comment schemas
class CommentCreate(BaseModel):
    text: str = Field(..., min_length=1)
    task: int
    parent: Optional[int] = None
    author: Optional[str] = Field(None, max_length=255)

    @field_validator("text")
    @classmethod
    def text_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("text must not be blank")
        return v


class Comment(BaseModel):
    """A stored comment as returned by the API."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int
    text: str
    author: Optional[str] = None
    task: int = Field(validation_alias="task_id")
    parent: Optional[int] = Field(None, validation_alias="parent_id")
    created_at: datetime
    updated_at: datetime


class CommentGraphTree(Comment):
    """Root comment with every descendant found by the bounded traversal, flat."""

    replies: List[Comment] = Field(default_factory=list)


class CommentNestedTree(Comment):
    """Root comment with its replies assembled level by level."""

    replies: List["CommentNestedTree"] = Field(default_factory=list)


CommentNestedTree.model_rebuild()


# Task Attachment schemas
class Attachment(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    task_id: int
    filename: str
    original_filename: str
    filepath: str
    mime_type: str
    file_size: int
    uploaded_by: Optional[int] = None
    created_at: datetime


class AttachmentUploadResult(BaseModel):
    message: str
    attachments: List[Attachment] = []


# Task schemas
class TaskBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    completed: bool = False
    priority: TaskPriority = TaskPriority.low

    @field_validator("title")
    @classmethod
    def title_is_valid(cls, v: str) -> str:
        return _validate_title(v)


class TaskCreate(TaskBase):
    pass


class TaskUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    completed: Optional[bool] = None
    priority: Optional[TaskPriority] = None

    @field_validator("title")
    @classmethod
    def title_is_valid(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return _validate_title(v)


class Task(TaskBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    owner_id: int
    attachments: List[Attachment] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


def _validate_title(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("title is required")
    if value.lower() in RESERVED_TASK_TITLES:
        raise ValueError(f"{value} is not a valid title")
    return value
