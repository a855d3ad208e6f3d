"""
Comment API endpoints.

Creation, the shallow listings (roots of a task, direct replies of a comment)
and the two reply-tree strategies. Comment routes do not require
authentication; `author` is a free-form string.
"""

import logging
import os
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

import schemas
from comments.store import CommentStore
from comments.tree import CommentTreeMaterializer, GRAPH_MAX_DEPTH
from database import get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/comentarios", tags=["comments"])


def _read_nested_max_depth() -> Optional[int]:
    raw = os.environ.get("COMMENT_TREE_MAX_DEPTH")
    if not raw:
        return None
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"⚠️  Invalid COMMENT_TREE_MAX_DEPTH={raw!r}. Nested trees will not be depth-capped.")
        return None
    if value < 1:
        logger.warning(f"⚠️  COMMENT_TREE_MAX_DEPTH={value} must be >= 1. Nested trees will not be depth-capped.")
        return None
    return value


# Unset by default: nested assembly follows the data as deep as it goes
NESTED_TREE_MAX_DEPTH = _read_nested_max_depth()


def get_comment_store(db: Session = Depends(get_db)) -> CommentStore:
    return CommentStore(db)


def get_tree_materializer(store: CommentStore = Depends(get_comment_store)) -> CommentTreeMaterializer:
    return CommentTreeMaterializer(store, nested_max_depth=NESTED_TREE_MAX_DEPTH)


@router.post("", response_model=schemas.Comment, status_code=status.HTTP_201_CREATED)
def create_comment(
    comment: schemas.CommentCreate,
    store: CommentStore = Depends(get_comment_store),
):
    """
    Create a comment on a task, optionally as a reply to another comment.

    The task and parent are stored as given: they are not checked for
    existence and the parent may belong to a different task.
    """
    logger.debug(f"Creating comment on task {comment.task} (parent={comment.parent})")
    return store.insert(
        text=comment.text,
        task=comment.task,
        author=comment.author,
        parent=comment.parent,
    )


@router.get("/tarefa/{task_id}", response_model=List[schemas.Comment])
def list_root_comments(task_id: int, store: CommentStore = Depends(get_comment_store)):
    """List the top-level comments of a task (no replies)."""
    return store.find_roots(task_id)


@router.get("/{comment_id}/respostas", response_model=List[schemas.Comment])
def list_replies(comment_id: int, store: CommentStore = Depends(get_comment_store)):
    """List the direct replies of a comment (one level)."""
    return store.find_children(comment_id)


@router.get(
    "/{comment_id}/arvore",
    response_model=schemas.CommentGraphTree,
    summary=f"Comment with every reply up to {GRAPH_MAX_DEPTH} levels deep, flattened",
)
def get_comment_graph_tree(
    comment_id: int,
    materializer: CommentTreeMaterializer = Depends(get_tree_materializer),
):
    """Root comment with a flat `replies` list built by one recursive database query."""
    return materializer.graph_tree(comment_id)


@router.get(
    "/{comment_id}/arvore-aninhada",
    response_model=None,
    responses={200: {"model": schemas.CommentNestedTree}},
    summary="Comment with its replies nested level by level",
)
def get_comment_nested_tree(
    comment_id: int,
    materializer: CommentTreeMaterializer = Depends(get_tree_materializer),
) -> JSONResponse:
    """Root comment with `replies` assembled recursively, one subtree per reply."""
    tree = materializer.nested_tree(comment_id)
    # Encoded as built; the recursive response model caps how deep it will validate
    return JSONResponse(content=jsonable_encoder(tree))
