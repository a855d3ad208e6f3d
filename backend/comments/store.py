"""
Persistence and lookup of comment records.

CommentStore wraps a SQLAlchemy Session handed in by the caller, so the same
code runs against the request session in the API and against a test session
in isolation from HTTP.
"""

import logging
from typing import List, Optional

from sqlalchemy import func, literal, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, aliased

import models
from errors import InternalError, ValidationError

logger = logging.getLogger(__name__)


class CommentStore:
    """Insert and query comments by task, by parent and by id."""

    def __init__(self, db: Session):
        self.db = db

    def insert(
        self,
        text: Optional[str],
        task: Optional[int],
        author: Optional[str] = None,
        parent: Optional[int] = None,
    ) -> models.Comment:
        """
        Store a new comment and return it with id and timestamps assigned.

        Only required-field presence is checked. Neither the task nor the
        parent is required to exist, and a parent may belong to another task.

        Raises:
            ValidationError: if text is missing or blank, or task is missing
            InternalError: if the store rejects the write
        """
        if text is None or not str(text).strip():
            raise ValidationError("Field 'text' is required")
        if task is None:
            raise ValidationError("Field 'task' is required")

        logger.debug(f"Inserting comment: task={task}, parent={parent}, author={author}")

        comment = models.Comment(text=text, task_id=task, author=author, parent_id=parent)
        try:
            self.db.add(comment)
            self.db.commit()
            self.db.refresh(comment)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to insert comment for task {task}: {e}")
            raise InternalError("Failed to store comment") from e

        logger.info(f"Comment created: id={comment.id}, task={task}, parent={parent}")
        return comment

    def find_roots(self, task_id: int) -> List[models.Comment]:
        """Top-level comments of a task, in insertion order."""
        logger.debug(f"Finding root comments for task {task_id}")
        return self.db.query(models.Comment)\
            .filter(models.Comment.task_id == task_id, models.Comment.parent_id.is_(None))\
            .order_by(models.Comment.id.asc())\
            .all()

    def find_children(self, parent_id: int) -> List[models.Comment]:
        """Direct replies of a comment, in insertion order."""
        logger.debug(f"Finding replies of comment {parent_id}")
        return self.db.query(models.Comment)\
            .filter(models.Comment.parent_id == parent_id)\
            .order_by(models.Comment.id.asc())\
            .all()

    def find_by_id(self, comment_id: int) -> Optional[models.Comment]:
        logger.debug(f"Finding comment {comment_id}")
        return self.db.query(models.Comment).filter(models.Comment.id == comment_id).first()

    def find_descendants(self, root_id: int, max_depth: int) -> List[models.Comment]:
        """
        All comments reachable from root_id by following parent -> child edges,
        at most max_depth hops away, in one recursive query.

        A comment reached along several paths (possible only when the data
        contains a cycle) is returned once, at the depth it was first reached.
        Results are ordered by that depth, then by id.
        """
        if max_depth < 1:
            return []

        logger.debug(f"Traversing descendants of comment {root_id} (max_depth={max_depth})")

        descendants = select(
            models.Comment.id.label("id"),
            literal(1).label("depth"),
        ).where(models.Comment.parent_id == root_id).cte("descendants", recursive=True)

        reached = descendants.alias()
        child = aliased(models.Comment)
        descendants = descendants.union_all(
            select(child.id, (reached.c.depth + 1).label("depth"))
            .where(child.parent_id == reached.c.id)
            .where(reached.c.depth < max_depth)
        )

        first_reached = select(
            descendants.c.id.label("id"),
            func.min(descendants.c.depth).label("depth"),
        ).group_by(descendants.c.id).subquery()

        comments = self.db.query(models.Comment)\
            .join(first_reached, models.Comment.id == first_reached.c.id)\
            .order_by(first_reached.c.depth.asc(), models.Comment.id.asc())\
            .all()

        logger.debug(f"Comment {root_id} has {len(comments)} descendant(s) within {max_depth} hop(s)")
        return comments
