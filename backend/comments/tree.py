"""
Reply-tree materialization for comments.

The two strategies differ on malformed data:

- graph_tree: one recursive query in the database, bounded at
  GRAPH_MAX_DEPTH hops. The descendants come back as a flat list attached
  to the root. Cyclic or very long chains are cut at the bound.
- nested_tree: depth-first assembly in Python, one lookup per node, with the
  replies nested at every level. Unbounded unless nested_max_depth is set,
  so a cycle in the data recurses until the interpreter gives up and the
  request fails with an internal error.

For acyclic trees no deeper than GRAPH_MAX_DEPTH both return the same set of
descendant ids.
"""

import logging
from typing import Any, Dict, Optional

import models
from comments.store import CommentStore
from errors import NotFoundError

logger = logging.getLogger(__name__)

GRAPH_MAX_DEPTH = 10


def serialize_comment(comment: models.Comment) -> Dict[str, Any]:
    """Plain-dict view of a stored comment, keyed as in API responses."""
    return {
        "id": comment.id,
        "text": comment.text,
        "author": comment.author,
        "task": comment.task_id,
        "parent": comment.parent_id,
        "created_at": comment.created_at,
        "updated_at": comment.updated_at,
    }


class CommentTreeMaterializer:
    """Builds the reply tree under a root comment."""

    def __init__(self, store: CommentStore, nested_max_depth: Optional[int] = None):
        self.store = store
        self.nested_max_depth = nested_max_depth

    def graph_tree(self, root_id: int) -> Dict[str, Any]:
        """
        Root comment plus a flat `replies` list of every descendant within
        GRAPH_MAX_DEPTH hops.

        Raises:
            NotFoundError: if root_id does not resolve to a comment
        """
        root = self._require_root(root_id)
        descendants = self.store.find_descendants(root.id, GRAPH_MAX_DEPTH)

        tree = serialize_comment(root)
        tree["replies"] = [serialize_comment(c) for c in descendants]

        logger.info(f"Graph tree for comment {root_id}: {len(descendants)} descendant(s)")
        return tree

    def nested_tree(self, root_id: int) -> Dict[str, Any]:
        """
        Root comment with `replies` holding each child's own subtree,
        recursively. Leaves carry an empty `replies` list.

        Raises:
            NotFoundError: if root_id does not resolve to a comment
        """
        root = self._require_root(root_id)
        tree = self._assemble(root, depth=0)
        logger.info(f"Nested tree assembled for comment {root_id}")
        return tree

    def _assemble(self, comment: models.Comment, depth: int) -> Dict[str, Any]:
        node = serialize_comment(comment)

        if self.nested_max_depth is not None and depth >= self.nested_max_depth:
            logger.debug(f"Depth cap {self.nested_max_depth} reached at comment {comment.id}")
            node["replies"] = []
            return node

        # Siblings share the request session, so they are expanded one after another
        children = self.store.find_children(comment.id)
        node["replies"] = [self._assemble(child, depth + 1) for child in children]
        return node

    def _require_root(self, root_id: int) -> models.Comment:
        root = self.store.find_by_id(root_id)
        if root is None:
            logger.info(f"Comment {root_id} not found")
            raise NotFoundError("Comment", root_id)
        return root
