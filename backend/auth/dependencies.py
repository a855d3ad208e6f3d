"""
FastAPI dependencies for authentication.

Task routes depend on get_current_user, which resolves the bearer token in
the Authorization header to an active User.
"""

import logging
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from database import get_db
from models import User
from auth.security import verify_token

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """
    Extract and validate the current user from a JWT bearer token.

    Raises:
        HTTPException: 401 if the token is missing, malformed, expired or
            refers to an unknown user; 403 if the user is inactive

    Example:
        @router.get("/tarefas")
        def list_tasks(user: User = Depends(get_current_user)):
            return user.tasks
    """
    if not credentials or not credentials.credentials:
        logger.info("No authentication credentials provided")
        raise _unauthorized("Token not provided or malformed")

    payload = verify_token(credentials.credentials)
    if payload is None:
        raise _unauthorized("Invalid or expired token")

    if payload.get("type") != "access":
        logger.info(f"Invalid token type: {payload.get('type')}")
        raise _unauthorized("Invalid token type")

    # Malformed subjects are a 401, not a 500
    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        logger.info(f"Invalid user_id format in token: {payload.get('sub')}")
        raise _unauthorized("Invalid token format")

    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        logger.info(f"User not found for id: {user_id}")
        raise _unauthorized("User not found")

    if not user.is_active:
        logger.info(f"Inactive user attempted access: {user_id}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive",
        )

    logger.debug(f"User authenticated via JWT: {user.email}")
    return user
