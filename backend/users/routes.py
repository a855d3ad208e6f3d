import logging
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

import models
import schemas
from auth.routes import create_user_account
from database import get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/usuarios", tags=["users"])


@router.post("", response_model=schemas.User, status_code=status.HTTP_201_CREATED)
def create_user(user: schemas.UserCreate, db: Session = Depends(get_db)):
    """Create a user directly (no welcome email)."""
    db_user = create_user_account(db, user)
    logger.info(f"User created: {db_user.email} (ID: {db_user.id})")
    return db_user


@router.get("", response_model=List[schemas.User])
def list_users(db: Session = Depends(get_db)):
    """List all users."""
    return db.query(models.User).order_by(models.User.id).all()
