"""
Authentication API endpoints.

This module provides REST API endpoints for:
- User registration (sends a welcome email in the background)
- Login returning a bearer access token
- Current user lookup
"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from pydantic import BaseModel, EmailStr
from sqlalchemy.orm import Session

import schemas
from database import get_db
from models import User
from auth.security import hash_password, verify_password, create_access_token
from auth.dependencies import get_current_user
from notifications.mailer import send_welcome_email

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


def create_user_account(db: Session, request: schemas.UserCreate) -> User:
    """
    Persist a new user with a hashed password.

    Raises:
        HTTPException: 400 if email already registered
    """
    email = request.email.lower()
    existing_user = db.query(User).filter(User.email == email).first()
    if existing_user:
        logger.info(f"Registration failed: email already exists: {email}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered",
        )

    new_user = User(
        name=request.name,
        email=email,
        password_hash=hash_password(request.password),
        is_active=True,
    )
    db.add(new_user)
    db.commit()
    db.refresh(new_user)
    return new_user


@router.post("/registro", response_model=schemas.User, status_code=status.HTTP_201_CREATED)
def register(
    request: schemas.UserCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    """
    Register a new user account.

    Returns:
        Created user object

    Raises:
        HTTPException: 400 if email already registered
    """
    logger.info(f"Registration attempt for email: {request.email}")

    new_user = create_user_account(db, request)
    background_tasks.add_task(send_welcome_email, new_user.email, new_user.name)

    logger.critical(f"User registered successfully: {new_user.email} (ID: {new_user.id})")
    return new_user


@router.post("/login", response_model=TokenResponse)
def login(request: LoginRequest, db: Session = Depends(get_db)):
    """
    Login with email and password.

    Raises:
        HTTPException: 401 if credentials invalid, 403 if user inactive
    """
    email = request.email.lower()
    logger.info(f"Login attempt for email: {email}")

    user = db.query(User).filter(User.email == email).first()
    if not user or not verify_password(request.password, user.password_hash):
        logger.info(f"Login failed: invalid credentials: {email}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    if not user.is_active:
        logger.info(f"Login failed: inactive user: {email}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is inactive",
        )

    access_token = create_access_token({"sub": str(user.id), "email": user.email})

    logger.critical(f"User logged in successfully: {user.email} (ID: {user.id})")
    return {"access_token": access_token, "token_type": "bearer"}


@router.get("/me", response_model=schemas.User)
def get_current_user_info(current_user: User = Depends(get_current_user)):
    """Get current authenticated user information."""
    logger.debug(f"Fetching user info for: {current_user.email}")
    return current_user
