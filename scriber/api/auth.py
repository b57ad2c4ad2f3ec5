"""
Auth API router for Scriber.
Handles registration, login and token refresh.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from scriber.core.database import get_database
from scriber.services.auth_service import AuthService

logger = logging.getLogger(__name__)
router = APIRouter()


class RegisterRequest(BaseModel):
    email: str = Field(..., max_length=255)
    password: str = Field(..., min_length=8, max_length=128)
    name: Optional[str] = Field(None, max_length=255)


class LoginRequest(BaseModel):
    email: str
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


@router.post("/register", status_code=201)
async def register(payload: RegisterRequest, db: Session = Depends(get_database)):
    """
    Create an account on the Free plan.

    Returns:
        Access and refresh tokens with the new user
    """
    return AuthService().register(db, payload.email, payload.password, payload.name)


@router.post("/login")
async def login(payload: LoginRequest, db: Session = Depends(get_database)):
    return AuthService().login(db, payload.email, payload.password)


@router.post("/refresh")
async def refresh(payload: RefreshRequest, db: Session = Depends(get_database)):
    return AuthService().refresh(db, payload.refresh_token)
