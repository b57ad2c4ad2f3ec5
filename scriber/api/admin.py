"""
Admin API router for Scriber.
Platform statistics, user management, plans and seeding.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from scriber.api.deps import require_admin
from scriber.core.database import get_database
from scriber.models.user import User
from scriber.services.admin_service import AdminService

logger = logging.getLogger(__name__)
router = APIRouter(dependencies=[Depends(require_admin)])


class PlanChange(BaseModel):
    plan_id: int


class UserStatusChange(BaseModel):
    active: bool


class PlanCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    max_minutes_per_upload: int = Field(..., ge=0)
    max_uploads_per_week: int = Field(..., ge=0)
    monthly_minutes_limit: int = Field(..., ge=0)
    price: float = Field(0.0, ge=0)
    currency: str = Field("USD", min_length=3, max_length=3)


class PlanUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    max_minutes_per_upload: Optional[int] = Field(None, ge=0)
    max_uploads_per_week: Optional[int] = Field(None, ge=0)
    monthly_minutes_limit: Optional[int] = Field(None, ge=0)
    price: Optional[float] = Field(None, ge=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)


class SeedRequest(BaseModel):
    admin_email: Optional[str] = None
    admin_password: Optional[str] = Field(None, min_length=8)


@router.get("/stats")
async def get_stats(db: Session = Depends(get_database)):
    return AdminService().get_stats(db)


@router.get("/users")
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = None,
    db: Session = Depends(get_database),
):
    return AdminService().list_users(db, page=page, limit=limit, search=search)


@router.get("/users/{user_id}")
async def get_user_detail(user_id: int, db: Session = Depends(get_database)):
    return AdminService().get_user_detail(db, user_id)


@router.put("/users/{user_id}/plan")
async def change_user_plan(
    user_id: int,
    payload: PlanChange,
    db: Session = Depends(get_database),
):
    return AdminService().update_user_plan(db, user_id, payload.plan_id).to_dict()


@router.patch("/users/{user_id}/status")
async def change_user_status(
    user_id: int,
    payload: UserStatusChange,
    db: Session = Depends(get_database),
):
    return AdminService().set_user_status(db, user_id, payload.active).to_dict()


@router.get("/plans")
async def list_plans(db: Session = Depends(get_database)):
    return AdminService().list_plans(db)


@router.post("/plans", status_code=201)
async def create_plan(payload: PlanCreate, db: Session = Depends(get_database)):
    return AdminService().create_plan(db, payload.model_dump()).to_dict()


@router.put("/plans/{plan_id}")
async def update_plan(
    plan_id: int,
    payload: PlanUpdate,
    db: Session = Depends(get_database),
):
    return AdminService().update_plan(db, plan_id, payload.model_dump(exclude_none=True)).to_dict()


@router.delete("/plans/{plan_id}")
async def delete_plan(plan_id: int, db: Session = Depends(get_database)):
    AdminService().delete_plan(db, plan_id)
    return {"success": True}


@router.post("/seed")
async def seed_defaults(
    payload: Optional[SeedRequest] = None,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_database),
):
    """Create any missing default plans, optionally with another admin account."""
    payload = payload or SeedRequest()
    result = AdminService().seed_defaults(
        db, admin_email=payload.admin_email, admin_password=payload.admin_password
    )
    logger.info(f"Defaults seeded by admin {current_user.id}: {result}")
    return result
