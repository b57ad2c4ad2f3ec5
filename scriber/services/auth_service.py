"""
Authentication service: registration, login and token refresh.
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from scriber.core.config import PLAN_DEFAULTS, get_settings
from scriber.core.security import (
    create_access_token,
    create_refresh_token,
    hash_password,
    verify_password,
    verify_token,
)
from scriber.models.notification import NotificationPreference
from scriber.models.plan import Plan, Subscription
from scriber.models.user import User, UserRole
from scriber.utils.exceptions import AuthenticationError, ConflictError, ValidationError
from scriber.utils.helpers import validate_email

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8


def get_or_create_free_plan(db: Session) -> Plan:
    """The default plan, created with the default limits if missing."""
    plan = db.query(Plan).filter(Plan.name == PLAN_DEFAULTS["name"]).first()
    if not plan:
        plan = Plan(
            name=PLAN_DEFAULTS["name"],
            max_minutes_per_upload=PLAN_DEFAULTS["max_minutes_per_upload"],
            max_uploads_per_week=PLAN_DEFAULTS["max_uploads_per_week"],
            monthly_minutes_limit=PLAN_DEFAULTS["monthly_minutes_limit"],
            price=PLAN_DEFAULTS["price"],
            currency=PLAN_DEFAULTS["currency"],
        )
        db.add(plan)
        db.flush()
        logger.info("Created default Free plan")
    return plan


def build_token_response(user: User) -> Dict[str, Any]:
    settings = get_settings()
    claims = {"sub": str(user.id), "email": user.email, "role": user.role}
    return {
        "access_token": create_access_token(claims),
        "refresh_token": create_refresh_token(claims),
        "token_type": "bearer",
        "expires_in": settings.access_token_expire_minutes * 60,
        "user": user.to_dict(),
    }


class AuthService:
    def register(
        self,
        db: Session,
        email: str,
        password: str,
        name: Optional[str] = None,
        role: str = UserRole.USER,
    ) -> Dict[str, Any]:
        """
        Create an account on the Free plan and return tokens for it.

        Raises:
            ValidationError: Malformed email or short password
            ConflictError: Email already registered
        """
        email = (email or "").strip().lower()
        if not validate_email(email):
            raise ValidationError("Invalid email address", field="email")
        if not password or len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters", field="password"
            )
        if db.query(User).filter(User.email == email).first():
            raise ConflictError("Email already registered")

        user = self.create_user(db, email, password, name, role)
        db.commit()
        db.refresh(user)
        logger.info(f"Registered user {user.id} ({email})")
        return build_token_response(user)

    def create_user(
        self,
        db: Session,
        email: str,
        password: str,
        name: Optional[str] = None,
        role: str = UserRole.USER,
    ) -> User:
        """Add a user with a Free subscription and default preferences, uncommitted."""
        user = User(
            email=email,
            password_hash=hash_password(password),
            name=name,
            role=role,
            is_active=True,
        )
        db.add(user)
        db.flush()

        plan = get_or_create_free_plan(db)
        db.add(Subscription(user_id=user.id, plan_id=plan.id, active=True))
        db.add(NotificationPreference(user_id=user.id, email=True, push=True))
        db.flush()
        return user

    def login(self, db: Session, email: str, password: str) -> Dict[str, Any]:
        user = db.query(User).filter(User.email == (email or "").strip().lower()).first()
        if not user or not verify_password(password or "", user.password_hash):
            logger.info(f"Failed login for {email}")
            raise AuthenticationError("Invalid email or password")
        if not user.is_active:
            raise AuthenticationError("Account is disabled")
        return build_token_response(user)

    def refresh(self, db: Session, refresh_token: str) -> Dict[str, Any]:
        payload = verify_token(refresh_token, token_type="refresh")
        user = db.query(User).filter(User.id == int(payload["sub"])).first()
        if not user or not user.is_active:
            raise AuthenticationError("User not found or disabled")
        return build_token_response(user)
