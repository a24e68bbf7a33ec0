"""Firebase ID token verification and caller resolution."""

import logging
from datetime import datetime
from typing import Any, Optional

import firebase_admin
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from firebase_admin import auth, credentials
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from leasekeeper.core.caller import Caller, caller_from_user
from leasekeeper.core.config import get_settings
from leasekeeper.core.database import get_db
from leasekeeper.core.errors import Forbidden, Unauthenticated
from leasekeeper.models.enums import UserRole
from leasekeeper.models.user import LoginAttempt, User

logger = logging.getLogger(__name__)

settings = get_settings()

security = HTTPBearer(auto_error=False)


def get_firebase_app() -> firebase_admin.App:
    """Initialize the Firebase Admin SDK on first use."""
    if not firebase_admin._apps:
        options = {"projectId": settings.firebase_project_id} if settings.firebase_project_id else None
        if settings.google_application_credentials:
            cred = credentials.Certificate(settings.google_application_credentials)
            firebase_admin.initialize_app(cred, options)
        else:
            firebase_admin.initialize_app(options=options)
    return firebase_admin.get_app()


class FirebaseIdentity:
    """Verified identity from a Firebase ID token."""

    def __init__(
        self,
        uid: str,
        email: Optional[str] = None,
        email_verified: bool = False,
        claims: Optional[dict[str, Any]] = None,
    ):
        self.uid = uid
        self.email = email
        self.email_verified = email_verified
        self.claims = claims or {}


def verify_id_token(token: str) -> FirebaseIdentity:
    """Verify a Firebase ID token. Never mints tokens."""
    try:
        decoded_token = auth.verify_id_token(token, app=get_firebase_app())
    except auth.ExpiredIdTokenError:
        raise Unauthenticated("Token has expired")
    except auth.InvalidIdTokenError:
        raise Unauthenticated("Invalid authentication token")
    except (ValueError, auth.CertificateFetchError) as e:
        logger.warning(f"[AUTH] Token verification failed: {e}")
        raise Unauthenticated("Token verification failed")

    return FirebaseIdentity(
        uid=decoded_token["uid"],
        email=decoded_token.get("email"),
        email_verified=decoded_token.get("email_verified", False),
        claims=decoded_token,
    )


async def load_user_with_profiles(db: AsyncSession, *criteria) -> Optional[User]:
    result = await db.execute(
        select(User)
        .options(
            selectinload(User.owner_profile),
            selectinload(User.manager_profile),
            selectinload(User.tenant_profile),
        )
        .where(*criteria)
    )
    return result.scalar_one_or_none()


async def resolve_caller(db: AsyncSession, identity: FirebaseIdentity) -> Caller:
    """Map a verified identity onto a user row and build the caller variant.

    Users are provisioned by email; the Firebase uid is linked on first sign-in.
    """
    user = await load_user_with_profiles(db, User.firebase_uid == identity.uid)

    if user is None and identity.email and identity.email_verified:
        user = await load_user_with_profiles(
            db, User.email == identity.email.lower(), User.firebase_uid.is_(None)
        )
        if user is not None:
            user.firebase_uid = identity.uid
            logger.info(f"[AUTH] Linked Firebase uid to user {user.id}")

    if user is None:
        raise Unauthenticated("No account is registered for this identity")
    if not user.is_active:
        raise Unauthenticated("Account is deactivated")

    user.last_login_at = datetime.utcnow()
    caller = caller_from_user(user)
    await db.commit()
    return caller


async def record_login_attempt(
    db: AsyncSession,
    success: bool,
    email: Optional[str] = None,
    ip_address: Optional[str] = None,
    reason: Optional[str] = None,
) -> None:
    db.add(LoginAttempt(email=email, ip_address=ip_address, success=success, reason=reason))
    await db.commit()


async def get_current_caller(
    request: Request,
    bearer: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> Caller:
    """Authenticate the request and return its caller variant."""
    ip_address = request.client.host if request.client else None

    if bearer is None or not bearer.credentials:
        raise Unauthenticated("Missing bearer token")

    identity: Optional[FirebaseIdentity] = None
    try:
        identity = verify_id_token(bearer.credentials)
        return await resolve_caller(db, identity)
    except Unauthenticated as e:
        await db.rollback()
        await record_login_attempt(
            db,
            success=False,
            email=identity.email if identity else None,
            ip_address=ip_address,
            reason=e.message,
        )
        raise


def require_roles(*roles: UserRole):
    """Dependency factory restricting an endpoint to the given roles."""
    allowed = set(roles)

    def dependency(caller: Caller = Depends(get_current_caller)) -> Caller:
        if caller.role not in allowed:
            raise Forbidden("Your role is not permitted to perform this action")
        return caller

    return dependency


require_super_admin = require_roles(UserRole.SUPER_ADMIN)
require_staff = require_roles(UserRole.SUPER_ADMIN, UserRole.OWNER, UserRole.MANAGER)
require_owner_or_admin = require_roles(UserRole.SUPER_ADMIN, UserRole.OWNER)
