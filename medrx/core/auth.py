from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from medrx.core.config import settings
from medrx.core.context import set_current_profile_id
from medrx.core.db import get_db_session
from medrx.models.profile import Profile
from medrx.models.user_role import UserRole

bearer_scheme = HTTPBearer(auto_error=True)


@dataclass(slots=True)
class AuthContext:
    profile_id: UUID
    subject: str
    email: str | None = None
    clinic_id: UUID | None = None
    roles: frozenset[str] = frozenset()
    claims: dict = field(default_factory=dict)

    @property
    def is_super_admin(self) -> bool:
        return "super_admin" in self.roles or self.subject in settings.super_admin_subjects()

    @property
    def is_clinic_admin(self) -> bool:
        return "clinic_admin" in self.roles


def decode_access_token(token: str) -> dict:
    if not settings.jwt_secret:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="JWT_SECRET is not configured",
        )

    options = {"verify_aud": bool(settings.jwt_audience)}
    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience or None,
            options=options,
        )
    except JWTError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        ) from exc


async def require_auth_context(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    session: AsyncSession = Depends(get_db_session),
) -> AuthContext:
    claims = decode_access_token(credentials.credentials)

    subject = claims.get("sub")
    if not subject:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Token is missing required claims",
        )
    try:
        profile_id = UUID(subject)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Token subject is not a valid user id",
        ) from exc

    profile = await session.scalar(select(Profile).where(Profile.id == profile_id))
    if profile is None or not profile.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is not provisioned or has been disabled",
        )

    roles = set((await session.scalars(select(UserRole.role).where(UserRole.user_id == profile_id))).all())
    roles.add(profile.role)

    request.state.profile_id = profile.id
    request.state.auth_claims = claims
    set_current_profile_id(profile.id)

    return AuthContext(
        profile_id=profile.id,
        subject=subject,
        email=profile.email,
        clinic_id=profile.clinic_id,
        roles=frozenset(roles),
        claims=claims,
    )


async def require_super_admin(
    context: AuthContext = Depends(require_auth_context),
) -> AuthContext:
    if not context.is_super_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Super admin privileges required",
        )
    return context


async def require_clinic_admin(
    context: AuthContext = Depends(require_auth_context),
) -> AuthContext:
    if not (context.is_clinic_admin or context.is_super_admin):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only clinic admins can perform this action",
        )
    return context
