from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from redis import asyncio as aioredis
from welfare.core.database import get_db, get_redis
from welfare.core.security import decode_token
from welfare.modules.members.models import Member, MembershipStatus

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/members/login")


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis)
) -> Member:
    """Get current authenticated member from JWT token"""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = decode_token(token)
        member_id = payload.get("sub")
        token_type = payload.get("type")

        if member_id is None or token_type != "access":
            raise credentials_exception
        member_id = int(member_id)
    except (HTTPException, ValueError):
        raise credentials_exception

    # Check if token is blacklisted (logged out)
    is_blacklisted = await redis.get(f"blacklist:{token}")
    if is_blacklisted:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has been revoked"
        )

    result = await db.execute(select(Member).where(Member.id == member_id))
    member = result.scalar_one_or_none()

    if member is None:
        raise credentials_exception

    return member


async def get_current_active_user(
    current_user: Member = Depends(get_current_user)
) -> Member:
    """Ensure the login is not disabled"""
    if not current_user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is disabled. Please contact the association office."
        )
    return current_user


async def require_approved_member(
    current_user: Member = Depends(get_current_active_user)
) -> Member:
    """Ensure an administrator has approved the membership application"""
    if current_user.status != MembershipStatus.APPROVED:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Membership approval required. Current status: {current_user.status.value}"
        )
    return current_user


async def require_admin(
    current_user: Member = Depends(get_current_active_user)
) -> Member:
    """Ensure the caller is an administrator"""
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Administrator access required"
        )
    return current_user
