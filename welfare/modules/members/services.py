from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_, func
from sqlalchemy.exc import IntegrityError
from fastapi import UploadFile
from redis import asyncio as aioredis
from datetime import datetime, timezone
from typing import Optional, List
import logging

from welfare.core.security import (
    get_password_hash,
    verify_password,
    create_access_token,
    create_refresh_token,
    decode_token,
    token_seconds_remaining,
    password_policy_error
)
from welfare.core.config import settings
from welfare.core.exceptions import InvalidArgument, InvalidState, NotFound, PermissionDenied
from welfare.modules.members.models import (
    Member, MemberRole, MembershipStatus, KYCDocumentType, KYC_IMAGE_FIELDS
)
from welfare.modules.members import schemas
from welfare.modules.storage.schemas import DocumentCategory
from welfare.modules.storage.services import DocumentStorage

logger = logging.getLogger(__name__)


class MemberService:
    """Service layer for membership, authentication and profile operations"""

    @staticmethod
    async def register_member(db: AsyncSession, data: schemas.MemberRegistrationRequest) -> Member:
        """Create a member whose application awaits administrator review"""
        policy_error = password_policy_error(data.password)
        if policy_error:
            raise InvalidArgument(policy_error)

        result = await db.execute(select(Member).where(Member.email == data.email))
        if result.scalar_one_or_none():
            raise InvalidArgument("Email already registered")

        result = await db.execute(select(Member).where(Member.phone_number == data.phone_number))
        if result.scalar_one_or_none():
            raise InvalidArgument("Phone number already registered")

        member = Member(
            email=data.email,
            phone_number=data.phone_number,
            full_name=data.full_name,
            hashed_password=get_password_hash(data.password),
            role=MemberRole.MEMBER,
            status=MembershipStatus.PENDING
        )

        try:
            db.add(member)
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise InvalidArgument("Registration failed. Please try again.")

        await db.refresh(member)
        logger.info(f"Membership application received: member {member.id}")
        return member

    @staticmethod
    async def authenticate(db: AsyncSession, email_or_phone: str, password: str) -> Optional[Member]:
        """Return the member for valid credentials, otherwise None"""
        result = await db.execute(
            select(Member).where(
                or_(
                    Member.email == email_or_phone,
                    Member.phone_number == email_or_phone
                )
            )
        )
        member = result.scalar_one_or_none()

        if not member or not verify_password(password, member.hashed_password):
            return None

        member.last_login_at = datetime.now(timezone.utc)
        await db.commit()
        return member

    @staticmethod
    def create_tokens(member_id: int) -> dict:
        """Create access and refresh tokens"""
        return {
            "access_token": create_access_token(data={"sub": str(member_id)}),
            "refresh_token": create_refresh_token(data={"sub": str(member_id)}),
            "token_type": "bearer",
            "expires_in": settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60
        }

    @staticmethod
    async def refresh_tokens(db: AsyncSession, refresh_token: str) -> dict:
        """Exchange a refresh token for a new token pair"""
        payload = decode_token(refresh_token)
        if payload.get("type") != "refresh" or payload.get("sub") is None:
            raise InvalidArgument("Invalid refresh token")

        member = await MemberService.get_member(db, int(payload["sub"]))
        if not member.is_active:
            raise PermissionDenied("Account is disabled")
        return MemberService.create_tokens(member.id)

    @staticmethod
    async def logout(redis: aioredis.Redis, token: str) -> None:
        """Blacklist the access token for the rest of its lifetime"""
        ttl = token_seconds_remaining(decode_token(token))
        if ttl > 0:
            await redis.setex(f"blacklist:{token}", ttl, "1")

    @staticmethod
    async def get_member(db: AsyncSession, member_id: int) -> Member:
        result = await db.execute(select(Member).where(Member.id == member_id))
        member = result.scalar_one_or_none()
        if not member:
            raise NotFound("Member not found")
        return member

    @staticmethod
    async def update_profile(db: AsyncSession, member: Member, profile_data: schemas.MemberProfileUpdate) -> Member:
        """Apply the fields the member sent"""
        update_data = profile_data.model_dump(exclude_unset=True)

        new_phone = update_data.get("phone_number")
        if new_phone and new_phone != member.phone_number:
            result = await db.execute(select(Member).where(Member.phone_number == new_phone))
            if result.scalar_one_or_none():
                raise InvalidArgument("Phone number already registered")

        for field, value in update_data.items():
            setattr(member, field, value)

        await db.commit()
        await db.refresh(member)
        return member

    @staticmethod
    async def upload_kyc_document(
        db: AsyncSession,
        storage: DocumentStorage,
        member: Member,
        document_type: KYCDocumentType,
        file: UploadFile
    ) -> str:
        """Store a KYC image and link it on the profile; returns its URL"""
        stored = await storage.save(file, member.id, DocumentCategory.KYC)
        setattr(member, KYC_IMAGE_FIELDS[document_type], stored.url)
        await db.commit()
        await db.refresh(member)
        return stored.url

    @staticmethod
    def profile_completeness(member: Member) -> schemas.ProfileCompletenessResponse:
        missing = member.missing_profile_fields()
        return schemas.ProfileCompletenessResponse(complete=not missing, missing_fields=missing)

    @staticmethod
    async def list_members(
        db: AsyncSession,
        status: Optional[MembershipStatus] = None,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 20,
        oldest_first: bool = False
    ) -> tuple[List[Member], int]:
        """Members (not administrators) with optional status filter and name search"""
        query = select(Member).where(Member.role == MemberRole.MEMBER)
        if status:
            query = query.where(Member.status == status)
        if search:
            query = query.where(Member.full_name.ilike(f"%{search}%"))

        total = await db.scalar(select(func.count()).select_from(query.subquery()))

        order = Member.created_at.asc() if oldest_first else Member.created_at.desc()
        query = query.order_by(order, Member.id).offset(skip).limit(limit)
        result = await db.execute(query)
        return list(result.scalars().all()), total or 0

    @staticmethod
    async def list_guarantor_candidates(db: AsyncSession, member_id: int) -> List[Member]:
        """Approved members other than the caller"""
        result = await db.execute(
            select(Member).where(
                Member.id != member_id,
                Member.role == MemberRole.MEMBER,
                Member.status == MembershipStatus.APPROVED
            ).order_by(Member.full_name)
        )
        return list(result.scalars().all())

    @staticmethod
    async def review_membership(
        db: AsyncSession,
        member_id: int,
        admin: Member,
        approve: bool,
        reason: Optional[str] = None
    ) -> Member:
        """Approve or reject a pending membership application"""
        member = await MemberService.get_member(db, member_id)

        if member.role != MemberRole.MEMBER:
            raise InvalidState("Only regular members can be reviewed")
        if member.status != MembershipStatus.PENDING:
            raise InvalidState(f"Membership is already {member.status.value}")

        member.status = MembershipStatus.APPROVED if approve else MembershipStatus.REJECTED
        member.rejection_reason = None if approve else reason
        member.reviewed_by = admin.id
        member.reviewed_at = datetime.now(timezone.utc)

        await db.commit()
        await db.refresh(member)
        logger.info(f"Membership {member.id} {member.status.value} by admin {admin.id}")
        return member
