from fastapi import APIRouter, Depends, HTTPException, status, UploadFile, File
from sqlalchemy.ext.asyncio import AsyncSession
from redis import asyncio as aioredis
from typing import List

from welfare.core.database import get_db, get_redis
from welfare.core.dependencies import oauth2_scheme, get_current_active_user, require_approved_member
from welfare.modules.members.models import Member, KYCDocumentType
from welfare.modules.members import schemas
from welfare.modules.members.services import MemberService
from welfare.modules.storage.services import DocumentStorage, get_document_storage

router = APIRouter(prefix="/api/v1/members", tags=["members"])


@router.post("/register", response_model=schemas.MemberProfileResponse, status_code=status.HTTP_201_CREATED)
async def register_member(
    data: schemas.MemberRegistrationRequest,
    db: AsyncSession = Depends(get_db)
):
    """
    Apply for membership.

    - Checks email and phone uniqueness
    - Validates password strength
    - The membership stays pending until an administrator reviews it
    """
    return await MemberService.register_member(db, data)


@router.post("/login", response_model=schemas.TokenResponse)
async def login(
    login_data: schemas.MemberLoginRequest,
    db: AsyncSession = Depends(get_db)
):
    """Login with email or phone number and password."""
    member = await MemberService.authenticate(db, login_data.email_or_phone, login_data.password)

    if not member:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email/phone or password"
        )
    if not member.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is disabled. Please contact the association office."
        )

    return MemberService.create_tokens(member.id)


@router.post("/refresh", response_model=schemas.TokenResponse)
async def refresh(
    data: schemas.RefreshTokenRequest,
    db: AsyncSession = Depends(get_db)
):
    return await MemberService.refresh_tokens(db, data.refresh_token)


@router.post("/logout", status_code=status.HTTP_200_OK)
async def logout(
    token: str = Depends(oauth2_scheme),
    current_user: Member = Depends(get_current_active_user),
    redis: aioredis.Redis = Depends(get_redis)
):
    """Revoke the current access token."""
    await MemberService.logout(redis, token)
    return {"message": "Successfully logged out"}


@router.get("/profile", response_model=schemas.MemberProfileResponse)
async def get_profile(current_user: Member = Depends(get_current_active_user)):
    return current_user


@router.put("/profile", response_model=schemas.MemberProfileResponse)
async def update_profile(
    profile_data: schemas.MemberProfileUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: Member = Depends(get_current_active_user)
):
    """
    Complete or update profile information.

    - Email and full name cannot be changed here
    """
    return await MemberService.update_profile(db, current_user, profile_data)


@router.get("/profile/completeness", response_model=schemas.ProfileCompletenessResponse)
async def get_profile_completeness(current_user: Member = Depends(get_current_active_user)):
    """Which required profile fields and KYC documents are still missing."""
    return MemberService.profile_completeness(current_user)


@router.post("/kyc/{document_type}", response_model=schemas.KYCUploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_kyc_document(
    document_type: KYCDocumentType,
    file: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
    storage: DocumentStorage = Depends(get_document_storage),
    current_user: Member = Depends(get_current_active_user)
):
    """
    Upload a KYC image (passport photo, national ID or KRA certificate).

    Accepted formats: JPG, PNG, PDF
    """
    url = await MemberService.upload_kyc_document(db, storage, current_user, document_type, file)
    return schemas.KYCUploadResponse(
        document_type=document_type,
        url=url,
        profile_complete=not current_user.missing_profile_fields()
    )


@router.get("/guarantors", response_model=List[schemas.MemberSummary])
async def list_guarantor_candidates(
    db: AsyncSession = Depends(get_db),
    current_user: Member = Depends(require_approved_member)
):
    """Approved members who can be named as guarantor."""
    return await MemberService.list_guarantor_candidates(db, current_user.id)
