"""
Admin membership review endpoints.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional, List

from welfare.core.database import get_db
from welfare.core.dependencies import require_admin
from welfare.modules.members.models import Member, MembershipStatus
from welfare.modules.members import schemas
from welfare.modules.members.services import MemberService
from welfare.modules.loans.schemas import LoanResponse
from welfare.modules.loans.services import LoanService

router = APIRouter(prefix="/members", tags=["admin-members"])


@router.get("", response_model=schemas.MemberListResponse)
async def list_members(
    status: Optional[MembershipStatus] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db)
):
    """List members with status filter and name search"""
    members, total = await MemberService.list_members(
        db, status=status, search=search, skip=(page - 1) * page_size, limit=page_size
    )
    return {"members": members, "total": total, "page": page, "page_size": page_size}


@router.get("/pending", response_model=schemas.MemberListResponse)
async def list_pending_members(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db)
):
    """Membership applications awaiting review, oldest first"""
    members, total = await MemberService.list_members(
        db, status=MembershipStatus.PENDING, skip=(page - 1) * page_size, limit=page_size, oldest_first=True
    )
    return {"members": members, "total": total, "page": page, "page_size": page_size}


@router.get("/{member_id}", response_model=schemas.MemberProfileResponse)
async def get_member(member_id: int, db: AsyncSession = Depends(get_db)):
    return await MemberService.get_member(db, member_id)


@router.get("/{member_id}/loans", response_model=List[LoanResponse])
async def get_member_loans(member_id: int, db: AsyncSession = Depends(get_db)):
    """A member's loans with their current balances"""
    await MemberService.get_member(db, member_id)
    return await LoanService.get_member_loans(db, member_id)


@router.post("/{member_id}/approve", response_model=schemas.MemberProfileResponse)
async def approve_member(
    member_id: int,
    db: AsyncSession = Depends(get_db),
    admin: Member = Depends(require_admin)
):
    return await MemberService.review_membership(db, member_id, admin, approve=True)


@router.post("/{member_id}/reject", response_model=schemas.MemberProfileResponse)
async def reject_member(
    member_id: int,
    data: schemas.MembershipRejectRequest,
    db: AsyncSession = Depends(get_db),
    admin: Member = Depends(require_admin)
):
    return await MemberService.review_membership(db, member_id, admin, approve=False, reason=data.reason)
