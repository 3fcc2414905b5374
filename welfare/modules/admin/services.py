from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from datetime import datetime, timedelta, timezone
import logging

from welfare.modules.admin.schemas import DashboardStats
from welfare.modules.loans.models import LoanStatus
from welfare.modules.loans.services import LoanService
from welfare.modules.members.models import Member, MemberRole, MembershipStatus
from welfare.modules.repayments.models import Repayment, RepaymentStatus

logger = logging.getLogger(__name__)


class AdminService:
    """Cross-module figures for the administrator dashboard"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _members_by_status(self) -> dict:
        result = await self.db.execute(
            select(Member.status, func.count(Member.id))
            .where(Member.role == MemberRole.MEMBER)
            .group_by(Member.status)
        )
        counts = {status.value: 0 for status in MembershipStatus}
        for status, count in result.all():
            counts[MembershipStatus(status).value] = count
        return counts

    async def get_dashboard_stats(self) -> DashboardStats:
        """Get dashboard statistics"""
        now = datetime.now(timezone.utc)
        week_start = (now - timedelta(days=now.weekday())).replace(hour=0, minute=0, second=0, microsecond=0)

        members_by_status = await self._members_by_status()
        new_members_week = await self.db.execute(
            select(func.count(Member.id)).where(
                Member.role == MemberRole.MEMBER,
                Member.created_at >= week_start
            )
        )

        loans_by_status = await LoanService.count_by_status(self.db)
        pending_repayments = await self.db.execute(
            select(func.count(Repayment.id)).where(Repayment.status == RepaymentStatus.PENDING)
        )
        totals = await LoanService.portfolio_totals(self.db)

        return DashboardStats(
            total_members=sum(members_by_status.values()),
            members_by_status=members_by_status,
            new_members_this_week=new_members_week.scalar() or 0,
            total_loans=sum(loans_by_status.values()),
            loans_by_status=loans_by_status,
            pending_loan_applications=loans_by_status[LoanStatus.PENDING.value],
            pending_repayments=pending_repayments.scalar() or 0,
            **totals
        )
