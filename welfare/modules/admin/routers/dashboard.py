"""
Admin dashboard endpoints.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from welfare.core.database import get_db
from welfare.modules.admin.schemas import DashboardStats
from welfare.modules.admin.services import AdminService

router = APIRouter(prefix="/dashboard", tags=["admin-dashboard"])


@router.get("", response_model=DashboardStats)
async def get_dashboard_stats(db: AsyncSession = Depends(get_db)):
    """Get dashboard statistics"""
    service = AdminService(db)
    return await service.get_dashboard_stats()
