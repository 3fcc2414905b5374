"""
Admin module sub-routers organized by domain.
"""
from fastapi import APIRouter, Depends

from welfare.core.dependencies import require_admin
from welfare.modules.admin.routers.dashboard import router as dashboard_router
from welfare.modules.admin.routers.members import router as members_router
from welfare.modules.admin.routers.loans import router as loans_router
from welfare.modules.admin.routers.repayments import router as repayments_router
from welfare.modules.admin.routers.statements import router as statements_router

# Main admin router; every endpoint requires an administrator
router = APIRouter(prefix="/api/v1/admin", tags=["admin"], dependencies=[Depends(require_admin)])

# Include all sub-routers
router.include_router(dashboard_router)
router.include_router(members_router)
router.include_router(loans_router)
router.include_router(repayments_router)
router.include_router(statements_router)
