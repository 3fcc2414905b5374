"""
Admin statement downloads.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from welfare.core.database import get_db
from welfare.modules.statements.router import statement_response
from welfare.modules.statements.schemas import StatementFormat
from welfare.modules.statements.services import member_statement

router = APIRouter(prefix="/statements", tags=["admin-statements"])


@router.get("/{member_id}")
async def get_member_statement(
    member_id: int,
    format: StatementFormat = Query(StatementFormat.PDF),
    db: AsyncSession = Depends(get_db)
):
    """Download any member's loan statement"""
    statement = await member_statement(db, member_id)
    return await statement_response(statement, format)
