from pydantic import BaseModel, EmailStr, Field
from datetime import datetime
from decimal import Decimal
from typing import Optional, List

from welfare.modules.notifications.models import EmailTemplate, EmailStatus


class SendEmailRequest(BaseModel):
    """Admin request to send any association email"""
    email: EmailStr
    type: str = Field(..., description="loan-application, loan-approval, disbursement, payment-received or custom")
    loan_id: Optional[int] = None
    approved: Optional[bool] = None
    amount: Optional[Decimal] = Field(None, ge=0)
    subject: Optional[str] = Field(None, max_length=255)
    message: Optional[str] = None


class EmailLogResponse(BaseModel):
    id: int
    recipient: str
    template: EmailTemplate
    subject: str
    status: EmailStatus
    error_message: Optional[str] = None
    external_id: Optional[str] = None
    related_entity_type: Optional[str] = None
    related_entity_id: Optional[int] = None
    sent_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class SendEmailResponse(BaseModel):
    success: bool
    message: str
    log: EmailLogResponse


class EmailLogListResponse(BaseModel):
    logs: List[EmailLogResponse]
    total: int
    page: int
    limit: int
