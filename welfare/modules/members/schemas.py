from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional, List
from datetime import datetime

from welfare.modules.members.models import (
    MemberRole, MembershipStatus, MaritalStatus, SalaryType, KYCDocumentType
)


# Registration
class MemberRegistrationRequest(BaseModel):
    """New membership application"""
    email: EmailStr
    phone_number: str = Field(..., min_length=10, max_length=20)
    full_name: str = Field(..., min_length=3, max_length=200)
    password: str = Field(..., min_length=8)

    @field_validator('phone_number')
    @classmethod
    def validate_phone(cls, v):
        digits = v[1:] if v.startswith('+') else v
        if not digits.isdigit():
            raise ValueError('Phone number may only contain digits and a leading +')
        return v

    @field_validator('full_name')
    @classmethod
    def strip_name(cls, v):
        return " ".join(v.split())


# Login
class MemberLoginRequest(BaseModel):
    """Login with email or phone number"""
    email_or_phone: str
    password: str


class RefreshTokenRequest(BaseModel):
    refresh_token: str


class TokenResponse(BaseModel):
    """JWT token response"""
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


# Profile
class MemberProfileResponse(BaseModel):
    """Member profile as shown to the member and to administrators"""
    id: int
    email: str
    phone_number: str
    full_name: str
    role: MemberRole
    status: MembershipStatus
    national_id: Optional[str] = None
    kra_pin: Optional[str] = None
    occupation: Optional[str] = None
    disability: Optional[str] = None
    town_residence: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None
    marital_status: Optional[MaritalStatus] = None
    spouse_name: Optional[str] = None
    religion: Optional[str] = None
    salary_type: Optional[SalaryType] = None
    passport_image: Optional[str] = None
    id_image: Optional[str] = None
    kra_image: Optional[str] = None
    rejection_reason: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class MemberProfileUpdate(BaseModel):
    """Profile fields a member may fill in or change"""
    phone_number: Optional[str] = Field(None, min_length=10, max_length=20)
    national_id: Optional[str] = Field(None, min_length=5, max_length=50)
    kra_pin: Optional[str] = Field(None, min_length=5, max_length=50)
    occupation: Optional[str] = Field(None, min_length=2, max_length=100)
    disability: Optional[str] = Field(None, min_length=2, max_length=100)
    town_residence: Optional[str] = Field(None, min_length=2, max_length=100)
    zip_code: Optional[str] = Field(None, min_length=3, max_length=20)
    country: Optional[str] = Field(None, min_length=2, max_length=100)
    marital_status: Optional[MaritalStatus] = None
    spouse_name: Optional[str] = Field(None, max_length=200)
    religion: Optional[str] = Field(None, min_length=2, max_length=100)
    salary_type: Optional[SalaryType] = None


class ProfileCompletenessResponse(BaseModel):
    complete: bool
    missing_fields: List[str]


class KYCUploadResponse(BaseModel):
    document_type: KYCDocumentType
    url: str
    profile_complete: bool


class MemberSummary(BaseModel):
    """Short listing entry, e.g. for choosing a guarantor"""
    id: int
    full_name: str
    email: str

    class Config:
        from_attributes = True


# Admin review
class MembershipRejectRequest(BaseModel):
    reason: str = Field(..., min_length=10, max_length=1000)


class MemberListResponse(BaseModel):
    members: List[MemberProfileResponse]
    total: int
    page: int
    page_size: int
