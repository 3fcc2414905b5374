from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, Enum as SQLEnum
from sqlalchemy.sql import func
from welfare.core.database import Base
import enum


class MemberRole(str, enum.Enum):
    """Portal role"""
    MEMBER = "member"
    ADMIN = "admin"


class MembershipStatus(str, enum.Enum):
    """Membership application status, set by an administrator"""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class MaritalStatus(str, enum.Enum):
    SINGLE = "single"
    MARRIED = "married"
    DIVORCED = "divorced"
    WIDOWED = "widowed"


class SalaryType(str, enum.Enum):
    """How the member is paid; drives checkoff eligibility"""
    PERMANENT = "permanent"
    CONTRACT = "contract"
    CASUAL = "casual"
    SELF_EMPLOYED = "self_employed"


class KYCDocumentType(str, enum.Enum):
    """KYC uploads kept on the member profile"""
    PASSPORT = "passport"
    NATIONAL_ID = "id"
    KRA = "kra"


# Profile fields a member must fill before applying for a loan
REQUIRED_PROFILE_FIELDS = [
    "full_name", "phone_number", "email", "national_id",
    "kra_pin", "disability", "occupation", "town_residence",
    "zip_code", "country", "marital_status", "religion",
    "passport_image", "id_image", "kra_image",
]

KYC_IMAGE_FIELDS = {
    KYCDocumentType.PASSPORT: "passport_image",
    KYCDocumentType.NATIONAL_ID: "id_image",
    KYCDocumentType.KRA: "kra_image",
}


class Member(Base):
    """Association member (or administrator) with profile and KYC fields"""
    __tablename__ = "members"

    # Primary Key
    id = Column(Integer, primary_key=True, index=True)

    # Authentication
    email = Column(String(255), unique=True, index=True, nullable=False)
    phone_number = Column(String(20), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    role = Column(SQLEnum(MemberRole), default=MemberRole.MEMBER, nullable=False)

    # Personal Information
    full_name = Column(String(200), nullable=False, index=True)
    national_id = Column(String(50), nullable=True)
    kra_pin = Column(String(50), nullable=True)
    occupation = Column(String(100), nullable=True)
    disability = Column(String(100), nullable=True)  # "none" is a valid answer
    town_residence = Column(String(100), nullable=True)
    zip_code = Column(String(20), nullable=True)
    country = Column(String(100), nullable=True)
    marital_status = Column(SQLEnum(MaritalStatus), nullable=True)
    spouse_name = Column(String(200), nullable=True)
    religion = Column(String(100), nullable=True)
    salary_type = Column(SQLEnum(SalaryType), nullable=True)

    # KYC documents
    passport_image = Column(String(500), nullable=True)
    id_image = Column(String(500), nullable=True)
    kra_image = Column(String(500), nullable=True)

    # Membership review
    status = Column(SQLEnum(MembershipStatus), default=MembershipStatus.PENDING, nullable=False, index=True)
    rejection_reason = Column(Text, nullable=True)
    reviewed_by = Column(Integer, nullable=True)  # Admin member ID
    reviewed_at = Column(DateTime(timezone=True), nullable=True)

    # Account
    is_active = Column(Boolean, default=True, nullable=False)
    last_login_at = Column(DateTime(timezone=True), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    @property
    def is_admin(self) -> bool:
        return self.role == MemberRole.ADMIN

    def missing_profile_fields(self) -> list[str]:
        return [field for field in REQUIRED_PROFILE_FIELDS if not getattr(self, field)]

    def __repr__(self):
        return f"<Member(id={self.id}, email={self.email}, status={self.status})>"
