"""
Test configuration and fixtures for the welfare portal tests.
"""
import os
import tempfile

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("SENDGRID_API_KEY", "")
os.environ.setdefault("LOCAL_STORAGE_PATH", tempfile.mkdtemp(prefix="welfare-uploads-"))

import pytest
from typing import AsyncGenerator, Optional
from decimal import Decimal

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool
from httpx import AsyncClient, ASGITransport

from welfare.core.database import Base, get_db, get_redis
from welfare.core.security import create_access_token, get_password_hash
from welfare.modules.members.models import Member, MemberRole, MembershipStatus, MaritalStatus
from welfare.modules.loans.models import Loan, LoanType, LoanStatus, LOAN_TYPE_TERMS
from welfare.modules.loans import calculator
from welfare.modules.repayments.models import Repayment, RepaymentStatus, PaymentMethod
from welfare.modules.notifications.services import EmailDispatcher, get_email_dispatcher
from welfare.modules.storage.services import DocumentStorage, get_document_storage
from main import app


# ============================================================
# Database Fixtures
# ============================================================

# Use SQLite for testing (in-memory)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

TEST_PASSWORD = "TestPassword123!"


@pytest.fixture
async def test_engine():
    """Fresh in-memory database per test"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for each test"""
    async_session = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False
    )

    async with async_session() as session:
        yield session
        await session.rollback()


# ============================================================
# Collaborator Fakes
# ============================================================

class FakeRedis:
    """The slice of redis.asyncio used by the token blacklist"""

    def __init__(self):
        self.store = {}
        self.ttls = {}

    async def get(self, key: str) -> Optional[str]:
        return self.store.get(key)

    async def setex(self, key: str, ttl: int, value: str) -> bool:
        self.store[key] = value
        self.ttls[key] = ttl
        return True


class RecordingTransport:
    """Email transport that keeps sent messages instead of calling SendGrid"""

    def __init__(self, configured: bool = True, fail: bool = False):
        self.configured = configured
        self.fail = fail
        self.sent = []

    def deliver(self, to: str, subject: str, html: str) -> str:
        if self.fail:
            raise RuntimeError("provider unavailable")
        self.sent.append({"to": to, "subject": subject, "html": html})
        return f"msg-{len(self.sent)}"


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def email_transport():
    return RecordingTransport()


@pytest.fixture
def dispatcher(email_transport):
    return EmailDispatcher(transport=email_transport)


@pytest.fixture
def storage(tmp_path):
    return DocumentStorage(root=str(tmp_path / "uploads"), base_url="http://test")


@pytest.fixture
async def client(db_session, fake_redis, dispatcher, storage) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with database, redis, email and storage overrides"""

    async def override_get_db():
        yield db_session

    async def override_get_redis():
        return fake_redis

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis
    app.dependency_overrides[get_email_dispatcher] = lambda: dispatcher
    app.dependency_overrides[get_document_storage] = lambda: storage

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ============================================================
# Member Fixtures
# ============================================================

COMPLETE_PROFILE = {
    "national_id": "12345678",
    "kra_pin": "A012345678Z",
    "occupation": "Teacher",
    "disability": "none",
    "town_residence": "Nakuru",
    "zip_code": "20100",
    "country": "Kenya",
    "marital_status": MaritalStatus.SINGLE,
    "religion": "Christian",
    "passport_image": "http://test/uploads/kyc_documents/passport.jpg",
    "id_image": "http://test/uploads/kyc_documents/id.jpg",
    "kra_image": "http://test/uploads/kyc_documents/kra.pdf",
}


async def create_member(
    db_session: AsyncSession,
    email: str,
    phone_number: str,
    full_name: str = "Test Member",
    role: MemberRole = MemberRole.MEMBER,
    status: MembershipStatus = MembershipStatus.PENDING,
    complete_profile: bool = False
) -> Member:
    member = Member(
        email=email,
        phone_number=phone_number,
        full_name=full_name,
        hashed_password=get_password_hash(TEST_PASSWORD),
        role=role,
        status=status,
        **(COMPLETE_PROFILE if complete_profile else {})
    )
    db_session.add(member)
    await db_session.commit()
    await db_session.refresh(member)
    return member


@pytest.fixture
async def pending_member(db_session):
    """A freshly registered member with an incomplete profile"""
    return await create_member(db_session, "pending@farova.org", "0711000001", "Pending Member")


@pytest.fixture
async def approved_member(db_session):
    """An approved member whose profile is complete"""
    return await create_member(
        db_session, "member@farova.org", "0711000002", "Jane Wanjiku",
        status=MembershipStatus.APPROVED, complete_profile=True
    )


@pytest.fixture
async def guarantor_member(db_session):
    return await create_member(
        db_session, "guarantor@farova.org", "0711000003", "John Otieno",
        status=MembershipStatus.APPROVED, complete_profile=True
    )


@pytest.fixture
async def admin_user(db_session):
    return await create_member(
        db_session, "admin@farova.org", "0711000009", "Office Admin",
        role=MemberRole.ADMIN, status=MembershipStatus.APPROVED
    )


def auth_headers_for(member: Member) -> dict:
    token = create_access_token(data={"sub": str(member.id)})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def member_headers(approved_member):
    return auth_headers_for(approved_member)


@pytest.fixture
def pending_headers(pending_member):
    return auth_headers_for(pending_member)


@pytest.fixture
def admin_headers(admin_user):
    return auth_headers_for(admin_user)


# ============================================================
# Loan Fixtures
# ============================================================

async def create_loan(
    db_session: AsyncSession,
    member: Member,
    amount: str = "100000.00",
    repayment_period: int = 12,
    loan_type: LoanType = LoanType.PERSONAL,
    status: LoanStatus = LoanStatus.APPROVED
) -> Loan:
    rate = LOAN_TYPE_TERMS[loan_type].interest_rate
    installment = calculator.compute_monthly_installment(Decimal(amount), rate, repayment_period)
    loan = Loan(
        member_id=member.id,
        loan_type=loan_type,
        amount_requested=Decimal(amount),
        purpose="School fees",
        repayment_period=repayment_period,
        interest_rate=rate,
        monthly_installment=installment,
        total_due=calculator.compute_total_due(installment, repayment_period),
        status=status
    )
    db_session.add(loan)
    await db_session.commit()
    await db_session.refresh(loan)
    return loan


async def create_repayment(
    db_session: AsyncSession,
    loan: Loan,
    amount: str,
    status: RepaymentStatus = RepaymentStatus.PENDING
) -> Repayment:
    repayment = Repayment(
        loan_id=loan.id,
        member_id=loan.member_id,
        amount_paid=Decimal(amount),
        payment_method=PaymentMethod.MPESA,
        reference="QWE123RTY",
        status=status
    )
    db_session.add(repayment)
    await db_session.commit()
    await db_session.refresh(repayment)
    return repayment


@pytest.fixture
async def approved_loan(db_session, approved_member):
    """Personal loan of 100,000 over 12 months, approved; total due 105,499.08"""
    return await create_loan(db_session, approved_member)
