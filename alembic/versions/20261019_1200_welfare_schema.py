"""create members, loans, guarantors, repayments and email log tables

Revision ID: 20261019_1200_welfare_schema
Revises:
Create Date: 2026-10-19 12:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261019_1200_welfare_schema'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Create members table
    op.create_table(
        'members',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('phone_number', sa.String(length=20), nullable=False),
        sa.Column('hashed_password', sa.String(length=255), nullable=False),
        sa.Column('role', sa.Enum('MEMBER', 'ADMIN', name='memberrole'), nullable=False),
        sa.Column('full_name', sa.String(length=200), nullable=False),
        sa.Column('national_id', sa.String(length=50), nullable=True),
        sa.Column('kra_pin', sa.String(length=50), nullable=True),
        sa.Column('occupation', sa.String(length=100), nullable=True),
        sa.Column('disability', sa.String(length=100), nullable=True),
        sa.Column('town_residence', sa.String(length=100), nullable=True),
        sa.Column('zip_code', sa.String(length=20), nullable=True),
        sa.Column('country', sa.String(length=100), nullable=True),
        sa.Column('marital_status', sa.Enum('SINGLE', 'MARRIED', 'DIVORCED', 'WIDOWED', name='maritalstatus'), nullable=True),
        sa.Column('spouse_name', sa.String(length=200), nullable=True),
        sa.Column('religion', sa.String(length=100), nullable=True),
        sa.Column('salary_type', sa.Enum('PERMANENT', 'CONTRACT', 'CASUAL', 'SELF_EMPLOYED', name='salarytype'), nullable=True),
        sa.Column('passport_image', sa.String(length=500), nullable=True),
        sa.Column('id_image', sa.String(length=500), nullable=True),
        sa.Column('kra_image', sa.String(length=500), nullable=True),
        sa.Column('status', sa.Enum('PENDING', 'APPROVED', 'REJECTED', name='membershipstatus'), nullable=False),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('reviewed_by', sa.Integer(), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_members_id'), 'members', ['id'], unique=False)
    op.create_index(op.f('ix_members_email'), 'members', ['email'], unique=True)
    op.create_index(op.f('ix_members_phone_number'), 'members', ['phone_number'], unique=True)
    op.create_index(op.f('ix_members_full_name'), 'members', ['full_name'], unique=False)
    op.create_index(op.f('ix_members_status'), 'members', ['status'], unique=False)

    # Create loans table
    op.create_table(
        'loans',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('member_id', sa.Integer(), nullable=False),
        sa.Column('loan_type', sa.Enum('PERSONAL', 'BUSINESS', 'EDUCATION', name='loantype'), nullable=False),
        sa.Column('amount_requested', sa.Numeric(precision=15, scale=2), nullable=False),
        sa.Column('purpose', sa.String(length=255), nullable=False),
        sa.Column('repayment_period', sa.Integer(), nullable=False),
        sa.Column('interest_rate', sa.Numeric(precision=5, scale=2), nullable=False),
        sa.Column('repayment_method', sa.String(length=50), nullable=False, server_default='checkoff'),
        sa.Column('existing_loan_balance', sa.Numeric(precision=15, scale=2), nullable=False, server_default='0'),
        sa.Column('monthly_installment', sa.Numeric(precision=15, scale=2), nullable=False),
        sa.Column('total_due', sa.Numeric(precision=15, scale=2), nullable=False),
        sa.Column('amount_disbursed', sa.Numeric(precision=15, scale=2), nullable=True),
        sa.Column('status', sa.Enum('PENDING', 'APPROVED', 'DISBURSED', 'PARTIALLY_REPAID', 'FULLY_REPAID', 'DEFAULTED', 'REJECTED', name='loanstatus'), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('reviewed_by', sa.Integer(), nullable=True),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rejected_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('disbursed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('defaulted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['member_id'], ['members.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_loans_id'), 'loans', ['id'], unique=False)
    op.create_index(op.f('ix_loans_member_id'), 'loans', ['member_id'], unique=False)
    op.create_index(op.f('ix_loans_status'), 'loans', ['status'], unique=False)

    # Create guarantors table
    op.create_table(
        'guarantors',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('loan_id', sa.Integer(), nullable=False),
        sa.Column('guarantor_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.Enum('PENDING', 'ACCEPTED', 'DECLINED', name='guarantorstatus'), nullable=False),
        sa.Column('responded_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['loan_id'], ['loans.id'], ),
        sa.ForeignKeyConstraint(['guarantor_id'], ['members.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_guarantors_id'), 'guarantors', ['id'], unique=False)
    op.create_index(op.f('ix_guarantors_loan_id'), 'guarantors', ['loan_id'], unique=False)
    op.create_index(op.f('ix_guarantors_guarantor_id'), 'guarantors', ['guarantor_id'], unique=False)

    # Create repayments table
    op.create_table(
        'repayments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('loan_id', sa.Integer(), nullable=False),
        sa.Column('member_id', sa.Integer(), nullable=False),
        sa.Column('amount_paid', sa.Numeric(precision=15, scale=2), nullable=True),
        sa.Column('payment_method', sa.Enum('MPESA', 'BANK_TRANSFER', 'CHECKOFF', 'CASH', name='paymentmethod'), nullable=False),
        sa.Column('reference', sa.String(length=100), nullable=True),
        sa.Column('proof_url', sa.String(length=500), nullable=True),
        sa.Column('status', sa.Enum('PENDING', 'APPROVED', 'REJECTED', name='repaymentstatus'), nullable=False),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('logged_by', sa.Integer(), nullable=True),
        sa.Column('reviewed_by', sa.Integer(), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['loan_id'], ['loans.id'], ),
        sa.ForeignKeyConstraint(['member_id'], ['members.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_repayments_id'), 'repayments', ['id'], unique=False)
    op.create_index(op.f('ix_repayments_loan_id'), 'repayments', ['loan_id'], unique=False)
    op.create_index(op.f('ix_repayments_member_id'), 'repayments', ['member_id'], unique=False)
    op.create_index(op.f('ix_repayments_status'), 'repayments', ['status'], unique=False)

    # Create email_logs table
    op.create_table(
        'email_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('recipient', sa.String(length=255), nullable=False),
        sa.Column('template', sa.Enum('LOAN_APPLICATION', 'LOAN_APPROVAL', 'DISBURSEMENT', 'PAYMENT_RECEIVED', 'CUSTOM', name='emailtemplate'), nullable=False),
        sa.Column('subject', sa.String(length=255), nullable=False),
        sa.Column('status', sa.Enum('SENT', 'FAILED', 'SKIPPED', name='emailstatus'), nullable=False),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('external_id', sa.String(length=255), nullable=True),
        sa.Column('related_entity_type', sa.String(length=50), nullable=True),
        sa.Column('related_entity_id', sa.Integer(), nullable=True),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_email_logs_id'), 'email_logs', ['id'], unique=False)
    op.create_index(op.f('ix_email_logs_recipient'), 'email_logs', ['recipient'], unique=False)
    op.create_index(op.f('ix_email_logs_template'), 'email_logs', ['template'], unique=False)
    op.create_index(op.f('ix_email_logs_status'), 'email_logs', ['status'], unique=False)


def downgrade() -> None:
    op.drop_table('email_logs')
    op.drop_table('repayments')
    op.drop_table('guarantors')
    op.drop_table('loans')
    op.drop_table('members')

    op.execute('DROP TYPE IF EXISTS emailstatus')
    op.execute('DROP TYPE IF EXISTS emailtemplate')
    op.execute('DROP TYPE IF EXISTS repaymentstatus')
    op.execute('DROP TYPE IF EXISTS paymentmethod')
    op.execute('DROP TYPE IF EXISTS guarantorstatus')
    op.execute('DROP TYPE IF EXISTS loanstatus')
    op.execute('DROP TYPE IF EXISTS loantype')
    op.execute('DROP TYPE IF EXISTS salarytype')
    op.execute('DROP TYPE IF EXISTS maritalstatus')
    op.execute('DROP TYPE IF EXISTS membershipstatus')
    op.execute('DROP TYPE IF EXISTS memberrole')
