"""Initial schema - identity, introductions, check-ins, flags, placements.

Revision ID: 00001
Revises:
Create Date: 2026-10-18

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '00001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # =====================
    # Identity
    # =====================

    # users
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('role', sa.String(20), nullable=False, server_default='CANDIDATE'),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
    )

    # employers
    op.create_table(
        'employers',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('company_name', sa.String(255), nullable=False),
        sa.Column('contact_name', sa.String(255), nullable=True),
        sa.Column('contact_email', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
    )

    # candidates
    op.create_table(
        'candidates',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
    )

    # job_postings
    op.create_table(
        'job_postings',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('employer_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('salary_min', sa.Integer(), nullable=True),
        sa.Column('salary_max', sa.Integer(), nullable=True),
        sa.Column('experience_level', sa.String(20), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['employer_id'], ['employers.id']),
    )

    # =====================
    # Workflow
    # =====================

    # introductions
    op.create_table(
        'introductions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('candidate_id', sa.Integer(), nullable=False),
        sa.Column('employer_id', sa.Integer(), nullable=False),
        sa.Column('job_id', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(30), nullable=False, server_default='AWAITING_RESPONSE'),
        sa.Column('introduced_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['candidate_id'], ['candidates.id']),
        sa.ForeignKeyConstraint(['employer_id'], ['employers.id']),
        sa.ForeignKeyConstraint(['job_id'], ['job_postings.id']),
    )
    op.create_index('idx_introductions_status', 'introductions', ['status'])

    # check_ins
    op.create_table(
        'check_ins',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('introduction_id', sa.Integer(), nullable=False),
        sa.Column('check_in_number', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='SCHEDULED'),
        sa.Column('scheduled_for', sa.DateTime(), nullable=False),
        sa.Column('sent_at', sa.DateTime(), nullable=True),
        sa.Column('response_token', sa.String(64), nullable=True),
        sa.Column('response_token_expiry', sa.DateTime(), nullable=True),
        sa.Column('responded_at', sa.DateTime(), nullable=True),
        sa.Column('response_type', sa.String(20), nullable=True),
        sa.Column('response_raw', sa.Text(), nullable=True),
        sa.Column('response_parsed', sa.Text(), nullable=True),
        sa.Column('risk_level', sa.String(10), nullable=True),
        sa.Column('risk_reason', sa.Text(), nullable=True),
        sa.Column('flagged_for_review', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('reviewed_at', sa.DateTime(), nullable=True),
        sa.Column('reviewed_by', sa.Integer(), nullable=True),
        sa.Column('review_notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['introduction_id'], ['introductions.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['reviewed_by'], ['users.id'], ondelete='SET NULL'),
        sa.UniqueConstraint('introduction_id', 'check_in_number', name='uq_check_ins_intro_number'),
        sa.UniqueConstraint('response_token'),
    )
    op.create_index('idx_check_ins_flagged', 'check_ins', ['flagged_for_review'])

    # circumvention_flags
    op.create_table(
        'circumvention_flags',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('introduction_id', sa.Integer(), nullable=True),
        sa.Column('employer_id', sa.Integer(), nullable=False),
        sa.Column('detection_method', sa.String(30), nullable=False),
        sa.Column('evidence', sa.Text(), nullable=True),
        sa.Column('estimated_salary', sa.Integer(), nullable=True),
        sa.Column('fee_percentage', sa.Numeric(5, 2), nullable=True),
        sa.Column('estimated_fee_owed', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='OPEN'),
        sa.Column('invoice_number', sa.String(50), nullable=True),
        sa.Column('invoice_amount', sa.Integer(), nullable=True),
        sa.Column('invoice_sent_at', sa.DateTime(), nullable=True),
        sa.Column('invoice_due_at', sa.DateTime(), nullable=True),
        sa.Column('invoice_paid_at', sa.DateTime(), nullable=True),
        sa.Column('resolved_at', sa.DateTime(), nullable=True),
        sa.Column('resolution', sa.String(255), nullable=True),
        sa.Column('resolution_notes', sa.Text(), nullable=True),
        sa.Column('detected_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['introduction_id'], ['introductions.id']),
        sa.ForeignKeyConstraint(['employer_id'], ['employers.id']),
    )
    op.create_index('idx_flags_status', 'circumvention_flags', ['status'])
    op.create_index('idx_flags_detected', 'circumvention_flags', ['detected_at'])

    # placements
    op.create_table(
        'placements',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('introduction_id', sa.Integer(), nullable=False),
        sa.Column('job_title', sa.String(255), nullable=True),
        sa.Column('salary', sa.Integer(), nullable=False),
        sa.Column('experience_level', sa.String(20), nullable=True),
        sa.Column('fee_percentage', sa.Numeric(5, 2), nullable=False),
        sa.Column('placement_fee', sa.Integer(), nullable=False),
        sa.Column('upfront_amount', sa.Integer(), nullable=False),
        sa.Column('remaining_amount', sa.Integer(), nullable=False),
        sa.Column('start_date', sa.DateTime(), nullable=False),
        sa.Column('remaining_due_date', sa.DateTime(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='PENDING'),
        sa.Column('payment_status', sa.String(20), nullable=False, server_default='PENDING'),
        sa.Column('upfront_paid_at', sa.DateTime(), nullable=True),
        sa.Column('upfront_payment_method', sa.String(30), nullable=True),
        sa.Column('upfront_transaction_id', sa.String(255), nullable=True),
        sa.Column('remaining_paid_at', sa.DateTime(), nullable=True),
        sa.Column('remaining_payment_method', sa.String(30), nullable=True),
        sa.Column('remaining_transaction_id', sa.String(255), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['introduction_id'], ['introductions.id']),
        sa.UniqueConstraint('introduction_id'),
    )

    # =====================
    # Audit
    # =====================

    # activities
    op.create_table(
        'activities',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('action', sa.String(100), nullable=False),
        sa.Column('introduction_id', sa.Integer(), nullable=True),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('details', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['introduction_id'], ['introductions.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='SET NULL'),
    )
    op.create_index('idx_activities_introduction', 'activities', ['introduction_id'])
    op.create_index('idx_activities_created', 'activities', ['created_at'])

    # email_log
    op.create_table(
        'email_log',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('to_email', sa.String(255), nullable=False),
        sa.Column('email_type', sa.String(50), nullable=False),
        sa.Column('subject', sa.String(500), nullable=True),
        sa.Column('introduction_id', sa.Integer(), nullable=True),
        sa.Column('check_in_id', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(50), server_default='sent'),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('message_id', sa.String(255), nullable=True),
        sa.Column('sent_at', sa.DateTime(), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['introduction_id'], ['introductions.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['check_in_id'], ['check_ins.id'], ondelete='SET NULL'),
    )


def downgrade() -> None:
    op.drop_table('email_log')
    op.drop_table('activities')
    op.drop_table('placements')
    op.drop_table('circumvention_flags')
    op.drop_table('check_ins')
    op.drop_table('introductions')
    op.drop_table('job_postings')
    op.drop_table('candidates')
    op.drop_table('employers')
    op.drop_table('users')
