"""quote workflow schema

Revision ID: 0001_quote_workflow
Revises:
Create Date: 2026-10-17

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_quote_workflow'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


QUOTE_STATUS = sa.Enum(
    'DRAFT', 'SENT', 'APPROVED', 'REJECTED', 'EXPIRED', 'SCHEDULED', 'CONVERTED',
    name='quotestatus',
)
COMMUNICATION_CHANNEL = sa.Enum('SMS', 'EMAIL', name='communicationchannel')
JOB_STATUS = sa.Enum('UNSCHEDULED', 'SCHEDULED', 'IN_PROGRESS', 'COMPLETED', name='jobstatus')


def timestamps() -> list:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('hashed_password', sa.String(255), nullable=False),
        sa.Column('full_name', sa.String(255), nullable=False),
        sa.Column('business_name', sa.String(255), nullable=True),
        sa.Column('business_address', sa.Text(), nullable=True),
        sa.Column('business_phone', sa.String(50), nullable=True),
        sa.Column('business_email', sa.String(255), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('is_verified', sa.Boolean(), nullable=False),
        *timestamps(),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'customers',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('owner_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        *timestamps(),
    )
    op.create_index('ix_customers_owner_id', 'customers', ['owner_id'])

    op.create_table(
        'quotes',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('owner_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('customers.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('quote_number', sa.String(50), nullable=False),
        sa.Column('title', sa.String(255), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('terms', sa.Text(), nullable=True),
        sa.Column('status', QUOTE_STATUS, nullable=False),
        sa.Column('subtotal', sa.Numeric(12, 2), nullable=False),
        sa.Column('tax_rate', sa.Numeric(5, 2), nullable=False),
        sa.Column('tax', sa.Numeric(12, 2), nullable=False),
        sa.Column('total', sa.Numeric(12, 2), nullable=False),
        sa.Column('margin', sa.Numeric(5, 2), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rejected_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('scheduled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('converted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('signature_request_id', sa.String(100), nullable=True),
        sa.Column('signature_url', sa.String(500), nullable=True),
        sa.Column('signature_requested_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('signature_request_expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('signature_id', sa.String(100), nullable=True),
        sa.Column('signed_by', sa.String(255), nullable=True),
        sa.Column('signed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('scheduled_date', sa.Date(), nullable=True),
        sa.Column('scheduled_time', sa.String(5), nullable=True),
        sa.Column('schedule_notes', sa.Text(), nullable=True),
        sa.Column('calendar_event_id', sa.String(255), nullable=True),
        sa.Column('job_id', sa.Integer(), nullable=True),
        sa.Column('document_url', sa.String(500), nullable=True),
        sa.Column('accounting_export_id', sa.String(255), nullable=True),
        sa.Column('accounting_exported_at', sa.DateTime(timezone=True), nullable=True),
        *timestamps(),
        sa.UniqueConstraint('owner_id', 'quote_number', name='uq_quotes_owner_number'),
    )
    op.create_index('ix_quotes_owner_id', 'quotes', ['owner_id'])
    op.create_index('ix_quotes_customer_id', 'quotes', ['customer_id'])
    op.create_index('ix_quotes_quote_number', 'quotes', ['quote_number'])
    op.create_index('ix_quotes_status', 'quotes', ['status'])
    op.create_index('ix_quotes_signature_request_id', 'quotes', ['signature_request_id'], unique=True)
    op.create_index('ix_quotes_job_id', 'quotes', ['job_id'])

    op.create_table(
        'quote_items',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('quote_id', sa.Integer(), sa.ForeignKey('quotes.id', ondelete='CASCADE'), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('quantity', sa.Numeric(10, 2), nullable=False),
        sa.Column('unit_price', sa.Numeric(12, 2), nullable=False),
        *timestamps(),
    )
    op.create_index('ix_quote_items_quote_id', 'quote_items', ['quote_id'])

    op.create_table(
        'quote_communications',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('quote_id', sa.Integer(), sa.ForeignKey('quotes.id', ondelete='CASCADE'), nullable=False),
        sa.Column('channel', COMMUNICATION_CHANNEL, nullable=False),
        sa.Column('recipient', sa.String(255), nullable=False),
        sa.Column('purpose', sa.String(50), nullable=False),
        sa.Column('subject', sa.String(255), nullable=True),
        sa.Column('body', sa.Text(), nullable=True),
        sa.Column('provider_status', sa.String(50), nullable=False),
        sa.Column('message_id', sa.String(255), nullable=True),
        sa.Column('media_url', sa.String(500), nullable=True),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=False),
        *timestamps(),
    )
    op.create_index('ix_quote_communications_quote_id', 'quote_communications', ['quote_id'])

    op.create_table(
        'quote_events',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('quote_id', sa.Integer(), sa.ForeignKey('quotes.id', ondelete='CASCADE'), nullable=False),
        sa.Column('event', sa.String(50), nullable=False),
        sa.Column('from_status', sa.String(20), nullable=True),
        sa.Column('to_status', sa.String(20), nullable=True),
        sa.Column('actor', sa.String(255), nullable=False),
        sa.Column('details', sa.JSON(), nullable=True),
        *timestamps(),
    )
    op.create_index('ix_quote_events_quote_id', 'quote_events', ['quote_id'])

    op.create_table(
        'jobs',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('owner_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('customers.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('quote_id', sa.Integer(), sa.ForeignKey('quotes.id', ondelete='RESTRICT'), nullable=False, unique=True),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('status', JOB_STATUS, nullable=False),
        sa.Column('scheduled_date', sa.Date(), nullable=True),
        sa.Column('scheduled_time', sa.String(5), nullable=True),
        sa.Column('total', sa.Numeric(12, 2), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        *timestamps(),
    )
    op.create_index('ix_jobs_owner_id', 'jobs', ['owner_id'])
    op.create_index('ix_jobs_customer_id', 'jobs', ['customer_id'])


def downgrade() -> None:
    op.drop_table('jobs')
    op.drop_table('quote_events')
    op.drop_table('quote_communications')
    op.drop_table('quote_items')
    op.drop_table('quotes')
    op.drop_table('customers')
    op.drop_table('users')
    JOB_STATUS.drop(op.get_bind(), checkfirst=True)
    COMMUNICATION_CHANNEL.drop(op.get_bind(), checkfirst=True)
    QUOTE_STATUS.drop(op.get_bind(), checkfirst=True)
