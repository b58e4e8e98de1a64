"""initial_payout_schema

Revision ID: 001
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

IN_FLIGHT_WHERE = sa.text("status IN ('pending', 'processing', 'approved')")


def upgrade() -> None:
    # Events and tickets (written by the ticketing service)
    op.create_table(
        'events',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('organizer_id', sa.String(36), nullable=False),
        sa.Column('title', sa.String(255), nullable=False, server_default=''),
        sa.Column('currency', sa.String(3), nullable=False, server_default='HTG'),
        sa.Column('country', sa.String(2), nullable=True),
        sa.Column('start_datetime', sa.DateTime(), nullable=False),
        sa.Column('end_datetime', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_events_organizer_id', 'events', ['organizer_id'])

    op.create_table(
        'tickets',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('event_id', sa.String(36), nullable=False),
        sa.Column('attendee_id', sa.String(36), nullable=True),
        sa.Column('price_paid', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(20), nullable=False, server_default='valid'),
        sa.Column('purchased_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['event_id'], ['events.id']),
    )
    op.create_index('idx_tickets_event_id_status', 'tickets', ['event_id', 'status'])

    # Earnings ledger
    op.create_table(
        'event_earnings',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('event_id', sa.String(36), nullable=False),
        sa.Column('organizer_id', sa.String(36), nullable=False),
        sa.Column('gross_amount', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('platform_fee', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('net_amount', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('withdrawn_amount', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('tickets_sold', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('currency', sa.String(3), nullable=False, server_default='HTG'),
        sa.Column('settlement_status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('settlement_ready_date', sa.DateTime(), nullable=False),
        sa.Column('last_sale_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['event_id'], ['events.id']),
        sa.UniqueConstraint('event_id'),
        sa.CheckConstraint('withdrawn_amount >= 0', name='ck_event_earnings_withdrawn_non_negative'),
        sa.CheckConstraint('withdrawn_amount <= net_amount', name='ck_event_earnings_withdrawn_le_net'),
    )
    op.create_index('idx_event_earnings_organizer_id', 'event_earnings', ['organizer_id'])
    op.create_index('idx_event_earnings_settlement', 'event_earnings', ['settlement_status', 'settlement_ready_date'])

    # Payout requests
    op.create_table(
        'payout_requests',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('organizer_id', sa.String(36), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False, server_default='HTG'),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('method', sa.String(20), nullable=True),
        sa.Column('destination_id', sa.String(64), nullable=True),
        sa.Column('scheduled_date', sa.DateTime(), nullable=True),
        sa.Column('ticket_ids', sa.JSON(), nullable=False),
        sa.Column('period_start', sa.DateTime(), nullable=True),
        sa.Column('period_end', sa.DateTime(), nullable=True),
        sa.Column('approved_by', sa.String(36), nullable=True),
        sa.Column('approved_at', sa.DateTime(), nullable=True),
        sa.Column('declined_by', sa.String(36), nullable=True),
        sa.Column('declined_at', sa.DateTime(), nullable=True),
        sa.Column('decline_reason', sa.Text(), nullable=True),
        sa.Column('completed_by', sa.String(36), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('payment_reference_id', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_payout_requests_organizer_status', 'payout_requests', ['organizer_id', 'status'])
    op.create_index(
        'uq_payout_requests_organizer_in_flight',
        'payout_requests',
        ['organizer_id'],
        unique=True,
        postgresql_where=IN_FLIGHT_WHERE,
        sqlite_where=IN_FLIGHT_WHERE,
    )

    # Withdrawals
    op.create_table(
        'withdrawal_requests',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('organizer_id', sa.String(36), nullable=False),
        sa.Column('event_id', sa.String(36), nullable=False),
        sa.Column('amount', sa.Float(), nullable=False),
        sa.Column('amount_unit', sa.String(10), nullable=True),
        sa.Column('currency', sa.String(3), nullable=False, server_default='HTG'),
        sa.Column('method', sa.String(20), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('moncash_number', sa.String(32), nullable=True),
        sa.Column('destination_id', sa.String(64), nullable=True),
        sa.Column('account_last4', sa.String(4), nullable=True),
        sa.Column('fee_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('payout_amount_cents', sa.Integer(), nullable=True),
        sa.Column('prefunding_used', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('prefunding_fee_percent', sa.Float(), nullable=True),
        sa.Column('reserved_cents', sa.Integer(), nullable=True),
        sa.Column('reserved_at', sa.DateTime(), nullable=True),
        sa.Column('reservation_released_at', sa.DateTime(), nullable=True),
        sa.Column('moncash_transaction_id', sa.String(128), nullable=True),
        sa.Column('processed_by', sa.String(36), nullable=True),
        sa.Column('processed_at', sa.DateTime(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('failure_reason', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['event_id'], ['events.id']),
    )
    op.create_index('idx_withdrawal_requests_organizer_id', 'withdrawal_requests', ['organizer_id'])
    op.create_index('idx_withdrawal_requests_event_id', 'withdrawal_requests', ['event_id'])
    op.create_index('idx_withdrawal_requests_status', 'withdrawal_requests', ['status'])

    # Destinations and payout setup
    op.create_table(
        'payout_destinations',
        sa.Column('organizer_id', sa.String(36), nullable=False),
        sa.Column('id', sa.String(64), nullable=False),
        sa.Column('type', sa.String(20), nullable=False, server_default='bank'),
        sa.Column('bank_name', sa.String(255), nullable=False),
        sa.Column('account_name', sa.String(255), nullable=False),
        sa.Column('account_number_last4', sa.String(4), nullable=False),
        sa.Column('is_primary', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('sealed_payload', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('organizer_id', 'id'),
    )
    op.create_index('idx_payout_destinations_organizer_primary', 'payout_destinations', ['organizer_id', 'is_primary'])

    op.create_table(
        'payout_profiles',
        sa.Column('organizer_id', sa.String(36), nullable=False),
        sa.Column('method', sa.String(20), nullable=True),
        sa.Column('status', sa.String(30), nullable=False, server_default='not_setup'),
        sa.Column('legal_name', sa.String(255), nullable=True),
        sa.Column('mobile_provider', sa.String(40), nullable=True),
        sa.Column('phone_last4', sa.String(4), nullable=True),
        sa.Column('sealed_mobile_money', sa.Text(), nullable=True),
        sa.Column('on_hold', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('hold_reason', sa.Text(), nullable=True),
        sa.Column('allow_instant_moncash', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('organizer_id'),
    )

    op.create_table(
        'verification_documents',
        sa.Column('organizer_id', sa.String(36), nullable=False),
        sa.Column('doc_key', sa.String(80), nullable=False),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('destination_id', sa.String(64), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('evidence', sa.JSON(), nullable=False),
        sa.Column('contact_email', sa.String(255), nullable=True),
        sa.Column('submitted_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('reviewed_at', sa.DateTime(), nullable=True),
        sa.Column('reviewed_by', sa.String(36), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('organizer_id', 'doc_key'),
    )
    op.create_index('idx_verification_documents_status', 'verification_documents', ['status'])

    # Platform config and audit trail
    op.create_table(
        'platform_payout_config',
        sa.Column('id', sa.String(20), nullable=False),
        sa.Column('settlement_hold_days', sa.Integer(), nullable=False),
        sa.Column('minimum_payout_amount', sa.Integer(), nullable=False),
        sa.Column('prefunding_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('prefunding_available', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('prefunding_balance', sa.Integer(), nullable=True),
        sa.Column('prefunding_last_checked_at', sa.DateTime(), nullable=True),
        sa.Column('prefunding_last_error', sa.String(500), nullable=True),
        sa.Column('updated_by', sa.String(36), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'admin_audit_log',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('action', sa.String(64), nullable=False),
        sa.Column('actor_id', sa.String(36), nullable=False),
        sa.Column('actor_email', sa.String(255), nullable=True),
        sa.Column('target_type', sa.String(40), nullable=False),
        sa.Column('target_id', sa.String(120), nullable=False),
        sa.Column('details', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_admin_audit_log_target', 'admin_audit_log', ['target_type', 'target_id'])
    op.create_index('idx_admin_audit_log_action', 'admin_audit_log', ['action'])


def downgrade() -> None:
    op.drop_index('idx_admin_audit_log_action', table_name='admin_audit_log')
    op.drop_index('idx_admin_audit_log_target', table_name='admin_audit_log')
    op.drop_table('admin_audit_log')
    op.drop_table('platform_payout_config')
    op.drop_index('idx_verification_documents_status', table_name='verification_documents')
    op.drop_table('verification_documents')
    op.drop_table('payout_profiles')
    op.drop_index('idx_payout_destinations_organizer_primary', table_name='payout_destinations')
    op.drop_table('payout_destinations')
    op.drop_index('idx_withdrawal_requests_status', table_name='withdrawal_requests')
    op.drop_index('idx_withdrawal_requests_event_id', table_name='withdrawal_requests')
    op.drop_index('idx_withdrawal_requests_organizer_id', table_name='withdrawal_requests')
    op.drop_table('withdrawal_requests')
    op.drop_index('uq_payout_requests_organizer_in_flight', table_name='payout_requests')
    op.drop_index('idx_payout_requests_organizer_status', table_name='payout_requests')
    op.drop_table('payout_requests')
    op.drop_index('idx_event_earnings_settlement', table_name='event_earnings')
    op.drop_index('idx_event_earnings_organizer_id', table_name='event_earnings')
    op.drop_table('event_earnings')
    op.drop_index('idx_tickets_event_id_status', table_name='tickets')
    op.drop_table('tickets')
    op.drop_index('idx_events_organizer_id', table_name='events')
    op.drop_table('events')
