"""Initial schema - marketplace, escrow, pricing and founder tables

Revision ID: 001_initial
Revises: 
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001_initial'
down_revision = None
branch_labels = None
depends_on = None


def _uuid_pk():
    return sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()'))


def _created_at():
    return sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now())


def upgrade() -> None:
    # Profiles, keyed by the Supabase auth user id
    op.create_table(
        'profiles',
        _uuid_pk(),
        sa.Column('email', sa.String(255), index=True),
        sa.Column('name', sa.String(255)),
        sa.Column('role', sa.Enum('ADMIN', 'ARTIST', 'GALLERY', 'BUYER', name='profile_role'), nullable=False, server_default='BUYER'),
        sa.Column('stripe_account_id', sa.String(255)),
        _created_at(),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
    )

    op.create_table(
        'artworks',
        _uuid_pk(),
        sa.Column('artist_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('profiles.id'), nullable=False, index=True),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('price_cents', sa.BigInteger(), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False, server_default='DKK'),
        sa.Column('medium', sa.String(255)),
        sa.Column('dimensions', sa.String(100)),
        sa.Column('year_created', sa.Integer()),
        sa.Column('status', sa.Enum('DRAFT', 'AVAILABLE', 'RESERVED', 'SOLD', 'ARCHIVED', name='artwork_status'), nullable=False, server_default='AVAILABLE'),
        _created_at(),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
    )

    op.create_table(
        'galleries',
        _uuid_pk(),
        sa.Column('owner_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('profiles.id'), nullable=False, unique=True),
        sa.Column('name', sa.String(255), nullable=False),
        _created_at(),
    )

    op.create_table(
        'gallery_artists',
        _uuid_pk(),
        sa.Column('gallery_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('galleries.id'), nullable=False, index=True),
        sa.Column('artist_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('profiles.id'), nullable=False, index=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        _created_at(),
    )

    # Offers and escrow
    op.create_table(
        'offers',
        _uuid_pk(),
        sa.Column('artwork_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('artworks.id'), nullable=False, index=True),
        sa.Column('buyer_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('profiles.id'), nullable=False, index=True),
        sa.Column('seller_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('profiles.id'), nullable=False, index=True),
        sa.Column('list_price_cents', sa.BigInteger(), nullable=False),
        sa.Column('offered_price_cents', sa.BigInteger(), nullable=False),
        sa.Column('status', sa.Enum('PENDING', 'ACCEPTED', 'REJECTED', 'EXPIRED', name='offer_status'), nullable=False, server_default='PENDING'),
        sa.Column(
            'enhanced_status',
            sa.Enum(
                'PENDING_OFFER', 'OFFER_ACCEPTED', 'PAYMENT_LINK_CREATED', 'AWAITING_PAYMENT', 'ESCROW_FUNDED',
                'AWAITING_APPROVALS', 'BOTH_APPROVED', 'RELEASED', 'DISPUTED', 'EXPIRED', 'CANCELLED',
                name='enhanced_offer_status'
            ),
            nullable=False,
            server_default='PENDING_OFFER'
        ),
        sa.Column('message', sa.Text()),
        sa.Column('payment_link_id', sa.String(255)),
        sa.Column('payment_link_url', sa.String(500)),
        sa.Column('stripe_payment_intent_id', sa.String(255), index=True),
        sa.Column('price_deviation_alert_sent', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('expires_at', sa.DateTime(timezone=True)),
        sa.Column('payment_deadline', sa.DateTime(timezone=True)),
        sa.Column('accepted_at', sa.DateTime(timezone=True)),
        sa.Column('rejected_at', sa.DateTime(timezone=True)),
        _created_at(),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_offers_status_expires_at', 'offers', ['status', 'expires_at'])

    op.create_table(
        'escrow_approvals',
        _uuid_pk(),
        sa.Column('offer_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('offers.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('buyer_approved', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('buyer_approved_at', sa.DateTime(timezone=True)),
        sa.Column('seller_approved', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('seller_approved_at', sa.DateTime(timezone=True)),
        sa.Column('both_approved', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('funds_released', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('funds_released_at', sa.DateTime(timezone=True)),
        sa.Column('stripe_transfer_id', sa.String(255)),
        sa.Column('platform_fee_cents', sa.BigInteger()),
        sa.Column('vat_cents', sa.BigInteger()),
        sa.Column('seller_amount_cents', sa.BigInteger()),
        sa.Column('approval_deadline', sa.DateTime(timezone=True)),
        sa.Column('is_stalled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('deadline_reminder_sent_at', sa.DateTime(timezone=True)),
        _created_at(),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint('NOT funds_released OR both_approved', name='ck_escrow_release_requires_approval'),
    )

    op.create_table(
        'offer_audit_logs',
        _uuid_pk(),
        sa.Column('offer_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('offers.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('event_type', sa.String(50), nullable=False),
        sa.Column('actor_id', postgresql.UUID(as_uuid=True)),
        sa.Column('actor_role', sa.String(20)),
        sa.Column('old_status', sa.String(50)),
        sa.Column('new_status', sa.String(50)),
        sa.Column('metadata', postgresql.JSONB(), server_default=sa.text("'{}'::jsonb")),
        _created_at(),
    )

    op.create_table(
        'offer_disputes',
        _uuid_pk(),
        sa.Column('offer_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('offers.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('initiator_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('profiles.id'), nullable=False),
        sa.Column('initiator_role', sa.Enum('BUYER', 'SELLER', name='party_role'), nullable=False),
        sa.Column('reason', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('attachments', postgresql.JSONB(), server_default=sa.text("'[]'::jsonb")),
        sa.Column('status', sa.Enum('OPEN', 'INVESTIGATING', 'RESOLVED', 'CLOSED', name='dispute_status'), nullable=False, server_default='OPEN'),
        sa.Column('resolution', sa.Text()),
        sa.Column('resolved_by', postgresql.UUID(as_uuid=True), sa.ForeignKey('profiles.id')),
        sa.Column('resolved_at', sa.DateTime(timezone=True)),
        sa.Column('admin_notes', sa.Text()),
        _created_at(),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        'orders',
        _uuid_pk(),
        sa.Column('buyer_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('profiles.id'), nullable=False, index=True),
        sa.Column('artwork_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('artworks.id'), nullable=False),
        sa.Column('offer_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('offers.id')),
        sa.Column('amount_cents', sa.BigInteger(), nullable=False),
        sa.Column('status', sa.Enum('PENDING', 'PAID', 'COMPLETED', 'CANCELLED', 'REFUNDED', name='order_status'), nullable=False, server_default='PENDING'),
        _created_at(),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
    )

    # Admin alerts
    op.create_table(
        'admin_alerts',
        _uuid_pk(),
        sa.Column('alert_type', sa.Enum('PRICE_DEVIATION', 'ESCROW_ISSUE', 'PAYMENT_FAILED', 'AI_BUDGET', 'OTHER', name='alert_type'), nullable=False, index=True),
        sa.Column('severity', sa.Enum('INFO', 'LOW', 'MEDIUM', 'HIGH', 'CRITICAL', name='alert_severity'), nullable=False, server_default='MEDIUM'),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('offer_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('offers.id')),
        sa.Column('metadata', postgresql.JSONB(), server_default=sa.text("'{}'::jsonb")),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('resolved', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('resolved_at', sa.DateTime(timezone=True)),
        _created_at(),
    )

    # Pricing
    op.create_table(
        'market_sales',
        _uuid_pk(),
        sa.Column('artist_name', sa.String(255), nullable=False, index=True),
        sa.Column('artwork_title', sa.String(255)),
        sa.Column('sale_price_cents', sa.BigInteger(), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False, server_default='DKK'),
        sa.Column('sale_date', sa.Date(), nullable=False),
        sa.Column('medium', sa.String(255)),
        sa.Column('dimensions', sa.String(100)),
        sa.Column('auction_house', sa.String(255)),
        _created_at(),
    )

    op.create_table(
        'price_evaluations',
        _uuid_pk(),
        sa.Column('artwork_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('artworks.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('current_price_cents', sa.BigInteger(), nullable=False),
        sa.Column('market_avg_price_cents', sa.BigInteger()),
        sa.Column('market_median_price_cents', sa.BigInteger()),
        sa.Column('market_min_price_cents', sa.BigInteger()),
        sa.Column('market_max_price_cents', sa.BigInteger()),
        sa.Column('comparable_sales_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('price_deviation_percent', sa.Float()),
        sa.Column('recommendation', sa.Enum('UNDERPRICED', 'FAIRLY_PRICED', 'OVERPRICED', 'INSUFFICIENT_DATA', name='price_recommendation'), nullable=False),
        sa.Column('confidence_score', sa.Float(), nullable=False),
        sa.Column('evaluation_notes', sa.Text()),
        sa.Column('evaluated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), index=True),
    )

    # Founder economics
    op.create_table(
        'founder_settings',
        _uuid_pk(),
        sa.Column('ai_monthly_budget', sa.Numeric(12, 2), nullable=False, server_default='100'),
        sa.Column('ai_daily_spend_cap', sa.Numeric(12, 2), nullable=False, server_default='10'),
        sa.Column('ai_weekly_spend_cap', sa.Numeric(12, 2), nullable=False, server_default='50'),
        sa.Column('ai_budget_buffer_percent', sa.Numeric(5, 2), nullable=False, server_default='10'),
        sa.Column('ai_spend_hard_limit_enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('ai_spend_alert_threshold_percentage', sa.Numeric(5, 2), nullable=False, server_default='80'),
        sa.Column('ai_spend_smoothing_enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('ai_spend_smoothing_window_days', sa.Integer(), nullable=False, server_default='7'),
        _created_at(),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
    )

    op.create_table(
        'founder_projects',
        _uuid_pk(),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('ai_monthly_budget_allocation', sa.Numeric(12, 2)),
        _created_at(),
    )

    op.create_table(
        'ai_spend_logs',
        _uuid_pk(),
        sa.Column('project_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('founder_projects.id'), nullable=False, index=True),
        sa.Column('amount', sa.Numeric(12, 4), nullable=False),
        sa.Column('reason', sa.String(255), nullable=False),
        sa.Column('provider', sa.String(50)),
        sa.Column('model', sa.String(100)),
        sa.Column('tokens_used', sa.Integer()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), index=True),
        sa.CheckConstraint('amount >= 0', name='ck_ai_spend_amount_non_negative'),
    )

    op.create_table(
        'project_expenses',
        _uuid_pk(),
        sa.Column('project_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('founder_projects.id'), nullable=False, index=True),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('description', sa.String(255)),
        _created_at(),
    )

    # Outbound email queue
    op.create_table(
        'email_notifications',
        _uuid_pk(),
        sa.Column('recipient_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('profiles.id'), nullable=False),
        sa.Column('recipient_email', sa.String(255), nullable=False),
        sa.Column(
            'notification_type',
            sa.Enum(
                'OFFER_CREATED', 'OFFER_ACCEPTED', 'OFFER_REJECTED', 'PAYMENT_LINK_READY', 'PAYMENT_RECEIVED',
                'SELLER_APPROVED', 'BUYER_APPROVED', 'ESCROW_RELEASED', 'PRICE_DEVIATION_ALERT', 'PAYMENT_FAILED',
                'OFFER_EXPIRED', 'APPROVAL_DEADLINE_WARNING', 'DISPUTE_CREATED', 'DISPUTE_RESOLVED',
                name='email_notification_type'
            ),
            nullable=False
        ),
        sa.Column('subject', sa.String(255), nullable=False),
        sa.Column('template_data', postgresql.JSONB(), server_default=sa.text("'{}'::jsonb")),
        sa.Column('offer_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('offers.id')),
        sa.Column('status', sa.Enum('PENDING', 'SENT', 'FAILED', name='email_status'), nullable=False, server_default='PENDING', index=True),
        sa.Column('sent_at', sa.DateTime(timezone=True)),
        sa.Column('error_message', sa.Text()),
        sa.Column('retry_count', sa.Integer(), nullable=False, server_default='0'),
        _created_at(),
    )

    # Same fee rule as artsafe.utils.helpers.calculate_escrow_amounts (20% commission, 25% VAT on it)
    op.execute("""
        CREATE OR REPLACE FUNCTION calculate_escrow_amounts(p_total_price_cents BIGINT)
        RETURNS TABLE (platform_fee_cents BIGINT, vat_cents BIGINT, seller_amount_cents BIGINT)
        LANGUAGE plpgsql IMMUTABLE AS $$
        DECLARE
            v_fee BIGINT;
            v_vat BIGINT;
        BEGIN
            IF p_total_price_cents < 0 THEN
                RAISE EXCEPTION 'total price must not be negative';
            END IF;
            v_fee := ROUND(p_total_price_cents::NUMERIC * 20 / 100);
            v_vat := ROUND(v_fee::NUMERIC * 25 / 100);
            RETURN QUERY SELECT v_fee, v_vat, p_total_price_cents - v_fee - v_vat;
        END;
        $$;
    """)


def downgrade() -> None:
    op.execute("DROP FUNCTION IF EXISTS calculate_escrow_amounts(BIGINT)")

    for table in (
        'email_notifications',
        'project_expenses',
        'ai_spend_logs',
        'founder_projects',
        'founder_settings',
        'price_evaluations',
        'market_sales',
        'admin_alerts',
        'orders',
        'offer_disputes',
        'offer_audit_logs',
        'escrow_approvals',
        'offers',
        'gallery_artists',
        'galleries',
        'artworks',
        'profiles',
    ):
        op.drop_table(table)

    for enum_name in (
        'email_status',
        'email_notification_type',
        'price_recommendation',
        'alert_severity',
        'alert_type',
        'order_status',
        'dispute_status',
        'party_role',
        'enhanced_offer_status',
        'offer_status',
        'artwork_status',
        'profile_role',
    ):
        sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
