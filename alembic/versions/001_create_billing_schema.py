"""Create courier billing schema

Revision ID: 001_billing_schema
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID, JSONB

# revision identifiers
revision = '001_billing_schema'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(with_updated: bool = True):
    columns = [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
    ]
    if with_updated:
        columns.append(
            sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False)
        )
    return columns


def upgrade():
    """Create reference masters, rate slabs, consignments, invoices and payments"""

    # ====================
    # REFERENCE MASTERS
    # ====================
    op.create_table(
        'modes',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('code', sa.String(50), unique=True, nullable=False),
        sa.Column('title', sa.String(100), nullable=False),
        sa.Column('is_active', sa.Boolean, server_default='true', nullable=False),
    )
    op.create_index('ix_modes_code', 'modes', ['code'])

    op.create_table(
        'service_types',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('code', sa.String(50), unique=True, nullable=False),
        sa.Column('title', sa.String(100), nullable=False),
        sa.Column('is_active', sa.Boolean, server_default='true', nullable=False),
    )
    op.create_index('ix_service_types_code', 'service_types', ['code'])

    op.create_table(
        'distance_slabs',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('code', sa.String(30), unique=True, nullable=False,
                  comment='METRO_CITIES, WITHIN_STATE, OUT_OF_STATE, OTHER_STATE'),
        sa.Column('title', sa.String(100), nullable=False),
    )

    op.create_table(
        'metro_cities',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('city', sa.String(100), nullable=False),
        sa.Column('state_code', sa.String(5), nullable=False),
        sa.Column('is_active', sa.Boolean, server_default='true', nullable=False),
        sa.UniqueConstraint('city', name='uq_metro_city'),
    )

    op.create_table(
        'state_neighbors',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('state_code', sa.String(5), nullable=False),
        sa.Column('neighbor_state_code', sa.String(5), nullable=False),
        sa.UniqueConstraint('state_code', 'neighbor_state_code', name='uq_state_neighbor'),
    )
    op.create_index('ix_state_neighbors_state_code', 'state_neighbors', ['state_code'])
    op.create_index('ix_state_neighbors_neighbor_state_code', 'state_neighbors', ['neighbor_state_code'])

    op.create_table(
        'weight_slabs',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('slab_name', sa.String(100), nullable=False),
        sa.Column('min_weight_grams', sa.Integer, nullable=False),
        sa.Column('max_weight_grams', sa.Integer, nullable=False),
        sa.Column('is_active', sa.Boolean, server_default='true', nullable=False),
        *_timestamps(),
        sa.CheckConstraint('min_weight_grams < max_weight_grams', name='ck_weight_slab_range'),
    )
    op.create_index('idx_weight_slab_lookup', 'weight_slabs', ['is_active', 'min_weight_grams'])

    # ====================
    # PARTIES / RATE SLABS
    # ====================
    op.create_table(
        'parties',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('party_name', sa.String(200), nullable=False),
        sa.Column('name_key', sa.String(200), unique=True, nullable=False, comment='LOWER(TRIM(party_name))'),
        sa.Column('gstin', sa.String(15), nullable=True),
        sa.Column('address', sa.Text, nullable=True),
        sa.Column('is_active', sa.Boolean, server_default='true', nullable=False),
        *_timestamps(with_updated=False),
    )
    op.create_index('ix_parties_name_key', 'parties', ['name_key'])

    op.create_table(
        'party_rate_slabs',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('party_id', UUID(as_uuid=True), sa.ForeignKey('parties.id', ondelete='CASCADE'), nullable=False),
        sa.Column('shipment_type', sa.String(20), nullable=False, comment='DOCUMENT, NON_DOCUMENT'),
        sa.Column('mode_id', UUID(as_uuid=True), sa.ForeignKey('modes.id'), nullable=False),
        sa.Column('service_type_id', UUID(as_uuid=True), sa.ForeignKey('service_types.id'), nullable=False),
        sa.Column('distance_slab_id', UUID(as_uuid=True), sa.ForeignKey('distance_slabs.id'), nullable=False),
        sa.Column('weight_slab_id', UUID(as_uuid=True), sa.ForeignKey('weight_slabs.id'), nullable=False),
        sa.Column('rate', sa.Numeric(12, 2), nullable=False),
        sa.Column('fuel_pct', sa.Numeric(6, 2), server_default='0', nullable=False),
        sa.Column('packing', sa.Numeric(12, 2), server_default='0', nullable=False),
        sa.Column('handling', sa.Numeric(12, 2), server_default='0', nullable=False),
        sa.Column('gst_pct', sa.Numeric(6, 2), server_default='0', nullable=False),
        sa.Column('is_active', sa.Boolean, server_default='true', nullable=False),
        *_timestamps(),
        sa.UniqueConstraint(
            'party_id', 'shipment_type', 'mode_id',
            'service_type_id', 'distance_slab_id', 'weight_slab_id',
            name='uq_party_rate_slab_key'
        ),
    )
    op.create_index('idx_party_rate_slab_party', 'party_rate_slabs', ['party_id', 'is_active'])

    op.create_table(
        'rate_audits',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('party_rate_slab_id', UUID(as_uuid=True),
                  sa.ForeignKey('party_rate_slabs.id', ondelete='CASCADE'), nullable=False),
        sa.Column('action', sa.String(10), nullable=False, comment='CREATE, UPDATE, DELETE'),
        sa.Column('before_data', JSONB, nullable=True),
        sa.Column('after_data', JSONB, nullable=True),
        sa.Column('changed_by', sa.String(100), nullable=True),
        sa.Column('changed_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
    )
    op.create_index('ix_rate_audits_party_rate_slab_id', 'rate_audits', ['party_rate_slab_id'])
    op.create_index('ix_rate_audits_changed_at', 'rate_audits', ['changed_at'])

    # ====================
    # INVOICES
    # ====================
    op.create_table(
        'invoices',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('invoice_number', sa.String(50), unique=True, nullable=False),
        sa.Column('party_id', UUID(as_uuid=True), sa.ForeignKey('parties.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('invoice_date', sa.Date, nullable=False),
        sa.Column('subtotal', sa.Numeric(12, 2), server_default='0', nullable=False),
        sa.Column('tax_amount', sa.Numeric(12, 2), server_default='0', nullable=False),
        sa.Column('additional_charges', sa.Numeric(12, 2), server_default='0', nullable=False),
        sa.Column('total_amount', sa.Numeric(12, 2), server_default='0', nullable=False),
        sa.Column('received_amount', sa.Numeric(12, 2), server_default='0', nullable=False),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('slab_breakdown', JSONB, nullable=True),
        sa.Column('created_by', sa.String(100), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_invoices_invoice_number', 'invoices', ['invoice_number'])
    op.create_index('ix_invoices_party_id', 'invoices', ['party_id'])

    op.create_table(
        'invoice_lines',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('invoice_id', UUID(as_uuid=True), sa.ForeignKey('invoices.id', ondelete='CASCADE'), nullable=False),
        sa.Column('line_number', sa.Integer, nullable=False),
        sa.Column('consignment_row_id', UUID(as_uuid=True), nullable=True),
        sa.Column('consignment_no', sa.String(50), nullable=True),
        sa.Column('description', sa.String(255), nullable=False),
        sa.Column('booking_date', sa.Date, nullable=True),
        sa.Column('quantity', sa.Integer, server_default='1', nullable=False),
        sa.Column('base', sa.Numeric(12, 2), server_default='0', nullable=False),
        sa.Column('fuel', sa.Numeric(12, 2), server_default='0', nullable=False),
        sa.Column('packing', sa.Numeric(12, 2), server_default='0', nullable=False),
        sa.Column('handling', sa.Numeric(12, 2), server_default='0', nullable=False),
        sa.Column('gst_pct', sa.Numeric(6, 2), server_default='0', nullable=False),
        sa.Column('subtotal', sa.Numeric(12, 2), nullable=False),
        sa.Column('gst', sa.Numeric(12, 2), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
    )
    op.create_index('ix_invoice_lines_invoice_id', 'invoice_lines', ['invoice_id'])

    op.create_table(
        'invoice_number_sequences',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('series_code', sa.String(20), nullable=False),
        sa.Column('financial_year', sa.String(10), nullable=False),
        sa.Column('prefix', sa.String(30), nullable=False),
        sa.Column('current_number', sa.Integer, server_default='0', nullable=False),
        sa.Column('padding_length', sa.Integer, server_default='5', nullable=False),
        sa.Column('is_active', sa.Boolean, server_default='true', nullable=False),
        sa.UniqueConstraint('series_code', 'financial_year', name='uq_invoice_sequence'),
    )

    # ====================
    # CONSIGNMENTS
    # ====================
    op.create_table(
        'consignment_rows',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('consignment_no', sa.String(50), nullable=True),
        sa.Column('booking_reference', sa.String(100), nullable=True),
        sa.Column('booking_date', sa.Date, nullable=True),
        sa.Column('sender_name', sa.String(200), nullable=True),
        sa.Column('sender_address', sa.Text, nullable=True),
        sa.Column('recipient_name', sa.String(200), nullable=True),
        sa.Column('recipient_address', sa.Text, nullable=True),
        sa.Column('mode', sa.String(50), nullable=True),
        sa.Column('service_type', sa.String(50), nullable=True),
        sa.Column('shipment_type', sa.String(20), nullable=True),
        sa.Column('region', sa.String(100), nullable=True),
        sa.Column('weight_kg', sa.Numeric(10, 3), nullable=True),
        sa.Column('chargeable_weight_kg', sa.Numeric(10, 3), nullable=True),
        sa.Column('retail_price', sa.Numeric(12, 2), nullable=True),
        sa.Column('final_collected', sa.Numeric(12, 2), nullable=True),
        sa.Column('calculated_amount', sa.Numeric(12, 2), nullable=True),
        sa.Column('pricing_meta', JSONB, nullable=True),
        sa.Column('invoice_id', UUID(as_uuid=True), sa.ForeignKey('invoices.id', ondelete='SET NULL'), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_consignment_rows_consignment_no', 'consignment_rows', ['consignment_no'])
    op.create_index('idx_consignment_sender', 'consignment_rows', ['sender_name'])
    op.create_index('idx_consignment_invoice', 'consignment_rows', ['invoice_id'])

    # ====================
    # PAYMENTS
    # ====================
    op.create_table(
        'party_payments',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('party_id', UUID(as_uuid=True), sa.ForeignKey('parties.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('payment_date', sa.Date, nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('payment_method', sa.String(30), nullable=True),
        sa.Column('reference_no', sa.String(100), nullable=True),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('created_by', sa.String(100), nullable=True),
        *_timestamps(with_updated=False),
    )
    op.create_index('ix_party_payments_party_id', 'party_payments', ['party_id'])

    op.create_table(
        'payment_allocations',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('party_payment_id', UUID(as_uuid=True),
                  sa.ForeignKey('party_payments.id', ondelete='CASCADE'), nullable=False),
        sa.Column('invoice_id', UUID(as_uuid=True), sa.ForeignKey('invoices.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        *_timestamps(with_updated=False),
    )
    op.create_index('ix_payment_allocations_party_payment_id', 'payment_allocations', ['party_payment_id'])
    op.create_index('ix_payment_allocations_invoice_id', 'payment_allocations', ['invoice_id'])


def downgrade():
    """Drop all billing tables"""
    op.drop_table('payment_allocations')
    op.drop_table('party_payments')
    op.drop_table('consignment_rows')
    op.drop_table('invoice_number_sequences')
    op.drop_table('invoice_lines')
    op.drop_table('invoices')
    op.drop_table('rate_audits')
    op.drop_table('party_rate_slabs')
    op.drop_table('parties')
    op.drop_table('weight_slabs')
    op.drop_table('state_neighbors')
    op.drop_table('metro_cities')
    op.drop_table('distance_slabs')
    op.drop_table('service_types')
    op.drop_table('modes')
