"""Create invoice_counters and invoices tables

The first schema variant: invoices carry customer fields, line items and
the derived total only. Lifecycle flags and advance arrive in 002.

Revision ID: 001_create_invoice_tables
Revises:
Create Date: 2025-06-02

Note: Tables may already exist when the app created them with init_db().
The inspector check keeps this migration idempotent.
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_create_invoice_tables'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    """Create counter and invoice tables if they don't exist."""
    inspector = sa.inspect(op.get_bind())

    if not inspector.has_table('invoice_counters'):
        op.create_table(
            'invoice_counters',
            sa.Column('id', sa.String(50), primary_key=True),
            sa.Column('sequence_value', sa.Integer(), nullable=False, server_default=sa.text('0')),
            sa.CheckConstraint('sequence_value >= 0', name='ck_invoice_counters_non_negative'),
        )

    if not inspector.has_table('invoices'):
        op.create_table(
            'invoices',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('invoice_number', sa.String(50), nullable=False),
            sa.Column('customer_name', sa.String(255)),
            sa.Column('customer_phone', sa.String(50)),
            sa.Column('items', sa.JSON(), nullable=False),
            sa.Column('total', sa.Float()),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('updated_at', sa.DateTime(timezone=True)),
        )
        op.create_index('ix_invoices_id', 'invoices', ['id'])
        op.create_index('ix_invoices_invoice_number', 'invoices', ['invoice_number'], unique=True)
        op.create_index('ix_invoices_created_at', 'invoices', ['created_at'])


def downgrade():
    op.drop_index('ix_invoices_created_at', table_name='invoices')
    op.drop_index('ix_invoices_invoice_number', table_name='invoices')
    op.drop_index('ix_invoices_id', table_name='invoices')
    op.drop_table('invoices')
    op.drop_table('invoice_counters')
