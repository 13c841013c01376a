"""Add lifecycle flags, advance and schema_version; back-fill older rows

Rows written before this revision have no canceled/collected/advance and
some lack a stored total. They are back-filled here so reads never rely on
NULL-means-false coercion:

- items -> [] where NULL
- canceled, collected -> false
- advance -> 0
- total -> recomputed from items where NULL
- schema_version -> 2

Revision ID: 002_add_lifecycle_and_advance
Revises: 001_create_invoice_tables
Create Date: 2025-07-14
"""
import json

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '002_add_lifecycle_and_advance'
down_revision = '001_create_invoice_tables'
branch_labels = None
depends_on = None

SCHEMA_VERSION = 2


def _line_total(items) -> float:
    if isinstance(items, str):
        items = json.loads(items)
    return sum((item.get('qty') or 0) * (item.get('price') or 0) for item in items or [])


def upgrade():
    conn = op.get_bind()
    existing = {col['name'] for col in sa.inspect(conn).get_columns('invoices')}

    with op.batch_alter_table('invoices') as batch:
        if 'advance' not in existing:
            batch.add_column(sa.Column('advance', sa.Float(), nullable=True))
        if 'canceled' not in existing:
            batch.add_column(sa.Column('canceled', sa.Boolean(), nullable=True))
        if 'collected' not in existing:
            batch.add_column(sa.Column('collected', sa.Boolean(), nullable=True))
        if 'schema_version' not in existing:
            batch.add_column(sa.Column('schema_version', sa.Integer(), nullable=True))

    invoices = sa.table(
        'invoices',
        sa.column('id', sa.Integer),
        sa.column('items', sa.JSON),
        sa.column('total', sa.Float),
        sa.column('advance', sa.Float),
        sa.column('canceled', sa.Boolean),
        sa.column('collected', sa.Boolean),
        sa.column('schema_version', sa.Integer),
    )

    op.execute(invoices.update().where(invoices.c['items'].is_(None)).values(items=[]))
    op.execute(invoices.update().where(invoices.c.advance.is_(None)).values(advance=0))
    op.execute(invoices.update().where(invoices.c.canceled.is_(None)).values(canceled=False))
    op.execute(invoices.update().where(invoices.c.collected.is_(None)).values(collected=False))

    # Totals have to be computed from the JSON items row by row
    rows = conn.execute(
        sa.select(invoices.c.id, invoices.c['items']).where(invoices.c.total.is_(None))
    ).all()
    for row in rows:
        conn.execute(
            invoices.update().where(invoices.c.id == row.id).values(total=_line_total(row.items))
        )

    op.execute(
        invoices.update()
        .where(invoices.c.schema_version.is_(None))
        .values(schema_version=SCHEMA_VERSION)
    )

    with op.batch_alter_table('invoices') as batch:
        batch.alter_column('items', existing_type=sa.JSON(), nullable=False)
        batch.alter_column('total', existing_type=sa.Float(), nullable=False)
        batch.alter_column('advance', existing_type=sa.Float(), nullable=False)
        batch.alter_column('canceled', existing_type=sa.Boolean(), nullable=False)
        batch.alter_column('collected', existing_type=sa.Boolean(), nullable=False)
        batch.alter_column('schema_version', existing_type=sa.Integer(), nullable=False)


def downgrade():
    with op.batch_alter_table('invoices') as batch:
        batch.drop_column('schema_version')
        batch.drop_column('collected')
        batch.drop_column('canceled')
        batch.drop_column('advance')
        batch.alter_column('total', existing_type=sa.Float(), nullable=True)
