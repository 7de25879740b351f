"""initial masters schema

Revision ID: 3f1c9a7d2b10
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '3f1c9a7d2b10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    ]


def _id() -> sa.Column:
    return sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False)


def upgrade() -> None:
    # ─── Fabrics ───
    op.create_table(
        'fabrics',
        _id(),
        sa.Column('fabric_code', sa.String(100), nullable=False),
        sa.Column('fabric_name', sa.String(255), nullable=False),
        sa.Column('fabric_type', sa.String(100), nullable=True),
        sa.Column('image_url', sa.String(1000), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_fabrics'),
    )
    op.create_index('ix_fabrics_fabric_code', 'fabrics', ['fabric_code'], unique=True)

    op.create_table(
        'fabric_variants',
        _id(),
        sa.Column('fabric_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('variant_code', sa.String(255), nullable=False),
        sa.Column('color', sa.String(100), nullable=False),
        sa.Column('gsm', sa.Integer(), nullable=False),
        sa.Column('uom', sa.String(20), nullable=True),
        sa.Column('price', sa.Numeric(12, 2), nullable=True),
        sa.Column('supplier', sa.String(255), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('hex_code', sa.String(7), nullable=True),
        sa.Column('image_url', sa.String(1000), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ['fabric_id'], ['fabrics.id'], name='fk_fabric_variants_fabric_id_fabrics', ondelete='CASCADE'
        ),
        sa.PrimaryKeyConstraint('id', name='pk_fabric_variants'),
        sa.UniqueConstraint('fabric_id', 'variant_code', name='uq_fabric_variants_fabric_id_variant_code'),
    )
    op.create_index('ix_fabric_variants_fabric_id', 'fabric_variants', ['fabric_id'])

    # ─── Products ───
    op.create_table(
        'products',
        _id(),
        sa.Column('sku', sa.String(100), nullable=False),
        sa.Column('size', sa.String(50), nullable=True),
        sa.Column('class_name', sa.String(100), nullable=True),
        sa.Column('color', sa.String(100), nullable=True),
        sa.Column('brand', sa.String(100), nullable=True),
        sa.Column('category', sa.String(100), nullable=True),
        sa.Column('hsn', sa.String(20), nullable=True),
        sa.Column('gst_percent', sa.Numeric(5, 2), nullable=False),
        sa.Column('mrp', sa.Numeric(12, 2), nullable=False),
        sa.Column('cost_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('selling_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('image_url', sa.String(1000), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_products'),
    )
    op.create_index('ix_products_sku', 'products', ['sku'], unique=True)

    # ─── Customers ───
    op.execute("CREATE SEQUENCE customer_code_seq")
    op.create_table(
        'customers',
        _id(),
        sa.Column(
            'customer_code',
            sa.String(20),
            server_default=sa.text("'CUS-' || lpad(nextval('customer_code_seq')::text, 5, '0')"),
            nullable=False,
        ),
        sa.Column('contact_person', sa.String(255), nullable=True),
        sa.Column('company', sa.String(255), nullable=True),
        sa.Column('mobile', sa.String(20), nullable=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('address_line1', sa.String(255), nullable=True),
        sa.Column('address_line2', sa.String(255), nullable=True),
        sa.Column('state', sa.String(100), nullable=True),
        sa.Column('city', sa.String(100), nullable=True),
        sa.Column('pincode', sa.String(10), nullable=True),
        sa.Column('avatar_url', sa.String(1000), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_customers'),
        sa.UniqueConstraint('customer_code', name='uq_customers_customer_code'),
        sa.UniqueConstraint('mobile', name='uq_customers_mobile'),
    )
    op.create_index('ix_customers_company', 'customers', ['company'])

    # ─── Import runs + audit ───
    op.create_table(
        'import_runs',
        _id(),
        sa.Column('entity', sa.String(50), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('file_name', sa.String(500), nullable=False),
        sa.Column('file_key', sa.String(500), nullable=True),
        sa.Column('content_type', sa.String(100), nullable=True),
        sa.Column('row_count', sa.Integer(), nullable=False),
        sa.Column('valid_count', sa.Integer(), nullable=False),
        sa.Column('invalid_count', sa.Integer(), nullable=False),
        sa.Column('progress', sa.Float(), nullable=False),
        sa.Column('cancel_requested', sa.Boolean(), nullable=False),
        sa.Column('result', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('created_by', sa.String(255), nullable=True),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('finished_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_import_runs'),
    )
    op.create_index('ix_import_runs_entity', 'import_runs', ['entity'])
    op.create_index('ix_import_runs_status', 'import_runs', ['status'])

    op.create_table(
        'audit_logs',
        _id(),
        sa.Column('actor_id', sa.String(255), nullable=True),
        sa.Column('actor_email', sa.String(255), nullable=True),
        sa.Column('action', sa.String(100), nullable=False),
        sa.Column('entity_type', sa.String(100), nullable=False),
        sa.Column('entity_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('before_state', sa.Text(), nullable=True),
        sa.Column('after_state', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_audit_logs'),
    )
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])
    op.create_index('ix_audit_logs_entity_type', 'audit_logs', ['entity_type'])
    op.create_index('ix_audit_logs_entity_id', 'audit_logs', ['entity_id'])


def downgrade() -> None:
    op.drop_index('ix_audit_logs_entity_id', table_name='audit_logs')
    op.drop_index('ix_audit_logs_entity_type', table_name='audit_logs')
    op.drop_index('ix_audit_logs_action', table_name='audit_logs')
    op.drop_table('audit_logs')
    op.drop_index('ix_import_runs_status', table_name='import_runs')
    op.drop_index('ix_import_runs_entity', table_name='import_runs')
    op.drop_table('import_runs')
    op.drop_index('ix_customers_company', table_name='customers')
    op.drop_table('customers')
    op.execute("DROP SEQUENCE customer_code_seq")
    op.drop_index('ix_products_sku', table_name='products')
    op.drop_table('products')
    op.drop_index('ix_fabric_variants_fabric_id', table_name='fabric_variants')
    op.drop_table('fabric_variants')
    op.drop_index('ix_fabrics_fabric_code', table_name='fabrics')
    op.drop_table('fabrics')
