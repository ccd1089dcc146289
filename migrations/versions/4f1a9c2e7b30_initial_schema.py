"""initial_schema

Revision ID: 4f1a9c2e7b30
Revises:
Create Date: 2026-10-19 09:12:44.218533+00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '4f1a9c2e7b30'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # 1. base_products (platform catalog, no FKs)
    op.create_table('base_products',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('name', sa.String(length=255), nullable=False),
    sa.Column('description', sa.Text(), nullable=True),
    sa.Column('sku', sa.String(length=64), nullable=True),
    sa.Column('category', sa.String(length=100), nullable=False),
    sa.Column('image_url', sa.String(length=500), nullable=True),
    sa.Column('price', sa.Numeric(precision=12, scale=2), nullable=False),
    sa.Column('points_cost', sa.Numeric(precision=12, scale=2), nullable=False),
    sa.Column('stock_quantity', sa.Integer(), nullable=False),
    sa.Column('is_active', sa.Boolean(), nullable=False),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.Column('updated_at', sa.DateTime(), nullable=True),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_base_products_category', 'base_products', ['category'], unique=False)

    # 2. budgets
    op.create_table('budgets',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('company_id', sa.String(length=64), nullable=False),
    sa.Column('title', sa.String(length=255), nullable=False),
    sa.Column('description', sa.Text(), nullable=True),
    sa.Column('status', sa.String(length=20), nullable=False),
    sa.Column('total_price', sa.Numeric(precision=14, scale=2), nullable=False),
    sa.Column('total_points', sa.Numeric(precision=14, scale=2), nullable=False),
    sa.Column('item_count', sa.Integer(), nullable=False),
    sa.Column('created_by', sa.String(length=64), nullable=False),
    sa.Column('updated_by', sa.String(length=64), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.Column('updated_at', sa.DateTime(), nullable=True),
    sa.Column('replicated_at', sa.DateTime(), nullable=True),
    sa.CheckConstraint(
        "status IN ('draft','submitted','reviewed','approved','rejected','released','replicated')",
        name='chk_budget_status',
    ),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_budgets_company', 'budgets', ['company_id', 'status'], unique=False)

    # 3. budget_items (FK to budgets)
    op.create_table('budget_items',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('budget_id', sa.String(length=36), nullable=False),
    sa.Column('base_product_id', sa.String(length=36), nullable=False),
    sa.Column('qty', sa.Integer(), nullable=False),
    sa.Column('unit_price', sa.Numeric(precision=12, scale=2), nullable=False),
    sa.Column('unit_points', sa.Numeric(precision=12, scale=2), nullable=False),
    sa.Column('position', sa.Integer(), nullable=False),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.Column('updated_at', sa.DateTime(), nullable=True),
    sa.CheckConstraint('qty >= 1', name='chk_budget_item_qty'),
    sa.CheckConstraint('unit_price >= 0', name='chk_budget_item_price'),
    sa.CheckConstraint('unit_points >= 0', name='chk_budget_item_points'),
    sa.ForeignKeyConstraint(['budget_id'], ['budgets.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_budget_items_budget', 'budget_items', ['budget_id', 'position'], unique=False)

    # 4. company_products (one row per company + base product)
    op.create_table('company_products',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('company_id', sa.String(length=64), nullable=False),
    sa.Column('base_product_id', sa.String(length=36), nullable=False),
    sa.Column('name', sa.String(length=255), nullable=False),
    sa.Column('description', sa.Text(), nullable=True),
    sa.Column('sku', sa.String(length=64), nullable=True),
    sa.Column('category', sa.String(length=100), nullable=True),
    sa.Column('image_url', sa.String(length=500), nullable=True),
    sa.Column('price', sa.Numeric(precision=12, scale=2), nullable=False),
    sa.Column('points_cost', sa.Numeric(precision=12, scale=2), nullable=False),
    sa.Column('stock_quantity', sa.Integer(), nullable=False),
    sa.Column('is_active', sa.Boolean(), nullable=False),
    sa.Column('created_by', sa.String(length=64), nullable=True),
    sa.Column('updated_by', sa.String(length=64), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.Column('updated_at', sa.DateTime(), nullable=True),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('company_id', 'base_product_id', name='uq_company_product_base')
    )
    op.create_index('idx_company_products_company', 'company_products', ['company_id'], unique=False)

    # 5. replication_logs (append-only)
    op.create_table('replication_logs',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('budget_id', sa.String(length=36), nullable=True),
    sa.Column('company_id', sa.String(length=64), nullable=False),
    sa.Column('base_product_id', sa.String(length=36), nullable=True),
    sa.Column('actor_id', sa.String(length=64), nullable=False),
    sa.Column('action', sa.String(length=32), nullable=False),
    sa.Column('status', sa.String(length=16), nullable=False),
    sa.Column('results', sa.JSON(), nullable=False),
    sa.Column('errors', sa.JSON(), nullable=True),
    sa.Column('summary', sa.JSON(), nullable=False),
    sa.Column('metadata', sa.JSON(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_replication_logs_budget', 'replication_logs', ['budget_id'], unique=False)
    op.create_index('idx_replication_logs_company', 'replication_logs', ['company_id'], unique=False)
    op.create_index('idx_replication_logs_created', 'replication_logs', [sa.text('created_at DESC')], unique=False)


def downgrade() -> None:
    op.drop_index('idx_replication_logs_created', table_name='replication_logs')
    op.drop_index('idx_replication_logs_company', table_name='replication_logs')
    op.drop_index('idx_replication_logs_budget', table_name='replication_logs')
    op.drop_table('replication_logs')
    op.drop_index('idx_company_products_company', table_name='company_products')
    op.drop_table('company_products')
    op.drop_index('idx_budget_items_budget', table_name='budget_items')
    op.drop_table('budget_items')
    op.drop_index('idx_budgets_company', table_name='budgets')
    op.drop_table('budgets')
    op.drop_index('idx_base_products_category', table_name='base_products')
    op.drop_table('base_products')
