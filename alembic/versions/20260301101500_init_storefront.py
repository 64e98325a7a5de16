from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "20260301101500"
down_revision = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(), 'postgresql')

def upgrade():
    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=240), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', sa.String(length=120), nullable=True),
        sa.Column('item_type', sa.String(length=16), nullable=False, server_default='product'),
        sa.Column('price', sa.Numeric(12, 2), nullable=True),
        sa.Column('stock', sa.Integer(), nullable=True, server_default='0'),
        sa.Column('images', JSONType, nullable=False, server_default='[]'),
        sa.Column('specifications', JSONType, nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text("(now() at time zone 'utc')")),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text("(now() at time zone 'utc')")),
        sa.CheckConstraint("item_type in ('product', 'service')", name='ck_products_item_type'),
    )
    op.create_index('ix_products_category', 'products', ['category'])
    op.create_index('ix_products_active_order', 'products', ['is_active', 'sort_order'])

    op.create_table(
        'users',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text("(now() at time zone 'utc')")),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'user_roles',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.String(length=36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('role', sa.String(length=32), nullable=False),
        sa.UniqueConstraint('user_id', 'role', name='uq_user_roles_user_role'),
    )

def downgrade():
    op.drop_table('user_roles')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
    op.drop_index('ix_products_active_order', table_name='products')
    op.drop_index('ix_products_category', table_name='products')
    op.drop_table('products')
