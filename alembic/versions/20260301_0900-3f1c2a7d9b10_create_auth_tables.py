"""create_auth_tables

Revision ID: 3f1c2a7d9b10
Revises:
Create Date: 2026-03-01 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '3f1c2a7d9b10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.BigInteger(), autoincrement=False, nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False, comment='邮箱（小写）'),
        sa.Column('display_name', sa.String(length=100), nullable=False, comment='显示名'),
        sa.Column('hashed_password', sa.String(length=255), nullable=False, comment='密码哈希'),
        sa.Column('role', sa.String(length=32), nullable=False, server_default='VIEWER', comment='角色'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true(), comment='是否激活'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False, comment='创建时间'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False, comment='更新时间'),
        sa.Column('last_login', sa.DateTime(timezone=True), nullable=True, comment='最后登录时间'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'refresh_tokens',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.BigInteger(), nullable=False, comment='用户ID'),
        sa.Column('token_hash', sa.String(length=64), nullable=False, comment='令牌SHA-256哈希'),
        sa.Column('revoked', sa.Boolean(), nullable=False, server_default=sa.false(), comment='是否已撤销'),
        sa.Column('issued_at', sa.DateTime(timezone=True), nullable=False, comment='签发时间'),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False, comment='过期时间'),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True, comment='撤销时间'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('token_hash'),
    )
    op.create_index('ix_refresh_tokens_user_id', 'refresh_tokens', ['user_id'], unique=False)
    op.create_index('ix_refresh_tokens_user_active', 'refresh_tokens', ['user_id', 'revoked'], unique=False)
    op.create_index('ix_refresh_tokens_expires', 'refresh_tokens', ['expires_at'], unique=False)

    op.create_table(
        'password_reset_tokens',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.BigInteger(), nullable=False, comment='用户ID'),
        sa.Column('token_hash', sa.String(length=64), nullable=False, comment='令牌SHA-256哈希'),
        sa.Column('used', sa.Boolean(), nullable=False, server_default=sa.false(), comment='是否已使用'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, comment='创建时间'),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False, comment='过期时间'),
        sa.Column('used_at', sa.DateTime(timezone=True), nullable=True, comment='使用时间'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('token_hash'),
    )
    op.create_index('ix_password_reset_tokens_user_created', 'password_reset_tokens', ['user_id', 'created_at'], unique=False)
    op.create_index('ix_password_reset_tokens_expires', 'password_reset_tokens', ['expires_at'], unique=False)


def downgrade() -> None:
    op.drop_index('ix_password_reset_tokens_expires', table_name='password_reset_tokens')
    op.drop_index('ix_password_reset_tokens_user_created', table_name='password_reset_tokens')
    op.drop_table('password_reset_tokens')
    op.drop_index('ix_refresh_tokens_expires', table_name='refresh_tokens')
    op.drop_index('ix_refresh_tokens_user_active', table_name='refresh_tokens')
    op.drop_index('ix_refresh_tokens_user_id', table_name='refresh_tokens')
    op.drop_table('refresh_tokens')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
