"""
刷新令牌数据库模型 - SQLAlchemy ORM模型
支持令牌轮转（Refresh Token Rotation）
"""
from sqlalchemy import BigInteger, Column, Integer, String, Boolean, DateTime, ForeignKey, Index

from .base import Base


class RefreshTokenModel(Base):
    """
    刷新令牌数据库模型

    - 只保存令牌的 SHA-256 摘要，明文仅在签发时返回一次
    - 每次轮转时旧令牌被撤销（revoked），撤销后的令牌再次出现即视为重放
    """
    __tablename__ = "refresh_tokens"

    id = Column(Integer, primary_key=True, autoincrement=True)

    user_id = Column(
        BigInteger,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="用户ID",
    )
    token_hash = Column(String(64), unique=True, nullable=False, comment="令牌SHA-256哈希")

    revoked = Column(Boolean, default=False, nullable=False, comment="是否已撤销")
    issued_at = Column(DateTime(timezone=True), nullable=False, comment="签发时间")
    expires_at = Column(DateTime(timezone=True), nullable=False, comment="过期时间")
    revoked_at = Column(DateTime(timezone=True), nullable=True, comment="撤销时间")

    __table_args__ = (
        Index("ix_refresh_tokens_user_active", "user_id", "revoked"),
        Index("ix_refresh_tokens_expires", "expires_at"),
    )

    def __repr__(self):
        return f"<RefreshTokenModel(id={self.id}, user_id={self.user_id}, revoked={self.revoked})>"
