"""
密码重置令牌数据库模型
"""
from sqlalchemy import BigInteger, Column, Integer, String, Boolean, DateTime, ForeignKey, Index

from .base import Base


class PasswordResetTokenModel(Base):
    __tablename__ = "password_reset_tokens"

    id = Column(Integer, primary_key=True, autoincrement=True)

    user_id = Column(
        BigInteger,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        comment="用户ID",
    )
    token_hash = Column(String(64), unique=True, nullable=False, comment="令牌SHA-256哈希")

    used = Column(Boolean, default=False, nullable=False, comment="是否已使用")
    created_at = Column(DateTime(timezone=True), nullable=False, comment="创建时间")
    expires_at = Column(DateTime(timezone=True), nullable=False, comment="过期时间")
    used_at = Column(DateTime(timezone=True), nullable=True, comment="使用时间")

    __table_args__ = (
        Index("ix_password_reset_tokens_user_created", "user_id", "created_at"),
        Index("ix_password_reset_tokens_expires", "expires_at"),
    )

    def __repr__(self):
        return f"<PasswordResetTokenModel(id={self.id}, user_id={self.user_id}, used={self.used})>"
