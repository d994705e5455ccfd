"""
用户数据库模型 - SQLAlchemy ORM模型
注意：这是基础设施层的实现细节，不是领域模型
"""
from sqlalchemy import BigInteger, Column, String, Boolean, DateTime
from datetime import datetime, timezone

from .base import Base


class UserModel(Base):
    """
    账号数据库模型

    主键由应用侧 IdGenerator 生成，不依赖数据库自增
    """
    __tablename__ = "users"

    id = Column(BigInteger, primary_key=True, autoincrement=False)

    email = Column(String(255), unique=True, index=True, nullable=False, comment="邮箱（小写）")
    display_name = Column(String(100), nullable=False, comment="显示名")
    hashed_password = Column(String(255), nullable=False, comment="密码哈希")
    role = Column(String(32), nullable=False, default="VIEWER", comment="角色")
    is_active = Column(Boolean, default=True, nullable=False, comment="是否激活")

    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="创建时间"
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="更新时间"
    )
    last_login = Column(DateTime(timezone=True), nullable=True, comment="最后登录时间")

    def __repr__(self):
        return f"<UserModel(id={self.id}, email='{self.email}', role='{self.role}')>"
