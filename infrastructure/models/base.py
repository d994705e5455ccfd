"""
数据库模型基类（SQLAlchemy 2.0 风格）
"""
from datetime import timezone

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


# 元数据对象用于数据库迁移
metadata = Base.metadata


def as_utc(value):
    """SQLite 不保存时区信息，读出的 naive datetime 按 UTC 解释"""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
