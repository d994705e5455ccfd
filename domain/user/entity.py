"""
用户与令牌领域实体 - 包含核心业务规则
"""
from datetime import datetime, timezone
from typing import Optional
from dataclasses import dataclass
import re

from domain.common.exceptions import DomainValidationException


DEFAULT_ROLE = "VIEWER"

_EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')


def normalize_email(email: str) -> str:
    """邮箱统一去空白并转小写，所有比较都基于规范化后的值。"""
    return (email or "").strip().lower()


@dataclass
class User:
    """账号实体 - 认证核心只关心这些字段"""

    id: Optional[int]
    email: str
    display_name: str
    hashed_password: str
    role: str = DEFAULT_ROLE
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    last_login: Optional[datetime] = None

    def __post_init__(self):
        self.email = normalize_email(self.email)
        self.validate_email()

    def validate_email(self) -> None:
        """业务规则：邮箱格式验证"""
        if not _EMAIL_PATTERN.match(self.email):
            raise DomainValidationException(f"Invalid email: {self.email}", field="email")

    def change_password(self, new_password_hash: str, *, at: Optional[datetime] = None) -> None:
        """业务规则：修改密码"""
        if not new_password_hash:
            raise DomainValidationException("Password hash must not be empty", field="password")
        self.hashed_password = new_password_hash
        self.updated_at = at or datetime.now(timezone.utc)

    def record_login(self, *, at: Optional[datetime] = None) -> None:
        self.last_login = at or datetime.now(timezone.utc)


@dataclass
class RefreshToken:
    """持久化的刷新令牌记录，只保存令牌的 SHA-256 摘要。"""

    id: Optional[int]
    user_id: int
    token_hash: str
    issued_at: datetime
    expires_at: datetime
    revoked: bool = False
    revoked_at: Optional[datetime] = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now

    def is_active(self, now: datetime) -> bool:
        return not self.revoked and not self.is_expired(now)


@dataclass
class PasswordResetToken:
    """一次性、限时的密码重置令牌记录。"""

    id: Optional[int]
    user_id: int
    token_hash: str
    expires_at: datetime
    created_at: datetime
    used: bool = False
    used_at: Optional[datetime] = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now

    def is_valid(self, now: datetime) -> bool:
        """业务规则：未使用且未过期才可用"""
        return not self.used and not self.is_expired(now)
