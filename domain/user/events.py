"""
认证领域事件 - 记录需要审计的安全事件
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional
import uuid


@dataclass
class UserRegistered:
    """用户注册事件"""
    user_id: int
    email: str
    event_id: Optional[str] = field(default_factory=lambda: str(uuid.uuid4()))
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class AccountLockedOut:
    """登录失败次数达到阈值，账号被锁定"""
    email: str
    failure_count: int
    lockout_ms: int
    source: Optional[str] = None
    event_id: Optional[str] = field(default_factory=lambda: str(uuid.uuid4()))
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class RefreshTokenReuseDetected:
    """已撤销的刷新令牌被再次出示"""
    user_id: int
    token_id: int
    revoked_count: int
    event_id: Optional[str] = field(default_factory=lambda: str(uuid.uuid4()))
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class PasswordResetCompleted:
    """通过重置令牌修改了密码"""
    user_id: int
    email: str
    event_id: Optional[str] = field(default_factory=lambda: str(uuid.uuid4()))
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
