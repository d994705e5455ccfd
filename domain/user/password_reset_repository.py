"""
密码重置令牌仓储接口
"""
from abc import ABC, abstractmethod
from typing import Optional
from datetime import datetime

from .entity import PasswordResetToken


class PasswordResetTokenRepository(ABC):
    """密码重置令牌仓储抽象接口"""

    @abstractmethod
    async def create(self, token: PasswordResetToken) -> PasswordResetToken:
        pass

    @abstractmethod
    async def get_unused_by_token_hash(self, token_hash: str) -> Optional[PasswordResetToken]:
        """根据摘要查找尚未使用的令牌（不判断过期）"""
        pass

    @abstractmethod
    async def count_created_since(self, user_id: int, since: datetime) -> int:
        """统计用户在 since 之后签发的令牌数量（用于限流）"""
        pass

    @abstractmethod
    async def mark_used_if_unused(self, token_id: int, used_at: datetime) -> bool:
        """条件标记为已使用，返回 False 表示令牌已被使用"""
        pass

    @abstractmethod
    async def cleanup_expired(self, before: datetime) -> int:
        """删除在 before 之前过期或已使用的令牌"""
        pass
