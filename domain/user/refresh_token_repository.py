"""
刷新令牌仓储接口 - 定义刷新令牌数据访问的抽象接口
"""
from abc import ABC, abstractmethod
from typing import Optional
from datetime import datetime

from .entity import RefreshToken


class RefreshTokenRepository(ABC):
    """刷新令牌仓储抽象接口

    令牌以 SHA-256 摘要为唯一键保存，明文只在签发时返回给调用方。
    """

    @abstractmethod
    async def create(self, token: RefreshToken) -> RefreshToken:
        """创建刷新令牌记录（token_hash 唯一）"""
        pass

    @abstractmethod
    async def get_by_token_hash(self, token_hash: str) -> Optional[RefreshToken]:
        """根据令牌摘要获取记录（包括已撤销、已过期的记录）"""
        pass

    @abstractmethod
    async def revoke_if_active(self, token_id: int, revoked_at: datetime) -> bool:
        """
        条件撤销：仅当记录仍未撤销时才撤销（compare-and-set）

        Returns:
            True 表示本次调用完成了撤销；False 表示已被其他调用抢先撤销
        """
        pass

    @abstractmethod
    async def revoke_by_token_hash(self, token_hash: str, revoked_at: datetime) -> bool:
        """撤销指定令牌，不存在或已撤销时返回 False"""
        pass

    @abstractmethod
    async def revoke_all_for_user(self, user_id: int, revoked_at: datetime) -> int:
        """
        撤销用户所有未撤销的令牌

        Returns:
            撤销的令牌数量
        """
        pass

    @abstractmethod
    async def cleanup_expired(self, before: datetime) -> int:
        """
        删除在 before 之前过期的令牌

        Returns:
            清理的令牌数量
        """
        pass
