"""
访问令牌吊销列表（按 jti）

条目的存活时间等于令牌吊销时的剩余有效期：条目不会早于令牌失效，
也不会被永久保留。
"""
from __future__ import annotations

from typing import Optional

from application.ports.expiring_store import ExpiringStore, StoreUnavailableError
from core.logging_config import get_logger


logger = get_logger(__name__)

BLACKLIST_KEY_PREFIX = "jwt:blacklist:"


class TokenBlacklistService:
    def __init__(self, store: ExpiringStore):
        self._store = store

    async def blacklist(self, jti: Optional[str], remaining_ms: int) -> bool:
        """
        吊销访问令牌

        jti 为空或剩余有效期 <= 0 时没有可吊销的内容，返回 False。
        存储失败同样返回 False，不影响登出流程。
        """
        if not jti or not jti.strip() or remaining_ms <= 0:
            return False
        try:
            await self._store.set(BLACKLIST_KEY_PREFIX + jti, "1", remaining_ms)
        except StoreUnavailableError as e:
            logger.error("token_blacklist_failed", jti=jti, error=str(e))
            return False
        logger.info("token_blacklisted", jti=jti, ttl_ms=remaining_ms)
        return True

    async def is_blacklisted(self, jti: Optional[str]) -> bool:
        """存储不可用时视为已吊销（fail closed）"""
        if not jti or not jti.strip():
            return False
        try:
            return await self._store.exists(BLACKLIST_KEY_PREFIX + jti)
        except StoreUnavailableError as e:
            logger.error("token_blacklist_check_failed", jti=jti, error=str(e))
            return True
