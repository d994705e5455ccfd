"""
刷新令牌仓储实现 - 使用SQLAlchemy实现数据访问

撤销都用带条件的 UPDATE（revoked = false）完成，rowcount 决定并发轮转的胜者。
"""
from typing import Optional
from datetime import datetime
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete, and_

from domain.user.entity import RefreshToken
from domain.user.refresh_token_repository import RefreshTokenRepository
from infrastructure.models.base import as_utc
from infrastructure.models.refresh_token import RefreshTokenModel
from core.logging_config import get_logger


logger = get_logger(__name__)


class SQLAlchemyRefreshTokenRepository(RefreshTokenRepository):
    """刷新令牌仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: RefreshTokenModel) -> RefreshToken:
        return RefreshToken(
            id=model.id,
            user_id=model.user_id,
            token_hash=model.token_hash,
            issued_at=as_utc(model.issued_at),
            expires_at=as_utc(model.expires_at),
            revoked=model.revoked,
            revoked_at=as_utc(model.revoked_at),
        )

    async def create(self, token: RefreshToken) -> RefreshToken:
        """创建刷新令牌记录"""
        db_token = RefreshTokenModel(
            user_id=token.user_id,
            token_hash=token.token_hash,
            issued_at=token.issued_at,
            expires_at=token.expires_at,
            revoked=token.revoked,
            revoked_at=token.revoked_at,
        )
        self.session.add(db_token)
        await self.session.flush()
        await self.session.refresh(db_token)
        return self._to_entity(db_token)

    async def get_by_token_hash(self, token_hash: str) -> Optional[RefreshToken]:
        result = await self.session.execute(
            select(RefreshTokenModel).where(RefreshTokenModel.token_hash == token_hash)
        )
        db_token = result.scalar_one_or_none()
        return self._to_entity(db_token) if db_token else None

    async def revoke_if_active(self, token_id: int, revoked_at: datetime) -> bool:
        result = await self.session.execute(
            update(RefreshTokenModel)
            .where(
                and_(
                    RefreshTokenModel.id == token_id,
                    RefreshTokenModel.revoked == False,  # noqa: E712
                )
            )
            .values(revoked=True, revoked_at=revoked_at)
        )
        return result.rowcount > 0

    async def revoke_by_token_hash(self, token_hash: str, revoked_at: datetime) -> bool:
        result = await self.session.execute(
            update(RefreshTokenModel)
            .where(
                and_(
                    RefreshTokenModel.token_hash == token_hash,
                    RefreshTokenModel.revoked == False,  # noqa: E712
                )
            )
            .values(revoked=True, revoked_at=revoked_at)
        )
        return result.rowcount > 0

    async def revoke_all_for_user(self, user_id: int, revoked_at: datetime) -> int:
        """撤销用户所有未撤销的令牌

        先统计再批量更新，返回值以统计行数为准，避免部分驱动 rowcount 语义差异。
        """
        ids_result = await self.session.execute(
            select(RefreshTokenModel.id)
            .where(
                and_(
                    RefreshTokenModel.user_id == user_id,
                    RefreshTokenModel.revoked == False,  # noqa: E712
                )
            )
            .with_for_update()
        )
        ids = [row[0] for row in ids_result.all()]
        if not ids:
            return 0

        await self.session.execute(
            update(RefreshTokenModel)
            .where(RefreshTokenModel.id.in_(ids))
            .values(revoked=True, revoked_at=revoked_at)
        )
        logger.info("refresh_tokens_user_revoked", user_id=user_id, count=len(ids))
        return len(ids)

    async def cleanup_expired(self, before: datetime) -> int:
        """删除在 before 之前过期的令牌"""
        result = await self.session.execute(
            delete(RefreshTokenModel).where(RefreshTokenModel.expires_at < before)
        )
        return result.rowcount or 0
