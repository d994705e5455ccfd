"""
密码重置令牌仓储实现
"""
from typing import Optional
from datetime import datetime
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete, func, and_, or_

from domain.user.entity import PasswordResetToken
from domain.user.password_reset_repository import PasswordResetTokenRepository
from infrastructure.models.base import as_utc
from infrastructure.models.password_reset_token import PasswordResetTokenModel


class SQLAlchemyPasswordResetTokenRepository(PasswordResetTokenRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: PasswordResetTokenModel) -> PasswordResetToken:
        return PasswordResetToken(
            id=model.id,
            user_id=model.user_id,
            token_hash=model.token_hash,
            expires_at=as_utc(model.expires_at),
            created_at=as_utc(model.created_at),
            used=model.used,
            used_at=as_utc(model.used_at),
        )

    async def create(self, token: PasswordResetToken) -> PasswordResetToken:
        db_token = PasswordResetTokenModel(
            user_id=token.user_id,
            token_hash=token.token_hash,
            expires_at=token.expires_at,
            created_at=token.created_at,
            used=token.used,
            used_at=token.used_at,
        )
        self.session.add(db_token)
        await self.session.flush()
        await self.session.refresh(db_token)
        return self._to_entity(db_token)

    async def get_unused_by_token_hash(self, token_hash: str) -> Optional[PasswordResetToken]:
        result = await self.session.execute(
            select(PasswordResetTokenModel).where(
                and_(
                    PasswordResetTokenModel.token_hash == token_hash,
                    PasswordResetTokenModel.used == False,  # noqa: E712
                )
            )
        )
        db_token = result.scalar_one_or_none()
        return self._to_entity(db_token) if db_token else None

    async def count_created_since(self, user_id: int, since: datetime) -> int:
        result = await self.session.execute(
            select(func.count(PasswordResetTokenModel.id)).where(
                and_(
                    PasswordResetTokenModel.user_id == user_id,
                    PasswordResetTokenModel.created_at >= since,
                )
            )
        )
        return result.scalar_one()

    async def mark_used_if_unused(self, token_id: int, used_at: datetime) -> bool:
        result = await self.session.execute(
            update(PasswordResetTokenModel)
            .where(
                and_(
                    PasswordResetTokenModel.id == token_id,
                    PasswordResetTokenModel.used == False,  # noqa: E712
                )
            )
            .values(used=True, used_at=used_at)
        )
        return result.rowcount > 0

    async def cleanup_expired(self, before: datetime) -> int:
        result = await self.session.execute(
            delete(PasswordResetTokenModel).where(
                or_(
                    PasswordResetTokenModel.expires_at < before,
                    and_(
                        PasswordResetTokenModel.used == True,  # noqa: E712
                        PasswordResetTokenModel.used_at < before,
                    ),
                )
            )
        )
        return result.rowcount or 0
