"""进程内 Unit of Work 实现

写操作立即生效，commit / rollback 只记录状态；需要原子性的地方
由仓储的条件更新保证。
"""
from __future__ import annotations

from typing import Optional

from domain.common.unit_of_work import AbstractUnitOfWork
from infrastructure.memory.repositories import (
    InMemoryDatabase,
    InMemoryPasswordResetTokenRepository,
    InMemoryRefreshTokenRepository,
    InMemoryUserRepository,
)


class InMemoryUnitOfWork(AbstractUnitOfWork):
    def __init__(self, db: InMemoryDatabase, *, readonly: bool = False) -> None:
        super().__init__(readonly=readonly)
        self._db = db

    async def __aenter__(self) -> "InMemoryUnitOfWork":
        self.user_repository = InMemoryUserRepository(self._db)
        self.refresh_token_repository = InMemoryRefreshTokenRepository(self._db)
        self.password_reset_repository = InMemoryPasswordResetTokenRepository(self._db)
        return self

    async def commit(self) -> None:
        self._committed = True

    async def rollback(self) -> None:
        self._committed = False


class InMemoryUnitOfWorkFactory:
    """可调用工厂，签名与 SQLAlchemyUnitOfWork 一致：factory(readonly=...)"""

    def __init__(self, db: Optional[InMemoryDatabase] = None) -> None:
        self.db = db or InMemoryDatabase()

    def __call__(self, *, readonly: bool = False) -> InMemoryUnitOfWork:
        return InMemoryUnitOfWork(self.db, readonly=readonly)
