"""
进程内仓储实现 - 单节点部署与测试使用

数据保存在 InMemoryDatabase 中，多个 Unit of Work 共享同一个实例。
每个方法内部没有 await，条件更新（compare-and-set）在事件循环内是原子的。
读取返回副本，调用方修改实体后必须显式 update。
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from itertools import count
from typing import Optional

from domain.common.exceptions import UserAlreadyExistsException
from domain.user.entity import PasswordResetToken, RefreshToken, User
from domain.user.password_reset_repository import PasswordResetTokenRepository
from domain.user.refresh_token_repository import RefreshTokenRepository
from domain.user.repository import UserRepository


@dataclass
class InMemoryDatabase:
    users: dict[int, User] = field(default_factory=dict)
    refresh_tokens: dict[int, RefreshToken] = field(default_factory=dict)
    reset_tokens: dict[int, PasswordResetToken] = field(default_factory=dict)
    sequence: count = field(default_factory=lambda: count(1))


class InMemoryUserRepository(UserRepository):
    def __init__(self, db: InMemoryDatabase):
        self._db = db

    async def create(self, user: User) -> User:
        if any(u.email == user.email for u in self._db.users.values()):
            raise UserAlreadyExistsException(user.email)
        stored = replace(user, id=user.id if user.id is not None else next(self._db.sequence))
        self._db.users[stored.id] = stored
        return replace(stored)

    async def get_by_id(self, user_id: int) -> Optional[User]:
        user = self._db.users.get(user_id)
        return replace(user) if user else None

    async def get_by_email(self, email: str) -> Optional[User]:
        for user in self._db.users.values():
            if user.email == email:
                return replace(user)
        return None

    async def update(self, user: User) -> User:
        self._db.users[user.id] = replace(user)
        return replace(user)

    async def exists_by_email(self, email: str) -> bool:
        return any(u.email == email for u in self._db.users.values())


class InMemoryRefreshTokenRepository(RefreshTokenRepository):
    def __init__(self, db: InMemoryDatabase):
        self._db = db

    async def create(self, token: RefreshToken) -> RefreshToken:
        if any(t.token_hash == token.token_hash for t in self._db.refresh_tokens.values()):
            raise ValueError("duplicate refresh token hash")
        stored = replace(token, id=next(self._db.sequence))
        self._db.refresh_tokens[stored.id] = stored
        return replace(stored)

    async def get_by_token_hash(self, token_hash: str) -> Optional[RefreshToken]:
        for token in self._db.refresh_tokens.values():
            if token.token_hash == token_hash:
                return replace(token)
        return None

    async def revoke_if_active(self, token_id: int, revoked_at: datetime) -> bool:
        token = self._db.refresh_tokens.get(token_id)
        if token is None or token.revoked:
            return False
        token.revoked = True
        token.revoked_at = revoked_at
        return True

    async def revoke_by_token_hash(self, token_hash: str, revoked_at: datetime) -> bool:
        for token in self._db.refresh_tokens.values():
            if token.token_hash == token_hash:
                return await self.revoke_if_active(token.id, revoked_at)
        return False

    async def revoke_all_for_user(self, user_id: int, revoked_at: datetime) -> int:
        revoked = 0
        for token in self._db.refresh_tokens.values():
            if token.user_id == user_id and not token.revoked:
                token.revoked = True
                token.revoked_at = revoked_at
                revoked += 1
        return revoked

    async def cleanup_expired(self, before: datetime) -> int:
        expired = [tid for tid, t in self._db.refresh_tokens.items() if t.expires_at < before]
        for tid in expired:
            del self._db.refresh_tokens[tid]
        return len(expired)


class InMemoryPasswordResetTokenRepository(PasswordResetTokenRepository):
    def __init__(self, db: InMemoryDatabase):
        self._db = db

    async def create(self, token: PasswordResetToken) -> PasswordResetToken:
        stored = replace(token, id=next(self._db.sequence))
        self._db.reset_tokens[stored.id] = stored
        return replace(stored)

    async def get_unused_by_token_hash(self, token_hash: str) -> Optional[PasswordResetToken]:
        for token in self._db.reset_tokens.values():
            if token.token_hash == token_hash and not token.used:
                return replace(token)
        return None

    async def count_created_since(self, user_id: int, since: datetime) -> int:
        return sum(
            1 for t in self._db.reset_tokens.values()
            if t.user_id == user_id and t.created_at >= since
        )

    async def mark_used_if_unused(self, token_id: int, used_at: datetime) -> bool:
        token = self._db.reset_tokens.get(token_id)
        if token is None or token.used:
            return False
        token.used = True
        token.used_at = used_at
        return True

    async def cleanup_expired(self, before: datetime) -> int:
        stale = [
            tid for tid, t in self._db.reset_tokens.items()
            if t.expires_at < before or (t.used and t.used_at is not None and t.used_at < before)
        ]
        for tid in stale:
            del self._db.reset_tokens[tid]
        return len(stale)
