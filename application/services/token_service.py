"""
令牌服务 - 访问令牌（JWT）的签发与校验

访问令牌是无状态的：有效性完全由签名和声明决定，只有吊销需要
额外查询黑名单（见 TokenBlacklistService）。
"""
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Optional
import uuid

import jwt

from application.ports.clock import Clock, SystemClock, to_millis
from core.config import MIN_SECRET_LENGTH, settings
from core.logging_config import get_logger


logger = get_logger(__name__)

TOKEN_TYPE_ACCESS = "access"


@dataclass(frozen=True)
class TokenValidationResult:
    """解析结果：valid / expired 互斥，error 只用于日志"""

    valid: bool
    expired: bool = False
    claims: Optional[dict[str, Any]] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, claims: dict[str, Any]) -> "TokenValidationResult":
        return cls(valid=True, claims=claims)

    @classmethod
    def invalid(cls, error: str, *, expired: bool = False,
                claims: Optional[dict[str, Any]] = None) -> "TokenValidationResult":
        return cls(valid=False, expired=expired, claims=claims, error=error)


class TokenService:
    """
    访问令牌编解码器

    声明：sub（邮箱）、role、jti、iat、exp、iss、aud、type。
    过期判断基于注入的时钟，便于在测试中推进时间。
    """

    def __init__(
        self,
        secret_key: Optional[str] = None,
        *,
        algorithm: Optional[str] = None,
        issuer: Optional[str] = None,
        audience: Optional[str] = None,
        access_token_ttl: Optional[timedelta] = None,
        clock: Optional[Clock] = None,
    ):
        self._secret_key = secret_key or settings.SECRET_KEY
        self._algorithm = (algorithm or settings.ALGORITHM).upper()
        self._issuer = issuer or settings.security.token_issuer
        self._audience = audience or settings.security.token_audience
        self._ttl = access_token_ttl or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
        self._clock = clock or SystemClock()

        min_length = MIN_SECRET_LENGTH.get(self._algorithm)
        if not self._secret_key or (min_length and len(self._secret_key.encode("utf-8")) < min_length):
            raise ValueError(f"{self._algorithm} requires a secret of at least {min_length} bytes")

    @property
    def access_token_ttl_seconds(self) -> int:
        return int(self._ttl.total_seconds())

    def create_access_token(self, email: str, role: str) -> str:
        """创建访问令牌"""
        now = self._clock.now()
        to_encode = {
            "sub": email,
            "role": role,
            "jti": str(uuid.uuid4()),
            "iat": int(now.timestamp()),
            "exp": int((now + self._ttl).timestamp()),
            "iss": self._issuer,
            "aud": self._audience,
            "type": TOKEN_TYPE_ACCESS,
        }
        return jwt.encode(to_encode, self._secret_key, algorithm=self._algorithm)

    def validate_and_parse(self, token: Optional[str]) -> TokenValidationResult:
        """校验签名、签发方、受众和过期时间，一次性返回声明"""
        if not token:
            return TokenValidationResult.invalid("empty_token")
        try:
            claims = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
                audience=self._audience,
                issuer=self._issuer,
                options={
                    "verify_exp": False,
                    "verify_iat": False,
                    "require": ["sub", "jti", "exp", "iat"],
                },
            )
        except jwt.PyJWTError as e:
            logger.debug("access_token_rejected", error=str(e))
            return TokenValidationResult.invalid(type(e).__name__)

        if claims.get("type") != TOKEN_TYPE_ACCESS:
            return TokenValidationResult.invalid("wrong_token_type")
        if claims["exp"] * 1000 <= to_millis(self._clock.now()):
            return TokenValidationResult.invalid("expired", expired=True, claims=claims)
        return TokenValidationResult.ok(claims)

    def validate(self, token: Optional[str]) -> bool:
        return self.validate_and_parse(token).valid

    def _claim(self, token: Optional[str], name: str) -> Optional[str]:
        result = self.validate_and_parse(token)
        if not result.valid:
            return None
        return result.claims.get(name)

    def get_email(self, token: Optional[str]) -> Optional[str]:
        return self._claim(token, "sub")

    def get_role(self, token: Optional[str]) -> Optional[str]:
        return self._claim(token, "role")

    def get_jti(self, token: Optional[str]) -> Optional[str]:
        return self._claim(token, "jti")

    def remaining_lifetime_ms(self, claims: dict[str, Any]) -> int:
        return max(0, int(claims["exp"]) * 1000 - to_millis(self._clock.now()))

    def get_remaining_lifetime_ms(self, token: Optional[str]) -> int:
        """剩余有效期（毫秒），无效或已过期的令牌返回 0"""
        result = self.validate_and_parse(token)
        if not result.valid:
            return 0
        return self.remaining_lifetime_ms(result.claims)
