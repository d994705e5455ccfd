"""领域层业务异常定义，供领域、应用与基础设施层使用。

核心（core）层只负责把这些异常映射为 HTTP 响应，领域层不反向依赖核心层。
安全相关的失败（密码错误 / 账号不存在，刷新令牌过期 / 已轮转 / 不存在）
对调用方只暴露同一种异常，具体原因只进入日志。
"""
from __future__ import annotations

from typing import Optional
from shared.codes import BusinessCode


class BusinessException(Exception):
    """业务异常基类"""

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        super().__init__(self.message)


class InvalidCredentialsException(BusinessException):
    """邮箱或密码错误；账号不存在时也抛出同一异常。"""

    def __init__(self):
        super().__init__(
            code=BusinessCode.INVALID_CREDENTIALS,
            message="Invalid email or password",
            error_type="InvalidCredentials",
        )


class AccountLockedException(BusinessException):
    """登录失败次数过多，账号处于锁定期。"""

    def __init__(self, remaining_ms: int):
        self.remaining_ms = max(0, int(remaining_ms))
        retry_after = -(-self.remaining_ms // 1000)
        super().__init__(
            code=BusinessCode.ACCOUNT_LOCKED,
            message="Account temporarily locked due to too many failed login attempts",
            error_type="AccountLocked",
            details={
                "retry_after": retry_after,
                "remaining_minutes": self.remaining_ms // 60_000 + 1,
            },
        )

    @property
    def retry_after(self) -> int:
        return self.details["retry_after"]


class InvalidRefreshTokenException(BusinessException):
    def __init__(self):
        super().__init__(
            code=BusinessCode.TOKEN_INVALID,
            message="Invalid refresh token",
            error_type="InvalidRefreshToken",
        )


class InvalidResetTokenException(BusinessException):
    """重置令牌无效。reason 仅用于日志，不进入响应。"""

    def __init__(self, reason: str = "invalid"):
        self.reason = reason
        super().__init__(
            code=BusinessCode.RESET_TOKEN_INVALID,
            message="Invalid or expired password reset token",
            error_type="InvalidResetToken",
        )


class PasswordPolicyViolationException(BusinessException):
    """新密码不满足长度或复杂度要求，reason 为可供前端本地化的原因码。"""

    def __init__(self, reason: str, *, field: str = "password", **params):
        self.reason = reason
        super().__init__(
            code=BusinessCode.PASSWORD_POLICY_VIOLATION,
            message=f"Password does not meet policy: {reason}",
            error_type="PasswordPolicyViolation",
            details={"reason": reason, **params},
            field=field,
        )


class UserNotFoundException(BusinessException):
    def __init__(self, user_id: Optional[str] = None):
        details = {"user_id": user_id} if user_id else None
        super().__init__(
            code=BusinessCode.USER_NOT_FOUND,
            message="User not found",
            error_type="UserNotFound",
            details=details,
        )


class UserAlreadyExistsException(BusinessException):
    def __init__(self, email: str):
        super().__init__(
            code=BusinessCode.USER_ALREADY_EXISTS,
            message=f"Email {email} already registered",
            error_type="UserAlreadyExists",
            details={"email": email},
            field="email",
        )


class UserInactiveException(BusinessException):
    def __init__(self):
        super().__init__(
            code=BusinessCode.USER_INACTIVE,
            message="User account is inactive",
            error_type="UserInactive",
        )


class DomainValidationException(BusinessException):
    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=message,
            error_type="DomainValidationError",
            details=details,
            field=field,
        )
