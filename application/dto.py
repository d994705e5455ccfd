"""
数据传输对象（DTO）- 应用层与表现层之间的数据传输
"""
from pydantic import BaseModel, EmailStr, Field, model_serializer
from typing import Optional
from datetime import datetime, timezone


class DTOBase(BaseModel):
    """Base DTO: unify datetime serialization to UTC-Z for all subclasses."""

    @model_serializer(mode="wrap")
    def _serialize_model(self, handler):  # type: ignore[override]
        data = handler(self)

        def convert(value):
            if isinstance(value, datetime):
                ts = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
                s = ts.astimezone(timezone.utc).isoformat()
                return s.replace("+00:00", "Z")
            if isinstance(value, list):
                return [convert(v) for v in value]
            if isinstance(value, dict):
                return {k: convert(v) for k, v in value.items()}
            return value

        return convert(data)


class LoginDTO(DTOBase):
    """登录DTO

    邮箱不做格式校验：格式错误的邮箱同样计入失败次数。
    """
    email: str = Field(..., min_length=1, max_length=255, description="邮箱")
    password: str = Field(..., min_length=1, max_length=256, description="密码")
    remember_me: bool = Field(False, description="是否同时签发刷新令牌")


class RegisterDTO(DTOBase):
    """注册DTO（密码策略在应用层校验，以便返回原因码）"""
    email: EmailStr = Field(..., description="邮箱地址")
    password: str = Field(..., description="密码")
    name: str = Field(..., min_length=1, max_length=100, description="显示名称")


class AuthResponseDTO(DTOBase):
    """登录/注册/刷新结果"""
    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "Bearer"
    expires_in: int = Field(..., description="访问令牌有效期（秒）")
    email: str
    name: str
    role: str


class RefreshTokenDTO(DTOBase):
    """刷新令牌请求DTO"""
    refresh_token: str = Field(..., min_length=1, description="刷新令牌")


class LogoutDTO(DTOBase):
    """登出请求DTO，两个令牌都可以缺省"""
    refresh_token: Optional[str] = Field(None, description="刷新令牌")


class TokenVerificationDTO(DTOBase):
    valid: bool
    email: Optional[str] = None


class PasswordResetRequestDTO(DTOBase):
    email: EmailStr = Field(..., description="账号邮箱")


class PasswordResetConfirmDTO(DTOBase):
    token: str = Field(..., min_length=1, description="邮件中的重置令牌")
    new_password: str = Field(..., description="新密码")


class ResetTokenValidationDTO(DTOBase):
    valid: bool


class MessageDTO(DTOBase):
    """消息响应DTO"""
    message: str
