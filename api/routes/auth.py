"""
认证API路由 - 登录、注册、刷新、登出与令牌校验
"""
from typing import Optional

from fastapi import APIRouter, Body, Depends, Request, status

from api.dependencies import get_auth_service, get_current_email, get_optional_token, get_token
from api.middleware import resolve_client_ip
from application.dto import (
    AuthResponseDTO,
    LoginDTO,
    LogoutDTO,
    MessageDTO,
    RefreshTokenDTO,
    RegisterDTO,
    TokenVerificationDTO,
)
from application.services.auth_service import AuthService
from core.response import Response as ApiResponse, success_response


router = APIRouter(prefix="/auth", tags=["认证"])


def _client_ip(request: Request) -> Optional[str]:
    return getattr(request.state, "client_ip", None) or resolve_client_ip(request)


@router.post("/login", summary="用户登录", response_model=ApiResponse[AuthResponseDTO])
async def login(
    request: Request,
    login_data: LoginDTO,
    service: AuthService = Depends(get_auth_service),
):
    """
    邮箱 + 密码登录

    - 连续失败达到阈值后账号被临时锁定，返回 423 与 Retry-After
    - **remember_me** 为 true 时同时返回刷新令牌
    """
    result = await service.login(login_data, _client_ip(request))
    return success_response(data=result, message="Login successful")


@router.post("/login/v2", summary="登录并签发刷新令牌", response_model=ApiResponse[AuthResponseDTO])
async def login_with_refresh_token(
    request: Request,
    login_data: LoginDTO,
    service: AuthService = Depends(get_auth_service),
):
    result = await service.login_with_refresh_token(login_data, _client_ip(request))
    return success_response(data=result, message="Login successful")


@router.post(
    "/register",
    summary="注册",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse[AuthResponseDTO],
)
async def register(
    register_data: RegisterDTO,
    service: AuthService = Depends(get_auth_service),
):
    """
    注册新账号并直接登录

    密码至少 12 位，必须包含大小写字母、数字和特殊字符。
    """
    result = await service.register(register_data)
    return success_response(data=result, message="Registration successful")


@router.post("/refresh", summary="刷新访问令牌", response_model=ApiResponse[AuthResponseDTO])
async def refresh(
    body: RefreshTokenDTO,
    service: AuthService = Depends(get_auth_service),
):
    """
    使用刷新令牌换取新的令牌对

    旧刷新令牌立即失效；再次使用已失效的令牌会撤销该账号的全部刷新令牌。
    """
    result = await service.refresh_access_token(body.refresh_token)
    return success_response(data=result, message="Token refreshed")


@router.post("/logout", summary="登出", response_model=ApiResponse[MessageDTO])
async def logout(
    body: Optional[LogoutDTO] = Body(None),
    access_token: Optional[str] = Depends(get_optional_token),
    service: AuthService = Depends(get_auth_service),
):
    """吊销 Authorization 头中的访问令牌，并撤销请求体中的刷新令牌"""
    await service.logout(
        refresh_token=body.refresh_token if body else None,
        access_token=access_token,
    )
    return success_response(data=MessageDTO(message="Logged out"), message="Logged out")


@router.post("/logout/all", summary="登出所有设备", response_model=ApiResponse[MessageDTO])
async def logout_all(
    _email: str = Depends(get_current_email),
    access_token: str = Depends(get_token),
    service: AuthService = Depends(get_auth_service),
):
    revoked = await service.logout_all(access_token)
    return success_response(
        data=MessageDTO(message=f"Revoked {revoked} session(s)"),
        message="Logged out everywhere",
    )


@router.get("/verify", summary="校验访问令牌", response_model=ApiResponse[TokenVerificationDTO])
async def verify(
    token: Optional[str] = Depends(get_optional_token),
    service: AuthService = Depends(get_auth_service),
):
    valid = await service.validate_token(token)
    email = service.get_email_from_token(token) if valid else None
    return success_response(data=TokenVerificationDTO(valid=valid, email=email))
