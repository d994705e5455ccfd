"""
密码重置API路由

申请接口对任何邮箱都返回相同的响应，避免泄露账号是否存在。
"""
from fastapi import APIRouter, Depends, Query, status

from api.dependencies import get_auth_service
from application.dto import (
    MessageDTO,
    PasswordResetConfirmDTO,
    PasswordResetRequestDTO,
    ResetTokenValidationDTO,
)
from application.services.auth_service import AuthService
from core.response import Response as ApiResponse, success_response


router = APIRouter(prefix="/auth", tags=["密码重置"])

_REQUEST_ACCEPTED = "If the email is registered, a reset link has been sent"


@router.post(
    "/forgot-password",
    summary="申请重置密码",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=ApiResponse[MessageDTO],
)
async def forgot_password(
    body: PasswordResetRequestDTO,
    service: AuthService = Depends(get_auth_service),
):
    await service.request_password_reset(body.email)
    return success_response(data=MessageDTO(message=_REQUEST_ACCEPTED), message=_REQUEST_ACCEPTED)


@router.get(
    "/reset-password/validate",
    summary="校验重置令牌",
    response_model=ApiResponse[ResetTokenValidationDTO],
)
async def validate_reset_token(
    token: str = Query(..., min_length=1),
    service: AuthService = Depends(get_auth_service),
):
    valid = await service.validate_reset_token(token)
    return success_response(data=ResetTokenValidationDTO(valid=valid))


@router.post("/reset-password", summary="重置密码", response_model=ApiResponse[MessageDTO])
async def reset_password(
    body: PasswordResetConfirmDTO,
    service: AuthService = Depends(get_auth_service),
):
    """使用邮件中的令牌设置新密码；成功后该账号所有设备需要重新登录"""
    await service.reset_password(body.token, body.new_password)
    return success_response(data=MessageDTO(message="Password has been reset"), message="Password has been reset")
