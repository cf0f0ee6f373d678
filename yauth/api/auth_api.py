"""认证端点路由

端点列表：
    POST /login                 - 用户名/邮箱 + 密码登录
    POST /login/2fa             - 提交二次验证码
    POST /login/2fa/email       - 登录过程中发送邮件验证码
    POST /logout                - 登出
    GET  /2fa                   - 当前用户的二次验证状态
    POST /2fa/app/begin         - 生成 Authenticator 密钥
    POST /2fa/app/confirm       - 验证 Authenticator 代码并启用
    POST /2fa/email/begin       - 发送邮件验证码（启用邮件验证）
    POST /2fa/email/confirm     - 验证邮件验证码并启用
    POST /2fa/email/send        - 为二次确认发送邮件验证码
    POST /2fa/confirm           - 二次确认后执行敏感操作（关闭 / 生成恢复码 / 删除恢复码）
    POST /2fa/forget-client     - 遗忘记住的设备

路由层只做参数验证、调用服务、包装响应，业务日志在服务层。

使用示例::

    from yauth.api import create_auth_router

    app.include_router(create_auth_router(services), prefix="/api/v1/auth", tags=["auth"])
"""

from typing import Optional, TYPE_CHECKING

from fastapi import APIRouter, Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel as PydanticBaseModel, Field

from yauth.auth.claims import SessionClaims, SessionContext, require_mfa
from yauth.auth.mfa import ConfirmReason, TwoFactorMethod
from yauth.auth.users import User
from yauth.exceptions import Err
from yauth.response import Resp

if TYPE_CHECKING:
    from yauth.auth import AuthServices


class LoginRequest(PydanticBaseModel):
    """登录请求"""
    identifier: str = Field(min_length=1, max_length=255, description="用户名或邮箱", examples=["alice"])
    password: str = Field(min_length=1, max_length=128, description="密码")
    remember_me: bool = Field(default=False, description="是否使用持久会话")
    remembered_client_token: Optional[str] = Field(default=None, description="记住设备令牌")
    context: SessionContext = Field(default=SessionContext.DEFAULT, description="会话场景")


class TwoFactorLoginRequest(PydanticBaseModel):
    """二次验证请求"""
    challenge_token: str = Field(min_length=1, description="挑战令牌")
    method: TwoFactorMethod = Field(description="验证方式", examples=["App"])
    code: str = Field(min_length=1, max_length=32, description="验证码")
    remember_client: bool = Field(default=False, description="记住此设备")


class ChallengeRequest(PydanticBaseModel):
    challenge_token: str = Field(min_length=1, description="挑战令牌")


class CodeRequest(PydanticBaseModel):
    code: str = Field(min_length=1, max_length=32, description="验证码")


class ConfirmRequest(PydanticBaseModel):
    """二次确认请求"""
    reason: ConfirmReason = Field(description="操作", examples=["disable2fa"])
    method: TwoFactorMethod = Field(description="验证方式")
    code: str = Field(min_length=1, max_length=32, description="验证码")


def create_auth_router(services: "AuthServices") -> APIRouter:
    """创建认证端点路由

    Args:
        services: build_auth_services() 返回的服务集合

    Returns:
        APIRouter
    """
    router = APIRouter()
    bearer = HTTPBearer(auto_error=False)
    signin = services.signin
    mfa = services.mfa

    def _signin_response(result, pending_ok: bool):
        if result.is_locked_out:
            return Resp.Locked(result.message, data=result.to_dict())
        if result.succeeded or (pending_ok and result.requires_two_factor):
            return Resp.OK(result.to_dict(), message=result.message)
        return Resp.Unauthorized(result.message, data=result.to_dict())

    def current_claims(
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    ) -> SessionClaims:
        claims = signin.validate_session(credentials.credentials if credentials else None)
        if claims is None:
            raise Err.auth("请先登录")
        return claims

    def current_user(claims: SessionClaims = Depends(current_claims)) -> User:
        require_mfa(claims)
        user = services.users.find_by_id(claims.user_id)
        if user is None:
            raise Err.auth("请先登录")
        return user

    # ==================== 登录 ====================

    @router.post("/login", summary="密码登录")
    def login(body: LoginRequest):
        result = signin.password_sign_in(
            body.identifier,
            body.password,
            remember_me=body.remember_me,
            remembered_client_token=body.remembered_client_token,
            context=body.context,
        )
        return _signin_response(result, pending_ok=True)

    @router.post("/login/2fa", summary="提交二次验证码")
    def login_two_factor(body: TwoFactorLoginRequest):
        result = signin.two_factor_sign_in(
            body.challenge_token, body.method, body.code, remember_client=body.remember_client
        )
        return _signin_response(result, pending_ok=False)

    @router.post("/login/2fa/email", summary="登录时发送邮件验证码")
    def login_send_email(body: ChallengeRequest):
        signin.send_two_factor_email(body.challenge_token)
        # 不透露是否真正发送
        return Resp.OK(message="如果已启用邮件验证，验证码已发送")

    @router.post("/logout", summary="登出")
    def logout(credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer)):
        signin.sign_out(credentials.credentials if credentials else None)
        return Resp.OK(message="已登出")

    # ==================== 二次验证管理 ====================

    @router.get("/2fa", summary="二次验证状态")
    def two_factor_status(user: User = Depends(current_user)):
        return Resp.OK({
            "mfa_enabled": user.mfa_enabled,
            "email_mfa_enabled": user.email_mfa_enabled,
            "recovery_codes_left": mfa.count_recovery_codes(user),
            "methods": mfa.available_methods(user),
        })

    @router.post("/2fa/app/begin", summary="生成 Authenticator 密钥")
    def begin_enable_app(user: User = Depends(current_user)):
        setup = mfa.begin_enable_app(user)
        return Resp.OK({"secret": setup.secret, "uri": setup.uri})

    @router.post("/2fa/app/confirm", summary="启用 Authenticator")
    def confirm_enable_app(body: CodeRequest, user: User = Depends(current_user)):
        if not mfa.enable_app(user, body.code):
            raise Err.auth("验证码无效")
        return Resp.OK({"mfa_enabled": True}, message="已启用二次验证")

    @router.post("/2fa/email/begin", summary="发送邮件验证码以启用邮件验证")
    def begin_enable_email(user: User = Depends(current_user)):
        mfa.begin_enable_email(user)
        return Resp.OK(message="验证码已发送")

    @router.post("/2fa/email/confirm", summary="启用邮件验证")
    def confirm_enable_email(body: CodeRequest, user: User = Depends(current_user)):
        if not mfa.enable_email(user, body.code):
            raise Err.auth("验证码无效")
        return Resp.OK({"email_mfa_enabled": True}, message="已启用邮件验证")

    @router.post("/2fa/email/send", summary="发送邮件验证码（二次确认用）")
    def send_confirm_email(user: User = Depends(current_user)):
        if not user.email_mfa_enabled:
            raise Err.invalid("未启用邮件验证", field="method")
        mfa.send_email_code(user)
        return Resp.OK(message="验证码已发送")

    @router.post("/2fa/confirm", summary="二次确认后执行敏感操作")
    def confirm(body: ConfirmRequest, user: User = Depends(current_user)):
        result = mfa.confirm(user, body.reason, body.method, body.code)
        if not result:
            raise Err.auth("验证码无效")
        return Resp.OK({"reason": body.reason, "recovery_codes": result.recovery_codes})

    @router.post("/2fa/forget-client", summary="遗忘记住的设备")
    def forget_client(user: User = Depends(current_user)):
        signin.forget_two_factor_client(user)
        return Resp.OK(message="已遗忘记住的设备")

    return router
