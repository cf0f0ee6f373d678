"""认证模块

提供 MFA 令牌生命周期与两步登录：
- 令牌存储（内存 / SQLAlchemy / Redis）
- 用户仓储
- TOTP、邮件验证码、恢复码提供者
- MFA 管理器
- 登录状态机

使用示例:
    from yauth.auth import build_auth_services

    services = build_auth_services(settings, store, users, email_sender=send_mail)
    result = services.signin.password_sign_in("alice", "secret123")
"""

from dataclasses import dataclass
from typing import Optional

from .password import PasswordHelper, CodeHasher
from .protector import SecretProtector, PurposeProtector, ProtectionError
from .token_store import TokenStore, InMemoryTokenStore, SQLTokenStore, RedisTokenStore
from .models import Base, UserToken, UserAccount
from .users import (
    User,
    AccessFailureResult,
    UserRepository,
    InMemoryUserRepository,
    SQLUserRepository,
)
from .claims import SessionClaims, SessionContext, require_mfa, AMR_REMEMBERED
from .jwt import JWTManager
from .mfa import (
    MFAManager,
    TwoFactorMethod,
    ValidationResult,
    FailureReason,
    ConfirmReason,
    ConfirmResult,
    AppSetup,
)
from .signin import SignInManager, SignInResult, SignInState


@dataclass
class AuthServices:
    """组装好的认证服务"""
    users: UserRepository
    store: TokenStore
    mfa: MFAManager
    signin: SignInManager


def build_auth_services(
    settings,
    store: TokenStore,
    users: UserRepository,
    email_sender=None,
    hasher: Optional[CodeHasher] = None,
    clock=None,
) -> AuthServices:
    """根据 YAuthSettings 组装 MFA 管理器与登录管理器"""
    mfa = MFAManager.from_settings(
        settings, store, users, email_sender=email_sender, hasher=hasher, clock=clock
    )
    signin = SignInManager(users, mfa, store, settings, clock=clock)
    return AuthServices(users=users, store=store, mfa=mfa, signin=signin)


__all__ = [
    "PasswordHelper",
    "CodeHasher",
    "SecretProtector",
    "PurposeProtector",
    "ProtectionError",
    "TokenStore",
    "InMemoryTokenStore",
    "SQLTokenStore",
    "RedisTokenStore",
    "Base",
    "UserToken",
    "UserAccount",
    "User",
    "AccessFailureResult",
    "UserRepository",
    "InMemoryUserRepository",
    "SQLUserRepository",
    "SessionClaims",
    "SessionContext",
    "require_mfa",
    "AMR_REMEMBERED",
    "JWTManager",
    "MFAManager",
    "TwoFactorMethod",
    "ValidationResult",
    "FailureReason",
    "ConfirmReason",
    "ConfirmResult",
    "AppSetup",
    "SignInManager",
    "SignInResult",
    "SignInState",
    "AuthServices",
    "build_auth_services",
]
