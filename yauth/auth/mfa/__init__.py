"""MFA 多因素认证模块

提供的验证方式:
- TOTP (Authenticator App)
- 邮件验证码
- 恢复码

使用示例:
    from yauth.auth.mfa import MFAManager, TwoFactorMethod

    mfa = MFAManager.from_settings(settings, store, users)
    result = mfa.verify_two_factor(user, TwoFactorMethod.APP, "123456")
"""

from .base import (
    TwoFactorMethod,
    FailureReason,
    ValidationResult,
    TokenProvider,
    TOTP_PROVIDER_NAME,
    EMAIL_PROVIDER_NAME,
    RECOVERY_PROVIDER_NAME,
    REMEMBER_PROVIDER_NAME,
    TWO_FACTOR_PURPOSE,
)
from .totp import TOTPTokenProvider, hotp, totp, verify_totp
from .email import EmailCodeTokenProvider
from .recovery import RecoveryCodeProvider
from .remember import RememberedClientProvider, REMEMBER_PURPOSE
from .manager import (
    MFAManager,
    ConfirmReason,
    ConfirmResult,
    AppSetup,
    ProviderBinding,
    EMAIL_PURPOSE,
    RECOVERY_PURPOSE,
)

__all__ = [
    "TwoFactorMethod",
    "FailureReason",
    "ValidationResult",
    "TokenProvider",
    "TOTP_PROVIDER_NAME",
    "EMAIL_PROVIDER_NAME",
    "RECOVERY_PROVIDER_NAME",
    "REMEMBER_PROVIDER_NAME",
    "TWO_FACTOR_PURPOSE",
    "TOTPTokenProvider",
    "hotp",
    "totp",
    "verify_totp",
    "EmailCodeTokenProvider",
    "RecoveryCodeProvider",
    "RememberedClientProvider",
    "REMEMBER_PURPOSE",
    "MFAManager",
    "ConfirmReason",
    "ConfirmResult",
    "AppSetup",
    "ProviderBinding",
    "EMAIL_PURPOSE",
    "RECOVERY_PURPOSE",
]
