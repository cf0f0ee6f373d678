"""配置模块

使用示例:
    from yauth.config import load_settings

    settings = load_settings("config/auth.yaml")
    print(settings.totp.digits)
"""

from .settings import (
    TOTPSettings,
    EmailCodeSettings,
    RecoverySettings,
    LockoutSettings,
    SessionSettings,
    DataProtectionSettings,
    LoggingSettings,
    YAuthSettings,
)
from .loader import ConfigLoader, load_settings

__all__ = [
    "TOTPSettings",
    "EmailCodeSettings",
    "RecoverySettings",
    "LockoutSettings",
    "SessionSettings",
    "DataProtectionSettings",
    "LoggingSettings",
    "YAuthSettings",
    "ConfigLoader",
    "load_settings",
]
