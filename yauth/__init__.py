"""
YAuth - 多因素认证令牌生命周期引擎

提供 TOTP / 邮件验证码 / 恢复码三种二次验证方式、MFA 管理器、
带锁定与记住设备的两步登录，以及配套的配置、日志、异常与 FastAPI 路由
"""

from .version import __version__, __author__, __description__

# 导出响应模块
from .response import Resp, ResponseStatus

# 导出配置
from .config import YAuthSettings, load_settings

# 导出异常
from .exceptions import (
    BusinessException,
    AuthenticationException,
    PersistenceException,
    ConfigurationException,
    NotSupportedException,
    Err,
    register_exception_handlers,
)

# 导出认证
from .auth import (
    AuthServices,
    build_auth_services,
    MFAManager,
    SignInManager,
    SignInResult,
    SignInState,
    TwoFactorMethod,
    InMemoryTokenStore,
    SQLTokenStore,
    RedisTokenStore,
    InMemoryUserRepository,
    SQLUserRepository,
)

# 导出路由
from .api import create_auth_router

# 导出日志
from .log import get_logger, setup_logger

__all__ = [
    "__version__",
    "__author__",
    "__description__",
    "Resp",
    "ResponseStatus",
    "YAuthSettings",
    "load_settings",
    "BusinessException",
    "AuthenticationException",
    "PersistenceException",
    "ConfigurationException",
    "NotSupportedException",
    "Err",
    "register_exception_handlers",
    "AuthServices",
    "build_auth_services",
    "MFAManager",
    "SignInManager",
    "SignInResult",
    "SignInState",
    "TwoFactorMethod",
    "InMemoryTokenStore",
    "SQLTokenStore",
    "RedisTokenStore",
    "InMemoryUserRepository",
    "SQLUserRepository",
    "create_auth_router",
    "get_logger",
    "setup_logger",
]
