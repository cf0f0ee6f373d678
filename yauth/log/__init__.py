"""日志模块

提供日志配置与敏感数据过滤。

使用示例:
    from yauth.log import setup_logger, get_logger

    setup_logger("yauth", level="DEBUG", log_file="logs/auth.log")
    logger = get_logger("yauth.auth.signin")
"""

from .logger import (
    setup_logger,
    setup_logger_from_config,
    create_formatter,
    MicrosecondFormatter,
    DEFAULT_LOG_FORMAT,
    auth_logger,
    logger,
    get_logger,
)

from .filter_hooks import (
    SensitiveDataFilterHook,
    SensitiveDataLogFilter,
    DEFAULT_SENSITIVE_PATTERNS,
    FILTERED_PLACEHOLDER,
)

__all__ = [
    "setup_logger",
    "setup_logger_from_config",
    "create_formatter",
    "MicrosecondFormatter",
    "DEFAULT_LOG_FORMAT",
    "auth_logger",
    "logger",
    "get_logger",
    "SensitiveDataFilterHook",
    "SensitiveDataLogFilter",
    "DEFAULT_SENSITIVE_PATTERNS",
    "FILTERED_PLACEHOLDER",
]
