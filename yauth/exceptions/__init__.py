"""异常处理模块

提供业务异常类与 FastAPI 全局异常处理器。

使用示例:
    from yauth.exceptions import Err, register_exception_handlers

    raise Err.auth("登录失败")
"""

from .exceptions import (
    ErrorCode,
    ErrorCodeType,
    BusinessException,
    AuthenticationException,
    AuthorizationException,
    ResourceNotFoundException,
    ValidationException,
    ServiceUnavailableException,
    PersistenceException,
    ConfigurationException,
    NotSupportedException,
    Err,
)

from .handlers import (
    business_exception_handler,
    validation_exception_handler,
    http_exception_handler,
    general_exception_handler,
    register_exception_handlers,
)

__all__ = [
    "ErrorCode",
    "ErrorCodeType",
    "BusinessException",
    "AuthenticationException",
    "AuthorizationException",
    "ResourceNotFoundException",
    "ValidationException",
    "ServiceUnavailableException",
    "PersistenceException",
    "ConfigurationException",
    "NotSupportedException",
    "Err",
    "business_exception_handler",
    "validation_exception_handler",
    "http_exception_handler",
    "general_exception_handler",
    "register_exception_handlers",
]
