"""业务异常类定义

定义认证引擎使用的异常类体系。

预期内的否定结果（验证码错误、验证码过期、未配置密钥）不使用异常，
而是返回 ValidationResult；异常只用于输入错误、持久化故障、配置错误等。
"""

import copy
from enum import Enum
from typing import Optional, List, Any, Dict, Union

from fastapi import status


class ErrorCode(str, Enum):
    """错误代码枚举

    继承自 str，可以直接作为字符串使用。

    使用示例:
        from yauth.exceptions import ErrorCode, AuthenticationException

        raise AuthenticationException("登录失败", code=ErrorCode.INVALID_CREDENTIALS)
    """

    # ==================== 通用错误 ====================
    BUSINESS_ERROR = "BUSINESS_ERROR"
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"

    # ==================== 认证相关 (401) ====================
    AUTHENTICATION_FAILED = "AUTHENTICATION_FAILED"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"

    # ==================== 授权相关 (403) ====================
    AUTHORIZATION_FAILED = "AUTHORIZATION_FAILED"
    MFA_REQUIRED = "MFA_REQUIRED"

    # ==================== 资源相关 (404) ====================
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"

    # ==================== 验证相关 (422) ====================
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # ==================== 服务相关 (5xx) ====================
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    PERSISTENCE_ERROR = "PERSISTENCE_ERROR"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    METHOD_NOT_SUPPORTED = "METHOD_NOT_SUPPORTED"


# 类型别名，支持枚举和字符串
ErrorCodeType = Union[str, ErrorCode]


class BusinessException(Exception):
    """业务异常基类

    属性:
        message: 错误消息（面向用户）
        code: 错误代码（用于程序判断，支持 ErrorCode 枚举或字符串）
        status_code: HTTP 状态码
        details: 详细错误信息列表
        extra: 额外的上下文信息
    """

    def __init__(
        self,
        message: str,
        code: ErrorCodeType = ErrorCode.BUSINESS_ERROR,
        status_code: int = status.HTTP_400_BAD_REQUEST,
        details: Optional[List[str]] = None,
        **extra: Any
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or []
        self.extra = extra
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典格式"""
        return {
            "message": self.message,
            "code": self.code,
            "status_code": self.status_code,
            "details": copy.deepcopy(self.details),
            "extra": copy.deepcopy(self.extra)
        }

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code!r}, "
            f"status_code={self.status_code})"
        )


class AuthenticationException(BusinessException):
    """认证异常

    面向用户的消息保持笼统（"登录失败"），具体原因只写日志。
    """

    def __init__(
        self,
        message: str = "认证失败",
        code: ErrorCodeType = ErrorCode.AUTHENTICATION_FAILED,
        details: Optional[List[str]] = None,
        **extra: Any
    ):
        super().__init__(
            message=message,
            code=code,
            status_code=status.HTTP_401_UNAUTHORIZED,
            details=details,
            **extra
        )


class AuthorizationException(BusinessException):
    """授权异常"""

    def __init__(
        self,
        message: str = "权限不足",
        code: ErrorCodeType = ErrorCode.AUTHORIZATION_FAILED,
        details: Optional[List[str]] = None,
        **extra: Any
    ):
        super().__init__(
            message=message,
            code=code,
            status_code=status.HTTP_403_FORBIDDEN,
            details=details,
            **extra
        )


class ResourceNotFoundException(BusinessException):
    """资源不存在异常"""

    def __init__(
        self,
        message: str = "资源不存在",
        code: ErrorCodeType = ErrorCode.RESOURCE_NOT_FOUND,
        details: Optional[List[str]] = None,
        **extra: Any
    ):
        super().__init__(
            message=message,
            code=code,
            status_code=status.HTTP_404_NOT_FOUND,
            details=details,
            **extra
        )


class ValidationException(BusinessException):
    """数据验证异常

    使用示例:
        raise ValidationException("用户名不能为空", field="identifier")
    """

    def __init__(
        self,
        message: str = "数据验证失败",
        code: ErrorCodeType = ErrorCode.VALIDATION_ERROR,
        details: Optional[List[str]] = None,
        **extra: Any
    ):
        super().__init__(
            message=message,
            code=code,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=details,
            **extra
        )


class ServiceUnavailableException(BusinessException):
    """服务不可用异常"""

    def __init__(
        self,
        message: str = "服务暂时不可用",
        code: ErrorCodeType = ErrorCode.SERVICE_UNAVAILABLE,
        details: Optional[List[str]] = None,
        **extra: Any
    ):
        super().__init__(
            message=message,
            code=code,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            details=details,
            **extra
        )


class PersistenceException(ServiceUnavailableException):
    """持久化异常

    令牌存储、用户仓储读写失败时抛出。当前操作整体失败，不允许带着部分状态继续。

    使用示例:
        try:
            session.commit()
        except SQLAlchemyError as e:
            raise PersistenceException("令牌写入失败", operation="set") from e
    """

    def __init__(
        self,
        message: str = "存储服务异常",
        code: ErrorCodeType = ErrorCode.PERSISTENCE_ERROR,
        details: Optional[List[str]] = None,
        **extra: Any
    ):
        super().__init__(message=message, code=code, details=details, **extra)


class ConfigurationException(BusinessException):
    """配置异常

    配置加载时发现非法取值（非数字、越界）时抛出，属于启动期致命错误。
    """

    def __init__(
        self,
        message: str = "配置错误",
        code: ErrorCodeType = ErrorCode.CONFIGURATION_ERROR,
        details: Optional[List[str]] = None,
        **extra: Any
    ):
        super().__init__(
            message=message,
            code=code,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details=details,
            **extra
        )


class NotSupportedException(BusinessException):
    """不支持的二次验证方式

    属于编程/配置错误，调用方不应重试。
    """

    def __init__(
        self,
        message: str = "不支持的验证方式",
        code: ErrorCodeType = ErrorCode.METHOD_NOT_SUPPORTED,
        details: Optional[List[str]] = None,
        **extra: Any
    ):
        super().__init__(
            message=message,
            code=code,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details=details,
            **extra
        )


class Err:
    """异常快捷创建类

    使用示例:
        from yauth.exceptions import Err

        raise Err.auth("登录失败")
        raise Err.persistence("令牌写入失败", operation="set")
        raise Err.unsupported(f"不支持的验证方式: {method}")
    """

    @staticmethod
    def auth(message: str = "认证失败", **kwargs) -> AuthenticationException:
        """认证失败 (401)"""
        return AuthenticationException(message, **kwargs)

    @staticmethod
    def forbidden(message: str = "权限不足", **kwargs) -> AuthorizationException:
        """权限不足 (403)"""
        return AuthorizationException(message, **kwargs)

    @staticmethod
    def not_found(message: str = "资源不存在", **kwargs) -> ResourceNotFoundException:
        """资源不存在 (404)"""
        return ResourceNotFoundException(message, **kwargs)

    @staticmethod
    def invalid(message: str = "数据验证失败", **kwargs) -> ValidationException:
        """数据验证失败 (422)"""
        return ValidationException(message, **kwargs)

    @staticmethod
    def persistence(message: str = "存储服务异常", **kwargs) -> PersistenceException:
        """持久化失败 (503)"""
        return PersistenceException(message, **kwargs)

    @staticmethod
    def config(message: str = "配置错误", **kwargs) -> ConfigurationException:
        """配置错误 (500)"""
        return ConfigurationException(message, **kwargs)

    @staticmethod
    def unsupported(message: str = "不支持的验证方式", **kwargs) -> NotSupportedException:
        """不支持的验证方式 (500)"""
        return NotSupportedException(message, **kwargs)
