"""统一响应格式

所有接口返回同一结构::

    {"status": "success", "message": "...", "msg_details": [], "data": {...}}

使用示例:
    from yauth.response import Resp

    return Resp.OK({"methods": ["App"]}, message="需要二次验证")
"""

from datetime import datetime
from enum import Enum
from typing import Any, List, Optional

from fastapi import status
from fastapi.responses import JSONResponse


class ResponseStatus(str, Enum):
    """响应状态枚举，与 HTTP 状态码独立"""
    SUCCESS = "success"
    ERROR = "error"


def _serialize(data: Any) -> Any:
    if isinstance(data, datetime):
        return data.isoformat()
    if isinstance(data, Enum):
        return data.value
    if hasattr(data, "to_dict") and callable(getattr(data, "to_dict")):
        return _serialize(data.to_dict())
    if isinstance(data, (list, tuple)):
        return [_serialize(item) for item in data]
    if isinstance(data, dict):
        return {k: _serialize(v) for k, v in data.items()}
    return data


def _create_response(
    message: str,
    data: Any = None,
    msg_details: Optional[List[str]] = None,
    status_code: int = status.HTTP_200_OK,
    response_status: ResponseStatus = ResponseStatus.SUCCESS,
) -> JSONResponse:
    content = {
        "status": response_status.value,
        "message": message,
        "msg_details": msg_details if msg_details is not None else [],
        "data": _serialize(data) if data is not None else {},
    }
    return JSONResponse(status_code=status_code, content=content)


class Resp:
    """响应快捷类"""

    @staticmethod
    def OK(data: Any = None, message: str = "请求成功") -> JSONResponse:
        """200 OK"""
        return _create_response(message, data)

    @staticmethod
    def Unauthorized(message: str = "未授权访问", data: Any = None) -> JSONResponse:
        """401"""
        return _create_response(
            message, data, status_code=status.HTTP_401_UNAUTHORIZED, response_status=ResponseStatus.ERROR
        )

    @staticmethod
    def Locked(message: str = "账户已锁定", data: Any = None) -> JSONResponse:
        """423"""
        return _create_response(
            message, data, status_code=status.HTTP_423_LOCKED, response_status=ResponseStatus.ERROR
        )

