"""会话声明

SessionClaims 是每个已认证请求携带的身份断言：
- mfa_enabled: 用户是否启用了二次验证
- amr: 认证方式引用，只有完成二次验证（或记住设备）后才存在
- iat / exp: 签发与过期时间

使用示例:
    claims = signin.validate_session(token)
    require_mfa(claims)        # 启用了二次验证但尚未确认时抛出 AuthorizationException
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from yauth.exceptions import Err, ErrorCode

# 通过"记住此设备"跳过二次验证时的 amr
AMR_REMEMBERED = "remembered"


class SessionContext(str, Enum):
    """会话场景，决定会话有效期"""
    DEFAULT = "default"
    PERSISTENT = "persistent"
    API = "api"


@dataclass
class SessionClaims:
    """会话声明

    Attributes:
        sub: 主体（用户 ID 字符串）
        user_id: 用户 ID
        username: 用户名
        mfa_enabled: 是否启用二次验证
        amr: 认证方式引用
        jti: 令牌 ID（用于登出撤销）
        iat: 签发时间
        exp: 过期时间
        context: 会话场景
    """
    sub: str
    user_id: Any
    username: str
    mfa_enabled: bool
    jti: str
    iat: datetime
    exp: datetime
    amr: Optional[str] = None
    context: SessionContext = SessionContext.DEFAULT

    @property
    def mfa_confirmed(self) -> bool:
        """未启用二次验证，或已完成二次验证"""
        return not self.mfa_enabled or bool(self.amr)

    def to_payload(self) -> Dict[str, Any]:
        payload = {
            "sub": self.sub,
            "user_id": self.user_id,
            "username": self.username,
            "mfa_enabled": self.mfa_enabled,
            "jti": self.jti,
            "context": self.context.value,
        }
        if self.amr:
            payload["amr"] = self.amr
        return payload

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "SessionClaims":
        return cls(
            sub=payload["sub"],
            user_id=payload.get("user_id"),
            username=payload.get("username", ""),
            mfa_enabled=bool(payload.get("mfa_enabled", False)),
            jti=payload.get("jti", ""),
            iat=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
            exp=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            amr=payload.get("amr"),
            context=SessionContext(payload.get("context", SessionContext.DEFAULT.value)),
        )


def require_mfa(claims: Optional[SessionClaims]) -> SessionClaims:
    """二次验证授权要求

    用户未启用二次验证时直接通过；启用时必须带有 amr 声明。

    Raises:
        AuthenticationException: 未登录
        AuthorizationException: 启用了二次验证但会话未经确认
    """
    if claims is None:
        raise Err.auth("请先登录")
    if not claims.mfa_confirmed:
        raise Err.forbidden("需要完成二次验证", code=ErrorCode.MFA_REQUIRED)
    return claims
