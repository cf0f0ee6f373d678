"""JWT 工具

会话令牌与二次验证挑战令牌都是 HS256 签名的 JWT，用 token_type 区分，
二者不能互换使用。过期时间以注入的时钟为准，而不是 jose 内部的系统时间。

使用示例:
    from yauth.auth.jwt import JWTManager

    jwt_manager = JWTManager(secret_key="your-secret-key")
    token = jwt_manager.encode({"sub": "1"}, token_type="session", expires_at=exp)
    payload = jwt_manager.decode(token, token_type="session")
"""

from datetime import datetime
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from yauth.log import get_logger
from .mfa.base import Clock, utc_now

logger = get_logger("yauth.auth.jwt")

SESSION_TOKEN_TYPE = "session"
CHALLENGE_TOKEN_TYPE = "2fa_challenge"


class JWTManager:
    """JWT 管理器

    Args:
        secret_key: 签名密钥
        algorithm: 签名算法，默认 HS256
        clock: 时钟
    """

    def __init__(self, secret_key: str, algorithm: str = "HS256", clock: Optional[Clock] = None):
        if not secret_key:
            raise ValueError("secret_key 不能为空")
        self.secret_key = secret_key
        self.algorithm = algorithm
        self._clock = clock or utc_now

    def encode(self, payload: Dict[str, Any], token_type: str, expires_at: datetime) -> str:
        """签发令牌"""
        data = dict(payload)
        data["token_type"] = token_type
        data["iat"] = int(self._clock().timestamp())
        data["exp"] = int(expires_at.timestamp())
        return jwt.encode(data, self.secret_key, algorithm=self.algorithm)

    def decode(self, token: Optional[str], token_type: str) -> Optional[Dict[str, Any]]:
        """校验并解码令牌

        签名错误、类型不符或已过期时返回 None。
        """
        if not token:
            return None
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                options={"verify_exp": False},
            )
        except JWTError as e:
            logger.debug(f"令牌解码失败: {e}")
            return None

        if payload.get("token_type") != token_type:
            return None
        exp = payload.get("exp")
        if not isinstance(exp, (int, float)) or exp < self._clock().timestamp():
            return None
        return payload
