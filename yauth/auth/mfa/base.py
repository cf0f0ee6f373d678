"""MFA 基础定义"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from ..token_store import TokenStore

# 提供者名称（令牌存储的命名空间）
TOTP_PROVIDER_NAME = "TOTP App"
EMAIL_PROVIDER_NAME = "Email Code"
RECOVERY_PROVIDER_NAME = "Recovery Codes"
REMEMBER_PROVIDER_NAME = "Remember Client"

# 基础用途，邮件与恢复码在此基础上派生，避免同一命名空间下互相覆盖
TWO_FACTOR_PURPOSE = "TwoFactor"

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TwoFactorMethod(str, Enum):
    """二次验证方式"""
    APP = "App"  # Authenticator 应用（TOTP）
    EMAIL = "Email"  # 邮件验证码
    RECOVERY = "Recovery"  # 恢复码


class FailureReason(str, Enum):
    """验证失败原因（只写日志，不直接展示给最终用户）"""
    INVALID_CODE = "invalid code"
    INVALID_FORMAT = "invalid format"
    EXPIRED = "code expired"
    NOT_REQUESTED = "no code requested"
    NOT_CONFIGURED = "no secret configured"
    NO_CODES_REMAINING = "no recovery codes remaining"
    MALFORMED_RECORD = "malformed stored token"
    DECRYPTION_FAILED = "secret decryption failed"


@dataclass(frozen=True)
class ValidationResult:
    """验证结果

    Attributes:
        ok: 是否验证成功
        reason: 失败原因
        remaining: 剩余可用数量（恢复码）

    使用示例:
        result = provider.validate(purpose, code, user)
        if result:
            ...
        else:
            logger.warning(result.reason)
    """
    ok: bool
    reason: str = ""
    remaining: Optional[int] = None

    def __bool__(self) -> bool:
        return self.ok

    @classmethod
    def passed(cls, remaining: Optional[int] = None) -> "ValidationResult":
        """创建成功结果"""
        return cls(ok=True, remaining=remaining)

    @classmethod
    def failed(cls, reason: str = FailureReason.INVALID_CODE.value, remaining: Optional[int] = None) -> "ValidationResult":
        """创建失败结果"""
        if isinstance(reason, FailureReason):
            reason = reason.value
        return cls(ok=False, reason=reason, remaining=remaining)


class TokenProvider(ABC):
    """令牌提供者抽象基类

    每个提供者在令牌存储中拥有自己的命名空间（name），
    通过 purpose 区分同一用户的多种令牌。

    Args:
        store: 令牌存储
        clock: 返回当前 UTC 时间的可调用对象
    """

    name: str = ""

    def __init__(self, store: TokenStore, clock: Optional[Clock] = None):
        self._store = store
        self._clock = clock or utc_now

    def now(self) -> datetime:
        return self._clock()

    def can_generate(self, user) -> bool:
        """该用户是否可以使用此提供者"""
        return user is not None and user.id is not None

    @abstractmethod
    def generate(self, purpose: str, user) -> Any:
        """生成令牌并存储，返回需要交给用户的明文"""
        pass

    @abstractmethod
    def validate(self, purpose: str, token: str, user) -> ValidationResult:
        """验证令牌"""
        pass

    def remove(self, user, purpose: str) -> bool:
        """删除令牌（幂等）"""
        return self._store.remove(user.id, self.name, purpose)

    def has_token(self, user, purpose: str) -> bool:
        return self._store.get(user.id, self.name, purpose) is not None


def load_json(value: Optional[str]) -> Any:
    """解析存储内容，格式损坏时返回 None"""
    if value is None:
        return None
    try:
        return json.loads(value)
    except (ValueError, TypeError):
        return None


def live_entries(value: Optional[str], now_ts: int, key: str) -> List[Dict[str, Any]]:
    """解析 ``[{key: str, "exp": 时间戳}, ...]`` 形式的存储内容

    格式损坏或已过期的条目被丢弃，不抛出异常。
    """
    entries = load_json(value)
    if not isinstance(entries, list):
        return []
    live = []
    for entry in entries:
        if not isinstance(entry, dict) or not isinstance(entry.get(key), str):
            continue
        exp = entry.get("exp")
        if isinstance(exp, bool) or not isinstance(exp, (int, float)):
            continue
        if exp > now_ts:
            live.append(entry)
    return live
