"""邮件验证码提供者

生成 XXXXX-XXXXX 格式的验证码，只存储绑定用户的哈希与有效期。

存储格式::

    {"thsh": "<哈希>", "iat": <签发时间戳>, "exp": <过期时间戳>}

验证规则:
    - 没有记录：失败（未申请验证码）
    - 不在 [iat, exp] 内：删除记录后失败，过期码不能重试
    - 哈希匹配：删除记录后成功（一次性）
    - 哈希不匹配：保留记录，有效期内允许重试，次数由账户锁定策略约束

使用示例:
    provider = EmailCodeTokenProvider(store, CodeHasher(), ttl_seconds=900,
                                      email_sender=send_code_mail)
    provider.generate("TwoFactor.Email", user)    # 发送邮件
    provider.validate("TwoFactor.Email", "B7KQ2-XM9TD", user)
"""

import json
from datetime import timedelta
from typing import Callable, Optional

from yauth.log import get_logger
from yauth.utils import generate_formatted_code, is_formatted_code, normalize_code
from ..password import CodeHasher
from ..token_store import TokenStore
from .base import (
    Clock,
    EMAIL_PROVIDER_NAME,
    FailureReason,
    TokenProvider,
    ValidationResult,
    load_json,
)

logger = get_logger("yauth.auth.mfa.email")

# email_sender(user, code, purpose)
EmailSender = Callable[[object, str, str], None]


class EmailCodeTokenProvider(TokenProvider):
    """邮件验证码提供者

    Args:
        store: 令牌存储
        hasher: 验证码哈希器
        ttl_seconds: 验证码有效期（秒）
        email_sender: 发送回调，发送失败时异常向上传播
        clock: 时钟
    """

    name = EMAIL_PROVIDER_NAME

    def __init__(
        self,
        store: TokenStore,
        hasher: CodeHasher,
        ttl_seconds: int = 900,
        email_sender: Optional[EmailSender] = None,
        clock: Optional[Clock] = None,
    ):
        super().__init__(store, clock)
        self._hasher = hasher
        self.ttl_seconds = ttl_seconds
        self._email_sender = email_sender

    def set_sender(self, email_sender: EmailSender) -> "EmailCodeTokenProvider":
        """设置发送回调，支持链式调用"""
        self._email_sender = email_sender
        return self

    def can_generate(self, user) -> bool:
        return super().can_generate(user) and bool(user.email)

    def generate(self, purpose: str, user) -> str:
        """生成验证码，覆盖之前未使用的验证码"""
        code = generate_formatted_code()
        issued_at = self.now()
        expires_at = issued_at + timedelta(seconds=self.ttl_seconds)
        payload = {
            "thsh": self._hasher.hash(user.id, code),
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        self._store.set(user.id, self.name, purpose, json.dumps(payload))
        logger.info(f"已生成邮件验证码: user_id={user.id}, purpose={purpose}")

        if self._email_sender is not None:
            self._email_sender(user, code, purpose)
        return code

    def validate(self, purpose: str, token: str, user) -> ValidationResult:
        code = normalize_code(token)
        if not is_formatted_code(code):
            return ValidationResult.failed(FailureReason.INVALID_FORMAT)

        now_ts = int(self.now().timestamp())
        outcome = {}

        def _consume(current: Optional[str]) -> Optional[str]:
            if current is None:
                outcome["result"] = ValidationResult.failed(FailureReason.NOT_REQUESTED)
                return None

            payload = load_json(current)
            if not isinstance(payload, dict) or not {"thsh", "iat", "exp"} <= payload.keys():
                outcome["result"] = ValidationResult.failed(FailureReason.MALFORMED_RECORD)
                return None

            try:
                issued_at, expires_at = int(payload["iat"]), int(payload["exp"])
            except (TypeError, ValueError):
                outcome["result"] = ValidationResult.failed(FailureReason.MALFORMED_RECORD)
                return None

            if not issued_at <= now_ts <= expires_at:
                outcome["result"] = ValidationResult.failed(FailureReason.EXPIRED)
                return None

            if self._hasher.verify(user.id, code, payload["thsh"]):
                outcome["result"] = ValidationResult.passed()
                return None

            outcome["result"] = ValidationResult.failed(FailureReason.INVALID_CODE)
            return current

        self._store.update(user.id, self.name, purpose, _consume)
        result = outcome["result"]
        if result.reason == FailureReason.MALFORMED_RECORD.value:
            logger.error(f"邮件验证码记录格式损坏，已删除: user_id={user.id}, purpose={purpose}")
        return result
