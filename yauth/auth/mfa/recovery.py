"""恢复码提供者

提供备用恢复码，用户无法使用主要二次验证方式时使用。每个恢复码只能使用一次。

存储格式为哈希数组（JSON），数组是"哪些码仍然有效"的唯一依据：
使用一个码只从数组中删除这一项；重新生成会整体替换，之前发出的码全部失效。

使用示例:
    provider = RecoveryCodeProvider(store, CodeHasher(), code_count=10)

    codes = provider.generate("TwoFactor.Recovery", user)   # ['B7KQ2-XM9TD', ...]
    provider.validate("TwoFactor.Recovery", codes[0], user)  # 成功，该码失效
    provider.count_valid(user, "TwoFactor.Recovery")         # 9
"""

import json
from typing import List, Optional

from yauth.log import get_logger
from yauth.utils import generate_formatted_code, is_formatted_code, normalize_code
from ..password import CodeHasher
from ..token_store import TokenStore
from .base import (
    Clock,
    FailureReason,
    RECOVERY_PROVIDER_NAME,
    TokenProvider,
    ValidationResult,
    load_json,
)

logger = get_logger("yauth.auth.mfa.recovery")


class RecoveryCodeProvider(TokenProvider):
    """恢复码提供者

    Args:
        store: 令牌存储
        hasher: 验证码哈希器
        code_count: 每批生成的恢复码数量
        clock: 时钟
    """

    name = RECOVERY_PROVIDER_NAME

    def __init__(
        self,
        store: TokenStore,
        hasher: CodeHasher,
        code_count: int = 10,
        clock: Optional[Clock] = None,
    ):
        super().__init__(store, clock)
        self._hasher = hasher
        self.code_count = code_count

    def generate(self, purpose: str, user) -> List[str]:
        """生成一批恢复码，替换之前的整批

        Returns:
            List[str]: 明文恢复码，只在此时展示给用户一次
        """
        codes: List[str] = []
        while len(codes) < self.code_count:
            code = generate_formatted_code()
            if code not in codes:
                codes.append(code)

        hashes = [self._hasher.hash(user.id, code) for code in codes]
        self._store.set(user.id, self.name, purpose, json.dumps(hashes))
        logger.info(f"已生成恢复码: user_id={user.id}, count={len(codes)}")
        return codes

    def validate(self, purpose: str, token: str, user) -> ValidationResult:
        """验证并消费一个恢复码"""
        code = normalize_code(token)
        if not is_formatted_code(code):
            return ValidationResult.failed(FailureReason.INVALID_FORMAT)

        outcome = {}

        def _consume(current: Optional[str]) -> Optional[str]:
            hashes = load_json(current)
            if current is not None and not isinstance(hashes, list):
                outcome["result"] = ValidationResult.failed(FailureReason.MALFORMED_RECORD)
                return current
            if not hashes:
                outcome["result"] = ValidationResult.failed(FailureReason.NO_CODES_REMAINING, remaining=0)
                return current

            for index, hashed in enumerate(hashes):
                if self._hasher.verify(user.id, code, hashed):
                    remaining = hashes[:index] + hashes[index + 1:]
                    outcome["result"] = ValidationResult.passed(remaining=len(remaining))
                    return json.dumps(remaining)

            outcome["result"] = ValidationResult.failed(FailureReason.INVALID_CODE, remaining=len(hashes))
            return current

        self._store.update(user.id, self.name, purpose, _consume)
        result = outcome["result"]
        if result.ok:
            logger.info(f"恢复码已使用: user_id={user.id}, remaining={result.remaining}")
        elif result.reason == FailureReason.MALFORMED_RECORD.value:
            logger.error(f"恢复码记录格式损坏: user_id={user.id}, purpose={purpose}")
        return result

    def count_valid(self, user, purpose: str) -> int:
        """剩余可用恢复码数量"""
        hashes = load_json(self._store.get(user.id, self.name, purpose))
        return len(hashes) if isinstance(hashes, list) else 0
