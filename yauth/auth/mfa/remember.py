"""记住设备

用户在二次验证时勾选"记住此设备"后，服务端签发一个随机设备令牌（交给客户端保存在 Cookie 中），
只在令牌存储里保留其 SHA-256 摘要和到期时间。之后登录时携带该令牌即可跳过二次验证，
直到过期或被主动遗忘。

使用示例:
    remember = RememberedClientProvider(store, days=30)

    token = remember.remember(user)             # 写入 Cookie
    remember.is_remembered(user, token)         # True
    remember.forget(user)                       # 所有设备都需要重新验证
"""

import hashlib
import hmac
import json
import secrets
from datetime import timedelta
from typing import Optional

from yauth.log import get_logger
from ..token_store import TokenStore
from .base import Clock, REMEMBER_PROVIDER_NAME, TWO_FACTOR_PURPOSE, live_entries, utc_now

logger = get_logger("yauth.auth.mfa.remember")

REMEMBER_PURPOSE = f"{TWO_FACTOR_PURPOSE}.RememberedClient"


def _digest(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class RememberedClientProvider:
    """记住设备标记

    Args:
        store: 令牌存储
        days: 标记有效期（天）
        clock: 时钟
    """

    name = REMEMBER_PROVIDER_NAME

    def __init__(self, store: TokenStore, days: int = 30, clock: Optional[Clock] = None):
        self._store = store
        self.days = days
        self._clock = clock or utc_now

    def remember(self, user) -> str:
        """签发设备令牌

        Returns:
            str: 设备令牌明文，只返回这一次
        """
        token = secrets.token_urlsafe(32)
        now = self._clock()
        now_ts = int(now.timestamp())
        entry = {
            "hash": _digest(token),
            "exp": int((now + timedelta(days=self.days)).timestamp()),
        }

        def _append(current: Optional[str]) -> str:
            return json.dumps(live_entries(current, now_ts, "hash") + [entry])

        self._store.update(user.id, self.name, REMEMBER_PURPOSE, _append)
        logger.info(f"已记住设备: user_id={user.id}, days={self.days}")
        return token

    def is_remembered(self, user, token: Optional[str]) -> bool:
        """检查设备令牌是否有效"""
        if not token:
            return False
        now_ts = int(self._clock().timestamp())
        digest = _digest(token)
        entries = live_entries(self._store.get(user.id, self.name, REMEMBER_PURPOSE), now_ts, "hash")
        return any(hmac.compare_digest(digest.encode("utf-8"), e["hash"].encode("utf-8")) for e in entries)

    def forget(self, user) -> bool:
        """遗忘该用户所有已记住的设备（幂等）"""
        removed = self._store.remove(user.id, self.name, REMEMBER_PURPOSE)
        logger.info(f"已遗忘记住的设备: user_id={user.id}")
        return removed
