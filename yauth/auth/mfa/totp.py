"""TOTP (Time-based One-Time Password) 提供者

实现基于时间的一次性密码（RFC 6238），兼容 Google Authenticator、Microsoft Authenticator 等。
密钥加密后存入令牌存储，明文只在生成时返回一次。

使用示例:
    provider = TOTPTokenProvider(store, SecretProtector("master-key"), issuer="MyApp")

    # 为用户生成密钥
    secret = provider.generate("TwoFactor", user)
    uri = provider.provisioning_uri(secret, user.email)   # otpauth://totp/MyApp:...

    # 验证代码
    result = provider.validate("TwoFactor", "123456", user)
    if result:
        print("验证成功")
"""

import base64
import hashlib
import hmac
import string
import struct
from typing import Optional
from urllib.parse import quote

from yauth.log import get_logger
from yauth.utils import generate_secret_bytes
from ..protector import ProtectionError, SecretProtector
from ..token_store import TokenStore
from .base import (
    Clock,
    FailureReason,
    TOTP_PROVIDER_NAME,
    TokenProvider,
    ValidationResult,
)

logger = get_logger("yauth.auth.mfa.totp")


def encode_secret(secret: bytes) -> str:
    """密钥转 Base32（去掉填充）"""
    return base64.b32encode(secret).decode("utf-8").rstrip("=")


def hotp(secret: str, counter: int, digits: int = 6) -> str:
    """HOTP (HMAC-based One-Time Password)

    Args:
        secret: Base32 编码的密钥
        counter: 计数器
        digits: 密码位数

    Returns:
        str: 一次性密码
    """
    key = base64.b32decode(secret.upper() + "=" * (-len(secret) % 8))

    counter_bytes = struct.pack(">Q", counter)
    hmac_hash = hmac.new(key, counter_bytes, hashlib.sha1).digest()

    # 动态截断
    offset = hmac_hash[-1] & 0x0F
    truncated = struct.unpack(">I", hmac_hash[offset:offset + 4])[0]
    truncated &= 0x7FFFFFFF

    otp = truncated % (10 ** digits)
    return str(otp).zfill(digits)


def totp(secret: str, timestamp: int, time_step: int = 30, digits: int = 6) -> str:
    """计算 timestamp 所在时间步的 TOTP"""
    return hotp(secret, timestamp // time_step, digits)


def verify_totp(
    secret: str,
    code: str,
    timestamp: int,
    time_step: int = 30,
    digits: int = 6,
    window: int = 1,
) -> bool:
    """验证 TOTP

    Args:
        secret: Base32 编码的密钥
        code: 待验证的代码
        timestamp: 当前时间戳
        time_step: 时间步长（秒）
        digits: 密码位数
        window: 允许的时间漂移（前后多少个时间步）

    Returns:
        bool: 是否验证通过
    """
    matched = False
    for offset in range(-window, window + 1):
        expected = totp(secret, timestamp + offset * time_step, time_step, digits)
        # 遍历全部窗口，耗时与匹配位置无关
        if hmac.compare_digest(code.encode("utf-8"), expected.encode("utf-8")):
            matched = True
    return matched


class TOTPTokenProvider(TokenProvider):
    """TOTP 提供者

    Args:
        store: 令牌存储
        protector: 密钥保护器，按 purpose 派生加密密钥
        issuer: 发行者名称（显示在 Authenticator 中）
        digits: OTP 位数
        time_step: 时间步长（秒）
        window: 验证时允许的时间窗口
        secret_bytes: 密钥字节数
        clock: 时钟
    """

    name = TOTP_PROVIDER_NAME

    def __init__(
        self,
        store: TokenStore,
        protector: SecretProtector,
        issuer: str = "YAuth",
        digits: int = 6,
        time_step: int = 30,
        window: int = 1,
        secret_bytes: int = 20,
        clock: Optional[Clock] = None,
    ):
        super().__init__(store, clock)
        self._protector = protector
        self.issuer = issuer
        self.digits = digits
        self.time_step = time_step
        self.window = window
        self.secret_bytes = secret_bytes

    @classmethod
    def from_settings(cls, store: TokenStore, protector: SecretProtector, settings, clock: Optional[Clock] = None) -> "TOTPTokenProvider":
        """根据 TOTPSettings 创建"""
        return cls(
            store,
            protector,
            issuer=settings.issuer,
            digits=settings.digits,
            time_step=settings.time_step,
            window=settings.window,
            secret_bytes=settings.secret_bytes,
            clock=clock,
        )

    def _purpose_protector(self, purpose: str):
        return self._protector.for_purpose(f"yauth.totp.{purpose}")

    def generate(self, purpose: str, user) -> str:
        """生成新密钥并覆盖旧密钥

        Returns:
            str: Base32 密钥，调用方负责展示给用户（二维码/手动输入），之后无法再取回明文
        """
        secret = encode_secret(generate_secret_bytes(self.secret_bytes))
        self._store.set(user.id, self.name, purpose, self._purpose_protector(purpose).protect(secret))
        logger.info(f"已生成 TOTP 密钥: user_id={user.id}, purpose={purpose}")
        return secret

    def provisioning_uri(self, secret: str, account: str) -> str:
        """构建 otpauth URI（用于生成二维码）"""
        label = f"{self.issuer}:{account}"
        params = {
            "secret": secret,
            "issuer": self.issuer,
            "digits": str(self.digits),
            "period": str(self.time_step),
        }
        param_str = "&".join(f"{k}={quote(v)}" for k, v in params.items())
        return f"otpauth://totp/{quote(label)}?{param_str}"

    def _load_secret(self, purpose: str, user) -> Optional[str]:
        """读取并解密密钥

        Raises:
            ProtectionError: 解密失败
        """
        stored = self._store.get(user.id, self.name, purpose)
        if stored is None:
            return None
        return self._purpose_protector(purpose).unprotect(stored)

    def validate(self, purpose: str, token: str, user) -> ValidationResult:
        """验证 TOTP 代码"""
        try:
            secret = self._load_secret(purpose, user)
        except ProtectionError:
            logger.error(f"TOTP 密钥解密失败: user_id={user.id}, purpose={purpose}")
            return ValidationResult.failed(FailureReason.DECRYPTION_FAILED)

        if secret is None:
            return ValidationResult.failed(FailureReason.NOT_CONFIGURED)

        code = "".join((token or "").split()).replace("-", "")
        if len(code) != self.digits or not all(c in string.digits for c in code):
            return ValidationResult.failed(FailureReason.INVALID_FORMAT)

        if verify_totp(
            secret=secret,
            code=code,
            timestamp=int(self.now().timestamp()),
            time_step=self.time_step,
            digits=self.digits,
            window=self.window,
        ):
            return ValidationResult.passed()

        return ValidationResult.failed(FailureReason.INVALID_CODE)

    def current_code(self, purpose: str, user) -> Optional[str]:
        """计算当前时间步的代码（用于测试与运维排查）"""
        secret = self._load_secret(purpose, user)
        if secret is None:
            return None
        return totp(secret, int(self.now().timestamp()), self.time_step, self.digits)
