"""密钥保护模块

TOTP 密钥落库前按用途加密：同一主密钥针对不同 purpose 派生出不同的 Fernet 密钥，
某一用途的密文无法被另一用途解开。

使用示例:
    from yauth.auth import SecretProtector

    protector = SecretProtector("master-key").for_purpose("yauth.totp.TwoFactor")
    stored = protector.protect("JBSWY3DPEHPK3PXP")
    secret = protector.unprotect(stored)
"""

import base64
import hashlib

from cryptography.fernet import Fernet, InvalidToken


class ProtectionError(Exception):
    """解密失败（密钥不匹配或密文被篡改）"""
    pass


class PurposeProtector:
    """绑定单一用途的加解密器"""

    def __init__(self, secret_key: str, purpose: str):
        self.purpose = purpose
        digest = hashlib.sha256(f"{secret_key}:{purpose}".encode("utf-8")).digest()
        self._fernet = Fernet(base64.urlsafe_b64encode(digest))

    def protect(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("utf-8")

    def unprotect(self, protected: str) -> str:
        """解密

        Raises:
            ProtectionError: 密文无效
        """
        try:
            return self._fernet.decrypt(protected.encode("utf-8")).decode("utf-8")
        except (InvalidToken, ValueError, TypeError) as e:
            raise ProtectionError(f"无法解密 purpose={self.purpose} 的数据") from e


class SecretProtector:
    """主密钥持有者，按用途派生 PurposeProtector

    Args:
        secret_key: 数据保护主密钥（DataProtectionSettings.secret_key）
    """

    def __init__(self, secret_key: str):
        if not secret_key:
            raise ValueError("secret_key 不能为空")
        self._secret_key = secret_key

    def for_purpose(self, purpose: str) -> PurposeProtector:
        return PurposeProtector(self._secret_key, purpose)
