"""密码与验证码哈希模块

提供安全的密码哈希和验证功能，以及绑定用户的验证码哈希。

使用示例:
    from yauth.auth import PasswordHelper, CodeHasher

    hashed = PasswordHelper.hash("my_password")
    if PasswordHelper.verify("my_password", hashed):
        print("密码正确")

    hasher = CodeHasher()
    code_hash = hasher.hash(user_id=1, code="B7KQ2-XM9TD")
    hasher.verify(user_id=1, code="B7KQ2-XM9TD", hashed=code_hash)   # True
    hasher.verify(user_id=2, code="B7KQ2-XM9TD", hashed=code_hash)   # False
"""

from typing import Any, Optional

from passlib.context import CryptContext

# 密码哈希上下文
_pwd_context = CryptContext(
    schemes=["pbkdf2_sha256"],
    deprecated="auto"
)


class PasswordHelper:
    """密码工具类

    默认使用 pbkdf2_sha256 算法，自带随机盐值，线程安全。
    """

    @classmethod
    def hash(cls, password: str) -> str:
        """对密码进行哈希处理

        Returns:
            哈希后的密码字符串（格式：$pbkdf2-sha256$...）
        """
        return _pwd_context.hash(password)

    @classmethod
    def verify(cls, password: str, hash: Optional[str]) -> bool:
        """验证密码

        哈希为空或格式无法识别时返回 False。
        """
        if not password or not hash:
            return False
        try:
            return _pwd_context.verify(password, hash)
        except (ValueError, TypeError):
            return False

    @classmethod
    def needs_rehash(cls, hash: str) -> bool:
        """检查哈希是否需要升级"""
        return _pwd_context.needs_update(hash)


class CodeHasher:
    """绑定用户的验证码哈希器

    哈希输入为 ``"<user_id>:<code>"``，即使数据库快照泄露，
    某个用户的哈希也无法用于其他用户。

    Args:
        rounds: pbkdf2 迭代次数，为空时使用 passlib 默认值
    """

    def __init__(self, rounds: Optional[int] = None):
        options = {"schemes": ["pbkdf2_sha256"], "deprecated": "auto"}
        if rounds:
            options["pbkdf2_sha256__default_rounds"] = rounds
        self._context = CryptContext(**options)

    @staticmethod
    def _material(user_id: Any, code: str) -> str:
        return f"{user_id}:{code}"

    def hash(self, user_id: Any, code: str) -> str:
        """哈希验证码"""
        return self._context.hash(self._material(user_id, code))

    def verify(self, user_id: Any, code: str, hashed: str) -> bool:
        """验证验证码，哈希格式损坏时返回 False"""
        if not code or not hashed:
            return False
        try:
            return self._context.verify(self._material(user_id, code), hashed)
        except (ValueError, TypeError):
            return False
