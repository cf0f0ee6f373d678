"""验证码生成工具

生成便于人工输入的随机码与 TOTP 密钥。字母表排除了 0/O、1/I/L 等易混淆字符，
也排除了元音，避免随机码拼出单词。

使用示例:
    from yauth.utils import generate_formatted_code, generate_secret_bytes

    code = generate_formatted_code()      # 'B7KQ2-XM9TD'
    secret = generate_secret_bytes(20)    # 20 字节随机密钥
"""

import secrets

# 无歧义字母表
CODE_ALPHABET = "23456789BCDFGHJKMNPQRTVWXY"

# 格式化码的分组长度
CODE_GROUP_LENGTH = 5


def generate_random_code(length: int) -> str:
    """生成随机码

    Args:
        length: 字符数

    Returns:
        str: 由 CODE_ALPHABET 中字符组成的随机串
    """
    if length <= 0:
        raise ValueError("length 必须大于 0")
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def generate_formatted_code() -> str:
    """生成 XXXXX-XXXXX 格式的随机码

    邮件验证码与恢复码都使用这一格式，保证输入体验一致。
    """
    raw = generate_random_code(CODE_GROUP_LENGTH * 2)
    return f"{raw[:CODE_GROUP_LENGTH]}-{raw[CODE_GROUP_LENGTH:]}"


def generate_secret_bytes(byte_length: int = 20) -> bytes:
    """生成加密安全的随机字节（TOTP 密钥）"""
    if byte_length <= 0:
        raise ValueError("byte_length 必须大于 0")
    return secrets.token_bytes(byte_length)


def normalize_code(code: str) -> str:
    """规范化用户输入的验证码

    转为大写并去掉空白；10 位且不含连字符的输入补回连字符，
    所以 'b7kq2xm9td'、'B7KQ2 XM9TD'、'B7KQ2-XM9TD' 等价。
    """
    if not code:
        return ""
    cleaned = "".join(code.split()).upper()
    if "-" not in cleaned and len(cleaned) == CODE_GROUP_LENGTH * 2:
        cleaned = f"{cleaned[:CODE_GROUP_LENGTH]}-{cleaned[CODE_GROUP_LENGTH:]}"
    return cleaned


def is_formatted_code(code: str) -> bool:
    """检查是否为合法的 XXXXX-XXXXX 格式码"""
    if len(code) != CODE_GROUP_LENGTH * 2 + 1 or code[CODE_GROUP_LENGTH] != "-":
        return False
    return all(ch in CODE_ALPHABET for ch in code.replace("-", ""))
