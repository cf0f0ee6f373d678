"""工具模块"""

from .codes import (
    CODE_ALPHABET,
    generate_random_code,
    generate_formatted_code,
    generate_secret_bytes,
    normalize_code,
    is_formatted_code,
)

__all__ = [
    "CODE_ALPHABET",
    "generate_random_code",
    "generate_formatted_code",
    "generate_secret_bytes",
    "normalize_code",
    "is_formatted_code",
]
