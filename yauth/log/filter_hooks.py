"""日志过滤钩子模块

提供日志数据的过滤功能，防止密钥、验证码、密码等敏感信息落盘。

使用示例:
    from yauth.log import SensitiveDataFilterHook, SensitiveDataLogFilter

    hook = SensitiveDataFilterHook()
    safe = hook.filter({"user_id": 1, "code": "ABCDE-FGHJK"})
    # {"user_id": 1, "code": "*SENSITIVE DATA FILTERED*"}

    # 挂到 logging.Handler 上，对 logger.info("...", {...}) 形式的参数生效
    handler.addFilter(SensitiveDataLogFilter())
"""

import logging
import re
from typing import Any, Dict, List

# 默认敏感字段名模式
DEFAULT_SENSITIVE_PATTERNS = [
    r'.*(password|pwd|passwd).*',
    r'.*(token|access_token|refresh_token).*',
    r'.*(secret|key|apikey|api_key).*',
    r'.*(credential|credentials).*',
    r'^(code|codes|otp|recovery_codes)$',
]

FILTERED_PLACEHOLDER = "*SENSITIVE DATA FILTERED*"


class SensitiveDataFilterHook:
    """敏感数据过滤器

    根据字段名模式过滤字典中的敏感数据，支持嵌套字典和列表的递归过滤。

    Args:
        sensitive_patterns: 敏感字段名模式列表（正则表达式）
    """

    def __init__(self, sensitive_patterns: List[str] = None):
        self.sensitive_patterns = (
            sensitive_patterns if sensitive_patterns is not None else DEFAULT_SENSITIVE_PATTERNS
        )
        self.compiled_patterns = [
            re.compile(pattern, re.IGNORECASE)
            for pattern in self.sensitive_patterns
        ]

    def is_sensitive(self, key: str) -> bool:
        """判断字段名是否敏感"""
        return any(pattern.search(key) for pattern in self.compiled_patterns)

    def filter(self, log_data: Dict[str, Any]) -> Dict[str, Any]:
        """过滤敏感数据，只将敏感字段的值替换为占位符"""
        filtered_data = {}
        for key, value in log_data.items():
            if isinstance(key, str) and self.is_sensitive(key):
                filtered_data[key] = FILTERED_PLACEHOLDER
            elif isinstance(value, dict):
                filtered_data[key] = self.filter(value)
            elif isinstance(value, list):
                filtered_data[key] = self._filter_list(value)
            else:
                filtered_data[key] = value
        return filtered_data

    def _filter_list(self, data: List[Any]) -> List[Any]:
        filtered_data = []
        for item in data:
            if isinstance(item, dict):
                filtered_data.append(self.filter(item))
            elif isinstance(item, list):
                filtered_data.append(self._filter_list(item))
            else:
                filtered_data.append(item)
        return filtered_data


class SensitiveDataLogFilter(logging.Filter):
    """logging 过滤器

    当日志参数是字典时（``logger.info("登录: %s", {...})``），对其敏感字段脱敏。
    """

    def __init__(self, hook: SensitiveDataFilterHook = None):
        super().__init__()
        self.hook = hook or SensitiveDataFilterHook()

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.args, dict):
            record.args = self.hook.filter(record.args)
        elif isinstance(record.args, tuple) and record.args:
            record.args = tuple(
                self.hook.filter(arg) if isinstance(arg, dict) else arg
                for arg in record.args
            )
        return True
