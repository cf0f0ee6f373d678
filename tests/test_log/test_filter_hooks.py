"""日志过滤钩子测试

测试敏感数据过滤与 logging 过滤器
"""

import logging

from yauth.log import (
    DEFAULT_SENSITIVE_PATTERNS,
    FILTERED_PLACEHOLDER,
    SensitiveDataFilterHook,
    SensitiveDataLogFilter,
)


class TestSensitiveDataFilterHook:
    """SensitiveDataFilterHook 测试"""

    def test_default_patterns(self):
        assert DEFAULT_SENSITIVE_PATTERNS

    def test_sensitive_keys(self):
        """测试敏感字段识别"""
        hook = SensitiveDataFilterHook()
        for key in ["password", "session_token", "secret", "api_key", "code", "recovery_codes", "OTP"]:
            assert hook.is_sensitive(key), key

    def test_non_sensitive_keys(self):
        """测试普通字段不被误判"""
        hook = SensitiveDataFilterHook()
        for key in ["user_id", "username", "purpose", "error_code", "method"]:
            assert not hook.is_sensitive(key), key

    def test_filter_flat(self):
        hook = SensitiveDataFilterHook()
        result = hook.filter({"user_id": 1, "code": "B7KQ2-XM9TD"})
        assert result == {"user_id": 1, "code": FILTERED_PLACEHOLDER}

    def test_filter_nested(self):
        """测试嵌套字典与列表递归过滤"""
        hook = SensitiveDataFilterHook()
        result = hook.filter({
            "user": {"name": "alice", "password": "x"},
            "items": [{"secret": "y"}, "plain"],
        })
        assert result["user"] == {"name": "alice", "password": FILTERED_PLACEHOLDER}
        assert result["items"] == [{"secret": FILTERED_PLACEHOLDER}, "plain"]

    def test_does_not_modify_input(self):
        hook = SensitiveDataFilterHook()
        data = {"password": "x"}
        hook.filter(data)
        assert data == {"password": "x"}

    def test_custom_patterns(self):
        """测试自定义模式"""
        hook = SensitiveDataFilterHook(sensitive_patterns=[r"^phone$"])
        assert hook.filter({"phone": "1", "password": "x"}) == {
            "phone": FILTERED_PLACEHOLDER,
            "password": "x",
        }


class TestSensitiveDataLogFilter:
    """SensitiveDataLogFilter 测试"""

    def _record(self, msg, args):
        return logging.LogRecord("yauth.test", logging.INFO, __file__, 1, msg, args, None)

    def test_masks_dict_args(self):
        """测试字典参数脱敏"""
        record = self._record("数据: %(code)s", None)
        record.args = {"code": "B7KQ2-XM9TD", "user_id": 1}

        assert SensitiveDataLogFilter().filter(record) is True
        assert record.getMessage() == f"数据: {FILTERED_PLACEHOLDER}"

    def test_masks_dict_in_tuple_args(self):
        record = self._record("数据: %s %s", ("alice", {"password": "x"}))
        SensitiveDataLogFilter().filter(record)
        assert record.args[0] == "alice"
        assert record.args[1] == {"password": FILTERED_PLACEHOLDER}

    def test_plain_message_untouched(self):
        record = self._record("登录成功: user_id=%s", (1,))
        SensitiveDataLogFilter().filter(record)
        assert record.getMessage() == "登录成功: user_id=1"
