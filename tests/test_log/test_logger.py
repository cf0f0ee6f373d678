"""日志工具测试"""

import logging

from yauth.config import LoggingSettings
from yauth.log import (
    MicrosecondFormatter,
    SensitiveDataLogFilter,
    create_formatter,
    get_logger,
    setup_logger,
    setup_logger_from_config,
)


class TestGetLogger:
    """get_logger 测试"""

    def test_infer_module_name(self):
        """测试无参数时使用调用方模块名"""
        assert get_logger().name == __name__

    def test_short_name_prefixed(self):
        assert get_logger("mfa").name == "yauth.mfa"

    def test_dotted_name_untouched(self):
        assert get_logger("sqlalchemy.engine").name == "sqlalchemy.engine"

    def test_yauth_name_untouched(self):
        assert get_logger("yauth").name == "yauth"
        assert get_logger("yauth.auth").name == "yauth.auth"


class TestSetupLogger:
    """setup_logger 测试"""

    def test_console_handler_with_filter(self):
        """测试控制台处理器挂载敏感数据过滤器"""
        logger = setup_logger("yauth.test.console", level="DEBUG")
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1
        assert any(isinstance(f, SensitiveDataLogFilter) for f in logger.handlers[0].filters)

    def test_without_mask(self):
        logger = setup_logger("yauth.test.nomask", mask_sensitive=False)
        assert logger.handlers[0].filters == []

    def test_file_handler(self, tmp_path):
        """测试写入日志文件（自动创建目录）"""
        log_file = tmp_path / "logs" / "auth.log"
        logger = setup_logger("yauth.test.file", log_file=str(log_file), console=False)
        logger.info("hello")
        for handler in logger.handlers:
            handler.flush()
            handler.close()

        assert "hello" in log_file.read_text(encoding="utf-8")

    def test_repeated_setup_does_not_duplicate_handlers(self):
        setup_logger("yauth.test.repeat")
        logger = setup_logger("yauth.test.repeat")
        assert len(logger.handlers) == 1

    def test_from_config(self):
        logger = setup_logger_from_config(LoggingSettings(level="WARNING"), name="yauth.test.config")
        assert logger.level == logging.WARNING


class TestFormatter:
    """格式化器测试"""

    def test_microseconds(self):
        assert isinstance(create_formatter(), MicrosecondFormatter)
        assert not isinstance(create_formatter(use_microseconds=False), MicrosecondFormatter)

    def test_format_time(self):
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "m", None, None)
        formatted = MicrosecondFormatter().formatTime(record)
        assert len(formatted.split(".")[-1]) == 6
