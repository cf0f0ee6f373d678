"""
配置模块
提供认证引擎的默认配置，业务项目可以继承并覆盖
"""

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings


class TOTPSettings(BaseSettings):
    """TOTP 配置

    使用示例:
        from yauth.config import TOTPSettings

        totp_config = TOTPSettings(issuer="MyApp", digits=6, time_step=30)
    """
    issuer: str = Field(default="YAuth", description="发行者名称（显示在 Authenticator 中）")
    digits: int = Field(default=6, ge=6, le=8, description="验证码位数")
    time_step: int = Field(default=30, gt=0, le=300, description="时间步长（秒）")
    window: int = Field(default=1, ge=0, le=10, description="允许的时间漂移（前后时间步数）")
    secret_bytes: int = Field(default=20, ge=16, le=64, description="密钥字节长度")

    class Config:
        env_prefix = "YAUTH_TOTP_"


class EmailCodeSettings(BaseSettings):
    """邮件验证码配置"""
    ttl_seconds: int = Field(default=900, gt=0, description="验证码有效期（秒）")

    class Config:
        env_prefix = "YAUTH_EMAIL_"


class RecoverySettings(BaseSettings):
    """恢复码配置"""
    code_count: int = Field(default=10, ge=1, le=100, description="每批生成的恢复码数量")

    class Config:
        env_prefix = "YAUTH_RECOVERY_"


class LockoutSettings(BaseSettings):
    """账户锁定配置

    密码错误与二次验证码错误共用同一个失败计数。
    """
    enabled: bool = Field(default=True, description="是否启用失败锁定")
    max_failed_attempts: int = Field(default=5, ge=1, description="最大连续失败次数")
    lockout_minutes: int = Field(default=5, ge=1, description="锁定时长（分钟）")

    class Config:
        env_prefix = "YAUTH_LOCKOUT_"


class SessionSettings(BaseSettings):
    """会话配置

    配置说明:
        - default_seconds: 普通登录会话有效期
        - persistent_days: 勾选"记住我"时的会话有效期
        - api_seconds: API 客户端会话有效期
        - challenge_seconds: 密码通过后等待二次验证的有效期
        - remember_client_days: "记住此设备"标记的有效期
    """
    secret_key: str = Field(default="change-me-in-production", min_length=1, description="会话令牌签名密钥")
    algorithm: str = Field(default="HS256", description="签名算法")
    default_seconds: int = Field(default=3600, gt=0, description="默认会话有效期（秒）")
    persistent_days: int = Field(default=14, gt=0, description="持久会话有效期（天）")
    api_seconds: int = Field(default=86400, gt=0, description="API 会话有效期（秒）")
    challenge_seconds: int = Field(default=300, gt=0, description="二次验证挑战有效期（秒）")
    remember_client_days: int = Field(default=30, gt=0, description="记住设备有效期（天）")

    @computed_field
    @property
    def persistent_seconds(self) -> int:
        """持久会话有效期（秒）"""
        return self.persistent_days * 86400

    class Config:
        env_prefix = "YAUTH_SESSION_"


class DataProtectionSettings(BaseSettings):
    """密钥保护配置

    TOTP 密钥落库前使用由此密钥派生的 Fernet 密钥加密。
    """
    secret_key: str = Field(default="change-me-in-production", min_length=1, description="数据保护主密钥")

    class Config:
        env_prefix = "YAUTH_PROTECTION_"


class LoggingSettings(BaseSettings):
    """日志配置"""
    level: str = Field(default="INFO", description="日志级别")
    file_path: str = Field(default="", description="日志文件路径，为空表示不写文件")
    enable_console: bool = Field(default=True, description="是否启用控制台输出")
    mask_sensitive: bool = Field(default=True, description="是否过滤敏感字段")

    class Config:
        env_prefix = "YAUTH_LOG_"


class YAuthSettings(BaseSettings):
    """认证引擎总配置

    使用示例:
        from yauth.config import YAuthSettings

        settings = YAuthSettings(
            totp=TOTPSettings(issuer="MyApp"),
            lockout=LockoutSettings(max_failed_attempts=3),
        )
    """
    totp: TOTPSettings = Field(default_factory=TOTPSettings)
    email: EmailCodeSettings = Field(default_factory=EmailCodeSettings)
    recovery: RecoverySettings = Field(default_factory=RecoverySettings)
    lockout: LockoutSettings = Field(default_factory=LockoutSettings)
    session: SessionSettings = Field(default_factory=SessionSettings)
    protection: DataProtectionSettings = Field(default_factory=DataProtectionSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    class Config:
        env_prefix = "YAUTH_"
