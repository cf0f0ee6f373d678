"""认证相关 Mixins - 用户安全

提供用户模型的安全扩展字段：
- LockableMixin: 失败计数与锁定
- TwoFactorMixin: 二次验证开关
- LastLoginMixin: 最后登录信息

使用示例:
    from yauth.auth.mixins import LockableMixin, TwoFactorMixin, LastLoginMixin
    from yauth.auth.models import Base

    class Account(LockableMixin, TwoFactorMixin, LastLoginMixin, Base):
        __tablename__ = "account"
        id: Mapped[int] = mapped_column(Integer, primary_key=True)
"""

from datetime import datetime, timezone, timedelta
from typing import Optional, Tuple

from sqlalchemy import Boolean, DateTime, Integer
from sqlalchemy.orm import Mapped, mapped_column


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """补齐时区信息（SQLite 读回的时间不带时区）"""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def compute_access_failure(
    failed_count: int,
    max_attempts: int,
    lock_duration_minutes: int,
    now: datetime,
) -> Tuple[int, Optional[datetime]]:
    """计算一次失败后的计数与锁定时间

    达到阈值时锁定到 now + lock_duration_minutes，并把计数清零，
    锁定过期后用户重新拥有完整的尝试次数。

    Returns:
        (新的失败计数, 锁定到期时间或 None)
    """
    failed_count = (failed_count or 0) + 1
    if failed_count >= max_attempts:
        return 0, now + timedelta(minutes=lock_duration_minutes)
    return failed_count, None


class LockableMixin:
    """可锁定用户 Mixin

    lockout_end 晚于当前时间即视为锁定，过期后自动解除，无需后台任务。
    """

    lockout_enabled: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
        comment="是否参与失败锁定"
    )
    access_failed_count: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
        comment="连续失败次数"
    )
    lockout_end: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="锁定到期时间"
    )

    def is_locked_out(self, now: Optional[datetime] = None) -> bool:
        """检查当前是否处于锁定期"""
        end = as_utc(self.lockout_end)
        if not self.lockout_enabled or end is None:
            return False
        return end > (now or datetime.now(timezone.utc))

    def record_failed_access(
        self,
        max_attempts: int,
        lock_duration_minutes: int,
        now: Optional[datetime] = None,
    ) -> Optional[datetime]:
        """记录一次失败

        Returns:
            触发锁定时返回锁定到期时间
        """
        count, end = compute_access_failure(
            self.access_failed_count,
            max_attempts,
            lock_duration_minutes,
            now or datetime.now(timezone.utc),
        )
        self.access_failed_count = count
        if end is not None:
            self.lockout_end = end
        return end

    def reset_access_failed(self) -> None:
        self.access_failed_count = 0


class TwoFactorMixin:
    """二次验证 Mixin"""

    mfa_enabled: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        comment="是否启用二次验证"
    )
    email_mfa_enabled: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        comment="是否启用邮件验证码"
    )


class LastLoginMixin:
    """最后登录信息 Mixin"""

    last_login_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="最后登录时间"
    )

    def update_last_login(self, now: Optional[datetime] = None) -> None:
        self.last_login_at = now or datetime.now(timezone.utc)
