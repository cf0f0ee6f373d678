"""ORM 模型

- UserToken: 按 (user_id, provider, purpose) 唯一的令牌记录
- UserAccount: 用户账户

使用示例:
    from sqlalchemy import create_engine
    from yauth.auth.models import Base

    engine = create_engine("sqlite:///auth.db")
    Base.metadata.create_all(engine)
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from .mixins import LockableMixin, TwoFactorMixin, LastLoginMixin


class Base(DeclarativeBase):
    pass


class UserToken(Base):
    """令牌记录

    同一 (user_id, provider, purpose) 至多一条记录，写入即覆盖。
    """
    __tablename__ = "user_token"
    __table_args__ = (
        UniqueConstraint("user_id", "provider", "purpose", name="uq_user_token"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True, comment="用户 ID")
    provider: Mapped[str] = mapped_column(String(128), nullable=False, comment="提供者名称")
    purpose: Mapped[str] = mapped_column(String(128), nullable=False, comment="用途")
    value: Mapped[str] = mapped_column(Text, nullable=False, comment="不透明的令牌内容")
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )


class UserAccount(LockableMixin, TwoFactorMixin, LastLoginMixin, Base):
    """用户账户"""
    __tablename__ = "user_account"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, comment="用户名")
    normalized_username: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, comment="邮箱")
    normalized_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    password_hash: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, comment="密码哈希")
