"""
Pytest 公共配置和 Fixtures

提供测试所需的公共资源：
- 可控时钟
- 配置与服务组装
- 内存 / SQLite 存储
- 用户工厂
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from yauth.auth import (
    Base,
    CodeHasher,
    InMemoryTokenStore,
    InMemoryUserRepository,
    PasswordHelper,
    User,
    build_auth_services,
)
from yauth.config import DataProtectionSettings, SessionSettings, YAuthSettings

# 对齐到 30 秒时间步的起点
START_TIME = datetime(2026, 1, 1, tzinfo=timezone.utc)

TEST_PASSWORD = "secret123"


class FrozenClock:
    """可手动推进的时钟"""

    def __init__(self, start: datetime = START_TIME):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current


# ==================== 基础 Fixtures ====================

@pytest.fixture
def clock():
    """从固定时间开始的时钟"""
    return FrozenClock()


@pytest.fixture
def settings():
    """测试配置"""
    return YAuthSettings(
        session=SessionSettings(secret_key="test-session-key"),
        protection=DataProtectionSettings(secret_key="test-protection-key"),
    )


@pytest.fixture
def hasher():
    """低迭代次数的哈希器，加快测试"""
    return CodeHasher(rounds=1000)


@pytest.fixture
def store():
    return InMemoryTokenStore()


@pytest.fixture
def users():
    return InMemoryUserRepository()


@pytest.fixture
def sent_emails():
    """记录发出的邮件验证码"""
    return []


@pytest.fixture
def email_sender(sent_emails):
    def _send(user, code, purpose):
        sent_emails.append({"user_id": user.id, "code": code, "purpose": purpose})
    return _send


@pytest.fixture
def services(settings, store, users, email_sender, hasher, clock):
    """组装好的认证服务"""
    return build_auth_services(
        settings, store, users, email_sender=email_sender, hasher=hasher, clock=clock
    )


@pytest.fixture
def make_user(users):
    """创建用户的工厂函数"""
    def _make(username: str = "alice", email: str = "alice@example.com", password: str = TEST_PASSWORD, **kwargs):
        return users.add(User(
            id=None,
            username=username,
            email=email,
            password_hash=PasswordHelper.hash(password),
            **kwargs
        ))
    return _make


# ==================== 数据库 Fixtures ====================

@pytest.fixture
def sql_session_factory():
    """内存 SQLite 会话工厂"""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine)
    Base.metadata.drop_all(engine)
    engine.dispose()
