"""用户仓储

认证引擎通过 UserRepository 访问用户，不关心底层存储。失败计数的递增是原子操作，
并发登录尝试不会丢失计数。

使用示例:
    from yauth.auth.users import User, InMemoryUserRepository

    repo = InMemoryUserRepository()
    user = repo.add(User(id=None, username="alice", email="alice@example.com",
                         password_hash=PasswordHelper.hash("secret123")))

    repo.find_by_name("ALICE@example.com")   # 用户名或邮箱，大小写不敏感
"""

import copy
import itertools
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from yauth.exceptions import Err
from yauth.log import get_logger
from .mixins import as_utc, compute_access_failure
from .models import UserAccount

logger = get_logger("yauth.auth.users")


def normalize_name(value: Optional[str]) -> Optional[str]:
    return value.strip().upper() if value else None


@dataclass
class User:
    """用户

    Attributes:
        id: 用户 ID
        username: 用户名
        email: 邮箱
        password_hash: 密码哈希
        mfa_enabled: 是否启用二次验证
        email_mfa_enabled: 是否启用邮件验证码
        lockout_enabled: 是否参与失败锁定
        access_failed_count: 连续失败次数
        lockout_end: 锁定到期时间
        last_login_at: 最后登录时间
    """
    id: Any
    username: str
    email: Optional[str] = None
    password_hash: Optional[str] = None
    mfa_enabled: bool = False
    email_mfa_enabled: bool = False
    lockout_enabled: bool = True
    access_failed_count: int = 0
    lockout_end: Optional[datetime] = None
    last_login_at: Optional[datetime] = None

    def is_locked_out(self, now: Optional[datetime] = None) -> bool:
        end = as_utc(self.lockout_end)
        if not self.lockout_enabled or end is None:
            return False
        return end > (now or datetime.now(timezone.utc))


@dataclass
class AccessFailureResult:
    """一次失败记录后的状态"""
    failed_count: int
    lockout_end: Optional[datetime] = None

    @property
    def locked_out(self) -> bool:
        return self.lockout_end is not None


class UserRepository(ABC):
    """用户仓储抽象基类

    所有实现在底层存储失败时抛出 PersistenceException。
    """

    @abstractmethod
    def add(self, user: User) -> User:
        """新增用户（注册流程不在本引擎内，主要用于初始化与测试）"""
        pass

    @abstractmethod
    def find_by_id(self, user_id: Any) -> Optional[User]:
        pass

    @abstractmethod
    def find_by_name(self, identifier: str) -> Optional[User]:
        """按用户名或邮箱查找（大小写不敏感）"""
        pass

    @abstractmethod
    def update(self, user: User) -> None:
        """保存资料与二次验证开关（不覆盖失败计数与锁定字段）"""
        pass

    @abstractmethod
    def record_access_failure(
        self,
        user_id: Any,
        max_attempts: int,
        lock_duration_minutes: int,
        now: datetime,
    ) -> AccessFailureResult:
        """原子地递增失败计数，达到阈值时锁定"""
        pass

    @abstractmethod
    def reset_access_failures(self, user_id: Any) -> None:
        pass

    @abstractmethod
    def set_last_login(self, user_id: Any, when: datetime) -> None:
        pass


class InMemoryUserRepository(UserRepository):
    """内存用户仓储

    适用于单实例部署与测试。读出的是副本，修改后需调用 update 保存。
    """

    def __init__(self):
        self._users: Dict[Any, User] = {}
        self._lock = threading.Lock()
        self._ids = itertools.count(1)

    def add(self, user: User) -> User:
        with self._lock:
            if user.id is None:
                user.id = next(self._ids)
            self._users[user.id] = copy.copy(user)
            return copy.copy(user)

    def find_by_id(self, user_id: Any) -> Optional[User]:
        with self._lock:
            user = self._users.get(user_id)
            return copy.copy(user) if user else None

    def find_by_name(self, identifier: str) -> Optional[User]:
        key = normalize_name(identifier)
        if not key:
            return None
        with self._lock:
            for user in self._users.values():
                if normalize_name(user.username) == key or normalize_name(user.email) == key:
                    return copy.copy(user)
        return None

    def _get_stored(self, user_id: Any) -> User:
        stored = self._users.get(user_id)
        if stored is None:
            raise Err.not_found("用户不存在", resource_type="User", resource_id=user_id)
        return stored

    def update(self, user: User) -> None:
        with self._lock:
            stored = self._get_stored(user.id)
            stored.username = user.username
            stored.email = user.email
            stored.password_hash = user.password_hash
            stored.mfa_enabled = user.mfa_enabled
            stored.email_mfa_enabled = user.email_mfa_enabled
            stored.lockout_enabled = user.lockout_enabled

    def record_access_failure(
        self,
        user_id: Any,
        max_attempts: int,
        lock_duration_minutes: int,
        now: datetime,
    ) -> AccessFailureResult:
        with self._lock:
            stored = self._get_stored(user_id)
            count, end = compute_access_failure(
                stored.access_failed_count, max_attempts, lock_duration_minutes, now
            )
            stored.access_failed_count = count
            if end is not None:
                stored.lockout_end = end
            return AccessFailureResult(failed_count=count, lockout_end=end)

    def reset_access_failures(self, user_id: Any) -> None:
        with self._lock:
            self._get_stored(user_id).access_failed_count = 0

    def set_last_login(self, user_id: Any, when: datetime) -> None:
        with self._lock:
            self._get_stored(user_id).last_login_at = when


class SQLUserRepository(UserRepository):
    """SQLAlchemy 用户仓储

    Args:
        session_factory: 返回新 Session 的可调用对象（如 sessionmaker 实例）

    使用示例:
        from sqlalchemy import create_engine
        from sqlalchemy.orm import sessionmaker

        engine = create_engine("postgresql://...")
        repo = SQLUserRepository(sessionmaker(bind=engine))
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    @staticmethod
    def _to_user(row: UserAccount) -> User:
        return User(
            id=row.id,
            username=row.username,
            email=row.email,
            password_hash=row.password_hash,
            mfa_enabled=bool(row.mfa_enabled),
            email_mfa_enabled=bool(row.email_mfa_enabled),
            lockout_enabled=bool(row.lockout_enabled),
            access_failed_count=row.access_failed_count or 0,
            lockout_end=as_utc(row.lockout_end),
            last_login_at=as_utc(row.last_login_at),
        )

    def _locked_row(self, session: Session, user_id: Any) -> UserAccount:
        row = session.execute(
            select(UserAccount).where(UserAccount.id == user_id).with_for_update()
        ).scalar_one_or_none()
        if row is None:
            raise Err.not_found("用户不存在", resource_type="User", resource_id=user_id)
        return row

    def _run(self, operation: str, fn: Callable[[Session], Any]) -> Any:
        try:
            with self._session_factory() as session:
                with session.begin():
                    return fn(session)
        except SQLAlchemyError as e:
            logger.error(f"用户仓储操作失败: operation={operation}, error={e}")
            raise Err.persistence("用户数据读写失败", operation=operation) from e

    def add(self, user: User) -> User:
        def _add(session: Session) -> User:
            row = UserAccount(
                username=user.username,
                normalized_username=normalize_name(user.username),
                email=user.email,
                normalized_email=normalize_name(user.email),
                password_hash=user.password_hash,
                mfa_enabled=user.mfa_enabled,
                email_mfa_enabled=user.email_mfa_enabled,
                lockout_enabled=user.lockout_enabled,
                access_failed_count=user.access_failed_count,
                lockout_end=user.lockout_end,
                last_login_at=user.last_login_at,
            )
            if user.id is not None:
                row.id = user.id
            session.add(row)
            session.flush()
            return self._to_user(row)

        return self._run("add", _add)

    def find_by_id(self, user_id: Any) -> Optional[User]:
        def _find(session: Session) -> Optional[User]:
            row = session.get(UserAccount, user_id)
            return self._to_user(row) if row else None

        return self._run("find_by_id", _find)

    def find_by_name(self, identifier: str) -> Optional[User]:
        key = normalize_name(identifier)
        if not key:
            return None

        def _find(session: Session) -> Optional[User]:
            row = session.execute(
                select(UserAccount).where(
                    or_(UserAccount.normalized_username == key, UserAccount.normalized_email == key)
                )
            ).scalars().first()
            return self._to_user(row) if row else None

        return self._run("find_by_name", _find)

    def update(self, user: User) -> None:
        def _update(session: Session) -> None:
            row = self._locked_row(session, user.id)
            row.username = user.username
            row.normalized_username = normalize_name(user.username)
            row.email = user.email
            row.normalized_email = normalize_name(user.email)
            row.password_hash = user.password_hash
            row.mfa_enabled = user.mfa_enabled
            row.email_mfa_enabled = user.email_mfa_enabled
            row.lockout_enabled = user.lockout_enabled

        self._run("update", _update)

    def record_access_failure(
        self,
        user_id: Any,
        max_attempts: int,
        lock_duration_minutes: int,
        now: datetime,
    ) -> AccessFailureResult:
        def _record(session: Session) -> AccessFailureResult:
            row = self._locked_row(session, user_id)
            end = row.record_failed_access(max_attempts, lock_duration_minutes, now)
            return AccessFailureResult(failed_count=row.access_failed_count, lockout_end=end)

        return self._run("record_access_failure", _record)

    def reset_access_failures(self, user_id: Any) -> None:
        self._run("reset_access_failures", lambda s: self._locked_row(s, user_id).reset_access_failed())

    def set_last_login(self, user_id: Any, when: datetime) -> None:
        self._run("set_last_login", lambda s: self._locked_row(s, user_id).update_last_login(when))
