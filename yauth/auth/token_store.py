"""令牌存储

按 (user_id, provider, purpose) 存取不透明的字符串令牌。
各个令牌提供者（TOTP 密钥、邮件验证码、恢复码、记住设备标记）都存放在这里。

读-改-写必须通过 update() 完成，实现保证其原子性：
两个并发请求同时消费恢复码，或同时生成邮件验证码，不会丢失更新。

使用示例:
    from yauth.auth.token_store import InMemoryTokenStore

    store = InMemoryTokenStore()
    store.set(1, "TOTP App", "TwoFactor", "...")
    store.get(1, "TOTP App", "TwoFactor")

    # 原子更新：fn 接收当前值，返回新值，返回 None 表示删除
    store.update(1, "Recovery", "TwoFactor.Recovery", lambda current: "[]")

    # Redis 存储（多实例部署）
    import redis
    store = RedisTokenStore(redis.Redis(host="localhost", port=6379, db=0))
"""

import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional, Tuple

from redis.exceptions import RedisError, WatchError
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from yauth.exceptions import Err, PersistenceException
from yauth.log import get_logger
from .models import UserToken

logger = get_logger("yauth.auth.token_store")

UpdateFn = Callable[[Optional[str]], Optional[str]]


class TokenStore(ABC):
    """令牌存储抽象基类

    所有实现在底层存储失败时抛出 PersistenceException，不返回部分结果。
    """

    @abstractmethod
    def get(self, user_id: Any, provider: str, purpose: str) -> Optional[str]:
        """读取令牌，不存在时返回 None"""
        pass

    @abstractmethod
    def set(self, user_id: Any, provider: str, purpose: str, value: str) -> None:
        """写入令牌，覆盖已有记录"""
        pass

    @abstractmethod
    def remove(self, user_id: Any, provider: str, purpose: str) -> bool:
        """删除令牌（幂等）

        Returns:
            bool: 删除前是否存在
        """
        pass

    @abstractmethod
    def update(self, user_id: Any, provider: str, purpose: str, fn: UpdateFn) -> Optional[str]:
        """原子读-改-写

        Args:
            fn: 接收当前值（或 None），返回新值；返回 None 表示删除记录。
                实现可能在冲突时重试，fn 必须可以重复调用。

        Returns:
            写入后的值（删除时为 None）
        """
        pass


class InMemoryTokenStore(TokenStore):
    """内存令牌存储

    适用于单实例部署，重启后数据丢失。
    """

    def __init__(self):
        self._tokens: Dict[Tuple[str, str, str], str] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _key(user_id: Any, provider: str, purpose: str) -> Tuple[str, str, str]:
        return str(user_id), provider, purpose

    def get(self, user_id: Any, provider: str, purpose: str) -> Optional[str]:
        with self._lock:
            return self._tokens.get(self._key(user_id, provider, purpose))

    def set(self, user_id: Any, provider: str, purpose: str, value: str) -> None:
        with self._lock:
            self._tokens[self._key(user_id, provider, purpose)] = value

    def remove(self, user_id: Any, provider: str, purpose: str) -> bool:
        with self._lock:
            return self._tokens.pop(self._key(user_id, provider, purpose), None) is not None

    def update(self, user_id: Any, provider: str, purpose: str, fn: UpdateFn) -> Optional[str]:
        key = self._key(user_id, provider, purpose)
        with self._lock:
            new_value = fn(self._tokens.get(key))
            if new_value is None:
                self._tokens.pop(key, None)
            else:
                self._tokens[key] = new_value
            return new_value

    def __len__(self) -> int:
        return len(self._tokens)


class SQLTokenStore(TokenStore):
    """SQLAlchemy 令牌存储

    每个操作在一个事务中完成；update() 使用 SELECT ... FOR UPDATE 锁定记录。

    Args:
        session_factory: 返回新 Session 的可调用对象（如 sessionmaker 实例）
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    @staticmethod
    def _select(user_id: Any, provider: str, purpose: str):
        return select(UserToken).where(
            UserToken.user_id == str(user_id),
            UserToken.provider == provider,
            UserToken.purpose == purpose,
        )

    def _run(self, operation: str, fn: Callable[[Session], Any]) -> Any:
        try:
            with self._session_factory() as session:
                with session.begin():
                    return fn(session)
        except SQLAlchemyError as e:
            logger.error(f"令牌存储操作失败: operation={operation}, error={e}")
            raise Err.persistence("令牌读写失败", operation=operation) from e

    def get(self, user_id: Any, provider: str, purpose: str) -> Optional[str]:
        def _get(session: Session) -> Optional[str]:
            row = session.execute(self._select(user_id, provider, purpose)).scalar_one_or_none()
            return row.value if row else None

        return self._run("get", _get)

    def set(self, user_id: Any, provider: str, purpose: str, value: str) -> None:
        self.update(user_id, provider, purpose, lambda _current: value)

    def remove(self, user_id: Any, provider: str, purpose: str) -> bool:
        def _remove(session: Session) -> bool:
            result = session.execute(
                delete(UserToken).where(
                    UserToken.user_id == str(user_id),
                    UserToken.provider == provider,
                    UserToken.purpose == purpose,
                )
            )
            return result.rowcount > 0

        return self._run("remove", _remove)

    def update(self, user_id: Any, provider: str, purpose: str, fn: UpdateFn) -> Optional[str]:
        def _update(session: Session) -> Optional[str]:
            row = session.execute(
                self._select(user_id, provider, purpose).with_for_update()
            ).scalar_one_or_none()
            new_value = fn(row.value if row else None)
            if new_value is None:
                if row is not None:
                    session.delete(row)
            elif row is not None:
                row.value = new_value
            else:
                session.add(UserToken(
                    user_id=str(user_id), provider=provider, purpose=purpose, value=new_value
                ))
            return new_value

        try:
            return self._run("update", _update)
        except PersistenceException as e:
            # 并发插入同一条新记录时唯一约束冲突，重读后再执行一次
            if isinstance(e.__cause__, IntegrityError):
                logger.warning(f"令牌并发插入冲突，重试: user_id={user_id}, provider={provider}")
                return self._run("update", _update)
            raise


class RedisTokenStore(TokenStore):
    """Redis 令牌存储

    每个用户一个 hash，字段为 ``provider:purpose``。
    update() 使用 WATCH/MULTI/EXEC 乐观锁，冲突时有限次重试。

    Args:
        redis_client: Redis 客户端实例
        prefix: 键前缀
        max_retries: update 冲突重试次数
    """

    def __init__(self, redis_client, prefix: str = "yauth:tokens:", max_retries: int = 5):
        self._redis = redis_client
        self._prefix = prefix
        self._max_retries = max_retries

    def _user_key(self, user_id: Any) -> str:
        return f"{self._prefix}{user_id}"

    @staticmethod
    def _field(provider: str, purpose: str) -> str:
        return f"{provider}:{purpose}"

    @staticmethod
    def _decode(value) -> Optional[str]:
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    def get(self, user_id: Any, provider: str, purpose: str) -> Optional[str]:
        try:
            return self._decode(self._redis.hget(self._user_key(user_id), self._field(provider, purpose)))
        except RedisError as e:
            raise Err.persistence("令牌读取失败", operation="get") from e

    def set(self, user_id: Any, provider: str, purpose: str, value: str) -> None:
        try:
            self._redis.hset(self._user_key(user_id), self._field(provider, purpose), value)
        except RedisError as e:
            raise Err.persistence("令牌写入失败", operation="set") from e

    def remove(self, user_id: Any, provider: str, purpose: str) -> bool:
        try:
            return self._redis.hdel(self._user_key(user_id), self._field(provider, purpose)) > 0
        except RedisError as e:
            raise Err.persistence("令牌删除失败", operation="remove") from e

    def update(self, user_id: Any, provider: str, purpose: str, fn: UpdateFn) -> Optional[str]:
        key = self._user_key(user_id)
        field = self._field(provider, purpose)
        try:
            with self._redis.pipeline() as pipe:
                for _ in range(self._max_retries):
                    try:
                        pipe.watch(key)
                        new_value = fn(self._decode(pipe.hget(key, field)))
                        pipe.multi()
                        if new_value is None:
                            pipe.hdel(key, field)
                        else:
                            pipe.hset(key, field, new_value)
                        pipe.execute()
                        return new_value
                    except WatchError:
                        logger.debug(f"令牌更新冲突，重试: user_id={user_id}, field={field}")
                        continue
        except RedisError as e:
            raise Err.persistence("令牌更新失败", operation="update") from e

        raise Err.persistence("令牌更新冲突次数过多", operation="update", user_id=user_id)
