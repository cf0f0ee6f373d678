"""令牌存储测试

覆盖内存、SQLAlchemy、Redis 三种实现
"""

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError, WatchError
from sqlalchemy.exc import OperationalError

from yauth.auth import InMemoryTokenStore, RedisTokenStore, SQLTokenStore
from yauth.exceptions import PersistenceException


class FakePipeline:
    """最小化的 Redis pipeline 替身（WATCH/MULTI/EXEC）"""

    def __init__(self, redis):
        self._redis = redis
        self._commands = []

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.reset()

    def watch(self, key):
        pass

    def hget(self, key, field):
        return self._redis.hget(key, field)

    def multi(self):
        self._commands = []

    def hset(self, key, field, value):
        self._commands.append(("hset", key, field, value))

    def hdel(self, key, field):
        self._commands.append(("hdel", key, field))

    def execute(self):
        if self._redis.conflicts > 0:
            self._redis.conflicts -= 1
            raise WatchError("watched key changed")
        for command in self._commands:
            getattr(self._redis, command[0])(*command[1:])
        self._redis.executed += 1

    def reset(self):
        self._commands = []


class FakeRedis:
    """最小化的 Redis 客户端替身，值以 bytes 返回"""

    def __init__(self, conflicts: int = 0):
        self.data = {}
        self.conflicts = conflicts
        self.executed = 0

    def hget(self, key, field):
        value = self.data.get(key, {}).get(field)
        return value.encode("utf-8") if value is not None else None

    def hset(self, key, field, value):
        self.data.setdefault(key, {})[field] = value
        return 1

    def hdel(self, key, field):
        return 1 if self.data.get(key, {}).pop(field, None) is not None else 0

    def pipeline(self):
        return FakePipeline(self)


class BrokenRedis:
    """所有操作都失败的 Redis 替身"""

    def _fail(self, *args, **kwargs):
        raise RedisConnectionError("connection refused")

    hget = hset = hdel = pipeline = _fail


@pytest.fixture(params=["memory", "sql", "redis"])
def token_store(request, sql_session_factory):
    if request.param == "memory":
        return InMemoryTokenStore()
    if request.param == "sql":
        return SQLTokenStore(sql_session_factory)
    return RedisTokenStore(FakeRedis())


class TestTokenStoreContract:
    """三种实现共同遵守的行为"""

    def test_get_missing(self, token_store):
        assert token_store.get(1, "TOTP App", "TwoFactor") is None

    def test_set_and_get(self, token_store):
        token_store.set(1, "TOTP App", "TwoFactor", "v1")
        assert token_store.get(1, "TOTP App", "TwoFactor") == "v1"

    def test_set_overwrites(self, token_store):
        """测试同一键至多一条记录，写入即覆盖"""
        token_store.set(1, "TOTP App", "TwoFactor", "v1")
        token_store.set(1, "TOTP App", "TwoFactor", "v2")
        assert token_store.get(1, "TOTP App", "TwoFactor") == "v2"

    def test_keys_are_isolated(self, token_store):
        """测试用户、提供者、用途三者共同构成键"""
        token_store.set(1, "TOTP App", "TwoFactor", "a")
        token_store.set(2, "TOTP App", "TwoFactor", "b")
        token_store.set(1, "Email Code", "TwoFactor", "c")
        token_store.set(1, "TOTP App", "Other", "d")

        assert token_store.get(1, "TOTP App", "TwoFactor") == "a"
        assert token_store.get(2, "TOTP App", "TwoFactor") == "b"
        assert token_store.get(1, "Email Code", "TwoFactor") == "c"
        assert token_store.get(1, "TOTP App", "Other") == "d"

    def test_remove_idempotent(self, token_store):
        """测试删除幂等"""
        token_store.set(1, "TOTP App", "TwoFactor", "v1")
        assert token_store.remove(1, "TOTP App", "TwoFactor") is True
        assert token_store.remove(1, "TOTP App", "TwoFactor") is False
        assert token_store.get(1, "TOTP App", "TwoFactor") is None

    def test_update_creates(self, token_store):
        seen = []

        def _fn(current):
            seen.append(current)
            return "created"

        assert token_store.update(1, "Recovery Codes", "p", _fn) == "created"
        assert seen == [None]
        assert token_store.get(1, "Recovery Codes", "p") == "created"

    def test_update_modifies(self, token_store):
        token_store.set(1, "Recovery Codes", "p", "1")
        token_store.update(1, "Recovery Codes", "p", lambda current: str(int(current) + 1))
        assert token_store.get(1, "Recovery Codes", "p") == "2"

    def test_update_none_deletes(self, token_store):
        """测试 fn 返回 None 时删除记录"""
        token_store.set(1, "Email Code", "p", "x")
        assert token_store.update(1, "Email Code", "p", lambda current: None) is None
        assert token_store.get(1, "Email Code", "p") is None

    def test_update_none_on_missing(self, token_store):
        assert token_store.update(1, "Email Code", "p", lambda current: None) is None
        assert token_store.get(1, "Email Code", "p") is None

    def test_user_id_type_independent(self, token_store):
        """测试整数与字符串形式的用户 ID 指向同一记录"""
        token_store.set(7, "TOTP App", "TwoFactor", "v")
        assert token_store.get("7", "TOTP App", "TwoFactor") == "v"


class TestInMemoryTokenStore:
    """InMemoryTokenStore 测试"""

    def test_len(self):
        store = InMemoryTokenStore()
        store.set(1, "a", "b", "v")
        assert len(store) == 1


class TestSQLTokenStore:
    """SQLTokenStore 测试"""

    def test_failure_wrapped(self):
        """测试数据库异常转为 PersistenceException"""
        def broken_factory():
            raise OperationalError("SELECT 1", {}, Exception("database is locked"))

        store = SQLTokenStore(broken_factory)
        with pytest.raises(PersistenceException) as exc_info:
            store.get(1, "TOTP App", "TwoFactor")
        assert exc_info.value.extra["operation"] == "get"


class TestRedisTokenStore:
    """RedisTokenStore 测试"""

    def test_hash_per_user(self):
        """测试每个用户一个 hash，字段为 provider:purpose"""
        redis = FakeRedis()
        store = RedisTokenStore(redis, prefix="t:")
        store.set(1, "TOTP App", "TwoFactor", "v")
        assert redis.data == {"t:1": {"TOTP App:TwoFactor": "v"}}

    def test_update_retries_on_conflict(self):
        """测试 WATCH 冲突后重试，fn 被重新调用"""
        redis = FakeRedis(conflicts=2)
        store = RedisTokenStore(redis)
        calls = []

        def _fn(current):
            calls.append(current)
            return "v"

        assert store.update(1, "Recovery Codes", "p", _fn) == "v"
        assert len(calls) == 3
        assert redis.executed == 1

    def test_update_gives_up(self):
        """测试冲突次数过多时抛出 PersistenceException"""
        store = RedisTokenStore(FakeRedis(conflicts=10), max_retries=3)
        with pytest.raises(PersistenceException):
            store.update(1, "Recovery Codes", "p", lambda current: "v")

    @pytest.mark.parametrize("operation", ["get", "set", "remove", "update"])
    def test_redis_error_wrapped(self, operation):
        """测试 Redis 异常转为 PersistenceException"""
        store = RedisTokenStore(BrokenRedis())
        calls = {
            "get": lambda: store.get(1, "a", "b"),
            "set": lambda: store.set(1, "a", "b", "v"),
            "remove": lambda: store.remove(1, "a", "b"),
            "update": lambda: store.update(1, "a", "b", lambda current: "v"),
        }
        with pytest.raises(PersistenceException):
            calls[operation]()
