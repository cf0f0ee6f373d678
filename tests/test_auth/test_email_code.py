"""邮件验证码提供者测试"""

import json

import pytest

from yauth.auth import InMemoryTokenStore, User
from yauth.auth.mfa import EmailCodeTokenProvider, FailureReason
from yauth.utils import is_formatted_code

PURPOSE = "TwoFactor.Email"


@pytest.fixture
def store():
    return InMemoryTokenStore()


@pytest.fixture
def outbox():
    return []


@pytest.fixture
def provider(store, hasher, clock, outbox):
    return EmailCodeTokenProvider(
        store,
        hasher,
        ttl_seconds=900,
        email_sender=lambda user, code, purpose: outbox.append(code),
        clock=clock,
    )


@pytest.fixture
def user():
    return User(id=1, username="alice", email="alice@example.com")


class TestGenerate:
    """生成测试"""

    def test_sends_formatted_code(self, provider, user, outbox):
        """测试生成 XXXXX-XXXXX 格式验证码并发送"""
        code = provider.generate(PURPOSE, user)
        assert is_formatted_code(code)
        assert outbox == [code]

    def test_stores_hash_only(self, provider, store, user, clock):
        """测试只存储哈希与有效期"""
        code = provider.generate(PURPOSE, user)
        payload = json.loads(store.get(user.id, provider.name, PURPOSE))

        assert set(payload) == {"thsh", "iat", "exp"}
        assert code not in payload["thsh"]
        assert payload["iat"] == int(clock().timestamp())
        assert payload["exp"] == payload["iat"] + 900

    def test_can_generate_requires_email(self, provider):
        assert provider.can_generate(User(id=1, username="a", email="a@x.com")) is True
        assert provider.can_generate(User(id=1, username="a")) is False

    def test_sender_failure_propagates(self, store, hasher, user):
        """测试发送失败时异常向上传播"""
        def broken_sender(user, code, purpose):
            raise RuntimeError("smtp down")

        provider = EmailCodeTokenProvider(store, hasher, email_sender=broken_sender)
        with pytest.raises(RuntimeError):
            provider.generate(PURPOSE, user)

    def test_set_sender(self, store, hasher, user):
        sent = []
        provider = EmailCodeTokenProvider(store, hasher).set_sender(lambda u, c, p: sent.append(c))
        assert provider.generate(PURPOSE, user) == sent[0]


class TestValidate:
    """验证测试"""

    def test_correct_code(self, provider, store, user):
        """测试正确的验证码通过，且只能使用一次"""
        code = provider.generate(PURPOSE, user)
        assert provider.validate(PURPOSE, code, user).ok
        assert store.get(user.id, provider.name, PURPOSE) is None

        result = provider.validate(PURPOSE, code, user)
        assert result.reason == FailureReason.NOT_REQUESTED.value

    def test_normalized_input(self, provider, user):
        """测试小写、去掉连字符的输入同样有效"""
        code = provider.generate(PURPOSE, user)
        assert provider.validate(PURPOSE, code.lower().replace("-", ""), user).ok

    def test_wrong_code_keeps_record(self, provider, store, user):
        """测试错误的验证码不删除记录，有效期内可重试"""
        code = provider.generate(PURPOSE, user)
        wrong = "BBBBB-BBBBB" if code != "BBBBB-BBBBB" else "CCCCC-CCCCC"

        result = provider.validate(PURPOSE, wrong, user)
        assert result.reason == FailureReason.INVALID_CODE.value
        assert store.get(user.id, provider.name, PURPOSE) is not None
        assert provider.validate(PURPOSE, code, user).ok

    def test_regenerate_invalidates_previous(self, provider, user):
        """测试重新生成后之前的验证码失效"""
        first = provider.generate(PURPOSE, user)
        second = provider.generate(PURPOSE, user)
        if first != second:
            assert not provider.validate(PURPOSE, first, user).ok
        assert provider.validate(PURPOSE, second, user).ok

    def test_expired_code_removed(self, provider, store, user, clock):
        """测试过期后验证失败并删除记录"""
        code = provider.generate(PURPOSE, user)
        clock.advance(seconds=901)

        result = provider.validate(PURPOSE, code, user)
        assert result.reason == FailureReason.EXPIRED.value
        assert store.get(user.id, provider.name, PURPOSE) is None

    def test_valid_at_expiry_boundary(self, provider, user, clock):
        code = provider.generate(PURPOSE, user)
        clock.advance(seconds=900)
        assert provider.validate(PURPOSE, code, user).ok

    def test_issued_in_future(self, provider, user, clock):
        """测试签发时间晚于当前时间（时钟回拨）时拒绝"""
        code = provider.generate(PURPOSE, user)
        clock.advance(seconds=-10)
        assert provider.validate(PURPOSE, code, user).reason == FailureReason.EXPIRED.value

    def test_not_requested(self, provider, user):
        result = provider.validate(PURPOSE, "BBBBB-BBBBB", user)
        assert result.reason == FailureReason.NOT_REQUESTED.value

    def test_invalid_format(self, provider, user):
        provider.generate(PURPOSE, user)
        assert provider.validate(PURPOSE, "123456", user).reason == FailureReason.INVALID_FORMAT.value

    @pytest.mark.parametrize("stored", ["not json", "[]", '{"thsh": "x"}', '{"thsh": "x", "iat": "a", "exp": 1}'])
    def test_malformed_record_removed(self, provider, store, user, stored):
        """测试损坏的记录被删除"""
        store.set(user.id, provider.name, PURPOSE, stored)
        result = provider.validate(PURPOSE, "BBBBB-BBBBB", user)
        assert result.reason == FailureReason.MALFORMED_RECORD.value
        assert store.get(user.id, provider.name, PURPOSE) is None

    def test_bound_to_user(self, provider, store, user):
        """测试其他用户的验证码记录无法用于本用户"""
        other = User(id=2, username="bob", email="bob@example.com")
        code = provider.generate(PURPOSE, other)
        store.set(user.id, provider.name, PURPOSE, store.get(other.id, provider.name, PURPOSE))
        assert not provider.validate(PURPOSE, code, user).ok
