"""MFA 管理器测试"""

import pytest

from yauth.auth import InMemoryTokenStore
from yauth.auth.mfa import (
    EMAIL_PURPOSE,
    RECOVERY_PURPOSE,
    TWO_FACTOR_PURPOSE,
    ConfirmReason,
    FailureReason,
    TwoFactorMethod,
)
from yauth.exceptions import NotSupportedException, PersistenceException, Err, ValidationException


@pytest.fixture
def mfa(services):
    return services.mfa


def enable_app(mfa, user):
    """为用户启用 Authenticator，返回当前代码"""
    mfa.begin_enable_app(user)
    code = mfa.totp.current_code(TWO_FACTOR_PURPOSE, user)
    assert mfa.enable_app(user, code).ok
    return code


class TestBinding:
    """方式映射测试"""

    @pytest.mark.parametrize("method, purpose", [
        (TwoFactorMethod.APP, TWO_FACTOR_PURPOSE),
        ("Email", EMAIL_PURPOSE),
        ("Recovery", RECOVERY_PURPOSE),
    ])
    def test_mapped_methods(self, mfa, method, purpose):
        assert mfa.binding(method).purpose == purpose

    def test_purposes_are_distinct(self, mfa):
        """测试三种方式使用不同的用途，互不覆盖"""
        purposes = {mfa.binding(method).purpose for method in TwoFactorMethod}
        assert len(purposes) == 3

    def test_unsupported_method(self, mfa, make_user):
        """测试不支持的方式抛出 NotSupportedException"""
        with pytest.raises(NotSupportedException):
            mfa.binding("Sms")
        with pytest.raises(NotSupportedException):
            mfa.verify_two_factor(make_user(), "Sms", "123456")


class TestEnableApp:
    """启用 Authenticator 测试"""

    def test_begin_returns_secret_and_uri(self, mfa, make_user):
        user = make_user()
        setup = mfa.begin_enable_app(user)
        assert setup.secret
        assert setup.uri.startswith("otpauth://totp/")
        assert "alice%40example.com" in setup.uri

    def test_begin_does_not_enable(self, mfa, make_user, users):
        """测试确认前不打开 mfa_enabled"""
        user = make_user()
        mfa.begin_enable_app(user)
        assert users.find_by_id(user.id).mfa_enabled is False

    def test_enable(self, mfa, make_user, users):
        user = make_user()
        enable_app(mfa, user)
        assert users.find_by_id(user.id).mfa_enabled is True
        assert mfa.available_methods(user) == [TwoFactorMethod.APP]

    def test_begin_refused_when_enabled(self, mfa, make_user):
        """测试已启用时拒绝重新生成密钥，原有代码继续有效"""
        user = make_user()
        enable_app(mfa, user)
        code = mfa.totp.current_code(TWO_FACTOR_PURPOSE, user)

        with pytest.raises(ValidationException):
            mfa.begin_enable_app(user)
        assert mfa.verify_two_factor(user, TwoFactorMethod.APP, code).ok

    def test_begin_again_after_disable(self, mfa, make_user):
        user = make_user()
        enable_app(mfa, user)
        mfa.disable_all(user)
        assert mfa.begin_enable_app(user).secret

    def test_enable_wrong_code(self, mfa, make_user, users):
        user = make_user()
        mfa.begin_enable_app(user)
        code = mfa.totp.current_code(TWO_FACTOR_PURPOSE, user)
        wrong = "000000" if code != "000000" else "111111"

        assert not mfa.enable_app(user, wrong).ok
        assert users.find_by_id(user.id).mfa_enabled is False


class TestEmail:
    """邮件验证码测试"""

    def test_enable_email(self, mfa, make_user, users, sent_emails):
        """测试发送验证码后确认启用邮件验证"""
        user = make_user()
        mfa.begin_enable_email(user)
        assert sent_emails[-1]["purpose"] == EMAIL_PURPOSE

        assert mfa.enable_email(user, sent_emails[-1]["code"]).ok
        stored = users.find_by_id(user.id)
        assert stored.email_mfa_enabled is True
        assert stored.mfa_enabled is True
        assert TwoFactorMethod.EMAIL in mfa.available_methods(stored)

    def test_begin_refused_when_email_enabled(self, mfa, make_user, sent_emails):
        """测试已启用邮件验证时不再发送启用验证码"""
        user = make_user()
        mfa.begin_enable_email(user)
        mfa.enable_email(user, sent_emails[-1]["code"])

        with pytest.raises(ValidationException):
            mfa.begin_enable_email(user)
        assert len(sent_emails) == 1

    def test_email_after_app(self, mfa, make_user, sent_emails):
        """测试已启用 Authenticator 时仍可追加邮件验证"""
        user = make_user()
        enable_app(mfa, user)
        mfa.begin_enable_email(user)
        assert mfa.enable_email(user, sent_emails[-1]["code"]).ok
        assert mfa.available_methods(user) == [TwoFactorMethod.APP, TwoFactorMethod.EMAIL]

    def test_send_without_email(self, mfa, make_user):
        user = make_user(username="bob", email=None)
        with pytest.raises(ValidationException):
            mfa.send_email_code(user)

    def test_verify_email(self, mfa, make_user, sent_emails):
        user = make_user()
        mfa.send_email_code(user)
        assert mfa.verify_two_factor(user, TwoFactorMethod.EMAIL, sent_emails[-1]["code"]).ok


class TestRecoveryCodes:
    """恢复码管理测试"""

    def test_generate_and_count(self, mfa, make_user):
        user = make_user()
        codes = mfa.generate_recovery_codes(user)
        assert len(codes) == 10
        assert mfa.count_recovery_codes(user) == 10

        assert mfa.verify_two_factor(user, TwoFactorMethod.RECOVERY, codes[0]).remaining == 9
        assert mfa.count_recovery_codes(user) == 9

    def test_remove(self, mfa, make_user):
        user = make_user()
        mfa.generate_recovery_codes(user)
        assert mfa.remove_recovery_codes(user) is True
        assert mfa.count_recovery_codes(user) == 0

    def test_available_methods_include_recovery(self, mfa, make_user):
        user = make_user()
        enable_app(mfa, user)
        mfa.generate_recovery_codes(user)
        assert mfa.available_methods(user) == [TwoFactorMethod.APP, TwoFactorMethod.RECOVERY]


class TestDisableAll:
    """关闭二次验证测试"""

    def test_clears_everything(self, mfa, make_user, users, store, sent_emails):
        """测试关闭后开关与全部令牌清除"""
        user = make_user()
        enable_app(mfa, user)
        mfa.begin_enable_email(user)
        mfa.enable_email(user, sent_emails[-1]["code"])
        mfa.send_email_code(user)
        mfa.generate_recovery_codes(user)
        token = mfa.remember.remember(user)

        mfa.disable_all(user)

        stored = users.find_by_id(user.id)
        assert stored.mfa_enabled is False
        assert stored.email_mfa_enabled is False
        assert len(store) == 0
        assert mfa.available_methods(stored) == []
        assert mfa.remember.is_remembered(stored, token) is False

    def test_idempotent(self, mfa, make_user):
        user = make_user()
        mfa.disable_all(user)
        mfa.disable_all(user)

    def test_step_failure_propagates(self, settings, users, hasher, clock, make_user):
        """测试某一步失败时异常向上抛出，后续步骤不执行"""
        from yauth.auth import build_auth_services

        class FailingStore(InMemoryTokenStore):
            def remove(self, user_id, provider, purpose):
                if provider == "Recovery Codes":
                    raise Err.persistence("令牌删除失败", operation="remove")
                return super().remove(user_id, provider, purpose)

        store = FailingStore()
        mfa = build_auth_services(settings, store, users, hasher=hasher, clock=clock).mfa
        user = make_user()
        enable_app(mfa, user)

        with pytest.raises(PersistenceException):
            mfa.disable_all(user)

        assert mfa.totp.has_token(user, TWO_FACTOR_PURPOSE)


class TestConfirm:
    """二次确认测试"""

    def test_create_recovery(self, mfa, make_user):
        """测试确认后生成恢复码"""
        user = make_user()
        code = enable_app(mfa, user)
        result = mfa.confirm(user, ConfirmReason.CREATE_RECOVERY, TwoFactorMethod.APP, code)
        assert result.ok
        assert len(result.recovery_codes) == 10

    def test_remove_recovery(self, mfa, make_user):
        user = make_user()
        code = enable_app(mfa, user)
        mfa.generate_recovery_codes(user)
        assert mfa.confirm(user, "remove2faRecovery", "App", code)
        assert mfa.count_recovery_codes(user) == 0

    def test_disable_with_recovery_code(self, mfa, make_user, users):
        """测试使用恢复码确认关闭二次验证"""
        user = make_user()
        enable_app(mfa, user)
        codes = mfa.generate_recovery_codes(user)

        assert mfa.confirm(user, "disable2fa", "Recovery", codes[0])
        assert users.find_by_id(user.id).mfa_enabled is False

    def test_wrong_code_does_nothing(self, mfa, make_user):
        user = make_user()
        enable_app(mfa, user)
        mfa.generate_recovery_codes(user)

        result = mfa.confirm(user, ConfirmReason.REMOVE_RECOVERY, TwoFactorMethod.RECOVERY, "BBBBB-BBBBB")
        assert not result
        assert result.reason == FailureReason.INVALID_CODE.value
        assert mfa.count_recovery_codes(user) == 10

    def test_unknown_reason(self, mfa, make_user):
        with pytest.raises(ValidationException):
            mfa.confirm(make_user(), "deleteAccount", "App", "123456")
