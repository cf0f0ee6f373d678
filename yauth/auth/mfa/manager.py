"""MFA 管理器

把二次验证方式（App / Email / Recovery）映射到对应的提供者与用途，
对外提供统一的验证、启用、禁用与二次确认操作。

映射表在构造时建立，运行期不做按名称的动态查找；未映射的方式抛出 NotSupportedException。

使用示例:
    from yauth.auth.mfa import MFAManager, TwoFactorMethod

    mfa = MFAManager.from_settings(settings, store, users, email_sender=send_mail)

    # 启用 Authenticator
    setup = mfa.begin_enable_app(user)        # setup.secret / setup.uri
    mfa.enable_app(user, "123456")

    # 登录时验证
    result = mfa.verify_two_factor(user, TwoFactorMethod.APP, "123456")

    # 关闭前先做二次确认
    mfa.confirm(user, ConfirmReason.DISABLE_2FA, TwoFactorMethod.RECOVERY, "B7KQ2-XM9TD")
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Union

from yauth.exceptions import Err
from yauth.log import get_logger
from ..password import CodeHasher
from ..protector import SecretProtector
from ..token_store import TokenStore
from ..users import User, UserRepository
from .base import (
    Clock,
    TWO_FACTOR_PURPOSE,
    TokenProvider,
    TwoFactorMethod,
    ValidationResult,
)
from .email import EmailCodeTokenProvider, EmailSender
from .recovery import RecoveryCodeProvider
from .remember import RememberedClientProvider
from .totp import TOTPTokenProvider

logger = get_logger("yauth.auth.mfa.manager")

EMAIL_PURPOSE = f"{TWO_FACTOR_PURPOSE}.Email"
RECOVERY_PURPOSE = f"{TWO_FACTOR_PURPOSE}.Recovery"


class ConfirmReason(str, Enum):
    """需要二次确认的敏感操作"""
    DISABLE_2FA = "disable2fa"
    CREATE_RECOVERY = "create2faRecovery"
    REMOVE_RECOVERY = "remove2faRecovery"


@dataclass(frozen=True)
class ProviderBinding:
    """方式 -> (提供者, 用途)"""
    provider: TokenProvider
    purpose: str


@dataclass
class AppSetup:
    """Authenticator 启用信息

    Attributes:
        secret: Base32 密钥（手动输入用）
        uri: otpauth URI（生成二维码用）
    """
    secret: str
    uri: str


@dataclass
class ConfirmResult:
    """二次确认结果"""
    ok: bool
    reason: str = ""
    recovery_codes: List[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.ok


class MFAManager:
    """MFA 管理器

    Args:
        users: 用户仓储（保存开关）
        totp: TOTP 提供者
        email: 邮件验证码提供者
        recovery: 恢复码提供者
        remember: 记住设备标记
    """

    def __init__(
        self,
        users: UserRepository,
        totp: TOTPTokenProvider,
        email: EmailCodeTokenProvider,
        recovery: RecoveryCodeProvider,
        remember: RememberedClientProvider,
    ):
        self._users = users
        self.totp = totp
        self.email = email
        self.recovery = recovery
        self.remember = remember
        self._bindings: Dict[TwoFactorMethod, ProviderBinding] = {
            TwoFactorMethod.APP: ProviderBinding(totp, TWO_FACTOR_PURPOSE),
            TwoFactorMethod.EMAIL: ProviderBinding(email, EMAIL_PURPOSE),
            TwoFactorMethod.RECOVERY: ProviderBinding(recovery, RECOVERY_PURPOSE),
        }

    @classmethod
    def from_settings(
        cls,
        settings,
        store: TokenStore,
        users: UserRepository,
        email_sender: Optional[EmailSender] = None,
        hasher: Optional[CodeHasher] = None,
        clock: Optional[Clock] = None,
    ) -> "MFAManager":
        """根据 YAuthSettings 组装全部提供者"""
        hasher = hasher or CodeHasher()
        protector = SecretProtector(settings.protection.secret_key)
        return cls(
            users=users,
            totp=TOTPTokenProvider.from_settings(store, protector, settings.totp, clock=clock),
            email=EmailCodeTokenProvider(
                store, hasher, ttl_seconds=settings.email.ttl_seconds,
                email_sender=email_sender, clock=clock,
            ),
            recovery=RecoveryCodeProvider(store, hasher, code_count=settings.recovery.code_count, clock=clock),
            remember=RememberedClientProvider(store, days=settings.session.remember_client_days, clock=clock),
        )

    def binding(self, method: Union[TwoFactorMethod, str]) -> ProviderBinding:
        """查找方式对应的提供者与用途

        Raises:
            NotSupportedException: 未映射的方式
        """
        try:
            return self._bindings[TwoFactorMethod(method)]
        except (ValueError, KeyError):
            logger.error(f"不支持的二次验证方式: {method!r}")
            raise Err.unsupported(f"不支持的验证方式: {method}", method=str(method))

    # ==================== 验证 ====================

    def verify_two_factor(self, user: User, method: Union[TwoFactorMethod, str], code: str) -> ValidationResult:
        """验证二次验证码"""
        binding = self.binding(method)
        result = binding.provider.validate(binding.purpose, code, user)
        if result.ok:
            logger.info(f"二次验证成功: user_id={user.id}, method={TwoFactorMethod(method).value}")
        else:
            logger.warning(
                f"二次验证失败: user_id={user.id}, method={TwoFactorMethod(method).value}, reason={result.reason}"
            )
        return result

    def available_methods(self, user: User) -> List[TwoFactorMethod]:
        """用户当前可用的二次验证方式"""
        methods = []
        if self.totp.has_token(user, TWO_FACTOR_PURPOSE):
            methods.append(TwoFactorMethod.APP)
        if user.email_mfa_enabled and self.email.can_generate(user):
            methods.append(TwoFactorMethod.EMAIL)
        if self.count_recovery_codes(user) > 0:
            methods.append(TwoFactorMethod.RECOVERY)
        return methods

    # ==================== 启用 ====================

    def begin_enable_app(self, user: User) -> AppSetup:
        """生成新的 Authenticator 密钥

        在 enable_app 确认之前 mfa_enabled 不变。已启用二次验证时拒绝，
        避免覆盖正在使用的密钥；需要先 disable_all。

        Raises:
            ValidationException: 已启用二次验证
        """
        if user.mfa_enabled:
            raise Err.invalid("请先关闭二次验证", field="mfa_enabled")
        secret = self.totp.generate(TWO_FACTOR_PURPOSE, user)
        account = user.email or user.username or str(user.id)
        return AppSetup(secret=secret, uri=self.totp.provisioning_uri(secret, account))

    def enable_app(self, user: User, code: str) -> ValidationResult:
        """验证 Authenticator 代码并打开 mfa_enabled"""
        result = self.verify_two_factor(user, TwoFactorMethod.APP, code)
        if result.ok:
            user.mfa_enabled = True
            self._users.update(user)
            logger.info(f"已启用 Authenticator 二次验证: user_id={user.id}")
        return result

    def send_email_code(self, user: User) -> None:
        """发送邮件验证码（覆盖之前未使用的验证码）"""
        if not self.email.can_generate(user):
            raise Err.invalid("用户未设置邮箱", field="email")
        self.email.generate(EMAIL_PURPOSE, user)

    def begin_enable_email(self, user: User) -> None:
        if user.email_mfa_enabled:
            raise Err.invalid("已启用邮件验证", field="email_mfa_enabled")
        self.send_email_code(user)

    def enable_email(self, user: User, code: str) -> ValidationResult:
        """验证邮件验证码并打开邮件二次验证"""
        result = self.verify_two_factor(user, TwoFactorMethod.EMAIL, code)
        if result.ok:
            user.email_mfa_enabled = True
            user.mfa_enabled = True
            self._users.update(user)
            logger.info(f"已启用邮件二次验证: user_id={user.id}")
        return result

    # ==================== 恢复码 ====================

    def generate_recovery_codes(self, user: User) -> List[str]:
        """生成新一批恢复码，之前的恢复码全部失效"""
        return self.recovery.generate(RECOVERY_PURPOSE, user)

    def count_recovery_codes(self, user: User) -> int:
        return self.recovery.count_valid(user, RECOVERY_PURPOSE)

    def remove_recovery_codes(self, user: User) -> bool:
        removed = self.recovery.remove(user, RECOVERY_PURPOSE)
        logger.info(f"已删除恢复码: user_id={user.id}")
        return removed

    # ==================== 禁用 ====================

    def forget_remembered_client(self, user: User) -> bool:
        return self.remember.forget(user)

    def disable_all(self, user: User) -> None:
        """关闭二次验证并清理全部相关令牌

        按顺序执行，任一步失败立即中止并向上抛出，不吞掉异常。
        """
        def _clear_flags():
            user.mfa_enabled = False
            user.email_mfa_enabled = False
            self._users.update(user)

        steps = [
            ("关闭二次验证开关", _clear_flags),
            ("删除恢复码", lambda: self.recovery.remove(user, RECOVERY_PURPOSE)),
            ("删除 TOTP 密钥", lambda: self.totp.remove(user, TWO_FACTOR_PURPOSE)),
            ("删除待验证的邮件验证码", lambda: self.email.remove(user, EMAIL_PURPOSE)),
            ("遗忘记住的设备", lambda: self.remember.forget(user)),
        ]
        for description, step in steps:
            try:
                step()
            except Exception:
                logger.error(f"关闭二次验证失败: user_id={user.id}, step={description}", exc_info=True)
                raise
            logger.info(f"关闭二次验证: user_id={user.id}, step={description}")

        logger.info(f"已关闭二次验证: user_id={user.id}")

    # ==================== 二次确认 ====================

    def confirm(
        self,
        user: User,
        reason: Union[ConfirmReason, str],
        method: Union[TwoFactorMethod, str],
        code: str,
    ) -> ConfirmResult:
        """先验证二次验证码，再执行敏感操作

        Args:
            user: 当前用户
            reason: 操作（disable2fa / create2faRecovery / remove2faRecovery）
            method: 用于确认的验证方式
            code: 验证码

        Returns:
            ConfirmResult: create2faRecovery 成功时带新的恢复码
        """
        try:
            reason = ConfirmReason(reason)
        except ValueError:
            raise Err.invalid(f"未知的确认操作: {reason}", field="reason")

        result = self.verify_two_factor(user, method, code)
        if not result.ok:
            return ConfirmResult(ok=False, reason=result.reason)

        if reason == ConfirmReason.DISABLE_2FA:
            self.disable_all(user)
            return ConfirmResult(ok=True)
        if reason == ConfirmReason.CREATE_RECOVERY:
            return ConfirmResult(ok=True, recovery_codes=self.generate_recovery_codes(user))
        self.remove_recovery_codes(user)
        return ConfirmResult(ok=True)
