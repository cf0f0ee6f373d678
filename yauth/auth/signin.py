"""登录状态机

两步登录流程::

    Anonymous -> PasswordPending -> MfaPending -> Authenticated
                       |                 |
                       +--> LockedOut <--+

- 用户不存在与密码错误返回完全相同的结果，避免用户枚举
- 锁定检查在密码校验之前，锁定期内即使密码正确也被拒绝
- 密码失败与二次验证失败共用同一个失败计数，计数递增在仓储层原子完成
- 失败计数只在建立完整会话时清零；挑战令牌成功使用一次后即被撤销
- 会话写入（最后登录时间、撤销记录等）失败时整个登录失败，不产生半成品会话

使用示例:
    signin = SignInManager(users, mfa, store, settings)

    result = signin.password_sign_in("alice", "secret123")
    if result.requires_two_factor:
        result = signin.two_factor_sign_in(result.challenge_token, "App", "123456",
                                           remember_client=True)
    if result.succeeded:
        token = result.session_token
"""

import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from yauth.exceptions import Err
from yauth.log import get_logger
from .claims import AMR_REMEMBERED, SessionClaims, SessionContext
from .jwt import CHALLENGE_TOKEN_TYPE, SESSION_TOKEN_TYPE, JWTManager
from .mfa.base import Clock, TwoFactorMethod, live_entries, utc_now
from .mfa.manager import MFAManager
from .password import PasswordHelper
from .token_store import TokenStore
from .users import User, UserRepository

logger = get_logger("yauth.auth.signin")

# 面向用户的失败消息，不区分具体原因
LOGIN_FAILED_MESSAGE = "登录失败"
INVALID_CODE_MESSAGE = "验证码无效"
LOCKED_OUT_MESSAGE = "账户已锁定，请稍后再试"
CHALLENGE_EXPIRED_MESSAGE = "二次验证已失效，请重新登录"

SESSION_PROVIDER_NAME = "Session"
REVOKED_SESSIONS_PURPOSE = "RevokedSessions"

# 用户不存在时也做一次哈希校验，使两种失败耗时接近
_DUMMY_PASSWORD_HASH = PasswordHelper.hash("yauth-dummy-password")


class SignInState(str, Enum):
    """登录状态"""
    ANONYMOUS = "anonymous"
    PASSWORD_PENDING = "password_pending"
    MFA_PENDING = "mfa_pending"
    AUTHENTICATED = "authenticated"
    LOCKED_OUT = "locked_out"


@dataclass
class SignInResult:
    """登录结果

    Attributes:
        state: 登录后所处的状态
        message: 面向用户的消息
        session_token: 会话令牌（AUTHENTICATED）
        claims: 会话声明（AUTHENTICATED）
        challenge_token: 二次验证挑战令牌（MFA_PENDING）
        methods: 可用的二次验证方式（MFA_PENDING）
        lockout_end: 锁定到期时间（LOCKED_OUT）
        remembered_client_token: 新签发的记住设备令牌
    """
    state: SignInState
    message: str = ""
    session_token: Optional[str] = None
    claims: Optional[SessionClaims] = None
    challenge_token: Optional[str] = None
    methods: List[TwoFactorMethod] = field(default_factory=list)
    lockout_end: Optional[datetime] = None
    remembered_client_token: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.state == SignInState.AUTHENTICATED

    @property
    def requires_two_factor(self) -> bool:
        return self.state == SignInState.MFA_PENDING

    @property
    def is_locked_out(self) -> bool:
        return self.state == SignInState.LOCKED_OUT

    @classmethod
    def failed(cls) -> "SignInResult":
        return cls(state=SignInState.ANONYMOUS, message=LOGIN_FAILED_MESSAGE)

    @classmethod
    def locked_out(cls, lockout_end: Optional[datetime]) -> "SignInResult":
        return cls(state=SignInState.LOCKED_OUT, message=LOCKED_OUT_MESSAGE, lockout_end=lockout_end)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"state": self.state.value, "message": self.message}
        if self.session_token:
            data["session_token"] = self.session_token
            data["expires_at"] = self.claims.exp.isoformat() if self.claims else None
        if self.challenge_token:
            data["challenge_token"] = self.challenge_token
            data["methods"] = [m.value for m in self.methods]
        if self.lockout_end:
            data["lockout_end"] = self.lockout_end.isoformat()
        if self.remembered_client_token:
            data["remembered_client_token"] = self.remembered_client_token
        return data


class SignInManager:
    """登录管理器

    Args:
        users: 用户仓储
        mfa: MFA 管理器
        store: 令牌存储（记录已撤销的会话）
        settings: YAuthSettings
        clock: 时钟
    """

    def __init__(
        self,
        users: UserRepository,
        mfa: MFAManager,
        store: TokenStore,
        settings,
        clock: Optional[Clock] = None,
    ):
        self._users = users
        self._mfa = mfa
        self._store = store
        self._lockout = settings.lockout
        self._session = settings.session
        self._clock = clock or utc_now
        self._jwt = JWTManager(settings.session.secret_key, settings.session.algorithm, clock=self._clock)

    # ==================== 第一步：密码 ====================

    def password_sign_in(
        self,
        identifier: str,
        password: str,
        remember_me: bool = False,
        remembered_client_token: Optional[str] = None,
        context: Union[SessionContext, str] = SessionContext.DEFAULT,
    ) -> SignInResult:
        """用户名/邮箱 + 密码登录

        Args:
            identifier: 用户名或邮箱
            password: 密码
            remember_me: 是否使用持久会话
            remembered_client_token: 之前"记住此设备"签发的令牌
            context: 会话场景

        Raises:
            ValidationException: 用户名或密码为空
        """
        if not identifier or not identifier.strip():
            raise Err.invalid("用户名不能为空", field="identifier")
        if not password:
            raise Err.invalid("密码不能为空", field="password")
        context = SessionContext(context)

        user = self._users.find_by_name(identifier)
        if user is None:
            PasswordHelper.verify(password, _DUMMY_PASSWORD_HASH)
            logger.warning(f"登录失败: identifier={identifier!r}, reason=user not found")
            return SignInResult.failed()

        now = self._clock()
        if self._lockout_applies(user) and user.is_locked_out(now):
            logger.warning(f"登录被拒绝: user_id={user.id}, reason=locked out until {user.lockout_end}")
            return SignInResult.locked_out(user.lockout_end)

        if not PasswordHelper.verify(password, user.password_hash):
            logger.warning(f"登录失败: user_id={user.id}, reason=wrong password")
            return self._access_failed(user, now) or SignInResult.failed()

        # 仍需二次验证时不清零失败计数，否则可以借重新登录绕过锁定
        if user.mfa_enabled:
            if remembered_client_token and self._mfa.remember.is_remembered(user, remembered_client_token):
                logger.info(f"已记住的设备，跳过二次验证: user_id={user.id}")
                self._reset_failures(user)
                return self._establish(user, AMR_REMEMBERED, remember_me, context, now)
            return self._challenge(user, remember_me, context, now)

        self._reset_failures(user)
        return self._establish(user, None, remember_me, context, now)

    # ==================== 第二步：二次验证 ====================

    def two_factor_sign_in(
        self,
        challenge_token: str,
        method: Union[TwoFactorMethod, str],
        code: str,
        remember_client: bool = False,
    ) -> SignInResult:
        """提交二次验证码

        失败时保持在 MFA_PENDING（返回同一个挑战令牌），并计入失败次数。

        Raises:
            NotSupportedException: 不支持的验证方式
        """
        challenge = self._decode_challenge(challenge_token)
        if challenge is None:
            return SignInResult(state=SignInState.ANONYMOUS, message=CHALLENGE_EXPIRED_MESSAGE)

        user = self._users.find_by_id(challenge["user_id"])
        if user is None or not user.mfa_enabled:
            logger.warning(f"二次验证失败: user_id={challenge['user_id']}, reason=user missing or mfa disabled")
            return SignInResult.failed()

        now = self._clock()
        if self._lockout_applies(user) and user.is_locked_out(now):
            logger.warning(f"二次验证被拒绝: user_id={user.id}, reason=locked out")
            return SignInResult.locked_out(user.lockout_end)

        self._mfa.binding(method)
        method = TwoFactorMethod(method)
        result = self._mfa.verify_two_factor(user, method, code)
        if not result.ok:
            locked = self._access_failed(user, now)
            if locked is not None:
                return locked
            return SignInResult(
                state=SignInState.MFA_PENDING,
                message=INVALID_CODE_MESSAGE,
                challenge_token=challenge_token,
                methods=self._mfa.available_methods(user),
            )

        # 挑战令牌只能成功使用一次
        if not self._revoke(user.id, challenge["jti"], int(challenge["exp"])):
            logger.warning(f"二次验证失败: user_id={user.id}, reason=challenge already used")
            return SignInResult(state=SignInState.ANONYMOUS, message=CHALLENGE_EXPIRED_MESSAGE)

        self._reset_failures(user)
        remembered = self._mfa.remember.remember(user) if remember_client else None
        signed_in = self._establish(
            user,
            method.value,
            bool(challenge.get("remember_me")),
            SessionContext(challenge.get("context", SessionContext.DEFAULT.value)),
            now,
        )
        signed_in.remembered_client_token = remembered
        return signed_in

    def challenge_user(self, challenge_token: str) -> Optional[User]:
        """根据挑战令牌取得待验证的用户"""
        challenge = self._decode_challenge(challenge_token)
        if challenge is None:
            return None
        return self._users.find_by_id(challenge["user_id"])

    def send_two_factor_email(self, challenge_token: str) -> bool:
        """登录过程中发送邮件验证码

        Returns:
            bool: 是否已发送（挑战失效或用户未启用邮件验证时为 False）
        """
        user = self.challenge_user(challenge_token)
        if user is None or not user.email_mfa_enabled:
            return False
        self._mfa.send_email_code(user)
        return True

    # ==================== 会话 ====================

    def validate_session(self, session_token: Optional[str]) -> Optional[SessionClaims]:
        """校验会话令牌，已过期或已登出时返回 None"""
        payload = self._jwt.decode(session_token, SESSION_TOKEN_TYPE)
        if payload is None:
            return None
        claims = SessionClaims.from_payload(payload)
        if claims.jti in self._revoked_jtis(claims.user_id):
            return None
        return claims

    def sign_out(self, session_token: str) -> bool:
        """登出：撤销会话令牌直到其自然过期"""
        claims = self.validate_session(session_token)
        if claims is None:
            return False

        self._revoke(claims.user_id, claims.jti, int(claims.exp.timestamp()))
        logger.info(f"用户已登出: user_id={claims.user_id}")
        return True

    def forget_two_factor_client(self, user: User) -> bool:
        """遗忘记住的设备，下次登录重新要求二次验证"""
        return self._mfa.forget_remembered_client(user)

    # ==================== 内部 ====================

    def _lockout_applies(self, user: User) -> bool:
        return self._lockout.enabled and user.lockout_enabled

    def _access_failed(self, user: User, now: datetime) -> Optional[SignInResult]:
        """记录一次失败，触发锁定时返回 LOCKED_OUT 结果"""
        if not self._lockout_applies(user):
            return None
        failure = self._users.record_access_failure(
            user.id,
            self._lockout.max_failed_attempts,
            self._lockout.lockout_minutes,
            now,
        )
        if failure.locked_out:
            logger.warning(f"账户已锁定: user_id={user.id}, lockout_end={failure.lockout_end.isoformat()}")
            return SignInResult.locked_out(failure.lockout_end)
        return None

    def _reset_failures(self, user: User) -> None:
        if user.access_failed_count:
            self._users.reset_access_failures(user.id)

    def _decode_challenge(self, challenge_token: Optional[str]) -> Optional[Dict[str, Any]]:
        """解码挑战令牌，已过期、已使用或格式不符时返回 None"""
        challenge = self._jwt.decode(challenge_token, CHALLENGE_TOKEN_TYPE)
        if challenge is None or not isinstance(challenge.get("jti"), str) or "user_id" not in challenge:
            return None
        if challenge["jti"] in self._revoked_jtis(challenge["user_id"]):
            return None
        return challenge

    def _session_span(self, remember_me: bool, context: SessionContext) -> timedelta:
        if context == SessionContext.API:
            return timedelta(seconds=self._session.api_seconds)
        if context == SessionContext.PERSISTENT or remember_me:
            return timedelta(seconds=self._session.persistent_seconds)
        return timedelta(seconds=self._session.default_seconds)

    def _challenge(self, user: User, remember_me: bool, context: SessionContext, now: datetime) -> SignInResult:
        token = self._jwt.encode(
            {
                "sub": str(user.id),
                "user_id": user.id,
                "jti": uuid.uuid4().hex,
                "remember_me": remember_me,
                "context": context.value,
            },
            CHALLENGE_TOKEN_TYPE,
            now + timedelta(seconds=self._session.challenge_seconds),
        )
        logger.info(f"密码验证通过，等待二次验证: user_id={user.id}")
        return SignInResult(
            state=SignInState.MFA_PENDING,
            message="需要二次验证",
            challenge_token=token,
            methods=self._mfa.available_methods(user),
        )

    def _establish(
        self,
        user: User,
        amr: Optional[str],
        remember_me: bool,
        context: SessionContext,
        now: datetime,
    ) -> SignInResult:
        claims = SessionClaims(
            sub=str(user.id),
            user_id=user.id,
            username=user.username,
            mfa_enabled=user.mfa_enabled,
            jti=uuid.uuid4().hex,
            iat=now,
            exp=now + self._session_span(remember_me, context),
            amr=amr,
            context=context,
        )
        token = self._jwt.encode(claims.to_payload(), SESSION_TOKEN_TYPE, claims.exp)
        self._users.set_last_login(user.id, now)
        logger.info(f"登录成功: user_id={user.id}, amr={amr}, context={context.value}")
        return SignInResult(
            state=SignInState.AUTHENTICATED,
            message="登录成功",
            session_token=token,
            claims=claims,
        )

    def _revoke(self, user_id: Any, jti: str, exp: int) -> bool:
        """撤销令牌直到其自然过期

        Returns:
            bool: False 表示该令牌此前已被撤销
        """
        now_ts = int(self._clock().timestamp())
        outcome = {}

        def _append(current: Optional[str]) -> str:
            entries = live_entries(current, now_ts, "jti")
            outcome["revoked"] = any(e["jti"] == jti for e in entries)
            if outcome["revoked"]:
                return json.dumps(entries)
            return json.dumps(entries + [{"jti": jti, "exp": exp}])

        self._store.update(user_id, SESSION_PROVIDER_NAME, REVOKED_SESSIONS_PURPOSE, _append)
        return not outcome["revoked"]

    def _revoked_jtis(self, user_id: Any) -> set:
        current = self._store.get(user_id, SESSION_PROVIDER_NAME, REVOKED_SESSIONS_PURPOSE)
        return {e["jti"] for e in live_entries(current, int(self._clock().timestamp()), "jti")}
