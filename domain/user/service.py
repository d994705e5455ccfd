"""
用户领域服务 - 密码哈希与密码策略
"""
from dataclasses import dataclass
import hashlib
import hmac
import re
import secrets

from domain.common.exceptions import PasswordPolicyViolationException


class PasswordService:
    """密码服务 - PBKDF2 单向哈希与常量时间校验

    存储格式为 ``salt$hash``，可直接作为 PasswordEncoder 端口的实现。
    """

    def __init__(self, iterations: int = 100_000):
        self._iterations = iterations

    def hash(self, password: str) -> str:
        """密码哈希"""
        salt = secrets.token_hex(32)
        pwd_hash = hashlib.pbkdf2_hmac('sha256',
                                       password.encode('utf-8'),
                                       salt.encode('utf-8'),
                                       self._iterations)
        return f"{salt}${pwd_hash.hex()}"

    def matches(self, password: str, hashed_password: str) -> bool:
        """验证密码"""
        salt, sep, pwd_hash = (hashed_password or "").partition('$')
        if not sep:
            return False
        new_hash = hashlib.pbkdf2_hmac('sha256',
                                       password.encode('utf-8'),
                                       salt.encode('utf-8'),
                                       self._iterations)
        return hmac.compare_digest(new_hash.hex(), pwd_hash)


PASSWORD_TOO_SHORT = "password_too_short"
PASSWORD_TOO_LONG = "password_too_long"
PASSWORD_TOO_WEAK = "password_too_weak"


@dataclass(frozen=True)
class PasswordPolicy:
    """业务规则：密码长度与复杂度

    至少包含一个小写字母、大写字母、数字和特殊字符。
    """

    min_length: int = 12
    max_length: int = 128

    _LOWER = re.compile(r"[a-z]")
    _UPPER = re.compile(r"[A-Z]")
    _DIGIT = re.compile(r"\d")
    _SPECIAL = re.compile(r"[^A-Za-z0-9\s]")

    def violation(self, password: str) -> str | None:
        """返回第一个不满足的原因码，满足策略时返回 None"""
        password = password or ""
        if len(password) < self.min_length:
            return PASSWORD_TOO_SHORT
        if len(password) > self.max_length:
            return PASSWORD_TOO_LONG
        for pattern in (self._LOWER, self._UPPER, self._DIGIT, self._SPECIAL):
            if not pattern.search(password):
                return PASSWORD_TOO_WEAK
        return None

    def validate(self, password: str) -> None:
        reason = self.violation(password)
        if reason == PASSWORD_TOO_SHORT:
            raise PasswordPolicyViolationException(reason, min_length=self.min_length)
        if reason == PASSWORD_TOO_LONG:
            raise PasswordPolicyViolationException(reason, max_length=self.max_length)
        if reason is not None:
            raise PasswordPolicyViolationException(reason)
