"""
Shared business codes used across layers (Domain/Core/API).

Codes are grouped by the HTTP family they usually map to; the mapping
itself lives in `core.exceptions`.
"""
from enum import IntEnum


class BusinessCode(IntEnum):
    """Unified business status codes (single source of truth)."""

    SUCCESS = 0

    # Parameter errors (1xxxx)
    PARAM_ERROR = 10000
    PARAM_VALIDATION_ERROR = 10003
    PASSWORD_POLICY_VIOLATION = 10004

    # Account / credential errors (2xxxx)
    BUSINESS_ERROR = 20000
    USER_NOT_FOUND = 20001
    USER_ALREADY_EXISTS = 20002
    INVALID_CREDENTIALS = 20003
    TOKEN_INVALID = 20004
    TOKEN_EXPIRED = 20005
    RESET_TOKEN_INVALID = 20007

    # Authorization errors (3xxxx)
    UNAUTHORIZED = 30001
    FORBIDDEN = 30002
    ACCOUNT_LOCKED = 30003
    USER_INACTIVE = 30004

    # System errors (4xxxx)
    SYSTEM_ERROR = 40000
    DATABASE_ERROR = 40001
    SERVICE_UNAVAILABLE = 40003

    # Rate limiting (5xxxx)
    TOO_MANY_REQUESTS = 50001


__all__ = ["BusinessCode"]
