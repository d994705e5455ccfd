"""Infrastructure models package exports."""
from .base import Base, metadata
from .user import UserModel
from .refresh_token import RefreshTokenModel
from .password_reset_token import PasswordResetTokenModel

__all__ = [
    "Base",
    "metadata",
    "UserModel",
    "RefreshTokenModel",
    "PasswordResetTokenModel",
]
