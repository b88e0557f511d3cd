"""Authentication package: password hashing and session lifecycle."""
from establishment.auth.passwords import PasswordHasher
from establishment.auth.service import AuthService

__all__ = ["AuthService", "PasswordHasher"]
