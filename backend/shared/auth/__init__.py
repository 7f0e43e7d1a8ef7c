"""Password policy and hashing shared by registration and login."""

from shared.auth.password import BcryptHasher, PasswordHasher, SimpleHasher, get_hasher, password_too_long
from shared.auth.password_policy import PasswordValidation, score_password, validate_password

__all__ = [
    "BcryptHasher",
    "PasswordHasher",
    "PasswordValidation",
    "SimpleHasher",
    "get_hasher",
    "password_too_long",
    "score_password",
    "validate_password",
]
