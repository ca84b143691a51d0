"""Prehash + salted hash for passwords and OTP codes."""
import hashlib

from werkzeug.security import generate_password_hash, check_password_hash


def prehash(secret):
    """Fixed-length SHA-256 hex digest; bounds what reaches the slow hash."""
    return hashlib.sha256(secret.encode("utf-8")).hexdigest()


class SecretHasher:
    def __init__(self, method="pbkdf2:sha256:600000", salt_length=16):
        self.method = method
        self.salt_length = salt_length

    def salted_hash(self, prehashed):
        return generate_password_hash(prehashed, method=self.method, salt_length=self.salt_length)

    def verify(self, prehashed, stored_hash):
        if not stored_hash:
            return False
        try:
            return check_password_hash(stored_hash, prehashed)
        except (ValueError, TypeError):
            return False

    def hash_secret(self, secret):
        return self.salted_hash(prehash(secret))

    def check_secret(self, secret, stored_hash):
        return self.verify(prehash(secret), stored_hash)
