# evoting/authentication/password_hashing.py

import re
from argon2 import PasswordHasher
from argon2.exceptions import HashingError, InvalidHashError, VerificationError

from evoting.errors import InvalidInput

# Administrator passwords are stored as Argon2id hashes


class PasswordHashingService:
    def __init__(self, time_cost=3, memory_cost=65536, parallelism=4):
        self.ph = PasswordHasher(
            time_cost=time_cost,
            memory_cost=memory_cost,
            parallelism=parallelism,
            hash_len=32,
            salt_len=16,
        )

    def hash_password(self, password: str) -> str:
        if not isinstance(password, str) or not self.is_strong_password(password):
            raise InvalidInput("Password must be at least 12 characters and mix three of: "
                               "upper case, lower case, digits, symbols.")
        try:
            return self.ph.hash(password)
        except HashingError as e:
            raise InvalidInput(f"Password hashing failed: {e}")

    def verify_password(self, password: str, hash_value: str) -> bool:
        if not isinstance(password, str) or not hash_value:
            return False
        try:
            return self.ph.verify(hash_value, password)
        except (VerificationError, InvalidHashError):
            return False

    def needs_rehash(self, hash_value: str) -> bool:
        return self.ph.check_needs_rehash(hash_value)

    def is_strong_password(self, password: str) -> bool:
        if len(password) < 12:
            return False
        has_upper = bool(re.search(r'[A-Z]', password))
        has_lower = bool(re.search(r'[a-z]', password))
        has_digit = bool(re.search(r'\d', password))
        has_special = bool(re.search(r'[^A-Za-z0-9]', password))
        return sum([has_upper, has_lower, has_digit, has_special]) >= 3
