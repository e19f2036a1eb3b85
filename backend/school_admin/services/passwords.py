"""
Password hashing with bcrypt.

bcrypt is CPU-bound: hashing and checking run in a worker
thread to keep the event loop free. Passwords are limited to 72 bytes
(bcrypt's input size) by the input schemas.
"""

import asyncio

import bcrypt


class PasswordHasher:
    def __init__(self, rounds: int = 12):
        self.rounds = rounds

    def _hash(self, password: str) -> str:
        return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=self.rounds)).decode("ascii")

    @staticmethod
    def _check(password: str, hashed: str) -> bool:
        try:
            return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("ascii"))
        except ValueError:
            # stored value is not a bcrypt hash, or the password is over 72 bytes
            return False

    async def hash(self, password: str) -> str:
        return await asyncio.to_thread(self._hash, password)

    async def verify(self, password: str, hashed: str) -> bool:
        if not password or not hashed:
            return False
        return await asyncio.to_thread(self._check, password, hashed)
