"""
School Admin Backend — User Manager
=====================================

What:  Login, user administration and the caller's own profile.
How:   Passwords are bcrypt hashes (PasswordHasher); a successful login
       returns a long token (TokenService) carrying user_id, role and
       school_id. Password hashes never leave this module.

Roles:
    superadmin   manages schools and users, reaches every school
    schooladmin  bound to one school_id, manages its classrooms/students
"""

import logging
from typing import Any, Dict, Optional

from school_admin.config import Settings
from school_admin.managers.base import EntityManager, utc_now
from school_admin.schemas.inputs import (
    ROLES,
    ChangePasswordInput,
    CreateUserInput,
    LoginInput,
    validate_input,
)
from school_admin.services.passwords import PasswordHasher
from school_admin.services.store import DocumentStore
from school_admin.services.tokens import TokenService

logger = logging.getLogger(__name__)

USER_FIELDS = [
    "_id", "username", "name", "email", "role", "school_id", "created_at", "updated_at",
]


def _public(user: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if user is None:
        return None
    return {k: v for k, v in user.items() if k != "password"}


class UserManager(EntityManager):
    label = "user"
    http_exposed = [
        "post=login",
        "post=create_user",
        "get=list_users",
        "get=get_user",
        "put=update_user",
        "delete=delete_user",
        "get=get_profile",
        "put=change_password",
    ]

    def __init__(self, store: DocumentStore, tokens: TokenService, hasher: PasswordHasher):
        super().__init__(store)
        self.tokens = tokens
        self.hasher = hasher

    async def _find_by_username(self, username: str) -> Optional[Dict[str, Any]]:
        found = await self.store.search_find(
            label="user", query={"username": username}, limit=1, offset=0
        )
        items = found.get("items") or []
        return items[0] if items else None

    async def seed_super_admin(self, settings: Settings) -> Optional[Dict[str, Any]]:
        """
        Creates the configured superadmin when SUPERADMIN_USERNAME,
        SUPERADMIN_PASSWORD and SUPERADMIN_EMAIL are all set and no user has
        that username yet. Returns the created user, or None when skipped.
        """
        username = settings.superadmin_username
        password = settings.superadmin_password
        email = settings.superadmin_email
        if not username or not password or not email:
            logger.info("Superadmin env vars not fully configured, skipping seed")
            return None

        if await self._find_by_username(username):
            logger.info("Superadmin '%s' already exists, skipping seed", username)
            return None

        now = utc_now()
        user = await self.store.add_block({
            "_label": "user",
            "username": username,
            "password": await self.hasher.hash(password),
            "name": "Super Admin",
            "email": email,
            "role": "superadmin",
            "school_id": None,
            "created_at": now,
            "updated_at": now,
        })
        logger.info("Seeded superadmin user '%s'", username)
        return _public(user)

    async def login(self, username=None, password=None):
        errors = validate_input(LoginInput, {"username": username, "password": password})
        if errors:
            return {"errors": errors}

        user = await self._find_by_username(username)
        if not user or not await self.hasher.verify(password, user.get("password") or ""):
            logger.info("Failed login for '%s'", username)
            return {"error": "invalid credentials"}

        token = self.tokens.sign_long_token({
            "user_id": user["_id"],
            "role": user.get("role"),
            "school_id": user.get("school_id") or None,
        })
        return {"token": token, "user": _public(user)}

    async def create_user(
        self,
        __long_token=None,
        __is_super_admin=None,
        username=None,
        password=None,
        name=None,
        email=None,
        role=None,
        school_id=None,
    ):
        if not username or not password or not email or not role:
            return {"error": "missing required fields"}

        errors = validate_input(
            CreateUserInput,
            {"username": username, "password": password, "email": email, "role": role},
        )
        if errors:
            return {"errors": errors}
        if role not in ROLES:
            return {"error": "invalid role"}
        if role == "schooladmin" and not school_id:
            return {"error": "school_id is required for schooladmin"}
        if await self._find_by_username(username):
            return {"error": "username already exists"}

        now = utc_now()
        user = await self.store.add_block({
            "_label": "user",
            "username": username,
            "password": await self.hasher.hash(password),
            "name": name or username,
            "email": email,
            "role": role,
            "school_id": school_id or None,
            "created_at": now,
            "updated_at": now,
        })
        logger.info("User created: %s (%s)", user["_id"], role)
        return _public(user)

    async def list_users(self, __long_token=None, __is_super_admin=None, page=None, limit=None, role=None):
        query = {"role": role} if role else {}
        found = await self._list("user", query, USER_FIELDS, page, limit)
        return {
            "users": found["items"],
            "total": found["total"],
            "page": found["page"],
            "limit": found["limit"],
        }

    async def get_user(self, __long_token=None, __is_super_admin=None, user_id=None):
        if not user_id:
            return {"error": "user_id is required"}
        user = await self._get(user_id)
        if not user:
            return {"error": "user not found"}
        return _public(user)

    async def update_user(
        self,
        __long_token=None,
        __is_super_admin=None,
        user_id=None,
        name=None,
        email=None,
        role=None,
        school_id=None,
    ):
        if not user_id:
            return {"error": "user_id is required"}
        existing = await self._get(user_id)
        if not existing:
            return {"error": "user not found"}
        if role is not None and role not in ROLES:
            return {"error": "invalid role"}

        update = self._changes({"name": name, "email": email, "role": role, "school_id": school_id})
        update["updated_at"] = utc_now()

        updated = await self.store.update_block({"_id": self._key(user_id), **update})
        return _public(updated or {**existing, **update})

    async def delete_user(self, __long_token=None, __is_super_admin=None, user_id=None):
        if not user_id:
            return {"error": "user_id is required"}
        if not await self._get(user_id):
            return {"error": "user not found"}

        await self.store.delete_block(self._key(user_id))
        logger.info("User deleted: %s", user_id)
        return {"message": "user deleted"}

    async def get_profile(self, __long_token=None):
        if not __long_token or not __long_token.get("user_id"):
            return {"error": "unauthorized"}
        user = await self._get(__long_token["user_id"])
        if not user:
            return {"error": "user not found"}
        return _public(user)

    async def change_password(self, __long_token=None, current_password=None, new_password=None):
        if not __long_token or not __long_token.get("user_id"):
            return {"error": "unauthorized"}
        if not current_password or not new_password:
            return {"error": "missing required fields"}

        errors = validate_input(
            ChangePasswordInput,
            {"current_password": current_password, "new_password": new_password},
        )
        if errors:
            return {"errors": errors}

        user_id = __long_token["user_id"]
        user = await self._get(user_id)
        if not user:
            return {"error": "user not found"}
        if not await self.hasher.verify(current_password, user.get("password") or ""):
            return {"error": "invalid current password"}

        await self.store.update_block({
            "_id": self._key(user_id),
            "password": await self.hasher.hash(new_password),
            "updated_at": utc_now(),
        })
        logger.info("Password changed for user %s", user_id)
        return {"message": "password changed"}
