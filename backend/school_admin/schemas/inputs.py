"""
School Admin Backend — Input Schemas
======================================

What:  Pydantic models for the inputs that have format rules (logins, new
       users, new schools).
How:   Managers call validate_input(Model, {...}); a list of messages comes
       back on failure and is returned to the client as ``{"errors": [...]}``
       (a 400 business error), never raised.

Rules:
    username   3-20 chars, letters, digits, "_" and "-"
    password   8-72 chars (bcrypt reads at most 72 bytes)
    email      local@domain.tld
    role       3-20 chars
    school     name 2-200 chars, address 5-500 chars
"""

from typing import Any, List, Mapping, Optional, Type

from pydantic import BaseModel, Field, ValidationError, field_validator

USERNAME_PATTERN = r"^[a-zA-Z0-9_-]+$"
EMAIL_PATTERN = r'^[^\s@<>()\[\],;:"]+@([a-zA-Z0-9-]+\.)+[a-zA-Z]{2,}$'

ROLES = ("superadmin", "schooladmin")


class LoginInput(BaseModel):
    username: str = Field(min_length=3, max_length=20, pattern=USERNAME_PATTERN)
    password: str = Field(min_length=8, max_length=72)


class CreateUserInput(BaseModel):
    username: str = Field(min_length=3, max_length=20, pattern=USERNAME_PATTERN)
    password: str = Field(min_length=8, max_length=72)
    email: str = Field(max_length=100, pattern=EMAIL_PATTERN)
    role: str = Field(min_length=3, max_length=20)


class ChangePasswordInput(BaseModel):
    current_password: str = Field(min_length=1, max_length=72)
    new_password: str = Field(min_length=8, max_length=72)


class CreateSchoolInput(BaseModel):
    name: str = Field(min_length=2, max_length=200)
    address: str = Field(min_length=5, max_length=500)
    email: str = Field(max_length=100, pattern=EMAIL_PATTERN)

    @field_validator("name", "address")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v


def validate_input(model: Type[BaseModel], data: Mapping[str, Any]) -> Optional[List[str]]:
    """None when ``data`` is valid, else one "field: message" per problem."""
    try:
        model.model_validate(dict(data))
    except ValidationError as exc:
        messages = []
        for error in exc.errors():
            field = ".".join(str(part) for part in error.get("loc", ())) or "input"
            messages.append(f"{field}: {error.get('msg', 'invalid value')}")
        return messages
    return None
