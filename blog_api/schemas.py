import json
import re
from typing import Annotated

from pydantic import AfterValidator, BaseModel, EmailStr, Field, field_validator

_PASSWORD_RULES = (
    re.compile(r"[a-z]"),
    re.compile(r"[A-Z]"),
    re.compile(r"[0-9]"),
    re.compile(r"[@$!%*?&#]"),
)

TagName = Annotated[str, Field(min_length=1, max_length=100)]


def _check_password(value: str) -> str:
    if not all(rule.search(value) for rule in _PASSWORD_RULES):
        raise ValueError(
            "Password must include at least one lowercase letter, one uppercase "
            "letter, one number, and one special character."
        )
    return value


Password = Annotated[str, Field(min_length=6, max_length=16), AfterValidator(_check_password)]


# --- Auth ---

class RegisterRequest(BaseModel):
    name: str = Field(min_length=3, max_length=100)
    email: EmailStr
    password: Password


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


# --- User ---

class UserUpdate(RegisterRequest):
    # Admins may target another account; everyone else acts on themselves.
    user_id: int | None = None


class UserDestroy(BaseModel):
    user_id: int | None = None


# --- Tag ---

class TagCreate(BaseModel):
    name: str = Field(min_length=3, max_length=100)


class TagDestroy(BaseModel):
    tag_id: int


# --- Post ---

class PostCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    body: str = Field(min_length=1)
    tags: list[TagName] = []  # tag names, created on demand
    tag_ids: list[int] = []

    @field_validator("tags", "tag_ids", mode="before")
    @classmethod
    def _decode_json_list(cls, value):
        # Older clients send these as JSON-encoded strings, e.g. '["go","rust"]'.
        if isinstance(value, str):
            try:
                return json.loads(value)
            except ValueError:
                raise ValueError("Must be a list or a JSON-encoded list.") from None
        return value


class PostUpdate(PostCreate):
    post_id: int


class PostDestroy(BaseModel):
    post_id: int


# --- Comment ---

class CommentCreate(BaseModel):
    comment: str = Field(min_length=1)
    post_id: int


class CommentUpdate(BaseModel):
    comment_id: int
    comment: str = Field(min_length=1)


class CommentDestroy(BaseModel):
    comment_id: int


class PinStatusChange(BaseModel):
    comment_id: int
    pin_status: bool

    @field_validator("pin_status", mode="before")
    @classmethod
    def _zero_or_one(cls, value):
        # Booleans pass as well, since True == 1 and False == 0.
        if value in (0, 1, "0", "1"):
            return bool(int(value))
        raise ValueError("Pin status must be 0 or 1.")


# --- Pagination ---

class PaginatedResponse(BaseModel):
    items: list
    total: int
    page: int
    page_size: int
    pages: int
