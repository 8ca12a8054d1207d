"""Pydantic schemas for account APIs."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, field_validator

from ..utils.validation import is_utf8_encodable

MSG_INVALID_PASSWORD = "Password contains invalid characters."


class AuthBaseModel(BaseModel):
    # Passwords are taken verbatim, so whitespace is stripped per field
    model_config = ConfigDict(extra="ignore")


class LoginRequest(AuthBaseModel):
    email: str = ""
    password: str = ""

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("password")
    @classmethod
    def reject_unencodable_password(cls, v: str) -> str:
        if not is_utf8_encodable(v):
            raise ValueError(MSG_INVALID_PASSWORD)
        return v


class SignupRequest(LoginRequest):
    nickname: str = ""

    @field_validator("nickname")
    @classmethod
    def strip_nickname(cls, v: str) -> str:
        return v.strip()
