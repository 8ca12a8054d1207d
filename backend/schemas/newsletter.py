"""Pydantic schemas for newsletter APIs."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, field_validator


class NewsletterBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)


class SubscribeRequest(NewsletterBaseModel):
    email: str = ""
    name: str | None = None

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.lower()

    @field_validator("name")
    @classmethod
    def empty_name_is_none(cls, v: str | None) -> str | None:
        return v or None
