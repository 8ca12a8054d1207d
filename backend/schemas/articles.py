"""
Pydantic schemas for article records, LLM summaries and article APIs.
"""

from __future__ import annotations

import re
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

_SLUG_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class ArticleBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)


class AskRequest(ArticleBaseModel):
    question: str = Field(default="", max_length=2000, validate_default=True)

    @field_validator("question")
    @classmethod
    def require_question(cls, v: str) -> str:
        if not v:
            raise ValueError("Question is required")
        return v


class ArticleRecord(ArticleBaseModel):
    """A stored article, as imported from JSON files."""

    id: Optional[str] = None
    slug: str
    title: str
    original_title: Optional[str] = None
    journal: str = ""
    doi: Optional[str] = None
    pmid: Optional[str] = None
    topic: str
    tier: Literal["basic", "pro"] = "basic"
    key_messages: List[str] = Field(default_factory=list)
    study_n: Optional[int] = None
    study_endpoint: Optional[str] = None
    study_limitations: Optional[str] = None
    clinical_insight: str = ""
    published_at: str

    @field_validator("id", "pmid", mode="before")
    @classmethod
    def coerce_str(cls, v):
        return None if v is None else str(v)

    @field_validator("slug")
    @classmethod
    def validate_slug(cls, v: str) -> str:
        if not _SLUG_RE.match(v):
            raise ValueError("slug must be lowercase letters, digits and dashes")
        return v

    @field_validator("published_at")
    @classmethod
    def validate_date(cls, v: str) -> str:
        if not _DATE_RE.match(v):
            raise ValueError("published_at must be YYYY-MM-DD")
        return v


class SummaryDraft(ArticleBaseModel):
    """Structured summary returned by the LLM."""

    title: str = Field(min_length=1)
    key_messages: List[str] = Field(min_length=1, max_length=5)
    study_n: Optional[int] = None
    study_endpoint: Optional[str] = None
    study_limitations: Optional[str] = None
    clinical_insight: str = ""

    @field_validator("study_n", mode="before")
    @classmethod
    def parse_study_n(cls, v):
        # Models often answer "12,500 patients" or "unknown"
        if v is None or isinstance(v, int):
            return v
        digits = re.sub(r"[^\d]", "", str(v))
        return int(digits) if digits else None

    @field_validator("key_messages")
    @classmethod
    def drop_empty(cls, v: List[str]) -> List[str]:
        cleaned = [m.strip() for m in v if m and m.strip()]
        if not cleaned:
            raise ValueError("key_messages must not be empty")
        return cleaned
