"""Pydantic schemas."""

from .articles import ArticleRecord, AskRequest, SummaryDraft
from .auth import LoginRequest, SignupRequest
from .newsletter import SubscribeRequest

__all__ = [
    "ArticleRecord",
    "AskRequest",
    "LoginRequest",
    "SignupRequest",
    "SubscribeRequest",
    "SummaryDraft",
]
