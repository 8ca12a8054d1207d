"""Unit tests for pydantic request and record schemas."""

from __future__ import annotations

import pydantic
import pytest

from backend.schemas import ArticleRecord, AskRequest, LoginRequest, SignupRequest, SubscribeRequest, SummaryDraft


def test_signup_request_normalizes_but_keeps_password():
    req = SignupRequest.model_validate(
        {"email": " Reader@Example.com ", "password": " pass word ", "nickname": "  Doc  ", "extra": 1}
    )
    assert req.email == "reader@example.com"
    assert req.password == " pass word "
    assert req.nickname == "Doc"


def test_login_request_defaults_to_empty():
    req = LoginRequest.model_validate({})
    assert (req.email, req.password) == ("", "")


def test_subscribe_request():
    req = SubscribeRequest.model_validate({"email": " A@Example.com ", "name": "   "})
    assert req.email == "a@example.com"
    assert req.name is None
    assert SubscribeRequest.model_validate({"email": "a@example.com", "name": " Kim "}).name == "Kim"


class TestAskRequest:
    def test_question_required(self):
        with pytest.raises(pydantic.ValidationError):
            AskRequest.model_validate({"question": "   "})

    def test_question_too_long(self):
        with pytest.raises(pydantic.ValidationError):
            AskRequest.model_validate({"question": "x" * 2001})

    def test_ok(self):
        assert AskRequest.model_validate({"question": " Why? "}).question == "Why?"


class TestArticleRecord:
    BASE = {
        "slug": "sglt2-heart-failure-2026",
        "title": "SGLT2 inhibitors",
        "topic": "cardiovascular",
        "published_at": "2026-02-15",
    }

    def test_defaults_and_coercion(self):
        record = ArticleRecord.model_validate({**self.BASE, "pmid": 12345, "unknown": "dropped"})
        assert record.pmid == "12345"
        assert record.tier == "basic"
        assert record.key_messages == []
        assert "unknown" not in record.model_dump()

    @pytest.mark.parametrize(
        "field,value",
        [
            ("slug", "Not A Slug"),
            ("slug", "trailing-"),
            ("published_at", "15/02/2026"),
            ("tier", "gold"),
        ],
    )
    def test_rejects_bad_values(self, field, value):
        with pytest.raises(pydantic.ValidationError):
            ArticleRecord.model_validate({**self.BASE, field: value})

    def test_missing_required(self):
        with pytest.raises(pydantic.ValidationError):
            ArticleRecord.model_validate({"slug": "a"})


class TestSummaryDraft:
    def test_study_n_parsing(self):
        base = {"title": "t", "key_messages": ["m"]}
        assert SummaryDraft.model_validate({**base, "study_n": "12,500 patients"}).study_n == 12500
        assert SummaryDraft.model_validate({**base, "study_n": "unknown"}).study_n is None
        assert SummaryDraft.model_validate({**base, "study_n": 42}).study_n == 42

    def test_key_messages_bounds(self):
        with pytest.raises(pydantic.ValidationError):
            SummaryDraft.model_validate({"title": "t", "key_messages": ["", " "]})
        with pytest.raises(pydantic.ValidationError):
            SummaryDraft.model_validate({"title": "t", "key_messages": ["m"] * 6})
        with pytest.raises(pydantic.ValidationError):
            SummaryDraft.model_validate({"title": "", "key_messages": ["m"]})


@pytest.mark.parametrize("schema", [LoginRequest, SignupRequest])
def test_password_with_lone_surrogate_is_rejected(schema):
    with pytest.raises(pydantic.ValidationError, match="Password contains invalid characters."):
        schema.model_validate({"email": "a@example.com", "password": "\ud800abcdef", "nickname": "A"})
