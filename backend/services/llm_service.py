"""LLM helpers: structured paper summaries and the ask-the-paper assistant.

Uses the OpenAI client against any compatible endpoint. The client is built
lazily so importing this module never needs network configuration.
"""

from __future__ import annotations

import json
import re
from typing import Any

import pydantic
from loguru import logger

from config import settings
from mdstore.pubmed import ArticleDraft

from ..errors import UpstreamError
from ..schemas.articles import SummaryDraft

SUMMARY_SYSTEM_PROMPT = (
    "You are an endocrinologist and medical journalist. You summarize papers for busy clinicians "
    "and always answer with valid JSON only."
)

SUMMARY_PROMPT = """Summarize this paper for busy clinicians.

## Paper
- Title: {title}
- Journal: {journal}
- DOI: {doi}
- Topic: {topic}
- Abstract: {abstract}

## Output (JSON only)
{{
  "title": "Short plain-language headline (under 90 characters)",
  "key_messages": [
    "Most important clinical finding",
    "Key numbers or statistics (HR, OR, P values)",
    "Practical implication or main limitation"
  ],
  "study_n": <number of participants, or null>,
  "study_endpoint": "Primary endpoint",
  "study_limitations": "Main limitations",
  "clinical_insight": "How this changes practice: the 'so what' (under 300 characters)"
}}"""

ASK_SYSTEM_PROMPT = (
    "You answer questions about one medical paper for clinicians. Use only the paper summary you are given; "
    "say so when the answer is not in it. Keep answers under 150 words."
)

_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)
_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


def llm_configured() -> bool:
    return bool((settings.llm.api_key or "").strip() and (settings.llm.base_url or "").strip())


def get_client():
    """Build an OpenAI client from settings."""
    import openai

    return openai.OpenAI(
        api_key=settings.llm.api_key,
        base_url=settings.llm.base_url,
        timeout=settings.llm.timeout,
    )


def _complete(client, messages: list[dict[str, str]], *, temperature: float | None = None) -> str:
    response = client.chat.completions.create(
        model=settings.llm.name,
        messages=messages,
        temperature=settings.llm.temperature if temperature is None else temperature,
        max_tokens=settings.llm.max_tokens,
    )
    if not response.choices:
        return ""
    choice = response.choices[0]
    if getattr(choice, "finish_reason", None) == "length":
        logger.warning(f"LLM {settings.llm.name} response truncated (finish_reason=length)")
    return (choice.message.content or "").strip()


def extract_json(content: str) -> dict[str, Any] | None:
    """Pull the JSON object out of a model reply (fenced or bare)."""
    if not content:
        return None
    candidates = []
    fence = _FENCE_RE.search(content)
    if fence:
        candidates.append(fence.group(1))
    candidates.append(content.strip())
    obj = _OBJECT_RE.search(content)
    if obj:
        candidates.append(obj.group(0))
    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return data
    return None


def parse_summary(content: str) -> SummaryDraft | None:
    data = extract_json(content)
    if data is None:
        return None
    # Older prompts used title_ko for the headline
    if "title" not in data and data.get("title_ko"):
        data["title"] = data["title_ko"]
    try:
        return SummaryDraft.model_validate(data)
    except pydantic.ValidationError as exc:
        logger.warning(f"LLM summary failed validation: {exc.error_count()} errors")
        return None


def fallback_summary(draft: ArticleDraft, topic_label: str) -> SummaryDraft:
    """Summary used when the LLM is absent or its reply is unusable."""
    sentences = [s.strip() for s in re.split(r"(?<=[.!?])\s+", draft.abstract) if s.strip()]
    key_messages = [s if len(s) <= 200 else s[:197] + "..." for s in sentences[:3]]
    if not key_messages:
        key_messages = [f"A recent {topic_label.lower()} study; see the original paper for details."]
    return SummaryDraft(
        title=draft.title[:120],
        key_messages=key_messages,
        clinical_insight=f"Recent {topic_label.lower()} research worth reviewing for clinical relevance.",
    )


def summarize_draft(draft: ArticleDraft, topic_label: str, client=None) -> SummaryDraft:
    """Summarize a fetched paper, falling back to an extractive summary."""
    if client is None and not llm_configured():
        return fallback_summary(draft, topic_label)

    prompt = SUMMARY_PROMPT.format(
        title=draft.title,
        journal=draft.journal,
        doi=draft.doi or "N/A",
        topic=topic_label,
        abstract=draft.abstract[:6000],
    )
    try:
        client = client or get_client()
        content = _complete(
            client,
            [
                {"role": "system", "content": SUMMARY_SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
        )
    except Exception as e:
        logger.warning(f"LLM summary for PMID {draft.pmid} failed: {e}")
        return fallback_summary(draft, topic_label)

    summary = parse_summary(content)
    if summary is None:
        logger.warning(f"Unparseable LLM summary for PMID {draft.pmid} (length={len(content)})")
        return fallback_summary(draft, topic_label)
    return summary


def _article_context(article: dict) -> str:
    lines = [
        f"Title: {article.get('title')}",
        f"Original title: {article.get('original_title') or article.get('title')}",
        f"Journal: {article.get('journal')} ({article.get('published_at')})",
    ]
    if article.get("study_n"):
        lines.append(f"Participants: {article['study_n']}")
    if article.get("study_endpoint"):
        lines.append(f"Endpoint: {article['study_endpoint']}")
    if article.get("study_limitations"):
        lines.append(f"Limitations: {article['study_limitations']}")
    for msg in article.get("key_messages") or []:
        lines.append(f"- {msg}")
    if article.get("clinical_insight"):
        lines.append(f"Clinical insight: {article['clinical_insight']}")
    return "\n".join(lines)


def answer_question(article: dict, question: str, client=None) -> str:
    """Answer a reader's question about one article.

    Raises:
        UpstreamError: LLM not configured (503) or the call failed (502)
    """
    if client is None and not llm_configured():
        raise UpstreamError("AI assistant is not configured", status_code=503)
    try:
        client = client or get_client()
        answer = _complete(
            client,
            [
                {"role": "system", "content": ASK_SYSTEM_PROMPT},
                {"role": "user", "content": f"{_article_context(article)}\n\nQuestion: {question}"},
            ],
        )
    except Exception as e:
        logger.warning(f"LLM answer for {article.get('slug')} failed: {e}")
        raise UpstreamError("AI assistant request failed", status_code=502) from e
    if not answer:
        raise UpstreamError("AI assistant returned an empty answer", status_code=502)
    return answer
