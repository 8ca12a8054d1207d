"""
Utils for dealing with the PubMed E-utilities and Europe PMC REST APIs.

Every network or parse failure degrades to an empty result; callers never
see an exception from this module.
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass
from datetime import date
from xml.etree import ElementTree as ET

import requests
from loguru import logger

from config import settings

PUBMED_ESEARCH_API = "https://eutils.ncbi.nlm.nih.gov/entrez/eutils/esearch.fcgi"
PUBMED_EFETCH_API = "https://eutils.ncbi.nlm.nih.gov/entrez/eutils/efetch.fcgi"
EUROPEPMC_SEARCH_API = "https://www.ebi.ac.uk/europepmc/webservices/rest/search"

# Abstracts shorter than this are usually letters or errata
MIN_ABSTRACT_LENGTH = 100

_MONTHS = {
    "jan": 1,
    "feb": 2,
    "mar": 3,
    "apr": 4,
    "may": 5,
    "jun": 6,
    "jul": 7,
    "aug": 8,
    "sep": 9,
    "oct": 10,
    "nov": 11,
    "dec": 12,
}

_WS_RE = re.compile(r"\s+")
_TAG_RE = re.compile(r"<[^>]+>")


@dataclass
class ArticleDraft:
    """A fetched paper before summarization."""

    pmid: str
    title: str
    journal: str
    abstract: str
    doi: str = ""
    published_at: str = ""
    source: str = "pubmed"

    def to_dict(self) -> dict:
        return asdict(self)


def _clean(text: str) -> str:
    return _WS_RE.sub(" ", _TAG_RE.sub("", text or "")).strip()


def _node_text(node: ET.Element | None) -> str:
    if node is None:
        return ""
    return _clean("".join(node.itertext()))


def _parse_month(month: str) -> int:
    month = (month or "").strip().lower()
    if month.isdigit():
        return max(1, min(12, int(month)))
    return _MONTHS.get(month[:3], 1)


def parse_pubmed_date(node: ET.Element | None) -> str:
    """Turn an ArticleDate / PubDate element into YYYY-MM-DD ("" when unusable)."""
    if node is None:
        return ""
    year = (node.findtext("Year") or "").strip()
    if not year.isdigit():
        medline = (node.findtext("MedlineDate") or "").strip()
        match = re.match(r"(\d{4})", medline)
        if not match:
            return ""
        year = match.group(1)
    month = _parse_month(node.findtext("Month") or "")
    day_text = (node.findtext("Day") or "").strip()
    day = int(day_text) if day_text.isdigit() else 1
    try:
        return date(int(year), month, day).isoformat()
    except ValueError:
        return f"{year}-{month:02d}-01"


def parse_pubmed_xml(xml_text: str | bytes) -> list[ArticleDraft]:
    """Parse an efetch XML document into drafts. Malformed XML yields []."""
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as exc:
        logger.warning(f"PubMed XML parse failed: {exc}")
        return []

    drafts: list[ArticleDraft] = []
    for article in root.iter("PubmedArticle"):
        pmid = (article.findtext(".//MedlineCitation/PMID") or article.findtext(".//PMID") or "").strip()
        title = _node_text(article.find(".//ArticleTitle"))
        if not pmid or not title:
            continue

        abstract_parts = []
        for abs_node in article.findall(".//Abstract/AbstractText"):
            label = (abs_node.attrib.get("Label") or "").strip()
            txt = _node_text(abs_node)
            if txt:
                abstract_parts.append(f"{label}: {txt}" if label else txt)
        abstract = " ".join(abstract_parts)
        if len(abstract) <= MIN_ABSTRACT_LENGTH:
            logger.debug(f"skip PMID {pmid}: abstract too short")
            continue

        journal = (
            _node_text(article.find(".//Article/Journal/Title"))
            or _node_text(article.find(".//MedlineJournalInfo/MedlineTA"))
            or "PubMed"
        )

        doi = ""
        for aid in article.findall(".//ArticleIdList/ArticleId"):
            if (aid.attrib.get("IdType") or "").lower() == "doi":
                doi = (aid.text or "").strip()
                break

        published_at = parse_pubmed_date(article.find(".//Article/ArticleDate")) or parse_pubmed_date(
            article.find(".//Article/Journal/JournalIssue/PubDate")
        )

        drafts.append(
            ArticleDraft(
                pmid=pmid,
                title=title,
                journal=journal,
                abstract=abstract,
                doi=doi,
                published_at=published_at,
            )
        )
    return drafts


def _eutils_params(**params) -> dict:
    params["tool"] = settings.pubmed.tool
    if settings.pubmed.email:
        params["email"] = settings.pubmed.email
    return params


def search_pubmed(term: str, max_results: int, timeout: float) -> list[str]:
    """Return PMIDs for a search term, newest first."""
    resp = requests.get(
        PUBMED_ESEARCH_API,
        params=_eutils_params(db="pubmed", term=term, retmax=max_results, sort="date", retmode="json"),
        timeout=timeout,
    )
    resp.raise_for_status()
    payload = resp.json()
    if not isinstance(payload, dict):
        raise ValueError("esearch returned a non-object body")
    idlist = (payload.get("esearchresult") or {}).get("idlist") or []
    return [str(x).strip() for x in idlist if str(x).strip()]


def fetch_pubmed_details(pmids: list[str], timeout: float) -> list[ArticleDraft]:
    if not pmids:
        return []
    resp = requests.get(
        PUBMED_EFETCH_API,
        params=_eutils_params(db="pubmed", id=",".join(pmids), retmode="xml"),
        timeout=timeout,
    )
    resp.raise_for_status()
    return parse_pubmed_xml(resp.content)


def parse_europepmc_results(payload: dict) -> list[ArticleDraft]:
    """Parse a Europe PMC search response (resultType=core)."""
    drafts: list[ArticleDraft] = []
    if not isinstance(payload, dict):
        return drafts
    results = (payload.get("resultList") or {}).get("result") or []
    for item in results:
        if not isinstance(item, dict):
            continue
        pmid = str(item.get("pmid") or "").strip()
        title = _clean(item.get("title") or "")
        abstract = _clean(item.get("abstractText") or "")
        if not pmid or not title or len(abstract) <= MIN_ABSTRACT_LENGTH:
            continue
        journal = (
            ((item.get("journalInfo") or {}).get("journal") or {}).get("title")
            or item.get("journalTitle")
            or "Europe PMC"
        )
        drafts.append(
            ArticleDraft(
                pmid=pmid,
                title=title.rstrip("."),
                journal=_clean(journal),
                abstract=abstract,
                doi=str(item.get("doi") or "").strip(),
                published_at=str(item.get("firstPublicationDate") or "").strip(),
                source="europepmc",
            )
        )
    return drafts


def search_europepmc(term: str, max_results: int, timeout: float) -> list[ArticleDraft]:
    resp = requests.get(
        EUROPEPMC_SEARCH_API,
        params={
            "query": f"({term}) AND SRC:MED",
            "format": "json",
            "resultType": "core",
            "sort": "P_PDATE_D desc",
            "pageSize": max_results,
        },
        timeout=timeout,
    )
    resp.raise_for_status()
    return parse_europepmc_results(resp.json())


def build_query(term: str, year: int | None = None) -> str:
    """Restrict a search term to the current and previous publication year."""
    year = year or date.today().year
    return f"{term} AND ({year}[pdat] OR {year - 1}[pdat])"


def fetch_recent_papers(
    term: str,
    max_results: int | None = None,
    *,
    year: int | None = None,
    timeout: float | None = None,
) -> list[ArticleDraft]:
    """
    Fetch recent papers for a search term.

    PubMed is queried first; when it fails or returns nothing and the fallback
    is enabled, Europe PMC is tried. Any failure yields [].
    """
    max_results = max_results or settings.pubmed.max_results
    timeout = timeout or settings.pubmed.timeout

    drafts: list[ArticleDraft] = []
    try:
        pmids = search_pubmed(build_query(term, year), max_results, timeout)
        drafts = fetch_pubmed_details(pmids, timeout)
    except Exception as exc:
        logger.warning(f"PubMed fetch failed for '{term}': {exc}")

    if drafts or not settings.pubmed.europepmc_fallback:
        return drafts

    year = year or date.today().year
    try:
        drafts = search_europepmc(f"{term} AND (PUB_YEAR:{year} OR PUB_YEAR:{year - 1})", max_results, timeout)
    except Exception as exc:
        logger.warning(f"Europe PMC fetch failed for '{term}': {exc}")
        return []
    if drafts:
        logger.info(f"Europe PMC returned {len(drafts)} papers for '{term}'")
    return drafts
