"""Literature-search adapters and the ordered provider fallback chain."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from functools import partial
from typing import Any, TypedDict

import requests

from config import RoadmapConfig
from errors import ProviderFetchError, raise_if_cancelled
from models import ResearchPaper

SEMANTIC_SCHOLAR_API_URL = "https://api.semanticscholar.org/graph/v1/paper/search"
OPENALEX_API_URL = "https://api.openalex.org/works"
CORE_API_URL = "https://api.core.ac.uk/v3/search/works"
_SEMANTIC_SCHOLAR_FIELDS = "title,url,abstract,citationCount,authors"
_ERROR_BODY_MAX_LEN = 300

LOGGER = logging.getLogger(__name__)


# --- Provider payload schemas (only the fields we read) ---

class SemanticScholarAuthor(TypedDict, total=False):
    name: str


class SemanticScholarPaper(TypedDict, total=False):
    title: str | None
    url: str | None
    abstract: str | None
    citationCount: int | None
    authors: list[SemanticScholarAuthor] | None


class OpenAlexLocation(TypedDict, total=False):
    landing_page_url: str | None
    pdf_url: str | None


class OpenAlexAuthorship(TypedDict, total=False):
    author: dict[str, Any] | None


class OpenAlexWork(TypedDict, total=False):
    id: str | None
    display_name: str | None
    primary_location: OpenAlexLocation | None
    abstract_inverted_index: dict[str, list[int]] | None
    cited_by_count: int | None
    authorships: list[OpenAlexAuthorship] | None


class CoreWork(TypedDict, total=False):
    title: str | None
    doi: str | None
    downloadUrl: str | None
    abstract: str | None
    citationCount: int | None
    authors: list[Any] | None


@dataclass(frozen=True, slots=True)
class PaperProvider:
    """A named adapter; the chain only ever iterates these in order."""

    name: str
    fetch: Callable[[str], list[ResearchPaper]]


# --- Fallback chain ---

def fetch_related_papers(
    topic: str,
    providers: Sequence[PaperProvider] | None = None,
    config: RoadmapConfig | None = None,
    cancel_event: threading.Event | None = None,
) -> list[ResearchPaper]:
    """Return papers from the first provider that yields any, else [].

    Never raises for provider failures: each one is classified, logged and
    skipped. Only cancellation propagates.
    """
    if providers is None:
        providers = default_providers(config or RoadmapConfig.from_env())

    for provider in providers:
        raise_if_cancelled(cancel_event, f"querying {provider.name}")
        LOGGER.info("Attempting to fetch papers from %s", provider.name)
        try:
            papers = provider.fetch(topic)
        except ProviderFetchError as exc:
            if exc.reason == "rate_limited":
                LOGGER.warning("Rate limit hit for %s, falling back: %s", provider.name, exc)
            else:
                LOGGER.error("Fetch from %s failed (%s): %s", provider.name, exc.reason, exc)
            continue
        except Exception as exc:  # broad so one broken adapter never stops the chain
            LOGGER.error(
                "Fetch from %s failed (%s): %s", provider.name, classify_failure(exc), exc
            )
            continue

        if papers:
            LOGGER.info("Fetched %s papers from %s", len(papers), provider.name)
            return list(papers)
        LOGGER.warning("%s returned successfully but found 0 papers", provider.name)

    LOGGER.warning("All paper providers failed or returned no results")
    return []


def default_providers(config: RoadmapConfig) -> list[PaperProvider]:
    """Fixed priority order: cheapest and most permissive first."""
    return [
        PaperProvider("Semantic Scholar", partial(fetch_from_semantic_scholar, config=config)),
        PaperProvider("OpenAlex", partial(fetch_from_openalex, config=config)),
        PaperProvider("CORE", partial(fetch_from_core, config=config)),
    ]


def classify_failure(exc: BaseException) -> str:
    if isinstance(exc, ProviderFetchError):
        return exc.reason
    if isinstance(exc, requests.HTTPError):
        response = exc.response
        if response is not None and response.status_code == 429:
            return "rate_limited"
        return "http_error"
    if isinstance(exc, requests.RequestException):
        return "network"
    if isinstance(exc, (KeyError, TypeError, ValueError, AttributeError)):
        return "bad_shape"
    return "unexpected"


# --- Adapters ---

def fetch_from_semantic_scholar(query: str, *, config: RoadmapConfig) -> list[ResearchPaper]:
    headers = {"Accept": "application/json"}
    if config.semantic_scholar_api_key:
        headers["x-api-key"] = config.semantic_scholar_api_key

    body = _get_json(
        "Semantic Scholar",
        SEMANTIC_SCHOLAR_API_URL,
        params={"query": query, "fields": _SEMANTIC_SCHOLAR_FIELDS, "limit": config.paper_max_results},
        headers=headers,
        timeout=config.provider_timeout_seconds,
    )
    # Zero hits come back as {"total": 0, "offset": 0} with no "data" key.
    if isinstance(body, dict) and body.get("total") == 0 and "data" not in body:
        return []
    items: list[SemanticScholarPaper] = _result_list("Semantic Scholar", body, "data")
    return [_from_semantic_scholar(item) for item in items if isinstance(item, dict)]


def fetch_from_openalex(query: str, *, config: RoadmapConfig) -> list[ResearchPaper]:
    params: dict[str, Any] = {"search": query, "per_page": config.paper_max_results}
    if config.openalex_mailto:
        params["mailto"] = config.openalex_mailto

    body = _get_json(
        "OpenAlex",
        OPENALEX_API_URL,
        params=params,
        headers={"Accept": "application/json"},
        timeout=config.provider_timeout_seconds,
    )
    items: list[OpenAlexWork] = _result_list("OpenAlex", body, "results")
    return [_from_openalex(item) for item in items if isinstance(item, dict)]


def fetch_from_core(query: str, *, config: RoadmapConfig) -> list[ResearchPaper]:
    if not config.core_api_key:
        raise ProviderFetchError("CORE", "not_configured", "CORE_API_KEY is not configured")

    body = _get_json(
        "CORE",
        CORE_API_URL,
        params={"q": query, "limit": config.paper_max_results},
        headers={"Accept": "application/json", "Authorization": f"Bearer {config.core_api_key}"},
        timeout=config.provider_timeout_seconds,
    )
    items: list[CoreWork] = _result_list("CORE", body, "results")
    return [_from_core(item) for item in items if isinstance(item, dict)]


def invert_abstract(inverted_index: Mapping[str, Sequence[int]] | None) -> str:
    """Rebuild an abstract from OpenAlex's word -> positions index."""
    if not inverted_index:
        return "No abstract available"

    words_by_position: dict[int, str] = {}
    for word, positions in inverted_index.items():
        for position in positions or ():
            words_by_position[int(position)] = word

    if not words_by_position:
        return "No abstract available"
    return " ".join(words_by_position[pos] for pos in sorted(words_by_position))


# --- Schema mapping ---

def _from_semantic_scholar(item: SemanticScholarPaper) -> ResearchPaper:
    url = _as_str(item.get("url")) or ""
    names = [_as_str(author.get("name")) for author in item.get("authors") or [] if isinstance(author, dict)]
    return ResearchPaper(
        title=_as_str(item.get("title")) or "Untitled",
        url=url,
        paper_link=url,
        abstract=_as_str(item.get("abstract")) or "No abstract available",
        citation_count=_as_count(item.get("citationCount")),
        authors=", ".join(name for name in names if name) or "Unknown authors",
    )


def _from_openalex(item: OpenAlexWork) -> ResearchPaper:
    work_id = _as_str(item.get("id"))
    location = item.get("primary_location") or {}
    names = [
        _as_str((authorship.get("author") or {}).get("display_name"))
        for authorship in item.get("authorships") or []
        if isinstance(authorship, dict)
    ]
    return ResearchPaper(
        title=_as_str(item.get("display_name")) or "Untitled",
        url=f"https://openalex.org/{work_id.rstrip('/').rsplit('/', 1)[-1]}" if work_id else "",
        paper_link=_as_str(location.get("landing_page_url")) or _as_str(location.get("pdf_url")) or "",
        abstract=invert_abstract(item.get("abstract_inverted_index")),
        citation_count=_as_count(item.get("cited_by_count")),
        authors=", ".join(name for name in names if name) or "Unknown authors",
    )


def _from_core(item: CoreWork) -> ResearchPaper:
    doi = _as_str(item.get("doi"))
    doi_url = f"https://doi.org/{doi.removeprefix('https://doi.org/')}" if doi else ""
    download_url = _as_str(item.get("downloadUrl")) or ""

    names: list[str] = []
    for author in item.get("authors") or []:
        name = _as_str(author.get("name")) if isinstance(author, dict) else _as_str(author)
        if name:
            names.append(name)

    return ResearchPaper(
        title=_as_str(item.get("title")) or "Untitled",
        url=doi_url or download_url,
        paper_link=download_url or doi_url,
        abstract=_as_str(item.get("abstract")) or "No abstract available",
        citation_count=_as_count(item.get("citationCount")),
        authors=", ".join(names) or "Unknown authors",
    )


# --- HTTP helpers ---

def _get_json(
    provider: str,
    url: str,
    *,
    params: dict[str, Any],
    headers: dict[str, str],
    timeout: float,
) -> Any:
    try:
        response = requests.get(url, params=params, headers=headers, timeout=timeout)
    except requests.RequestException as exc:
        raise ProviderFetchError(provider, "network", str(exc)) from exc

    if response.status_code == 429:
        raise ProviderFetchError(provider, "rate_limited", "HTTP 429 Too Many Requests")
    try:
        response.raise_for_status()
    except requests.HTTPError as exc:
        detail = (response.text or "")[:_ERROR_BODY_MAX_LEN]
        raise ProviderFetchError(
            provider, "http_error", f"Status {response.status_code}: {detail}"
        ) from exc

    try:
        return response.json()
    except ValueError as exc:
        raise ProviderFetchError(provider, "bad_shape", "Response body is not JSON") from exc


def _result_list(provider: str, body: Any, key: str) -> list[Any]:
    items = body.get(key) if isinstance(body, dict) else None
    if not isinstance(items, list):
        raise ProviderFetchError(provider, "bad_shape", f"Expected a list under {key!r}")
    return items


def _as_str(value: Any) -> str | None:
    return value.strip() if isinstance(value, str) and value.strip() else None


def _as_count(value: Any) -> int:
    try:
        count = int(value)
    except (TypeError, ValueError):
        return 0
    return max(count, 0)
