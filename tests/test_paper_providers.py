import threading
from unittest.mock import MagicMock, patch

import pytest
import requests

from config import RoadmapConfig
from errors import PipelineCancelledError, ProviderFetchError
from models import ResearchPaper
from paper_providers import (
    PaperProvider,
    classify_failure,
    default_providers,
    fetch_from_core,
    fetch_from_openalex,
    fetch_from_semantic_scholar,
    fetch_related_papers,
    invert_abstract,
)

_CONFIG = RoadmapConfig(core_api_key="core-key", provider_timeout_seconds=7.5, paper_max_results=5)


def _papers(count: int, prefix: str = "Paper") -> list[ResearchPaper]:
    return [ResearchPaper(title=f"{prefix} {i}", abstract=f"Abstract {i}") for i in range(count)]


def _mock_resp(payload: object, status_code: int = 200) -> MagicMock:
    mock = MagicMock()
    mock.status_code = status_code
    mock.text = "upstream error body"
    mock.json.return_value = payload
    if status_code >= 400:
        mock.raise_for_status.side_effect = requests.HTTPError(f"{status_code} error", response=mock)
    return mock


# ---------------------------------------------------------------------------
# Abstract inversion
# ---------------------------------------------------------------------------

def test_invert_abstract_simple() -> None:
    assert invert_abstract({"quick": [0], "fox": [1]}) == "quick fox"


def test_invert_abstract_orders_by_position_regardless_of_key_order() -> None:
    index = {"fox": [3], "the": [2, 0], "quick": [1]}
    assert invert_abstract(index) == "the quick the fox"


def test_invert_abstract_with_gaps_in_positions() -> None:
    assert invert_abstract({"end": [40], "start": [2], "middle": [17]}) == "start middle end"


@pytest.mark.parametrize("index", [None, {}, {"orphan": []}])
def test_invert_abstract_defaults_when_empty(index: dict | None) -> None:
    assert invert_abstract(index) == "No abstract available"


# ---------------------------------------------------------------------------
# Fallback chain
# ---------------------------------------------------------------------------

def test_first_non_empty_provider_short_circuits() -> None:
    first = MagicMock(return_value=_papers(2))
    second = MagicMock(return_value=_papers(4))
    providers = [PaperProvider("A", first), PaperProvider("B", second)]

    result = fetch_related_papers("graph neural networks", providers)

    assert len(result) == 2
    first.assert_called_once_with("graph neural networks")
    second.assert_not_called()


def test_empty_result_falls_through_to_next_provider() -> None:
    topic = "effect of remote work on productivity"
    adapter_a = MagicMock(return_value=[])
    adapter_b = MagicMock(return_value=_papers(3, prefix="Remote"))
    adapter_c = MagicMock(return_value=_papers(5))
    providers = [PaperProvider("A", adapter_a), PaperProvider("B", adapter_b), PaperProvider("C", adapter_c)]

    result = fetch_related_papers(topic, providers)

    assert result == adapter_b.return_value
    adapter_a.assert_called_once_with(topic)
    adapter_b.assert_called_once_with(topic)
    adapter_c.assert_not_called()


def test_all_providers_failing_returns_empty_list() -> None:
    providers = [
        PaperProvider("A", MagicMock(side_effect=ProviderFetchError("A", "rate_limited", "HTTP 429"))),
        PaperProvider("B", MagicMock(side_effect=requests.ConnectionError("refused"))),
        PaperProvider("C", MagicMock(side_effect=KeyError("results"))),
    ]

    assert fetch_related_papers("quantum error correction", providers) == []
    for provider in providers:
        provider.fetch.assert_called_once()


def test_failure_then_success_returns_later_provider_results() -> None:
    providers = [
        PaperProvider("A", MagicMock(side_effect=requests.Timeout("slow"))),
        PaperProvider("B", MagicMock(return_value=_papers(1))),
    ]

    assert [p.title for p in fetch_related_papers("topic", providers)] == ["Paper 0"]


def test_cancelled_chain_stops_before_next_provider() -> None:
    cancel_event = threading.Event()
    cancel_event.set()
    adapter = MagicMock(return_value=_papers(1))

    with pytest.raises(PipelineCancelledError):
        fetch_related_papers("topic", [PaperProvider("A", adapter)], cancel_event=cancel_event)

    adapter.assert_not_called()


def test_default_providers_priority_order() -> None:
    assert [p.name for p in default_providers(_CONFIG)] == ["Semantic Scholar", "OpenAlex", "CORE"]


def test_default_chain_reads_provider_credentials_from_environment() -> None:
    env = {"CORE_API_KEY": "env-core-key", "SEMANTIC_SCHOLAR_API_KEY": "env-s2-key"}

    with patch.dict("os.environ", env, clear=True), \
         patch("paper_providers.default_providers", return_value=[]) as mock_defaults:
        assert fetch_related_papers("topic") == []

    config = mock_defaults.call_args.args[0]
    assert config.core_api_key == "env-core-key"
    assert config.semantic_scholar_api_key == "env-s2-key"


@pytest.mark.parametrize(("exc", "expected"), [
    (ProviderFetchError("X", "bad_shape", "nope"), "bad_shape"),
    (requests.HTTPError("429", response=MagicMock(status_code=429)), "rate_limited"),
    (requests.HTTPError("500", response=MagicMock(status_code=500)), "http_error"),
    (requests.ConnectionError("down"), "network"),
    (TypeError("bad"), "bad_shape"),
    (RuntimeError("?"), "unexpected"),
])
def test_classify_failure(exc: Exception, expected: str) -> None:
    assert classify_failure(exc) == expected


# ---------------------------------------------------------------------------
# Semantic Scholar adapter
# ---------------------------------------------------------------------------

def test_semantic_scholar_maps_fields_and_defaults() -> None:
    payload = {
        "data": [
            {
                "title": "Remote Work and Output",
                "url": "https://www.semanticscholar.org/paper/abc",
                "abstract": "We study remote work.",
                "citationCount": 12,
                "authors": [{"name": "Ada Lovelace"}, {"name": "Alan Turing"}],
            },
            {"title": None, "url": None, "abstract": None, "citationCount": None, "authors": []},
        ]
    }

    with patch("paper_providers.requests.get", return_value=_mock_resp(payload)) as mock_get:
        papers = fetch_from_semantic_scholar("remote work", config=_CONFIG)

    assert papers[0] == ResearchPaper(
        title="Remote Work and Output",
        url="https://www.semanticscholar.org/paper/abc",
        paper_link="https://www.semanticscholar.org/paper/abc",
        abstract="We study remote work.",
        citation_count=12,
        authors="Ada Lovelace, Alan Turing",
    )
    assert papers[1] == ResearchPaper()
    assert mock_get.call_args.kwargs["timeout"] == 7.5
    assert mock_get.call_args.kwargs["params"]["limit"] == 5


def test_semantic_scholar_rate_limit_is_classified() -> None:
    with patch("paper_providers.requests.get", return_value=_mock_resp({}, status_code=429)):
        with pytest.raises(ProviderFetchError) as exc_info:
            fetch_from_semantic_scholar("topic", config=_CONFIG)

    assert exc_info.value.reason == "rate_limited"


def test_semantic_scholar_zero_total_is_empty_not_error() -> None:
    with patch("paper_providers.requests.get", return_value=_mock_resp({"total": 0, "offset": 0})):
        assert fetch_from_semantic_scholar("obscure topic", config=_CONFIG) == []


def test_semantic_scholar_sends_api_key_header_when_configured() -> None:
    config = RoadmapConfig(semantic_scholar_api_key="s2-key")

    with patch("paper_providers.requests.get", return_value=_mock_resp({"data": []})) as mock_get:
        fetch_from_semantic_scholar("topic", config=config)

    assert mock_get.call_args.kwargs["headers"]["x-api-key"] == "s2-key"


def test_network_error_is_wrapped() -> None:
    with patch("paper_providers.requests.get", side_effect=requests.ConnectTimeout("timed out")):
        with pytest.raises(ProviderFetchError) as exc_info:
            fetch_from_semantic_scholar("topic", config=_CONFIG)

    assert exc_info.value.reason == "network"


def test_server_error_is_classified_as_http_error() -> None:
    with patch("paper_providers.requests.get", return_value=_mock_resp({}, status_code=503)):
        with pytest.raises(ProviderFetchError) as exc_info:
            fetch_from_openalex("topic", config=_CONFIG)

    assert exc_info.value.reason == "http_error"
    assert "503" in str(exc_info.value)


# ---------------------------------------------------------------------------
# OpenAlex adapter
# ---------------------------------------------------------------------------

def test_openalex_maps_fields_and_reconstructs_abstract() -> None:
    payload = {
        "results": [
            {
                "id": "https://openalex.org/W2741809807",
                "display_name": "Working From Home",
                "primary_location": {"landing_page_url": None, "pdf_url": "https://example.org/wfh.pdf"},
                "abstract_inverted_index": {"productivity": [2], "Remote": [0], "boosts": [1]},
                "cited_by_count": 88,
                "authorships": [{"author": {"display_name": "Nicholas Bloom"}}, {"author": None}],
            }
        ]
    }

    with patch("paper_providers.requests.get", return_value=_mock_resp(payload)):
        [paper] = fetch_from_openalex("remote work", config=_CONFIG)

    assert paper.title == "Working From Home"
    assert paper.url == "https://openalex.org/W2741809807"
    assert paper.paper_link == "https://example.org/wfh.pdf"
    assert paper.abstract == "Remote boosts productivity"
    assert paper.citation_count == 88
    assert paper.authors == "Nicholas Bloom"


def test_openalex_missing_fields_use_defaults() -> None:
    with patch("paper_providers.requests.get", return_value=_mock_resp({"results": [{}]})):
        [paper] = fetch_from_openalex("topic", config=_CONFIG)

    assert paper == ResearchPaper()


def test_openalex_passes_mailto_when_configured() -> None:
    config = RoadmapConfig(openalex_mailto="team@example.org")

    with patch("paper_providers.requests.get", return_value=_mock_resp({"results": []})) as mock_get:
        assert fetch_from_openalex("topic", config=config) == []

    assert mock_get.call_args.kwargs["params"]["mailto"] == "team@example.org"


def test_openalex_unexpected_shape_raises_bad_shape() -> None:
    with patch("paper_providers.requests.get", return_value=_mock_resp({"results": None})):
        with pytest.raises(ProviderFetchError) as exc_info:
            fetch_from_openalex("topic", config=_CONFIG)

    assert exc_info.value.reason == "bad_shape"


# ---------------------------------------------------------------------------
# CORE adapter
# ---------------------------------------------------------------------------

def test_core_requires_api_key_without_network_call() -> None:
    with patch("paper_providers.requests.get") as mock_get:
        with pytest.raises(ProviderFetchError) as exc_info:
            fetch_from_core("topic", config=RoadmapConfig())

    assert exc_info.value.reason == "not_configured"
    mock_get.assert_not_called()


def test_core_maps_doi_download_url_and_mixed_authors() -> None:
    payload = {
        "results": [
            {
                "title": "Open Access Study",
                "doi": "10.1000/xyz",
                "downloadUrl": "https://core.ac.uk/download/1.pdf",
                "abstract": "Findings.",
                "citationCount": 3,
                "authors": [{"name": "Grace Hopper"}, "Katherine Johnson"],
            },
            {"title": "No DOI", "downloadUrl": "https://core.ac.uk/download/2.pdf", "citationCount": -4},
            {"title": "DOI only", "doi": "10.1000/abc"},
        ]
    }

    with patch("paper_providers.requests.get", return_value=_mock_resp(payload)) as mock_get:
        first, second, third = fetch_from_core("open access", config=_CONFIG)

    assert first.url == "https://doi.org/10.1000/xyz"
    assert first.paper_link == "https://core.ac.uk/download/1.pdf"
    assert first.authors == "Grace Hopper, Katherine Johnson"
    assert second.url == second.paper_link == "https://core.ac.uk/download/2.pdf"
    assert second.citation_count == 0
    assert second.authors == "Unknown authors"
    assert third.url == third.paper_link == "https://doi.org/10.1000/abc"
    assert mock_get.call_args.kwargs["headers"]["Authorization"] == "Bearer core-key"
