"""Runtime configuration for the roadmap pipeline."""

from __future__ import annotations

import os
from dataclasses import dataclass

_DEFAULT_GEMINI_MODEL = "gemini-1.5-flash-latest"
_DEFAULT_OPENAI_MODEL = "gpt-4o-mini"
_SUPPORTED_LLM_PROVIDERS: frozenset[str] = frozenset({"gemini", "openai"})
_TRUE_VALUES: frozenset[str] = frozenset({"1", "true", "yes", "on"})


@dataclass(frozen=True, slots=True)
class RoadmapConfig:
    """Explicit settings handed to the pipeline constructor.

    Credentials are optional here on purpose: a missing key only fails the
    call that needs it (the gateway, or the CORE adapter), never construction.
    """

    llm_provider: str = "gemini"
    google_api_key: str | None = None
    gemini_model: str = _DEFAULT_GEMINI_MODEL
    openai_api_key: str | None = None
    openai_model: str = _DEFAULT_OPENAI_MODEL
    llm_temperature: float = 0.2
    llm_timeout_seconds: float = 60.0
    semantic_scholar_api_key: str | None = None
    core_api_key: str | None = None
    openalex_mailto: str | None = None
    paper_max_results: int = 10
    provider_timeout_seconds: float = 20.0
    concurrent_stages: bool = False
    max_workers: int = 3

    def __post_init__(self) -> None:
        if self.llm_provider not in _SUPPORTED_LLM_PROVIDERS:
            raise ValueError(
                f"Unsupported LLM_PROVIDER={self.llm_provider!r}; "
                f"expected one of {sorted(_SUPPORTED_LLM_PROVIDERS)}"
            )
        if not 0.0 <= self.llm_temperature <= 2.0:
            raise ValueError("LLM_TEMPERATURE must be between 0 and 2")
        if self.llm_timeout_seconds <= 0 or self.provider_timeout_seconds <= 0:
            raise ValueError("Timeouts must be positive")
        if self.paper_max_results < 1:
            raise ValueError("PAPER_MAX_RESULTS must be at least 1")
        if self.max_workers < 1:
            raise ValueError("ROADMAP_MAX_WORKERS must be at least 1")

    @classmethod
    def from_env(cls) -> RoadmapConfig:
        """Build a config from environment variables (call load_dotenv first)."""
        return cls(
            llm_provider=os.getenv("LLM_PROVIDER", "gemini").strip().lower(),
            google_api_key=_optional("GOOGLE_API_KEY"),
            gemini_model=os.getenv("GEMINI_MODEL", _DEFAULT_GEMINI_MODEL),
            openai_api_key=_optional("OPENAI_API_KEY"),
            openai_model=os.getenv("OPENAI_MODEL", _DEFAULT_OPENAI_MODEL),
            llm_temperature=float(os.getenv("LLM_TEMPERATURE", "0.2")),
            llm_timeout_seconds=float(os.getenv("LLM_TIMEOUT_SECONDS", "60")),
            semantic_scholar_api_key=_optional("SEMANTIC_SCHOLAR_API_KEY"),
            core_api_key=_optional("CORE_API_KEY"),
            openalex_mailto=_optional("OPENALEX_MAILTO"),
            paper_max_results=int(os.getenv("PAPER_MAX_RESULTS", "10")),
            provider_timeout_seconds=float(os.getenv("PROVIDER_TIMEOUT_SECONDS", "20")),
            concurrent_stages=os.getenv("ROADMAP_CONCURRENT_STAGES", "").strip().lower() in _TRUE_VALUES,
            max_workers=int(os.getenv("ROADMAP_MAX_WORKERS", "3")),
        )


def _optional(name: str) -> str | None:
    value = os.getenv(name, "").strip()
    return value or None
