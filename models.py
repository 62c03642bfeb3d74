"""Shared typed models for the roadmap pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class ResearchPaper:
    """Normalized paper record produced by every provider adapter."""

    title: str = "Untitled"
    url: str = ""
    paper_link: str = ""
    abstract: str = "No abstract available"
    citation_count: int = 0
    authors: str = "Unknown authors"

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "url": self.url,
            "paperLink": self.paper_link,
            "abstract": self.abstract,
            "citationCount": self.citation_count,
            "authors": self.authors,
        }


@dataclass(frozen=True, slots=True)
class StageOutcome:
    """Raw generated text for one stage, or the reason it is missing."""

    stage: str
    raw: str | None = None
    failure: str | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None


@dataclass(slots=True)
class RoadmapResult:
    """Aggregate returned for one topic; built fresh per request."""

    topic: str
    step_plan: Any | None = None
    ranked_papers: Any | None = None
    methodology: Any | None = None
    gap_analysis: Any | None = None
    pros_and_cons: Any | None = None
    error: str | None = None
    papers: list[ResearchPaper] = field(default_factory=list)
    # stage id -> reason, for stages whose generation call failed
    stage_failures: dict[str, str] = field(default_factory=dict)

    def missing_sections(self) -> list[str]:
        """Human-readable names of the sections that parsed to None."""
        sections = [
            ("step-by-step guide", self.step_plan),
            ("ranked papers", self.ranked_papers),
            ("methodology", self.methodology),
            ("research gaps", self.gap_analysis),
            ("pros and cons", self.pros_and_cons),
        ]
        return [name for name, value in sections if value is None]

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "topic": self.topic,
            "stepPlan": self.step_plan,
            "rankedPapers": self.ranked_papers,
            "methodology": self.methodology,
            "gapAnalysis": self.gap_analysis,
            "prosAndCons": self.pros_and_cons,
            "papers": [paper.to_dict() for paper in self.papers],
        }
        if self.stage_failures:
            data["stageFailures"] = dict(self.stage_failures)
        if self.error:
            data["error"] = self.error
        return data
