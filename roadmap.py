"""Roadmap pipeline: sequences the six stages and aggregates partial failures."""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

from config import RoadmapConfig
from errors import PipelineCancelledError, PipelineError, RoadmapError, raise_if_cancelled
from json_extract import extract_json
from llm_gateway import TextGateway, build_gateway
from models import ResearchPaper, RoadmapResult, StageOutcome
from paper_providers import PaperProvider, default_providers, fetch_related_papers
from prompts import (
    methodology_prompt,
    pros_cons_prompt,
    rank_papers_prompt,
    research_gaps_prompt,
    step_by_step_prompt,
)

STAGE_STEP_PLAN = "step_plan"
STAGE_RANKED_PAPERS = "ranked_papers"
STAGE_METHODOLOGY = "methodology"
STAGE_GAP_ANALYSIS = "gap_analysis"
STAGE_PROS_AND_CONS = "pros_and_cons"

# A failure in one of these stages aborts the rest of the run. Every other
# stage degrades in place to an inline error marker.
CRITICAL_STAGES: frozenset[str] = frozenset({STAGE_STEP_PLAN, STAGE_METHODOLOGY})

ABSTRACT_SEPARATOR = "\n\n---\n\n"

_STAGE_CONTEXTS: dict[str, str] = {
    STAGE_STEP_PLAN: "step-by-step guide",
    STAGE_RANKED_PAPERS: "rank and summarize papers",
    STAGE_METHODOLOGY: "methodology",
    STAGE_GAP_ANALYSIS: "research gap analysis",
    STAGE_PROS_AND_CONS: "pros and cons",
}

_ERROR_MARKERS: dict[str, object] = {
    STAGE_STEP_PLAN: [{"error": "Failed to generate the step-by-step guide."}],
    STAGE_RANKED_PAPERS: [{"error": "Failed to rank and summarize research papers."}],
    STAGE_METHODOLOGY: {"error": "Failed to generate the research methodology."},
    STAGE_GAP_ANALYSIS: {"error": "Failed to generate the research gap analysis."},
    STAGE_PROS_AND_CONS: {"error": "Failed to generate the pros and cons analysis."},
}

LOGGER = logging.getLogger(__name__)


@dataclass
class _RunState:
    """Everything captured so far; survives an aborted run."""

    outcomes: dict[str, StageOutcome] = field(default_factory=dict)
    papers: list[ResearchPaper] = field(default_factory=list)

    def raw(self, stage: str) -> str | None:
        outcome = self.outcomes.get(stage)
        return outcome.raw if outcome else None


class RoadmapPipeline:
    """Turns one topic into a RoadmapResult. Never raises from generate()."""

    def __init__(
        self,
        config: RoadmapConfig | None = None,
        gateway: TextGateway | None = None,
        providers: Sequence[PaperProvider] | None = None,
        critical_stages: frozenset[str] = CRITICAL_STAGES,
    ) -> None:
        self._config = config or RoadmapConfig.from_env()
        self._gateway = gateway or build_gateway(self._config)
        self._providers = list(providers) if providers is not None else default_providers(self._config)
        self._critical_stages = critical_stages

    def generate(self, topic: str, cancel_event: threading.Event | None = None) -> RoadmapResult:
        """Run every stage for ``topic`` and return a best-effort result.

        ``cancel_event`` stops further external calls once set; the pipeline
        also sets it itself when a critical stage aborts a concurrent run.
        """
        if not isinstance(topic, str) or not topic.strip():
            return RoadmapResult(topic=topic if isinstance(topic, str) else "", error="Topic must be a non-empty string")

        cancel_event = cancel_event or threading.Event()
        state = _RunState()
        try:
            self._run_stages(topic, state, cancel_event)
        except RoadmapError as exc:
            LOGGER.error("Roadmap generation aborted for topic=%r: %s", topic, exc)
            return self._aggregate(topic, state, failure=str(exc))
        except Exception as exc:  # outermost boundary: callers never see an exception
            LOGGER.exception("Unexpected error generating roadmap for topic=%r", topic)
            return self._aggregate(topic, state, failure=str(exc) or type(exc).__name__)

        return self._aggregate(topic, state, failure=None)

    def _run_stages(self, topic: str, state: _RunState, cancel_event: threading.Event) -> None:
        self._run_stage(STAGE_STEP_PLAN, step_by_step_prompt(topic), state, cancel_event)

        raise_if_cancelled(cancel_event, "fetching related papers")
        state.papers = fetch_related_papers(topic, self._providers, cancel_event=cancel_event)

        paper_details = json.dumps([paper.to_dict() for paper in state.papers], indent=2)
        abstracts = ABSTRACT_SEPARATOR.join(paper.abstract for paper in state.papers)
        corpus_stages = [
            (STAGE_RANKED_PAPERS, rank_papers_prompt(topic, paper_details)),
            (STAGE_GAP_ANALYSIS, research_gaps_prompt(abstracts, topic)),
            (STAGE_PROS_AND_CONS, pros_cons_prompt(abstracts, topic)),
        ]

        if self._config.concurrent_stages:
            self._run_corpus_stages_concurrently(topic, corpus_stages, state, cancel_event)
            return

        ranked_stage, gaps_stage, pros_cons_stage = corpus_stages
        self._run_stage(*ranked_stage, state, cancel_event)
        self._run_stage(STAGE_METHODOLOGY, methodology_prompt(topic), state, cancel_event)
        self._run_stage(*gaps_stage, state, cancel_event)
        self._run_stage(*pros_cons_stage, state, cancel_event)

    def _run_corpus_stages_concurrently(
        self,
        topic: str,
        corpus_stages: list[tuple[str, str]],
        state: _RunState,
        cancel_event: threading.Event,
    ) -> None:
        with ThreadPoolExecutor(
            max_workers=self._config.max_workers, thread_name_prefix="roadmap-stage"
        ) as pool:
            futures = [
                pool.submit(self._run_stage, stage, prompt, state, cancel_event)
                for stage, prompt in corpus_stages
            ]
            try:
                self._run_stage(STAGE_METHODOLOGY, methodology_prompt(topic), state, cancel_event)
            except BaseException:
                cancel_event.set()
                raise
            for future in futures:
                future.result()

    def _run_stage(
        self, stage: str, prompt: str, state: _RunState, cancel_event: threading.Event
    ) -> StageOutcome:
        context = _STAGE_CONTEXTS[stage]
        raise_if_cancelled(cancel_event, context)
        try:
            raw = self._gateway.call(prompt, context, cancel_event=cancel_event)
        except PipelineCancelledError:
            raise
        except Exception as exc:  # criticality decides between abort and inline marker
            if stage in self._critical_stages:
                state.outcomes[stage] = StageOutcome(stage, failure=str(exc) or type(exc).__name__)
                raise PipelineError(f"Stage '{context}' failed: {exc}") from exc
            LOGGER.error("Stage '%s' failed, continuing with an error marker: %s", context, exc)
            outcome = StageOutcome(
                stage, raw=json.dumps(_ERROR_MARKERS[stage]), failure=str(exc) or type(exc).__name__
            )
        else:
            outcome = StageOutcome(stage, raw=raw)

        state.outcomes[stage] = outcome
        return outcome

    def _aggregate(self, topic: str, state: _RunState, failure: str | None) -> RoadmapResult:
        suffix = " (on error)" if failure else ""
        LOGGER.info("Parsing generated sections for topic=%r", topic)
        result = RoadmapResult(
            topic=topic,
            step_plan=extract_json(state.raw(STAGE_STEP_PLAN), f"stepPlan{suffix}"),
            ranked_papers=extract_json(state.raw(STAGE_RANKED_PAPERS), f"rankedPapers{suffix}"),
            methodology=extract_json(state.raw(STAGE_METHODOLOGY), f"methodology{suffix}"),
            gap_analysis=extract_json(state.raw(STAGE_GAP_ANALYSIS), f"gapAnalysis{suffix}"),
            pros_and_cons=extract_json(state.raw(STAGE_PROS_AND_CONS), f"prosAndCons{suffix}"),
            papers=list(state.papers),
            stage_failures={
                stage: outcome.failure
                for stage, outcome in state.outcomes.items()
                if not outcome.ok
            },
        )

        if failure:
            result.error = f"Failed to generate research roadmap: {failure}"
            return result

        missing = result.missing_sections()
        if missing:
            LOGGER.error("Sections failed to parse for topic=%r: %s", topic, ", ".join(missing))
            result.error = (
                f"Failed to parse the following sections from the AI: {', '.join(missing)}. "
                "The structure might be invalid."
            )
        return result


def generate_roadmap(
    topic: str,
    config: RoadmapConfig | None = None,
    cancel_event: threading.Event | None = None,
) -> RoadmapResult:
    """One-shot helper: build a pipeline from ``config`` and run it."""
    return RoadmapPipeline(config).generate(topic, cancel_event=cancel_event)
