"""Error taxonomy shared by the providers, the gateway and the orchestrator."""

from __future__ import annotations

import threading


class RoadmapError(RuntimeError):
    """Base class for every error raised by the roadmap pipeline."""


class ProviderFetchError(RoadmapError):
    """A literature-search adapter could not produce a usable response.

    ``reason`` is one of ``rate_limited``, ``http_error``, ``network``,
    ``bad_shape`` or ``not_configured``.
    """

    def __init__(self, provider: str, reason: str, message: str) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.reason = reason


class GenerationError(RoadmapError):
    """The generative text service could not be reached or is not configured."""


class GenerationEnvelopeError(GenerationError):
    """The service answered, but the envelope carries no usable text."""


class PipelineError(RoadmapError):
    """A critical stage failed and the remaining stages were skipped."""


class PipelineCancelledError(RoadmapError):
    """The caller went away; no further external calls are made."""


def raise_if_cancelled(cancel_event: threading.Event | None, context: str) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise PipelineCancelledError(f"Cancelled before {context}")
