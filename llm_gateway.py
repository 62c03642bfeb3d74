"""Validated calls to the generative text service, one per pipeline stage.

The gateway only checks the response envelope and hands back raw text.
Turning that text into JSON is json_extract's job.
"""

from __future__ import annotations

import json
import logging
import threading
from typing import Any, Protocol

import requests
from openai import OpenAI, OpenAIError

from config import RoadmapConfig
from errors import GenerationEnvelopeError, GenerationError, raise_if_cancelled

GEMINI_API_URL_TEMPLATE = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
JSON_MIME_TYPE = "application/json"
_ERROR_BODY_MAX_LEN = 500

LOGGER = logging.getLogger(__name__)

_OPENAI_SYSTEM_PROMPT = "You are an academic research assistant. Respond only with one valid JSON value."


class TextGateway(Protocol):
    def call(
        self, prompt: str, context: str, cancel_event: threading.Event | None = None
    ) -> str: ...


class GeminiGateway:
    """Google Gemini over the generateContent REST endpoint."""

    def __init__(self, config: RoadmapConfig) -> None:
        self._config = config

    def call(
        self, prompt: str, context: str, cancel_event: threading.Event | None = None
    ) -> str:
        raise_if_cancelled(cancel_event, f"generating {context}")
        api_key = self._config.google_api_key
        if not api_key:
            raise GenerationError(f"GOOGLE_API_KEY is required to generate {context}")

        LOGGER.info("Calling Gemini for: %s", context)
        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": self._config.llm_temperature,
                "responseMimeType": JSON_MIME_TYPE,
            },
        }
        try:
            response = requests.post(
                GEMINI_API_URL_TEMPLATE.format(model=self._config.gemini_model),
                params={"key": api_key},
                headers={"Content-Type": "application/json"},
                json=payload,
                timeout=self._config.llm_timeout_seconds,
            )
            response.raise_for_status()
        except requests.HTTPError as exc:
            detail = (exc.response.text if exc.response is not None else "")[:_ERROR_BODY_MAX_LEN]
            LOGGER.error("Gemini HTTP error for %s: %s %s", context, exc, detail)
            raise GenerationError(f"Failed to get response from AI for {context}: {exc}") from exc
        except requests.RequestException as exc:
            LOGGER.error("Gemini request failed for %s: %s", context, exc)
            raise GenerationError(f"Failed to get response from AI for {context}: {exc}") from exc

        try:
            body = response.json()
        except ValueError:
            body = None
        return check_gemini_envelope(body, context)


class OpenAIGateway:
    """OpenAI chat completions in JSON-object mode."""

    def __init__(self, config: RoadmapConfig, client: OpenAI | None = None) -> None:
        self._config = config
        self._client = client

    def call(
        self, prompt: str, context: str, cancel_event: threading.Event | None = None
    ) -> str:
        raise_if_cancelled(cancel_event, f"generating {context}")
        client = self._client
        if client is None:
            if not self._config.openai_api_key:
                raise GenerationError(f"OPENAI_API_KEY is required to generate {context}")
            client = OpenAI(
                api_key=self._config.openai_api_key,
                timeout=self._config.llm_timeout_seconds,
            )

        LOGGER.info("Calling OpenAI for: %s", context)
        try:
            response = client.chat.completions.create(
                model=self._config.openai_model,
                temperature=self._config.llm_temperature,
                response_format={"type": "json_object"},
                timeout=self._config.llm_timeout_seconds,
                messages=[
                    {"role": "system", "content": _OPENAI_SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
            )
        except OpenAIError as exc:
            LOGGER.error("OpenAI request failed for %s: %s", context, exc)
            raise GenerationError(f"Failed to get response from AI for {context}: {exc}") from exc

        return check_openai_envelope(response, context)


def build_gateway(config: RoadmapConfig) -> TextGateway:
    if config.llm_provider == "openai":
        return OpenAIGateway(config)
    return GeminiGateway(config)


def check_gemini_envelope(body: Any, context: str) -> str:
    """Validate a generateContent response and return the candidate text.

    Checks run in a fixed order: missing envelope, blocked prompt, no
    candidates, abnormal finish (warning only), missing text.
    """
    if not isinstance(body, dict) or not body:
        LOGGER.error("Gemini returned no response data for %s", context)
        raise GenerationEnvelopeError(f"Empty response from AI for {context}")

    feedback = body.get("promptFeedback") or {}
    block_reason = feedback.get("blockReason") if isinstance(feedback, dict) else None
    if block_reason:
        LOGGER.error(
            "Gemini blocked the prompt for %s: %s safety=%s",
            context,
            block_reason,
            json.dumps(feedback.get("safetyRatings")),
        )
        raise GenerationEnvelopeError(f"AI request for {context} blocked by safety settings: {block_reason}")

    candidates = body.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        LOGGER.error("Gemini returned no candidates for %s", context)
        raise GenerationEnvelopeError(f"No response generated by AI for {context}")

    candidate = candidates[0] if isinstance(candidates[0], dict) else {}
    _warn_on_abnormal_finish(candidate.get("finishReason"), context)

    content = candidate.get("content") or {}
    parts = content.get("parts") if isinstance(content, dict) else None
    text = "".join(
        part["text"] for part in parts or [] if isinstance(part, dict) and isinstance(part.get("text"), str)
    )
    if not text:
        LOGGER.error("Gemini candidate for %s has no text: %s", context, json.dumps(candidate)[:_ERROR_BODY_MAX_LEN])
        raise GenerationEnvelopeError(f"Invalid response structure from AI for {context} (missing text)")
    return text


def check_openai_envelope(response: Any, context: str) -> str:
    """Same checks as check_gemini_envelope, mapped onto a chat completion."""
    if response is None:
        LOGGER.error("OpenAI returned no response for %s", context)
        raise GenerationEnvelopeError(f"Empty response from AI for {context}")

    choices = list(getattr(response, "choices", None) or [])
    message = getattr(choices[0], "message", None) if choices else None
    refusal = getattr(message, "refusal", None)
    if refusal:
        LOGGER.error("OpenAI refused the prompt for %s: %s", context, refusal)
        raise GenerationEnvelopeError(f"AI request for {context} blocked: {refusal}")

    if not choices:
        LOGGER.error("OpenAI returned no choices for %s", context)
        raise GenerationEnvelopeError(f"No response generated by AI for {context}")

    _warn_on_abnormal_finish(getattr(choices[0], "finish_reason", None), context)

    text = getattr(message, "content", None)
    if not isinstance(text, str) or not text:
        raise GenerationEnvelopeError(f"Invalid response structure from AI for {context} (missing text)")
    return text


def _warn_on_abnormal_finish(finish_reason: Any, context: str) -> None:
    # Truncated output is still returned; the extractor decides if it is usable.
    if finish_reason and str(finish_reason).lower() != "stop":
        LOGGER.warning(
            "AI call for %s finished with reason %s; output might be incomplete",
            context,
            finish_reason,
        )
