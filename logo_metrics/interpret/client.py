"""HTTP client for the generative interpretation service."""

from __future__ import annotations

import json
import logging
from typing import Any, Mapping

import requests
from requests import Session
from tenacity import (  # type: ignore[import-untyped]
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..config import Settings, settings
from ..io.models import AnalysisResponse, GroundingLink, LogoMetrics
from .prompt import RESPONSE_SCHEMA, SYSTEM_INSTRUCTION, build_prompt

logger = logging.getLogger(__name__)

_MAX_SCORE = 100.0


class InterpretationError(Exception):
    """Raised when the interpretation service cannot produce an answer."""


class RetryableServiceError(Exception):
    """Raised for HTTP status codes that should trigger a retry."""

    def __init__(self, status_code: int) -> None:
        super().__init__(f"Service returned status {status_code}")
        self.status_code = status_code


_retryer = Retrying(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=8),
    retry=retry_if_exception_type(
        (requests.Timeout, requests.ConnectionError, RetryableServiceError)
    ),
    before_sleep=before_sleep_log(logger, logging.DEBUG),
    reraise=True,
)


def build_request(metrics: LogoMetrics, grounding: bool = True) -> dict[str, Any]:
    """Return the ``generateContent`` request body for *metrics*."""
    body: dict[str, Any] = {
        "systemInstruction": {"parts": [{"text": SYSTEM_INSTRUCTION}]},
        "contents": [{"role": "user", "parts": [{"text": build_prompt(metrics)}]}],
        "generationConfig": {
            "responseMimeType": "application/json",
            "responseSchema": RESPONSE_SCHEMA,
        },
    }
    if grounding:
        body["tools"] = [{"googleSearch": {}}]
    return body


def parse_response(body: Mapping[str, Any]) -> AnalysisResponse:
    """Convert a ``generateContent`` response body into an analysis record.

    A body whose text is not a JSON object produces the fallback response
    rather than an exception.
    """
    candidates = body.get("candidates")
    first: Mapping[str, Any] = {}
    if isinstance(candidates, list) and candidates and isinstance(candidates[0], Mapping):
        first = candidates[0]
    content = first.get("content")
    parts = (content.get("parts") or []) if isinstance(content, Mapping) else []
    text = "".join(str(part.get("text", "")) for part in parts if isinstance(part, Mapping))

    links: list[GroundingLink] = []
    metadata = first.get("groundingMetadata")
    chunks = (metadata.get("groundingChunks") or []) if isinstance(metadata, Mapping) else []
    for chunk in chunks:
        web = chunk.get("web") if isinstance(chunk, Mapping) else None
        if not isinstance(web, Mapping):
            continue
        links.append(GroundingLink(title=str(web.get("title", "")), uri=str(web.get("uri", ""))))

    try:
        data = json.loads(_strip_code_fence(text) or "{}")
    except ValueError:
        logger.error("Critical JSON parse error in interpretation response", exc_info=True)
        return fallback_response()
    if not isinstance(data, Mapping):
        logger.error("Interpretation response is not a JSON object: %r", type(data).__name__)
        return fallback_response()

    try:
        analysis = AnalysisResponse.from_dict(data)
    except (TypeError, ValueError):
        logger.error("Interpretation response has malformed fields", exc_info=True)
        return fallback_response()
    analysis.score = max(0.0, min(_MAX_SCORE, analysis.score))
    analysis.grounding_urls = links
    return analysis


def fallback_response() -> AnalysisResponse:
    return AnalysisResponse(
        structural_summary="Parsing failure: Response stream corrupted.",
        balance_analysis="Unavailable.",
        geometry_analysis="Unavailable.",
        alignment_analysis="Unavailable.",
        market_context="Grounding unreachable.",
        remedial_actions=["System Reboot Recommended", "Re-scan Artifact"],
        score=0.0,
    )


class InterpretationClient:
    """Send extracted metrics to the Gemini ``generateContent`` endpoint."""

    def __init__(
        self,
        config: Settings | None = None,
        session: Session | None = None,
        retryer: Retrying | None = None,
    ) -> None:
        self.config = config or settings
        self._session = session
        self._retryer = retryer or _retryer

    @property
    def session(self) -> Session:
        if self._session is None:
            self._session = requests.Session()
        return self._session

    @property
    def endpoint(self) -> str:
        base = self.config.gemini_api_base.rstrip("/")
        return f"{base}/models/{self.config.gemini_model}:generateContent"

    def analyze(self, metrics: LogoMetrics) -> AnalysisResponse:
        """Request a critique and score for *metrics*."""
        if not self.config.gemini_api_key:
            raise InterpretationError(
                "Interpretation service is not configured; set GEMINI_API_KEY"
            )

        payload = build_request(metrics, grounding=self.config.grounding)
        try:
            body = self._retryer(lambda: self._post(payload))
        except RetryableServiceError as exc:
            logger.warning("Interpretation service unavailable: %s", exc)
            raise InterpretationError(str(exc)) from exc
        except requests.RequestException as exc:
            logger.warning("Request error calling interpretation service: %s", exc)
            raise InterpretationError(f"Request failed: {exc}") from exc
        return parse_response(body)

    def _post(self, payload: Mapping[str, Any]) -> Mapping[str, Any]:
        response = self.session.post(
            self.endpoint,
            json=payload,
            headers={"x-goog-api-key": self.config.gemini_api_key},
            timeout=self.config.request_timeout,
        )
        status = response.status_code
        if status == 429 or 500 <= status < 600:
            raise RetryableServiceError(status)
        if status >= 400:
            raise InterpretationError(
                f"Service rejected the request ({status}): {response.text[:200]}"
            )
        try:
            body = response.json()
        except ValueError as exc:
            raise InterpretationError("Service returned a non-JSON body") from exc
        if not isinstance(body, Mapping):
            raise InterpretationError("Service returned an unexpected body")
        return body


def analyze_metrics(metrics: LogoMetrics, config: Settings | None = None) -> AnalysisResponse:
    """Shortcut for a one-off :class:`InterpretationClient` call."""
    return InterpretationClient(config=config).analyze(metrics)


def _strip_code_fence(text: str) -> str:
    stripped = text.strip()
    if not stripped.startswith("```"):
        return stripped
    lines = stripped.splitlines()[1:]
    if lines and lines[-1].strip().startswith("```"):
        lines = lines[:-1]
    return "\n".join(lines).strip()
