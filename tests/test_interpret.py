"""Tests for the interpretation prompt and client (no network calls)."""

from __future__ import annotations

import json

import numpy as np
import pytest
from tenacity import wait_none

from logo_metrics.config import Settings
from logo_metrics.features.metrics import extract_metrics
from logo_metrics.interpret import client as client_module
from logo_metrics.interpret.client import (
    InterpretationClient,
    InterpretationError,
    build_request,
    parse_response,
)
from logo_metrics.interpret.prompt import REQUIRED_FIELDS, RESPONSE_SCHEMA, build_prompt


class FakeResponse:
    def __init__(self, status_code: int, body=None, text: str = ""):
        self.status_code = status_code
        self._body = body
        self.text = text or (json.dumps(body) if body is not None else "")

    def json(self):
        if self._body is None:
            raise ValueError("no json")
        return self._body


class FakeSession:
    def __init__(self, responses):
        self._responses = list(responses)
        self.calls = []

    def post(self, url, json=None, headers=None, timeout=None):
        self.calls.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        return self._responses.pop(0)


def _service_body(payload, chunks=None) -> dict:
    text = payload if isinstance(payload, str) else json.dumps(payload)
    candidate = {"content": {"parts": [{"text": text}]}}
    if chunks is not None:
        candidate["groundingMetadata"] = {"groundingChunks": chunks}
    return {"candidates": [candidate]}


ANSWER = {
    "structural_summary": "Stable.",
    "balance_analysis": "Left heavy.",
    "geometry_analysis": "Square box.",
    "alignment_analysis": "Offset left.",
    "market_context": "Tech.",
    "remedial_actions": ["A", "B", "C"],
    "score": 71,
}


@pytest.fixture
def metrics(make_buffer):
    alpha = np.zeros((10, 10), dtype=np.uint8)
    alpha[:, :3] = 255
    return extract_metrics(make_buffer(alpha), (300, 100))


@pytest.fixture
def config() -> Settings:
    return Settings(
        GEMINI_API_KEY="test-key",
        gemini_model="test-model",
        gemini_api_base="https://api.test/v1beta/",
        request_timeout=5.0,
    )


def test_prompt_embeds_every_numeric_field(metrics):
    prompt = build_prompt(metrics)
    assert "Vertical Symmetry: low" in prompt
    assert f"{metrics.center_offset_x:.3f}%" in prompt
    assert f"{metrics.center_offset_y:.3f}%" in prompt
    for value in (
        metrics.weight_left,
        metrics.weight_right,
        metrics.weight_top,
        metrics.weight_bottom,
        metrics.density,
    ):
        assert f"{value:.2f}%" in prompt
    assert f"{metrics.complexity_index:.4f}" in prompt
    assert "Aspect Ratio: 3.000" in prompt
    assert "Bounding Box: x=0, y=0, 3x10 px" in prompt
    assert f"{metrics.center_of_mass.x:.2f}" in prompt
    assert "Strict JSON output only." in prompt


def test_request_body(metrics):
    body = build_request(metrics)
    assert body["tools"] == [{"googleSearch": {}}]
    assert body["generationConfig"]["responseSchema"] is RESPONSE_SCHEMA
    assert body["generationConfig"]["responseMimeType"] == "application/json"
    assert body["contents"][0]["parts"][0]["text"] == build_prompt(metrics)
    assert "tools" not in build_request(metrics, grounding=False)
    assert set(RESPONSE_SCHEMA["required"]) == set(REQUIRED_FIELDS)


def test_parse_grounded_response():
    chunks = [
        {"web": {"uri": "https://a.test", "title": "A"}},
        {"retrievedContext": {"uri": "ignored"}},
        {"web": {"uri": "https://b.test"}},
    ]
    analysis = parse_response(_service_body(ANSWER, chunks))
    assert analysis.structural_summary == "Stable."
    assert analysis.remedial_actions == ["A", "B", "C"]
    assert analysis.score == 71.0
    assert [(link.title, link.uri) for link in analysis.grounding_urls] == [
        ("A", "https://a.test"),
        ("", "https://b.test"),
    ]


def test_parse_clamps_score():
    assert parse_response(_service_body({**ANSWER, "score": 150})).score == 100.0
    assert parse_response(_service_body({**ANSWER, "score": -3})).score == 0.0


def test_parse_fenced_json():
    text = "```json\n" + json.dumps(ANSWER) + "\n```"
    assert parse_response(_service_body(text)).balance_analysis == "Left heavy."


@pytest.mark.parametrize("text", ["{not json", "[1, 2]"])
def test_parse_falls_back_on_bad_json(text):
    analysis = parse_response(_service_body(text))
    assert analysis.score == 0.0
    assert analysis.structural_summary.startswith("Parsing failure")
    assert analysis.remedial_actions == ["System Reboot Recommended", "Re-scan Artifact"]


def test_parse_empty_body():
    analysis = parse_response({})
    assert analysis.structural_summary == ""
    assert analysis.grounding_urls == []


def test_parse_ignores_unstructured_grounding_in_answer():
    analysis = parse_response(_service_body({**ANSWER, "grounding_urls": ["https://x.test"]}))
    assert analysis.score == 71.0
    assert analysis.grounding_urls == []


def test_parse_wraps_single_remedial_action():
    analysis = parse_response(_service_body({**ANSWER, "remedial_actions": "Widen the stroke"}))
    assert analysis.remedial_actions == ["Widen the stroke"]


@pytest.mark.parametrize(
    "body",
    [
        {"candidates": ["oops"]},
        {"candidates": {"content": {}}},
        {"candidates": [{"content": "text", "groundingMetadata": ["x"]}]},
        {"candidates": [{"content": {"parts": []}, "groundingMetadata": {"groundingChunks": ["x", {"web": "y"}]}}]},
    ],
)
def test_parse_tolerates_malformed_envelope(body):
    analysis = parse_response(body)
    assert analysis.structural_summary == ""
    assert analysis.grounding_urls == []


def test_analyze_posts_to_endpoint(metrics, config):
    session = FakeSession([FakeResponse(200, _service_body(ANSWER))])
    client = InterpretationClient(config=config, session=session)

    analysis = client.analyze(metrics)

    assert analysis.score == 71.0
    call = session.calls[0]
    assert call["url"] == "https://api.test/v1beta/models/test-model:generateContent"
    assert call["headers"] == {"x-goog-api-key": "test-key"}
    assert call["timeout"] == 5.0
    assert call["json"]["contents"][0]["parts"][0]["text"] == build_prompt(metrics)


def test_analyze_without_key(metrics):
    client = InterpretationClient(config=Settings(GEMINI_API_KEY=""), session=FakeSession([]))
    with pytest.raises(InterpretationError):
        client.analyze(metrics)


def test_analyze_rejected_request(metrics, config):
    session = FakeSession([FakeResponse(400, text="bad request")])
    client = InterpretationClient(config=config, session=session)
    with pytest.raises(InterpretationError):
        client.analyze(metrics)
    assert len(session.calls) == 1


def test_analyze_retries_unavailable_service(metrics, config):
    session = FakeSession(
        [FakeResponse(503, text="busy"), FakeResponse(429, text="slow down"),
         FakeResponse(200, _service_body(ANSWER))]
    )
    retryer = client_module._retryer.copy(wait=wait_none())
    client = InterpretationClient(config=config, session=session, retryer=retryer)
    assert client.analyze(metrics).score == 71.0
    assert len(session.calls) == 3


def test_analyze_gives_up_after_retries(metrics, config):
    session = FakeSession([FakeResponse(503, text="busy") for _ in range(3)])
    retryer = client_module._retryer.copy(wait=wait_none())
    client = InterpretationClient(config=config, session=session, retryer=retryer)
    with pytest.raises(InterpretationError):
        client.analyze(metrics)


def test_analyze_non_json_body(metrics, config):
    session = FakeSession([FakeResponse(200, None, text="<html>")])
    client = InterpretationClient(config=config, session=session)
    with pytest.raises(InterpretationError):
        client.analyze(metrics)
