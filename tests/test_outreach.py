from __future__ import annotations

import json
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import httpx
import openai
import pytest

from app.harvester import config, outreach
from app.harvester.errors import GenerationError
from app.harvester.models import ExtractedRecord
from app.harvester.outreach import (
    ChatCompletionsGenerator,
    build_text_generator,
    fallback_outreach,
    generate_outreach,
)
from tests.test_app_api import _configure_temp_paths

COMPLETIONS_URL = "https://llm.example.test/v1/chat/completions"


class FakeCompletions:
    def __init__(self, content: Any = None, error: Optional[Exception] = None, choices: Optional[list] = None) -> None:
        self.content = content
        self.error = error
        self.choices = choices
        self.calls: List[Dict[str, Any]] = []

    def create(self, **kwargs: Any) -> SimpleNamespace:
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        if self.choices is not None:
            return SimpleNamespace(choices=self.choices)
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class FakeClient:
    def __init__(self, completions: FakeCompletions) -> None:
        self.chat = SimpleNamespace(completions=completions)


def _record(**overrides: Any) -> ExtractedRecord:
    values: Dict[str, Any] = {
        "place_id": "/maps/place/Cafe",
        "title": "Café Lisboa",
        "category": "Coffee shop",
        "rating": 4.8,
        "has_website": True,
        "website": "https://cafelisboa.example",
    }
    values.update(overrides)
    return ExtractedRecord(**values)


def _generator(completions: FakeCompletions) -> ChatCompletionsGenerator:
    return ChatCompletionsGenerator(
        "sk-test",
        model="test-model",
        services=("website design", "booking automation"),
        sender="Ana",
        client=FakeClient(completions),
    )


def _status_error(status: int) -> openai.APIStatusError:
    response = httpx.Response(status, request=httpx.Request("POST", COMPLETIONS_URL))
    return openai.APIStatusError("rejected", response=response, body=None)


def test_generate_calls_chat_completions_and_parses_reply() -> None:
    reply = {"whatsapp": "Olá!", "email_subject": "Hello", "email_body": "Body text"}
    completions = FakeCompletions(json.dumps(reply))

    copy = _generator(completions).generate(_record())

    assert copy.whatsapp == "Olá!"
    assert copy.email_subject == "Hello"
    assert copy.source == "generated"
    call = completions.calls[0]
    assert call["model"] == "test-model"
    assert call["response_format"] == {"type": "json_object"}
    assert call["messages"][0]["role"] == "system"
    prompt = call["messages"][1]["content"]
    assert "Café Lisboa" in prompt
    assert "website design, booking automation" in prompt


def test_status_error_raises_generation_error() -> None:
    completions = FakeCompletions(error=_status_error(429))

    with pytest.raises(GenerationError) as excinfo:
        _generator(completions).generate(_record())

    assert excinfo.value.http_status == 429
    assert excinfo.value.error_code == "generation_error"


def test_connection_error_raises_generation_error() -> None:
    error = openai.APIConnectionError(request=httpx.Request("POST", COMPLETIONS_URL))
    completions = FakeCompletions(error=error)

    with pytest.raises(GenerationError) as excinfo:
        _generator(completions).generate(_record())

    assert excinfo.value.http_status is None


@pytest.mark.parametrize(
    "completions",
    [
        FakeCompletions(choices=[]),
        FakeCompletions(None),
        FakeCompletions("not a json object"),
        FakeCompletions(json.dumps(["a", "b"])),
        FakeCompletions(json.dumps({"whatsapp": "hi", "email_subject": "", "email_body": "x"})),
    ],
)
def test_malformed_reply_raises_generation_error(completions: FakeCompletions) -> None:
    with pytest.raises(GenerationError):
        _generator(completions).generate(_record())


def test_fallback_mentions_missing_website() -> None:
    copy = fallback_outreach(_record(has_website=False, website=""), ("website design",), "Ana")

    assert copy.source == "fallback"
    assert "doesn't have a website" in copy.whatsapp
    assert copy.email_subject == "Website design for Café Lisboa"
    assert copy.email_body.endswith("Ana")


def test_fallback_mentions_strong_reviews() -> None:
    copy = fallback_outreach(_record(rating=4.8), ("a", "b", "c"), "Ana")

    assert "4.8-star" in copy.whatsapp
    assert "a, b and c" in copy.email_body


def test_fallback_is_deterministic() -> None:
    record = _record(rating=3.2)

    assert fallback_outreach(record, ("seo",), "Ana") == fallback_outreach(record, ("seo",), "Ana")


def test_generate_outreach_falls_back_on_failure(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)
    events: list[str] = []
    monkeypatch.setattr(outreach, "_harvest_event", lambda *args, **kwargs: events.append(kwargs["error_code"]))

    class Boom:
        def generate(self, record: ExtractedRecord):
            raise GenerationError("down")

    class Broken:
        def generate(self, record: ExtractedRecord):
            raise KeyError("surprise")

    assert generate_outreach(Boom(), _record(), services=("seo",), sender="Ana").source == "fallback"
    assert generate_outreach(Broken(), _record(), services=("seo",), sender="Ana").source == "fallback"
    assert generate_outreach(None, _record(), services=("seo",), sender="Ana").source == "fallback"
    assert events == ["generation_error", "unexpected"]


def test_build_text_generator_requires_api_key(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "OPENAI_API_KEY", "")
    assert build_text_generator() is None

    monkeypatch.setattr(config, "OPENAI_API_KEY", "sk-live")
    generator = build_text_generator()
    assert isinstance(generator, ChatCompletionsGenerator)
    assert generator.api_key == "sk-live"
