"""Outreach copy for harvested places.

Generation goes through the OpenAI chat completions client, pointed at any
OpenAI-compatible base URL. Any failure falls back to deterministic copy
assembled from the record and the configured service names, so an entry is
never lost to the text service.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Protocol, Sequence

import openai
from openai import OpenAI

from . import config
from .errors import GenerationError
from .logging_utils import _harvest_event
from .models import ExtractedRecord, OutreachCopy

_SYSTEM_PROMPT = (
    "You write short, friendly B2B outreach for local businesses. "
    "Reply with a JSON object containing exactly the keys "
    '"whatsapp", "email_subject" and "email_body".'
)


class TextGenerator(Protocol):
    def generate(self, record: ExtractedRecord) -> OutreachCopy:
        ...


def build_client(api_key: str, *, base_url: Optional[str] = None, timeout: Optional[int] = None) -> OpenAI:
    """Return a client for the configured endpoint. Failed calls are not retried."""

    return OpenAI(
        api_key=api_key,
        base_url=base_url or config.GENERATION_BASE_URL,
        timeout=timeout or config.GENERATION_TIMEOUT_SECONDS,
        max_retries=0,
    )


def _describe(record: ExtractedRecord) -> str:
    facts = {
        "name": record.title,
        "category": record.category,
        "industry": record.industry,
        "rating": record.rating,
        "reviews": record.reviews_count,
        "has_website": record.has_website,
        "has_phone": record.has_phone,
        "sentiment": record.sentiment,
        "address": record.address,
    }
    return json.dumps({k: v for k, v in facts.items() if v not in (None, "")}, ensure_ascii=False)


def _build_prompt(record: ExtractedRecord, services: Sequence[str], sender: str) -> str:
    service_list = ", ".join(services) or "digital services"
    return (
        f"Business facts: {_describe(record)}\n"
        f"Services we offer: {service_list}\n"
        f"Sign as: {sender}\n"
        "Keep the WhatsApp message under 400 characters and the email under 150 words."
    )


class ChatCompletionsGenerator:
    """Asks a chat completions model for outreach copy as a JSON object."""

    def __init__(
        self,
        api_key: str,
        *,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[int] = None,
        services: Optional[Sequence[str]] = None,
        sender: Optional[str] = None,
        client: Optional[Any] = None,
    ) -> None:
        self.api_key = api_key
        self.model = model or config.GENERATION_MODEL
        self.services = tuple(services if services is not None else config.SERVICE_NAMES)
        self.sender = sender or config.SENDER_NAME
        self.client = client or build_client(api_key, base_url=base_url, timeout=timeout)

    def _messages(self, record: ExtractedRecord) -> List[Dict[str, str]]:
        return [
            {"role": "system", "content": _SYSTEM_PROMPT},
            {"role": "user", "content": _build_prompt(record, self.services, self.sender)},
        ]

    def generate(self, record: ExtractedRecord) -> OutreachCopy:
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=self._messages(record),
                temperature=0.4,
                response_format={"type": "json_object"},
                stream=False,
            )
        except openai.APIStatusError as exc:
            raise GenerationError(
                f"generation endpoint returned HTTP {exc.status_code}",
                http_status=exc.status_code,
            ) from exc
        except openai.OpenAIError as exc:
            raise GenerationError(f"generation request failed: {exc}") from exc

        try:
            content = response.choices[0].message.content
            parsed = json.loads(content or "")
        except (ValueError, AttributeError, IndexError, TypeError) as exc:
            raise GenerationError(f"generation reply malformed: {exc}") from exc

        if not isinstance(parsed, dict):
            raise GenerationError("generation reply is not a JSON object")

        values = {key: str(parsed.get(key) or "").strip() for key in ("whatsapp", "email_subject", "email_body")}
        missing = [key for key, value in values.items() if not value]
        if missing:
            raise GenerationError(f"generation reply missing {', '.join(missing)}")

        return OutreachCopy(source="generated", **values)


def fallback_outreach(
    record: ExtractedRecord,
    services: Optional[Sequence[str]] = None,
    sender: Optional[str] = None,
) -> OutreachCopy:
    """Deterministic copy built only from record fields and service names."""

    service_names = tuple(services if services is not None else config.SERVICE_NAMES)
    signer = sender or config.SENDER_NAME
    name = record.title or "there"
    service_text = " and ".join(service_names) if len(service_names) <= 2 else (
        ", ".join(service_names[:-1]) + f" and {service_names[-1]}"
    )
    service_text = service_text or "digital services"

    if not record.has_website:
        hook = f"we noticed {name} doesn't have a website yet"
    elif record.rating is not None and record.rating >= 4.5:
        hook = f"we saw {name}'s excellent {record.rating:g}-star reviews"
    else:
        hook = f"we came across {name} while looking at local {record.category or 'businesses'}"

    whatsapp = f"Hi {name}! {hook[0].upper()}{hook[1:]}. We help with {service_text}. Open to a quick chat? - {signer}"
    subject = f"{service_text[0].upper()}{service_text[1:]} for {name}"
    body = (
        f"Hello {name},\n\n"
        f"{hook[0].upper()}{hook[1:]}. We help businesses like yours with {service_text}.\n\n"
        "Would you be open to a short call this week?\n\n"
        f"Best regards,\n{signer}"
    )
    return OutreachCopy(whatsapp=whatsapp, email_subject=subject, email_body=body, source="fallback")


def generate_outreach(
    generator: Optional[TextGenerator],
    record: ExtractedRecord,
    *,
    services: Optional[Sequence[str]] = None,
    sender: Optional[str] = None,
) -> OutreachCopy:
    """Return generated copy, or the fallback when generation is unavailable."""

    if generator is None:
        return fallback_outreach(record, services, sender)

    try:
        return generator.generate(record)
    except GenerationError as exc:
        _harvest_event("error", phase="outreach", error_code=exc.error_code, place_id=record.place_id, error=str(exc))
    except Exception as exc:  # noqa: BLE001
        _harvest_event("error", phase="outreach", error_code="unexpected", place_id=record.place_id, error=repr(exc))
    return fallback_outreach(record, services, sender)


def build_text_generator() -> Optional[TextGenerator]:
    """Return the configured generator, or ``None`` without an API key."""

    if not config.OPENAI_API_KEY:
        return None
    return ChatCompletionsGenerator(config.OPENAI_API_KEY)


__all__ = [
    "TextGenerator",
    "ChatCompletionsGenerator",
    "build_client",
    "fallback_outreach",
    "generate_outreach",
    "build_text_generator",
]
