"""Relay between the patient-facing assistant and OpenRouter chat completions.

The server keeps no conversation state: callers send the whole transcript on
every turn and the configured models are tried in order until one answers.
"""

import json
import logging
from collections.abc import Iterable, Iterator

import requests

from carelink.core.config import settings
from carelink.core.errors import ExternalServiceError, ValidationError
from carelink.models.base import utcnow

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are an AI medical information assistant. You help patients understand symptoms, \
conditions, medications and healthy habits, and you guide them toward the right kind of care.

How to answer:
- Use clear language a patient can follow and explain any medical term you use.
- Ask follow-up questions when the description is incomplete.
- Consider several possible explanations and the risk factors that separate them.
- Suggest concrete next steps and say how soon care should be sought.
- Use headings and bullet points for longer answers.

Safety rules:
- You are not a replacement for a doctor. Say so and recommend seeing a healthcare professional \
for diagnosis and treatment.
- If the symptoms could be life threatening, tell the patient to contact emergency services \
immediately before anything else.
- Be honest about the limits of advice given without an examination.

Be warm, calm and professional."""

APOLOGY = """I apologize, but I'm experiencing connection difficulties. Please check the following:

1. Verify your OpenRouter API key is correct
2. Ensure you have credits available in your OpenRouter account
3. Check your internet connection

If you're experiencing a medical emergency, please call emergency services immediately \
(911 or your local emergency number)."""


def apology(error: str | None = None) -> str:
    if not error:
        return APOLOGY
    return f"{APOLOGY}\n\nError details: {error}"


def build_messages(transcript: Iterable[dict]) -> list[dict]:
    messages = [{"role": "system", "content": SYSTEM_PROMPT}]
    for turn in transcript:
        messages.append({"role": turn["role"], "content": turn["content"]})
    return messages


def check_transcript(transcript: list[dict]) -> None:
    if not transcript or transcript[-1].get("role") != "user" or not str(transcript[-1].get("content", "")).strip():
        raise ValidationError("Message cannot be empty")


def resolve_api_key(api_key: str | None) -> str:
    key = (api_key or "").strip() or (settings.OPENROUTER_API_KEY or "").strip()
    if not key:
        raise ValidationError("An OpenRouter API key is required")
    return key


def _iter_tokens(response) -> Iterator[str]:
    """Yield content deltas from an OpenAI-style server-sent event stream."""
    for line in response.iter_lines(decode_unicode=True):
        if not line or not line.startswith("data: "):
            continue
        data = line[6:].strip()
        if data == "[DONE]":
            break
        try:
            parsed = json.loads(data)
        except ValueError:
            continue
        choices = parsed.get("choices") or [{}]
        content = (choices[0].get("delta") or {}).get("content")
        if content:
            yield content


def stream_reply(
    api_key: str,
    transcript: list[dict],
    models: list[str] | None = None,
    referer: str | None = None,
) -> Iterator[str]:
    """Stream the assistant's reply token by token.

    Each model is tried in turn; a non-OK status, a transport error or an
    empty reply moves on to the next one. Raises ExternalServiceError once
    the list is exhausted, or if a stream breaks after tokens went out.
    """
    payload_messages = build_messages(transcript)
    headers = {
        "Authorization": f"Bearer {api_key}",
        "HTTP-Referer": referer or settings.FRONTEND_URL,
        "X-Title": f"{settings.PROJECT_NAME} AI Doctor Assistant",
        "Content-Type": "application/json",
    }
    last_error = None

    for model in models or settings.AI_MODELS:
        payload = {
            "model": model,
            "messages": payload_messages,
            "stream": True,
            "temperature": settings.AI_TEMPERATURE,
            "max_tokens": settings.AI_MAX_TOKENS,
        }
        try:
            response = requests.post(settings.OPENROUTER_API_URL, headers=headers, json=payload, stream=True)
        except requests.RequestException as exc:
            last_error = f"{model}: {exc}"
            logger.warning("AI model request failed model=%s error=%s", model, exc)
            continue

        produced = False
        try:
            if not response.ok:
                last_error = f"{model}: HTTP {response.status_code} {response.text[:200]}"
                logger.warning("AI model rejected request model=%s status=%s", model, response.status_code)
                continue
            for token in _iter_tokens(response):
                produced = True
                yield token
        except requests.RequestException as exc:
            if produced:
                logger.exception("AI stream broke mid-reply model=%s", model)
                raise ExternalServiceError("The reply was interrupted", reply=apology(str(exc))) from exc
            last_error = f"{model}: {exc}"
            logger.warning("AI stream failed model=%s error=%s", model, exc)
            continue
        finally:
            response.close()

        if produced:
            logger.info("AI reply streamed model=%s", model)
            return
        last_error = f"{model}: empty reply"
        logger.warning("AI model returned no content model=%s", model)

    raise ExternalServiceError("All models failed to respond", reply=apology(last_error))


def complete_reply(api_key: str, transcript: list[dict], models: list[str] | None = None) -> dict:
    """Run a whole turn and return the finalized assistant message."""
    content = "".join(stream_reply(api_key, transcript, models=models))
    return {"role": "assistant", "content": content, "timestamp": utcnow()}
