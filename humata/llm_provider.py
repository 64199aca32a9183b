from __future__ import annotations

import base64
import binascii
import json
import re
from dataclasses import dataclass, field
from typing import Any
from urllib import error, request

from humata.errors import FILE_DECODE_MESSAGE, ExtractionError

GROQ_CHAT_COMPLETIONS_URL = "https://api.groq.com/openai/v1/chat/completions"
OPENAI_RESPONSES_URL = "https://api.openai.com/v1/responses"
GEMINI_GENERATE_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent?key={api_key}"

RATE_LIMIT_PATTERN = re.compile(r"\brate[\s_-]?limit|\btoo many requests\b", re.IGNORECASE)


@dataclass(frozen=True)
class LlmResult:
    status: str
    raw_response: str | None
    warnings: list[str] = field(default_factory=list)
    http_status: int | None = None


def _collect_gemini_text(response_payload: dict[str, Any]) -> str | None:
    candidates = response_payload.get("candidates") or []
    if not candidates:
        return None

    parts = (candidates[0].get("content") or {}).get("parts") or []
    extracted: list[str] = []
    for part in parts:
        text = part.get("text") if isinstance(part, dict) else None
        if isinstance(text, str) and text.strip():
            extracted.append(text.strip())

    if extracted:
        return "\n".join(extracted)
    return None


def _post_json(url: str, payload: dict[str, Any], headers: dict[str, str], timeout: float = 60) -> dict[str, Any]:
    body = json.dumps(payload).encode("utf-8")
    req = request.Request(url, data=body, headers=headers, method="POST")
    with request.urlopen(req, timeout=timeout) as response:
        response_body = response.read().decode("utf-8")
    return json.loads(response_body)


def _http_error_warning(provider_name: str, exc: error.HTTPError) -> str:
    response_excerpt = ""
    try:
        response_body = exc.read().decode("utf-8", errors="replace").strip()
    except Exception:
        response_body = ""

    if response_body:
        try:
            parsed = json.loads(response_body)
            if isinstance(parsed, dict):
                error_payload = parsed.get("error")
                if isinstance(error_payload, dict):
                    message = error_payload.get("message")
                    if isinstance(message, str) and message.strip():
                        response_excerpt = message.strip()
        except json.JSONDecodeError:
            response_excerpt = response_body[:200]

    if response_excerpt:
        return f"{provider_name} request failed with HTTP {exc.code}: {response_excerpt}"

    return f"{provider_name} request failed with HTTP {exc.code}."


def _collect_openai_text(content: Any) -> list[str]:
    if not isinstance(content, list):
        return []

    collected: list[str] = []
    for part in content:
        if not isinstance(part, dict):
            continue

        direct_text = part.get("text")
        if isinstance(direct_text, str) and direct_text.strip():
            collected.append(direct_text.strip())
            continue

        value = part.get("value")
        if isinstance(value, str) and value.strip():
            collected.append(value.strip())

    return collected


def _extract_openai_text(response_payload: dict[str, Any]) -> str | None:
    output_text = response_payload.get("output_text")
    if isinstance(output_text, str) and output_text.strip():
        return output_text.strip()

    output = response_payload.get("output")
    if isinstance(output, list):
        extracted: list[str] = []
        for item in output:
            if not isinstance(item, dict):
                continue
            extracted.extend(_collect_openai_text(item.get("content")))

        if extracted:
            return "\n".join(extracted)

    return None


def _extract_chat_completion_text(response_payload: dict[str, Any]) -> str | None:
    choices = response_payload.get("choices") or []
    if not choices or not isinstance(choices[0], dict):
        return None

    content = (choices[0].get("message") or {}).get("content")
    if isinstance(content, str) and content.strip():
        return content
    return None


def decode_base64_payload(data: str) -> bytes:
    """Decode base64 leniently; whitespace and missing padding are accepted."""
    compact = "".join((data or "").split())
    try:
        return base64.b64decode(compact + "=" * (-len(compact) % 4))
    except (binascii.Error, ValueError) as exc:
        raise ExtractionError(FILE_DECODE_MESSAGE) from exc


def _detect_image_mime_type(image_bytes: bytes) -> str:
    if image_bytes.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if image_bytes.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if image_bytes.startswith((b"GIF87a", b"GIF89a")):
        return "image/gif"
    if image_bytes.startswith(b"RIFF") and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    return "image/png"


def is_rate_limited(result: LlmResult) -> bool:
    if result.http_status == 429:
        return True
    return any(RATE_LIMIT_PATTERN.search(warning) for warning in result.warnings)


def is_invalid_credential(result: LlmResult) -> bool:
    if result.http_status == 401:
        return True
    return any("api key" in warning.lower() for warning in result.warnings)


def complete_chat_with_groq(
    api_key: str,
    model: str,
    messages: list[dict[str, str]],
    max_tokens: int = 4096,
    temperature: float = 0.3,
) -> LlmResult:
    try:
        payload = {
            "model": model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        response_payload = _post_json(
            GROQ_CHAT_COMPLETIONS_URL,
            payload,
            {
                "Content-Type": "application/json",
                "Authorization": f"Bearer {api_key}",
            },
        )
    except error.HTTPError as exc:
        return LlmResult(
            status="error",
            raw_response=None,
            warnings=[_http_error_warning("Groq", exc)],
            http_status=exc.code,
        )
    except Exception:
        return LlmResult(
            status="error",
            raw_response=None,
            warnings=["Groq request failed before receiving a response."],
        )

    extracted_text = _extract_chat_completion_text(response_payload)
    if extracted_text:
        return LlmResult(status="success", raw_response=extracted_text, warnings=[])

    return LlmResult(
        status="error",
        raw_response=json.dumps(response_payload),
        warnings=["No response generated from AI"],
    )


def describe_image_with_openai(
    api_key: str,
    model: str,
    image_bytes: bytes,
    prompt: str,
    mime_type: str | None = None,
    max_output_tokens: int = 1024,
) -> LlmResult:
    image_b64 = base64.b64encode(image_bytes).decode("ascii")
    image_mime_type = mime_type or _detect_image_mime_type(image_bytes)
    try:
        payload = {
            "model": model,
            "input": [
                {
                    "role": "user",
                    "content": [
                        {"type": "input_text", "text": prompt},
                        {"type": "input_image", "image_url": f"data:{image_mime_type};base64,{image_b64}"},
                    ],
                }
            ],
            "max_output_tokens": max_output_tokens,
        }
        response_payload = _post_json(
            OPENAI_RESPONSES_URL,
            payload,
            {
                "Content-Type": "application/json",
                "Authorization": f"Bearer {api_key}",
            },
        )
    except error.HTTPError as exc:
        return LlmResult(
            status="error",
            raw_response=None,
            warnings=[_http_error_warning("OpenAI", exc)],
            http_status=exc.code,
        )
    except Exception:
        return LlmResult(
            status="error",
            raw_response=None,
            warnings=["OpenAI image description request failed before receiving a response."],
        )

    extracted_text = _extract_openai_text(response_payload)
    if extracted_text:
        return LlmResult(status="success", raw_response=extracted_text, warnings=[])

    return LlmResult(
        status="error",
        raw_response=json.dumps(response_payload),
        warnings=["OpenAI image description response did not contain extractable text."],
    )


def describe_image_with_gemini(
    api_key: str,
    model: str,
    image_bytes: bytes,
    prompt: str,
    mime_type: str | None = None,
    max_output_tokens: int = 1024,
) -> LlmResult:
    endpoint = GEMINI_GENERATE_URL.format(model=model, api_key=api_key)
    image_b64 = base64.b64encode(image_bytes).decode("ascii")
    image_mime_type = mime_type or _detect_image_mime_type(image_bytes)
    try:
        payload = {
            "contents": [
                {
                    "parts": [
                        {"text": prompt},
                        {"inline_data": {"mime_type": image_mime_type, "data": image_b64}},
                    ]
                }
            ],
            "generationConfig": {
                "maxOutputTokens": max_output_tokens,
            },
        }
        response_payload = _post_json(endpoint, payload, {"Content-Type": "application/json"})
    except error.HTTPError as exc:
        return LlmResult(
            status="error",
            raw_response=None,
            warnings=[_http_error_warning("Gemini", exc)],
            http_status=exc.code,
        )
    except Exception:
        return LlmResult(
            status="error",
            raw_response=None,
            warnings=["Gemini image description request failed before receiving a response."],
        )

    extracted_text = _collect_gemini_text(response_payload)
    if extracted_text:
        return LlmResult(status="success", raw_response=extracted_text, warnings=[])

    return LlmResult(
        status="error",
        raw_response=json.dumps(response_payload),
        warnings=["Gemini image description response did not contain text content."],
    )
