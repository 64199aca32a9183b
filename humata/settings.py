from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass
from typing import Mapping

logger = logging.getLogger(__name__)

DEFAULT_REASONING_MODEL = "llama-3.3-70b-versatile"
DEFAULT_OPENAI_VISION_MODEL = "gpt-4.1-mini"
DEFAULT_GEMINI_VISION_MODEL = "gemini-1.5-flash"
DEFAULT_CORS_ORIGINS = "http://localhost:3000,http://127.0.0.1:3000"
DEFAULT_CONTACT_URL = "https://wa.me/qr/P6WIWVS7UAU5P1"
VISION_PROVIDERS = {"openai", "gemini"}


@dataclass(frozen=True)
class ApiKeyStatus:
    total: int
    available: int
    failed: int

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class Settings:
    groq_api_key: str | None = None
    reasoning_model: str = DEFAULT_REASONING_MODEL
    reasoning_max_tokens: int = 4096
    reasoning_temperature: float = 0.3
    chat_rate_limit_delay_seconds: float = 3.0
    chat_max_rate_limit_retries: int = 3
    vision_provider: str | None = None
    vision_api_key: str | None = None
    vision_model: str | None = None
    vision_max_rate_limit_retries: int = 2
    vision_rate_limit_base_delay_seconds: float = 2.0
    ocr_languages: str = "ara+eng"
    log_level: str = "INFO"
    cors_allowed_origins: tuple[str, ...] = tuple(DEFAULT_CORS_ORIGINS.split(","))
    contact_url: str = DEFAULT_CONTACT_URL

    @property
    def has_reasoning_key(self) -> bool:
        return bool(self.groq_api_key)

    @property
    def uses_vision(self) -> bool:
        return self.vision_provider in VISION_PROVIDERS and bool(self.vision_api_key)

    def api_key_status(self) -> ApiKeyStatus:
        configured = [key for key in (self.groq_api_key, self.vision_api_key if self.uses_vision else None) if key]
        return ApiKeyStatus(total=len(configured), available=len(configured), failed=0)


def _clean(value: str | None) -> str | None:
    cleaned = (value or "").strip()
    return cleaned or None


def _int_env(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = _clean(environ.get(name))
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r, using %s", name, raw, default)
        return default
    return max(0, value)


def _float_env(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = _clean(environ.get(name))
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r, using %s", name, raw, default)
        return default
    return max(0.0, value)


def _resolve_vision(environ: Mapping[str, str]) -> tuple[str | None, str | None, str | None]:
    configured = (environ.get("HUMATA_VISION_PROVIDER") or "").strip().lower()
    openai_key = _clean(environ.get("OPENAI_API_KEY"))
    gemini_key = _clean(environ.get("GEMINI_API_KEY"))
    openai_model = _clean(environ.get("HUMATA_VISION_OPENAI_MODEL")) or DEFAULT_OPENAI_VISION_MODEL
    gemini_model = _clean(environ.get("HUMATA_VISION_GEMINI_MODEL")) or DEFAULT_GEMINI_VISION_MODEL

    if configured in {"none", "disabled", "ocr"}:
        return None, None, None

    if configured == "":
        if openai_key:
            configured = "openai"
        elif gemini_key:
            configured = "gemini"
        else:
            return None, None, None

    if configured in {"openai", "chatgpt"}:
        if not openai_key:
            logger.warning("Vision provider 'openai' selected but OPENAI_API_KEY is not configured; using OCR.")
            return None, None, None
        return "openai", openai_key, openai_model

    if configured == "gemini":
        if not gemini_key:
            logger.warning("Vision provider 'gemini' selected but GEMINI_API_KEY is not configured; using OCR.")
            return None, None, None
        return "gemini", gemini_key, gemini_model

    logger.warning("Unsupported vision provider '%s'; using OCR.", configured)
    return None, None, None


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Build the process-wide settings snapshot from environment variables."""
    env = os.environ if environ is None else environ
    vision_provider, vision_api_key, vision_model = _resolve_vision(env)
    cors_origins = tuple(
        origin.strip()
        for origin in (env.get("HUMATA_CORS_ALLOWED_ORIGINS") or DEFAULT_CORS_ORIGINS).split(",")
        if origin.strip()
    )

    return Settings(
        groq_api_key=_clean(env.get("GROQ_API_KEY")),
        reasoning_model=_clean(env.get("HUMATA_REASONING_MODEL")) or DEFAULT_REASONING_MODEL,
        reasoning_max_tokens=_int_env(env, "HUMATA_REASONING_MAX_TOKENS", 4096),
        reasoning_temperature=_float_env(env, "HUMATA_REASONING_TEMPERATURE", 0.3),
        chat_rate_limit_delay_seconds=_float_env(env, "HUMATA_CHAT_RATE_LIMIT_DELAY_SECONDS", 3.0),
        chat_max_rate_limit_retries=_int_env(env, "HUMATA_CHAT_MAX_RATE_LIMIT_RETRIES", 3),
        vision_provider=vision_provider,
        vision_api_key=vision_api_key,
        vision_model=vision_model,
        vision_max_rate_limit_retries=_int_env(env, "HUMATA_VISION_MAX_RATE_LIMIT_RETRIES", 2),
        vision_rate_limit_base_delay_seconds=_float_env(env, "HUMATA_VISION_RATE_LIMIT_BASE_DELAY_SECONDS", 2.0),
        ocr_languages=_clean(env.get("HUMATA_OCR_LANGUAGES")) or "ara+eng",
        log_level=(_clean(env.get("HUMATA_LOG_LEVEL")) or "INFO").upper(),
        cors_allowed_origins=cors_origins,
        contact_url=_clean(env.get("HUMATA_CONTACT_URL")) or DEFAULT_CONTACT_URL,
    )
