from __future__ import annotations

import argparse
import base64
import logging
import mimetypes
import time
from pathlib import Path
from typing import Callable

from humata.errors import InvalidCredentialError, ProviderError, RateLimitError
from humata.llm_provider import (
    LlmResult,
    decode_base64_payload,
    describe_image_with_gemini,
    describe_image_with_openai,
    is_invalid_credential,
    is_rate_limited,
)
from humata.settings import VISION_PROVIDERS, Settings, load_settings

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_PROMPT_AR = (
    "صف محتوى هذه الصورة بدقة وباللغة العربية الفصحى.\n"
    "إذا كانت الصورة تحتوي على نص فاستخرجه كاملا كما هو.\n"
    "اذكر العناصر الرئيسية والجداول والرسوم البيانية إن وجدت.\n"
)


class VisionImageExtractor:
    """Describes images through a remote vision model.

    Rate-limited calls are retried with a linearly increasing delay
    (``base_delay * attempt``). Any other failure is raised to the caller.
    """

    def __init__(
        self,
        *,
        provider: str,
        api_key: str,
        model: str,
        prompt: str = DEFAULT_IMAGE_PROMPT_AR,
        max_retries: int = 2,
        base_delay_seconds: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if provider not in VISION_PROVIDERS:
            raise ValueError(f"Unknown vision provider '{provider}'. Available providers: openai, gemini.")

        self.provider = provider
        self.api_key = api_key
        self.model = model
        self.prompt = prompt
        self.max_retries = max_retries
        self.base_delay_seconds = base_delay_seconds
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "VisionImageExtractor":
        return cls(
            provider=settings.vision_provider or "",
            api_key=settings.vision_api_key or "",
            model=settings.vision_model or "",
            max_retries=settings.vision_max_rate_limit_retries,
            base_delay_seconds=settings.vision_rate_limit_base_delay_seconds,
            **kwargs,
        )

    @property
    def name(self) -> str:
        return f"vision:{self.provider}"

    def _call(self, image_bytes: bytes, mime_type: str) -> LlmResult:
        describe = describe_image_with_openai if self.provider == "openai" else describe_image_with_gemini
        return describe(
            api_key=self.api_key,
            model=self.model,
            image_bytes=image_bytes,
            prompt=self.prompt,
            mime_type=mime_type,
        )

    def extract(self, base64_data: str, mime_type: str) -> str:
        image_bytes = decode_base64_payload(base64_data)
        logger.info("Describing image with %s (%s), %d bytes", self.provider, self.model, len(image_bytes))

        attempt = 0
        while True:
            result = self._call(image_bytes, mime_type)
            if result.status == "success" and (result.raw_response or "").strip():
                description = result.raw_response.strip()
                logger.info("Image description received - %d chars", len(description))
                return description

            logger.error("Vision API error: %s (HTTP %s)", "; ".join(result.warnings), result.http_status)

            if is_rate_limited(result):
                if attempt >= self.max_retries:
                    raise RateLimitError()
                attempt += 1
                delay = self.base_delay_seconds * attempt
                logger.warning("Vision rate limited, retry %d/%d in %.1fs", attempt, self.max_retries, delay)
                self._sleep(delay)
                continue

            if is_invalid_credential(result):
                raise InvalidCredentialError()

            raise ProviderError(result.warnings[0] if result.warnings else None)


def load_image_as_base64(image_path: str) -> tuple[str, str]:
    path = Path(image_path)
    if not path.exists():
        raise FileNotFoundError(f"Image not found: {image_path}")

    mime, _ = mimetypes.guess_type(str(path))
    if mime is None:
        mime = "image/jpeg"

    return base64.b64encode(path.read_bytes()).decode("ascii"), mime


def main() -> None:
    parser = argparse.ArgumentParser(description="Describe an image with the configured vision provider.")
    parser.add_argument("--image", required=True, help="Path to the image file")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)
    settings = load_settings()
    if not settings.uses_vision:
        print("No vision provider configured (set OPENAI_API_KEY or GEMINI_API_KEY).")
        return

    base64_data, mime = load_image_as_base64(args.image)
    print(VisionImageExtractor.from_settings(settings).extract(base64_data, mime))


if __name__ == "__main__":
    main()
