from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable, Mapping

from humata.errors import (
    InvalidCredentialError,
    MissingCredentialError,
    ProviderError,
    RateLimitError,
)
from humata.ingestion import ContentDispatcher, UploadedFile
from humata.llm_provider import LlmResult, complete_chat_with_groq, is_invalid_credential, is_rate_limited
from humata.settings import ApiKeyStatus, Settings

logger = logging.getLogger(__name__)

ROLES = ("system", "user", "assistant")

HUMATA_SYSTEM_PROMPT = """You are Humata AI. In 'Scientific Mode', explain concepts step-by-step. In 'Doctor Mode', provide guidance with disclaimers. In 'Khedive Mode', speak historically.

IMPORTANT LANGUAGE REQUIREMENT: You must output ONLY in standard Arabic (العربية الفصحى). Do not use Chinese, English, Latin, or any other non-Arabic characters whatsoever. Translate ALL technical terms to Arabic. Ensure the text is 100% pure Arabic script only. Never mix languages.

CRITICAL OUTPUT REQUIREMENT: Your responses MUST be clean, readable, professional prose. AVOID using any decorative Markdown characters like asterisks (*), hashtags (#), backticks (`), or excessive formatting symbols. Focus on clear, clean text only. Use simple line breaks for paragraph separation instead of Markdown formatting.

When processing OCR text from images, please clean up any recognition errors and understand the context to provide accurate responses."""

FILE_CONTENT_HEADER = "[محتوى الملف/الصورة]:"
USER_QUESTION_HEADER = "[سؤال المستخدم]:"

CompletionFn = Callable[..., LlmResult]


@dataclass(frozen=True)
class ConversationTurn:
    role: str
    content: str

    @classmethod
    def from_dict(cls, payload: Mapping[str, object]) -> "ConversationTurn":
        return cls(role=str(payload.get("role") or ""), content=str(payload.get("content") or ""))

    def normalized(self) -> "ConversationTurn":
        role = self.role.strip().lower()
        return ConversationTurn(role=role if role in ROLES else "user", content=self.content)

    def to_message(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class ChatRequestOptions:
    system_prompt: str | None = None
    file: UploadedFile | None = None
    files: list[UploadedFile] = field(default_factory=list)
    # Accepted for request compatibility; retrieval grounding is not implemented.
    enable_grounding: bool = False


def build_system_prompt(addition: str | None = None) -> str:
    if addition:
        return f"{HUMATA_SYSTEM_PROMPT}\n\n{addition}"
    return HUMATA_SYSTEM_PROMPT


def build_user_message(message: str, file_content: str) -> str:
    if not file_content:
        return message
    return f"{FILE_CONTENT_HEADER}\n{file_content}\n\n{USER_QUESTION_HEADER}\n{message}"


class ChatOrchestrator:
    def __init__(
        self,
        settings: Settings,
        dispatcher: ContentDispatcher,
        *,
        completion: CompletionFn = complete_chat_with_groq,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings
        self.dispatcher = dispatcher
        self._completion = completion
        self._sleep = sleep

    def get_api_key_status(self) -> ApiKeyStatus:
        return self.settings.api_key_status()

    def collect_file_content(self, options: ChatRequestOptions) -> str:
        file_content = ""

        if options.file is not None:
            logger.info("Processing uploaded file: %s", options.file.file_name)
            file_content = self.dispatcher.extract_file(options.file)

        for uploaded in options.files:
            logger.info("Processing file: %s", uploaded.file_name)
            content = self.dispatcher.extract_file(uploaded)
            file_content += f"\n\n[{uploaded.file_name}]\n{content}"

        return file_content

    def build_messages(
        self,
        message: str,
        history: Iterable[ConversationTurn],
        options: ChatRequestOptions,
    ) -> list[dict[str, str]]:
        file_content = self.collect_file_content(options)
        messages = [{"role": "system", "content": build_system_prompt(options.system_prompt)}]
        messages.extend(turn.normalized().to_message() for turn in history)
        messages.append({"role": "user", "content": build_user_message(message, file_content)})
        logger.info("Chat request - messagesCount: %d, hasFileContent: %s", len(messages), bool(file_content))
        return messages

    def _complete(self, messages: list[dict[str, str]]) -> LlmResult:
        return self._completion(
            api_key=self.settings.groq_api_key,
            model=self.settings.reasoning_model,
            messages=messages,
            max_tokens=self.settings.reasoning_max_tokens,
            temperature=self.settings.reasoning_temperature,
        )

    def send_chat_message(
        self,
        message: str,
        history: Iterable[ConversationTurn] = (),
        options: ChatRequestOptions | None = None,
    ) -> str:
        if not self.settings.has_reasoning_key:
            raise MissingCredentialError()

        messages = self.build_messages(message, history, options or ChatRequestOptions())
        logger.info("Sending to Groq reasoning model %s", self.settings.reasoning_model)

        retries = 0
        while True:
            result = self._complete(messages)
            if result.status == "success" and result.raw_response:
                logger.info("Response received successfully")
                return result.raw_response

            logger.error("Reasoning API error: %s (HTTP %s)", "; ".join(result.warnings), result.http_status)

            if is_rate_limited(result):
                if retries >= self.settings.chat_max_rate_limit_retries:
                    raise RateLimitError()
                retries += 1
                delay = self.settings.chat_rate_limit_delay_seconds
                logger.warning(
                    "Rate limited on reasoning, retry %d/%d in %.1fs",
                    retries,
                    self.settings.chat_max_rate_limit_retries,
                    delay,
                )
                self._sleep(delay)
                continue

            if is_invalid_credential(result):
                raise InvalidCredentialError()

            raise ProviderError(result.warnings[0] if result.warnings else None)
