import io
import unittest
from unittest.mock import patch
from urllib import error

from humata import llm_provider
from humata.errors import ExtractionError
from humata.llm_provider import LlmResult


def _http_error(code: int, body: bytes) -> error.HTTPError:
    return error.HTTPError("https://api.example", code, "error", {}, io.BytesIO(body))


class TestOpenAiResponseParsing(unittest.TestCase):
    def test_extracts_top_level_output_text(self):
        text = llm_provider._extract_openai_text({"output_text": "وصف"})

        self.assertEqual(text, "وصف")

    def test_extracts_text_from_output_content(self):
        payload = {"output": [{"type": "message", "content": [{"type": "output_text", "text": "وصف الصورة"}]}]}

        self.assertEqual(llm_provider._extract_openai_text(payload), "وصف الصورة")


class TestGroqChatCompletion(unittest.TestCase):
    def test_complete_chat_sends_messages_and_parameters(self):
        captured = {}

        def _fake_post_json(url, payload, headers):
            captured["url"] = url
            captured["payload"] = payload
            captured["headers"] = headers
            return {"choices": [{"message": {"role": "assistant", "content": "مرحبا"}}]}

        messages = [{"role": "system", "content": "s"}, {"role": "user", "content": "u"}]
        with patch("humata.llm_provider._post_json", side_effect=_fake_post_json):
            result = llm_provider.complete_chat_with_groq(
                api_key="gsk-test",
                model="llama-3.3-70b-versatile",
                messages=messages,
                max_tokens=4096,
                temperature=0.3,
            )

        self.assertEqual(result.status, "success")
        self.assertEqual(result.raw_response, "مرحبا")
        self.assertEqual(captured["url"], llm_provider.GROQ_CHAT_COMPLETIONS_URL)
        self.assertEqual(captured["payload"]["messages"], messages)
        self.assertEqual(captured["payload"]["max_tokens"], 4096)
        self.assertEqual(captured["payload"]["temperature"], 0.3)
        self.assertEqual(captured["headers"]["Authorization"], "Bearer gsk-test")

    def test_complete_chat_reports_http_status_and_provider_message(self):
        exc = _http_error(429, b'{"error": {"message": "Rate limit reached for model"}}')

        with patch("humata.llm_provider._post_json", side_effect=exc):
            result = llm_provider.complete_chat_with_groq(api_key="k", model="m", messages=[])

        self.assertEqual(result.status, "error")
        self.assertEqual(result.http_status, 429)
        self.assertIn("Rate limit reached", result.warnings[0])
        self.assertTrue(llm_provider.is_rate_limited(result))

    def test_complete_chat_empty_choices_is_error(self):
        with patch("humata.llm_provider._post_json", return_value={"choices": []}):
            result = llm_provider.complete_chat_with_groq(api_key="k", model="m", messages=[])

        self.assertEqual(result.status, "error")
        self.assertEqual(result.warnings, ["No response generated from AI"])

    def test_network_failure_is_reported_without_status(self):
        with patch("humata.llm_provider._post_json", side_effect=OSError("connection reset")):
            result = llm_provider.complete_chat_with_groq(api_key="k", model="m", messages=[])

        self.assertEqual(result.status, "error")
        self.assertIsNone(result.http_status)
        self.assertFalse(llm_provider.is_rate_limited(result))


class TestFailureClassification(unittest.TestCase):
    def test_invalid_credential_by_status(self):
        result = LlmResult(status="error", raw_response=None, warnings=["Groq request failed with HTTP 401."], http_status=401)

        self.assertTrue(llm_provider.is_invalid_credential(result))
        self.assertFalse(llm_provider.is_rate_limited(result))

    def test_invalid_credential_by_message(self):
        result = LlmResult(status="error", raw_response=None, warnings=["Invalid API Key"])

        self.assertTrue(llm_provider.is_invalid_credential(result))


class TestRateLimitDetection(unittest.TestCase):
    def _result(self, warning, http_status=None):
        return LlmResult(status="error", raw_response=None, warnings=[warning], http_status=http_status)

    def test_words_containing_rate_are_not_rate_limits(self):
        for warning in (
            "No response generated from AI",
            "Groq request failed with HTTP 400: please moderate the prompt",
            "Gemini request failed with HTTP 500: accurate results unavailable",
            "OpenAI request failed with HTTP 400: max_output_tokens exceeds the model maximum",
        ):
            self.assertFalse(llm_provider.is_rate_limited(self._result(warning)), warning)

    def test_rate_limit_phrases_are_detected(self):
        for warning in (
            "Groq request failed with HTTP 503: Rate limit reached for model",
            "rate_limit_exceeded",
            "Too Many Requests",
        ):
            self.assertTrue(llm_provider.is_rate_limited(self._result(warning)), warning)

    def test_status_429_is_a_rate_limit(self):
        self.assertTrue(llm_provider.is_rate_limited(self._result("Groq request failed with HTTP 429.", 429)))


class TestDecodeBase64Payload(unittest.TestCase):
    def test_restores_missing_padding(self):
        self.assertEqual(llm_provider.decode_base64_payload("YQ"), b"a")
        self.assertEqual(llm_provider.decode_base64_payload("YWI"), b"ab")

    def test_ignores_line_breaks(self):
        self.assertEqual(llm_provider.decode_base64_payload("YW\nJj\n"), b"abc")

    def test_malformed_payload_raises_localized_error(self):
        with self.assertRaises(ExtractionError) as ctx:
            llm_provider.decode_base64_payload("Y")

        self.assertEqual(ctx.exception.message, "فشل في قراءة محتوى الملف المرفوع")


class TestImageDescriptionMimeHandling(unittest.TestCase):
    def test_describe_image_with_openai_uses_detected_jpeg_mime(self):
        captured = {}

        def _fake_post_json(_url, payload, _headers):
            captured["payload"] = payload
            return {"output_text": "ok"}

        with patch("humata.llm_provider._post_json", side_effect=_fake_post_json):
            result = llm_provider.describe_image_with_openai(
                api_key="test-key",
                model="gpt-4.1-mini",
                image_bytes=b"\xff\xd8\xff" + b"1234",
                prompt="describe",
            )

        self.assertEqual(result.status, "success")
        image_url = captured["payload"]["input"][0]["content"][1]["image_url"]
        self.assertTrue(image_url.startswith("data:image/jpeg;base64,"))

    def test_describe_image_with_gemini_prefers_declared_mime(self):
        captured = {}

        def _fake_post_json(_url, payload, _headers):
            captured["payload"] = payload
            return {"candidates": [{"content": {"parts": [{"text": "جزء 1"}, {"text": "جزء 2"}]}}]}

        with patch("humata.llm_provider._post_json", side_effect=_fake_post_json):
            result = llm_provider.describe_image_with_gemini(
                api_key="test-key",
                model="gemini-1.5-flash",
                image_bytes=b"\xff\xd8\xff" + b"1234",
                prompt="describe",
                mime_type="image/webp",
            )

        self.assertEqual(result.raw_response, "جزء 1\nجزء 2")
        mime_type = captured["payload"]["contents"][0]["parts"][1]["inline_data"]["mime_type"]
        self.assertEqual(mime_type, "image/webp")


if __name__ == "__main__":
    unittest.main()
