from __future__ import annotations

MISSING_CREDENTIAL_MESSAGE = "لا يوجد مفتاح API متاح - يرجى إضافة GROQ_API_KEY"
INVALID_CREDENTIAL_MESSAGE = "خطأ في مفتاح API - تحقق من إعدادات الخادم"
RATE_LIMIT_MESSAGE = "تم تجاوز حد الطلبات - يرجى المحاولة لاحقا"
GENERIC_ERROR_MESSAGE = "حدث خطأ في معالجة الرسالة"
PDF_EXTRACTION_MESSAGE = "فشل في قراءة ملف PDF"
WORD_EXTRACTION_MESSAGE = "فشل في قراءة ملف Word"
FILE_DECODE_MESSAGE = "فشل في قراءة محتوى الملف المرفوع"


class HumataError(RuntimeError):
    """Base error whose message is safe to show to the end user."""

    default_message = GENERIC_ERROR_MESSAGE
    http_status = 500

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class MissingCredentialError(HumataError):
    default_message = MISSING_CREDENTIAL_MESSAGE
    http_status = 503


class InvalidCredentialError(HumataError):
    default_message = INVALID_CREDENTIAL_MESSAGE
    http_status = 401


class RateLimitError(HumataError):
    default_message = RATE_LIMIT_MESSAGE
    http_status = 429


class ExtractionError(HumataError):
    http_status = 422


class ProviderError(HumataError):
    http_status = 502
