from __future__ import annotations

import base64
import io
import logging
import time
import zipfile
from dataclasses import asdict, dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Protocol
from xml.etree import ElementTree as ET

import pytesseract
from PIL import Image
from pypdf import PdfReader

from humata.errors import PDF_EXTRACTION_MESSAGE, WORD_EXTRACTION_MESSAGE, ExtractionError
from humata.llm_provider import decode_base64_payload
from humata.settings import Settings
from humata.vision_analyze import VisionImageExtractor

logger = logging.getLogger(__name__)

PDF_MIME_TYPE = "application/pdf"
WORD_MIME_TYPES = (
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/msword",
)
TEXT_MIME_TYPES = ("text/plain", "text/markdown")
IMAGE_MIME_PREFIX = "image/"

OCR_TEXT_PREFIX = "[نص مستخرج من الصورة باستخدام OCR]:"
OCR_NO_TEXT_MARKER = "[صورة - لم يتم العثور على نص قابل للقراءة في الصورة]"
OCR_FAILED_MARKER = "[صورة - فشل في استخراج النص من الصورة]"

WORD_NAMESPACE = "{http://schemas.openxmlformats.org/wordprocessingml/2006/main}"


class FileKind(str, Enum):
    PDF = "pdf"
    WORD = "word"
    TEXT = "text"
    IMAGE = "image"
    UNSUPPORTED = "unsupported"


@dataclass(frozen=True)
class UploadedFile:
    base64_data: str
    mime_type: str
    file_name: str

    def to_dict(self) -> dict:
        return asdict(self)


class ImageTextExtractor(Protocol):
    name: str

    def extract(self, base64_data: str, mime_type: str) -> str:
        ...


def classify_mime_type(mime_type: str | None) -> FileKind:
    """Map a declared MIME type to exactly one file kind, first match wins."""
    mime = (mime_type or "").strip()
    if mime == PDF_MIME_TYPE:
        return FileKind.PDF
    if mime in WORD_MIME_TYPES:
        return FileKind.WORD
    if mime in TEXT_MIME_TYPES:
        return FileKind.TEXT
    if mime.startswith(IMAGE_MIME_PREFIX):
        return FileKind.IMAGE
    return FileKind.UNSUPPORTED


def unsupported_file_placeholder(file_name: str) -> str:
    return f"[ملف: {file_name}] - نوع الملف غير مدعوم للقراءة التلقائية"


def extract_pdf_text(base64_data: str) -> str:
    try:
        reader = PdfReader(io.BytesIO(decode_base64_payload(base64_data)))
        pages = [(page.extract_text() or "").strip() for page in reader.pages]
    except Exception as exc:  # noqa: BLE001
        logger.error("PDF extraction error: %s", exc)
        raise ExtractionError(PDF_EXTRACTION_MESSAGE) from exc

    text = "\n\n".join(page for page in pages if page)
    logger.info("PDF extracted - %d chars", len(text))
    return text


def _docx_paragraph_text(paragraph: ET.Element) -> str:
    parts: list[str] = []
    for node in paragraph.iter():
        if node.tag == f"{WORD_NAMESPACE}t" and node.text:
            parts.append(node.text)
        elif node.tag == f"{WORD_NAMESPACE}tab":
            parts.append("\t")
        elif node.tag in {f"{WORD_NAMESPACE}br", f"{WORD_NAMESPACE}cr"}:
            parts.append("\n")
    return "".join(parts)


def extract_docx_text(base64_data: str) -> str:
    try:
        with zipfile.ZipFile(io.BytesIO(decode_base64_payload(base64_data))) as archive:
            xml_payload = archive.read("word/document.xml")
        root = ET.fromstring(xml_payload)
    except Exception as exc:  # noqa: BLE001
        logger.error("DOCX extraction error: %s", exc)
        raise ExtractionError(WORD_EXTRACTION_MESSAGE) from exc

    paragraphs = [_docx_paragraph_text(paragraph) for paragraph in root.iter(f"{WORD_NAMESPACE}p")]
    text = "\n\n".join(paragraphs).strip()
    logger.info("DOCX extracted - %d chars", len(text))
    return text


def decode_text(base64_data: str) -> str:
    text = decode_base64_payload(base64_data).decode("utf-8", errors="replace")
    logger.info("Text file read - %d chars", len(text))
    return text


class OcrImageExtractor:
    """Local Tesseract OCR over Arabic and Latin script."""

    name = "ocr"

    def __init__(self, languages: str = "ara+eng"):
        self.languages = languages

    def recognize(self, image_bytes: bytes) -> str:
        with Image.open(io.BytesIO(image_bytes)) as image:
            return pytesseract.image_to_string(image, lang=self.languages) or ""

    def extract(self, base64_data: str, mime_type: str) -> str:
        logger.info("Starting local Tesseract OCR (%s) for %s", self.languages, mime_type)
        try:
            extracted_text = self.recognize(decode_base64_payload(base64_data)).strip()
        except Exception as exc:  # noqa: BLE001
            logger.error("OCR error during text extraction: %s", exc)
            return OCR_FAILED_MARKER

        if not extracted_text:
            logger.info("OCR found no text in image")
            return OCR_NO_TEXT_MARKER

        logger.info("OCR extracted %d characters from image", len(extracted_text))
        return f"{OCR_TEXT_PREFIX}\n{extracted_text}"


def build_image_extractor(settings: Settings, sleep: Callable[[float], None] = time.sleep) -> ImageTextExtractor:
    """Pick the single image strategy the configured credentials allow."""
    if settings.uses_vision:
        logger.info("Image handling: remote vision via %s (%s)", settings.vision_provider, settings.vision_model)
        return VisionImageExtractor.from_settings(settings, sleep=sleep)

    logger.info("Image handling: local Tesseract OCR (%s), no API key required", settings.ocr_languages)
    return OcrImageExtractor(languages=settings.ocr_languages)


def _check_handlers(dispatcher_cls: type) -> None:
    missing = [kind.value for kind in FileKind if kind not in dispatcher_cls.handlers]
    if missing:
        raise TypeError(f"{dispatcher_cls.__name__} has no content handler for: {', '.join(missing)}")
    for kind, method_name in dispatcher_cls.handlers.items():
        if not callable(getattr(dispatcher_cls, method_name, None)):
            raise TypeError(f"{dispatcher_cls.__name__}.{method_name} is not a handler for {kind.value}")


class ContentDispatcher:
    """Routes a declared MIME type to exactly one extractor.

    ``handlers`` maps every ``FileKind`` to a method name; subclasses that
    leave a kind unmapped are rejected when the class is defined.
    """

    handlers: dict[FileKind, str] = {
        FileKind.PDF: "_extract_pdf",
        FileKind.WORD: "_extract_word",
        FileKind.TEXT: "_extract_text",
        FileKind.IMAGE: "_extract_image",
        FileKind.UNSUPPORTED: "_describe_unsupported",
    }

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        _check_handlers(cls)

    def __init__(self, image_extractor: ImageTextExtractor):
        self.image_extractor = image_extractor

    def _extract_pdf(self, base64_data: str, mime_type: str, file_name: str) -> str:
        return extract_pdf_text(base64_data)

    def _extract_word(self, base64_data: str, mime_type: str, file_name: str) -> str:
        return extract_docx_text(base64_data)

    def _extract_text(self, base64_data: str, mime_type: str, file_name: str) -> str:
        return decode_text(base64_data)

    def _extract_image(self, base64_data: str, mime_type: str, file_name: str) -> str:
        return self.image_extractor.extract(base64_data, mime_type)

    def _describe_unsupported(self, base64_data: str, mime_type: str, file_name: str) -> str:
        return unsupported_file_placeholder(file_name)

    def extract(self, base64_data: str, mime_type: str, file_name: str) -> str:
        kind = classify_mime_type(mime_type)
        logger.info("Processing file: %s, type: %s (%s)", file_name, mime_type, kind.value)
        return getattr(self, self.handlers[kind])(base64_data, mime_type, file_name)

    def extract_file(self, uploaded: UploadedFile) -> str:
        return self.extract(uploaded.base64_data, uploaded.mime_type, uploaded.file_name)


_check_handlers(ContentDispatcher)


def upload_file(file_path: str | Path, mime_type: str, file_name: str) -> UploadedFile:
    """Read a local file and return it base64-encoded for a chat request."""
    logger.info("Reading file: %s, mimeType: %s, path: %s", file_name, mime_type, file_path)
    try:
        file_bytes = Path(file_path).read_bytes()
    except OSError:
        logger.exception("File read error for %s", file_path)
        raise

    base64_data = base64.b64encode(file_bytes).decode("ascii")
    logger.info("File read - %d bytes, base64 length %d", len(file_bytes), len(base64_data))
    return UploadedFile(base64_data=base64_data, mime_type=mime_type, file_name=file_name)
