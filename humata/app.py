from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

from fastapi import FastAPI, File, Form, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from humata.chat import ChatOrchestrator, ChatRequestOptions, ConversationTurn
from humata.errors import HumataError
from humata.ingestion import ContentDispatcher, UploadedFile, build_image_extractor, upload_file
from humata.navigation import navigation_config
from humata.settings import load_settings

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


SETTINGS = load_settings()
configure_logging(SETTINGS.log_level)

if SETTINGS.has_reasoning_key:
    logger.info("API key configured, using model: %s (reasoning)", SETTINGS.reasoning_model)
else:
    logger.critical("No GROQ_API_KEY environment variable is set!")

DISPATCHER = ContentDispatcher(build_image_extractor(SETTINGS))
ORCHESTRATOR = ChatOrchestrator(SETTINGS, DISPATCHER)

app = FastAPI(title="Humata Chat API")


@app.middleware("http")
async def api_prefix_alias(request, call_next):
    """Accept both `/path` and `/api/path` for frontend compatibility."""
    if request.scope.get("path", "").startswith("/api/"):
        request.scope["path"] = request.scope["path"][4:]
    return await call_next(request)


app.add_middleware(
    CORSMiddleware,
    allow_origins=list(SETTINGS.cors_allowed_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(HumataError)
async def humata_error_handler(_request: Request, exc: HumataError):
    return JSONResponse(
        status_code=exc.http_status,
        content={"status": "error", "message": exc.message},
    )


class FilePayload(BaseModel):
    base64_data: str
    mime_type: str
    file_name: str = "file"

    def to_uploaded_file(self) -> UploadedFile:
        return UploadedFile(base64_data=self.base64_data, mime_type=self.mime_type, file_name=self.file_name)


class ChatTurnPayload(BaseModel):
    role: str
    content: str


class ChatOptionsPayload(BaseModel):
    system_prompt: str | None = None
    file: FilePayload | None = None
    files: list[FilePayload] = Field(default_factory=list)
    enable_grounding: bool = False

    def to_options(self) -> ChatRequestOptions:
        return ChatRequestOptions(
            system_prompt=self.system_prompt,
            file=self.file.to_uploaded_file() if self.file else None,
            files=[item.to_uploaded_file() for item in self.files],
            enable_grounding=self.enable_grounding,
        )


class ChatRequest(BaseModel):
    message: str
    history: list[ChatTurnPayload] = Field(default_factory=list)
    options: ChatOptionsPayload = Field(default_factory=ChatOptionsPayload)


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.get("/config/api-key-status")
def api_key_status():
    return ORCHESTRATOR.get_api_key_status().to_dict()


@app.get("/config/frontend")
def frontend_config():
    return {
        "navigation": navigation_config(SETTINGS.contact_url),
        "image_strategy": DISPATCHER.image_extractor.name,
    }


@app.post("/chat")
def chat(request: ChatRequest):
    history = [ConversationTurn(role=turn.role, content=turn.content) for turn in request.history]
    response_text = ORCHESTRATOR.send_chat_message(request.message, history, request.options.to_options())
    return {"status": "success", "response": response_text}


@app.post("/files/upload")
async def files_upload(file: UploadFile = File(...), mime_type: str | None = Form(None)):
    content = await file.read()
    file_name = file.filename or "file"
    declared_mime = mime_type or file.content_type or "application/octet-stream"

    handle = tempfile.NamedTemporaryFile(prefix="humata_", suffix=Path(file_name).suffix, delete=False)
    try:
        with handle:
            handle.write(content)
        uploaded = upload_file(handle.name, declared_mime, file_name)
    except OSError as exc:
        return JSONResponse(status_code=500, content={"status": "error", "message": str(exc) or "Failed to process file"})
    finally:
        if os.path.exists(handle.name):
            os.unlink(handle.name)

    return {"status": "success", **uploaded.to_dict()}
