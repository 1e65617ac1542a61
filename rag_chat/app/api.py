from __future__ import annotations

import json
import logging
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel

from rag_chat.app.settings import AppSettings
from rag_chat.app.wiring import RagBundle, build_bundle, load_seed_texts
from rag_chat.domain.errors import (
    CompletionServiceError,
    DimensionMismatchError,
    EmbeddingServiceError,
    ServiceTimeoutError,
)

logging.basicConfig(level=logging.INFO, format="%(message)s")
log = logging.getLogger("rag_chat")

STREAM_HEADERS = {"Cache-Control": "no-cache", "Connection": "keep-alive"}


class ChatRequest(BaseModel):
    # тип не ограничиваем: проверка ниже отдаёт свои 400, а не 422
    message: Any = None


# как `!message`: пустые и нулевые значения считаются отсутствующими
_MISSING_MESSAGES = (None, "", 0)


class ChatResponse(BaseModel):
    reply: str


class InvalidChatInput(Exception):
    def __init__(self, error: str):
        self.error = error
        super().__init__(error)


async def _read_chat_request(request: Request) -> ChatRequest:
    # пустое тело, битый JSON или не-объект = пустой запрос
    try:
        data = await request.json()
    except ValueError:
        data = None
    return ChatRequest.model_validate(data if isinstance(data, dict) else {})


def validate_chat_input(req: ChatRequest = Depends(_read_chat_request)) -> str:
    message = req.message
    if message in _MISSING_MESSAGES:
        raise InvalidChatInput("Message field is required")
    if not isinstance(message, str):
        raise InvalidChatInput("Message must be a string")
    if not message.strip():
        raise InvalidChatInput("Message cannot be empty")
    return message


def _bundle(request: Request) -> RagBundle:
    return request.app.state.bundle


def create_app(settings: Optional[AppSettings] = None, *, bundle: Optional[RagBundle] = None) -> FastAPI:
    settings = settings if settings is not None else AppSettings.from_env()
    started_at = time.monotonic()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        b = bundle if bundle is not None else build_bundle(settings)
        if not b.store.ready:
            try:
                await b.seeder.seed(load_seed_texts(settings))
            except Exception as e:
                log.error(json.dumps({"event": "startup_aborted", "error": str(e)}, ensure_ascii=False))
                await b.aclose()
                raise
        app.state.bundle = b
        try:
            yield
        finally:
            await b.aclose()

    app = FastAPI(title="rag_chat", lifespan=lifespan)

    @app.exception_handler(InvalidChatInput)
    async def invalid_chat_input(request: Request, exc: InvalidChatInput) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": exc.error})

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = int((time.perf_counter() - start) * 1000)
        log.info(f"{request.method} {request.url.path} - {duration_ms}ms")
        return response

    @app.get("/health")
    async def health():
        return {"status": "OK", "uptime": round(time.monotonic() - started_at, 3)}

    @app.post("/chat", response_model=ChatResponse)
    async def chat(request: Request, message: str = Depends(validate_chat_input)):
        try:
            reply, meta = await _bundle(request).engine.handle_message_ex(message)
        except ServiceTimeoutError:
            log.exception("AI service timeout")
            return JSONResponse(status_code=504, content={"error": "AI service timed out"})
        except (EmbeddingServiceError, CompletionServiceError, DimensionMismatchError):
            log.exception("AI service error")
            return JSONResponse(status_code=500, content={"error": "AI service failed"})
        except Exception:
            log.exception("Unexpected error in /chat")
            return JSONResponse(status_code=500, content={"error": "AI service failed"})

        log.info(json.dumps({"event": "chat", **meta}, ensure_ascii=False))
        return ChatResponse(reply=reply)

    @app.post("/chat-stream")
    async def chat_stream(request: Request, message: str = Depends(validate_chat_input)):
        tokens = _bundle(request).engine.stream_message(message)

        async def body() -> AsyncIterator[str]:
            # при обрыве клиента starlette отменяет задачу, finally закрывает upstream
            try:
                async for token in tokens:
                    yield token
            finally:
                await tokens.aclose()

        return StreamingResponse(body(), media_type="text/event-stream", headers=STREAM_HEADERS)

    return app


app = create_app()
