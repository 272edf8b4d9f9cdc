import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, Header, HTTPException, Response
from fastapi.responses import JSONResponse

from . import conversation_store
from .chat_orchestrator import ChatOrchestrator
from .config import APP_DEBUG, LOG_LEVEL
from .errors import (
    ChatProcessingError,
    ConversationAccessDenied,
    ConversationNotFound,
    MessageValidationError,
)
from .schemas import (
    AskRequest,
    AskResponse,
    ConversationDetail,
    ConversationOut,
    SendMessageRequest,
    SendMessageResponse,
    TurnOut,
)

logging.basicConfig(level=getattr(logging, LOG_LEVEL, logging.INFO), format="[%(asctime)s] %(levelname)s %(name)s - %(message)s")
LOGGER = logging.getLogger("weather_chat.api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    conversation_store.init_store()
    yield


app = FastAPI(title="Weather Chat", version="1.0.0", lifespan=lifespan)

# Provider clients are built once and shared by every request.
orchestrator = ChatOrchestrator()


def get_orchestrator() -> ChatOrchestrator:
    return orchestrator


def get_current_user(x_user_id: str | None = Header(default=None)) -> str:
    user_id = conversation_store.normalize_user_id(x_user_id)
    if user_id is None:
        raise HTTPException(status_code=401, detail="Missing user identity")
    return user_id


def _authorized_conversation(engine: ChatOrchestrator, user_id: str, chat_id: int) -> dict[str, Any]:
    try:
        return engine.authorize(user_id, chat_id)
    except ConversationNotFound:
        raise HTTPException(status_code=404, detail="Conversation not found")
    except ConversationAccessDenied:
        raise HTTPException(status_code=403, detail="This action is unauthorized")


def _failure_response(exc: ChatProcessingError) -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content={
            "detail": str(exc),
            "error": exc.detail if APP_DEBUG else None,
        },
    )


@app.get("/")
def root() -> dict[str, Any]:
    return {
        "service": "weather-chat",
        "status": "ok",
        "routes": {
            "chats": "/chats",
            "messages": "/chats/{chat_id}/messages",
            "ask": "/ask",
            "docs": "/docs",
        },
    }


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/chats", response_model=list[ConversationOut])
def list_chats(user_id: str = Depends(get_current_user)) -> list[ConversationOut]:
    return [ConversationOut(**item) for item in conversation_store.list_conversations(user_id)]


@app.post("/chats", response_model=ConversationOut, status_code=201)
def create_chat(user_id: str = Depends(get_current_user)) -> ConversationOut:
    conversation = conversation_store.create_conversation(user_id)
    LOGGER.info("conversation created id=%s user=%s", conversation["id"], user_id)
    return ConversationOut(**conversation)


@app.get("/chats/{chat_id}", response_model=ConversationDetail)
def show_chat(
    chat_id: int,
    user_id: str = Depends(get_current_user),
    engine: ChatOrchestrator = Depends(get_orchestrator),
) -> ConversationDetail:
    conversation = _authorized_conversation(engine, user_id, chat_id)
    turns = conversation_store.list_turns(chat_id)
    return ConversationDetail(
        chat=ConversationOut(**conversation),
        messages=[TurnOut(**turn) for turn in turns],
    )


@app.delete("/chats/{chat_id}", status_code=204)
def delete_chat(
    chat_id: int,
    user_id: str = Depends(get_current_user),
    engine: ChatOrchestrator = Depends(get_orchestrator),
) -> Response:
    _authorized_conversation(engine, user_id, chat_id)
    conversation_store.delete_conversation(chat_id)
    LOGGER.info("conversation deleted id=%s user=%s", chat_id, user_id)
    return Response(status_code=204)


@app.post("/chats/{chat_id}/messages", response_model=SendMessageResponse)
def send_message(
    chat_id: int,
    payload: SendMessageRequest,
    user_id: str = Depends(get_current_user),
    engine: ChatOrchestrator = Depends(get_orchestrator),
) -> SendMessageResponse | JSONResponse:
    # Authorization happens once, inside the orchestrator.
    try:
        result = engine.send_message(user_id, chat_id, payload.content)
    except ConversationNotFound:
        raise HTTPException(status_code=404, detail="Conversation not found")
    except ConversationAccessDenied:
        raise HTTPException(status_code=403, detail="This action is unauthorized")
    except MessageValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    except ChatProcessingError as exc:
        return _failure_response(exc)

    return SendMessageResponse(
        chat_id=result["chat_id"],
        message=result["message"],
        is_weather=result["is_weather"],
        chat=ConversationOut(**result["chat"]),
        trace=result["trace"] if APP_DEBUG else [],
    )


@app.post("/ask", response_model=AskResponse)
def ask(payload: AskRequest, engine: ChatOrchestrator = Depends(get_orchestrator)) -> AskResponse:
    try:
        reply = engine.ask(payload.message)
    except MessageValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return AskResponse(reply=reply)
