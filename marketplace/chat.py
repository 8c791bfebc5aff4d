# marketplace/chat.py

"""
AI assistant chat: conversation storage and a streaming relay to the
completion provider.

Each assistant token is forwarded to the browser as a server-sent event:

    data: {"content": "<token>"}

followed by ``data: {"done": true}`` once the reply is complete and stored,
or ``data: {"error": "..."}`` if the provider fails mid-stream.
"""
import json
import logging
from typing import Annotated, AsyncIterator, Callable, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Response, status
from fastapi.responses import StreamingResponse
from openai import AsyncOpenAI
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from . import crud
from .config import OPENAI_API_KEY, OPENAI_BASE_URL, OPENAI_MODEL
from .db import SessionLocal, get_db
from .models import Product
from .schemas import (
    ConversationCreate,
    ConversationDetailResponse,
    ConversationResponse,
    MAX_ROW_ID,
    MessageCreate,
)

logger = logging.getLogger(__name__)

ChatMessages = List[Dict[str, str]]
CompletionStream = Callable[[ChatMessages], AsyncIterator[str]]

SYSTEM_PROMPT = (
    "You are the assistant of a marketplace for healthcare software. "
    "Help buyers find and compare products. Prefer products from the catalog "
    "below, mention them by name, and say so when nothing in the catalog fits."
)
CATALOG_CONTEXT_LIMIT = 50

router = APIRouter(prefix="/api/conversations", tags=["chat"])

# Shared by every request; created on first use so the service starts
# without credentials.
_client: Optional[AsyncOpenAI] = None


def get_openai_client() -> AsyncOpenAI:
    global _client
    if _client is None:
        _client = AsyncOpenAI(api_key=OPENAI_API_KEY, base_url=OPENAI_BASE_URL)
    return _client


async def close_openai_client() -> None:
    """Releases the shared client's connection pool on shutdown."""
    global _client
    if _client is not None:
        await _client.close()
        _client = None


async def stream_completion(messages: ChatMessages) -> AsyncIterator[str]:
    """Yields the reply tokens for `messages` from the OpenAI chat API."""
    client = get_openai_client()
    stream = await client.chat.completions.create(
        model=OPENAI_MODEL,
        messages=messages,
        stream=True,
    )
    async for chunk in stream:
        if not chunk.choices:
            continue
        token = chunk.choices[0].delta.content
        if token:
            yield token


def get_completion_stream() -> CompletionStream:
    """Dependency returning the completion provider."""
    return stream_completion


def _sse(payload: dict) -> str:
    return f"data: {json.dumps(payload)}\n\n"


def _catalog_context(db: Session) -> str:
    products = (
        db.query(Product)
        .order_by(Product.rating.desc(), Product.id.asc())
        .limit(CATALOG_CONTEXT_LIMIT)
        .all()
    )
    lines = []
    for product in products:
        ai = "AI-capable" if product.is_ai_capable else "not AI-capable"
        summary = product.short_description or product.description
        lines.append(f"- {product.name} (id {product.id}, {ai}): {summary}")
    return "Catalog:\n" + ("\n".join(lines) if lines else "(empty)")


def _save_reply(conversation_id: int, content: str) -> None:
    # The request's session may already be closed once streaming starts
    db = SessionLocal()
    try:
        crud.add_message(db, conversation_id, "assistant", content)
    finally:
        db.close()


async def _relay(
    conversation_id: int, messages: ChatMessages, complete: CompletionStream
) -> AsyncIterator[str]:
    parts: List[str] = []
    try:
        async for token in complete(messages):
            parts.append(token)
            yield _sse({"content": token})
    except Exception as e:
        logger.error(
            f"Completion stream failed for conversation {conversation_id}: {e}",
            exc_info=True,
        )
        yield _sse({"error": "Failed to get a response from the assistant"})
        return

    await run_in_threadpool(_save_reply, conversation_id, "".join(parts))
    logger.info(f"Conversation {conversation_id}: streamed {len(parts)} tokens.")
    yield _sse({"done": True})


@router.get("", response_model=List[ConversationResponse], summary="List conversations")
def list_conversations(db: Session = Depends(get_db)):
    return crud.list_conversations(db)


@router.post(
    "",
    response_model=ConversationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start a conversation",
)
def create_conversation(body: ConversationCreate, db: Session = Depends(get_db)):
    conversation = crud.create_conversation(db, body.title)
    logger.info(f"Conversation {conversation.id} created.")
    return conversation


@router.get(
    "/{conversation_id}",
    response_model=ConversationDetailResponse,
    summary="Retrieve a conversation with its messages",
)
def get_conversation(
    conversation_id: Annotated[int, Path(ge=1, le=MAX_ROW_ID)],
    db: Session = Depends(get_db),
):
    conversation = crud.get_conversation(db, conversation_id)
    if not conversation:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return conversation


@router.delete(
    "/{conversation_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a conversation",
)
def delete_conversation(
    conversation_id: Annotated[int, Path(ge=1, le=MAX_ROW_ID)],
    db: Session = Depends(get_db),
):
    if not crud.delete_conversation(db, conversation_id):
        raise HTTPException(status_code=404, detail="Conversation not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{conversation_id}/messages", summary="Send a message and stream the reply")
def send_message(
    conversation_id: Annotated[int, Path(ge=1, le=MAX_ROW_ID)],
    body: MessageCreate,
    db: Session = Depends(get_db),
    complete: CompletionStream = Depends(get_completion_stream),
):
    """
    Stores the user's message and streams the assistant's reply as
    server-sent events. The reply is stored once the stream completes.
    """
    conversation = crud.get_conversation(db, conversation_id)
    if not conversation:
        raise HTTPException(status_code=404, detail="Conversation not found")

    messages: ChatMessages = [
        {"role": "system", "content": f"{SYSTEM_PROMPT}\n\n{_catalog_context(db)}"}
    ]
    messages.extend({"role": m.role, "content": m.content} for m in conversation.messages)
    messages.append({"role": "user", "content": body.content})
    crud.add_message(db, conversation_id, "user", body.content)

    return StreamingResponse(
        _relay(conversation_id, messages, complete),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
