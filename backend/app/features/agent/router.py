"""
Agent feature: Chat API route.
"""

import asyncio
import json
import logging

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from langchain_core.language_models import BaseChatModel

from app.core.dependencies import get_chat_model, get_retrieval_service
from app.features.agent.messages import ChatRequest
from app.features.agent.service import ConversationService
from app.features.knowledge.service import RetrievalService

logger = logging.getLogger(__name__)

router = APIRouter()


def _sse(event: dict) -> str:
    return f"data: {json.dumps(event, ensure_ascii=False)}\n\n"


@router.post("/chat")
async def chat(
    data: ChatRequest,
    llm: BaseChatModel = Depends(get_chat_model),
    retriever: RetrievalService = Depends(get_retrieval_service),
):
    """Answer the latest user message from the Gita knowledge base, streamed as SSE."""
    service = ConversationService(llm, retriever)

    async def generate_chat_stream():
        try:
            async for event in service.stream_answer(
                data.messages,
                system=data.system,
                client_tools=data.tools,
            ):
                yield _sse(event)
        except asyncio.CancelledError:
            # Client disconnected / aborted; nothing left to deliver
            logger.info("Chat stream cancelled by client")
            raise
        except Exception as e:
            logger.error(f"[chat] error: {e}")
            yield _sse({"type": "error", "content": "Failed to process chat request"})

    return StreamingResponse(generate_chat_stream(), media_type="text/event-stream")
