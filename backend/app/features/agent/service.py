"""
Agent feature: per-request conversation controller.

Seeds the graph with the persona prompt, the context retrieved for the latest
user question and the full client history, then relays streamed events.
Nothing survives the request.
"""

import logging
from typing import AsyncIterator

from fastapi.concurrency import run_in_threadpool
from langchain_core.language_models import BaseChatModel

from app.config import get_settings
from app.features.agent.graph import build_conversation_graph, recursion_limit_for
from app.features.agent.messages import (
    ChatMessage,
    ClientToolSpec,
    extract_latest_user_text,
    to_langchain_messages,
)
from app.features.agent.prompts import build_system_prompt
from app.features.knowledge.service import RetrievalService

logger = logging.getLogger(__name__)


class ConversationService:
    """Runs the bounded answer loop for one chat request."""

    def __init__(self, llm: BaseChatModel, retriever: RetrievalService, max_steps: int | None = None):
        self.llm = llm
        self.retriever = retriever
        self.max_steps = max_steps or get_settings().AGENT_MAX_STEPS

    async def stream_answer(
        self,
        messages: list[ChatMessage],
        system: str | None = None,
        client_tools: dict[str, ClientToolSpec] | None = None,
    ) -> AsyncIterator[dict]:
        """Yield stream events for one answer.

        Events:
            {"type": "message", "content": str}            answer tokens
            {"type": "tool_call", "id", "name", "args"}    client tool to execute
            {"type": "done", "steps": int, "finish_reason": str}
        """
        latest_query = extract_latest_user_text(messages)
        context = await run_in_threadpool(self.retriever.retrieve, latest_query)

        graph = build_conversation_graph(
            self.llm,
            self.retriever,
            client_tools=client_tools,
            max_steps=self.max_steps,
        )
        state = {
            "messages": to_langchain_messages(messages),
            "system_prompt": build_system_prompt(context, system),
            "steps": 0,
            "streamed_chars": 0,
            "finish_reason": "answered",
        }

        final_state: dict = state
        async for mode, payload in graph.astream(
            state,
            config={"recursion_limit": recursion_limit_for(self.max_steps)},
            stream_mode=["custom", "values"],
        ):
            if mode == "custom":
                yield payload
            else:
                final_state = payload

        logger.info(
            f"Answer finished after {final_state['steps']} model steps "
            f"({final_state['finish_reason']})"
        )
        yield {
            "type": "done",
            "steps": final_state["steps"],
            "finish_reason": final_state["finish_reason"],
        }
